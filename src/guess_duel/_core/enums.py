# Area: Core
"""
guess_duel._core.enums — Room lifecycle and error code enums
============================================================

Defines the room statuses, game modes, and the error codes used by
the validator and the notification dispatcher.
"""

from enum import Enum


class RoomStatus(Enum):
    """
    Lifecycle status of a room.

    Status transitions (forward only):
    WAITING_FOR_PLAYER -> IN_PROGRESS (opponent joined)
    WAITING_FOR_PLAYER -> COMPLETED   (game ended before a join)
    IN_PROGRESS -> COMPLETED          (secret guessed, attempts exhausted, player left)
    """
    WAITING_FOR_PLAYER = "WAITING_FOR_PLAYER"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"


class GameMode(Enum):
    """Game modes accepted by the start operation."""
    MULTIPLAYER = "MULTIPLAYER"
    SINGLE = "SINGLE"


class ValidationCode(Enum):
    """Why a guess failed local validation."""
    EMPTY = "EMPTY"
    WRONG_LENGTH = "WRONG_LENGTH"
    NOT_NUMERIC = "NOT_NUMERIC"


class ClassificationCode(Enum):
    """Why a notification could not be classified."""
    UNKNOWN_SHAPE = "UNKNOWN_SHAPE"
    MALFORMED = "MALFORMED"


class NoticeKind(Enum):
    """Kinds of notices surfaced to the presentation layer."""
    PLAYER_JOINED = "PLAYER_JOINED"
    TURN_OUTCOME = "TURN_OUTCOME"
    GAME_OVER = "GAME_OVER"
