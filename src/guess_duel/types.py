"""
guess_duel.types — Wire models for the Session Service and push channel
=======================================================================

Pydantic models for every JSON body the client sends or receives.
Fields use snake_case in Python and camelCase on the wire:

    >>> record = GuessRecord.model_validate(
    ...     {"playerId": "Alice", "guessedNumber": "42",
    ...      "correctDigits": 1, "guessNumber": 1})
    >>> record.dedup_key
    ('Alice', 1)

All models are exported from the main package.
"""

from __future__ import annotations

from typing import Any, Dict, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from ._core.enums import GameMode, RoomStatus


class WireModel(BaseModel):
    """Base for camelCase wire bodies; unknown fields are ignored."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


def _digits_as_text(value: Any) -> Any:
    # The server may send numbers as JSON integers.
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return str(value)
    return value


# ============================================
# Session Service: start
# ============================================

class StartRequest(WireModel):
    """Body of the ``start`` operation (create or join a room)."""
    game_mode: GameMode = GameMode.MULTIPLAYER
    player_id: str
    level: int
    limit_attempts: bool = True
    room_id: Optional[str] = None
    secret_number: Optional[int] = None


class StartResponse(WireModel):
    """Successful ``start`` response.

    ``current_player_id`` is absent for the room creator and set for
    the player who joins an existing room.
    """
    game_id: str
    room_id: Optional[str] = None
    player_id: str
    current_player_id: Optional[str] = None
    room_status: RoomStatus = RoomStatus.WAITING_FOR_PLAYER
    secret_number: Optional[str] = None
    level: int

    @field_validator("secret_number", mode="before")
    @classmethod
    def secret_as_text(cls, value: Any) -> Any:
        return _digits_as_text(value)

    @field_validator("game_id", "room_id", "player_id", mode="before")
    @classmethod
    def ids_as_text(cls, value: Any) -> Any:
        return str(value) if isinstance(value, int) and not isinstance(value, bool) else value


# ============================================
# Session Service: guess / history / end
# ============================================

class GuessRequest(WireModel):
    game_id: str
    player_id: str
    guess: str


class GuessResponse(WireModel):
    """Only ``status`` is read; the authoritative update arrives by notification."""
    status: Optional[str] = None


class HistoryRequest(WireModel):
    room_id: str


class EndRequest(WireModel):
    game_id: str
    player_id: str


class GuessRecord(WireModel):
    """One guess in the room's history. Immutable once created.

    The model has no level, so it only checks ``correct_digits >= 0``.
    The reconciler drops records whose ``correct_digits`` exceeds the
    level's digit count or whose ``guessed_number`` is longer than it.
    """

    model_config = ConfigDict(frozen=True)

    player_id: str
    guessed_number: str
    correct_digits: int = Field(ge=0)
    guess_number: int

    @field_validator("guessed_number", mode="before")
    @classmethod
    def guess_as_text(cls, value: Any) -> Any:
        return _digits_as_text(value)

    @property
    def dedup_key(self) -> Tuple[str, int]:
        return (self.player_id, self.guess_number)


# ============================================
# Notification Channel payloads
# ============================================

class PlayerJoined(WireModel):
    """Someone joined the room; ``status`` is the room's new status."""
    joined_player_id: str
    status: RoomStatus
    message: Optional[str] = None


class TurnOutcome(WireModel):
    """A guess was scored; ``current_player_id`` is who moves next."""
    player_id: str
    guessed_number: str
    correct_digits: int = Field(ge=0)
    guess_number: int
    current_player_id: Optional[str] = None
    remaining_attempts: Optional[int] = None
    message: Optional[str] = None

    @field_validator("guessed_number", mode="before")
    @classmethod
    def guess_as_text(cls, value: Any) -> Any:
        return _digits_as_text(value)

    def to_record(self) -> GuessRecord:
        return GuessRecord(
            player_id=self.player_id,
            guessed_number=self.guessed_number,
            correct_digits=self.correct_digits,
            guess_number=self.guess_number,
        )


class GameCompleted(WireModel):
    """The room reached its terminal status."""
    status: RoomStatus = RoomStatus.COMPLETED
    message: Optional[str] = None


NotificationEvent = Union[PlayerJoined, TurnOutcome, GameCompleted]
