"""
guess_duel._state — Session identity and room state
===================================================

Holds the immutable identity of one game session and the mutable
snapshot of the room it plays in. The room state is only ever
changed by the turn arbiter on behalf of the reconciler.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Optional

from ._core.enums import GameMode, RoomStatus
from ._core.guess_validator import digits_for_level
from .types import StartResponse


@dataclass(frozen=True)
class Session:
    """
    Identity of the local participant's game.

    Created once from the start response and never changed.
    """
    game_id: str
    room_id: Optional[str]
    player_id: str
    level: int
    limit_attempts: bool
    game_mode: GameMode = GameMode.MULTIPLAYER
    secret_number: Optional[str] = None

    @property
    def expected_digits(self) -> int:
        return digits_for_level(self.level)

    @classmethod
    def from_start_response(
        cls,
        response: StartResponse,
        limit_attempts: bool,
        game_mode: GameMode = GameMode.MULTIPLAYER,
    ) -> "Session":
        return cls(
            game_id=response.game_id,
            room_id=response.room_id,
            player_id=response.player_id,
            level=response.level,
            limit_attempts=limit_attempts,
            game_mode=game_mode,
            secret_number=response.secret_number,
        )


@dataclass
class RoomState:
    """Lifecycle status of the room plus whose turn it is."""
    status: RoomStatus = RoomStatus.WAITING_FOR_PLAYER
    current_player_id: Optional[str] = None

    def copy(self) -> "RoomState":
        return RoomState(status=self.status, current_player_id=self.current_player_id)
