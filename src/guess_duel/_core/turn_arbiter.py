# Area: Core
"""
guess_duel._core.turn_arbiter — Turn ownership and room lifecycle
=================================================================

Single source of truth for whose turn it is and for the room's
lifecycle status. Only the reconciler mutates it. Status moves
forward only; once COMPLETED every mutator is a no-op.
"""

import logging
from typing import Optional

from .enums import RoomStatus
from .._state import RoomState
from ..errors import TurnStateNotInitializedError

logger = logging.getLogger("guess_duel.turn_arbiter")


# Forward-only status transitions: {current_status: {allowed_next_status, ...}}
TRANSITIONS = {
    RoomStatus.WAITING_FOR_PLAYER: {RoomStatus.IN_PROGRESS, RoomStatus.COMPLETED},
    RoomStatus.IN_PROGRESS: {RoomStatus.COMPLETED},
    RoomStatus.COMPLETED: set(),
}


class TurnArbiter:
    """
    Holds the RoomState for one session.

    The local participant may guess if and only if the room is
    IN_PROGRESS and ``current_player_id`` names them.

    Attributes:
        local_player_id: Identity of the participant on this device
    """

    def __init__(self, local_player_id: str):
        self.local_player_id = local_player_id
        self._state: Optional[RoomState] = None

    # ── Accessors ────────────────────────────────────────────

    @property
    def initialized(self) -> bool:
        return self._state is not None

    def _require_state(self) -> RoomState:
        if self._state is None:
            raise TurnStateNotInitializedError(
                "TurnArbiter read before initialize(); initialize from the "
                "start response before subscribing to notifications"
            )
        return self._state

    @property
    def status(self) -> RoomStatus:
        return self._require_state().status

    @property
    def current_player_id(self) -> Optional[str]:
        return self._require_state().current_player_id

    @property
    def room_state(self) -> RoomState:
        """A copy of the current state; mutating it has no effect."""
        return self._require_state().copy()

    @property
    def is_completed(self) -> bool:
        return self._state is not None and self._state.status == RoomStatus.COMPLETED

    def is_my_turn(self) -> bool:
        state = self._require_state()
        return (
            state.status == RoomStatus.IN_PROGRESS
            and state.current_player_id == self.local_player_id
        )

    def can_advance(self, new_status: RoomStatus) -> bool:
        """Check whether ``new_status`` is a forward move from the current status."""
        return new_status in TRANSITIONS.get(self._require_state().status, set())

    # ── Mutators ─────────────────────────────────────────────

    def initialize(self, status: RoomStatus, current_player_id: Optional[str]) -> None:
        """
        Populate the state from the start/join response.

        Only the first call has an effect.
        """
        if self._state is not None:
            logger.warning("TurnArbiter already initialized; ignoring re-initialize")
            return
        self._state = RoomState(status=status, current_player_id=current_player_id)
        logger.info(
            "Room initialized: status=%s current=%s", status.value, current_player_id,
        )

    def apply_join(self, joined_player_id: str, new_status: RoomStatus) -> None:
        """
        Apply a player-joined notification.

        When the room goes IN_PROGRESS, nobody holds the turn yet, and the
        joiner is the other participant, the local participant created the
        room and therefore moves first.
        """
        state = self._require_state()
        if state.status == RoomStatus.COMPLETED:
            return

        self._advance(new_status)

        if new_status != RoomStatus.IN_PROGRESS:
            return
        if state.current_player_id is not None:
            return
        if joined_player_id == self.local_player_id:
            return
        state.current_player_id = self.local_player_id
        logger.info("Opponent %s joined; %s moves first", joined_player_id, self.local_player_id)

    def apply_turn_outcome(self, next_player_id: Optional[str]) -> None:
        """Hand the turn to ``next_player_id``; the server is authoritative."""
        state = self._require_state()
        if state.status == RoomStatus.COMPLETED:
            return
        # A turn can only be played in a running room, even if the join
        # notification has not arrived yet.
        self._advance(RoomStatus.IN_PROGRESS)
        if next_player_id:
            if next_player_id != state.current_player_id:
                logger.info("Turn: %s → %s", state.current_player_id, next_player_id)
            state.current_player_id = next_player_id

    def complete(self) -> None:
        """Move to COMPLETED. Final."""
        state = self._require_state()
        if state.status == RoomStatus.COMPLETED:
            return
        logger.info("Room status: %s → %s", state.status.value, RoomStatus.COMPLETED.value)
        state.status = RoomStatus.COMPLETED

    def _advance(self, new_status: RoomStatus) -> bool:
        state = self._require_state()
        if new_status == state.status or not self.can_advance(new_status):
            return False
        logger.info("Room status: %s → %s", state.status.value, new_status.value)
        state.status = new_status
        return True
