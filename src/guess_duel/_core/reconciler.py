# Area: Core
"""
guess_duel._core.reconciler — Two-channel reconciliation state machine
======================================================================

Merges Session Service results and push notifications into the turn
arbiter and the history ledger.

Rules:
- Events are queued and handled one at a time, each to completion.
  A listener that posts while a handler runs is queued behind it.
- History only grows, through the ledger's idempotent append, so
  replayed notifications and overlapping fetches never duplicate.
- Only GameStarted and notifications touch turn ownership; a history
  fetch can never overwrite it.
- Once the room is COMPLETED every event is ignored.
"""

from __future__ import annotations

import logging
from collections import deque
from typing import Callable, Deque, List, Optional

from .enums import GameMode, NoticeKind, RoomStatus
from .events import GameStarted, HistoryFetched, Notification, ReconcilerEvent
from .history_ledger import HistoryLedger
from .notices import NoticeBoard, Scheduler, TransientNotice, loop_scheduler
from .turn_arbiter import TurnArbiter
from .._state import RoomState, Session
from ..types import GameCompleted, GuessRecord, NotificationEvent, PlayerJoined, TurnOutcome

logger = logging.getLogger("guess_duel.reconciler")

Listener = Callable[[], None]


class Reconciler:
    """
    Owns the arbiter, ledger and notice board for one session.

    Args:
        local_player_id: Identity of the participant on this device
        scheduler: Timer scheduler for notice expiry
        on_in_progress: Called once, the first time the room is IN_PROGRESS

    Usage:
        reconciler = Reconciler("Alice")
        reconciler.post(GameStarted(session, room_state))
        dispatcher = NotificationDispatcher(reconciler.notify)
    """

    def __init__(
        self,
        local_player_id: str,
        scheduler: Scheduler = loop_scheduler,
        on_in_progress: Optional[Listener] = None,
    ):
        self._arbiter = TurnArbiter(local_player_id)
        self._ledger = HistoryLedger()
        self._notices = NoticeBoard(scheduler=scheduler, on_expire=self._changed)
        self._session: Optional[Session] = None
        self._on_in_progress = on_in_progress
        self._in_progress_seen = False
        self._listeners: List[Listener] = []
        self._queue: Deque[ReconcilerEvent] = deque()
        self._draining = False
        self.waiting_for_opponent = False

    # ── Event intake ─────────────────────────────────────────

    def post(self, event: ReconcilerEvent) -> None:
        """Queue an event and drain the queue unless already draining."""
        self._queue.append(event)
        if self._draining:
            return
        self._draining = True
        try:
            while self._queue:
                self._handle(self._queue.popleft())
        finally:
            self._draining = False

    def notify(self, event: NotificationEvent) -> None:
        """Sink for the notification dispatcher."""
        self.post(Notification(event))

    def add_listener(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def notify_listeners(self) -> None:
        """Tell listeners about a change outside the event queue (e.g. channel state)."""
        self._changed()

    # ── Read-only views ──────────────────────────────────────

    @property
    def session(self) -> Optional[Session]:
        return self._session

    @property
    def room_state(self) -> RoomState:
        return self._arbiter.room_state

    @property
    def status(self) -> RoomStatus:
        return self._arbiter.status

    @property
    def is_completed(self) -> bool:
        return self._arbiter.is_completed

    def is_my_turn(self) -> bool:
        return self._arbiter.is_my_turn()

    def history_mine(self) -> List[GuessRecord]:
        return self._ledger.all_for(self._arbiter.local_player_id)

    def history_theirs(self) -> List[GuessRecord]:
        return self._ledger.all_except(self._arbiter.local_player_id)

    def history(self) -> List[GuessRecord]:
        return self._ledger.records()

    @property
    def transient_notice(self) -> Optional[TransientNotice]:
        return self._notices.current

    @property
    def game_over_notice(self) -> Optional[TransientNotice]:
        return self._notices.game_over

    # ── Handlers ─────────────────────────────────────────────

    def _handle(self, event: ReconcilerEvent) -> None:
        if self._arbiter.is_completed:
            logger.debug("Room completed; ignoring %s", type(event).__name__)
            return

        if isinstance(event, GameStarted):
            applied = self._on_game_started(event)
        elif isinstance(event, Notification):
            applied = self._on_notification(event.event)
        elif isinstance(event, HistoryFetched):
            applied = self._on_history_fetched(event)
        else:
            logger.warning("Unknown reconciler event: %r", event)
            applied = False

        if applied:
            self._check_in_progress()
            self._changed()

    def _on_game_started(self, event: GameStarted) -> bool:
        if self._arbiter.initialized:
            logger.warning("GameStarted received twice; ignoring")
            return False
        session = event.session
        self._session = session
        self._arbiter.local_player_id = session.player_id
        self._arbiter.initialize(event.room_state.status, event.room_state.current_player_id)
        self.waiting_for_opponent = (
            session.game_mode == GameMode.MULTIPLAYER
            and event.room_state.status == RoomStatus.WAITING_FOR_PLAYER
        )
        logger.info(
            "Game %s started in room %s as %s (level %d)",
            session.game_id, session.room_id, session.player_id, session.level,
        )
        return True

    def _on_notification(self, event: NotificationEvent) -> bool:
        if isinstance(event, GameCompleted):
            return self._on_completed(event)
        if isinstance(event, PlayerJoined):
            return self._on_joined(event)
        if isinstance(event, TurnOutcome):
            return self._on_turn(event)
        logger.warning("Unhandled notification type: %s", type(event).__name__)
        return False

    def _on_joined(self, event: PlayerJoined) -> bool:
        self._arbiter.apply_join(event.joined_player_id, event.status)
        self.waiting_for_opponent = False
        self._notices.show(TransientNotice(
            kind=NoticeKind.PLAYER_JOINED,
            message=event.message,
            joined_player_id=event.joined_player_id,
        ))
        logger.info("Player joined: %s (room %s)", event.joined_player_id, event.status.value)
        return True

    def _on_turn(self, event: TurnOutcome) -> bool:
        record = event.to_record()
        if not self._fits_level(record):
            logger.warning(
                "Turn %s #%d out of range for level; not recorded", event.player_id, event.guess_number,
            )
        elif not self._ledger.append(record):
            logger.info(
                "Replayed turn ignored for history: %s #%d", event.player_id, event.guess_number,
            )
        self._arbiter.apply_turn_outcome(event.current_player_id)
        if self._arbiter.status == RoomStatus.IN_PROGRESS:
            self.waiting_for_opponent = False
        self._notices.show(TransientNotice(
            kind=NoticeKind.TURN_OUTCOME,
            message=event.message,
            player_id=event.player_id,
            guessed_number=event.guessed_number,
            correct_digits=event.correct_digits,
            remaining_attempts=event.remaining_attempts,
        ))
        return True

    def _on_completed(self, event: GameCompleted) -> bool:
        self._arbiter.complete()
        self.waiting_for_opponent = False
        self._notices.finish(event.message)
        logger.info("Game over: %s", event.message)
        return True

    def _on_history_fetched(self, event: HistoryFetched) -> bool:
        records = [r for r in event.records if self._fits_level(r)]
        if len(records) < len(event.records):
            logger.warning("Dropped %d fetched records out of range for level",
                           len(event.records) - len(records))
        added = self._ledger.merge(records)
        logger.info("History merged: %d fetched, %d new", len(event.records), added)
        return added > 0

    def _fits_level(self, record: GuessRecord) -> bool:
        # Leading zeros may be lost when the server sends a JSON number.
        if self._session is None:
            return True
        digits = self._session.expected_digits
        return (
            record.correct_digits <= digits
            and record.guessed_number.isdigit()
            and len(record.guessed_number) <= digits
        )

    # ── Hooks ────────────────────────────────────────────────

    def _check_in_progress(self) -> None:
        if self._in_progress_seen or self._arbiter.status != RoomStatus.IN_PROGRESS:
            return
        self._in_progress_seen = True
        if self._on_in_progress is None:
            return
        try:
            self._on_in_progress()
        except Exception as e:
            logger.error("on_in_progress hook failed: %s", e, exc_info=True)

    def _changed(self) -> None:
        for listener in list(self._listeners):
            try:
                listener()
            except Exception as e:
                logger.error("State listener failed: %s", e, exc_info=True)
