# Area: Session
"""
guess_duel.session — Session façade
===================================

The one object the presentation layer talks to. It starts or joins a
room, wires the notification channel into the reconciler, and exposes
a state snapshot plus the two user actions: submit a guess and leave.

Submitting a guess never changes local state directly; the turn
result is applied when the server's notification arrives.

Usage:
    service = SessionServiceClient(config["api_base_url"])
    connections = ConnectionManager(stomp_transport_factory(config))
    game = await GameSession.start(
        service, connections, StartOptions(player_name="Alice", level=1))
    await game.submit_guess("42")
    snapshot = game.current_snapshot()
    await game.leave()
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Callable, List, Optional, Set, Tuple

from pydantic import BaseModel

from ._channel.connection_manager import ChannelHandle, ConnectionManager, Subscription
from ._channel.departure_guard import DepartureGuard
from ._core.dispatcher import NotificationDispatcher
from ._core.enums import GameMode, RoomStatus, ValidationCode
from ._core.events import GameStarted, HistoryFetched
from ._core.guess_validator import LEVEL_DIGITS, check_guess, digits_for_level, validate_guess
from ._core.notices import Scheduler, TransientNotice, loop_scheduler
from ._core.reconciler import Reconciler
from ._shared.logging_config import log_service_error
from ._shared.service_client import SessionServiceClient
from ._state import RoomState, Session
from .errors import ServiceError, StartOptionsError, TransportError, TurnViolationError
from .types import GuessRecord, StartRequest

logger = logging.getLogger("guess_duel.session")


# ══════════════════════════════════════════════════════════════
# START FORM
# ══════════════════════════════════════════════════════════════


class StartOptions(BaseModel):
    """What the player filled in before starting or joining a room."""
    player_name: str
    level: int = 1
    room_id: Optional[str] = None
    secret_number: Optional[str] = None
    limit_attempts: bool = True
    game_mode: GameMode = GameMode.MULTIPLAYER

    def errors(self) -> List[str]:
        """Form problems in the order the player should fix them."""
        errors: List[str] = []
        if not self.player_name.strip():
            errors.append("Please enter your name")
        if self.level not in LEVEL_DIGITS:
            errors.append(f"Level must be one of {sorted(LEVEL_DIGITS)}")
            return errors
        secret = (self.secret_number or "").strip()
        if secret:
            digits = digits_for_level(self.level)
            code = check_guess(secret, digits)
            if code == ValidationCode.WRONG_LENGTH:
                errors.append(f"Secret number must be exactly {digits} digits")
            elif code is not None:
                errors.append("Secret number must contain only digits")
        return errors

    def to_request(self) -> StartRequest:
        """
        Build the start request.

        Raises:
            StartOptionsError: If the form is invalid
        """
        errors = self.errors()
        if errors:
            raise StartOptionsError(errors)
        room_id = (self.room_id or "").strip() or None
        secret = (self.secret_number or "").strip()
        return StartRequest(
            game_mode=self.game_mode,
            player_id=self.player_name.strip(),
            level=self.level,
            limit_attempts=self.limit_attempts,
            room_id=room_id,
            secret_number=int(secret) if secret else None,
        )


# ══════════════════════════════════════════════════════════════
# SNAPSHOT
# ══════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class HistoryView:
    """Guess history split by owner, in arrival order."""
    mine: Tuple[GuessRecord, ...]
    theirs: Tuple[GuessRecord, ...]


@dataclass(frozen=True)
class Snapshot:
    """Everything the presentation layer renders."""
    session: Session
    room_state: RoomState
    my_turn: bool
    history: HistoryView
    transient_notice: Optional[TransientNotice]
    game_over_notice: Optional[TransientNotice]
    expected_digits: int
    waiting_for_opponent: bool
    live_updates: bool


# ══════════════════════════════════════════════════════════════
# FAÇADE
# ══════════════════════════════════════════════════════════════


class GameSession:
    """
    Session façade for one game.

    Use ``GameSession.start`` rather than the constructor; it performs
    the start call and wires the channel in the required order
    (initialize from the response first, subscribe second).
    """

    def __init__(
        self,
        service: SessionServiceClient,
        connections: Optional[ConnectionManager],
        session: Session,
        scheduler: Scheduler = loop_scheduler,
    ):
        self.service = service
        self.connections = connections
        self.session = session
        self.reconciler = Reconciler(
            session.player_id, scheduler=scheduler, on_in_progress=self._on_in_progress,
        )
        self.dispatcher = NotificationDispatcher(self.reconciler.notify)
        self._handle: Optional[ChannelHandle] = None
        self._subscription: Optional[Subscription] = None
        self._guard: Optional[DepartureGuard] = None
        self._started = False
        self._backfill_due = False
        self._submitting = False
        self._closed = False
        self._tasks: Set[asyncio.Task] = set()

    # ── Construction ─────────────────────────────────────────

    @classmethod
    async def start(
        cls,
        service: SessionServiceClient,
        connections: Optional[ConnectionManager],
        options: StartOptions,
        scheduler: Scheduler = loop_scheduler,
    ) -> "GameSession":
        """
        Start a new room, or join ``options.room_id``.

        Raises:
            StartOptionsError: If the form is invalid (no network call made)
            ServiceError: If the server rejects the start
        """
        request = options.to_request()
        try:
            response = await service.start(request)
        except ServiceError as e:
            log_service_error(e)
            raise

        session = Session.from_start_response(
            response, limit_attempts=options.limit_attempts, game_mode=options.game_mode,
        )
        game = cls(service, connections, session, scheduler=scheduler)
        game.reconciler.post(GameStarted(
            session=session,
            room_state=RoomState(
                status=response.room_status,
                current_player_id=response.current_player_id,
            ),
        ))
        await game._open_channel()
        game._arm_departure_guard()
        game._started = True
        if game._backfill_due:
            game._backfill_due = False
            await game._backfill()
        return game

    async def _open_channel(self) -> None:
        if self.connections is None or not self.session.room_id:
            logger.warning("No notification channel for this session; live updates off")
            return
        try:
            self._handle = await self.connections.connect()
            self._subscription = await self.connections.subscribe(
                self.session.room_id, self.dispatcher.dispatch,
            )
        except TransportError as e:
            logger.warning("Live notifications unavailable: %s", e)
            if self._handle is not None:
                await self.connections.disconnect(self._handle)
                self._handle = None
            return
        self.connections.add_reconnect_listener(self._on_reconnect)
        self.connections.add_lost_listener(self._on_lost)

    def _arm_departure_guard(self) -> None:
        is_completed = lambda: self.reconciler.is_completed  # noqa: E731
        if self.connections is not None:
            self._guard = self.connections.guard_departure(self._send_departure, is_completed)
        else:
            self._guard = DepartureGuard(self._send_departure, is_completed)
            self._guard.arm()

    def _send_departure(self) -> None:
        self.service.end_blocking(self.session.game_id, self.session.player_id)

    # ── Presentation API ─────────────────────────────────────

    @property
    def expected_digits(self) -> int:
        return self.session.expected_digits

    @property
    def live_updates(self) -> bool:
        """True while the room subscription is active on a connected channel."""
        return (
            self._subscription is not None
            and self._subscription.active
            and self._handle is not None
            and self._handle.connected
        )

    def add_listener(self, listener: Callable[[], None]) -> None:
        """Call ``listener`` whenever the snapshot may have changed."""
        self.reconciler.add_listener(listener)

    def current_snapshot(self) -> Snapshot:
        reconciler = self.reconciler
        return Snapshot(
            session=self.session,
            room_state=reconciler.room_state,
            my_turn=reconciler.is_my_turn(),
            history=HistoryView(
                mine=tuple(reconciler.history_mine()),
                theirs=tuple(reconciler.history_theirs()),
            ),
            transient_notice=reconciler.transient_notice,
            game_over_notice=reconciler.game_over_notice,
            expected_digits=self.expected_digits,
            waiting_for_opponent=reconciler.waiting_for_opponent,
            live_updates=self.live_updates,
        )

    async def submit_guess(self, text: str) -> None:
        """
        Validate and submit a guess.

        Raises:
            GuessValidationError: Input rejected locally
            TurnViolationError: Not the local player's turn (no network call made)
            ServiceError: The server rejected the guess
        """
        guess = validate_guess(text, self.expected_digits)
        if self.reconciler.is_completed:
            raise TurnViolationError("The game is over")
        if not self.reconciler.is_my_turn():
            raise TurnViolationError(current_player_id=self.reconciler.room_state.current_player_id)
        if self._submitting:
            raise TurnViolationError("A guess is already being submitted")

        self._submitting = True
        try:
            response = await self.service.guess(self.session.game_id, self.session.player_id, guess)
        except ServiceError as e:
            log_service_error(e)
            raise
        finally:
            self._submitting = False
        logger.info("Guess %s submitted (server status: %s)", guess, response.status)

    async def leave(self) -> None:
        """
        Leave the game explicitly.

        Sends the departure signal once (skipped when the room already
        completed), disarms the exit hook, and releases the channel.

        Raises:
            ServiceError: If the departure call failed; the session stays
                open and leave() may be called again
        """
        if self._closed:
            return
        guard = self._guard
        should_send = (
            not self.reconciler.is_completed
            and (guard is None or not guard.fired)
        )
        if should_send:
            try:
                await self.service.end(self.session.game_id, self.session.player_id)
            except ServiceError as e:
                log_service_error(e)
                raise
            logger.info("Left game %s", self.session.game_id)
        if guard is not None:
            guard.mark_departed()
        await self.close()

    async def close(self) -> None:
        """Release the channel without signalling departure."""
        if self._guard is not None:
            self._guard.disarm()
        if self._closed and self._handle is None:
            return
        self._closed = True
        for task in list(self._tasks):
            task.cancel()
        if self._subscription is not None:
            self._subscription()
            self._subscription = None
        if self.connections is not None:
            self.connections.remove_reconnect_listener(self._on_reconnect)
            self.connections.remove_lost_listener(self._on_lost)
            if self._handle is not None:
                await self.connections.disconnect(self._handle)
                self._handle = None

    async def __aenter__(self) -> "GameSession":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        try:
            await self.leave()
        finally:
            await self.close()

    # ── Notification channel ─────────────────────────────────

    async def reconnect(self) -> bool:
        """
        Re-open a lost or never-opened notification channel.

        History is re-fetched once the room subscription is back.

        Returns:
            Whether live updates are on afterwards
        """
        if self._closed or self.connections is None or self.live_updates:
            return self.live_updates
        if self._subscription is None or not self._subscription.active:
            stale, self._handle, self._subscription = self._handle, None, None
            if stale is not None:
                await self.connections.disconnect(stale)
            await self._open_channel()
            if self.live_updates and self.status == RoomStatus.IN_PROGRESS:
                await self._backfill()
            return self.live_updates
        try:
            handle = await self.connections.connect()
        except TransportError as e:
            logger.warning("Reconnect failed: %s", e)
            return False
        stale, self._handle = self._handle, handle
        if stale is not None:
            await self.connections.disconnect(stale)
        return self.live_updates

    # ── History resync ───────────────────────────────────────

    async def resync(self) -> int:
        """
        Fetch the room's history and merge it into the ledger.

        Returns:
            Number of records fetched

        Raises:
            ServiceError: If the fetch failed
        """
        if not self.session.room_id:
            return 0
        try:
            records = await self.service.history(self.session.room_id)
        except ServiceError as e:
            log_service_error(e)
            raise
        self.reconciler.post(HistoryFetched(records=tuple(records)))
        return len(records)

    async def _backfill(self) -> None:
        try:
            await self.resync()
        except ServiceError as e:
            logger.warning("History backfill failed: %s", e)

    def _on_in_progress(self) -> None:
        # Before the subscription exists a fetch could miss guesses made
        # in between; start() runs it once subscribed.
        if not self._started:
            self._backfill_due = True
            return
        self._spawn(self._backfill())

    def _on_reconnect(self) -> None:
        if self._closed or self.reconciler.is_completed:
            return
        self._spawn(self._backfill())
        self.reconciler.notify_listeners()

    def _on_lost(self) -> None:
        if self._closed:
            return
        logger.warning("Live updates lost for room %s", self.session.room_id)
        self.reconciler.notify_listeners()

    def _spawn(self, coro) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    @property
    def status(self) -> RoomStatus:
        return self.reconciler.status
