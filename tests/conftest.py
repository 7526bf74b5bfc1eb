# Area: Test Fixtures
"""Shared fakes for the notification channel, timers and Session Service."""

import asyncio
from typing import Any, Callable, Dict, List, Optional
from unittest.mock import patch

import pytest

from guess_duel.errors import ServiceError, TransportError
from guess_duel.types import GuessRecord, GuessResponse, StartResponse


# ── Timers ───────────────────────────────────────────────────


class FakeTimer:
    def __init__(self, delay: float, callback: Callable[[], None]):
        self.delay = delay
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class FakeScheduler:
    """Records scheduled callbacks; tests fire them explicitly."""

    def __init__(self):
        self.timers: List[FakeTimer] = []

    def __call__(self, delay: float, callback: Callable[[], None]) -> FakeTimer:
        timer = FakeTimer(delay, callback)
        self.timers.append(timer)
        return timer

    @property
    def pending(self) -> List[FakeTimer]:
        return [t for t in self.timers if not t.cancelled]

    def fire_all(self) -> None:
        for timer in list(self.timers):
            timer.callback()


# ── Notification channel ─────────────────────────────────────


class FakeTransport:
    """In-memory ChannelTransport."""

    def __init__(self, on_message, on_reconnect, on_lost, fail_connect: bool = False):
        self.on_message = on_message
        self.on_reconnect = on_reconnect
        self.on_lost = on_lost
        self.fail_connect = fail_connect
        self.connected = False
        self.connect_calls = 0
        self.close_calls = 0
        self.subscribed: Dict[str, str] = {}
        self.unsubscribed: List[str] = []

    async def connect(self) -> None:
        self.connect_calls += 1
        if self.fail_connect:
            raise TransportError("connection refused")
        self.connected = True

    async def subscribe(self, subscription_id: str, destination: str) -> None:
        self.subscribed[subscription_id] = destination

    async def unsubscribe(self, subscription_id: str) -> None:
        self.unsubscribed.append(subscription_id)
        self.subscribed.pop(subscription_id, None)

    async def close(self) -> None:
        self.close_calls += 1
        self.connected = False

    def push(self, body: Any) -> None:
        """Deliver ``body`` to every subscription the transport knows."""
        for subscription_id in list(self.subscribed):
            self.on_message(subscription_id, body)

    def lose(self) -> None:
        """Drop the socket as if every reconnect attempt had failed."""
        self.connected = False
        self.on_lost()


class FakeTransportFactory:
    def __init__(self, fail_connect: bool = False):
        self.fail_connect = fail_connect
        self.transports: List[FakeTransport] = []

    def __call__(self, on_message, on_reconnect, on_lost) -> FakeTransport:
        transport = FakeTransport(on_message, on_reconnect, on_lost, fail_connect=self.fail_connect)
        self.transports.append(transport)
        return transport

    @property
    def transport(self) -> FakeTransport:
        return self.transports[-1]


# ── Session Service ──────────────────────────────────────────


class FakeService:
    """Stands in for SessionServiceClient; records every call."""

    def __init__(self, start_response: Optional[dict] = None):
        self.start_response = start_response or {
            "gameId": "g-1", "roomId": "room-1", "playerId": "Alice",
            "roomStatus": "WAITING_FOR_PLAYER", "level": 1,
        }
        self.history_records: List[dict] = []
        self.errors: Dict[str, ServiceError] = {}
        self.calls: List[tuple] = []
        self.guess_gate: Optional[asyncio.Event] = None

    def _maybe_fail(self, operation: str) -> None:
        if operation in self.errors:
            raise self.errors[operation]

    async def start(self, request):
        self.calls.append(("start", request))
        self._maybe_fail("start")
        return StartResponse.model_validate(self.start_response)

    async def guess(self, game_id, player_id, guess):
        self.calls.append(("guess", game_id, player_id, guess))
        if self.guess_gate is not None:
            await self.guess_gate.wait()
        self._maybe_fail("guess")
        return GuessResponse(status="OK")

    async def history(self, room_id):
        self.calls.append(("history", room_id))
        self._maybe_fail("history")
        return [GuessRecord.model_validate(r) for r in self.history_records]

    async def end(self, game_id, player_id):
        self.calls.append(("end", game_id, player_id))
        self._maybe_fail("end")

    def end_blocking(self, game_id, player_id):
        self.calls.append(("end_blocking", game_id, player_id))

    def called(self, operation: str) -> List[tuple]:
        return [c for c in self.calls if c[0] == operation]


# ── Payload builders ─────────────────────────────────────────


def joined(player_id: str, status: str = "IN_PROGRESS", message: Optional[str] = None) -> dict:
    payload = {"joinedPlayerId": player_id, "status": status}
    if message:
        payload["message"] = message
    return payload


def turn(player_id: str, guessed: Any, correct: int, number: int,
         next_player: Optional[str] = None, **extra) -> dict:
    payload = {
        "playerId": player_id,
        "guessedNumber": guessed,
        "correctDigits": correct,
        "guessNumber": number,
    }
    if next_player is not None:
        payload["currentPlayerId"] = next_player
    payload.update(extra)
    return payload


def completed(message: str = "Alice wins!") -> dict:
    return {"status": "COMPLETED", "message": message}


async def settle(rounds: int = 5) -> None:
    """Let tasks spawned by callbacks run to completion."""
    for _ in range(rounds):
        await asyncio.sleep(0)


# ── Fixtures ─────────────────────────────────────────────────


@pytest.fixture(autouse=True)
def no_atexit():
    """Keep departure guards from registering real exit hooks."""
    with patch("guess_duel._channel.departure_guard.atexit") as mock_atexit:
        yield mock_atexit


@pytest.fixture
def scheduler():
    return FakeScheduler()


@pytest.fixture
def factory():
    return FakeTransportFactory()
