"""
guess_duel — Guess Duel Client
==============================

Client-side engine for a two-player, turn-based number-guessing game.
The server owns the game; this package keeps a faithful local picture
of it by merging two channels: request/response results from the
Session Service and push notifications for the room.

Quick Start:
    from guess_duel import (
        ConnectionManager, GameSession, SessionServiceClient,
        StartOptions, load_config, stomp_transport_factory,
    )
    config = load_config()
    service = SessionServiceClient(config["api_base_url"])
    connections = ConnectionManager(stomp_transport_factory(config))
    game = await GameSession.start(
        service, connections, StartOptions(player_name="Alice", level=2))
    await game.submit_guess("123")
    print(game.current_snapshot())
    await game.leave()

Joining an existing room:
    StartOptions(player_name="Bob", level=2, room_id="room-42")
"""

from ._channel import ConnectionManager, DepartureGuard, StompTransport, stomp_transport_factory
from ._client_config import load_config
from ._core.enums import GameMode, NoticeKind, RoomStatus, ValidationCode
from ._core.guess_validator import digits_for_level, validate_guess
from ._shared import SessionServiceClient, setup_logging
from ._state import RoomState, Session
from .errors import (
    GuessDuelError,
    GuessValidationError,
    StartOptionsError,
    TurnViolationError,
    TransportError,
    ClassificationError,
    ServiceError,
    TurnStateNotInitializedError,
)
from .session import GameSession, HistoryView, Snapshot, StartOptions
from .types import (
    GuessRecord,
    PlayerJoined,
    TurnOutcome,
    GameCompleted,
    StartRequest,
    StartResponse,
)

__all__ = [
    # Main classes
    "GameSession",
    "StartOptions",
    "Snapshot",
    "HistoryView",
    "SessionServiceClient",
    "ConnectionManager",
    "DepartureGuard",
    "StompTransport",
    "stomp_transport_factory",
    "load_config",
    "setup_logging",
    # State
    "Session",
    "RoomState",
    "RoomStatus",
    "GameMode",
    "NoticeKind",
    "ValidationCode",
    "digits_for_level",
    "validate_guess",
    # Errors
    "GuessDuelError",
    "GuessValidationError",
    "StartOptionsError",
    "TurnViolationError",
    "TransportError",
    "ClassificationError",
    "ServiceError",
    "TurnStateNotInitializedError",
    # Wire types
    "GuessRecord",
    "PlayerJoined",
    "TurnOutcome",
    "GameCompleted",
    "StartRequest",
    "StartResponse",
]
__version__ = "1.0.0"
