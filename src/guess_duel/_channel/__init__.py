# Area: Channel
"""
Notification channel plumbing.

This package contains:
- ConnectionManager: shared, handle-counted transport lifecycle
- DepartureGuard: once-only leave signal on process exit
- StompTransport: STOMP-over-WebSocket client
"""

from .connection_manager import (
    ChannelHandle,
    ChannelTransport,
    ConnectionManager,
    Subscription,
    room_destination,
)
from .departure_guard import DepartureGuard
from .stomp_transport import StompTransport, stomp_transport_factory

__all__ = [
    "ChannelHandle",
    "ChannelTransport",
    "ConnectionManager",
    "Subscription",
    "room_destination",
    "DepartureGuard",
    "StompTransport",
    "stomp_transport_factory",
]
