# Area: Core
"""
guess_duel._core.events — Reconciler input events
=================================================

Events are posted to the reconciler's queue by the session façade
(GameStarted, HistoryFetched) and by the notification dispatcher
(Notification).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple, Union

from .._state import RoomState, Session
from ..types import GuessRecord, NotificationEvent


@dataclass(frozen=True)
class GameStarted:
    """The start/join response arrived. Posted once per session."""
    session: Session
    room_state: RoomState


@dataclass(frozen=True)
class Notification:
    """A classified push notification."""
    event: NotificationEvent


@dataclass(frozen=True)
class HistoryFetched:
    """A history fetch completed; merged as a union, never a replace."""
    records: Tuple[GuessRecord, ...]


ReconcilerEvent = Union[GameStarted, Notification, HistoryFetched]
