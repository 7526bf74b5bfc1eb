# Area: Core
"""
guess_duel._core.notices — Transient and terminal notices
=========================================================

Tracks the notice the presentation layer should currently show.
A transient notice (player joined, turn outcome) expires on a fixed
wall-clock timer; the game-over notice never expires. Each new
notice replaces the previous one and cancels its timer.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional, Protocol

from .enums import NoticeKind

logger = logging.getLogger("guess_duel.notices")

NOTICE_TTL_SECONDS = 5.0


class TimerHandle(Protocol):
    def cancel(self) -> Any: ...


Scheduler = Callable[[float, Callable[[], None]], TimerHandle]


def loop_scheduler(delay: float, callback: Callable[[], None]) -> TimerHandle:
    """Schedule on the running asyncio loop."""
    return asyncio.get_running_loop().call_later(delay, callback)


@dataclass(frozen=True)
class TransientNotice:
    """
    Presentation-only echo of the latest notification.

    Not part of durable state and never deduplicated against history.
    """
    kind: NoticeKind
    message: Optional[str] = None
    joined_player_id: Optional[str] = None
    player_id: Optional[str] = None
    guessed_number: Optional[str] = None
    correct_digits: Optional[int] = None
    remaining_attempts: Optional[int] = None

    @property
    def expires(self) -> bool:
        return self.kind != NoticeKind.GAME_OVER


class NoticeBoard:
    """
    Holds the current transient notice and the terminal game-over notice.

    Args:
        scheduler: ``(delay, callback) -> handle`` used for expiry timers
        on_expire: Called after a transient notice expires
    """

    def __init__(
        self,
        scheduler: Scheduler = loop_scheduler,
        on_expire: Optional[Callable[[], None]] = None,
    ) -> None:
        self._scheduler = scheduler
        self._on_expire = on_expire
        self._current: Optional[TransientNotice] = None
        self._game_over: Optional[TransientNotice] = None
        self._timer: Optional[TimerHandle] = None

    @property
    def current(self) -> Optional[TransientNotice]:
        return self._current

    @property
    def game_over(self) -> Optional[TransientNotice]:
        return self._game_over

    def show(self, notice: TransientNotice) -> None:
        """Show a transient notice for NOTICE_TTL_SECONDS."""
        if self._game_over is not None:
            return
        self.cancel()
        self._current = notice
        self._timer = self._scheduler(NOTICE_TTL_SECONDS, lambda: self._expire(notice))
        logger.debug("Notice shown: %s", notice.kind.value)

    def finish(self, message: Optional[str]) -> None:
        """Show the terminal game-over notice. It never expires."""
        self.cancel()
        self._current = None
        self._game_over = TransientNotice(kind=NoticeKind.GAME_OVER, message=message)

    def cancel(self) -> None:
        """Cancel the pending expiry timer. No-op if none."""
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _expire(self, notice: TransientNotice) -> None:
        # A replaced notice's timer may still fire if cancel raced the loop.
        if self._current is not notice:
            return
        self._current = None
        self._timer = None
        logger.debug("Notice expired: %s", notice.kind.value)
        if self._on_expire is not None:
            self._on_expire()
