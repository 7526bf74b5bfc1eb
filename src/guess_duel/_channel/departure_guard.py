# Area: Channel
"""
guess_duel._channel.departure_guard — Best-effort leave signal
==============================================================

When the hosting process is about to exit, tell the Session Service
that the participant left. The guard fires at most once and never
after the room has completed. An explicit leave marks the guard as
departed so the exit hook stays silent.
"""

from __future__ import annotations

import atexit
import logging
from typing import Callable

logger = logging.getLogger("guess_duel.departure")


class DepartureGuard:
    """
    Once-only departure signal registered with ``atexit``.

    Args:
        send_departure: Blocking call that notifies the service
        is_completed: Returns True once the room is COMPLETED
    """

    def __init__(self, send_departure: Callable[[], None], is_completed: Callable[[], bool]):
        self._send = send_departure
        self._is_completed = is_completed
        self._armed = False
        self.fired = False

    @property
    def armed(self) -> bool:
        return self._armed

    def arm(self) -> None:
        if self._armed:
            return
        atexit.register(self.fire)
        self._armed = True
        logger.debug("Departure guard armed")

    def disarm(self) -> None:
        if not self._armed:
            return
        atexit.unregister(self.fire)
        self._armed = False
        logger.debug("Departure guard disarmed")

    def mark_departed(self) -> None:
        """Record that departure was signalled some other way."""
        self.fired = True
        self.disarm()

    def fire(self) -> bool:
        """
        Send the departure signal if it has not been sent yet.

        Returns:
            True if the signal was attempted now
        """
        if self.fired:
            return False
        if self._is_completed():
            logger.debug("Room completed; departure signal skipped")
            return False
        self.fired = True
        try:
            self._send()
            logger.info("Departure signalled")
        except Exception as e:
            logger.warning("Departure signal failed: %s", e)
        return True
