# Area: Channel
"""
guess_duel._channel.connection_manager — Notification channel lifecycle
=======================================================================

Owns the one push-channel transport shared by every session that
holds a handle from this manager. The transport is built on the
first connect() and torn down when the last handle is released.

Subscriptions are guarded at delivery time: once a subscription is
cancelled its callback is never invoked again, even for messages the
transport had already queued.

When the transport gives up reconnecting, lost listeners are told.
The next connect() revives the same transport, which re-sends the
subscriptions it holds, and reconnect listeners are told as well.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
from typing import Any, Callable, Dict, List, Optional, Protocol

from .departure_guard import DepartureGuard
from ..errors import TransportError

logger = logging.getLogger("guess_duel.channel")

OnEvent = Callable[[Any], None]


def room_destination(room_id: str) -> str:
    """Topic a room's notifications are published on."""
    return f"/topic/room/{room_id}"


class ChannelTransport(Protocol):
    """What the manager needs from a push transport."""

    @property
    def connected(self) -> bool: ...

    async def connect(self) -> None: ...

    async def subscribe(self, subscription_id: str, destination: str) -> None: ...

    async def unsubscribe(self, subscription_id: str) -> None: ...

    async def close(self) -> None: ...


# transport_factory(on_message, on_reconnect, on_lost) -> transport
TransportFactory = Callable[
    [Callable[[str, Any], None], Callable[[], None], Callable[[], None]], ChannelTransport
]


class ChannelHandle:
    """One caller's reference to the shared transport."""

    def __init__(self, manager: "ConnectionManager", handle_id: int):
        self._manager = manager
        self.handle_id = handle_id
        self.released = False

    @property
    def connected(self) -> bool:
        return not self.released and self._manager.connected

    async def release(self) -> None:
        await self._manager.disconnect(self)


class Subscription:
    """
    Callable unsubscribe capability for one room subscription.

    Calling it more than once is safe.
    """

    def __init__(self, manager: "ConnectionManager", subscription_id: str,
                 room_id: str, on_event: OnEvent):
        self._manager = manager
        self.subscription_id = subscription_id
        self.room_id = room_id
        self._on_event = on_event
        self.active = True

    def deliver(self, body: Any) -> bool:
        """Hand a message to the callback unless cancelled."""
        if not self.active:
            logger.debug("Dropped message for cancelled %s", self.subscription_id)
            return False
        try:
            self._on_event(body)
        except Exception as e:
            logger.error("Subscriber for room %s failed: %s", self.room_id, e, exc_info=True)
        return True

    def __call__(self) -> None:
        if not self.active:
            return
        self.active = False
        self._manager._forget(self)


class ConnectionManager:
    """
    Process-wide owner of the push channel.

    Pass one instance to every session that needs live notifications;
    there is no module-level singleton.

    Args:
        transport_factory: Builds a transport given the manager's
            message, reconnect and lost callbacks
    """

    def __init__(self, transport_factory: TransportFactory):
        self._factory = transport_factory
        self._transport: Optional[ChannelTransport] = None
        self._lock = asyncio.Lock()
        self._handles: Dict[int, ChannelHandle] = {}
        self._handle_ids = itertools.count(1)
        self._sub_ids = itertools.count(1)
        self._subscriptions: Dict[str, Subscription] = {}
        self._reconnect_listeners: List[Callable[[], None]] = []
        self._lost_listeners: List[Callable[[], None]] = []
        self._pending: set = set()

    @property
    def connected(self) -> bool:
        return self._transport is not None and self._transport.connected

    @property
    def handle_count(self) -> int:
        return len(self._handles)

    # ── Connect / disconnect ─────────────────────────────────

    async def connect(self) -> ChannelHandle:
        """
        Acquire a handle to the shared transport, connecting if needed.

        Raises:
            TransportError: If the transport cannot connect
        """
        async with self._lock:
            revived = False
            if not self.connected:
                revived = self._transport is not None
                transport = self._transport or self._factory(
                    self._on_message, self._on_reconnect, self._on_lost,
                )
                try:
                    await transport.connect()
                except TransportError:
                    if not revived:
                        self._transport = None
                    raise
                except Exception as e:
                    if not revived:
                        self._transport = None
                    logger.error("Channel connection failed: %s", e)
                    raise TransportError(f"Notification channel connection failed: {e}") from e
                self._transport = transport
                logger.info("Notification channel connected")
            handle = ChannelHandle(self, next(self._handle_ids))
            self._handles[handle.handle_id] = handle
        if revived:
            self._on_reconnect()
        return handle

    async def disconnect(self, handle: Optional[ChannelHandle] = None) -> None:
        """
        Release ``handle``, or force a teardown when no handle is given.

        The transport closes when the last handle is released. Releasing
        the same handle twice, or disconnecting when already
        disconnected, is a no-op.
        """
        async with self._lock:
            if handle is not None:
                if handle.released:
                    return
                handle.released = True
                self._handles.pop(handle.handle_id, None)
                if self._handles:
                    return
            else:
                for held in self._handles.values():
                    held.released = True
                self._handles.clear()
            await self._teardown()

    async def _teardown(self) -> None:
        for sub in list(self._subscriptions.values()):
            sub.active = False
        self._subscriptions.clear()
        transport, self._transport = self._transport, None
        if transport is None:
            return
        try:
            await transport.close()
        except Exception as e:
            logger.warning("Error closing notification channel: %s", e)
        logger.info("Notification channel disconnected")

    # ── Subscriptions ────────────────────────────────────────

    async def subscribe(self, room_id: str, on_event: OnEvent) -> Subscription:
        """
        Subscribe ``on_event`` to a room's notifications.

        Raises:
            TransportError: If not connected or the transport rejects it
        """
        if not self.connected:
            raise TransportError("Notification channel not connected")
        sub = Subscription(self, f"sub-{next(self._sub_ids)}", room_id, on_event)
        self._subscriptions[sub.subscription_id] = sub
        try:
            await self._transport.subscribe(sub.subscription_id, room_destination(room_id))
        except Exception as e:
            self._subscriptions.pop(sub.subscription_id, None)
            sub.active = False
            raise TransportError(f"Subscribe to room {room_id} failed: {e}") from e
        logger.info("Subscribed to room %s (%s)", room_id, sub.subscription_id)
        return sub

    def _forget(self, sub: Subscription) -> None:
        self._subscriptions.pop(sub.subscription_id, None)
        logger.info("Unsubscribed from room %s", sub.room_id)
        if not self.connected:
            return
        # The delivery guard is authoritative; the transport UNSUBSCRIBE
        # is best effort.
        try:
            task = asyncio.get_running_loop().create_task(
                self._transport.unsubscribe(sub.subscription_id))
        except RuntimeError:
            return
        self._pending.add(task)
        task.add_done_callback(self._unsubscribe_done)

    def _unsubscribe_done(self, task: "asyncio.Task") -> None:
        self._pending.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.debug("Transport unsubscribe failed: %s", task.exception())

    def active_subscriptions(self) -> List[Subscription]:
        return list(self._subscriptions.values())

    # ── Transport callbacks ──────────────────────────────────

    def _on_message(self, subscription_id: str, body: Any) -> None:
        sub = self._subscriptions.get(subscription_id)
        if sub is None:
            logger.debug("Message for unknown subscription %s dropped", subscription_id)
            return
        sub.deliver(body)

    def add_reconnect_listener(self, listener: Callable[[], None]) -> None:
        if listener not in self._reconnect_listeners:
            self._reconnect_listeners.append(listener)

    def remove_reconnect_listener(self, listener: Callable[[], None]) -> None:
        if listener in self._reconnect_listeners:
            self._reconnect_listeners.remove(listener)

    def add_lost_listener(self, listener: Callable[[], None]) -> None:
        if listener not in self._lost_listeners:
            self._lost_listeners.append(listener)

    def remove_lost_listener(self, listener: Callable[[], None]) -> None:
        if listener in self._lost_listeners:
            self._lost_listeners.remove(listener)

    def _on_reconnect(self) -> None:
        logger.info("Notification channel reconnected")
        self._call_all(self._reconnect_listeners, "Reconnect")

    def _on_lost(self) -> None:
        logger.warning("Notification channel lost; live updates stopped")
        self._call_all(self._lost_listeners, "Lost-channel")

    @staticmethod
    def _call_all(listeners: List[Callable[[], None]], kind: str) -> None:
        for listener in list(listeners):
            try:
                listener()
            except Exception as e:
                logger.error("%s listener failed: %s", kind, e, exc_info=True)

    # ── Departure ────────────────────────────────────────────

    def guard_departure(
        self,
        send_departure: Callable[[], None],
        is_completed: Callable[[], bool],
    ) -> DepartureGuard:
        """Arm a best-effort 'participant is leaving' signal for process exit."""
        guard = DepartureGuard(send_departure, is_completed)
        guard.arm()
        return guard
