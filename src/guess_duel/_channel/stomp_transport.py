# Area: Channel
"""
guess_duel._channel.stomp_transport — STOMP over WebSocket
==========================================================

Minimal STOMP 1.2 client for the game server's notification broker.
Only the frames the client needs are spoken: CONNECT, SUBSCRIBE,
UNSUBSCRIBE and DISCONNECT out; CONNECTED, MESSAGE and ERROR in.

A dropped socket is re-opened a bounded number of times; live
subscriptions are re-sent and the reconnect callback fires so the
session can re-fetch history it may have missed. When every attempt
fails the lost callback fires instead; a later connect() re-opens the
socket and re-sends the subscriptions it still holds.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional
from urllib.parse import urlparse

import websockets
from websockets.exceptions import ConnectionClosed, WebSocketException

from ..errors import TransportError

logger = logging.getLogger("guess_duel.stomp")

NULL = "\x00"

_HEADER_UNESCAPES = {"\\n": "\n", "\\r": "\r", "\\c": ":", "\\\\": "\\"}


# ══════════════════════════════════════════════════════════════
# FRAME CODEC
# ══════════════════════════════════════════════════════════════


@dataclass
class StompFrame:
    command: str
    headers: Dict[str, str] = field(default_factory=dict)
    body: str = ""


def _escape(value: str) -> str:
    return (value.replace("\\", "\\\\").replace("\n", "\\n")
            .replace("\r", "\\r").replace(":", "\\c"))


def _unescape(value: str) -> str:
    out, i = [], 0
    while i < len(value):
        pair = value[i:i + 2]
        if pair in _HEADER_UNESCAPES:
            out.append(_HEADER_UNESCAPES[pair])
            i += 2
        else:
            out.append(value[i])
            i += 1
    return "".join(out)


def encode_frame(command: str, headers: Optional[Dict[str, str]] = None, body: str = "") -> str:
    lines = [command]
    for key, value in (headers or {}).items():
        lines.append(f"{_escape(key)}:{_escape(str(value))}")
    return "\n".join(lines) + "\n\n" + body + NULL


def parse_frames(data: Any) -> List[StompFrame]:
    """Split one WebSocket message into frames; bare EOLs are heart-beats."""
    if isinstance(data, (bytes, bytearray)):
        data = data.decode("utf-8")
    frames: List[StompFrame] = []
    for chunk in data.split(NULL):
        chunk = chunk.lstrip("\r\n")
        if not chunk:
            continue
        head, _, body = chunk.partition("\n\n")
        lines = head.replace("\r\n", "\n").split("\n")
        headers: Dict[str, str] = {}
        for line in lines[1:]:
            key, sep, value = line.partition(":")
            # First occurrence of a repeated header wins.
            if sep and _unescape(key) not in headers:
                headers[_unescape(key)] = _unescape(value)
        frames.append(StompFrame(command=lines[0].strip(), headers=headers, body=body))
    return frames


# ══════════════════════════════════════════════════════════════
# TRANSPORT
# ══════════════════════════════════════════════════════════════


class StompTransport:
    """
    WebSocket transport implementing the ConnectionManager's protocol.

    Args:
        url: ws:// or wss:// endpoint of the broker
        on_message: Called with (subscription_id, body) per MESSAGE frame
        on_reconnect: Called after a dropped socket was re-established
        on_lost: Called once the reconnect attempts are used up
        reconnect_attempts: How many times to retry a dropped socket
        reconnect_delay: Seconds between attempts
    """

    def __init__(
        self,
        url: str,
        on_message: Callable[[str, Any], None],
        on_reconnect: Callable[[], None],
        on_lost: Optional[Callable[[], None]] = None,
        reconnect_attempts: int = 5,
        reconnect_delay: float = 1.0,
    ):
        self.url = url
        self._on_message = on_message
        self._on_reconnect = on_reconnect
        self._on_lost = on_lost
        self.reconnect_attempts = reconnect_attempts
        self.reconnect_delay = reconnect_delay
        self._ws = None
        self._reader: Optional[asyncio.Task] = None
        self._destinations: Dict[str, str] = {}
        self._closing = False
        self._connected = False

    @property
    def connected(self) -> bool:
        return self._connected

    async def connect(self) -> None:
        self._closing = False
        await self._open()
        try:
            await self._resubscribe()
        except TransportError:
            await self._drop_socket()
            raise
        if self._reader is not None and not self._reader.done():
            self._reader.cancel()
        self._reader = asyncio.get_running_loop().create_task(self._read_loop())

    async def subscribe(self, subscription_id: str, destination: str) -> None:
        self._destinations[subscription_id] = destination
        await self._send("SUBSCRIBE", {"id": subscription_id, "destination": destination, "ack": "auto"})

    async def unsubscribe(self, subscription_id: str) -> None:
        if self._destinations.pop(subscription_id, None) is None:
            return
        if self._connected:
            await self._send("UNSUBSCRIBE", {"id": subscription_id})

    async def close(self) -> None:
        self._closing = True
        ws, self._ws = self._ws, None
        self._connected = False
        self._destinations.clear()
        if ws is not None:
            try:
                await ws.send(encode_frame("DISCONNECT"))
            except WebSocketException as e:
                logger.debug("DISCONNECT not delivered: %s", e)
            await ws.close()
        if self._reader is not None and self._reader is not asyncio.current_task():
            self._reader.cancel()
        self._reader = None

    # ── Internals ────────────────────────────────────────────

    async def _open(self) -> None:
        try:
            ws = await websockets.connect(self.url)
        except (OSError, WebSocketException) as e:
            raise TransportError(f"WebSocket connection to {self.url} failed: {e}") from e
        host = urlparse(self.url).hostname or "localhost"
        try:
            await ws.send(encode_frame("CONNECT", {
                "accept-version": "1.2",
                "host": host,
                "heart-beat": "0,0",
            }))
            reply = parse_frames(await ws.recv())
        except (OSError, WebSocketException) as e:
            await _close_quietly(ws)
            raise TransportError(f"STOMP handshake with {self.url} failed: {e}") from e
        if not reply or reply[0].command != "CONNECTED":
            await ws.close()
            detail = reply[0].headers.get("message", reply[0].command) if reply else "no reply"
            raise TransportError(f"STOMP handshake rejected: {detail}")
        self._ws = ws
        self._connected = True
        logger.info("STOMP connected to %s", self.url)

    async def _send(self, command: str, headers: Dict[str, str]) -> None:
        if self._ws is None:
            raise TransportError("STOMP transport not connected")
        try:
            await self._ws.send(encode_frame(command, headers))
        except ConnectionClosed as e:
            raise TransportError(f"STOMP {command} failed: connection closed") from e

    async def _resubscribe(self) -> None:
        for sid, destination in list(self._destinations.items()):
            await self._send("SUBSCRIBE", {"id": sid, "destination": destination, "ack": "auto"})

    async def _drop_socket(self) -> None:
        ws, self._ws = self._ws, None
        self._connected = False
        if ws is not None:
            await _close_quietly(ws)

    async def _read_loop(self) -> None:
        while not self._closing:
            try:
                async for message in self._ws:
                    for frame in parse_frames(message):
                        self._handle_frame(frame)
            except ConnectionClosed as e:
                logger.warning("Notification channel dropped: %s", e)
            if self._closing:
                return
            await self._drop_socket()
            if not await self._reconnect():
                if self._closing:
                    return
                logger.error("Notification channel lost after %d attempts", self.reconnect_attempts)
                if self._on_lost is not None:
                    self._on_lost()
                return

    def _handle_frame(self, frame: StompFrame) -> None:
        if frame.command == "MESSAGE":
            self._on_message(frame.headers.get("subscription", ""), frame.body)
        elif frame.command == "ERROR":
            logger.warning("STOMP error frame: %s", frame.headers.get("message", frame.body))

    async def _reconnect(self) -> bool:
        for attempt in range(1, self.reconnect_attempts + 1):
            await asyncio.sleep(self.reconnect_delay)
            if self._closing:
                return False
            try:
                await self._open()
                await self._resubscribe()
            except TransportError as e:
                logger.warning("Reconnect attempt %d/%d failed: %s", attempt, self.reconnect_attempts, e)
                await self._drop_socket()
                continue
            self._on_reconnect()
            return True
        return False


async def _close_quietly(ws) -> None:
    try:
        await ws.close()
    except (OSError, WebSocketException) as e:
        logger.debug("Closing socket failed: %s", e)


def stomp_transport_factory(config: Dict[str, Any]):
    """Build a ConnectionManager transport factory from client config."""

    def factory(on_message, on_reconnect, on_lost=None) -> StompTransport:
        return StompTransport(
            url=config["ws_url"],
            on_message=on_message,
            on_reconnect=on_reconnect,
            on_lost=on_lost,
            reconnect_attempts=int(config.get("reconnect_attempts", 5)),
            reconnect_delay=float(config.get("reconnect_delay_seconds", 1.0)),
        )

    return factory
