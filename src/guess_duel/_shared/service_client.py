# Area: Shared
"""
guess_duel._shared.service_client — Session Service HTTP client
===============================================================

Wraps the four request/response operations of the game server:
start, guess, history and end. Every failure becomes a ServiceError
whose message is the server's own ``message`` when it sent one,
otherwise the transport error text, otherwise a fixed default per
operation.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import httpx
from pydantic import ValidationError

from ..errors import ServiceError
from ..types import (
    EndRequest,
    GuessRecord,
    GuessRequest,
    GuessResponse,
    HistoryRequest,
    StartRequest,
    StartResponse,
)

logger = logging.getLogger("guess_duel.service")

DEFAULT_MESSAGES = {
    "start": "Failed to start game",
    "guess": "Failed to submit guess",
    "history": "Failed to get guess history",
    "end": "Failed to end game",
}

PATHS = {
    "start": "/guess/start",
    "guess": "/guess/guess",
    "history": "/guess/history",
    "end": "/guess/end",
}


def _server_message(response: httpx.Response) -> Optional[str]:
    try:
        data = response.json()
    except ValueError:
        return None
    if isinstance(data, dict) and data.get("message"):
        return str(data["message"])
    return None


def _error_from_response(operation: str, payload: Dict[str, Any], response: httpx.Response) -> ServiceError:
    try:
        body: Any = response.json()
    except ValueError:
        body = response.text or None
    return ServiceError(
        operation=operation,
        message=_server_message(response) or DEFAULT_MESSAGES[operation],
        status_code=response.status_code,
        request_payload=payload,
        response_payload=body,
    )


def _error_from_exception(operation: str, payload: Dict[str, Any], exc: Exception) -> ServiceError:
    return ServiceError(
        operation=operation,
        message=str(exc) or DEFAULT_MESSAGES[operation],
        request_payload=payload,
    )


class SessionServiceClient:
    """
    Async client for the Session Service.

    Args:
        base_url: API root, e.g. ``http://localhost:8080/api``
        timeout: Per-request timeout in seconds (None disables it)
        transport: Optional httpx transport (tests pass MockTransport)

    Usage:
        async with SessionServiceClient("http://localhost:8080/api") as service:
            response = await service.start(StartRequest(player_id="Alice", level=1))
    """

    def __init__(
        self,
        base_url: str,
        timeout: Optional[float] = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sync_transport: Optional[httpx.BaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers={"Content-Type": "application/json"},
            timeout=timeout,
            transport=transport,
        )
        self._sync_transport = sync_transport

    async def __aenter__(self) -> "SessionServiceClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    # ── Operations ───────────────────────────────────────────

    async def start(self, request: StartRequest) -> StartResponse:
        """Create a room, or join one when ``request.room_id`` is set."""
        data = await self._post("start", request.to_wire())
        return self._parse("start", request.to_wire(), StartResponse, data)

    async def guess(self, game_id: str, player_id: str, guess: str) -> GuessResponse:
        """Submit a guess; the turn result arrives by notification."""
        payload = GuessRequest(game_id=game_id, player_id=player_id, guess=guess).to_wire()
        data = await self._post("guess", payload)
        return self._parse("guess", payload, GuessResponse, data if isinstance(data, dict) else {})

    async def history(self, room_id: str) -> List[GuessRecord]:
        """Fetch the room's guess history in server order."""
        payload = HistoryRequest(room_id=room_id).to_wire()
        data = await self._post("history", payload)
        if data is None:
            return []
        if not isinstance(data, list):
            raise ServiceError("history", DEFAULT_MESSAGES["history"],
                               request_payload=payload, response_payload=data)
        try:
            return [GuessRecord.model_validate(item) for item in data]
        except ValidationError as e:
            raise ServiceError("history", DEFAULT_MESSAGES["history"],
                               request_payload=payload, response_payload=data) from e

    async def end(self, game_id: str, player_id: str) -> Any:
        """Tell the server the participant left."""
        payload = EndRequest(game_id=game_id, player_id=player_id).to_wire()
        return await self._post("end", payload)

    def end_blocking(self, game_id: str, player_id: str) -> None:
        """
        Synchronous ``end`` for process-exit hooks, where no event loop
        is available any more.
        """
        payload = EndRequest(game_id=game_id, player_id=player_id).to_wire()
        try:
            with httpx.Client(base_url=self.base_url, timeout=self.timeout,
                              transport=self._sync_transport) as client:
                response = client.post(PATHS["end"], json=payload)
        except httpx.HTTPError as e:
            raise _error_from_exception("end", payload, e) from e
        if response.is_error:
            raise _error_from_response("end", payload, response)

    # ── Internals ────────────────────────────────────────────

    async def _post(self, operation: str, payload: Dict[str, Any]) -> Any:
        logger.debug("→ %s %s", operation, payload)
        try:
            response = await self._client.post(PATHS[operation], json=payload)
        except httpx.HTTPError as e:
            raise _error_from_exception(operation, payload, e) from e
        if response.is_error:
            raise _error_from_response(operation, payload, response)
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            return response.text

    @staticmethod
    def _parse(operation: str, payload: Dict[str, Any], model, data: Any):
        try:
            return model.model_validate(data)
        except ValidationError as e:
            raise ServiceError(operation, DEFAULT_MESSAGES[operation],
                               request_payload=payload, response_payload=data) from e
