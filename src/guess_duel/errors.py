"""
guess_duel.errors — Custom exception classes
=============================================

Defines the exception hierarchy for the client engine.
Each exception stores enough context for structured logging and
for the presentation layer to show an inline message.
"""

from __future__ import annotations
from typing import Any, Dict, List, Optional
import json

from ._core.enums import ClassificationCode, ValidationCode


class GuessDuelError(Exception):
    """Base exception for all guess_duel package errors."""
    pass


class GuessValidationError(GuessDuelError):
    """Raised when a guess (or custom secret) fails local validation."""

    MESSAGES = {
        ValidationCode.EMPTY: "Please enter a guess",
        ValidationCode.WRONG_LENGTH: "Guess must be exactly {digits} digits",
        ValidationCode.NOT_NUMERIC: "Guess must contain only digits",
    }

    def __init__(self, code: ValidationCode, expected_digits: int, value: str = ""):
        self.code = code
        self.expected_digits = expected_digits
        self.value = value
        super().__init__(self.MESSAGES[code].format(digits=expected_digits))


class StartOptionsError(GuessDuelError):
    """Raised when the start/join form is invalid. Never reaches the service."""

    def __init__(self, errors: List[str]):
        self.errors = errors
        super().__init__(errors[0] if errors else "Invalid start options")


class TurnViolationError(GuessDuelError):
    """Raised when a guess is submitted while it is not the local player's turn."""

    def __init__(self, message: str = "It's not your turn!", current_player_id: Optional[str] = None):
        self.current_player_id = current_player_id
        super().__init__(message)


class TransportError(GuessDuelError):
    """Raised when the notification channel cannot connect or subscribe."""
    pass


class ClassificationError(GuessDuelError):
    """Raised when a push notification matches none of the known shapes."""

    def __init__(self, code: ClassificationCode, payload: Any, detail: str = ""):
        self.code = code
        self.payload = payload
        self.detail = detail
        text = f"Unclassifiable notification ({code.value})"
        if detail:
            text = f"{text}: {detail}"
        super().__init__(text)


class ServiceError(GuessDuelError):
    """Raised when a Session Service call fails.

    ``str(error)`` is the server-provided message verbatim, or the
    per-operation default when the server gave none.
    """

    def __init__(
        self,
        operation: str,
        message: str,
        status_code: Optional[int] = None,
        request_payload: Optional[Dict[str, Any]] = None,
        response_payload: Any = None,
    ):
        self.operation = operation
        self.message = message
        self.status_code = status_code
        self.request_payload = request_payload or {}
        self.response_payload = response_payload
        super().__init__(message)

    def format_error_log(self) -> str:
        return _format_error_block(
            error_type="SERVICE_ERROR",
            operation=self.operation,
            status_code=self.status_code,
            message=self.message,
            request_payload=self.request_payload,
            response_payload=self.response_payload,
        )


class TurnStateNotInitializedError(RuntimeError):
    """Turn ownership was read before the arbiter was initialized.

    This is a contract violation by the caller, not a runtime condition
    the engine recovers from.
    """
    pass


def _format_error_block(
    error_type: str,
    operation: str,
    status_code: Optional[int],
    message: str,
    request_payload: Dict[str, Any],
    response_payload: Any,
) -> str:
    """Format a structured error block for the log file."""
    from datetime import datetime, timezone

    timestamp = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z"

    lines = [
        "",
        "=" * 64,
        " SESSION SERVICE ERROR",
        "=" * 64,
        f" Timestamp:    {timestamp}",
        f" Error Type:   {error_type}",
        f" Operation:    {operation}",
    ]

    if status_code is not None:
        lines.append(f" HTTP Status:  {status_code}")
    lines.append(f" Message:      {message}")

    lines.append("")
    lines.append(" ── REQUEST PAYLOAD " + "─" * 44)
    lines.append(_indent_json(request_payload))

    if response_payload is not None:
        lines.append("")
        lines.append(" ── RESPONSE PAYLOAD " + "─" * 43)
        lines.append(_indent_json(response_payload))

    lines.append("")
    lines.append("=" * 64)
    lines.append("")

    return "\n".join(lines)


def _indent_json(data: Any, indent: int = 2) -> str:
    """Format JSON with indentation for error logs."""
    try:
        formatted = json.dumps(data, indent=indent, default=str)
        return "\n".join(" " + line for line in formatted.split("\n"))
    except (TypeError, ValueError):
        return f" {repr(data)}"
