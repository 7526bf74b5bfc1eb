# Area: Core
"""
guess_duel._core.dispatcher — Notification classification
==========================================================

Push messages carry no type tag, so they are classified by which
fields are present. Precedence matters because a payload can match
more than one shape: a completion message must win over any
join or turn interpretation.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Callable, Dict, Optional

from pydantic import ValidationError

from .enums import ClassificationCode, RoomStatus
from ..errors import ClassificationError
from ..types import GameCompleted, NotificationEvent, PlayerJoined, TurnOutcome

logger = logging.getLogger("guess_duel.dispatcher")


# ══════════════════════════════════════════════════════════════
# SHAPE PREDICATES (checked in order, first match wins)
# ══════════════════════════════════════════════════════════════


def _is_completion(payload: Dict[str, Any]) -> bool:
    return payload.get("status") == RoomStatus.COMPLETED.value


def _is_join(payload: Dict[str, Any]) -> bool:
    return payload.get("joinedPlayerId") is not None


def _is_turn(payload: Dict[str, Any]) -> bool:
    # 0 is a legitimate guessed number; only absence disqualifies.
    return payload.get("guessedNumber") is not None


_SHAPES = (
    (_is_completion, GameCompleted),
    (_is_join, PlayerJoined),
    (_is_turn, TurnOutcome),
)


# ══════════════════════════════════════════════════════════════
# PUBLIC API
# ══════════════════════════════════════════════════════════════


def decode_payload(raw: Any) -> Dict[str, Any]:
    """Turn a raw message body (dict, str or bytes JSON) into a dict."""
    if isinstance(raw, dict):
        return raw
    if isinstance(raw, (bytes, bytearray)):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise ClassificationError(ClassificationCode.MALFORMED, raw, str(e)) from e
    if isinstance(raw, str):
        try:
            decoded = json.loads(raw)
        except json.JSONDecodeError as e:
            raise ClassificationError(ClassificationCode.MALFORMED, raw, str(e)) from e
        if isinstance(decoded, dict):
            return decoded
    raise ClassificationError(
        ClassificationCode.MALFORMED, raw, f"expected a JSON object, got {type(raw).__name__}",
    )


def classify(raw: Any) -> NotificationEvent:
    """
    Classify a push message into one of the three notification kinds.

    Args:
        raw: Message body as dict, str or bytes

    Returns:
        PlayerJoined, TurnOutcome or GameCompleted

    Raises:
        ClassificationError: UNKNOWN_SHAPE when no shape matches,
            MALFORMED when the body or the matched shape's fields are invalid
    """
    payload = decode_payload(raw)
    for matches, model in _SHAPES:
        if not matches(payload):
            continue
        try:
            return model.model_validate(payload)
        except ValidationError as e:
            raise ClassificationError(
                ClassificationCode.MALFORMED, payload,
                f"{model.__name__}: {e.error_count()} invalid field(s)",
            ) from e
    raise ClassificationError(ClassificationCode.UNKNOWN_SHAPE, payload)


class NotificationDispatcher:
    """
    Classifies incoming push messages and forwards them to a sink.

    Unclassifiable messages are logged and dropped; dispatch never raises
    on bad input.

    Usage:
        dispatcher = NotificationDispatcher(reconciler.notify)
        connections.subscribe(room_id, dispatcher.dispatch)
    """

    def __init__(self, sink: Callable[[NotificationEvent], None]):
        self._sink = sink
        self.dropped = 0

    def dispatch(self, raw: Any) -> Optional[NotificationEvent]:
        """Classify ``raw`` and forward it. Returns the event, or None if dropped."""
        try:
            event = classify(raw)
        except ClassificationError as e:
            self.dropped += 1
            logger.warning("Dropped notification: %s", e)
            return None
        logger.debug("Notification classified as %s", type(event).__name__)
        self._sink(event)
        return event
