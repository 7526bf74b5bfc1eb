# Area: Core Tests
"""Tests for notification classification and dispatch."""

import json

import pytest

from conftest import completed, joined, turn
from guess_duel._core.dispatcher import NotificationDispatcher, classify, decode_payload
from guess_duel._core.enums import ClassificationCode, RoomStatus
from guess_duel.errors import ClassificationError
from guess_duel.types import GameCompleted, PlayerJoined, TurnOutcome


class TestDecodePayload:
    """Tests for raw body decoding."""

    def test_dict_passes_through(self):
        payload = {"a": 1}
        assert decode_payload(payload) is payload

    def test_json_text(self):
        assert decode_payload('{"a": 1}') == {"a": 1}

    def test_json_bytes(self):
        assert decode_payload(b'{"a": 1}') == {"a": 1}

    def test_invalid_json_is_malformed(self):
        with pytest.raises(ClassificationError) as exc_info:
            decode_payload("{not json")
        assert exc_info.value.code == ClassificationCode.MALFORMED

    def test_json_array_is_malformed(self):
        with pytest.raises(ClassificationError) as exc_info:
            decode_payload("[1, 2]")
        assert exc_info.value.code == ClassificationCode.MALFORMED

    def test_other_types_are_malformed(self):
        with pytest.raises(ClassificationError):
            decode_payload(42)


class TestClassify:
    """Shape detection and precedence."""

    def test_player_joined(self):
        event = classify(joined("Bob"))
        assert isinstance(event, PlayerJoined)
        assert event.joined_player_id == "Bob"
        assert event.status == RoomStatus.IN_PROGRESS

    def test_turn_outcome(self):
        event = classify(turn("Alice", "42", 1, 1, next_player="Bob", remainingAttempts=9))
        assert isinstance(event, TurnOutcome)
        assert event.guessed_number == "42"
        assert event.current_player_id == "Bob"
        assert event.remaining_attempts == 9

    def test_game_completed(self):
        event = classify(completed("Bob wins!"))
        assert isinstance(event, GameCompleted)
        assert event.message == "Bob wins!"

    def test_completion_wins_over_turn_fields(self):
        payload = turn("Alice", "42", 2, 3)
        payload.update(completed())
        assert isinstance(classify(payload), GameCompleted)

    def test_completion_wins_over_join_fields(self):
        payload = joined("Bob", status="COMPLETED")
        assert isinstance(classify(payload), GameCompleted)

    def test_join_wins_over_turn(self):
        payload = turn("Alice", "42", 0, 1)
        payload.update(joined("Bob"))
        assert isinstance(classify(payload), PlayerJoined)

    def test_zero_guess_is_a_turn(self):
        """A guessed value of 0 is present, not missing."""
        event = classify(turn("Alice", 0, 0, 1))
        assert isinstance(event, TurnOutcome)
        assert event.guessed_number == "0"

    def test_numeric_guess_becomes_text(self):
        assert classify(turn("Alice", 42, 1, 1)).guessed_number == "42"

    def test_null_fields_do_not_match(self):
        with pytest.raises(ClassificationError) as exc_info:
            classify({"joinedPlayerId": None, "guessedNumber": None, "status": "IN_PROGRESS"})
        assert exc_info.value.code == ClassificationCode.UNKNOWN_SHAPE

    def test_unknown_shape(self):
        with pytest.raises(ClassificationError) as exc_info:
            classify({"hello": "world"})
        assert exc_info.value.code == ClassificationCode.UNKNOWN_SHAPE

    def test_matched_shape_missing_fields_is_malformed(self):
        with pytest.raises(ClassificationError) as exc_info:
            classify({"guessedNumber": "42"})
        assert exc_info.value.code == ClassificationCode.MALFORMED

    def test_negative_correct_digits_is_malformed(self):
        with pytest.raises(ClassificationError) as exc_info:
            classify(turn("Alice", "42", -1, 1))
        assert exc_info.value.code == ClassificationCode.MALFORMED

    def test_classifies_json_text(self):
        assert isinstance(classify(json.dumps(joined("Bob"))), PlayerJoined)


class TestNotificationDispatcher:
    """Dispatcher forwards good events and drops bad ones."""

    def test_forwards_to_sink(self):
        received = []
        dispatcher = NotificationDispatcher(received.append)
        event = dispatcher.dispatch(joined("Bob"))
        assert received == [event]

    def test_drops_unclassifiable_without_raising(self):
        received = []
        dispatcher = NotificationDispatcher(received.append)
        assert dispatcher.dispatch({"unexpected": True}) is None
        assert dispatcher.dispatch("garbage") is None
        assert received == []
        assert dispatcher.dropped == 2
