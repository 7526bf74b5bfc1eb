# Area: Session Tests
"""Tests for the GameSession façade, driven by fake service and channel."""

import asyncio

import pytest

from conftest import FakeService, FakeTransportFactory, completed, joined, settle, turn
from guess_duel._channel.connection_manager import ConnectionManager
from guess_duel._core.enums import GameMode, RoomStatus, ValidationCode
from guess_duel.errors import (
    GuessValidationError,
    ServiceError,
    StartOptionsError,
    TurnViolationError,
)
from guess_duel.session import GameSession, StartOptions


BOB_JOINS = {
    "gameId": "g-2", "roomId": "room-1", "playerId": "Bob", "currentPlayerId": "Alice",
    "roomStatus": "IN_PROGRESS", "level": 1,
}


def run(coro):
    return asyncio.run(coro)


async def start(service, factory, scheduler, **options):
    options.setdefault("player_name", service.start_response["playerId"])
    connections = ConnectionManager(factory)
    game = await GameSession.start(service, connections, StartOptions(**options), scheduler=scheduler)
    return game, connections


class TestStartOptions:
    """Form validation before any network call."""

    def test_valid_options_build_request(self):
        request = StartOptions(player_name="  Alice ", level=2, room_id=" room-1 ",
                               secret_number="007").to_request()
        assert request.player_id == "Alice"
        assert request.room_id == "room-1"
        assert request.secret_number == 7
        assert request.limit_attempts is True
        assert request.game_mode == GameMode.MULTIPLAYER

    def test_blank_room_means_create(self):
        assert StartOptions(player_name="Alice", room_id="  ").to_request().room_id is None

    def test_empty_name(self):
        with pytest.raises(StartOptionsError) as exc_info:
            StartOptions(player_name="   ").to_request()
        assert exc_info.value.errors == ["Please enter your name"]

    def test_bad_level(self):
        assert StartOptions(player_name="Alice", level=5).errors() == ["Level must be one of [1, 2, 3]"]

    def test_secret_wrong_length(self):
        errors = StartOptions(player_name="Alice", level=3, secret_number="12").errors()
        assert errors == ["Secret number must be exactly 4 digits"]

    def test_secret_not_numeric(self):
        errors = StartOptions(player_name="Alice", level=1, secret_number="1x").errors()
        assert errors == ["Secret number must contain only digits"]

    def test_invalid_form_makes_no_call(self, factory, scheduler):
        service = FakeService()
        with pytest.raises(StartOptionsError):
            run(start(service, factory, scheduler, player_name=""))
        assert service.calls == []
        assert factory.transports == []


class TestStart:
    """Starting and joining a room."""

    def test_creator_subscribes_and_waits(self, factory, scheduler):
        async def scenario():
            game, _ = await start(FakeService(), factory, scheduler)
            return game.current_snapshot()

        snapshot = run(scenario())
        assert snapshot.room_state.status == RoomStatus.WAITING_FOR_PLAYER
        assert snapshot.waiting_for_opponent is True
        assert snapshot.my_turn is False
        assert snapshot.live_updates is True
        assert snapshot.expected_digits == 2
        assert list(factory.transport.subscribed.values()) == ["/topic/room/room-1"]

    def test_joiner_backfills_history_after_subscribing(self, factory, scheduler):
        service = FakeService(BOB_JOINS)
        service.history_records = [
            {"playerId": "Alice", "guessedNumber": "42", "correctDigits": 1, "guessNumber": 1},
        ]

        async def scenario():
            game, _ = await start(service, factory, scheduler)
            return game.current_snapshot()

        snapshot = run(scenario())
        assert service.called("history") == [("history", "room-1")]
        assert [r.guessed_number for r in snapshot.history.theirs] == ["42"]
        assert snapshot.room_state.current_player_id == "Alice"
        assert snapshot.waiting_for_opponent is False

    def test_start_failure_surfaces_service_error(self, factory, scheduler):
        service = FakeService()
        service.errors["start"] = ServiceError("start", "Room is full")
        with pytest.raises(ServiceError, match="Room is full"):
            run(start(service, factory, scheduler))
        assert factory.transports == []

    def test_channel_failure_degrades_to_no_live_updates(self, scheduler):
        factory = FakeTransportFactory(fail_connect=True)

        async def scenario():
            game, connections = await start(FakeService(), factory, scheduler)
            return game, connections

        game, connections = run(scenario())
        assert game.live_updates is False
        assert connections.handle_count == 0
        assert game.current_snapshot().waiting_for_opponent is True

    def test_departure_guard_armed(self, factory, scheduler, no_atexit):
        async def scenario():
            game, _ = await start(FakeService(), factory, scheduler)
            return game

        game = run(scenario())
        no_atexit.register.assert_called_once()
        # The exit hook uses the blocking end call.
        no_atexit.register.call_args[0][0]()
        assert game.service.called("end_blocking") == [("end_blocking", "g-1", "Alice")]


class TestGameFlow:
    """Alice creates, Bob joins, turns alternate."""

    def test_join_then_guess(self, factory, scheduler):
        service = FakeService()

        async def scenario():
            game, _ = await start(service, factory, scheduler)
            factory.transport.push(joined("Bob"))
            await settle()
            mine_before = game.current_snapshot()
            await game.submit_guess(" 42 ")
            # Nothing changes until the notification arrives.
            after_submit = game.current_snapshot()
            factory.transport.push(turn("Alice", "42", 1, 1, next_player="Bob"))
            return mine_before, after_submit, game.current_snapshot()

        before, after_submit, after_notice = run(scenario())
        assert before.my_turn is True
        assert before.transient_notice.joined_player_id == "Bob"
        assert service.called("guess") == [("guess", "g-1", "Alice", "42")]
        assert after_submit.history.mine == ()
        assert after_submit.my_turn is True
        assert [r.guess_number for r in after_notice.history.mine] == [1]
        assert after_notice.my_turn is False
        assert after_notice.room_state.current_player_id == "Bob"

    def test_join_notification_triggers_backfill(self, factory, scheduler):
        service = FakeService()

        async def scenario():
            game, _ = await start(service, factory, scheduler)
            assert service.called("history") == []
            factory.transport.push(joined("Bob"))
            await settle()

        run(scenario())
        assert service.called("history") == [("history", "room-1")]

    def test_replayed_notification_recorded_once(self, factory, scheduler):
        async def scenario():
            game, _ = await start(FakeService(), factory, scheduler)
            factory.transport.push(joined("Bob"))
            payload = turn("Alice", "42", 1, 1, next_player="Bob")
            factory.transport.push(payload)
            factory.transport.push(payload)
            return game.current_snapshot()

        snapshot = run(scenario())
        assert len(snapshot.history.mine) == 1

    def test_game_over(self, factory, scheduler):
        async def scenario():
            game, _ = await start(FakeService(), factory, scheduler)
            factory.transport.push(joined("Bob"))
            factory.transport.push(completed("Alice wins!"))
            return game.current_snapshot()

        snapshot = run(scenario())
        assert snapshot.room_state.status == RoomStatus.COMPLETED
        assert snapshot.game_over_notice.message == "Alice wins!"
        assert snapshot.transient_notice is None
        assert snapshot.my_turn is False

    def test_listener_sees_changes(self, factory, scheduler):
        seen = []

        async def scenario():
            game, _ = await start(FakeService(), factory, scheduler)
            game.add_listener(lambda: seen.append(game.current_snapshot().room_state.status))
            factory.transport.push(joined("Bob"))

        run(scenario())
        assert seen[0] == RoomStatus.IN_PROGRESS


class TestSubmitGuess:
    """Local checks run before any network call."""

    def test_not_my_turn(self, factory, scheduler):
        service = FakeService()

        async def scenario():
            game, _ = await start(service, factory, scheduler)
            await game.submit_guess("42")

        with pytest.raises(TurnViolationError, match="It's not your turn!"):
            run(scenario())
        assert service.called("guess") == []

    def test_validation_runs_first(self, factory, scheduler):
        async def scenario():
            game, _ = await start(FakeService(), factory, scheduler)
            await game.submit_guess("123")

        with pytest.raises(GuessValidationError) as exc_info:
            run(scenario())
        assert exc_info.value.code == ValidationCode.WRONG_LENGTH

    def test_after_game_over(self, factory, scheduler):
        async def scenario():
            game, _ = await start(FakeService(), factory, scheduler)
            factory.transport.push(joined("Bob"))
            factory.transport.push(completed())
            await game.submit_guess("42")

        with pytest.raises(TurnViolationError, match="over"):
            run(scenario())

    def test_second_submit_while_in_flight(self, factory, scheduler):
        service = FakeService()

        async def scenario():
            service.guess_gate = asyncio.Event()
            game, _ = await start(service, factory, scheduler)
            factory.transport.push(joined("Bob"))
            first = asyncio.get_running_loop().create_task(game.submit_guess("42"))
            await settle()
            try:
                await game.submit_guess("43")
            finally:
                service.guess_gate.set()
                await first

        with pytest.raises(TurnViolationError, match="already"):
            run(scenario())
        assert len(service.called("guess")) == 1

    def test_server_rejection_surfaces(self, factory, scheduler):
        service = FakeService()
        service.errors["guess"] = ServiceError("guess", "Not your turn")

        async def scenario():
            game, _ = await start(service, factory, scheduler)
            factory.transport.push(joined("Bob"))
            try:
                await game.submit_guess("42")
            finally:
                snapshot = game.current_snapshot()
            return snapshot

        with pytest.raises(ServiceError, match="Not your turn"):
            run(scenario())


class TestLeave:
    """Explicit leave and resource release."""

    def test_leave_sends_end_and_releases(self, factory, scheduler, no_atexit):
        service = FakeService()

        async def scenario():
            game, connections = await start(service, factory, scheduler)
            await game.leave()
            await game.leave()
            return game, connections

        game, connections = run(scenario())
        assert service.called("end") == [("end", "g-1", "Alice")]
        assert connections.handle_count == 0
        assert factory.transport.close_calls == 1
        assert game.live_updates is False
        no_atexit.unregister.assert_called()
        assert game._guard.fire() is False

    def test_leave_after_completion_sends_nothing(self, factory, scheduler):
        service = FakeService()

        async def scenario():
            game, _ = await start(service, factory, scheduler)
            factory.transport.push(completed())
            await game.leave()

        run(scenario())
        assert service.called("end") == []

    def test_failed_leave_can_be_retried(self, factory, scheduler):
        service = FakeService()
        service.errors["end"] = ServiceError("end", "Failed to end game")

        async def scenario():
            game, connections = await start(service, factory, scheduler)
            with pytest.raises(ServiceError):
                await game.leave()
            still_open = (connections.handle_count, game.live_updates, game._guard.armed)
            del service.errors["end"]
            await game.leave()
            return still_open, connections

        still_open, connections = run(scenario())
        assert still_open == (1, True, True)
        assert len(service.called("end")) == 2
        assert connections.handle_count == 0

    def test_context_manager_releases_when_leave_fails(self, factory, scheduler):
        service = FakeService()
        service.errors["end"] = ServiceError("end", "Failed to end game")
        holder = {}

        async def scenario():
            game, connections = await start(service, factory, scheduler)
            holder["connections"] = connections
            async with game:
                pass

        with pytest.raises(ServiceError):
            run(scenario())
        assert holder["connections"].handle_count == 0

    def test_no_delivery_after_leave(self, factory, scheduler):
        async def scenario():
            game, _ = await start(FakeService(), factory, scheduler)
            on_message = factory.transport.on_message
            sub_id = next(iter(factory.transport.subscribed))
            await game.leave()
            on_message(sub_id, joined("Bob"))
            return game

        game = run(scenario())
        assert game.reconciler.status == RoomStatus.WAITING_FOR_PLAYER

    def test_context_manager_leaves(self, factory, scheduler):
        service = FakeService()

        async def scenario():
            game, _ = await start(service, factory, scheduler)
            async with game:
                pass

        run(scenario())
        assert service.called("end") == [("end", "g-1", "Alice")]

    def test_shared_channel_survives_one_session_leaving(self, scheduler):
        factory = FakeTransportFactory()

        async def scenario():
            connections = ConnectionManager(factory)
            alice = await GameSession.start(FakeService(), connections,
                                            StartOptions(player_name="Alice"), scheduler=scheduler)
            bob = await GameSession.start(FakeService(BOB_JOINS), connections,
                                          StartOptions(player_name="Bob", room_id="room-1"),
                                          scheduler=scheduler)
            await alice.leave()
            still_connected = connections.connected
            await bob.leave()
            return still_connected, connections

        still_connected, connections = run(scenario())
        assert len(factory.transports) == 1
        assert still_connected is True
        assert connections.connected is False


class TestResync:
    """History resync after a reconnect."""

    def test_reconnect_refetches_history(self, factory, scheduler):
        service = FakeService()

        async def scenario():
            game, _ = await start(service, factory, scheduler)
            factory.transport.push(joined("Bob"))
            await settle()
            service.history_records = [
                {"playerId": "Bob", "guessedNumber": "17", "correctDigits": 0, "guessNumber": 1},
            ]
            factory.transport.on_reconnect()
            await settle()
            return game.current_snapshot()

        snapshot = run(scenario())
        assert len(service.called("history")) == 2
        assert [r.player_id for r in snapshot.history.theirs] == ["Bob"]
        # A fetch never moves turn ownership.
        assert snapshot.room_state.current_player_id == "Alice"

    def test_failed_backfill_is_not_fatal(self, factory, scheduler):
        service = FakeService(BOB_JOINS)
        service.errors["history"] = ServiceError("history", "Failed to get guess history")

        async def scenario():
            game, _ = await start(service, factory, scheduler)
            return game.current_snapshot()

        snapshot = run(scenario())
        assert snapshot.room_state.status == RoomStatus.IN_PROGRESS
        assert snapshot.history.theirs == ()

    def test_explicit_resync_raises(self, factory, scheduler):
        service = FakeService()

        async def scenario():
            game, _ = await start(service, factory, scheduler)
            service.errors["history"] = ServiceError("history", "Failed to get guess history")
            await game.resync()

        with pytest.raises(ServiceError):
            run(scenario())


class TestLiveUpdates:
    """Live updates follow the channel, and a lost channel can be re-opened."""

    def test_lost_channel_turns_live_updates_off(self, factory, scheduler):
        seen = []

        async def scenario():
            game, connections = await start(FakeService(), factory, scheduler)
            game.add_listener(lambda: seen.append(game.current_snapshot().live_updates))
            factory.transport.lose()
            return game, connections

        game, connections = run(scenario())
        assert connections.connected is False
        assert game.live_updates is False
        assert game.current_snapshot().live_updates is False
        assert seen == [False]

    def test_dead_transport_reads_as_not_live(self, factory, scheduler):
        async def scenario():
            game, _ = await start(FakeService(), factory, scheduler)
            factory.transport.connected = False
            return game

        assert run(scenario()).current_snapshot().live_updates is False

    def test_reconnect_restores_channel_and_history(self, factory, scheduler):
        service = FakeService()

        async def scenario():
            game, connections = await start(service, factory, scheduler)
            factory.transport.push(joined("Bob"))
            await settle()
            factory.transport.lose()
            service.history_records = [
                {"playerId": "Bob", "guessedNumber": "17", "correctDigits": 0, "guessNumber": 1},
            ]
            live = await game.reconnect()
            await settle()
            factory.transport.push(turn("Alice", "42", 1, 2, next_player="Bob"))
            return live, game.current_snapshot(), connections

        live, snapshot, connections = run(scenario())
        assert live is True
        assert snapshot.live_updates is True
        assert len(factory.transports) == 1
        assert connections.handle_count == 1
        assert len(service.called("history")) == 2
        assert [r.player_id for r in snapshot.history.theirs] == ["Bob"]
        assert [r.guess_number for r in snapshot.history.mine] == [2]

    def test_reconnect_after_failed_start_channel(self, scheduler):
        factory = FakeTransportFactory(fail_connect=True)

        async def scenario():
            game, _ = await start(FakeService(), factory, scheduler)
            before = game.live_updates
            factory.fail_connect = False
            live = await game.reconnect()
            return before, live

        before, live = run(scenario())
        assert before is False
        assert live is True
        assert list(factory.transport.subscribed.values()) == ["/topic/room/room-1"]

    def test_reconnect_failure_stays_degraded(self, factory, scheduler):
        async def scenario():
            game, _ = await start(FakeService(), factory, scheduler)
            factory.transport.lose()
            factory.transport.fail_connect = True
            return await game.reconnect(), game.live_updates

        assert run(scenario()) == (False, False)
