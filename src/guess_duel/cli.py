# Area: Shared
"""
guess_duel.cli — Command-line interface
=======================================

Plays one game from the terminal.

Usage:
    guess-duel --name Alice --level 2                 # Create a room
    guess-duel --name Bob --level 2 --room ROOM_ID    # Join a room
    guess-duel --name Alice --single                  # Play alone

While playing, type a guess, ``history`` to list all guesses, or
``quit`` to leave the game.
"""

import argparse
import asyncio
import logging
import sys
from typing import List, Optional

from ._channel import ConnectionManager, stomp_transport_factory
from ._client_config import load_config
from ._core.enums import GameMode, NoticeKind
from ._core.notices import TransientNotice
from ._shared import SessionServiceClient, setup_logging
from .errors import GuessDuelError, ServiceError, StartOptionsError
from .session import GameSession, Snapshot, StartOptions
from .types import GuessRecord

QUIT_COMMANDS = {"quit", "exit", "q"}
HISTORY_COMMANDS = {"history", "h"}
LIVE_OFF = "Live updates unavailable; use 'history' to refresh."
LIVE_ON = "Live updates restored."


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Guess Duel - two-player number guessing",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  guess-duel --name Alice --level 2
  guess-duel --name Bob --level 2 --room 7f3c
  guess-duel --name Alice --single --no-limit
  GUESS_API_BASE_URL=http://server:8080/api guess-duel --name Alice
        """,
    )
    parser.add_argument("--name", required=True, help="Your player name")
    parser.add_argument(
        "--level", type=int, default=1, choices=[1, 2, 3],
        help="Difficulty: 1 = 2 digits, 2 = 3 digits, 3 = 4 digits",
    )
    parser.add_argument("--room", help="Room id to join (omit to create a room)")
    parser.add_argument("--secret", help="Custom secret number for a new room")
    parser.add_argument(
        "--no-limit", action="store_true",
        help="Play without an attempt limit",
    )
    parser.add_argument(
        "--single", action="store_true",
        help="Single-player mode against the server's secret",
    )
    parser.add_argument("--config", help="Path to JSON config file")
    parser.add_argument("--verbose", action="store_true", help="Log to the terminal as well")
    return parser.parse_args(argv)


def options_from_args(args: argparse.Namespace) -> StartOptions:
    return StartOptions(
        player_name=args.name,
        level=args.level,
        room_id=args.room,
        secret_number=args.secret,
        limit_attempts=not args.no_limit,
        game_mode=GameMode.SINGLE if args.single else GameMode.MULTIPLAYER,
    )


# ── Rendering ────────────────────────────────────────────────


def format_record(record: GuessRecord) -> str:
    return f"  #{record.guess_number} {record.player_id}: {record.guessed_number} -> {record.correct_digits} correct"


def format_notice(notice: TransientNotice) -> str:
    if notice.kind == NoticeKind.PLAYER_JOINED:
        return notice.message or f"{notice.joined_player_id} joined the game"
    if notice.kind == NoticeKind.TURN_OUTCOME:
        text = f"{notice.player_id} guessed {notice.guessed_number}: {notice.correct_digits} correct"
        if notice.remaining_attempts is not None:
            text += f" ({notice.remaining_attempts} attempts left)"
        return text
    return notice.message or "Game over"


def format_status(snapshot: Snapshot) -> str:
    """One-line summary of whose turn it is."""
    if snapshot.game_over_notice is not None:
        return f"*** {format_notice(snapshot.game_over_notice)} ***"
    if snapshot.waiting_for_opponent:
        return f"Waiting for an opponent. Share room id: {snapshot.session.room_id}"
    if snapshot.my_turn:
        return f"Your turn. Enter a {snapshot.expected_digits}-digit guess:"
    current = snapshot.room_state.current_player_id or "opponent"
    return f"Waiting for {current} to guess..."


def format_history(snapshot: Snapshot) -> str:
    lines = ["Your guesses:"]
    lines += [format_record(r) for r in snapshot.history.mine] or ["  (none)"]
    lines.append("Opponent guesses:")
    lines += [format_record(r) for r in snapshot.history.theirs] or ["  (none)"]
    return "\n".join(lines)


class Renderer:
    """Prints the notice and status line whenever the snapshot changes."""

    def __init__(self, game: GameSession, out=None):
        self.game = game
        self.out = out or sys.stdout
        self._last_notice: Optional[TransientNotice] = None
        self._last_status = ""
        self._live: Optional[bool] = None

    def __call__(self) -> None:
        snapshot = self.game.current_snapshot()
        notice = snapshot.game_over_notice or snapshot.transient_notice
        if notice is not None and notice is not self._last_notice:
            self._last_notice = notice
            print(f">> {format_notice(notice)}", file=self.out)
        if self._live is not None and snapshot.live_updates != self._live:
            print(LIVE_ON if snapshot.live_updates else LIVE_OFF, file=self.out)
        self._live = snapshot.live_updates
        status = format_status(snapshot)
        if status != self._last_status:
            self._last_status = status
            print(status, file=self.out)
        if snapshot.game_over_notice is not None:
            print("Press Enter to exit.", file=self.out)


# ── Game loop ────────────────────────────────────────────────


async def play(game: GameSession) -> None:
    """Read commands until the player quits or the game ends."""
    while not game.reconciler.is_completed:
        try:
            line = await asyncio.to_thread(input)
        except EOFError:
            return
        command = line.strip()
        if game.reconciler.is_completed:
            return
        if command.lower() in QUIT_COMMANDS:
            return
        if command.lower() in HISTORY_COMMANDS:
            if not game.live_updates:
                await game.reconnect()
                try:
                    await game.resync()
                except ServiceError as e:
                    print(f"! {e}")
            print(format_history(game.current_snapshot()))
            continue
        try:
            await game.submit_guess(command)
        except GuessDuelError as e:
            print(f"! {e}")


async def run_game(options: StartOptions, config: dict) -> int:
    connections = ConnectionManager(stomp_transport_factory(config))
    async with SessionServiceClient(
        config["api_base_url"], timeout=config.get("request_timeout"),
    ) as service:
        try:
            game = await GameSession.start(service, connections, options)
        except StartOptionsError as e:
            for error in e.errors:
                print(f"Error: {error}", file=sys.stderr)
            return 1
        except ServiceError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1

        renderer = Renderer(game)
        game.add_listener(renderer)
        if game.session.secret_number:
            print(f"Your secret number: {game.session.secret_number}")
        if not game.live_updates:
            print(LIVE_OFF)
        renderer()

        try:
            await play(game)
        finally:
            try:
                await game.leave()
            except ServiceError as e:
                print(f"Error: {e}", file=sys.stderr)
                await game.close()
        print(format_history(game.current_snapshot()))
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    args = parse_args(argv)
    try:
        config = load_config(args.config)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    setup_logging(config["log_file"], level=logging.INFO, terminal=args.verbose)
    return asyncio.run(run_game(options_from_args(args), config))


if __name__ == "__main__":
    sys.exit(main())
