"""Terminal Kalaha game for human and computer players."""

from __future__ import annotations

import argparse
import logging
import random
from typing import List, Optional

from kalaha_engine import pretty_print
from kalaha_rules import (
    MAX_HOUSES,
    MIN_HOUSES,
    CaptureType,
    ComputerStrength,
    Rules,
    Settings,
    SowingDirection,
)
from kalaha_session import GameSession, Position, TurnDecision
from kalaha_telemetry import TelemetrySink, ThreadedTCPSink, parse_host_port

DIRECTIONS = {
    "counterclockwise": SowingDirection.COUNTERCLOCKWISE,
    "clockwise": SowingDirection.CLOCKWISE,
    "crosskalah": SowingDirection.CROSS_KALAH,
}
CAPTURES = {
    "standard": CaptureType.STANDARD,
    "empty": CaptureType.EMPTY,
    "none": CaptureType.NONE,
    "always": CaptureType.ALWAYS,
}
PLAYER_KINDS = ("human", "easy", "medium", "hard")
LOG_LEVELS = ("debug", "info", "warning", "error")


def print_help(houses: int) -> None:
    print(f"Controls: 1-{houses} = play house, u=undo, q=quit, h=help.")
    print("Numbering: house 1 is farthest from the player's store.")
    print("The south player's houses are on the bottom row, north's on the top row (right to left).")


def read_command(prompt: str, houses: int) -> str:
    while True:
        try:
            raw = input(prompt).strip().lower()
        except EOFError:
            print()
            return "q"
        if raw == "":
            print(f"Please enter a house number 1-{houses}, or a command.")
            continue
        return raw


def configure_player(session: GameSession, player_id: int, kind: str) -> None:
    if kind == "human":
        session.set_player_to_human(player_id)
    else:
        session.set_player_to_computer(player_id, ComputerStrength[kind.upper()])


def print_result(session: GameSession, decision: TurnDecision) -> None:
    result = decision.result
    if result is None:
        return
    south = session.players[Position.SOUTH].display_name
    north = session.players[Position.NORTH].display_name
    print(f"Game over. {south} {result.store_south} - {north} {result.store_north}")
    if result.is_draw:
        print("The game is a draw.")
    else:
        print(f"{session.players[result.winner].display_name} wins.")


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Kalaha in the terminal")
    parser.add_argument("--houses", type=int, default=6, help="houses per player (default: 6)")
    parser.add_argument("--seeds", type=int, default=4, help="starting seeds per house (default: 4)")
    parser.add_argument("--direction", choices=sorted(DIRECTIONS), default="counterclockwise")
    parser.add_argument("--capture", choices=sorted(CAPTURES), default="standard")
    parser.add_argument(
        "--no-end-collection",
        action="store_true",
        help="do not move the remaining seeds into the stores at game end",
    )
    parser.add_argument(
        "--no-extra-turn",
        action="store_true",
        help="no extra turn when the last seed lands in the own store",
    )
    parser.add_argument("--south", choices=PLAYER_KINDS, default="human", help="south player (default: human)")
    parser.add_argument("--north", choices=PLAYER_KINDS, default="medium", help="north player (default: medium)")
    parser.add_argument("--north-first", action="store_true", help="north moves first")
    parser.add_argument("--alpha-beta", action="store_true", help="prune the computer's search")
    parser.add_argument("--rng-seed", type=int, default=None, help="seed for the computer's tie-break")
    parser.add_argument("--log-level", choices=LOG_LEVELS, default="warning")
    parser.add_argument("--telemetry", default=None, help="send telemetry JSON lines to HOST:PORT")
    args = parser.parse_args(argv)

    if args.houses < MIN_HOUSES or args.houses > MAX_HOUSES:
        print(f"--houses must be {MIN_HOUSES}..{MAX_HOUSES}")
        return 2
    if args.seeds <= 0:
        print("--seeds must be > 0")
        return 2
    telemetry_sink: Optional[TelemetrySink] = None
    if args.telemetry is not None:
        host_port = parse_host_port(args.telemetry)
        if host_port is None:
            print("--telemetry must be HOST:PORT")
            return 2
        telemetry_sink = ThreadedTCPSink(*host_port)

    logging.basicConfig(
        level=getattr(logging, args.log_level.upper()),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    rules = Rules(
        direction_of_sowing=DIRECTIONS[args.direction],
        capture_type=CAPTURES[args.capture],
        collect_remaining_seeds_at_end=not args.no_end_collection,
        play_again_when_last_seed_in_own_store=not args.no_extra_turn,
    )
    session = GameSession(
        settings=Settings(houses_per_player=args.houses, seeds_per_house=args.seeds),
        rules=rules,
        rng=random.Random(args.rng_seed),
        telemetry_sink=telemetry_sink,
        alpha_beta=args.alpha_beta,
    )
    configure_player(session, Position.SOUTH, args.south)
    configure_player(session, Position.NORTH, args.north)
    if args.north_first:
        session.set_player_who_is_first(Position.NORTH)

    try:
        return play(session)
    finally:
        if telemetry_sink is not None:
            telemetry_sink.close()


def play(session: GameSession) -> int:
    houses = session.settings.houses_per_player
    session.start_new_game()
    decision = session.start_or_continue()

    while True:
        print()
        print(pretty_print(session.board))

        player = decision.player
        if decision.game_over or player is None:
            print()
            print_result(session, decision)
            return 0

        if decision.extra_turn:
            print(f"{player.display_name} moves again.")

        if decision.computer_to_move:
            house = session.compute_computer_move()
            print(f"{player.display_name} plays house {house + 1}.")
            _, capture, decision = session.play_turn(house)
            if capture is not None:
                print(f"{player.display_name} captures {capture.seeds_moved()} seeds.")
            continue

        raw = read_command(f"{player.display_name} (1-{houses}, u=undo, h=help, q=quit): ", houses)
        if raw in {"q", "quit"}:
            session.end_the_game()
            return 0
        if raw in {"h", "help"}:
            print_help(houses)
            continue
        if raw in {"u", "undo"}:
            if not session.undo_log.has_entries():
                print("Nothing to undo.")
                continue
            step = session.undo_last_move()
            while step.continue_undo:
                step = session.undo_last_move()
            decision = session.whose_turn()
            continue

        if not raw.isdigit():
            print(f"Please enter a house number 1-{houses}, or a command.")
            continue
        house = int(raw) - 1
        if not session.board.is_selectable_house(player.id, house):
            print("Illegal move: house is empty or out of range.")
            continue

        _, capture, decision = session.play_turn(house)
        if capture is not None:
            print(f"{player.display_name} captures {capture.seeds_moved()} seeds.")


if __name__ == "__main__":
    raise SystemExit(main())
