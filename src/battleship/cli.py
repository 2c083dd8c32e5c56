"""Command-line front-end for playing Battleship against the computer."""

from __future__ import annotations

import argparse
import string
from typing import Sequence

from battleship.config import GameConfig
from battleship.engine.board import Board, CellState
from battleship.engine.difficulty import Difficulty, RevealPolicy
from battleship.engine.errors import BattleshipError, ConfigurationError
from battleship.engine.instrumented_match import InstrumentedMatchController
from battleship.engine.match import (
    MatchController,
    MatchFinishedEvent,
    MatchListener,
    MatchPhase,
    ScoreEvent,
    ShotEvent,
    Side,
)
from battleship.engine.ship import Coordinate, Orientation, Ship
from battleship.telemetry import (
    TelemetryConfig,
    configure_console_logging,
    init_telemetry,
    shutdown_tracing,
)

ROW_LABELS = string.ascii_uppercase


def _check_row_labels(rows: int) -> None:
    if rows > len(ROW_LABELS):
        raise ConfigurationError(
            f"The terminal board labels rows A-Z, so it supports at most {len(ROW_LABELS)} rows, got {rows}."
        )


def _coordinate_from_input(text: str, rows: int = 10, cols: int = 10) -> Coordinate:
    cleaned = text.strip().upper()
    if not cleaned:
        raise ValueError("Empty coordinate.")
    if cleaned[0].isalpha():
        if cleaned[0] not in ROW_LABELS[:rows]:
            raise ValueError(f"Row must be between A and {ROW_LABELS[rows - 1]}.")
        row = ROW_LABELS.index(cleaned[0])
        try:
            col = int(cleaned[1:]) - 1
        except ValueError as exc:
            raise ValueError(f"Column must be a number between 1 and {cols}.") from exc
    else:
        parts = cleaned.split()
        if len(parts) != 2:
            raise ValueError("Use formats like A5 or '3 7'.")
        row, col = map(int, parts)
    if row not in range(rows) or col not in range(cols):
        raise ValueError(f"Coordinates must be within the {rows}x{cols} board.")
    return Coordinate(row, col)


def _label(coord: Coordinate) -> str:
    return f"{ROW_LABELS[coord.row]}{coord.col + 1}"


def _format_board(board: Board, show_ships: bool) -> str:
    header = "    " + " ".join(f"{col + 1:>2}" for col in range(board.cols))
    rows = [header]
    for row in range(board.rows):
        symbols = []
        for col in range(board.cols):
            coord = Coordinate(row, col)
            state = board.get_cell_state(coord)
            if state is CellState.HIT:
                symbol = "X"
            elif state is CellState.MISS:
                symbol = "o"
            else:
                symbol = "S" if show_ships and coord in board.occupancy else "."
            symbols.append(f"{symbol:>2}")
        rows.append(f"{ROW_LABELS[row]} |" + " ".join(symbols))
    return "\n".join(rows)


class ConsoleListener(MatchListener):
    """Prints the match log the way a turn display would show it."""

    def __init__(self, echo=print) -> None:
        self._echo = echo

    def on_shot_resolved(self, event: ShotEvent) -> None:
        line = event.message
        if event.ship_destroyed:
            line += " Ship destroyed!"
        self._echo(line)

    def on_score_changed(self, event: ScoreEvent) -> None:
        if event.side is Side.PLAYER:
            self._echo(f"  score: {event.new_score} ({event.delta:+d})")

    def on_match_finished(self, event: MatchFinishedEvent) -> None:
        seconds = event.elapsed_ms / 1000
        if event.winner is Side.PLAYER:
            self._echo(f"\nPlayer wins! ({seconds:.1f}s)")
        else:
            self._echo(f"\nYou lose! ({seconds:.1f}s)")
        self._echo(
            f"Final score - player: {event.scores[Side.PLAYER]}, "
            f"computer: {event.scores[Side.COMPUTER]}"
        )


def _prompt_for_coordinate(rows: int, cols: int) -> Coordinate:
    while True:
        raw = input("Enter target coordinate (e.g., A5) or 'q' to quit: ").strip()
        if raw.lower() == "q":
            raise SystemExit("Goodbye!")
        try:
            return _coordinate_from_input(raw, rows, cols)
        except ValueError as exc:
            print(f"Invalid input: {exc}")


def _prompt_orientation(ship: Ship) -> Orientation:
    while True:
        raw = (
            input(
                f"Place your {ship.ship_type.name.title()} (length {ship.length}). Orientation [H/V]: "
            )
            .strip()
            .upper()
        )
        if raw in {"H", "HOR", "HORIZONTAL"}:
            return Orientation.HORIZONTAL
        if raw in {"V", "VER", "VERTICAL"}:
            return Orientation.VERTICAL
        print("Please enter H for horizontal or V for vertical.")


def _manual_ship_placement(match: MatchController) -> None:
    board = match.boards[Side.PLAYER]
    for ship in match.unplaced_ships():
        while True:
            print("\nCurrent layout:")
            print(_format_board(board, show_ships=True))
            if _prompt_orientation(ship) is not ship.orientation:
                match.rotate_ship(ship)
            start_raw = input("Enter starting coordinate (e.g., A1): ")
            try:
                start = _coordinate_from_input(start_raw, board.rows, board.cols)
            except ValueError as exc:
                print(f"Invalid coordinate: {exc}")
                continue
            if match.place_ship(ship, start):
                break
            print("Ship cannot be placed there (out of bounds or overlaps). Try again.")


def _prompt_manual_setup() -> bool:
    while True:
        raw = input("Would you like to place your ships manually? [Y/n]: ").strip().lower()
        if raw in {"", "y", "yes"}:
            return True
        if raw in {"n", "no"}:
            return False
        print("Please answer with 'y' or 'n'.")


def play_game(config: GameConfig, auto_place: bool | None = None) -> MatchController:
    _check_row_labels(config.rows)
    print(f"Welcome to Battleship! Difficulty: {config.difficulty}\n")
    match = InstrumentedMatchController(config, listeners=[ConsoleListener()])
    rows, cols = config.rows, config.columns

    manual = not auto_place if auto_place is not None else _prompt_manual_setup()
    if manual:
        _manual_ship_placement(match)
    else:
        match.place_remaining_automatically(Side.PLAYER)
        print("\nYour ships have been positioned automatically.")

    match.finalize_placement_and_start_battle()

    while match.phase is MatchPhase.FIRING:
        print("\nYour Board:")
        print(_format_board(match.boards[Side.PLAYER], show_ships=True))
        print("\nEnemy Waters:")
        print(_format_board(match.boards[Side.COMPUTER], show_ships=False))

        coord = _prompt_for_coordinate(rows, cols)
        report = match.submit_player_shot(coord)
        if report.player_shot.repeated:
            print(f"{_label(coord)} has already been targeted. Choose another.")
    return match


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Play Battleship against the computer.")
    parser.add_argument(
        "--difficulty",
        choices=[difficulty.value for difficulty in Difficulty],
        default=None,
        help="Computer targeting tier.",
    )
    parser.add_argument("--rows", type=int, default=None, help="Board rows (default 10).")
    parser.add_argument("--cols", type=int, default=None, help="Board columns (default 10).")
    parser.add_argument(
        "--reveal-policy",
        choices=[policy.value for policy in RevealPolicy],
        default=None,
        help="Which ship cells the hard tiers may peek at.",
    )
    parser.add_argument(
        "--seed", type=int, default=None, help="Optional RNG seed for reproducibility."
    )
    parser.add_argument(
        "--auto-place", action="store_true", help="Place your fleet randomly without prompting."
    )
    parser.add_argument("--log-level", default="WARNING", help="Engine log level.")
    return parser


def config_from_args(args: argparse.Namespace) -> GameConfig:
    overrides = {
        "difficulty": args.difficulty,
        "rows": args.rows,
        "columns": args.cols,
        "reveal_policy": args.reveal_policy,
        "seed": args.seed,
    }
    config = GameConfig.from_env(**{key: value for key, value in overrides.items() if value is not None})
    _check_row_labels(config.rows)
    return config


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_console_logging(args.log_level)
    init_telemetry(TelemetryConfig.from_env(log_level=args.log_level.upper()))
    try:
        play_game(config_from_args(args), auto_place=True if args.auto_place else None)
    except BattleshipError as exc:
        print(f"Error: {exc}")
        return 2
    finally:
        shutdown_tracing()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
