"""Tests for the difficulty-tier targeting routines."""

from __future__ import annotations

import random

import pytest

from battleship.ai import targeting
from battleship.ai.targeting import (
    choose_easy,
    choose_hard,
    choose_medium,
    choose_target,
    hunt_around,
    random_unfired,
    take_shot,
)
from battleship.engine.board import Board, LastShot, ShotResult
from battleship.engine.difficulty import Difficulty, RevealPolicy
from battleship.engine.errors import NoTargetError
from battleship.engine.ship import Coordinate, Orientation, Ship, ShipType


class FixedRandom(random.Random):
    """Random whose ``random()`` always returns the same value."""

    def __init__(self, value: float, seed: int = 0) -> None:
        super().__init__(seed)
        self._value = value

    def random(self) -> float:
        return self._value


def _board_with_destroyer(start: Coordinate, orientation: Orientation, **kwargs) -> tuple[Board, Ship]:
    board = Board(**kwargs)
    ship = Ship(ShipType.DESTROYER, orientation)
    assert board.place(start, ship)
    board.finalize_placement()
    return board, ship


def _fire_all_but(board: Board, keep: set[Coordinate]) -> None:
    for coord in board.all_cells():
        if coord not in keep:
            board.resolve_shot(coord, attacker="setup")


def test_easy_only_picks_unfired_cells() -> None:
    board = Board(rows=3, cols=3)
    _fire_all_but(board, {Coordinate(2, 1)})
    rng = random.Random(1)
    for _ in range(5):
        assert choose_easy(board, None, rng) == Coordinate(2, 1)


def test_random_unfired_raises_when_board_is_exhausted() -> None:
    board = Board(rows=2, cols=2)
    _fire_all_but(board, set())
    with pytest.raises(NoTargetError):
        random_unfired(board, random.Random(0))


def test_medium_without_memory_or_after_miss_is_random() -> None:
    board = Board(rows=2, cols=2)
    _fire_all_but(board, {Coordinate(0, 0)})
    rng = random.Random(2)
    assert choose_medium(board, None, rng) == Coordinate(0, 0)
    assert choose_medium(board, LastShot(Coordinate(1, 1), False), rng) == Coordinate(0, 0)


def test_medium_hunts_orthogonal_neighbours_after_a_hit() -> None:
    board = Board()
    anchor = Coordinate(5, 5)
    neighbours = {anchor.offset(dr, dc) for dr, dc in targeting.DIRECTIONS}
    rng = random.Random(7)
    for _ in range(20):
        assert choose_medium(board, LastShot(anchor, True), rng) in neighbours


def test_hunt_skips_fired_neighbours_and_board_edges() -> None:
    board = Board()
    corner = Coordinate(0, 0)
    board.resolve_shot(Coordinate(0, 1), attacker="setup")
    for seed in range(10):
        assert hunt_around(board, corner, random.Random(seed)) == Coordinate(1, 0)


def test_hunt_walks_onto_neighbouring_hits() -> None:
    board, _ = _board_with_destroyer(Coordinate(4, 0), Orientation.HORIZONTAL)
    for col in (0, 1):
        board.resolve_shot(Coordinate(4, col), attacker="setup")
    for neighbour in (Coordinate(3, 0), Coordinate(5, 0), Coordinate(5, 1)):
        board.resolve_shot(neighbour, attacker="setup")
    # (3, 1) is only reachable after the anchor steps right onto the hit at (4, 1).
    targets = [hunt_around(board, Coordinate(4, 0), random.Random(seed)) for seed in range(50)]
    assert set(targets) <= {None, Coordinate(3, 1)}
    assert Coordinate(3, 1) in targets


@pytest.mark.parametrize("chooser", [choose_medium, choose_hard])
def test_hunt_falls_back_to_random_when_neighbours_are_fired(chooser) -> None:
    board = Board()
    anchor = Coordinate(5, 5)
    board.resolve_shot(anchor, attacker="setup")
    for dr, dc in targeting.DIRECTIONS:
        board.resolve_shot(anchor.offset(dr, dc), attacker="setup")
    rng = random.Random(3)
    for _ in range(25):
        target = chooser(board, LastShot(anchor, True), rng)
        assert not board.is_fired(target)


def test_hard_prefers_known_ship_cells() -> None:
    board, ship = _board_with_destroyer(
        Coordinate(2, 2), Orientation.VERTICAL, reveal_policy=RevealPolicy.FULL
    )
    ship_cells = {cell.coord for cell in board.ship_cells(ship.id)}
    rng = FixedRandom(0.0)
    for _ in range(10):
        assert choose_hard(board, None, rng) in ship_cells


def test_hard_uses_random_cells_forty_percent_of_the_time() -> None:
    board, _ = _board_with_destroyer(
        Coordinate(2, 2), Orientation.VERTICAL, reveal_policy=RevealPolicy.FULL
    )
    _fire_all_but(board, {Coordinate(9, 9), Coordinate(2, 2)})
    assert choose_hard(board, None, FixedRandom(0.99)) in {Coordinate(9, 9), Coordinate(2, 2)}
    assert choose_hard(board, None, FixedRandom(0.0)) == Coordinate(2, 2)


def test_hard_falls_back_to_random_when_nothing_is_known() -> None:
    board, _ = _board_with_destroyer(
        Coordinate(0, 0), Orientation.HORIZONTAL, reveal_policy=RevealPolicy.STRUCK
    )
    assert board.known_ship_cells == frozenset()
    target = choose_hard(board, None, FixedRandom(0.0))
    assert board.is_valid_coordinate(target)
    assert not board.is_fired(target)


def test_choose_target_reads_the_attackers_own_memory() -> None:
    board, _ = _board_with_destroyer(Coordinate(5, 5), Orientation.HORIZONTAL)
    board.resolve_shot(Coordinate(5, 6), attacker="computer")
    board.resolve_shot(Coordinate(0, 0), attacker="human")
    neighbours = {Coordinate(4, 6), Coordinate(6, 6), Coordinate(5, 7), Coordinate(5, 5)}
    rng = random.Random(11)
    for _ in range(10):
        assert choose_target(Difficulty.MEDIUM, board, "computer", rng) in neighbours


def test_choose_target_does_not_handle_cheater() -> None:
    with pytest.raises(ValueError):
        choose_target(Difficulty.CHEATER, Board(), "computer", random.Random(0))


@pytest.mark.parametrize("difficulty", [Difficulty.EASY, Difficulty.MEDIUM, Difficulty.HARD])
def test_take_shot_fires_exactly_once_for_single_shot_tiers(difficulty: Difficulty) -> None:
    board, _ = _board_with_destroyer(Coordinate(0, 0), Orientation.HORIZONTAL)
    fired: list[Coordinate] = []

    def fire(coord: Coordinate) -> ShotResult:
        fired.append(coord)
        return board.resolve_shot(coord, attacker="computer")

    result = take_shot(difficulty, board, "computer", random.Random(5), fire)
    assert fired == [result.coord]
    assert board.is_fired(result.coord)


def test_cheater_burst_runs_rounds_until_misses() -> None:
    board, _ = _board_with_destroyer(Coordinate(3, 3), Orientation.VERTICAL)
    results: list[ShotResult] = []

    def fire(coord: Coordinate) -> ShotResult:
        result = board.resolve_shot(coord, attacker="computer")
        results.append(result)
        return result

    last = take_shot(Difficulty.CHEATER, board, "computer", random.Random(21), fire)
    assert last is results[-1]
    assert not any(result.repeated for result in results)
    misses = sum(1 for result in results if not result.was_hit)
    assert misses <= targeting.MAX_BURST_ROUNDS
    assert last.was_hit is False or board.all_ships_destroyed()
    assert len(board.fired_cells()) == len(results)


def test_cheater_burst_stops_once_the_fleet_is_destroyed() -> None:
    board = Board(rows=1, cols=4)
    ship = Ship(ShipType.DESTROYER, Orientation.HORIZONTAL)
    board.place(Coordinate(0, 0), ship)
    board.finalize_placement()
    shots: list[ShotResult] = []

    def fire(coord: Coordinate) -> ShotResult:
        shots.append(board.resolve_shot(coord, attacker="computer"))
        return shots[-1]

    last = targeting.cheater_burst(board, "computer", random.Random(4), fire)
    assert len(shots) == 4
    assert last.ship_destroyed is True
    assert ship.is_destroyed()


def test_cheater_burst_on_exhausted_board_raises() -> None:
    board = Board(rows=2, cols=2)
    _fire_all_but(board, set())
    with pytest.raises(NoTargetError):
        targeting.cheater_burst(board, "computer", random.Random(0), lambda coord: None)
