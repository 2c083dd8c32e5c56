"""Computer targeting, one selection routine per difficulty tier.

Selection routines only look at the public state of the board they attack
(fired/hit grids and the known-cell indices) plus the attacker's memory of
its own previous shot on that board.
"""

from __future__ import annotations

import logging
import random
from typing import Callable

from battleship.engine.board import Board, LastShot, ShotResult
from battleship.engine.difficulty import Difficulty
from battleship.engine.errors import NoTargetError
from battleship.engine.ship import Coordinate
from battleship.telemetry import get_meter, get_tracer

logger = logging.getLogger(__name__)
tracer = get_tracer("battleship.ai.targeting")
meter = get_meter("battleship.ai.targeting")

TIER_COUNTER = meter.create_counter(
    "battleship_ai_shots_by_tier",
    unit="1",
    description="Computer shots grouped by the tier that selected them",
)

HUNT_ATTEMPTS = 4
KNOWN_CELL_PROBABILITY = 0.6
MAX_BURST_ROUNDS = 10
BURST_TIERS: tuple[Difficulty, ...] = (Difficulty.EASY, Difficulty.MEDIUM, Difficulty.HARD)

# up, right, down, left
DIRECTIONS: tuple[tuple[int, int], ...] = ((-1, 0), (0, 1), (1, 0), (0, -1))

ShotFn = Callable[[Coordinate], ShotResult]


def random_unfired(board: Board, rng: random.Random) -> Coordinate:
    """Pick uniformly among the cells not fired at yet."""
    candidates = board.unfired_cells()
    if not candidates:
        raise NoTargetError(f"Every cell of {board.owner}'s board has been fired at.")
    return rng.choice(candidates)


def hunt_around(board: Board, anchor: Coordinate, rng: random.Random) -> Coordinate | None:
    """Look for an unfired orthogonal neighbour of a previous hit.

    Directions are tried in random order. Stepping onto a cell that is
    already a hit moves the anchor there, which follows a damaged ship
    along its axis. Returns None once the attempts run out.
    """
    order = list(DIRECTIONS)
    rng.shuffle(order)
    for delta_row, delta_col in order[:HUNT_ATTEMPTS]:
        candidate = anchor.offset(delta_row, delta_col)
        if not board.is_valid_coordinate(candidate):
            continue
        if not board.is_fired(candidate):
            return candidate
        if board.is_hit(candidate):
            anchor = candidate
    return None


def choose_easy(board: Board, memory: LastShot | None, rng: random.Random) -> Coordinate:
    return random_unfired(board, rng)


def choose_medium(board: Board, memory: LastShot | None, rng: random.Random) -> Coordinate:
    """Hunt around the previous hit, otherwise shoot at random."""
    if memory is not None and memory.was_hit:
        target = hunt_around(board, memory.coord, rng)
        if target is not None:
            return target
    return random_unfired(board, rng)


def choose_hard(board: Board, memory: LastShot | None, rng: random.Random) -> Coordinate:
    """Hunt like medium; without a previous hit, lean on the known-ship index."""
    if memory is not None and memory.was_hit:
        target = hunt_around(board, memory.coord, rng)
        if target is not None:
            return target
        return random_unfired(board, rng)

    if rng.random() < KNOWN_CELL_PROBABILITY:
        known = sorted(board.known_ship_cells)
        if known:
            return rng.choice(known)
    return random_unfired(board, rng)


def choose_target(
    difficulty: Difficulty,
    board: Board,
    attacker: str,
    rng: random.Random,
) -> Coordinate:
    """Select the next cell for a single-shot tier."""
    memory = board.last_shot(attacker)
    if difficulty is Difficulty.EASY:
        return choose_easy(board, memory, rng)
    if difficulty is Difficulty.MEDIUM:
        return choose_medium(board, memory, rng)
    if difficulty is Difficulty.HARD:
        return choose_hard(board, memory, rng)
    raise ValueError(f"{difficulty.value} does not select single shots.")


def take_shot(
    difficulty: Difficulty,
    board: Board,
    attacker: str,
    rng: random.Random,
    fire: ShotFn,
) -> ShotResult:
    """Select and fire one computer shot (or a whole burst for the cheater tier).

    ``fire`` resolves a cell against ``board`` and applies whatever scoring
    the caller keeps. The cheater tier fires several times through it and
    returns the last result.
    """
    with tracer.start_as_current_span("targeting.take_shot") as span:
        span.set_attribute("difficulty", difficulty.value)
        span.set_attribute("attacker", attacker)
        if difficulty is Difficulty.CHEATER:
            return cheater_burst(board, attacker, rng, fire)
        target = choose_target(difficulty, board, attacker, rng)
        span.set_attribute("target.row", target.row)
        span.set_attribute("target.col", target.col)
        TIER_COUNTER.add(1, attributes={"tier": difficulty.value})
        return fire(target)


def cheater_burst(board: Board, attacker: str, rng: random.Random, fire: ShotFn) -> ShotResult:
    """Fire 1-10 rounds, each with a random tier, each running until it misses.

    The burst stops early when the board has no unfired cell left or every
    ship on it is destroyed.
    """
    rounds = rng.randint(1, MAX_BURST_ROUNDS)
    last: ShotResult | None = None
    fired_rounds = 0
    for _ in range(rounds):
        if board.all_ships_destroyed() or not board.unfired_cells():
            break
        tier = rng.choice(BURST_TIERS)
        fired_rounds += 1
        while True:
            target = choose_target(tier, board, attacker, rng)
            TIER_COUNTER.add(1, attributes={"tier": tier.value, "burst": True})
            last = fire(target)
            if not last.was_hit or board.all_ships_destroyed() or not board.unfired_cells():
                break
    logger.debug(
        "cheater_burst_complete",
        extra={"owner": board.owner, "planned_rounds": rounds, "rounds": fired_rounds},
    )
    if last is None:
        raise NoTargetError(f"Nothing left to shoot at on {board.owner}'s board.")
    return last
