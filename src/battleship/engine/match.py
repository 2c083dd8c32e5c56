"""Human vs. computer match controller."""

from __future__ import annotations

import logging
import random
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable

from battleship.ai.targeting import take_shot
from battleship.config import GameConfig
from battleship.telemetry import get_meter, get_tracer

from .board import Board, ShotResult
from .difficulty import Difficulty, RevealPolicy
from .errors import InvalidOperationError
from .fleet import build_fleet
from .ship import Coordinate, Ship

logger = logging.getLogger(__name__)
tracer = get_tracer("battleship.engine.match")
meter = get_meter("battleship.engine.match")

MOVE_COUNTER = meter.create_counter(
    "battleship_engine_moves",
    unit="1",
    description="Number of shots resolved by MatchController",
)


class MatchPhase(Enum):
    """High-level lifecycle of a match."""

    PLACING = "placing"
    FIRING = "firing"
    FINISHED = "finished"


class Side(Enum):
    """The two sides of a match."""

    PLAYER = "player"
    COMPUTER = "computer"

    def opponent(self) -> Side:
        """Return the opposing side."""
        return Side.COMPUTER if self is Side.PLAYER else Side.PLAYER

    @property
    def label(self) -> str:
        return "Player" if self is Side.PLAYER else "Enemy"


@dataclass(frozen=True)
class ShotEvent:
    side: Side
    coord: Coordinate
    was_hit: bool
    ship_destroyed: bool | None
    message: str


@dataclass(frozen=True)
class ScoreEvent:
    side: Side
    new_score: int
    delta: int


@dataclass(frozen=True)
class MatchFinishedEvent:
    winner: Side
    elapsed_ms: float
    scores: dict[Side, int]


class MatchListener:
    """Receives match notifications. Override the hooks you need."""

    def on_shot_resolved(self, event: ShotEvent) -> None:
        pass

    def on_score_changed(self, event: ScoreEvent) -> None:
        pass

    def on_match_finished(self, event: MatchFinishedEvent) -> None:
        pass


@dataclass(frozen=True)
class TurnReport:
    """Everything that happened after one human shot."""

    player_shot: ShotResult
    computer_shots: tuple[ShotResult, ...] = ()
    phase: MatchPhase = MatchPhase.FIRING
    winner: Side | None = None

    @property
    def computer_current_shot(self) -> ShotResult | None:
        """The computer shot a turn display should highlight (the last one)."""
        return self.computer_shots[-1] if self.computer_shots else None


@dataclass(frozen=True)
class MatchState:
    """Immutable snapshot of the current match."""

    phase: MatchPhase
    current_turn: Side
    scores: dict[Side, int]
    winner: Side | None
    difficulty: Difficulty
    battle_start_timestamp: float | None
    elapsed_ms: float | None
    fired: dict[Side, frozenset[Coordinate]] = field(default_factory=dict)
    hits: dict[Side, frozenset[Coordinate]] = field(default_factory=dict)


class MatchController:
    """Owns both boards and fleets and sequences placement, turns and scoring.

    Boards are keyed by the side that owns the fleet on them, so the human
    shoots at ``boards[Side.COMPUTER]``. A side that hits shoots again; the
    computer's extra shots run synchronously inside
    :meth:`submit_player_shot`.
    """

    def __init__(
        self,
        config: GameConfig | None = None,
        *,
        rng: random.Random | None = None,
        listeners: list[MatchListener] | None = None,
        clock: Callable[[], float] = time.time,
        auto_place_computer: bool = True,
    ) -> None:
        self.config = config or GameConfig()
        self.difficulty = Difficulty.parse(self.config.difficulty)
        reveal_policy = RevealPolicy.parse(self.config.reveal_policy)
        self._rng = rng or random.Random(self.config.seed)
        self._clock = clock
        self._listeners: list[MatchListener] = list(listeners or [])

        self.boards: dict[Side, Board] = {
            side: Board(
                rows=self.config.rows,
                cols=self.config.columns,
                difficulty=self.difficulty,
                reveal_policy=reveal_policy,
                owner=side.value,
            )
            for side in Side
        }
        self.fleets: dict[Side, list[Ship]] = {
            side: build_fleet(self.config.roster, self.config.rows, self.config.columns)
            for side in Side
        }
        self._unplaced: dict[Side, list[Ship]] = {side: list(ships) for side, ships in self.fleets.items()}
        self._destroyed: dict[Side, list[Ship]] = {side: [] for side in Side}

        self.phase: MatchPhase = MatchPhase.PLACING
        self.current_turn: Side = Side.PLAYER
        self.winner: Side | None = None
        self.scores: dict[Side, int] = {side: 0 for side in Side}
        self.battle_start_timestamp: float | None = None
        self.elapsed_ms: float | None = None

        if auto_place_computer:
            self.place_remaining_automatically(Side.COMPUTER)

    # ------------------------------------------------------------------ #
    # Listeners and queries
    # ------------------------------------------------------------------ #
    def add_listener(self, listener: MatchListener) -> None:
        self._listeners.append(listener)

    def unplaced_ships(self, side: Side = Side.PLAYER) -> list[Ship]:
        return list(self._unplaced[side])

    def placed_ships(self, side: Side = Side.PLAYER) -> list[Ship]:
        return [ship for ship in self.fleets[side] if ship not in self._unplaced[side]]

    def destroyed_ships(self, side: Side = Side.PLAYER) -> list[Ship]:
        return list(self._destroyed[side])

    def get_state(self) -> MatchState:
        """Return an immutable view of the current match."""
        return MatchState(
            phase=self.phase,
            current_turn=self.current_turn,
            scores=dict(self.scores),
            winner=self.winner,
            difficulty=self.difficulty,
            battle_start_timestamp=self.battle_start_timestamp,
            elapsed_ms=self.elapsed_ms,
            fired={side: frozenset(board.fired_cells()) for side, board in self.boards.items()},
            hits={side: frozenset(board.hit_cells()) for side, board in self.boards.items()},
        )

    # ------------------------------------------------------------------ #
    # Placement
    # ------------------------------------------------------------------ #
    def place_ship(self, ship: Ship, start: Coordinate, side: Side = Side.PLAYER) -> bool:
        """Place (or move) one of ``side``'s ships; False if it does not fit there."""
        self._require_phase(MatchPhase.PLACING, "place a ship")
        self._require_own_ship(ship, side)
        if not self.boards[side].place(start, ship):
            return False
        if ship in self._unplaced[side]:
            self._unplaced[side].remove(ship)
        return True

    def remove_ship(self, ship: Ship, side: Side = Side.PLAYER) -> None:
        """Pick a placed ship back up; it returns to the unplaced collection."""
        self._require_phase(MatchPhase.PLACING, "remove a ship")
        self._require_own_ship(ship, side)
        self.boards[side].delete_ship(ship)
        if ship not in self._unplaced[side]:
            self._unplaced[side].append(ship)

    def rotate_ship(self, ship: Ship, side: Side = Side.PLAYER) -> bool:
        """Rotate a ship; a placed ship only turns if it still fits."""
        self._require_phase(MatchPhase.PLACING, "rotate a ship")
        self._require_own_ship(ship, side)
        if ship in self._unplaced[side]:
            ship.rotate()
            return True
        return self.boards[side].rotate_placed_ship(ship)

    def place_remaining_automatically(self, side: Side = Side.PLAYER) -> None:
        """Randomly place every ship ``side`` has not placed yet."""
        self._require_phase(MatchPhase.PLACING, "place ships")
        pending = list(self._unplaced[side])
        if not pending:
            return
        self.boards[side].place_all_automatically(pending, self._rng)
        self._unplaced[side].clear()
        logger.info("fleet_auto_placed", extra={"side": side.value, "ships": len(pending)})

    def finalize_placement_and_start_battle(self) -> None:
        """Freeze both layouts and start the firing phase."""
        with tracer.start_as_current_span("match.start_battle") as span:
            self._require_phase(MatchPhase.PLACING, "start the battle")
            for side in Side:
                if self._unplaced[side]:
                    logger.error(
                        "battle_start_rejected",
                        extra={"side": side.value, "unplaced": len(self._unplaced[side])},
                    )
                    raise InvalidOperationError(
                        f"{side.label} still has {len(self._unplaced[side])} ship(s) to place."
                    )
            for board in self.boards.values():
                board.finalize_placement()
            self.phase = MatchPhase.FIRING
            self.current_turn = Side.PLAYER
            self.battle_start_timestamp = self._clock()
            span.set_attribute("difficulty", self.difficulty.value)
            logger.info(
                "battle_started",
                extra={"difficulty": self.difficulty.value, "phase": self.phase.value},
            )

    # ------------------------------------------------------------------ #
    # Firing
    # ------------------------------------------------------------------ #
    def submit_player_shot(self, coord: Coordinate) -> TurnReport:
        """Fire the human's shot; on a miss the computer takes its whole turn."""
        with tracer.start_as_current_span("match.submit_player_shot") as span:
            span.set_attribute("row", coord.row)
            span.set_attribute("col", coord.col)
            self._require_phase(MatchPhase.FIRING, "fire")
            if self.current_turn is not Side.PLAYER:
                raise InvalidOperationError("It is not the player's turn.")

            result = self._fire(Side.PLAYER, coord)
            computer_shots: tuple[ShotResult, ...] = ()
            if not result.repeated and not result.was_hit and self.phase is MatchPhase.FIRING:
                computer_shots = self.play_computer_turn()
            span.set_attribute("computer_shots", len(computer_shots))
            return TurnReport(
                player_shot=result,
                computer_shots=computer_shots,
                phase=self.phase,
                winner=self.winner,
            )

    def play_computer_turn(self) -> tuple[ShotResult, ...]:
        """Let the computer shoot until it misses (or the match ends)."""
        self._require_phase(MatchPhase.FIRING, "fire")
        self.current_turn = Side.COMPUTER
        shots: list[ShotResult] = []

        def fire(coord: Coordinate) -> ShotResult:
            shot = self._fire(Side.COMPUTER, coord)
            shots.append(shot)
            return shot

        target_board = self.boards[Side.PLAYER]
        with tracer.start_as_current_span("match.computer_turn") as span:
            span.set_attribute("difficulty", self.difficulty.value)
            while self.phase is MatchPhase.FIRING:
                result = take_shot(self.difficulty, target_board, Side.COMPUTER.value, self._rng, fire)
                if self.difficulty is Difficulty.CHEATER or result.repeated or not result.was_hit:
                    break
            span.set_attribute("shots", len(shots))

        if self.phase is MatchPhase.FIRING:
            self.current_turn = Side.PLAYER
        return tuple(shots)

    def _fire(self, side: Side, coord: Coordinate) -> ShotResult:
        defender = side.opponent()
        result = self.boards[defender].resolve_shot(coord, attacker=side.value)
        if result.repeated:
            return result

        delta = self.config.hit_points if result.was_hit else -self.config.miss_penalty
        self.scores[side] += delta
        message = (
            f"{side.label} shoots to [{coord.row},{coord.col}]....... "
            f"{'Hit!' if result.was_hit else 'Missed!'}"
        )
        logger.info(message)
        MOVE_COUNTER.add(1, attributes={"side": side.value, "hit": result.was_hit})

        self._notify_shot(
            ShotEvent(
                side=side,
                coord=coord,
                was_hit=result.was_hit,
                ship_destroyed=result.ship_destroyed,
                message=message,
            )
        )
        self._notify_score(ScoreEvent(side=side, new_score=self.scores[side], delta=delta))

        if result.ship_destroyed:
            ship = self.boards[defender].ship_at(coord)
            if ship is not None and ship not in self._destroyed[defender]:
                self._destroyed[defender].append(ship)
                logger.info(
                    "ship_destroyed",
                    extra={"side": defender.value, "ship_type": ship.ship_type.name},
                )
        if result.was_hit and all(ship.is_destroyed() for ship in self.fleets[defender]):
            self._finish(winner=side)
        return result

    def _finish(self, winner: Side) -> None:
        self.phase = MatchPhase.FINISHED
        self.winner = winner
        start = self.battle_start_timestamp if self.battle_start_timestamp is not None else self._clock()
        self.elapsed_ms = (self._clock() - start) * 1000
        logger.info(
            "match_finished",
            extra={
                "winner": winner.value,
                "elapsed_ms": self.elapsed_ms,
                "score_player": self.scores[Side.PLAYER],
                "score_computer": self.scores[Side.COMPUTER],
            },
        )
        event = MatchFinishedEvent(winner=winner, elapsed_ms=self.elapsed_ms, scores=dict(self.scores))
        for listener in self._listeners:
            listener.on_match_finished(event)

    # ------------------------------------------------------------------ #
    # Internals
    # ------------------------------------------------------------------ #
    def _notify_shot(self, event: ShotEvent) -> None:
        for listener in self._listeners:
            listener.on_shot_resolved(event)

    def _notify_score(self, event: ScoreEvent) -> None:
        for listener in self._listeners:
            listener.on_score_changed(event)

    def _require_phase(self, phase: MatchPhase, action: str) -> None:
        if self.phase is not phase:
            logger.error(
                "action_rejected_wrong_phase",
                extra={"action": action, "phase": self.phase.value, "expected": phase.value},
            )
            raise InvalidOperationError(f"Cannot {action} while the match is {self.phase.value}.")

    def _require_own_ship(self, ship: Ship, side: Side) -> None:
        if ship not in self.fleets[side]:
            raise InvalidOperationError(f"Ship {ship.id} is not part of the {side.value} fleet.")
