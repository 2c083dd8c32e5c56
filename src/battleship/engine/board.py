"""Single-side board: ship placement, shot resolution and targeting indices."""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from enum import Enum
from typing import Sequence

import numpy as np
import numpy.typing as npt

from battleship.telemetry import get_meter, get_tracer

from .difficulty import Difficulty, RevealPolicy
from .errors import ConfigurationError, InvalidOperationError
from .fleet import check_dimensions, check_roster_fits
from .ship import Coordinate, Orientation, Ship

logger = logging.getLogger(__name__)
tracer = get_tracer("battleship.engine.board")
meter = get_meter("battleship.engine.board")

PLACEMENT_COUNTER = meter.create_counter(
    "battleship_engine_ship_placements",
    unit="1",
    description="Number of attempted ship placements",
)

SHOT_COUNTER = meter.create_counter(
    "battleship_engine_shots",
    unit="1",
    description="Shots received by a board",
)

RANDOM_PLACEMENT_ATTEMPTS = 200
LAYOUT_ATTEMPTS = 25

CellMask = npt.NDArray[np.bool_]


class CellState(Enum):
    """State of a board cell from the perspective of shots taken."""

    UNKNOWN = "unknown"
    MISS = "miss"
    HIT = "hit"


@dataclass
class ShipCell:
    """One cell of a placed ship and whether it has been hit."""

    coord: Coordinate
    hit: bool = False


@dataclass(frozen=True)
class ShotResult:
    """Outcome of resolving a shot against a board."""

    coord: Coordinate
    was_hit: bool
    ship_destroyed: bool | None = None
    ship_id: str | None = None
    repeated: bool = False


@dataclass(frozen=True)
class LastShot:
    """An attacker's memory of its previous shot on a board."""

    coord: Coordinate
    was_hit: bool


class Board:
    """A rows x cols grid holding one side's fleet.

    ``occupancy`` is only ever written by :meth:`place` and cleared by
    :meth:`delete_ship`. ``fired`` and ``hit`` are boolean grids that only
    grow. Once :meth:`finalize_placement` has run the board accepts shots
    only, and the known-ship/known-empty indices together cover every cell
    that has not been fired at.
    """

    def __init__(
        self,
        rows: int = 10,
        cols: int = 10,
        difficulty: Difficulty | str = Difficulty.EASY,
        reveal_policy: RevealPolicy | str = RevealPolicy.STRUCK,
        owner: str = "unknown",
    ) -> None:
        check_dimensions(rows, cols)
        self.rows = rows
        self.cols = cols
        self.difficulty = Difficulty.parse(difficulty)
        self.reveal_policy = RevealPolicy.parse(reveal_policy)
        self.owner = owner

        self.occupancy: dict[Coordinate, str] = {}
        self.fired: CellMask = np.zeros((rows, cols), dtype=bool)
        self.hit: CellMask = np.zeros((rows, cols), dtype=bool)
        self.pending_ship: Ship | None = None
        self.shots_taken = 0

        self._ships: dict[str, Ship] = {}
        self._ship_cells: dict[str, list[ShipCell]] = {}
        self._starts: dict[str, Coordinate] = {}
        self._known_ship_cells: set[Coordinate] = set()
        self._known_empty_cells: set[Coordinate] = set()
        self._last_shots: dict[str, LastShot] = {}
        self._finalized = False

    # ------------------------------------------------------------------ #
    # Queries
    # ------------------------------------------------------------------ #
    @property
    def dimensions(self) -> tuple[int, int]:
        return self.rows, self.cols

    @property
    def finalized(self) -> bool:
        return self._finalized

    @property
    def known_ship_cells(self) -> frozenset[Coordinate]:
        """Cells believed to hold a ship that have not been fired at yet."""
        return frozenset(self._known_ship_cells)

    @property
    def known_empty_cells(self) -> frozenset[Coordinate]:
        """Cells believed to be water that have not been fired at yet."""
        return frozenset(self._known_empty_cells)

    @property
    def placed_ships(self) -> list[Ship]:
        return list(self._ships.values())

    def is_valid_coordinate(self, coord: Coordinate) -> bool:
        """Check whether a coordinate lies inside the board boundaries."""
        return 0 <= coord.row < self.rows and 0 <= coord.col < self.cols

    def all_cells(self) -> list[Coordinate]:
        return [Coordinate(row, col) for row in range(self.rows) for col in range(self.cols)]

    def ship_at(self, coord: Coordinate) -> Ship | None:
        ship_id = self.occupancy.get(coord)
        return self._ships.get(ship_id) if ship_id is not None else None

    def ship_cells(self, ship_id: str) -> list[ShipCell]:
        """Return a copy of the cells a placed ship covers, in placement order."""
        return [ShipCell(cell.coord, cell.hit) for cell in self._ship_cells.get(ship_id, [])]

    def ship_start(self, ship: Ship) -> Coordinate | None:
        """Return the cell a placed ship was anchored at, if it is placed."""
        return self._starts.get(ship.id)

    def is_fired(self, coord: Coordinate) -> bool:
        return bool(self.fired[coord.row, coord.col])

    def is_hit(self, coord: Coordinate) -> bool:
        return bool(self.hit[coord.row, coord.col])

    def get_cell_state(self, coord: Coordinate) -> CellState:
        """Return the state of a cell after shots have been taken."""
        if not self.is_fired(coord):
            return CellState.UNKNOWN
        return CellState.HIT if self.is_hit(coord) else CellState.MISS

    def fired_cells(self) -> set[Coordinate]:
        return _mask_to_cells(self.fired)

    def hit_cells(self) -> set[Coordinate]:
        return _mask_to_cells(self.hit)

    def unfired_cells(self) -> list[Coordinate]:
        """Return every cell not fired at yet, in row-major order."""
        return [Coordinate(int(row), int(col)) for row, col in np.argwhere(~self.fired)]

    def all_ships_destroyed(self) -> bool:
        """True when at least one ship is placed and every placed ship is destroyed."""
        return bool(self._ships) and all(ship.is_destroyed() for ship in self._ships.values())

    def last_shot(self, attacker: str) -> LastShot | None:
        """Return what ``attacker`` remembers about its previous shot here."""
        return self._last_shots.get(attacker)

    # ------------------------------------------------------------------ #
    # Placement
    # ------------------------------------------------------------------ #
    def compute_fit(self, start: Coordinate, ship: Ship) -> list[Coordinate] | None:
        """Return the cells ``ship`` would cover from ``start``, or None if it does not fit.

        Cells already owned by ``ship`` itself count as free so a placed
        ship can be re-validated in place after a rotation.
        """
        cells = ship.cells_from(start)
        for coord in cells:
            if not self.is_valid_coordinate(coord):
                return None
            owner = self.occupancy.get(coord)
            if owner is not None and owner != ship.id:
                return None
        return cells

    def prepare_ship(self, ship: Ship) -> None:
        """Select the ship that the next :meth:`place` call will position."""
        self._require_placing("prepare_ship")
        self.pending_ship = ship

    def cancel_pending_ship(self) -> Ship | None:
        ship, self.pending_ship = self.pending_ship, None
        return ship

    def place(self, start: Coordinate, ship: Ship | None = None) -> bool:
        """Add ship to the board if placement is valid."""
        self._require_placing("place")
        ship = ship or self.pending_ship
        if ship is None:
            raise InvalidOperationError("No ship given and no ship pending placement.")

        with tracer.start_as_current_span("board.place") as span:
            span.set_attribute("ship.id", ship.id)
            span.set_attribute("ship.type", ship.ship_type.name)
            span.set_attribute("ship.length", ship.length)
            span.set_attribute("ship.start.row", start.row)
            span.set_attribute("ship.start.col", start.col)
            span.set_attribute("board.owner", self.owner)
            log_extra = {
                "owner": self.owner,
                "ship_id": ship.id,
                "ship_type": ship.ship_type.name,
                "orientation": ship.orientation.name,
                "row": start.row,
                "col": start.col,
            }

            cells = self.compute_fit(start, ship)
            if not cells:
                PLACEMENT_COUNTER.add(1, attributes={"result": "failed", "owner": self.owner})
                span.set_attribute("placement.fits", False)
                logger.debug("ship_placement_failed", extra=log_extra)
                return False

            if ship.id in self._ship_cells:
                self._release(ship.id)
            for coord in cells:
                self.occupancy[coord] = ship.id
            self._ship_cells[ship.id] = [ShipCell(coord) for coord in cells]
            self._ships[ship.id] = ship
            self._starts[ship.id] = start
            if self.pending_ship is ship:
                self.pending_ship = None

            PLACEMENT_COUNTER.add(1, attributes={"result": "success", "owner": self.owner})
            span.set_attribute("placement.fits", True)
            logger.info("ship_placed", extra=log_extra)
            return True

    def delete_ship(self, ship: Ship) -> None:
        """Lift a placed ship off the board so it can be repositioned."""
        self._require_placing("delete_ship")
        if ship.id not in self._ship_cells:
            return
        self._release(ship.id)
        del self._ships[ship.id]
        logger.info("ship_removed", extra={"owner": self.owner, "ship_id": ship.id})

    def rotate_placed_ship(self, ship: Ship) -> bool:
        """Rotate a placed ship around its start cell, undoing the rotation if it no longer fits."""
        self._require_placing("rotate_placed_ship")
        start = self._starts.get(ship.id)
        if start is None:
            raise InvalidOperationError(f"Ship {ship.id} is not placed on this board.")
        ship.rotate()
        if self.place(start, ship):
            return True
        ship.rotate()
        return False

    def place_all_automatically(self, ships: Sequence[Ship], rng: random.Random | None = None) -> None:
        """Randomly place every ship in ``ships``.

        Each ship first tries uniformly random starts and orientations. If
        that keeps failing, a random choice among every remaining legal
        position is taken, and if no legal position remains the whole
        layout is started again. Raises ConfigurationError if no layout
        is found.
        """
        self._require_placing("place_all_automatically")
        check_roster_fits([ship.ship_type for ship in ships], self.rows, self.cols)
        rng = rng or random.Random()

        with tracer.start_as_current_span("board.place_all_automatically") as span:
            span.set_attribute("board.owner", self.owner)
            span.set_attribute("ships", len(ships))
            for layout in range(1, LAYOUT_ATTEMPTS + 1):
                placed: list[Ship] = []
                for ship in ships:
                    if not self._place_randomly(ship, rng):
                        break
                    placed.append(ship)
                if len(placed) == len(ships):
                    span.set_attribute("layouts", layout)
                    return
                for ship in placed:
                    self.delete_ship(ship)
                logger.debug("random_layout_restarted", extra={"owner": self.owner, "layout": layout})

        logger.error("random_layout_failed", extra={"owner": self.owner, "ships": len(ships)})
        raise ConfigurationError(
            f"Could not find a layout for {len(ships)} ships on a {self.rows}x{self.cols} board."
        )

    def _place_randomly(self, ship: Ship, rng: random.Random) -> bool:
        for attempt in range(1, RANDOM_PLACEMENT_ATTEMPTS + 1):
            ship.orientation = rng.choice(list(Orientation))
            start = Coordinate(rng.randrange(self.rows), rng.randrange(self.cols))
            if self.place(start, ship):
                logger.debug(
                    "random_ship_placed",
                    extra={"ship_type": ship.ship_type.name, "attempts": attempt, "owner": self.owner},
                )
                return True

        candidates = [
            (orientation, start)
            for orientation in Orientation
            for start in self.all_cells()
            if self.compute_fit(start, _probe(ship, orientation))
        ]
        if not candidates:
            return False
        ship.orientation, start = rng.choice(candidates)
        return self.place(start, ship)

    def finalize_placement(self) -> None:
        """Close the placement phase and build the targeting indices."""
        if self._finalized:
            raise InvalidOperationError("Placement has already been finalized on this board.")
        with tracer.start_as_current_span("board.finalize_placement") as span:
            self._finalized = True
            self.pending_ship = None
            unfired = set(self.unfired_cells())
            if self.reveal_policy is RevealPolicy.FULL:
                ship_cells = {cell.coord for cells in self._ship_cells.values() for cell in cells}
            else:
                ship_cells = {
                    cell.coord
                    for ship_id, cells in self._ship_cells.items()
                    if self._ships[ship_id].damages
                    for cell in cells
                }
            self._known_ship_cells = ship_cells & unfired
            self._known_empty_cells = unfired - self._known_ship_cells
            span.set_attribute("known_ship_cells", len(self._known_ship_cells))
            span.set_attribute("known_empty_cells", len(self._known_empty_cells))
            logger.info(
                "placement_finalized",
                extra={
                    "owner": self.owner,
                    "ships": len(self._ships),
                    "reveal_policy": self.reveal_policy.value,
                    "known_ship_cells": len(self._known_ship_cells),
                },
            )

    # ------------------------------------------------------------------ #
    # Firing
    # ------------------------------------------------------------------ #
    def resolve_shot(self, coord: Coordinate, attacker: str = "opponent") -> ShotResult:
        """Register a shot at this board and return its outcome.

        Shooting a cell twice leaves the grids, the known-cell indices and
        the attacker's memory untouched and reports the first outcome again
        with ``repeated`` set. Only ``shots_taken`` moves: it counts every
        request that names a cell on the board, repeated or not.
        """
        with tracer.start_as_current_span("board.resolve_shot") as span:
            span.set_attribute("shot.row", coord.row)
            span.set_attribute("shot.col", coord.col)
            span.set_attribute("board.owner", self.owner)
            span.set_attribute("attacker", attacker)
            if not self.is_valid_coordinate(coord):
                logger.error(
                    "shot_out_of_bounds",
                    extra={"row": coord.row, "col": coord.col, "owner": self.owner},
                )
                raise InvalidOperationError(f"Shot at ({coord.row}, {coord.col}) is out of bounds.")

            self.shots_taken += 1
            ship = self.ship_at(coord)

            if self.is_fired(coord):
                was_hit = self.is_hit(coord)
                span.set_attribute("shot.outcome", "repeated")
                logger.debug(
                    "shot_repeated",
                    extra={"row": coord.row, "col": coord.col, "owner": self.owner},
                )
                return ShotResult(
                    coord=coord,
                    was_hit=was_hit,
                    ship_destroyed=ship.is_destroyed() if was_hit and ship else None,
                    ship_id=ship.id if was_hit and ship else None,
                    repeated=True,
                )

            self.fired[coord.row, coord.col] = True

            if ship is None:
                self._known_empty_cells.discard(coord)
                self._last_shots[attacker] = LastShot(coord, False)
                span.set_attribute("shot.outcome", "miss")
                SHOT_COUNTER.add(1, attributes={"outcome": "miss", "owner": self.owner})
                logger.info(
                    "shot_miss", extra={"row": coord.row, "col": coord.col, "owner": self.owner}
                )
                return ShotResult(coord=coord, was_hit=False)

            first_strike = not ship.damages
            self.hit[coord.row, coord.col] = True
            ship.add_damage(coord)
            for cell in self._ship_cells[ship.id]:
                if cell.coord == coord:
                    cell.hit = True
            self._known_ship_cells.discard(coord)
            self._known_empty_cells.discard(coord)
            if first_strike and self._finalized and self.reveal_policy is RevealPolicy.STRUCK:
                self._reveal(ship.id)
            destroyed = ship.is_destroyed()
            self._last_shots[attacker] = LastShot(coord, True)

            span.set_attribute("shot.outcome", "hit")
            span.set_attribute("ship.destroyed", destroyed)
            SHOT_COUNTER.add(1, attributes={"outcome": "hit", "owner": self.owner})
            logger.info(
                "shot_hit",
                extra={
                    "row": coord.row,
                    "col": coord.col,
                    "ship_type": ship.ship_type.name,
                    "destroyed": destroyed,
                    "owner": self.owner,
                },
            )
            return ShotResult(coord=coord, was_hit=True, ship_destroyed=destroyed, ship_id=ship.id)

    # ------------------------------------------------------------------ #
    # Internals
    # ------------------------------------------------------------------ #
    def _require_placing(self, action: str) -> None:
        if self._finalized:
            logger.error("placement_after_finalize", extra={"action": action, "owner": self.owner})
            raise InvalidOperationError(f"Cannot {action} after placement has been finalized.")

    def _release(self, ship_id: str) -> None:
        for cell in self._ship_cells.pop(ship_id, []):
            if self.occupancy.get(cell.coord) == ship_id:
                del self.occupancy[cell.coord]
        self._starts.pop(ship_id, None)

    def _reveal(self, ship_id: str) -> None:
        revealed = {cell.coord for cell in self._ship_cells[ship_id] if not self.is_fired(cell.coord)}
        self._known_ship_cells |= revealed
        self._known_empty_cells -= revealed


def _probe(ship: Ship, orientation: Orientation) -> Ship:
    """A stand-in sharing ``ship``'s identity with a different orientation."""
    return Ship(ship.ship_type, orientation, id=ship.id)


def _mask_to_cells(mask: CellMask) -> set[Coordinate]:
    return {Coordinate(int(row), int(col)) for row, col in np.argwhere(mask)}
