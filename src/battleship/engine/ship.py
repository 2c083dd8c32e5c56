"""Ship domain model for the Battleship engine."""

from __future__ import annotations

import itertools
from dataclasses import dataclass, field
from enum import Enum

from .errors import InvalidTypeError

_SHIP_IDS = itertools.count(1)


@dataclass(frozen=True, order=True)
class Coordinate:
    """Immutable board coordinate."""

    row: int
    col: int

    def key(self) -> str:
        """Return the ``"row|col"`` form used when a cell is serialised."""
        return f"{self.row}|{self.col}"

    @classmethod
    def from_key(cls, key: str) -> Coordinate:
        """Parse a ``"row|col"`` key back into a coordinate."""
        row, sep, col = key.partition("|")
        if not sep:
            raise ValueError(f"Malformed cell key: {key!r}")
        return cls(int(row), int(col))

    def offset(self, delta_row: int, delta_col: int) -> Coordinate:
        return Coordinate(self.row + delta_row, self.col + delta_col)


class Orientation(Enum):
    """Allowed ship orientations."""

    HORIZONTAL = "horizontal"
    VERTICAL = "vertical"

    def flipped(self) -> Orientation:
        """Return the other orientation."""
        return Orientation.VERTICAL if self is Orientation.HORIZONTAL else Orientation.HORIZONTAL


class ShipType(Enum):
    """All supported ship classes and their lengths."""

    BATTLESHIP = 5
    DESTROYER = 4

    @property
    def length(self) -> int:
        """Return the number of contiguous cells the ship occupies."""
        return self.value

    @classmethod
    def parse(cls, value: ShipType | str) -> ShipType:
        """Resolve a ship type from an enum member or its (case-insensitive) name."""
        if isinstance(value, ShipType):
            return value
        try:
            return cls[str(value).strip().upper()]
        except KeyError as exc:
            raise InvalidTypeError(f"Unknown ship type: {value!r}") from exc


@dataclass(eq=False)
class Ship:
    """A single ship of a fleet.

    Ships are created unplaced; the board they are placed on owns their
    cells. ``damages`` only ever holds cells the board has confirmed as
    belonging to this ship.
    """

    ship_type: ShipType
    orientation: Orientation = Orientation.VERTICAL
    id: str = field(default_factory=lambda: f"ship-{next(_SHIP_IDS)}")
    damages: set[Coordinate] = field(default_factory=set)

    @classmethod
    def create(cls, ship_type: ShipType | str) -> Ship:
        """Build a fresh, undamaged ship of the given catalog type."""
        return cls(ShipType.parse(ship_type))

    @property
    def length(self) -> int:
        return self.ship_type.length

    def add_damage(self, coord: Coordinate) -> None:
        """Record a hit on one of the ship's cells; repeated hits are ignored."""
        self.damages.add(coord)

    def is_destroyed(self) -> bool:
        """Return True once every cell of the ship has been hit."""
        return len(self.damages) == self.length

    def rotate(self) -> Orientation:
        """Flip the orientation. Callers re-validate the placement afterwards."""
        self.orientation = self.orientation.flipped()
        return self.orientation

    def cells_from(self, start: Coordinate) -> list[Coordinate]:
        """Return the run of cells the ship would cover starting at ``start``."""
        if self.orientation is Orientation.HORIZONTAL:
            return [start.offset(0, offset) for offset in range(self.length)]
        return [start.offset(offset, 0) for offset in range(self.length)]
