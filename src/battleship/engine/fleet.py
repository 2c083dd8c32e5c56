"""Ship catalog: the roster each side starts a match with."""

from __future__ import annotations

import logging
from typing import Sequence

from .errors import ConfigurationError
from .ship import Ship, ShipType

logger = logging.getLogger(__name__)

DEFAULT_ROSTER: tuple[ShipType, ...] = (
    ShipType.BATTLESHIP,
    ShipType.DESTROYER,
    ShipType.DESTROYER,
)


def check_dimensions(rows: int, cols: int) -> None:
    """Reject grids that have no cells."""
    if rows <= 0 or cols <= 0:
        logger.error("invalid_board_dimensions", extra={"rows": rows, "cols": cols})
        raise ConfigurationError(f"Board dimensions must be positive, got {rows}x{cols}.")


def check_roster_fits(roster: Sequence[ShipType | str], rows: int, cols: int) -> tuple[ShipType, ...]:
    """Validate that a roster can always be placed on a ``rows`` x ``cols`` grid.

    Returns the roster normalised to ``ShipType`` members.
    """
    check_dimensions(rows, cols)
    resolved = tuple(ShipType.parse(item) for item in roster)
    if not resolved:
        raise ConfigurationError("A roster needs at least one ship.")

    longest_axis = max(rows, cols)
    for ship_type in resolved:
        if ship_type.length > longest_axis:
            logger.error(
                "roster_ship_too_long",
                extra={"ship_type": ship_type.name, "rows": rows, "cols": cols},
            )
            raise ConfigurationError(
                f"{ship_type.name.title()} (length {ship_type.length}) cannot fit a {rows}x{cols} board."
            )

    footprint = sum(ship_type.length for ship_type in resolved)
    if footprint > rows * cols:
        logger.error(
            "roster_footprint_too_large",
            extra={"footprint": footprint, "rows": rows, "cols": cols},
        )
        raise ConfigurationError(
            f"Roster needs {footprint} cells but the board only has {rows * cols}."
        )
    return resolved


def build_fleet(
    roster: Sequence[ShipType | str] = DEFAULT_ROSTER,
    rows: int = 10,
    cols: int = 10,
) -> list[Ship]:
    """Create the unplaced ships for one side."""
    resolved = check_roster_fits(roster, rows, cols)
    return [Ship.create(ship_type) for ship_type in resolved]
