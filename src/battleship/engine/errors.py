"""Exception hierarchy for the Battleship engine."""

from __future__ import annotations


class BattleshipError(Exception):
    """Base class for every error raised by the engine."""


class ConfigurationError(BattleshipError):
    """A board, fleet or match was configured in a way that cannot be played."""


class InvalidTypeError(ConfigurationError):
    """A ship type outside of the catalog was requested."""


class InvalidOperationError(BattleshipError):
    """The API was called at the wrong moment or with an illegal argument."""


class NoTargetError(InvalidOperationError):
    """A shot was requested against a board with no unfired cell left."""
