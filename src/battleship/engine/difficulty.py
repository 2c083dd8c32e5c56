"""Difficulty tiers and known-cell reveal policies."""

from __future__ import annotations

from enum import Enum

from .errors import ConfigurationError


class Difficulty(Enum):
    """How the computer targets the board it attacks."""

    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"
    CHEATER = "cheater"

    @classmethod
    def parse(cls, value: Difficulty | str) -> Difficulty:
        """Resolve a difficulty from an enum member or its string value."""
        if isinstance(value, Difficulty):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError as exc:
            raise ConfigurationError(f"Unknown difficulty: {value!r}") from exc


class RevealPolicy(Enum):
    """Which ship cells the known-ship index exposes to targeting.

    ``FULL`` fills the index with every ship cell when placement ends.
    ``STRUCK`` starts empty and adds a ship's remaining cells once it has
    been hit at least once.
    """

    FULL = "full"
    STRUCK = "struck"

    @classmethod
    def parse(cls, value: RevealPolicy | str) -> RevealPolicy:
        if isinstance(value, RevealPolicy):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError as exc:
            raise ConfigurationError(f"Unknown reveal policy: {value!r}") from exc
