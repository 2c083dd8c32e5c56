"""Match configuration."""

from __future__ import annotations

import os
from typing import Any, Dict

from pydantic import BaseModel, Field

from battleship.engine.fleet import DEFAULT_ROSTER


class GameConfig(BaseModel):
    """Settings a match is built from.

    Values are only type-checked here. Rule checks (difficulty names, board
    size, whether the roster fits) happen when a match is created from the
    config and raise ``ConfigurationError``.
    """

    rows: int = 10
    columns: int = 10
    roster: list[str] = Field(default_factory=lambda: [ship.name for ship in DEFAULT_ROSTER])
    difficulty: str = "easy"
    reveal_policy: str = "struck"
    hit_points: int = 50
    miss_penalty: int = 10
    seed: int | None = None

    @classmethod
    def from_env(cls, **overrides: Any) -> "GameConfig":
        """Construct config from ``BATTLESHIP_*`` env vars; overrides win."""

        data: Dict[str, Any] = {}

        int_fields = {
            "rows": "BATTLESHIP_ROWS",
            "columns": "BATTLESHIP_COLUMNS",
            "hit_points": "BATTLESHIP_HIT_POINTS",
            "miss_penalty": "BATTLESHIP_MISS_PENALTY",
            "seed": "BATTLESHIP_SEED",
        }
        for field, env_name in int_fields.items():
            value = os.getenv(env_name)
            if value is not None and value.strip():
                data[field] = int(value)

        for field, env_name in (
            ("difficulty", "BATTLESHIP_DIFFICULTY"),
            ("reveal_policy", "BATTLESHIP_REVEAL_POLICY"),
        ):
            value = os.getenv(env_name)
            if value:
                data[field] = value.strip().lower()

        roster_env = os.getenv("BATTLESHIP_ROSTER")
        if roster_env:
            data["roster"] = [part.strip().upper() for part in roster_env.split(",") if part.strip()]

        data.update(overrides)
        return cls(**data)
