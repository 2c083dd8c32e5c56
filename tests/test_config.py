from __future__ import annotations

import pytest
from pydantic import ValidationError

from battleship.config import GameConfig

ENV_NAMES = (
    "BATTLESHIP_ROWS",
    "BATTLESHIP_COLUMNS",
    "BATTLESHIP_HIT_POINTS",
    "BATTLESHIP_MISS_PENALTY",
    "BATTLESHIP_SEED",
    "BATTLESHIP_DIFFICULTY",
    "BATTLESHIP_REVEAL_POLICY",
    "BATTLESHIP_ROSTER",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ENV_NAMES:
        monkeypatch.delenv(name, raising=False)


def test_defaults_describe_the_classic_match() -> None:
    config = GameConfig.from_env()
    assert (config.rows, config.columns) == (10, 10)
    assert config.roster == ["BATTLESHIP", "DESTROYER", "DESTROYER"]
    assert config.difficulty == "easy"
    assert config.reveal_policy == "struck"
    assert (config.hit_points, config.miss_penalty) == (50, 10)
    assert config.seed is None


def test_environment_variables_are_read(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("BATTLESHIP_ROWS", "8")
    monkeypatch.setenv("BATTLESHIP_COLUMNS", " 12 ")
    monkeypatch.setenv("BATTLESHIP_DIFFICULTY", "Hard")
    monkeypatch.setenv("BATTLESHIP_REVEAL_POLICY", "FULL")
    monkeypatch.setenv("BATTLESHIP_SEED", "42")
    monkeypatch.setenv("BATTLESHIP_ROSTER", "battleship, destroyer,,")

    config = GameConfig.from_env()

    assert (config.rows, config.columns) == (8, 12)
    assert config.difficulty == "hard"
    assert config.reveal_policy == "full"
    assert config.seed == 42
    assert config.roster == ["BATTLESHIP", "DESTROYER"]


def test_overrides_win_over_the_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("BATTLESHIP_DIFFICULTY", "medium")
    monkeypatch.setenv("BATTLESHIP_ROWS", "8")

    config = GameConfig.from_env(difficulty="cheater", rows=6)

    assert config.difficulty == "cheater"
    assert config.rows == 6


def test_non_numeric_values_are_rejected() -> None:
    with pytest.raises(ValidationError):
        GameConfig(rows="many")
