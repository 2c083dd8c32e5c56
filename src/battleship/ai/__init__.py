"""AI package exports."""

from .targeting import (
    cheater_burst,
    choose_easy,
    choose_hard,
    choose_medium,
    choose_target,
    hunt_around,
    random_unfired,
    take_shot,
)

__all__ = [
    "cheater_burst",
    "choose_easy",
    "choose_hard",
    "choose_medium",
    "choose_target",
    "hunt_around",
    "random_unfired",
    "take_shot",
]
