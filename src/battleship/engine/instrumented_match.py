"""Match controller with a match-long span and per-match metrics."""

from __future__ import annotations

import time
from typing import Any

from battleship.engine.board import ShotResult
from battleship.engine.errors import InvalidOperationError
from battleship.engine.match import (
    MatchController,
    MatchFinishedEvent,
    MatchListener,
    MatchPhase,
    ShotEvent,
    TurnReport,
)
from battleship.engine.ship import Coordinate
from battleship.telemetry import get_logger, get_tracer, record_game_histogram, record_game_metric


class _MetricsListener(MatchListener):
    """Turns match notifications into counters."""

    def __init__(self, owner: InstrumentedMatchController) -> None:
        self._owner = owner

    def on_shot_resolved(self, event: ShotEvent) -> None:
        record_game_metric("battleship_shots_total", 1, {"side": event.side.name})
        record_game_metric(
            "battleship_shots_by_result_total",
            1,
            {"side": event.side.name, "result": "hit" if event.was_hit else "miss"},
        )
        if event.ship_destroyed:
            record_game_metric("battleship_ships_destroyed_total", 1, {"side": event.side.name})

    def on_match_finished(self, event: MatchFinishedEvent) -> None:
        self._owner._finish_match(event)


class InstrumentedMatchController(MatchController):
    """Wraps MatchController with tracing, metrics, and logging."""

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        self._logger = get_logger("battleship.engine")
        self._tracer = get_tracer("battleship.engine")
        self._match_span = None
        self._match_start_time: float | None = None
        self._start_match_span()
        try:
            super().__init__(*args, **kwargs)
        except Exception:
            self._close_match_span()
            raise
        self.add_listener(_MetricsListener(self))
        self._match_span.set_attribute("difficulty", self.difficulty.value)
        self._match_span.set_attribute("board.rows", self.config.rows)
        self._match_span.set_attribute("board.cols", self.config.columns)

    def finalize_placement_and_start_battle(self) -> None:
        with self._tracer.start_as_current_span("battleship.engine.start_battle") as span:
            self._logger.info("Battle start requested")
            super().finalize_placement_and_start_battle()
            span.set_attribute("player_ships", len(self.placed_ships()))
            record_game_metric(
                "battleship_battle_started_total",
                1,
                {"difficulty": self.difficulty.value},
            )

    def submit_player_shot(self, coord: Coordinate) -> TurnReport:
        with self._tracer.start_as_current_span("battleship.engine.player_shot") as span:
            span.set_attribute("coord.row", coord.row)
            span.set_attribute("coord.col", coord.col)

            try:
                report = super().submit_player_shot(coord)
            except InvalidOperationError as exc:
                record_game_metric(
                    "battleship_invalid_shots_total",
                    1,
                    {"reason": "invalid_operation"},
                )
                span.record_exception(exc)
                span.set_attribute("error", True)
                self._logger.error("Invalid shot at (%d,%d): %s", coord.row, coord.col, exc)
                raise

            span.set_attribute("hit", report.player_shot.was_hit)
            span.set_attribute("repeated", report.player_shot.repeated)
            span.set_attribute("computer_shots", len(report.computer_shots))
            return report

    def play_computer_turn(self) -> tuple[ShotResult, ...]:
        start = time.perf_counter()
        shots = super().play_computer_turn()
        record_game_histogram(
            "battleship_computer_turn_latency_ms",
            (time.perf_counter() - start) * 1000,
            {"difficulty": self.difficulty.value},
        )
        return shots

    def _start_match_span(self) -> None:
        self._match_start_time = time.perf_counter()
        self._match_span = self._tracer.start_span("battleship.engine.match")

    def _finish_match(self, event: MatchFinishedEvent) -> None:
        duration = (time.perf_counter() - self._match_start_time) if self._match_start_time else 0.0
        total_shots = sum(board.shots_taken for board in self.boards.values())
        winner = event.winner.name

        record_game_metric("battleship_match_completed_total", 1, {"winner": winner})
        record_game_histogram("battleship_match_duration_ms", event.elapsed_ms, {"winner": winner})

        with self._tracer.start_as_current_span("battleship.engine.match_complete") as span:
            span.set_attribute("winner", winner)
            span.set_attribute("shots", total_shots)
            span.set_attribute("battle_ms", event.elapsed_ms)

        if self._match_span is not None:
            self._match_span.set_attribute("winner", winner)
            self._match_span.set_attribute("shots", total_shots)
            self._match_span.set_attribute("duration_ms", duration * 1000)

        self._logger.info(
            "Match finished. Winner=%s shots=%d battle_ms=%.1f",
            winner,
            total_shots,
            event.elapsed_ms,
        )
        self._close_match_span()

    def _close_match_span(self) -> None:
        if self._match_span is not None:
            self._match_span.end()
            self._match_span = None

    @property
    def match_open(self) -> bool:
        """True while the match-long span is still recording."""
        return self.phase is not MatchPhase.FINISHED and self._match_span is not None
