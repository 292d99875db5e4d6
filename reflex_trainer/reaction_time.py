from __future__ import annotations

from dataclasses import dataclass

from .clock import Clock, Scheduler
from .cognitive_core import DiscreteTrialEngine, Marker, MarkerShape, TrialTiming
from .geometry import Point, Size, check_reaction_area, distance, random_reaction_target
from .results import AggregateStats, TrialRecord

REACTION_TIME_TITLE = "Reaction Time"

REACTION_TIME_INSTRUCTIONS = (
    "Reaction Time",
    "",
    "Keep your eyes on the red dot in the centre.",
    "When the blue circle appears, look at it and click it",
    "as quickly as you can.",
    "",
    "You will get 5 attempts.",
)


@dataclass(frozen=True, slots=True)
class ReactionTimeConfig:
    trial_count: int = 5
    inter_trial_s: float = 0.25
    response_timeout_s: float | None = None
    pad: float = 50.0
    marker_size: float = 20.0
    target_size: float = 100.0


class ReactionTimeTest(DiscreteTrialEngine):
    """Blue target at a random point away from centre; latency = tap - onset."""

    title = REACTION_TIME_TITLE
    target_color = "blue"

    def __init__(
        self,
        *,
        clock: Clock,
        scheduler: Scheduler,
        viewport: Size,
        seed: int,
        stats: AggregateStats | None = None,
        config: ReactionTimeConfig | None = None,
    ) -> None:
        cfg = config or ReactionTimeConfig()
        if cfg.target_size <= 0.0 or cfg.marker_size <= 0.0:
            raise ValueError("marker sizes must be > 0")
        check_reaction_area(viewport, pad=cfg.pad, marker_size=cfg.marker_size, target_size=cfg.target_size)

        super().__init__(
            clock=clock,
            scheduler=scheduler,
            viewport=viewport,
            seed=seed,
            stats=stats,
            timing=TrialTiming(
                trial_count=cfg.trial_count,
                lead_in_s=0.0,
                inter_trial_s=cfg.inter_trial_s,
                stimulus_s=cfg.response_timeout_s,
            ),
        )
        self._cfg = cfg
        self.target_size = cfg.target_size

        self._last_reaction_s: float | None = None
        self._last_dx = 0.0
        self._last_dy = 0.0

    @property
    def last_reaction_s(self) -> float | None:
        return self._last_reaction_s

    def pointer_tapped(self, at: Point, at_time: float) -> None:
        if not self.running:
            return
        target = self.target_position()
        if target is None:
            return
        if distance(at, target) > self._cfg.target_size / 2.0:
            return
        self._respond(at_time)

    def _next_position(self, index: int) -> Point:
        _ = index
        return random_reaction_target(
            self._rng,
            self._viewport,
            pad=self._cfg.pad,
            marker_size=self._cfg.marker_size,
            target_size=self._cfg.target_size,
        )

    def _center_marker(self) -> Marker | None:
        return Marker(
            shape=MarkerShape.DOT,
            position=self._viewport.center,
            size=self._cfg.marker_size,
            color="red",
        )

    def _on_stimulus(self, index: int, position: Point) -> None:
        _ = index
        self._last_reaction_s = None
        self._last_dx = position.x - self._last_target.x
        self._last_dy = position.y - self._last_target.y

    def _on_trial_recorded(self, record: TrialRecord) -> None:
        if record.latency_s is None:
            return
        self._last_reaction_s = record.latency_s
        self._stats.record(record)

    def _overlay_lines(self) -> list[str]:
        lines: list[str] = []
        if self._last_reaction_s is not None:
            lines.append(f"Reaction: {self._last_reaction_s:.2f} s")
        lines.append(f"Δx: {self._last_dx:.0f}, Δy: {self._last_dy:.0f}")
        return lines

    def _summary(self) -> str:
        answered = [r.latency_s for r in self._records if r.latency_s is not None]
        if not answered:
            return "no responses"
        mean = sum(answered) / len(answered)
        n = len(answered)
        mean_dx = sum(abs(r.delta_x) for r in self._records if r.latency_s is not None) / n
        mean_dy = sum(abs(r.delta_y) for r in self._records if r.latency_s is not None) / n
        return f"avg {mean:.2f} s over {n} taps (Δx {mean_dx:.0f}, Δy {mean_dy:.0f})"


def build_reaction_time_test(
    *,
    clock: Clock,
    scheduler: Scheduler,
    viewport: Size,
    seed: int,
    stats: AggregateStats | None = None,
    config: ReactionTimeConfig | None = None,
) -> ReactionTimeTest:
    return ReactionTimeTest(
        clock=clock,
        scheduler=scheduler,
        viewport=viewport,
        seed=seed,
        stats=stats,
        config=config,
    )
