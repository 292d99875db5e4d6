from __future__ import annotations

import logging
from dataclasses import dataclass

from .clock import Clock, Scheduler
from .cognitive_core import Marker, MarkerShape, RenderFrame, TrialEngine
from .geometry import Point, Size, distance, pursuit_position
from .results import AggregateStats, accuracy_percent

logger = logging.getLogger(__name__)

SMOOTH_PURSUIT_TITLE = "Smooth Pursuit"

SMOOTH_PURSUIT_INSTRUCTIONS = (
    "Smooth Pursuit",
    "",
    "A blue circle glides from side to side.",
    "Follow it with your eyes and click on it whenever you can.",
    "Clicks on the circle count as hits, clicks elsewhere as misses.",
)


@dataclass(frozen=True, slots=True)
class SmoothPursuitConfig:
    duration_s: float = 12.0
    omega_rad_s: float = 0.8
    ramp_s: float = 0.8
    amplitude_ratio: float = 0.35
    target_size: float = 60.0
    completion_delay_s: float = 0.6


class SmoothPursuitTest(TrialEngine):
    """Continuous sinusoidal target; taps are hit-tested against the live position.

    The hit test recomputes the target position at the tap's own timestamp
    rather than reusing the last rendered frame.
    """

    title = SMOOTH_PURSUIT_TITLE

    def __init__(
        self,
        *,
        clock: Clock,
        scheduler: Scheduler,
        viewport: Size,
        seed: int,
        stats: AggregateStats | None = None,
        config: SmoothPursuitConfig | None = None,
    ) -> None:
        cfg = config or SmoothPursuitConfig()
        if cfg.duration_s <= 0.0:
            raise ValueError("duration_s must be > 0")
        if cfg.ramp_s < 0.0 or cfg.ramp_s * 2.0 > cfg.duration_s:
            raise ValueError("ramp_s must be in [0, duration_s / 2]")
        if cfg.target_size <= 0.0:
            raise ValueError("target_size must be > 0")
        if cfg.completion_delay_s < 0.0:
            raise ValueError("completion_delay_s must be >= 0")

        super().__init__(clock=clock, scheduler=scheduler, viewport=viewport, seed=seed, stats=stats)
        self._cfg = cfg
        self._hits = 0
        self._misses = 0
        self._run_finished = False
        self._current = viewport.center

    @property
    def hits(self) -> int:
        return self._hits

    @property
    def misses(self) -> int:
        return self._misses

    def accuracy_percent(self) -> float:
        return accuracy_percent(self._hits, self._misses)

    def position_at(self, elapsed_s: float) -> Point:
        return pursuit_position(
            elapsed_s,
            self._viewport,
            omega=self._cfg.omega_rad_s,
            amplitude_ratio=self._cfg.amplitude_ratio,
            duration=self._cfg.duration_s,
            ramp=self._cfg.ramp_s,
        )

    def current_position(self) -> Point:
        """Position as of the most recent frame tick."""

        return self._current

    def pointer_tapped(self, at: Point, at_time: float) -> None:
        if not self.running or self._run_finished or self._started_at_s is None:
            return
        elapsed = at_time - self._started_at_s
        if elapsed < 0.0 or elapsed > self._cfg.duration_s:
            return

        target = self.position_at(elapsed)
        if distance(at, target) <= self._cfg.target_size / 2.0:
            self._hits += 1
            self._stats.record_hit()
        else:
            self._misses += 1
            self._stats.record_miss()
        logger.debug("%s tap at t=%.3f hits=%d misses=%d", self.title, elapsed, self._hits, self._misses)

    def frame(self) -> RenderFrame:
        target: Marker | None = None
        if not self._run_finished:
            target = Marker(
                shape=MarkerShape.DOT,
                position=self.position_at(min(self._elapsed_s(), self._cfg.duration_s)),
                size=self._cfg.target_size,
                color="blue",
            )
        return RenderFrame(
            title=self.title,
            background="black",
            lines=(
                "Smooth Pursuit",
                "Track the blue circle with your eyes.",
                f"Hits: {self._hits}",
                f"Misses: {self._misses}",
                f"Accuracy: {self.accuracy_percent():.0f}%",
            ),
            target=target,
        )

    def _begin(self) -> None:
        self._every_frame(self._on_frame)
        self._after(self._cfg.duration_s, self._finish_run)

    def _on_frame(self, now: float) -> None:
        self._current = self.position_at(min(self._elapsed_s(now), self._cfg.duration_s))

    def _finish_run(self) -> None:
        self._run_finished = True
        self._drop_frame_callbacks()
        self._after(self._cfg.completion_delay_s, lambda: self._complete(self._summary()))

    def _summary(self) -> str:
        return f"{self.accuracy_percent():.0f}% accuracy ({self._hits} hits, {self._misses} misses)"


def build_smooth_pursuit_test(
    *,
    clock: Clock,
    scheduler: Scheduler,
    viewport: Size,
    seed: int,
    stats: AggregateStats | None = None,
    config: SmoothPursuitConfig | None = None,
) -> SmoothPursuitTest:
    return SmoothPursuitTest(
        clock=clock,
        scheduler=scheduler,
        viewport=viewport,
        seed=seed,
        stats=stats,
        config=config,
    )
