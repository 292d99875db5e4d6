from __future__ import annotations

import logging
import random
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import TypeVar

from .clock import Clock, Scheduler
from .geometry import ORIGIN, Point, Size
from .results import AggregateStats, TrialRecord

logger = logging.getLogger(__name__)

T = TypeVar("T")


class MarkerShape(str, Enum):
    DOT = "dot"
    PLUS = "plus"


@dataclass(frozen=True, slots=True)
class Marker:
    shape: MarkerShape
    position: Point
    size: float
    color: str


@dataclass(frozen=True, slots=True)
class StripeLayer:
    widths: tuple[float, ...]
    gap: float
    offset_x: float
    color: str


@dataclass(frozen=True, slots=True)
class ImageGrid:
    images: tuple[str, ...]  # quadrant order: TL, TR, BL, BR
    novel_quadrant: int
    label: str


@dataclass(frozen=True, slots=True)
class RenderFrame:
    """What the presentation layer should draw this frame (pure data)."""

    title: str
    background: str = "black"
    text_color: str = "white"
    headline: str | None = None
    lines: tuple[str, ...] = ()
    fixation: Marker | None = None
    target: Marker | None = None
    stripes: StripeLayer | None = None
    image_grid: ImageGrid | None = None


class SeededRng:
    """Simple seeded RNG wrapper to keep deterministic streams explicit."""

    def __init__(self, seed: int) -> None:
        self._rng = random.Random(int(seed))

    def randint(self, a: int, b: int) -> int:
        return self._rng.randint(a, b)

    def choice(self, seq: Sequence[T]) -> T:
        return self._rng.choice(seq)

    def uniform(self, a: float, b: float) -> float:
        return self._rng.uniform(a, b)

    def random(self) -> float:
        return self._rng.random()

    def sample(self, seq: Sequence[T], k: int) -> list[T]:
        return self._rng.sample(list(seq), k)


def clamp01(x: float) -> float:
    return 0.0 if x <= 0.0 else 1.0 if x >= 1.0 else float(x)


class _EngineState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class TrialEngine:
    """Base for timer-driven stimulus tests.

    - All progression goes through ``_after`` / ``_every_frame``; each callback
      captures the engine generation and does nothing once the engine is
      cancelled, completed, or re-generationed.
    - ``on_complete`` fires exactly once with a human-readable summary.
    - Time is entirely via injected Clock and Scheduler.
    """

    title = "Test"

    def __init__(
        self,
        *,
        clock: Clock,
        scheduler: Scheduler,
        viewport: Size,
        seed: int,
        stats: AggregateStats | None = None,
    ) -> None:
        if viewport.width <= 0 or viewport.height <= 0:
            raise ValueError("viewport must have a positive size")

        self._clock = clock
        self._scheduler = scheduler
        self._viewport = viewport
        self._seed = int(seed)
        self._rng = SeededRng(self._seed)
        self._stats = stats if stats is not None else AggregateStats()

        self._state = _EngineState.IDLE
        self._generation = 0
        self._on_complete: Callable[[str], None] | None = None
        self._started_at_s: float | None = None
        self._records: list[TrialRecord] = []
        self._frame_unsubscribers: list[Callable[[], None]] = []

    @property
    def seed(self) -> int:
        return self._seed

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def running(self) -> bool:
        return self._state is _EngineState.RUNNING

    @property
    def completed(self) -> bool:
        return self._state is _EngineState.COMPLETED

    @property
    def cancelled(self) -> bool:
        return self._state is _EngineState.CANCELLED

    def records(self) -> list[TrialRecord]:
        return list(self._records)

    def start(self, on_complete: Callable[[str], None]) -> None:
        if self._state is not _EngineState.IDLE:
            raise RuntimeError(f"{self.title} has already been started")
        self._state = _EngineState.RUNNING
        self._on_complete = on_complete
        self._started_at_s = self._clock.now()
        logger.info("%s started (seed=%d)", self.title, self._seed)
        self._begin()

    def cancel(self) -> None:
        """Invalidate every outstanding callback; safe to call more than once."""

        if self._state is _EngineState.RUNNING:
            self._state = _EngineState.CANCELLED
            logger.info("%s cancelled", self.title)
        self._generation += 1
        self._on_complete = None
        self._drop_frame_callbacks()

    def pointer_tapped(self, at: Point, at_time: float) -> None:
        _ = (at, at_time)

    def frame(self) -> RenderFrame:
        raise NotImplementedError

    def _begin(self) -> None:
        raise NotImplementedError

    def _after(self, delay_s: float, action: Callable[[], None]) -> None:
        token = self._generation

        def fire() -> None:
            if token != self._generation or self._state is not _EngineState.RUNNING:
                return
            action()

        self._scheduler.after(delay_s, fire)

    def _every_frame(self, action: Callable[[float], None]) -> None:
        token = self._generation

        def tick(now: float) -> None:
            if token != self._generation or self._state is not _EngineState.RUNNING:
                return
            action(now)

        self._frame_unsubscribers.append(self._scheduler.on_frame(tick))

    def _elapsed_s(self, now: float | None = None) -> float:
        if self._started_at_s is None:
            return 0.0
        t = self._clock.now() if now is None else now
        return max(0.0, t - self._started_at_s)

    def _complete(self, summary: str) -> None:
        if self._state is not _EngineState.RUNNING or self._on_complete is None:
            raise RuntimeError(f"{self.title} cannot complete while {self._state.value}")
        self._state = _EngineState.COMPLETED
        self._drop_frame_callbacks()
        logger.info("%s complete: %s", self.title, summary)

        on_complete = self._on_complete
        self._on_complete = None
        on_complete(summary)

    def _drop_frame_callbacks(self) -> None:
        for unsubscribe in self._frame_unsubscribers:
            unsubscribe()
        self._frame_unsubscribers.clear()


@dataclass(frozen=True, slots=True)
class TrialTiming:
    """Per-trial schedule: wait -> fixation -> blank gap -> stimulus.

    ``lead_in_s`` is the wait before the first trial, ``inter_trial_s`` the
    wait before every later one. ``stimulus_s=None`` keeps the stimulus up
    until a response arrives.
    """

    trial_count: int
    lead_in_s: float = 0.0
    inter_trial_s: float = 0.0
    fixation_s: float = 0.0
    gap_s: float = 0.0
    stimulus_s: float | None = None

    def __post_init__(self) -> None:
        if self.trial_count < 0:
            raise ValueError("trial_count must be >= 0")
        for name in ("lead_in_s", "inter_trial_s", "fixation_s", "gap_s"):
            if getattr(self, name) < 0.0:
                raise ValueError(f"{name} must be >= 0")
        if self.stimulus_s is not None and self.stimulus_s <= 0.0:
            raise ValueError("stimulus_s must be > 0")


class TrialStage(str, Enum):
    WAIT = "wait"
    FIXATION = "fixation"
    GAP = "gap"
    STIMULUS = "stimulus"
    DONE = "done"


class DiscreteTrialEngine(TrialEngine):
    """Fixed-count trial loop shared by the discrete tests."""

    background = "black"
    fixation_shape = MarkerShape.PLUS
    fixation_size = 40.0
    fixation_color = "white"
    target_size = 40.0
    target_color = "white"

    def __init__(
        self,
        *,
        clock: Clock,
        scheduler: Scheduler,
        viewport: Size,
        seed: int,
        timing: TrialTiming,
        stats: AggregateStats | None = None,
    ) -> None:
        super().__init__(clock=clock, scheduler=scheduler, viewport=viewport, seed=seed, stats=stats)
        self._timing = timing
        self._stage = TrialStage.WAIT
        self._target: Point | None = None
        self._last_target: Point = ORIGIN
        self._onset_s: float | None = None

    @property
    def stage(self) -> TrialStage:
        return self._stage

    @property
    def timing(self) -> TrialTiming:
        return self._timing

    def target_position(self) -> Point | None:
        """Position of the visible stimulus, or None between stimuli."""

        return self._target if self._stage is TrialStage.STIMULUS else None

    def frame(self) -> RenderFrame:
        fixation = self._center_marker()
        if self._stage is TrialStage.FIXATION:
            fixation = Marker(
                shape=self.fixation_shape,
                position=self._viewport.center,
                size=self.fixation_size,
                color=self.fixation_color,
            )

        target: Marker | None = None
        visible = self.target_position()
        if visible is not None:
            target = Marker(
                shape=MarkerShape.DOT,
                position=visible,
                size=self.target_size,
                color=self.target_color,
            )

        return RenderFrame(
            title=self.title,
            background=self.background,
            lines=tuple(self._overlay_lines()),
            fixation=fixation,
            target=target,
        )

    # Hooks for concrete tests.

    def _next_position(self, index: int) -> Point:
        raise NotImplementedError

    def _center_marker(self) -> Marker | None:
        return None

    def _overlay_lines(self) -> list[str]:
        return []

    def _on_stimulus(self, index: int, position: Point) -> None:
        _ = (index, position)

    def _on_trial_recorded(self, record: TrialRecord) -> None:
        _ = record

    def _summary(self) -> str:
        return f"{len(self._records)} trials presented"

    # Trial loop.

    def _begin(self) -> None:
        self._schedule_next_trial()

    def _schedule_next_trial(self) -> None:
        index = len(self._records)
        if index >= self._timing.trial_count:
            self._stage = TrialStage.DONE
            self._complete(self._summary())
            return

        self._stage = TrialStage.WAIT
        delay = self._timing.lead_in_s if index == 0 else self._timing.inter_trial_s
        self._after(delay, self._begin_fixation)

    def _begin_fixation(self) -> None:
        if self._timing.fixation_s > 0.0:
            self._stage = TrialStage.FIXATION
            self._after(self._timing.fixation_s, self._begin_gap)
        else:
            self._begin_gap()

    def _begin_gap(self) -> None:
        if self._timing.gap_s > 0.0:
            self._stage = TrialStage.GAP
            self._after(self._timing.gap_s, self._present_stimulus)
        else:
            self._present_stimulus()

    def _present_stimulus(self) -> None:
        index = len(self._records)
        position = self._next_position(index)

        self._target = position
        self._onset_s = self._clock.now()
        self._stage = TrialStage.STIMULUS
        logger.debug(
            "%s trial %d onset at t=%.3f pos=(%.0f, %.0f)",
            self.title,
            index,
            self._onset_s,
            position.x,
            position.y,
        )
        self._on_stimulus(index, position)

        if self._timing.stimulus_s is not None:
            self._after(self._timing.stimulus_s, lambda: self._expire(index))

    def _expire(self, index: int) -> None:
        if self._stage is not TrialStage.STIMULUS or len(self._records) != index:
            return
        self._finish_trial(response_s=None)

    def _respond(self, at_time: float) -> TrialRecord:
        assert self._stage is TrialStage.STIMULUS
        return self._finish_trial(response_s=float(at_time))

    def _finish_trial(self, *, response_s: float | None) -> TrialRecord:
        assert self._target is not None
        assert self._onset_s is not None

        record = TrialRecord(
            trial_index=len(self._records),
            onset_s=self._onset_s,
            response_s=response_s,
            target=self._target,
            previous=self._last_target,
        )
        self._records.append(record)
        self._last_target = self._target
        self._target = None
        self._onset_s = None
        self._stage = TrialStage.WAIT

        if record.latency_s is None:
            logger.debug("%s trial %d timed out", self.title, record.trial_index)
        else:
            logger.debug("%s trial %d latency %.3fs", self.title, record.trial_index, record.latency_s)

        self._on_trial_recorded(record)
        self._schedule_next_trial()
        return record
