"""Top-level session state machine.

The session phase is an explicit tagged variant and every move goes through
the pure ``transition()`` function, so ordering can be tested without any
rendering. Timed moves (interstitial slides, test completion) are delivered
through the scheduler and carry the session generation they were issued in;
anything from an older generation is dropped.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from enum import StrEnum
from typing import Protocol

from .clock import Clock, Scheduler
from .cognitive_core import RenderFrame, SeededRng, TrialEngine
from .geometry import Point, Size
from .novelty_fixation import (
    NOVELTY_FIXATION_INSTRUCTIONS,
    NOVELTY_FIXATION_TITLE,
    build_novelty_fixation_test,
)
from .optokinetic import OPTOKINETIC_INSTRUCTIONS, OPTOKINETIC_TITLE, build_optokinetic_test
from .reaction_time import REACTION_TIME_INSTRUCTIONS, REACTION_TIME_TITLE, build_reaction_time_test
from .results import AggregateStats, ResultsMap, SessionSummary, generate_final_code, session_summary_from
from .saccade_tasks import (
    ANTISACCADE_CONFIG,
    ANTISACCADE_INSTRUCTIONS,
    GAP_EFFECT_CONFIG,
    GAP_EFFECT_INSTRUCTIONS,
    PROSACCADE_CONFIG,
    PROSACCADE_INSTRUCTIONS,
    build_antisaccade_test,
    build_gap_effect_test,
    build_prosaccade_test,
)
from .smooth_pursuit import SMOOTH_PURSUIT_INSTRUCTIONS, SMOOTH_PURSUIT_TITLE, build_smooth_pursuit_test

logger = logging.getLogger(__name__)


class TaskId(StrEnum):
    REACTION_TIME = "reaction_time"
    SMOOTH_PURSUIT = "smooth_pursuit"
    OPTOKINETIC = "optokinetic"
    PROSACCADE = "prosaccade"
    ANTISACCADE = "antisaccade"
    GAP_EFFECT = "gap_effect"
    NOVELTY_FIXATION = "novelty_fixation"


DEFAULT_ORDER: tuple[TaskId, ...] = tuple(TaskId)


class EngineBuilder(Protocol):
    def __call__(
        self,
        *,
        clock: Clock,
        scheduler: Scheduler,
        viewport: Size,
        seed: int,
        stats: AggregateStats | None = None,
    ) -> TrialEngine: ...


@dataclass(frozen=True, slots=True)
class TaskEntry:
    title: str
    instructions: tuple[str, ...]
    build: EngineBuilder


TASK_REGISTRY: dict[TaskId, TaskEntry] = {
    TaskId.REACTION_TIME: TaskEntry(REACTION_TIME_TITLE, REACTION_TIME_INSTRUCTIONS, build_reaction_time_test),
    TaskId.SMOOTH_PURSUIT: TaskEntry(SMOOTH_PURSUIT_TITLE, SMOOTH_PURSUIT_INSTRUCTIONS, build_smooth_pursuit_test),
    TaskId.OPTOKINETIC: TaskEntry(OPTOKINETIC_TITLE, OPTOKINETIC_INSTRUCTIONS, build_optokinetic_test),
    TaskId.PROSACCADE: TaskEntry(PROSACCADE_CONFIG.title, PROSACCADE_INSTRUCTIONS, build_prosaccade_test),
    TaskId.ANTISACCADE: TaskEntry(ANTISACCADE_CONFIG.title, ANTISACCADE_INSTRUCTIONS, build_antisaccade_test),
    TaskId.GAP_EFFECT: TaskEntry(GAP_EFFECT_CONFIG.title, GAP_EFFECT_INSTRUCTIONS, build_gap_effect_test),
    TaskId.NOVELTY_FIXATION: TaskEntry(
        NOVELTY_FIXATION_TITLE,
        NOVELTY_FIXATION_INSTRUCTIONS,
        build_novelty_fixation_test,
    ),
}


@dataclass(frozen=True, slots=True)
class StartPhase:
    pass


@dataclass(frozen=True, slots=True)
class InstructionPhase:
    task: TaskId


@dataclass(frozen=True, slots=True)
class RunningPhase:
    task: TaskId


@dataclass(frozen=True, slots=True)
class InterstitialPhase:
    index: int  # 1-based position of the upcoming task in the order


@dataclass(frozen=True, slots=True)
class ResultsPhase:
    pass


SessionPhase = StartPhase | InstructionPhase | RunningPhase | InterstitialPhase | ResultsPhase


class SessionEvent(StrEnum):
    BEGIN = "begin"
    CONTINUE = "continue"
    INTERSTITIAL_ELAPSED = "interstitial_elapsed"
    TASK_COMPLETE = "task_complete"
    RESTART = "restart"


class TransitionError(RuntimeError):
    """A phase/event pair with no defined transition: a sequencing bug."""


def transition(
    phase: SessionPhase,
    event: SessionEvent,
    *,
    order: tuple[TaskId, ...],
    interstitials: bool = True,
) -> SessionPhase:
    if not order:
        raise ValueError("order must name at least one task")

    if event is SessionEvent.RESTART:
        return StartPhase()

    if isinstance(phase, StartPhase) and event is SessionEvent.BEGIN:
        return InstructionPhase(order[0])

    if isinstance(phase, InstructionPhase) and event is SessionEvent.CONTINUE:
        if phase.task not in order:
            raise TransitionError(f"{phase.task.value} is not part of this session")
        if interstitials:
            return InterstitialPhase(order.index(phase.task) + 1)
        return RunningPhase(phase.task)

    if isinstance(phase, InterstitialPhase) and event is SessionEvent.INTERSTITIAL_ELAPSED:
        if not 1 <= phase.index <= len(order):
            raise TransitionError(f"interstitial {phase.index} is outside a {len(order)}-task order")
        return RunningPhase(order[phase.index - 1])

    if isinstance(phase, RunningPhase) and event is SessionEvent.TASK_COMPLETE:
        if phase.task not in order:
            raise TransitionError(f"{phase.task.value} is not part of this session")
        i = order.index(phase.task)
        if i + 1 >= len(order):
            return ResultsPhase()
        return InstructionPhase(order[i + 1])

    raise TransitionError(f"no transition from {phase!r} on {event.value!r}")


@dataclass(frozen=True, slots=True)
class SessionConfig:
    order: tuple[TaskId, ...] = DEFAULT_ORDER
    interstitials: bool = True
    interstitial_s: float = 3.0
    final_code_length: int = 14

    def __post_init__(self) -> None:
        if not self.order:
            raise ValueError("order must name at least one task")
        if len(set(self.order)) != len(self.order):
            raise ValueError("order must not repeat a task")
        if self.interstitial_s < 0.0:
            raise ValueError("interstitial_s must be >= 0")
        if self.final_code_length <= 0:
            raise ValueError("final_code_length must be > 0")


class Sequencer:
    """Orders the tasks, owns session results, and drives one engine at a time."""

    title = "Reflex Trainer"

    def __init__(
        self,
        *,
        clock: Clock,
        scheduler: Scheduler,
        viewport: Size,
        seed: int,
        config: SessionConfig | None = None,
        registry: Mapping[TaskId, TaskEntry] | None = None,
    ) -> None:
        cfg = config or SessionConfig()
        tasks = dict(TASK_REGISTRY if registry is None else registry)
        missing = [t.value for t in cfg.order if t not in tasks]
        if missing:
            raise ValueError(f"no registered task for: {', '.join(missing)}")

        self._clock = clock
        self._scheduler = scheduler
        self._viewport = viewport
        self._cfg = cfg
        self._tasks = tasks
        self._seed = int(seed)
        self._rng = SeededRng(self._seed)

        self._phase: SessionPhase = StartPhase()
        self._generation = 0
        self._stats = AggregateStats()
        self._results = ResultsMap()
        self._engine: TrialEngine | None = None
        self._summary: SessionSummary | None = None

    @property
    def phase(self) -> SessionPhase:
        return self._phase

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def config(self) -> SessionConfig:
        return self._cfg

    @property
    def stats(self) -> AggregateStats:
        return self._stats

    @property
    def engine(self) -> TrialEngine | None:
        return self._engine

    @property
    def summary(self) -> SessionSummary | None:
        return self._summary

    def results(self) -> dict[str, str]:
        return self._results.as_dict()

    def set_viewport(self, viewport: Size) -> None:
        """Viewport for engines created from now on; a running engine keeps its own."""

        self._viewport = viewport

    def start(self) -> None:
        self._reset_session()
        self._phase = StartPhase()
        self._apply(SessionEvent.BEGIN)

    def advance(self, result: str | None = None) -> None:
        phase = self._phase
        if isinstance(phase, RunningPhase):
            if result is None:
                raise ValueError("a running task must report a result")
            self._results.add(self._tasks[phase.task].title, result)
            engine = self._engine
            self._engine = None
            if engine is not None and engine.running:
                engine.cancel()
            self._apply(SessionEvent.TASK_COMPLETE)
            return

        if result is not None:
            raise RuntimeError(f"results are only accepted while a task runs, not in {phase!r}")
        if isinstance(phase, InstructionPhase):
            self._apply(SessionEvent.CONTINUE)
        elif isinstance(phase, InterstitialPhase):
            self._apply(SessionEvent.INTERSTITIAL_ELAPSED)
        else:
            raise TransitionError(f"cannot advance from {phase!r}")

    def restart(self) -> None:
        self._reset_session()
        self._apply(SessionEvent.RESTART)

    def confirm(self) -> None:
        """Primary action outside a running task: begin, continue, or play again."""

        phase = self._phase
        if isinstance(phase, StartPhase):
            self.start()
        elif isinstance(phase, InstructionPhase):
            self.advance()
        elif isinstance(phase, ResultsPhase):
            self.restart()

    def pointer_tapped(self, at: Point, at_time: float) -> None:
        if isinstance(self._phase, RunningPhase):
            if self._engine is not None:
                self._engine.pointer_tapped(at, at_time)
            return
        self.confirm()

    def frame(self) -> RenderFrame:
        phase = self._phase

        if isinstance(phase, RunningPhase):
            assert self._engine is not None
            return self._engine.frame()

        if isinstance(phase, InterstitialPhase):
            return RenderFrame(
                title=self.title,
                background="white",
                text_color="black",
                headline=f"Test {phase.index}/{len(self._cfg.order)}",
            )

        if isinstance(phase, InstructionPhase):
            lines = list(self._tasks[phase.task].instructions)
            lines.extend(["", "Click or press Enter to continue."])
            return RenderFrame(title=self._tasks[phase.task].title, lines=tuple(lines))

        if isinstance(phase, ResultsPhase):
            assert self._summary is not None
            lines = self._summary.lines()
            lines.extend(["", "Click or press Enter to play again."])
            return RenderFrame(
                title=self.title,
                headline="Game Over!",
                lines=tuple(lines),
            )

        lines = [f"You will complete {len(self._cfg.order)} test(s):", ""]
        lines.extend(f"{i}. {self._tasks[t].title}" for i, t in enumerate(self._cfg.order, start=1))
        lines.extend(["", "Click or press Enter to start."])
        return RenderFrame(title=self.title, headline=self.title, lines=tuple(lines))

    def _reset_session(self) -> None:
        if self._engine is not None:
            self._engine.cancel()
            self._engine = None
        self._generation += 1
        self._stats = AggregateStats()
        self._results.clear()
        self._summary = None
        logger.info("Session reset (generation %d)", self._generation)

    def _apply(self, event: SessionEvent) -> None:
        nxt = transition(
            self._phase,
            event,
            order=self._cfg.order,
            interstitials=self._cfg.interstitials,
        )
        logger.info("Phase %r -> %r on %s", self._phase, nxt, event.value)
        self._phase = nxt
        self._enter(nxt)

    def _enter(self, phase: SessionPhase) -> None:
        if isinstance(phase, InterstitialPhase):
            self._after(self._cfg.interstitial_s, phase, lambda: self._apply(SessionEvent.INTERSTITIAL_ELAPSED))
        elif isinstance(phase, RunningPhase):
            self._launch(phase)
        elif isinstance(phase, ResultsPhase):
            code = generate_final_code(self._rng, length=self._cfg.final_code_length)
            self._summary = session_summary_from(self._stats, self._results, final_code=code)
            logger.info("Session complete: %s", self._results.as_dict())

    def _launch(self, phase: RunningPhase) -> None:
        assert self._engine is None, "only one engine may run at a time"
        entry = self._tasks[phase.task]
        engine = entry.build(
            clock=self._clock,
            scheduler=self._scheduler,
            viewport=self._viewport,
            seed=self._rng.randint(1, 2**31 - 1),
            stats=self._stats,
        )
        self._engine = engine
        token = self._generation
        engine.start(lambda summary: self._on_task_complete(token, phase, summary))

    def _on_task_complete(self, token: int, phase: RunningPhase, summary: str) -> None:
        if token != self._generation or self._phase != phase:
            logger.debug("Dropping stale completion for %s", phase.task.value)
            return
        self.advance(summary)

    def _after(self, delay_s: float, phase: SessionPhase, action: Callable[[], None]) -> None:
        token = self._generation

        def fire() -> None:
            if token != self._generation or self._phase != phase:
                return
            action()

        self._scheduler.after(delay_s, fire)
