from __future__ import annotations

from dataclasses import dataclass

from reflex_trainer.clock import ClockScheduler
from reflex_trainer.geometry import Size
from reflex_trainer.reaction_time import ReactionTimeTest
from reflex_trainer.results import FINAL_CODE_ALPHABET
from reflex_trainer.sequencer import (
    DEFAULT_ORDER,
    TASK_REGISTRY,
    InstructionPhase,
    InterstitialPhase,
    ResultsPhase,
    RunningPhase,
    Sequencer,
    SessionConfig,
    TaskId,
)
from reflex_trainer.smooth_pursuit import SmoothPursuitTest

VIEWPORT = Size(1280.0, 720.0)
STEP = 0.05


@dataclass
class FakeClock:
    t: float = 0.0

    def now(self) -> float:
        return self.t

    def advance(self, dt: float) -> None:
        self.t += float(dt)


def _play(seq: Sequencer, clock: FakeClock, sched: ClockScheduler, *, limit_s: float) -> list[object]:
    """Frame loop standing in for a user: confirm instructions, tap targets."""

    phases: list[object] = []
    seen_at: float | None = None
    for _ in range(int(limit_s / STEP)):
        sched.pump()
        phase = seq.phase
        if not phases or phases[-1] != phase:
            phases.append(phase)

        if isinstance(phase, ResultsPhase):
            break
        if isinstance(phase, InstructionPhase):
            seq.confirm()
        elif isinstance(phase, RunningPhase):
            engine = seq.engine
            if isinstance(engine, ReactionTimeTest):
                target = engine.target_position()
                if target is None:
                    seen_at = None
                elif seen_at is None:
                    seen_at = clock.now()
                elif clock.now() - seen_at >= 0.3 - 1e-9:
                    seq.pointer_tapped(target, clock.now())
                    seen_at = None
            elif isinstance(engine, SmoothPursuitTest) and engine.hits == 0:
                marker = engine.frame().target
                if marker is not None:
                    seq.pointer_tapped(marker.position, clock.now())

        clock.advance(STEP)
    return phases


def test_headless_sim_full_session_reaches_results() -> None:
    clock = FakeClock()
    sched = ClockScheduler(clock)
    seq = Sequencer(clock=clock, scheduler=sched, viewport=VIEWPORT, seed=2024)
    seq.start()

    phases = _play(seq, clock, sched, limit_s=240.0)

    assert isinstance(seq.phase, ResultsPhase)
    interstitials = [p for p in phases if isinstance(p, InterstitialPhase)]
    assert [p.index for p in interstitials] == list(range(1, len(DEFAULT_ORDER) + 1))
    running = [p.task for p in phases if isinstance(p, RunningPhase)]
    assert running == list(DEFAULT_ORDER)

    results = seq.results()
    assert list(results) == [TASK_REGISTRY[t].title for t in DEFAULT_ORDER]
    assert results["Reaction Time"].startswith("avg 0.30 s over 5 taps")
    assert results["Smooth Pursuit"] == "100% accuracy (1 hits, 0 misses)"
    assert results["Prosaccade"] == "5 trials presented"
    assert results["Novelty Fixation"] == "3 phases shown (start, 1-back, 2-back)"

    stats = seq.stats
    assert stats.count == 5
    assert stats.hit_count == 1
    assert stats.miss_count == 0

    summary = seq.summary
    assert summary is not None
    assert summary.accuracy_percent == 100.0
    assert all(ch in FINAL_CODE_ALPHABET for ch in summary.final_code)
    assert f"Final score: {summary.final_code}" in seq.frame().lines


def test_headless_sim_single_test_session() -> None:
    clock = FakeClock()
    sched = ClockScheduler(clock)
    seq = Sequencer(
        clock=clock,
        scheduler=sched,
        viewport=VIEWPORT,
        seed=5,
        config=SessionConfig(order=(TaskId.OPTOKINETIC,), interstitials=False),
    )
    seq.start()

    phases = _play(seq, clock, sched, limit_s=30.0)

    assert phases[0] == InstructionPhase(TaskId.OPTOKINETIC)
    assert phases[1] == RunningPhase(TaskId.OPTOKINETIC)
    assert isinstance(seq.phase, ResultsPhase)
    assert list(seq.results()) == ["Optokinetic"]
    assert seq.stats.count == 0
