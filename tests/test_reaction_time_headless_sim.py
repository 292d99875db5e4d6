from __future__ import annotations

from dataclasses import dataclass

import pytest

from reflex_trainer.clock import ClockScheduler
from reflex_trainer.cognitive_core import SeededRng
from reflex_trainer.geometry import Size, random_reaction_target
from reflex_trainer.reaction_time import build_reaction_time_test
from reflex_trainer.results import AggregateStats

VIEWPORT = Size(1024.0, 768.0)


@dataclass
class FakeClock:
    t: float = 0.0

    def now(self) -> float:
        return self.t

    def advance(self, dt: float) -> None:
        self.t += float(dt)


def test_headless_sim_full_run_matches_seeded_targets() -> None:
    seed = 99
    clock = FakeClock()
    sched = ClockScheduler(clock)
    stats = AggregateStats()

    mirror = SeededRng(seed)
    expected = [random_reaction_target(mirror, VIEWPORT) for _ in range(5)]

    engine = build_reaction_time_test(clock=clock, scheduler=sched, viewport=VIEWPORT, seed=seed, stats=stats)
    completions: list[str] = []
    engine.start(completions.append)

    # Frame loop: tap each target 0.35 s after it first becomes visible.
    seen_at: float | None = None
    for _ in range(400):
        sched.pump()
        target = engine.target_position()
        if target is not None:
            if seen_at is None:
                seen_at = clock.now()
            elif clock.now() - seen_at >= 0.35 - 1e-9:
                engine.pointer_tapped(target, clock.now())
                seen_at = None
        if completions:
            break
        clock.advance(1.0 / 20.0)

    assert len(completions) == 1
    records = engine.records()
    assert [r.target for r in records] == expected
    assert all(r.latency_s == pytest.approx(0.35, abs=1e-6) for r in records)
    assert stats.count == 5
    assert stats.average_latency_s() == pytest.approx(0.35, abs=1e-6)
    assert "over 5 taps" in completions[0]
