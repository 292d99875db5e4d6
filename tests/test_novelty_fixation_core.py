from __future__ import annotations

from dataclasses import dataclass

import pytest

from reflex_trainer.clock import ClockScheduler
from reflex_trainer.cognitive_core import SeededRng, TrialStage
from reflex_trainer.geometry import Size, quadrant_centers
from reflex_trainer.novelty_fixation import (
    DEFAULT_IMAGE_POOL,
    NoveltyFixationConfig,
    NoveltyGridGenerator,
    NoveltyPhaseKind,
    build_novelty_fixation_test,
)

VIEWPORT = Size(960.0, 540.0)


@dataclass
class FakeClock:
    t: float = 0.0

    def now(self) -> float:
        return self.t

    def advance(self, dt: float) -> None:
        self.t += float(dt)


def test_generator_is_deterministic_for_same_seed() -> None:
    g1 = NoveltyGridGenerator(rng=SeededRng(12345), pool=DEFAULT_IMAGE_POOL)
    g2 = NoveltyGridGenerator(rng=SeededRng(12345), pool=DEFAULT_IMAGE_POOL)

    kinds = (NoveltyPhaseKind.START, NoveltyPhaseKind.ONE_BACK, NoveltyPhaseKind.TWO_BACK)
    assert [g1.next_grid(k) for k in kinds] == [g2.next_grid(k) for k in kinds]


def test_n_back_grids_repeat_earlier_images_and_add_one_novel() -> None:
    gen = NoveltyGridGenerator(rng=SeededRng(3), pool=DEFAULT_IMAGE_POOL)

    start = gen.next_grid(NoveltyPhaseKind.START)
    assert len(set(start.images)) == 4
    assert start.label == "start"

    one_back = gen.next_grid(NoveltyPhaseKind.ONE_BACK)
    novel = one_back.images[one_back.novel_quadrant]
    assert novel not in start.images
    familiar = [img for i, img in enumerate(one_back.images) if i != one_back.novel_quadrant]
    assert len(familiar) == 3
    assert set(familiar) <= set(start.images)

    two_back = gen.next_grid(NoveltyPhaseKind.TWO_BACK)
    novel2 = two_back.images[two_back.novel_quadrant]
    assert novel2 not in start.images + one_back.images
    familiar2 = [img for i, img in enumerate(two_back.images) if i != two_back.novel_quadrant]
    assert set(familiar2) <= set(start.images)

    assert gen.history() == [start.images, one_back.images, two_back.images]


def test_generator_rejects_bad_pools_and_missing_history() -> None:
    with pytest.raises(ValueError):
        NoveltyGridGenerator(rng=SeededRng(1), pool=("a", "b", "c"))
    with pytest.raises(ValueError):
        NoveltyGridGenerator(rng=SeededRng(1), pool=("a", "a", "b", "c", "d"))

    gen = NoveltyGridGenerator(rng=SeededRng(1), pool=DEFAULT_IMAGE_POOL)
    with pytest.raises(ValueError):
        gen.next_grid(NoveltyPhaseKind.ONE_BACK)


def test_generator_reports_exhausted_pool() -> None:
    gen = NoveltyGridGenerator(rng=SeededRng(1), pool=("a", "b", "c", "d"))
    gen.next_grid(NoveltyPhaseKind.START)
    with pytest.raises(ValueError):
        gen.next_grid(NoveltyPhaseKind.ONE_BACK)


def test_engine_runs_three_blank_then_grid_phases() -> None:
    clock = FakeClock()
    sched = ClockScheduler(clock)
    completions: list[str] = []
    engine = build_novelty_fixation_test(clock=clock, scheduler=sched, viewport=VIEWPORT, seed=17)
    engine.start(completions.append)
    sched.pump()

    for phase in ("start", "1-back", "2-back"):
        assert engine.stage is TrialStage.GAP
        assert engine.frame().image_grid is None

        clock.advance(1.0)
        sched.pump()
        grid = engine.frame().image_grid
        assert grid is not None
        assert grid.label == phase

        clock.advance(10.0)
        sched.pump()
        assert engine.current_grid() == grid

        clock.advance(0.5)
        sched.pump()

    assert completions == ["3 phases shown (start, 1-back, 2-back)"]

    centers = quadrant_centers(VIEWPORT)
    records = engine.records()
    grids = engine.grids()
    assert len(records) == 3
    assert [r.target for r in records] == [centers[g.novel_quadrant] for g in grids]


def test_engine_rejects_pool_too_small_for_all_phases() -> None:
    clock = FakeClock()
    with pytest.raises(ValueError):
        build_novelty_fixation_test(
            clock=clock,
            scheduler=ClockScheduler(clock),
            viewport=VIEWPORT,
            seed=1,
            config=NoveltyFixationConfig(image_pool=("a", "b", "c", "d", "e")),
        )

    # Six distinct images are exactly enough for start, 1-back and 2-back.
    sched = ClockScheduler(clock)
    completions: list[str] = []
    engine = build_novelty_fixation_test(
        clock=clock,
        scheduler=sched,
        viewport=VIEWPORT,
        seed=1,
        config=NoveltyFixationConfig(image_pool=("a", "b", "c", "d", "e", "f")),
    )
    engine.start(completions.append)
    for _ in range(40):
        sched.pump()
        clock.advance(1.0)
    assert len(completions) == 1
