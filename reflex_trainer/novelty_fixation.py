from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum

from .clock import Clock, Scheduler
from .cognitive_core import DiscreteTrialEngine, ImageGrid, RenderFrame, SeededRng, TrialStage, TrialTiming
from .geometry import Point, Size, quadrant_centers
from .results import AggregateStats

NOVELTY_FIXATION_TITLE = "Novelty Fixation"

NOVELTY_FIXATION_INSTRUCTIONS = (
    "Novelty Fixation",
    "",
    "Four pictures will appear, one in each corner of the screen.",
    "Look freely at the pictures. Some you will have seen before,",
    "one will be new each time.",
)


class NoveltyPhaseKind(StrEnum):
    START = "start"
    ONE_BACK = "1-back"
    TWO_BACK = "2-back"


NOVELTY_PHASES: tuple[NoveltyPhaseKind, ...] = (
    NoveltyPhaseKind.START,
    NoveltyPhaseKind.ONE_BACK,
    NoveltyPhaseKind.TWO_BACK,
)

DEFAULT_IMAGE_POOL: tuple[str, ...] = tuple(f"img-{i:02d}" for i in range(12))


@dataclass(frozen=True, slots=True)
class NoveltyFixationConfig:
    blank_s: float = 1.0
    display_s: float = 10.5
    image_pool: tuple[str, ...] = DEFAULT_IMAGE_POOL


class NoveltyGridGenerator:
    """Deterministic 2x2 grids: one never-seen image plus three n-back repeats."""

    def __init__(self, *, rng: SeededRng, pool: tuple[str, ...]) -> None:
        if len(set(pool)) != len(pool):
            raise ValueError("image pool must not contain duplicates")
        if len(pool) < 4:
            raise ValueError("image pool needs at least 4 images")
        self._rng = rng
        self._pool = pool
        self._seen: set[str] = set()
        self._history: list[tuple[str, ...]] = []

    def history(self) -> list[tuple[str, ...]]:
        return list(self._history)

    def next_grid(self, kind: NoveltyPhaseKind) -> ImageGrid:
        fresh = [img for img in self._pool if img not in self._seen]

        if kind is NoveltyPhaseKind.START:
            if len(fresh) < 4:
                raise ValueError("image pool exhausted")
            images = self._rng.sample(fresh, 4)
            novel = self._rng.randint(0, 3)
        else:
            back = 1 if kind is NoveltyPhaseKind.ONE_BACK else 2
            if len(self._history) < back:
                raise ValueError(f"{kind.value} needs {back} earlier grid(s)")
            if not fresh:
                raise ValueError("image pool exhausted")
            familiar = self._rng.sample(self._history[-back], 3)
            novel = self._rng.randint(0, 3)
            images = familiar[:novel] + [self._rng.choice(fresh)] + familiar[novel:]

        self._seen.update(images)
        self._history.append(tuple(images))
        return ImageGrid(images=tuple(images), novel_quadrant=novel, label=kind.value)


class NoveltyFixationTest(DiscreteTrialEngine):
    """Three blank-then-grid phases; the record target is the novel quadrant centre."""

    title = NOVELTY_FIXATION_TITLE

    def __init__(
        self,
        *,
        clock: Clock,
        scheduler: Scheduler,
        viewport: Size,
        seed: int,
        stats: AggregateStats | None = None,
        config: NoveltyFixationConfig | None = None,
    ) -> None:
        cfg = config or NoveltyFixationConfig()
        if cfg.display_s <= 0.0:
            raise ValueError("display_s must be > 0")
        # One fresh image per phase after the first grid of four.
        needed = 4 + len(NOVELTY_PHASES) - 1
        if len(set(cfg.image_pool)) < needed:
            raise ValueError(f"image pool needs at least {needed} distinct images")

        super().__init__(
            clock=clock,
            scheduler=scheduler,
            viewport=viewport,
            seed=seed,
            stats=stats,
            timing=TrialTiming(
                trial_count=len(NOVELTY_PHASES),
                gap_s=cfg.blank_s,
                stimulus_s=cfg.display_s,
            ),
        )
        self._cfg = cfg
        self._gen = NoveltyGridGenerator(rng=self._rng, pool=cfg.image_pool)
        self._grid: ImageGrid | None = None
        self._grids: list[ImageGrid] = []

    def grids(self) -> list[ImageGrid]:
        return list(self._grids)

    def current_grid(self) -> ImageGrid | None:
        return self._grid if self.stage is TrialStage.STIMULUS else None

    def frame(self) -> RenderFrame:
        return RenderFrame(
            title=self.title,
            background="black",
            image_grid=self.current_grid(),
        )

    def _next_position(self, index: int) -> Point:
        self._grid = self._gen.next_grid(NOVELTY_PHASES[index])
        self._grids.append(self._grid)
        return quadrant_centers(self._viewport)[self._grid.novel_quadrant]

    def _summary(self) -> str:
        return f"{len(self._records)} phases shown ({', '.join(g.label for g in self._grids)})"


def build_novelty_fixation_test(
    *,
    clock: Clock,
    scheduler: Scheduler,
    viewport: Size,
    seed: int,
    stats: AggregateStats | None = None,
    config: NoveltyFixationConfig | None = None,
) -> NoveltyFixationTest:
    return NoveltyFixationTest(
        clock=clock,
        scheduler=scheduler,
        viewport=viewport,
        seed=seed,
        stats=stats,
        config=config,
    )
