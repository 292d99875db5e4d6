from __future__ import annotations

from dataclasses import dataclass

from .clock import Clock, Scheduler
from .cognitive_core import Marker, MarkerShape, RenderFrame, StripeLayer, TrialEngine, clamp01
from .geometry import Size, generate_stripes
from .results import AggregateStats

OPTOKINETIC_TITLE = "Optokinetic"

OPTOKINETIC_INSTRUCTIONS = (
    "Optokinetic",
    "",
    "Look at the red dot in the centre and keep looking at it",
    "while the stripes scroll past. No clicks are needed.",
)


@dataclass(frozen=True, slots=True)
class OptokineticConfig:
    intro_s: float = 2.0
    scroll_s: float = 7.0
    coverage: float = 2.0  # stripes span and scroll this many viewport widths
    stripe_min_width: float = 20.0
    stripe_max_width: float = 80.0
    stripe_gap: float = 20.0
    fixation_size: float = 40.0


class OptokineticTest(TrialEngine):
    """Passive test: static intro, then a random stripe pattern scrolls left."""

    title = OPTOKINETIC_TITLE

    def __init__(
        self,
        *,
        clock: Clock,
        scheduler: Scheduler,
        viewport: Size,
        seed: int,
        stats: AggregateStats | None = None,
        config: OptokineticConfig | None = None,
    ) -> None:
        cfg = config or OptokineticConfig()
        if cfg.intro_s < 0.0:
            raise ValueError("intro_s must be >= 0")
        if cfg.scroll_s <= 0.0:
            raise ValueError("scroll_s must be > 0")
        if cfg.coverage <= 0.0:
            raise ValueError("coverage must be > 0")

        super().__init__(clock=clock, scheduler=scheduler, viewport=viewport, seed=seed, stats=stats)
        self._cfg = cfg
        self._stripes: tuple[float, ...] = ()
        self._scroll_started_at_s: float | None = None

    @property
    def stripes(self) -> tuple[float, ...]:
        return self._stripes

    @property
    def scrolling(self) -> bool:
        return self._scroll_started_at_s is not None

    def scroll_offset(self, now: float | None = None) -> float:
        if self._scroll_started_at_s is None:
            return 0.0
        t = self._clock.now() if now is None else now
        progress = clamp01((t - self._scroll_started_at_s) / self._cfg.scroll_s)
        return -self._cfg.coverage * self._viewport.width * progress

    def frame(self) -> RenderFrame:
        fixation = Marker(
            shape=MarkerShape.DOT,
            position=self._viewport.center,
            size=self._cfg.fixation_size,
            color="red",
        )
        if not self.scrolling:
            return RenderFrame(
                title=self.title,
                background="white",
                text_color="black",
                headline="Optokinetic",
                lines=("Look at the red dot in the center",),
                fixation=fixation,
            )
        return RenderFrame(
            title=self.title,
            background="white",
            text_color="black",
            fixation=fixation,
            stripes=StripeLayer(
                widths=self._stripes,
                gap=self._cfg.stripe_gap,
                offset_x=self.scroll_offset(),
                color="dark_gray",
            ),
        )

    def _begin(self) -> None:
        self._after(self._cfg.intro_s, self._start_scroll)

    def _start_scroll(self) -> None:
        # Generated per run: the pattern depends on the current viewport width.
        self._stripes = generate_stripes(
            self._rng,
            self._viewport.width * self._cfg.coverage,
            min_width=self._cfg.stripe_min_width,
            max_width=self._cfg.stripe_max_width,
            gap=self._cfg.stripe_gap,
        )
        self._scroll_started_at_s = self._clock.now()
        self._after(self._cfg.scroll_s, lambda: self._complete(self._summary()))

    def _summary(self) -> str:
        return f"completed ({len(self._stripes)} stripes over {self._cfg.scroll_s:.0f} s)"


def build_optokinetic_test(
    *,
    clock: Clock,
    scheduler: Scheduler,
    viewport: Size,
    seed: int,
    stats: AggregateStats | None = None,
    config: OptokineticConfig | None = None,
) -> OptokineticTest:
    return OptokineticTest(
        clock=clock,
        scheduler=scheduler,
        viewport=viewport,
        seed=seed,
        stats=stats,
        config=config,
    )
