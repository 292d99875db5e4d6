from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum

from .clock import Clock, Scheduler
from .cognitive_core import DiscreteTrialEngine, Marker, MarkerShape, TrialTiming
from .geometry import Point, Size, lateral_saccade_target, radial_target
from .results import AggregateStats


class SaccadeTaskKind(StrEnum):
    PROSACCADE = "prosaccade"
    ANTISACCADE = "antisaccade"
    GAP_EFFECT = "gap_effect"


class TargetPlacement(StrEnum):
    LATERAL = "lateral"
    RADIAL = "radial"


@dataclass(frozen=True, slots=True)
class SaccadeTaskConfig:
    title: str
    placement: TargetPlacement
    target_color: str
    trial_count: int = 5
    lead_in_s: float = 0.0
    inter_trial_s: float = 0.0
    fixation_s: float = 0.0
    gap_s: float = 0.0
    stimulus_s: float = 1.0
    central_dot: bool = False
    central_dot_size: float = 20.0
    fixation_size: float = 40.0
    target_size: float = 40.0


PROSACCADE_CONFIG = SaccadeTaskConfig(
    title="Prosaccade",
    placement=TargetPlacement.LATERAL,
    target_color="red",
    lead_in_s=3.0,
    inter_trial_s=3.0,
    stimulus_s=0.8,
    central_dot=True,
)

ANTISACCADE_CONFIG = SaccadeTaskConfig(
    title="Antisaccade",
    placement=TargetPlacement.LATERAL,
    target_color="cyan",
    fixation_s=1.5,
    gap_s=0.25,
    stimulus_s=1.0,
)

GAP_EFFECT_CONFIG = SaccadeTaskConfig(
    title="Gap Effect",
    placement=TargetPlacement.RADIAL,
    target_color="cyan",
    fixation_s=1.0,
    gap_s=0.3,
    stimulus_s=1.0,
)

SACCADE_CONFIGS: dict[SaccadeTaskKind, SaccadeTaskConfig] = {
    SaccadeTaskKind.PROSACCADE: PROSACCADE_CONFIG,
    SaccadeTaskKind.ANTISACCADE: ANTISACCADE_CONFIG,
    SaccadeTaskKind.GAP_EFFECT: GAP_EFFECT_CONFIG,
}

PROSACCADE_INSTRUCTIONS = (
    "Prosaccade",
    "",
    "Keep your eyes on the white dot in the centre.",
    "When a red target flashes to one side, look at it straight away,",
    "then return to the centre.",
)

ANTISACCADE_INSTRUCTIONS = (
    "Antisaccade",
    "",
    "Fixate the plus sign in the centre.",
    "When the cyan target appears, look to the OPPOSITE side",
    "of the screen, at the same distance from the centre.",
)

GAP_EFFECT_INSTRUCTIONS = (
    "Gap Effect",
    "",
    "Fixate the plus sign. It disappears briefly before",
    "a cyan target appears somewhere around the centre.",
    "Look at the target as quickly as you can.",
)


class SaccadeTask(DiscreteTrialEngine):
    """Pass-through stimulus sequence; trials close on stimulus timeout."""

    def __init__(
        self,
        *,
        clock: Clock,
        scheduler: Scheduler,
        viewport: Size,
        seed: int,
        config: SaccadeTaskConfig,
        stats: AggregateStats | None = None,
    ) -> None:
        super().__init__(
            clock=clock,
            scheduler=scheduler,
            viewport=viewport,
            seed=seed,
            stats=stats,
            timing=TrialTiming(
                trial_count=config.trial_count,
                lead_in_s=config.lead_in_s,
                inter_trial_s=config.inter_trial_s,
                fixation_s=config.fixation_s,
                gap_s=config.gap_s,
                stimulus_s=config.stimulus_s,
            ),
        )
        self._cfg = config
        self.title = config.title
        self.target_color = config.target_color
        self.target_size = config.target_size
        self.fixation_size = config.fixation_size

    @property
    def config(self) -> SaccadeTaskConfig:
        return self._cfg

    def _next_position(self, index: int) -> Point:
        _ = index
        if self._cfg.placement is TargetPlacement.RADIAL:
            return radial_target(self._rng, self._viewport)
        return lateral_saccade_target(self._rng, self._viewport)

    def _center_marker(self) -> Marker | None:
        if not self._cfg.central_dot:
            return None
        return Marker(
            shape=MarkerShape.DOT,
            position=self._viewport.center,
            size=self._cfg.central_dot_size,
            color="white",
        )


def build_saccade_test(
    kind: SaccadeTaskKind,
    *,
    clock: Clock,
    scheduler: Scheduler,
    viewport: Size,
    seed: int,
    stats: AggregateStats | None = None,
    config: SaccadeTaskConfig | None = None,
) -> SaccadeTask:
    return SaccadeTask(
        clock=clock,
        scheduler=scheduler,
        viewport=viewport,
        seed=seed,
        stats=stats,
        config=config or SACCADE_CONFIGS[kind],
    )


def build_prosaccade_test(
    *,
    clock: Clock,
    scheduler: Scheduler,
    viewport: Size,
    seed: int,
    stats: AggregateStats | None = None,
) -> SaccadeTask:
    return build_saccade_test(
        SaccadeTaskKind.PROSACCADE,
        clock=clock,
        scheduler=scheduler,
        viewport=viewport,
        seed=seed,
        stats=stats,
    )


def build_antisaccade_test(
    *,
    clock: Clock,
    scheduler: Scheduler,
    viewport: Size,
    seed: int,
    stats: AggregateStats | None = None,
) -> SaccadeTask:
    return build_saccade_test(
        SaccadeTaskKind.ANTISACCADE,
        clock=clock,
        scheduler=scheduler,
        viewport=viewport,
        seed=seed,
        stats=stats,
    )


def build_gap_effect_test(
    *,
    clock: Clock,
    scheduler: Scheduler,
    viewport: Size,
    seed: int,
    stats: AggregateStats | None = None,
) -> SaccadeTask:
    return build_saccade_test(
        SaccadeTaskKind.GAP_EFFECT,
        clock=clock,
        scheduler=scheduler,
        viewport=viewport,
        seed=seed,
        stats=stats,
    )
