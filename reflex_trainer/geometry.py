"""Pure stimulus geometry.

Every function takes the viewport and RNG explicitly so placement rules can be
tested without a window.
"""

from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Protocol, TypeVar

T = TypeVar("T")


class UniformRng(Protocol):
    def uniform(self, a: float, b: float) -> float: ...

    def choice(self, seq: Sequence[T]) -> T: ...


@dataclass(frozen=True, slots=True)
class Point:
    x: float
    y: float


@dataclass(frozen=True, slots=True)
class Size:
    width: float
    height: float

    @property
    def center(self) -> Point:
        return Point(self.width / 2.0, self.height / 2.0)


ORIGIN = Point(0.0, 0.0)


def distance(a: Point, b: Point) -> float:
    return math.hypot(a.x - b.x, a.y - b.y)


def check_reaction_area(
    viewport: Size,
    *,
    pad: float = 50.0,
    marker_size: float = 20.0,
    target_size: float = 100.0,
) -> None:
    """Raise ValueError unless the padded rectangle has room outside the centre exclusion zone."""

    left, right = pad, viewport.width - pad
    top, bottom = pad, viewport.height - pad
    if right < left or bottom < top:
        raise ValueError("viewport is smaller than the padding")

    center = viewport.center
    min_dist = (marker_size + target_size) / 2.0
    corners = (Point(left, top), Point(right, top), Point(left, bottom), Point(right, bottom))
    if max(distance(c, center) for c in corners) < min_dist:
        raise ValueError("padded rectangle lies inside the centre exclusion zone")


def random_reaction_target(
    rng: UniformRng,
    viewport: Size,
    *,
    pad: float = 50.0,
    marker_size: float = 20.0,
    target_size: float = 100.0,
) -> Point:
    """Uniform point in the padded rectangle, resampled while too close to centre.

    The exclusion radius is ``(marker_size + target_size) / 2`` so the target
    never covers the fixed centre marker.
    """

    check_reaction_area(viewport, pad=pad, marker_size=marker_size, target_size=target_size)

    center = viewport.center
    min_dist = (marker_size + target_size) / 2.0
    while True:
        p = Point(rng.uniform(pad, viewport.width - pad), rng.uniform(pad, viewport.height - pad))
        if distance(p, center) >= min_dist:
            return p


def lateral_saccade_target(
    rng: UniformRng,
    viewport: Size,
    *,
    min_offset: float = 250.0,
    max_offset: float = 450.0,
    vertical_jitter: float = 50.0,
) -> Point:
    side = rng.choice((-1, 1))
    center = viewport.center
    dx = side * rng.uniform(min_offset, max_offset)
    dy = rng.uniform(-vertical_jitter, vertical_jitter)
    return Point(center.x + dx, center.y + dy)


def radial_target(rng: UniformRng, viewport: Size) -> Point:
    """Random angle at a fixed radius of (W + H) / 8 from the centre."""

    radius = (viewport.width + viewport.height) / 8.0
    angle = rng.uniform(0.0, 2.0 * math.pi)
    center = viewport.center
    return Point(center.x + radius * math.cos(angle), center.y + radius * math.sin(angle))


def generate_stripes(
    rng: UniformRng,
    total_width: float,
    *,
    min_width: float = 20.0,
    max_width: float = 80.0,
    gap: float = 20.0,
) -> tuple[float, ...]:
    """Stripe widths whose cumulative ``width + gap`` first reaches ``total_width``."""

    if min_width <= 0.0 or max_width < min_width:
        raise ValueError("stripe widths must satisfy 0 < min_width <= max_width")
    if gap < 0.0:
        raise ValueError("gap must be >= 0")

    widths: list[float] = []
    covered = 0.0
    while covered < total_width:
        w = rng.uniform(min_width, max_width)
        widths.append(w)
        covered += w + gap
    return tuple(widths)


def ease_in_out(t: float, total: float, ramp: float) -> float:
    """Smoothstep ramp up over ``ramp`` seconds, hold at 1, ramp back to 0 at ``total``."""

    if total <= 0.0:
        return 1.0
    if t <= 0.0:
        return 0.0
    if t >= total:
        return 0.0

    if t < ramp:
        u = t / ramp
        return u * u * (3.0 - 2.0 * u)
    if t <= total - ramp:
        return 1.0
    v = (total - t) / ramp
    return v * v * (3.0 - 2.0 * v)


def pursuit_position(
    t: float,
    viewport: Size,
    *,
    omega: float,
    amplitude_ratio: float,
    duration: float,
    ramp: float,
) -> Point:
    center = viewport.center
    amplitude = viewport.width * amplitude_ratio
    x = center.x + amplitude * math.sin(omega * t) * ease_in_out(t, duration, ramp)
    return Point(x, center.y)


def quadrant_centers(viewport: Size) -> tuple[Point, Point, Point, Point]:
    """Centres of the top-left, top-right, bottom-left and bottom-right quadrants."""

    qx, qy = viewport.width / 4.0, viewport.height / 4.0
    return (
        Point(qx, qy),
        Point(3.0 * qx, qy),
        Point(qx, 3.0 * qy),
        Point(3.0 * qx, 3.0 * qy),
    )
