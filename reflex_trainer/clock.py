from __future__ import annotations

import heapq
import itertools
import time
from collections.abc import Callable
from typing import Protocol


class Clock(Protocol):
    """Monotonic clock abstraction.

    Core logic depends on this interface rather than calling real time directly.
    """

    def now(self) -> float:
        """Return monotonic seconds."""


class RealClock:
    """Production clock backed by time.monotonic()."""

    def now(self) -> float:
        return time.monotonic()


class Scheduler(Protocol):
    """Deferred-task queue plus a per-frame tick, both on the UI thread."""

    def after(self, delay_s: float, callback: Callable[[], None]) -> None:
        """Run ``callback`` once, no earlier than ``delay_s`` from now."""

    def on_frame(self, callback: Callable[[float], None]) -> Callable[[], None]:
        """Call ``callback(now)`` on every frame; returns an unsubscribe function."""


class ClockScheduler:
    """Scheduler driven by an injected Clock.

    Nothing runs on its own: the owner calls ``pump()`` once per frame and due
    callbacks fire in due-time order (ties in scheduling order), followed by
    the frame callbacks.
    """

    def __init__(self, clock: Clock) -> None:
        self._clock = clock
        self._seq = itertools.count()
        self._queue: list[tuple[float, int, Callable[[], None]]] = []
        self._frame_callbacks: dict[int, Callable[[float], None]] = {}

    def after(self, delay_s: float, callback: Callable[[], None]) -> None:
        if delay_s < 0.0:
            raise ValueError("delay_s must be >= 0")
        due = self._clock.now() + float(delay_s)
        heapq.heappush(self._queue, (due, next(self._seq), callback))

    def on_frame(self, callback: Callable[[float], None]) -> Callable[[], None]:
        key = next(self._seq)
        self._frame_callbacks[key] = callback

        def unsubscribe() -> None:
            self._frame_callbacks.pop(key, None)

        return unsubscribe

    def pending_count(self) -> int:
        return len(self._queue)

    def pump(self) -> int:
        """Fire every due callback, then the frame callbacks. Returns timers fired."""

        now = self._clock.now()
        fired = 0
        while self._queue and self._queue[0][0] <= now:
            _, _, callback = heapq.heappop(self._queue)
            callback()
            fired += 1

        for callback in list(self._frame_callbacks.values()):
            callback(now)
        return fired
