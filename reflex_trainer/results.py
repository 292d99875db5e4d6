from __future__ import annotations

from dataclasses import dataclass

from .geometry import Point, UniformRng

FINAL_CODE_ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789"


@dataclass(frozen=True, slots=True)
class TrialRecord:
    """One completed stimulus/response cycle.

    ``response_s`` is None when the stimulus timed out without a response.
    """

    trial_index: int
    onset_s: float
    response_s: float | None
    target: Point
    previous: Point

    @property
    def latency_s(self) -> float | None:
        if self.response_s is None:
            return None
        return max(0.0, self.response_s - self.onset_s)

    @property
    def delta_x(self) -> float:
        return self.target.x - self.previous.x

    @property
    def delta_y(self) -> float:
        return self.target.y - self.previous.y


def accuracy_percent(hits: int, misses: int) -> float:
    total = hits + misses
    return 0.0 if total == 0 else 100.0 * hits / total


class AggregateStats:
    """Session-wide running sums; every derived value is computed on demand."""

    def __init__(self) -> None:
        self._sum_latency_s = 0.0
        self._count = 0
        self._sum_abs_dx = 0.0
        self._sum_abs_dy = 0.0
        self._hits = 0
        self._misses = 0

    @property
    def count(self) -> int:
        return self._count

    @property
    def hit_count(self) -> int:
        return self._hits

    @property
    def miss_count(self) -> int:
        return self._misses

    @property
    def sum_latency_s(self) -> float:
        return self._sum_latency_s

    def record(self, trial: TrialRecord) -> None:
        latency = trial.latency_s
        if latency is None:
            raise ValueError("only answered trials can be aggregated")
        self._sum_latency_s += latency
        self._count += 1
        self._sum_abs_dx += abs(trial.delta_x)
        self._sum_abs_dy += abs(trial.delta_y)

    def record_hit(self) -> None:
        self._hits += 1

    def record_miss(self) -> None:
        self._misses += 1

    def average_latency_s(self) -> float:
        return 0.0 if self._count == 0 else self._sum_latency_s / self._count

    def average_delta_x(self) -> float:
        return 0.0 if self._count == 0 else self._sum_abs_dx / self._count

    def average_delta_y(self) -> float:
        return 0.0 if self._count == 0 else self._sum_abs_dy / self._count

    def accuracy_percent(self) -> float:
        return accuracy_percent(self._hits, self._misses)


class ResultsMap:
    """Test name -> result string, in completion order. Append-only per session."""

    def __init__(self) -> None:
        self._items: dict[str, str] = {}

    def add(self, name: str, summary: str) -> None:
        if name in self._items:
            raise ValueError(f"result for {name!r} already recorded")
        self._items[name] = str(summary)

    def get(self, name: str) -> str | None:
        return self._items.get(name)

    def items(self) -> list[tuple[str, str]]:
        return list(self._items.items())

    def as_dict(self) -> dict[str, str]:
        return dict(self._items)

    def clear(self) -> None:
        self._items.clear()

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, name: object) -> bool:
        return name in self._items


@dataclass(frozen=True, slots=True)
class SessionSummary:
    """Everything the results view shows, frozen at the end of a session."""

    results: tuple[tuple[str, str], ...]
    average_latency_s: float
    average_delta_x: float
    average_delta_y: float
    accuracy_percent: float
    final_code: str

    def lines(self) -> list[str]:
        out = [
            "Session complete!",
            "",
            f"Average reaction time: {self.average_latency_s:.2f} s",
            f"Average Δx: {self.average_delta_x:.0f}",
            f"Average Δy: {self.average_delta_y:.0f}",
            f"Dot hit accuracy: {self.accuracy_percent:.0f}%",
            "",
        ]
        out.extend(f"{name}: {summary}" for name, summary in self.results)
        out.extend(["", f"Final score: {self.final_code}"])
        return out


def generate_final_code(rng: UniformRng, *, length: int = 14) -> str:
    if length <= 0:
        raise ValueError("length must be > 0")
    return "".join(rng.choice(FINAL_CODE_ALPHABET) for _ in range(length))


def session_summary_from(
    stats: AggregateStats,
    results: ResultsMap,
    *,
    final_code: str,
) -> SessionSummary:
    """Build a SessionSummary from the session's stats and per-test results."""

    return SessionSummary(
        results=tuple(results.items()),
        average_latency_s=float(stats.average_latency_s()),
        average_delta_x=float(stats.average_delta_x()),
        average_delta_y=float(stats.average_delta_y()),
        accuracy_percent=float(stats.accuracy_percent()),
        final_code=str(final_code),
    )
