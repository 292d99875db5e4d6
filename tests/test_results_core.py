from __future__ import annotations

import pytest

from reflex_trainer.cognitive_core import SeededRng
from reflex_trainer.geometry import ORIGIN, Point
from reflex_trainer.results import (
    FINAL_CODE_ALPHABET,
    AggregateStats,
    ResultsMap,
    TrialRecord,
    accuracy_percent,
    generate_final_code,
    session_summary_from,
)


def _record(index: int, onset: float, response: float | None, target: Point, previous: Point = ORIGIN) -> TrialRecord:
    return TrialRecord(trial_index=index, onset_s=onset, response_s=response, target=target, previous=previous)


def test_average_latency_is_mean_of_recorded_trials_and_zero_when_empty() -> None:
    stats = AggregateStats()
    assert stats.average_latency_s() == 0.0
    assert stats.average_delta_x() == 0.0
    assert stats.average_delta_y() == 0.0

    latencies = [0.25, 0.5, 0.75, 1.0]
    for i, lat in enumerate(latencies):
        stats.record(_record(i, 10.0 * i, 10.0 * i + lat, Point(100.0 + i, 50.0)))

    assert stats.count == 4
    assert stats.sum_latency_s == pytest.approx(sum(latencies))
    assert stats.average_latency_s() == pytest.approx(sum(latencies) / len(latencies))


def test_average_deltas_use_absolute_displacement_from_previous_target() -> None:
    stats = AggregateStats()
    stats.record(_record(0, 0.0, 0.3, Point(30.0, 10.0), Point(100.0, 50.0)))
    stats.record(_record(1, 1.0, 1.3, Point(130.0, 90.0), Point(30.0, 10.0)))

    assert stats.average_delta_x() == pytest.approx(85.0)
    assert stats.average_delta_y() == pytest.approx(60.0)


def test_accuracy_percent_and_zero_denominator_guard() -> None:
    assert accuracy_percent(7, 3) == 70.0
    assert accuracy_percent(0, 0) == 0.0

    stats = AggregateStats()
    assert stats.accuracy_percent() == 0.0
    for _ in range(7):
        stats.record_hit()
    for _ in range(3):
        stats.record_miss()
    assert stats.hit_count == 7
    assert stats.miss_count == 3
    assert stats.accuracy_percent() == 70.0


def test_unanswered_trial_cannot_be_aggregated() -> None:
    stats = AggregateStats()
    with pytest.raises(ValueError):
        stats.record(_record(0, 1.0, None, Point(1.0, 1.0)))
    assert stats.count == 0


def test_trial_record_latency_is_never_negative() -> None:
    assert _record(0, 2.0, 1.5, Point(0.0, 0.0)).latency_s == 0.0
    assert _record(0, 2.0, None, Point(0.0, 0.0)).latency_s is None
    assert _record(0, 2.0, 2.4, Point(0.0, 0.0)).latency_s == pytest.approx(0.4)


def test_results_map_keeps_completion_order_and_rejects_duplicates() -> None:
    results = ResultsMap()
    results.add("Reaction Time", "avg 0.40 s")
    results.add("Optokinetic", "completed")

    assert results.items() == [("Reaction Time", "avg 0.40 s"), ("Optokinetic", "completed")]
    assert "Optokinetic" in results
    assert len(results) == 2

    with pytest.raises(ValueError):
        results.add("Reaction Time", "again")

    results.clear()
    assert len(results) == 0
    assert results.get("Reaction Time") is None


def test_final_code_is_deterministic_for_seed_and_uses_alphabet() -> None:
    a = generate_final_code(SeededRng(5))
    b = generate_final_code(SeededRng(5))

    assert a == b
    assert len(a) == 14
    assert all(ch in FINAL_CODE_ALPHABET for ch in a)

    with pytest.raises(ValueError):
        generate_final_code(SeededRng(5), length=0)


def test_session_summary_lines() -> None:
    stats = AggregateStats()
    stats.record(_record(0, 0.0, 0.5, Point(30.0, 40.0)))
    for _ in range(7):
        stats.record_hit()
    for _ in range(3):
        stats.record_miss()

    results = ResultsMap()
    results.add("Reaction Time", "avg 0.50 s over 1 taps (Δx 30, Δy 40)")

    summary = session_summary_from(stats, results, final_code="ABCDEFGHIJKLMN")
    lines = summary.lines()

    assert lines[0] == "Session complete!"
    assert "Average reaction time: 0.50 s" in lines
    assert "Average Δx: 30" in lines
    assert "Average Δy: 40" in lines
    assert "Dot hit accuracy: 70%" in lines
    assert "Reaction Time: avg 0.50 s over 1 taps (Δx 30, Δy 40)" in lines
    assert lines[-1] == "Final score: ABCDEFGHIJKLMN"
