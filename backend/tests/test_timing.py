"""Tests for the timing helpers."""
from novel_insights.utils.timing import log_elapsed, now_ms, time_operation


def test_time_operation_reports_elapsed():
    lines = []

    with time_operation("genre_demand", lines.append) as watch:
        sum(range(1000))

    assert watch.elapsed_ms >= 0.0
    assert lines == [f"genre_demand: {watch.elapsed_ms:.2f}ms"]


def test_time_operation_skips_fast_blocks():
    lines = []

    with time_operation("quick", lines.append, min_ms=60_000):
        pass

    assert lines == []


def test_log_elapsed_chains():
    lines = []
    start = now_ms()

    next_start = log_elapsed(start, "metrics", lines.append)

    assert next_start >= start
    assert lines[0].startswith("metrics: ")
