"""Tests for the in-memory metrics collector."""

from demo_worker import metrics


def test_counters_and_gauges():
    metrics.inc_counter("pipeline.runs")
    metrics.inc_counter("pipeline.runs", 2)
    metrics.set_gauge("active_runs", 1)
    metrics.add_gauge("active_runs", -1)

    snapshot = metrics.get_snapshot()

    assert snapshot["counters"]["pipeline.runs"] == 3
    assert snapshot["gauges"]["active_runs"] == 0


def test_latency_percentiles():
    for ms in range(1, 11):
        metrics.record_latency("step.voice", float(ms))

    stats = metrics.get_snapshot()["latency"]["step.voice"]

    assert stats["count"] == 10
    assert stats["p50"] == 6.0
    assert stats["p95"] == 10.0
    assert stats["avg"] == 5.5


def test_latency_keeps_last_samples():
    for ms in range(metrics.MAX_SAMPLES + 20):
        metrics.record_latency("step.script", float(ms))

    assert metrics.get_snapshot()["latency"]["step.script"]["count"] == metrics.MAX_SAMPLES


def test_error_patterns_and_failure_rate():
    metrics.inc_counter("pipeline.runs", 4)
    metrics.inc_counter("pipeline.failed")
    metrics.record_error("avatar", "timeout", "Tavus video tv-1 timed out", "p1")

    snapshot = metrics.get_snapshot()

    assert snapshot["error_patterns"] == {"avatar:timeout": 1}
    assert snapshot["recent_errors"][0]["project_id"] == "p1"
    assert snapshot["pipeline_failure_rate"] == 25.0


def test_recent_errors_are_bounded():
    for i in range(metrics.MAX_ERRORS + 5):
        metrics.record_error("script", "no_provider", f"fail {i}")

    snapshot = metrics.get_snapshot()

    assert len(snapshot["recent_errors"]) == 10
    assert snapshot["error_patterns"]["script:no_provider"] == metrics.MAX_ERRORS
