import pytest
import tag_analyzer.benchmark as benchmark
from structlog.testing import capture_logs
from tag_analyzer.common.logger import configure_logging
from tag_analyzer.benchmark import (
    HASH_FASTER,
    HEAP_FASTER,
    TIE,
    measure_time,
    pick_verdict,
    quiet_call,
    run_benchmark,
)
from tag_analyzer.models import EmptySelectionError, VideoRecord

RECORDS = [
    VideoRecord.from_counts("A", ["music"], 100, 20),
    VideoRecord.from_counts("B", ["music", "musicvideo"], 100, 40),
]


def fake_clock(heap_ms, hash_ms):
    """Clock readings (seconds) reproducing the given per-run durations."""
    readings, now = [], 0.0
    for pair in zip(heap_ms, hash_ms):
        for duration in pair:
            readings += [now, now + duration / 1000]
            now += duration / 1000
    return iter(readings).__next__


# --- 1. Configuration & Scenarios ---

TEST_SCENARIOS = {
    "hash_faster": {
        "heap_ms": [10, 12, 11],
        "hash_ms": [8, 9, 7],
        "expected": (11.0, 8.0, HASH_FASTER),
    },
    "heap_faster": {
        "heap_ms": [3, 4, 5],
        "hash_ms": [6, 6, 6],
        "expected": (4.0, 6.0, HEAP_FASTER),
    },
    "tie": {
        "heap_ms": [5, 7],
        "hash_ms": [6, 6],
        "expected": (6.0, 6.0, TIE),
    },
    "single_run": {
        "heap_ms": [2],
        "hash_ms": [1],
        "expected": (2.0, 1.0, HASH_FASTER),
    },
}


# --- 2. The Driver Test Function ---


@pytest.mark.parametrize("scenario_name", TEST_SCENARIOS.keys())
def test_benchmark_report(scenario_name):
    config = TEST_SCENARIOS[scenario_name]
    clock = fake_clock(config["heap_ms"], config["hash_ms"])

    report = run_benchmark(
        RECORDS, ("music",), runs=len(config["heap_ms"]), clock=clock
    )

    assert report.runs == [
        (float(h), float(s)) for h, s in zip(config["heap_ms"], config["hash_ms"])
    ]
    assert (report.avg_heap_ms, report.avg_hash_ms, report.verdict) == config[
        "expected"
    ]
    assert report.peak_heap_mb is None and report.peak_hash_mb is None


@pytest.mark.parametrize(
    "avg_heap, avg_hash, verdict",
    [(11, 8, HASH_FASTER), (1, 2, HEAP_FASTER), (3.5, 3.5, TIE)],
)
def test_pick_verdict(avg_heap, avg_hash, verdict):
    assert pick_verdict(avg_heap, avg_hash) == verdict


def test_measure_time_uses_injected_clock():
    readings = iter([1.0, 1.25])
    duration, result = measure_time(lambda x: x * 2, 21, clock=lambda: next(readings))
    assert duration == 250.0
    assert result == 42


def test_quiet_call_suppresses_stdout(capsys):
    result = quiet_call(lambda: print("noise") or "done")
    assert result == "done"
    assert capsys.readouterr().out == ""


def test_profile_memory_reports_peaks(monkeypatch):
    def fake_memory_usage(proc, interval, retval):
        func, args, kwargs = proc
        return [10.0, 12.5], func(*args, **kwargs)

    monkeypatch.setattr(benchmark, "memory_usage", fake_memory_usage)
    clock = fake_clock([1], [1])

    report = run_benchmark(RECORDS, ("music",), runs=1, clock=clock, profile_memory=True)

    assert report.peak_heap_mb == 12.5
    assert report.peak_hash_mb == 12.5


def test_invalid_runs_rejected():
    with pytest.raises(ValueError):
        run_benchmark(RECORDS, ("music",), runs=0)


def test_empty_selection_rejected():
    with pytest.raises(EmptySelectionError):
        run_benchmark(RECORDS, (), runs=1)


def test_timed_runs_do_not_emit_strategy_events():
    configure_logging("DEBUG")
    try:
        with capture_logs() as logs:
            run_benchmark(RECORDS, ("music",), runs=2, clock=fake_clock([1, 1], [1, 1]))
    finally:
        configure_logging()

    assert [log["event"] for log in logs] == ["benchmark_execution"]
