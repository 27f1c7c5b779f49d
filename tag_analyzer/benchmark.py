import io
import sys
import time
import msgspec
from typing import Callable, Any
from collections.abc import Sequence
from memory_profiler import memory_usage

from tag_analyzer.common.config import settings
from tag_analyzer.common.logger import canonical_logger
from tag_analyzer.heap_strategy import top_ratios
from tag_analyzer.hash_strategy import tag_means
from tag_analyzer.models import EmptySelectionError, VideoRecord

HEAP_FASTER = "heap faster"
HASH_FASTER = "hash table faster"
TIE = "tie"


class BenchmarkReport(msgspec.Struct):
    runs: list[tuple[float, float]]
    avg_heap_ms: float
    avg_hash_ms: float
    verdict: str
    peak_heap_mb: float | None = None
    peak_hash_mb: float | None = None


def measure_time(
    func: Callable, *args, clock: Callable[[], float] = time.perf_counter, **kwargs
) -> tuple[float, Any]:
    """Runs func once and returns (duration in ms, result). `clock` returns seconds."""
    start = clock()
    result = func(*args, **kwargs)
    end = clock()
    return round((end - start) * 1000, 4), result


def measure_memory(func: Callable, *args, **kwargs) -> tuple[float, Any]:
    """Runs func once under memory_profiler and returns (peak MB, result)."""
    mem_samples, result = memory_usage((func, args, kwargs), interval=0.01, retval=True)
    return round(max(mem_samples), 2), result


def quiet_call(func: Callable, *args, **kwargs) -> Any:
    """Runs func with stdout swapped for a buffer so no output reaches the console."""
    original_stdout = sys.stdout
    sys.stdout = io.StringIO()
    try:
        return func(*args, **kwargs)
    finally:
        sys.stdout = original_stdout


def mean_ms(durations: Sequence[float]) -> float:
    return round(sum(durations) / len(durations), 4)


def pick_verdict(avg_heap_ms: float, avg_hash_ms: float) -> str:
    if avg_heap_ms < avg_hash_ms:
        return HEAP_FASTER
    if avg_hash_ms < avg_heap_ms:
        return HASH_FASTER
    return TIE


@canonical_logger(event_name="benchmark_execution")
def run_benchmark(
    records: Sequence[VideoRecord],
    selected_tags: Sequence[str],
    runs: int = settings.benchmark_runs,
    clock: Callable[[], float] = time.perf_counter,
    profile_memory: bool = False,
    ctx=None,
) -> BenchmarkReport:
    """
    Times the heap and hash table strategies `runs` times each on the same
    input and compares their average durations. The plain strategy bodies
    are timed, so per-call wide events are not part of the measurement.
    """
    if runs < 1:
        raise ValueError(f"runs must be >= 1, got {runs}")
    if not selected_tags:
        raise EmptySelectionError()
    if ctx:
        ctx.add_context(selected_tags=list(selected_tags), runs=runs)

    timings = []
    for i in range(runs):
        heap_ms, _ = quiet_call(
            measure_time, top_ratios, records, selected_tags, clock=clock
        )
        hash_ms, _ = quiet_call(
            measure_time, tag_means, records, selected_tags, clock=clock
        )
        timings.append((heap_ms, hash_ms))
        if ctx:
            ctx.add_step(f"run_{i + 1}", heap_ms + hash_ms, heap_ms=heap_ms, hash_ms=hash_ms)

    avg_heap_ms = mean_ms([heap_ms for heap_ms, _ in timings])
    avg_hash_ms = mean_ms([hash_ms for _, hash_ms in timings])
    report = BenchmarkReport(
        runs=timings,
        avg_heap_ms=avg_heap_ms,
        avg_hash_ms=avg_hash_ms,
        verdict=pick_verdict(avg_heap_ms, avg_hash_ms),
    )

    if profile_memory:
        report.peak_heap_mb, _ = quiet_call(
            measure_memory, top_ratios, records, selected_tags
        )
        report.peak_hash_mb, _ = quiet_call(
            measure_memory, tag_means, records, selected_tags
        )

    if ctx:
        ctx.add_metric("avg_heap_ms", report.avg_heap_ms)
        ctx.add_metric("avg_hash_ms", report.avg_hash_ms)
        ctx.add_metric("verdict", report.verdict)

    return report
