import sys
import argparse
import msgspec
import orjson
from typing import Callable

from tag_analyzer.common.config import settings
from tag_analyzer.common.utils import load_all_datasets
from tag_analyzer.benchmark import BenchmarkReport, run_benchmark
from tag_analyzer.heap_strategy import heap_top_ratios
from tag_analyzer.hash_strategy import hash_tag_means
from tag_analyzer.models import (
    AnalysisSession,
    EmptySelectionError,
    TagAnalyzerError,
    parse_tag_selection,
)

BANNER = (
    "--------------------------------------------------\n"
    "   YouTube Tag Correlation Analyzer\n"
    "--------------------------------------------------"
)
MAIN_MENU = (
    "\n1. Select tag(s)"
    "\n2. Choose data structure (Heap / Hash Table / Benchmark)"
    "\n3. Exit"
    "\n> "
)
STRUCTURE_MENU = "Choose data structure:\n1. Heap\n2. Hash Table\n3. Benchmark\n> "


# --- 1. RENDERING ---


def render_top_k(rows: list[tuple[int, str, float]]) -> str:
    lines = ["\nTop videos by like/view ratio for selected tags:"]
    lines += [f"{rank}. {title} (ratio: {ratio:g})" for rank, title, ratio in rows]
    return "\n".join(lines)


def render_tag_means(rows: list[tuple[str, float | None, int]]) -> str:
    lines = ["\nAverage like/view ratio for each selected tag:"]
    for tag, mean, _ in rows:
        lines.append(f"Tag '{tag}' not found." if mean is None else f" - {tag}: {mean:g}")
    return "\n".join(lines)


def render_benchmark(report: BenchmarkReport) -> str:
    lines = ["\nBenchmark (Heap vs Hash Table):"]
    for i, (heap_ms, hash_ms) in enumerate(report.runs, start=1):
        lines.append(f"  Run {i}: heap {heap_ms:.4f} ms | hash table {hash_ms:.4f} ms")
    lines.append(f"  Average heap: {report.avg_heap_ms:.4f} ms")
    lines.append(f"  Average hash table: {report.avg_hash_ms:.4f} ms")
    if report.peak_heap_mb is not None:
        lines.append(f"  Peak memory heap: {report.peak_heap_mb:.2f} MB")
        lines.append(f"  Peak memory hash table: {report.peak_hash_mb:.2f} MB")
    lines.append(f"  Verdict: {report.verdict}")
    return "\n".join(lines)


# --- 2. QUERIES ---

STRATEGIES = {
    "heap": lambda session, opts: heap_top_ratios(
        session.records, session.require_selection(), k=opts.top_k
    ),
    "hash": lambda session, opts: hash_tag_means(
        session.records, session.require_selection()
    ),
    "benchmark": lambda session, opts: run_benchmark(
        session.records,
        session.require_selection(),
        runs=opts.runs,
        profile_memory=opts.profile_memory,
    ),
}

RENDERERS = {
    "heap": render_top_k,
    "hash": render_tag_means,
    "benchmark": render_benchmark,
}

MENU_CHOICES = {"1": "heap", "2": "hash", "3": "benchmark"}


def run_query(session: AnalysisSession, strategy: str, opts) -> str:
    return RENDERERS[strategy](STRATEGIES[strategy](session, opts))


def run_menu(
    session: AnalysisSession,
    opts,
    read: Callable[[str], str] = input,
    write: Callable[[str], None] = print,
) -> None:
    """Interactive loop: select tags, query with a data structure, exit."""
    while True:
        try:
            choice = read(MAIN_MENU).strip()
            if choice == "1":
                raw = read("Enter tags separated by commas (e.g., music,gaming): ")
                session.select_tags(parse_tag_selection(raw))
                write("Tags selected.")
            elif choice == "2":
                strategy = MENU_CHOICES.get(read(STRUCTURE_MENU).strip())
                if not session.selected_tags:
                    write("Select tags first.")
                elif strategy is None:
                    write("Invalid choice.")
                else:
                    write(run_query(session, strategy, opts))
            elif choice == "3":
                break
            else:
                write("Invalid input.")
        except EOFError:
            break
    write("Exiting... Goodbye!")


# --- 3. ENTRYPOINT ---


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="tag-analyzer",
        description="Compare a max-heap and a hash table on video like/view ratios.",
    )
    p.add_argument("--data-dir", default=settings.data_dir)
    p.add_argument("--tags", help="Comma separated tags; runs one query and exits")
    p.add_argument("--strategy", choices=sorted(STRATEGIES), default="heap")
    p.add_argument("--top-k", type=int, default=settings.top_k)
    p.add_argument("--runs", type=int, default=settings.benchmark_runs)
    p.add_argument("--profile-memory", action="store_true")
    p.add_argument("--json", action="store_true", help="Print the raw result as JSON")
    return p


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    opts = parser.parse_args(argv)
    if opts.top_k < 1 or opts.runs < 1:
        parser.error("--top-k and --runs must be >= 1")

    try:
        records = load_all_datasets(opts.data_dir)
    except TagAnalyzerError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    session = AnalysisSession(records)

    if opts.tags is None:
        print(BANNER)
        print(f"Total videos loaded from all datasets: {len(session.records)}")
        run_menu(session, opts)
        return 0

    session.select_tags(parse_tag_selection(opts.tags))
    try:
        result = STRATEGIES[opts.strategy](session, opts)
    except EmptySelectionError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    if opts.json:
        print(orjson.dumps(msgspec.to_builtins(result)).decode())
    else:
        print(RENDERERS[opts.strategy](result))
    return 0
