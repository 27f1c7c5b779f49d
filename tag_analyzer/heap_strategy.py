import time
import heapq
from functools import reduce
from collections.abc import Sequence
from tag_analyzer.common.config import settings
from tag_analyzer.common.logger import canonical_logger, elapsed_ms
from tag_analyzer.models import EmptySelectionError, VideoRecord, tag_matches


# Modular Functional Blocks (KISS)
# One candidate per (record tag, selected tag) match: a record with several
# matching tags is pushed several times.
candidate_extractor = lambda records, selected_tags: (
    (record.ratio, record.title)
    for record in records
    for tag in record.tags
    for selected in selected_tags
    if tag_matches(tag, selected)
)

# heapq is a min-heap, ratios are negated to pop the highest first
heap_builder = lambda candidates: reduce(
    lambda heap, c: (heapq.heappush(heap, (-c[0], c[1])), heap)[1],
    candidates,
    [],
)

get_top_k = lambda heap, k: [
    (rank, title, -neg_ratio)
    for rank, (neg_ratio, title) in enumerate(
        (heapq.heappop(heap) for _ in range(min(k, len(heap)))), start=1
    )
]

top_ratios = lambda records, selected_tags, k=settings.top_k: get_top_k(
    heap_builder(candidate_extractor(records, selected_tags)), k
)


@canonical_logger(event_name="heap_top_k_execution")
def heap_top_ratios(
    records: Sequence[VideoRecord],
    selected_tags: Sequence[str],
    k: int = settings.top_k,
    ctx=None,
) -> list[tuple[int, str, float]]:
    """
    Top K videos by like/view ratio among those tagged with a selected tag.
    Every match is pushed into a max-heap, then the K best are popped.
    """
    if not selected_tags:
        raise EmptySelectionError()
    if ctx:
        ctx.add_context(selected_tags=list(selected_tags), k=k)

    t0 = time.perf_counter()
    heap = heap_builder(candidate_extractor(records, selected_tags))
    if ctx:
        ctx.add_step("build_heap", elapsed_ms(t0))
        ctx.add_metric("candidates", len(heap))

    t0 = time.perf_counter()
    result = get_top_k(heap, k)
    if ctx:
        ctx.add_step("pop_top_k", elapsed_ms(t0))
        ctx.add_metric("output_rows", len(result))

    return result
