import time
from collections import defaultdict
from collections.abc import Sequence
from tag_analyzer.common.logger import canonical_logger, elapsed_ms
from tag_analyzer.models import EmptySelectionError, VideoRecord, tag_matches


NO_DATA = None


def ratio_grouper(
    records: Sequence[VideoRecord], selected_tags: Sequence[str]
) -> dict[str, list[float]]:
    """Groups ratios by selected tag, appending once per matching raw tag."""
    groups = defaultdict(list)
    for record in records:
        for tag in record.tags:
            for selected in selected_tags:
                if tag_matches(tag, selected):
                    groups[selected].append(record.ratio)
    return groups


def mean_reducer(
    groups: dict[str, list[float]], selected_tags: Sequence[str]
) -> list[tuple[str, float | None, int]]:
    """One (tag, mean, count) entry per selected tag, in the order given."""
    result = []
    for selected in selected_tags:
        ratios = groups.get(selected, [])
        mean = sum(ratios) / len(ratios) if ratios else NO_DATA
        result.append((selected, mean, len(ratios)))
    return result


def tag_means(
    records: Sequence[VideoRecord], selected_tags: Sequence[str]
) -> list[tuple[str, float | None, int]]:
    return mean_reducer(ratio_grouper(records, selected_tags), selected_tags)


@canonical_logger(event_name="hash_tag_means_execution")
def hash_tag_means(
    records: Sequence[VideoRecord], selected_tags: Sequence[str], ctx=None
) -> list[tuple[str, float | None, int]]:
    """
    Average like/view ratio for each selected tag using a hash table.
    Tags without any matching video are reported with a None mean.
    """
    if not selected_tags:
        raise EmptySelectionError()
    if ctx:
        ctx.add_context(selected_tags=list(selected_tags))

    t0 = time.perf_counter()
    groups = ratio_grouper(records, selected_tags)
    if ctx:
        ctx.add_step("group_ratios", elapsed_ms(t0))
        ctx.add_metric("matched_tags", len(groups))

    t0 = time.perf_counter()
    result = mean_reducer(groups, selected_tags)
    if ctx:
        ctx.add_step("compute_means", elapsed_ms(t0))
        ctx.add_metric("output_rows", len(result))

    return result
