"""Merge and rank partial result sets."""

from typing import Dict, Iterable, List, Optional, Tuple

from .models import CATEGORY_PRIORITY, SOURCE_PRIORITY, SearchResult


def sort_key(result: SearchResult) -> Tuple[int, int]:
    return (-result.score, CATEGORY_PRIORITY[result.category])


def outranks(candidate: SearchResult, existing: SearchResult) -> bool:
    """True if ``candidate`` should replace ``existing`` for the same identity key."""
    if candidate.score != existing.score:
        return candidate.score > existing.score
    return SOURCE_PRIORITY[candidate.source] > SOURCE_PRIORITY[existing.source]


def merge_results(base: Iterable[SearchResult],
                  extra: Iterable[SearchResult],
                  limit: Optional[int] = None) -> List[SearchResult]:
    """Merge ``extra`` into ``base``, deduplicate by identity key, sort and truncate.

    Arrival order only matters for entries that are equal under both the
    replacement rule and the sort key, which makes the output deterministic
    for any fixed pair of inputs.
    """
    merged: List[SearchResult] = []
    index: Dict[Tuple[str, str], int] = {}

    for result in list(base) + list(extra):
        key = result.identity_key
        position = index.get(key)
        if position is None:
            index[key] = len(merged)
            merged.append(result)
        elif outranks(result, merged[position]):
            merged[position] = result

    merged.sort(key=sort_key)

    if limit is not None:
        return merged[:limit]
    return merged


def rank_results(results: Iterable[SearchResult], limit: Optional[int] = None) -> List[SearchResult]:
    """Deduplicate and sort a single result list."""
    return merge_results([], results, limit)
