"""Client-side filtering and ordering of result sets and library views."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from typing import Iterable, Sequence

from .models import (
    LIBRARY_STATUSES,
    FilterSortSpec,
    Item,
    LibraryEntry,
    LibraryFilter,
)


@dataclass(frozen=True, slots=True)
class ResultStats:
    """Totals shown next to a browse result set."""

    total: int
    average_rating: float | None


def apply(items: Sequence[Item], spec: FilterSortSpec | None = None) -> list[Item]:
    """Return ``items`` filtered by the rating floor and ordered by ``spec``.

    The input sequence is never mutated and repeated calls with the same
    arguments yield the same order. ``popularity`` keeps provider order.
    """

    spec = spec or FilterSortSpec()
    kept = [
        item for item in items if (item.community_rating or 0) >= spec.min_rating
    ]
    if spec.sort_by == "rating":
        return sorted(kept, key=lambda item: -(item.community_rating or 0))
    if spec.sort_by == "title":
        return sorted(kept, key=lambda item: item.title.casefold())
    return kept


def apply_library(
    entries: Iterable[LibraryEntry], filters: LibraryFilter | None = None
) -> list[LibraryEntry]:
    """Return library entries matching ``filters`` in the requested order."""

    filters = filters or LibraryFilter()
    needle = filters.text.casefold()
    kept = [
        entry
        for entry in entries
        if (filters.status is None or entry.status == filters.status)
        and (filters.item_type is None or entry.item_type == filters.item_type)
        and (not needle or needle in entry.title.casefold())
    ]
    if filters.sort_by == "rating":
        return sorted(kept, key=lambda entry: -(entry.rating or 0))
    if filters.sort_by == "added":
        # Store keys grow with insertion; newest first.
        return sorted(kept, key=lambda entry: -(entry.id or 0))
    return sorted(kept, key=lambda entry: entry.title.casefold())


def summarize(items: Sequence[Item]) -> ResultStats:
    if not items:
        return ResultStats(total=0, average_rating=None)
    total_rating = sum(item.community_rating or 0 for item in items)
    return ResultStats(
        total=len(items), average_rating=round(total_rating / len(items), 1)
    )


def status_counts(entries: Iterable[LibraryEntry]) -> dict[str, int]:
    """Return the number of entries per status plus an ``all`` total."""

    counter = Counter(entry.status for entry in entries)
    counts = {"all": sum(counter.values())}
    for status in LIBRARY_STATUSES:
        counts[status] = counter.get(status, 0)
    return counts
