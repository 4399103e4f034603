"""
Problem views over the catalog and a DerivedState: filtered problem lists and
the attempted-but-unsolved queue.

Pure functions, no I/O.
"""

import re
from collections.abc import Collection, Iterable
from enum import Enum

from solrise.domain.constants import UNSOLVED_INDEX_PATTERN, UNSOLVED_LIMIT
from solrise.domain.models import AttemptInfo, CatalogItem, DerivedState

_UNSOLVED_INDEX_RE = re.compile(UNSOLVED_INDEX_PATTERN)


class SortOrder(str, Enum):
    POPULAR = "popular"  # most solved first
    NEWEST = "newest"  # highest contest id first
    OLDEST = "oldest"


def filter_problems(
    items: Iterable[CatalogItem],
    rating: int | None = None,
    min_rating: int | None = None,
    max_rating: int | None = None,
    tags: Collection[str] = (),
    solved: Collection[str] = (),
    hide_solved: bool = False,
    sort: SortOrder = SortOrder.NEWEST,
) -> list[CatalogItem]:
    """
    Select and order catalog items.

    Args:
        items: Catalog items to choose from.
        rating: Exact rating match. Ignored when a range bound is given.
        min_rating: Inclusive lower bound; unrated items count as rating 0.
        max_rating: Inclusive upper bound; unrated items count as rating 0.
        tags: Every tag must be present on the item (case-insensitive).
        solved: Keys of solved items.
        hide_solved: Drop items whose key is in ``solved``.
        sort: Result order. Ties keep catalog order.

    Returns:
        The matching items, sorted.
    """
    wanted = {tag.lower() for tag in tags}
    ranged = min_rating is not None or max_rating is not None
    low = min_rating if min_rating is not None else 0
    high = max_rating if max_rating is not None else float("inf")

    selected = []
    for item in items:
        if ranged:
            if not low <= (item.rating or 0) <= high:
                continue
        elif rating is not None and item.rating != rating:
            continue
        if wanted and not wanted <= {tag.lower() for tag in item.tags}:
            continue
        if hide_solved and item.key in solved:
            continue
        selected.append(item)

    if sort == SortOrder.POPULAR:
        selected.sort(key=lambda item: item.popularity, reverse=True)
    elif sort == SortOrder.OLDEST:
        selected.sort(key=lambda item: item.group_id)
    else:
        selected.sort(key=lambda item: item.group_id, reverse=True)
    return selected


def unsolved_attempts(
    state: DerivedState, limit: int | None = UNSOLVED_LIMIT
) -> list[AttemptInfo]:
    """
    Attempted-but-unsolved problems, most recently touched first.

    Entries without a positive contest id or with an index outside ``[A-Z0-9]``
    have no usable problem page and are skipped.
    """
    usable = [
        info
        for info in state.attempted_unsolved.values()
        if info.group_id is not None
        and info.group_id > 0
        and _UNSOLVED_INDEX_RE.match(info.index or "")
    ]
    usable.sort(key=lambda info: info.last_timestamp or 0, reverse=True)
    return usable if limit is None else usable[:limit]
