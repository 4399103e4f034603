"""
Catalog insights: headline statistics joining the catalog with a DerivedState.

This is a pure computation module with no I/O.
"""

from collections import Counter
from collections.abc import Iterable
from dataclasses import dataclass, field

from solrise.domain.constants import RATING_BUCKET_WIDTH
from solrise.domain.models import CatalogItem, DerivedState


@dataclass(frozen=True)
class RatingBucket:
    rating: int
    count: int


@dataclass
class InsightSummary:
    """
    Summary of a user's progress through the catalog.
    """

    average_rating: int  # Mean rating of rated solved items, rounded
    hardest_solved: int  # Highest rating among solved items (0 if none rated)
    most_active_tag: str  # Most frequent tag among solved items
    completion_rate: int  # Percent of the catalog solved, rounded
    rating_buckets: list[RatingBucket] = field(default_factory=list)


def tag_counts(items: Iterable[CatalogItem]) -> dict[str, int]:
    """Number of catalog items carrying each tag."""
    counts: Counter[str] = Counter()
    for item in items:
        counts.update(item.tags)
    return dict(counts)


class CatalogInsights:
    """
    Computes progress statistics over the catalog.

    Stateless and side-effect free.
    """

    def summarize(self, items: list[CatalogItem], state: DerivedState) -> InsightSummary:
        if not items or not state.solved_set:
            return InsightSummary(
                average_rating=0, hardest_solved=0, most_active_tag="", completion_rate=0
            )

        solved_items = [item for item in items if item.key in state.solved_set]
        rated = [item.rating for item in solved_items if item.rating]

        average_rating = round(sum(rated) / len(rated)) if rated else 0
        hardest_solved = max(rated, default=0)
        completion_rate = round(len(solved_items) / len(items) * 100)

        return InsightSummary(
            average_rating=average_rating,
            hardest_solved=hardest_solved,
            most_active_tag=self._most_active_tag(solved_items),
            completion_rate=completion_rate,
            rating_buckets=self.rating_buckets(solved_items),
        )

    def rating_buckets(self, solved_items: Iterable[CatalogItem]) -> list[RatingBucket]:
        """
        Solved counts per rating bucket, contiguous from the lowest to the
        highest non-empty bucket.
        """
        counts: Counter[int] = Counter()
        for item in solved_items:
            if not item.rating:
                continue
            counts[(item.rating // RATING_BUCKET_WIDTH) * RATING_BUCKET_WIDTH] += 1

        if not counts:
            return []

        low, high = min(counts), max(counts)
        return [
            RatingBucket(rating=r, count=counts.get(r, 0))
            for r in range(low, high + RATING_BUCKET_WIDTH, RATING_BUCKET_WIDTH)
        ]

    def _most_active_tag(self, solved_items: Iterable[CatalogItem]) -> str:
        counts = tag_counts(solved_items)
        if not counts:
            return ""
        # Ties go to the tag seen first
        return max(counts, key=lambda tag: counts[tag])
