# Application Stats Package
from .derived_state import DerivedStateEngine
from .insights import CatalogInsights, InsightSummary, RatingBucket, tag_counts
from .queries import SortOrder, filter_problems, unsolved_attempts

__all__ = [
    "DerivedStateEngine",
    "CatalogInsights",
    "InsightSummary",
    "RatingBucket",
    "tag_counts",
    "SortOrder",
    "filter_problems",
    "unsolved_attempts",
]
