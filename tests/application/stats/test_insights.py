from solrise.application.catalog_cache import merge_popularity
from solrise.application.stats.insights import CatalogInsights, RatingBucket, tag_counts
from solrise.domain.models import CatalogItem, DerivedState


def state_with(*keys):
    return DerivedState(
        solved_set=frozenset(keys), attempted_unsolved={}, daily_counts={}, streak=0
    )


def test_summary_for_solved_items(sample_catalog):
    items = merge_popularity(sample_catalog)

    summary = CatalogInsights().summarize(items, state_with("4-A", "71-A"))

    assert summary.average_rating == 800
    assert summary.hardest_solved == 800
    assert summary.most_active_tag == "math"
    assert summary.completion_rate == 67
    assert summary.rating_buckets == [RatingBucket(rating=800, count=2)]


def test_rating_buckets_are_contiguous(sample_catalog):
    items = merge_popularity(sample_catalog)

    summary = CatalogInsights().summarize(items, state_with("4-A", "1-A"))

    assert summary.rating_buckets == [
        RatingBucket(800, 1),
        RatingBucket(900, 0),
        RatingBucket(1000, 1),
    ]
    assert summary.average_rating == 900
    assert summary.hardest_solved == 1000


def test_nothing_solved(sample_catalog):
    summary = CatalogInsights().summarize(merge_popularity(sample_catalog), state_with())

    assert summary.completion_rate == 0
    assert summary.most_active_tag == ""
    assert summary.rating_buckets == []


def test_unrated_items_are_left_out_of_ratings():
    items = [
        CatalogItem(group_id=1, index="A", name="Rated", rating=1200),
        CatalogItem(group_id=2, index="A", name="Unrated"),
    ]

    summary = CatalogInsights().summarize(items, state_with("1-A", "2-A"))

    assert summary.average_rating == 1200
    assert summary.completion_rate == 100


def test_tag_counts(sample_catalog):
    assert tag_counts(sample_catalog.items) == {"math": 2, "strings": 1}
