import json

import pytest

from solrise.domain.errors import StorageQuotaError
from solrise.domain.models import CatalogItem
from solrise.infrastructure.storage.cache_adapter import PersistentCacheAdapter
from solrise.infrastructure.storage.stores import MemoryStore

ITEMS = [
    CatalogItem(group_id=4, index="A", name="Watermelon", rating=800, tags=("math",)),
    CatalogItem(group_id=1, index="A", name="Theatre Square"),
]


def test_write_then_read_round_trip(adapter, clock):
    assert adapter.write("catalog", "catalog/v1", ITEMS, list[CatalogItem]) is True

    entry = adapter.read("catalog", "catalog/v1", list[CatalogItem])

    assert entry is not None
    assert entry.timestamp == clock.now
    assert entry.data == ITEMS
    assert isinstance(entry.data[0].tags, tuple)


def test_envelope_layout(adapter, store):
    adapter.write("handle", "handle/v1", "tourist", str)
    raw = json.loads(store.get_item("handle"))
    assert raw["schema"] == "handle/v1"
    assert raw["data"] == "tourist"
    assert "timestamp" in raw


def test_read_missing_key(adapter):
    assert adapter.read("nothing", "catalog/v1", list[CatalogItem]) is None


@pytest.mark.parametrize(
    "raw",
    [
        "not json at all",
        json.dumps([1, 2, 3]),
        json.dumps({"schema": "catalog/v1", "data": []}),  # no timestamp
        json.dumps({"schema": "catalog/v1", "timestamp": 1, "data": [{"index": "A"}]}),
        json.dumps({"schema": "catalog/v1", "timestamp": 1, "data": "oops"}),
    ],
)
def test_corrupted_entry_is_purged(adapter, store, raw):
    store.set_item("catalog", raw)

    assert adapter.read("catalog", "catalog/v1", list[CatalogItem]) is None
    assert store.get_item("catalog") is None


def test_schema_tag_mismatch_is_purged(adapter, store):
    adapter.write("catalog", "catalog/v0", ITEMS, list[CatalogItem])

    assert adapter.read("catalog", "catalog/v1", list[CatalogItem]) is None
    assert store.get_item("catalog") is None


def test_per_key_ceiling_refuses(adapter, store):
    assert adapter.write("catalog", "catalog/v1", ITEMS, list[CatalogItem], max_bytes=10) is False
    assert store.get_item("catalog") is None


def test_invalid_key_refused(adapter):
    assert adapter.write_raw("", "x") is False
    assert adapter.write_raw("k" * 101, "x") is False
    assert adapter.read_raw("k" * 101) is None


def test_quota_error_is_absorbed():
    class FullStore(MemoryStore):
        def set_item(self, key, value):
            raise StorageQuotaError("full")

    adapter = PersistentCacheAdapter(FullStore())
    assert adapter.write_raw("handle", "tourist") is False


def test_quota_error_from_bounded_store():
    adapter = PersistentCacheAdapter(
        MemoryStore(quota_bytes=50), total_limit_bytes=10_000, cleanup_target_bytes=10_000
    )
    assert adapter.write_raw("big", "x" * 100) is False
    assert adapter.write_raw("small", "x" * 10) is True


def test_cleanup_evicts_oldest_timestamped_first(store):
    ticks = iter([100.0, 200.0, 300.0])
    adapter = PersistentCacheAdapter(
        store, total_limit_bytes=10_000, cleanup_target_bytes=10_000, clock=lambda: next(ticks)
    )
    adapter.write("old", "s", "a" * 50, str)
    adapter.write("mid", "s", "b" * 50, str)
    adapter.write("new", "s", "c" * 50, str)
    store.set_item("plain", "z" * 10)

    # Shrink the target so two timestamped entries must go
    adapter.cleanup_target_bytes = adapter.total_size() - 150

    removed = adapter.cleanup()

    assert removed == 2
    assert store.get_item("old") is None
    assert store.get_item("mid") is None
    assert store.get_item("new") is not None
    assert store.get_item("plain") is not None


def test_cleanup_then_untimestamped_largest_first(store):
    adapter = PersistentCacheAdapter(store, total_limit_bytes=10_000, cleanup_target_bytes=100)
    store.set_item("small", "x" * 20)
    store.set_item("large", "y" * 200)

    adapter.cleanup()

    assert store.get_item("large") is None
    assert store.get_item("small") is not None


def test_write_over_total_limit_triggers_cleanup_then_writes(store):
    adapter = PersistentCacheAdapter(store, total_limit_bytes=300, cleanup_target_bytes=100)
    store.set_item("stale", "y" * 250)

    assert adapter.write_raw("fresh", "x" * 80) is True
    assert store.get_item("stale") is None
    assert store.get_item("fresh") == "x" * 80


def test_rewriting_a_key_counts_its_old_size_once(store):
    adapter = PersistentCacheAdapter(store, total_limit_bytes=300, cleanup_target_bytes=100)
    store.set_item("catalog", "c" * 200)
    adapter.write("handle", "handle/v1", "tourist", str)
    assert adapter.total_size() < 300

    assert adapter.write_raw("catalog", "d" * 200) is True
    assert store.get_item("catalog") == "d" * 200
    assert store.get_item("handle") is not None
