from datetime import datetime

import pytest

from solrise.application.catalog_cache import CatalogCache
from solrise.application.session import TrackerSession
from solrise.application.stats.derived_state import DerivedStateEngine
from solrise.domain.errors import NetworkError
from solrise.domain.models import (
    ActivityRecord,
    CatalogItem,
    CatalogResponse,
    PopularityStat,
    UserProfile,
)
from solrise.domain.ports import ActivityService, CatalogService
from solrise.infrastructure.storage.cache_adapter import PersistentCacheAdapter
from solrise.infrastructure.storage.stores import MemoryStore

# 2024-03-15 12:00 local time; noon keeps day arithmetic clear of DST edges
NOW = datetime(2024, 3, 15, 12, 0, 0).timestamp()


class FakeClock:
    def __init__(self, now: float = NOW):
        self.now = now

    def __call__(self) -> float:
        return self.now


class FakeCatalogService(CatalogService):
    """Returns queued responses (or raises queued errors) in order."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = 0

    async def fetch_catalog(self) -> CatalogResponse:
        self.calls += 1
        outcome = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class FakeActivityService(ActivityService):
    def __init__(self):
        self.profiles: dict[str, UserProfile] = {}
        self.full: dict[str, list[ActivityRecord]] = {}
        self.incremental: list[ActivityRecord] = []
        self.errors: dict[str, Exception] = {}
        self.calls: list[tuple] = []

    async def fetch_profile(self, handle: str) -> UserProfile:
        self.calls.append(("profile", handle))
        if "profile" in self.errors:
            raise self.errors["profile"]
        return self.profiles.get(handle, UserProfile(handle=handle))

    async def fetch_full(self, handle: str) -> list[ActivityRecord]:
        self.calls.append(("full", handle))
        if "full" in self.errors:
            raise self.errors["full"]
        return list(self.full.get(handle, []))

    async def fetch_incremental(self, handle, group_id=None) -> list[ActivityRecord]:
        self.calls.append(("incremental", handle, group_id))
        if "incremental" in self.errors:
            raise self.errors["incremental"]
        return list(self.incremental)


async def no_sleep(delay: float) -> None:
    no_sleep.delays.append(delay)


no_sleep.delays = []


def make_record(
    id: int,
    key: str = "4-A",
    outcome: str | None = "OK",
    t: float = NOW,
    name: str | None = None,
) -> ActivityRecord:
    group, index = key.split("-", 1)
    return ActivityRecord(
        id=id,
        group_id=int(group) if group else None,
        index=index,
        outcome=outcome,
        timestamp=int(t),
        name=name,
    )


def sample_catalog() -> CatalogResponse:
    return CatalogResponse(
        items=[
            CatalogItem(group_id=4, index="A", name="Watermelon", rating=800, tags=("math",)),
            CatalogItem(group_id=1, index="A", name="Theatre Square", rating=1000, tags=("math",)),
            CatalogItem(group_id=71, index="A", name="Way Too Long Words", rating=800, tags=("strings",)),
        ],
        statistics=[
            PopularityStat(group_id=4, index="A", popularity=300000),
            PopularityStat(group_id=1, index="A", popularity=150000),
        ],
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def adapter(store, clock):
    return PersistentCacheAdapter(store, clock=clock)


@pytest.fixture
def catalog_service():
    return FakeCatalogService(sample_catalog())


@pytest.fixture
def activity_service():
    return FakeActivityService()


@pytest.fixture
def sleeps():
    no_sleep.delays = []
    return no_sleep.delays


@pytest.fixture
def fake_sleep(sleeps):
    return no_sleep


@pytest.fixture
def scripted_catalog_service():
    """Factory for a catalog service that replays the given responses."""
    return FakeCatalogService


@pytest.fixture
def catalog_cache(catalog_service, adapter, clock, sleeps):
    return CatalogCache(catalog_service, adapter, clock=clock, sleep=no_sleep)


@pytest.fixture
def session(catalog_cache, activity_service, adapter):
    return TrackerSession(catalog_cache, activity_service, adapter, engine=DerivedStateEngine())


@pytest.fixture
def network_error():
    return NetworkError("connection reset")


@pytest.fixture(name="make_record")
def make_record_fixture():
    return make_record


@pytest.fixture(name="sample_catalog")
def sample_catalog_fixture():
    return sample_catalog()


@pytest.fixture
def now():
    return NOW
