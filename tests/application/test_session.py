import asyncio

import pytest

from solrise.application.catalog_cache import CatalogCache
from solrise.application.fetch_coordinator import FetchStatus
from solrise.application.session import TrackerSession
from solrise.domain.constants import HANDLE_CACHE_KEY, HANDLE_SCHEMA
from solrise.domain.errors import NetworkError, NotFound, ValidationError
from solrise.domain.models import UserProfile


@pytest.fixture
def loaded(activity_service, make_record, now):
    activity_service.profiles["tourist"] = UserProfile(handle="tourist", rating=3800)
    activity_service.full["tourist"] = [
        make_record(2, key="4-A", t=now),
        make_record(1, key="1-A", outcome="WRONG_ANSWER", t=now - 60),
    ]
    return activity_service


@pytest.mark.asyncio
async def test_catalog_without_user_counts_everything_untouched(session):
    await session.load_catalog()

    assert len(session.catalog) == 3
    assert session.untouched_in_catalog == 3
    assert session.solved_in_catalog == 0


@pytest.mark.asyncio
@pytest.mark.parametrize("handle", ["ab", "tour\x00ist", "bad handle", ""])
async def test_malformed_handle_rejected_before_io(
    session, activity_service, catalog_service, handle
):
    with pytest.raises(ValidationError):
        await session.init_user(handle)

    assert activity_service.calls == []
    assert catalog_service.calls == 0


@pytest.mark.asyncio
async def test_init_user_loads_ledger_and_state(session, loaded, adapter):
    await session.init_user("tourist")

    assert session.handle == "tourist"
    assert session.profile.rating == 3800
    assert len(session.ledger) == 2
    assert session.solved_set == {"4-A"}
    assert set(session.attempted_unsolved) == {"1-A"}
    assert session.solved_in_catalog == 1
    assert session.attempted_in_catalog == 1
    assert session.untouched_in_catalog == 1
    assert session.persisted_handle() == "tourist"


@pytest.mark.asyncio
async def test_not_found_rolls_back_and_forgets_handle(session, activity_service):
    activity_service.errors["profile"] = NotFound("ghost_user")

    with pytest.raises(NotFound):
        await session.init_user("ghost_user")

    assert session.handle is None
    assert session.ledger.is_empty
    assert session.persisted_handle() is None


@pytest.mark.asyncio
async def test_network_error_on_full_fetch_rolls_back(session, loaded, network_error):
    await session.init_user("tourist")
    loaded.errors["full"] = network_error

    with pytest.raises(NetworkError):
        await session.init_user("tourist")

    assert session.handle is None
    assert session.ledger.is_empty
    assert session.solved_set == frozenset()
    assert session.persisted_handle() is None


@pytest.mark.asyncio
async def test_switching_user_discards_previous_state(session, loaded, make_record):
    await session.init_user("tourist")
    loaded.full["petr"] = [make_record(50, key="71-A")]

    await session.init_user("petr")

    assert session.ledger.owner == "petr"
    assert session.ledger.ids == {50}
    assert session.solved_set == {"71-A"}


@pytest.mark.asyncio
async def test_catalog_failure_does_not_block_user(
    activity_service, adapter, clock, fake_sleep, scripted_catalog_service, network_error, loaded
):
    catalog = CatalogCache(
        scripted_catalog_service(network_error), adapter, clock=clock, sleep=fake_sleep
    )
    session = TrackerSession(catalog, activity_service, adapter)

    await session.init_user("tourist")

    assert session.solved_set == {"4-A"}
    assert session.untouched_in_catalog == 0
    assert catalog.status == FetchStatus.NEVER


@pytest.mark.asyncio
async def test_refresh_merges_new_records(session, loaded, make_record, now):
    await session.init_user("tourist")
    loaded.incremental = [make_record(3, key="1-A", t=now), make_record(2, key="4-A", t=now)]

    assert await session.refresh_user("tourist") == 1
    assert session.solved_set == {"4-A", "1-A"}
    assert dict(session.attempted_unsolved) == {}

    # Same batch again changes nothing
    assert await session.refresh_user("tourist") == 0
    assert len(session.ledger) == 3


@pytest.mark.asyncio
async def test_refresh_is_case_insensitive_on_owner(session, loaded):
    await session.init_user("tourist")
    assert await session.refresh_user("Tourist") == 0


@pytest.mark.asyncio
async def test_refresh_swallows_transient_errors(session, loaded, network_error, make_record):
    await session.init_user("tourist")
    loaded.incremental = [make_record(3)]
    loaded.errors["incremental"] = network_error

    assert await session.refresh_user("tourist") == 0
    assert len(session.ledger) == 2


@pytest.mark.asyncio
async def test_refresh_requires_active_owner(session, loaded):
    with pytest.raises(ValidationError):
        await session.refresh_user("tourist")

    await session.init_user("tourist")
    with pytest.raises(ValidationError):
        await session.refresh_user("petr")


@pytest.mark.asyncio
async def test_scoped_refresh(session, loaded):
    await session.init_user("tourist")

    await session.refresh_user_scoped("tourist", 4)

    assert ("incremental", "tourist", 4) in loaded.calls


@pytest.mark.asyncio
@pytest.mark.parametrize("group_id", [0, -3, 1_000_000, True])
async def test_scoped_refresh_rejects_bad_group(session, loaded, group_id):
    await session.init_user("tourist")
    calls = len(loaded.calls)

    with pytest.raises(ValidationError):
        await session.refresh_user_scoped("tourist", group_id)
    assert len(loaded.calls) == calls


@pytest.mark.asyncio
async def test_concurrent_init_user_fetches_once(session, loaded):
    await asyncio.gather(session.init_user("tourist"), session.init_user("tourist"))

    assert loaded.calls.count(("full", "tourist")) == 1
    assert session.ledger.owner == "tourist"
    assert len(session.ledger) == 2


@pytest.mark.asyncio
async def test_clear_during_fetch_discards_late_result(session, loaded):
    await session.load_catalog()
    release = asyncio.Event()
    original = loaded.fetch_full

    async def slow_full(handle):
        await release.wait()
        return await original(handle)

    loaded.fetch_full = slow_full

    pending = asyncio.ensure_future(session.init_user("tourist"))
    await asyncio.sleep(0)
    session.clear_user()
    release.set()
    await pending

    assert session.handle is None
    assert session.ledger.is_empty
    assert session.solved_set == frozenset()


@pytest.mark.asyncio
async def test_refresh_after_clear_is_discarded(session, loaded, make_record):
    await session.init_user("tourist")
    release = asyncio.Event()

    async def slow_incremental(handle, group_id=None):
        await release.wait()
        return [make_record(99)]

    loaded.fetch_incremental = slow_incremental

    pending = asyncio.ensure_future(session.refresh_user("tourist"))
    await asyncio.sleep(0)
    session.clear_user()
    release.set()

    assert await pending == 0
    assert session.ledger.is_empty


@pytest.mark.asyncio
async def test_init_restores_persisted_handle(session, loaded, adapter):
    adapter.write(HANDLE_CACHE_KEY, HANDLE_SCHEMA, "tourist", str)

    assert await session.init() == "tourist"
    assert session.handle == "tourist"
    assert len(session.ledger) == 2


@pytest.mark.asyncio
async def test_init_drops_invalid_persisted_handle(session, adapter, store):
    adapter.write(HANDLE_CACHE_KEY, HANDLE_SCHEMA, "x", str)

    assert await session.init() is None
    assert store.get_item(HANDLE_CACHE_KEY) is None


@pytest.mark.asyncio
async def test_init_survives_missing_user(session, activity_service, adapter):
    adapter.write(HANDLE_CACHE_KEY, HANDLE_SCHEMA, "ghost_user", str)
    activity_service.errors["profile"] = NotFound("ghost_user")

    assert await session.init() is None
    assert session.persisted_handle() is None
    assert len(session.catalog) == 3


@pytest.mark.asyncio
async def test_reset_drops_everything(session, loaded, store):
    await session.init_user("tourist")

    session.reset()

    assert session.handle is None
    assert session.catalog == []
    assert store.keys() == []
