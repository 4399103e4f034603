"""
Tracker Session: the engine's exposed surface.

One session owns one active user at a time: its ledger, profile and derived
state. Switching or clearing the user discards all three together before any
new fetch is issued. A generation counter guards against late-resolving
fetches: results from a superseded generation are dropped.
"""

import asyncio
import logging
from collections.abc import Mapping

from solrise.domain.constants import HANDLE_CACHE_KEY, HANDLE_SCHEMA
from solrise.domain.errors import NetworkError, NotFound, SolriseError, ValidationError
from solrise.domain.models import (
    ActivityRecord,
    AttemptInfo,
    CatalogItem,
    DerivedState,
    UserProfile,
)
from solrise.domain.ports import ActivityService
from solrise.domain.validation import is_valid_handle, validate_group_id, validate_handle
from solrise.infrastructure.storage.cache_adapter import PersistentCacheAdapter

from .catalog_cache import CatalogCache
from .fetch_coordinator import FetchCoordinator, FetchStatus
from .ledger import SubmissionLedger
from .stats.derived_state import DerivedStateEngine

logger = logging.getLogger(__name__)


def user_resource(handle: str) -> str:
    return f"user:{handle.lower()}"


class TrackerSession:
    """
    Explicit, constructible replacement for module-level caches and flags.

    Lifecycle: ``init()`` loads the catalog and restores the persisted user;
    ``reset()`` drops everything, including the persisted catalog.
    """

    def __init__(
        self,
        catalog: CatalogCache,
        activity: ActivityService,
        adapter: PersistentCacheAdapter,
        engine: DerivedStateEngine | None = None,
        coordinator: FetchCoordinator | None = None,
    ):
        self.catalog_cache = catalog
        self.activity = activity
        self.adapter = adapter
        self.engine = engine or DerivedStateEngine()
        self.coordinator = coordinator or catalog.coordinator

        self._handle: str | None = None
        self._profile: UserProfile | None = None
        self._ledger = SubmissionLedger.empty()
        self._state = DerivedState.empty()
        self._generation = 0

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def init(self, restore_user: bool = True) -> str | None:
        """
        Load the catalog and, if a valid handle was persisted, fetch that user.

        Returns:
            The restored handle, or None if nothing was restored.

        Raises:
            NetworkError: The catalog could not be loaded.
        """
        await self.load_catalog()

        handle = self.persisted_handle()
        if handle is None or not restore_user:
            return handle

        try:
            await self.init_user(handle)
        except SolriseError as e:
            logger.warning(f"Could not restore user '{handle}': {e}")
            return None
        return handle

    def reset(self) -> None:
        self.clear_user()
        self.catalog_cache.clear()
        self.coordinator.reset()

    async def close(self) -> None:
        await self.activity.close()
        await self.catalog_cache.service.close()

    # ------------------------------------------------------------------
    # Catalog
    # ------------------------------------------------------------------

    async def load_catalog(self) -> list[CatalogItem]:
        """Idempotent; safe to call repeatedly and concurrently."""
        items = await self.catalog_cache.load()
        self._recompute()
        return items

    # ------------------------------------------------------------------
    # User operations
    # ------------------------------------------------------------------

    async def init_user(self, handle: str) -> None:
        """
        Full fetch for ``handle``: replaces any previous user and ledger.

        Raises:
            ValidationError: Malformed handle (no I/O performed).
            NotFound: The service has no such user; state is rolled back.
            NetworkError: The fetch failed; state is rolled back.
        """
        handle = validate_handle(handle)
        resource = user_resource(handle)

        joining = (
            self._handle == handle
            and self.coordinator.status(resource) == FetchStatus.IN_FLIGHT
        )
        if not joining:
            self.clear_user()
            self._handle = handle
            self._persist_handle(handle)
        generation = self._generation

        if self.catalog_cache.status != FetchStatus.FETCHED:
            try:
                await self.load_catalog()
            except NetworkError as e:
                logger.warning(f"Catalog unavailable, continuing without it: {e}")

        try:
            profile, records = await self.coordinator.run(
                resource, lambda: self._fetch_user(handle)
            )
        except (NotFound, NetworkError):
            if generation == self._generation:
                self.clear_user()
            raise

        if generation != self._generation:
            logger.debug(f"Discarding superseded full fetch for '{handle}'")
            return

        self._profile = profile
        self._ledger = SubmissionLedger.replace(handle, records)
        self._recompute()
        logger.info(f"Loaded {len(self._ledger)} submissions for '{handle}'")

    async def refresh_user(self, handle: str) -> int:
        """
        Merge the user's most recent submissions into the ledger.

        Transient failures are logged and swallowed.

        Returns:
            Number of newly merged records.
        """
        handle = validate_handle(handle)
        self._require_owner(handle)
        return await self._refresh(handle, None)

    async def refresh_user_scoped(self, handle: str, group_id: int) -> int:
        """Like ``refresh_user``, scoped to one contest."""
        handle = validate_handle(handle)
        group_id = validate_group_id(group_id)
        self._require_owner(handle)
        return await self._refresh(handle, group_id)

    def clear_user(self) -> None:
        """Discard ledger, profile and derived state; forget the persisted handle."""
        self._generation += 1
        if self._handle is not None:
            self.coordinator.reset(user_resource(self._handle))
        self._handle = None
        self._profile = None
        self._ledger = SubmissionLedger.empty()
        self._state = DerivedState.empty(catalog_size=len(self.catalog_cache.key_set))
        self.adapter.remove(HANDLE_CACHE_KEY)

    def persisted_handle(self) -> str | None:
        entry = self.adapter.read(HANDLE_CACHE_KEY, HANDLE_SCHEMA, str)
        if entry is None:
            return None
        if not is_valid_handle(entry.data):
            logger.warning(f"Discarding invalid persisted handle {entry.data!r}")
            self.adapter.remove(HANDLE_CACHE_KEY)
            return None
        return entry.data

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def handle(self) -> str | None:
        return self._handle

    @property
    def profile(self) -> UserProfile | None:
        return self._profile

    @property
    def ledger(self) -> SubmissionLedger:
        return self._ledger

    @property
    def state(self) -> DerivedState:
        return self._state

    @property
    def catalog(self) -> list[CatalogItem]:
        return self.catalog_cache.items

    @property
    def solved_set(self) -> frozenset[str]:
        return self._state.solved_set

    @property
    def attempted_unsolved(self) -> Mapping[str, AttemptInfo]:
        return self._state.attempted_unsolved

    @property
    def daily_counts(self) -> Mapping[str, int]:
        return self._state.daily_counts

    @property
    def streak(self) -> int:
        return self._state.streak

    @property
    def solved_in_catalog(self) -> int:
        return self._state.solved_in_catalog

    @property
    def attempted_in_catalog(self) -> int:
        return self._state.attempted_in_catalog

    @property
    def untouched_in_catalog(self) -> int:
        return self._state.untouched_in_catalog

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _fetch_user(self, handle: str) -> tuple[UserProfile, list[ActivityRecord]]:
        profile, records = await asyncio.gather(
            self.activity.fetch_profile(handle),
            self.activity.fetch_full(handle),
        )
        return profile, records

    async def _refresh(self, handle: str, group_id: int | None) -> int:
        generation = self._generation
        resource = f"refresh:{handle.lower()}:{group_id or '*'}"

        try:
            records = await self.coordinator.run(
                resource, lambda: self.activity.fetch_incremental(handle, group_id)
            )
        except (NetworkError, NotFound) as e:
            scope = f" contest {group_id}" if group_id else ""
            logger.warning(f"Failed to refresh{scope} submissions for '{handle}': {e}")
            return 0

        if generation != self._generation:
            logger.debug(f"Discarding superseded refresh for '{handle}'")
            return 0

        merged = self._ledger.merge(records)
        added = len(merged) - len(self._ledger)
        if merged is self._ledger:
            logger.debug(f"Refresh for '{handle}' found no new submissions")
            return 0

        self._ledger = merged
        self._recompute()
        logger.info(f"Merged {added} new submissions for '{handle}'")
        return added

    def _require_owner(self, handle: str) -> None:
        if self._ledger.owner is None:
            raise ValidationError("No user loaded; call init_user first")
        if self._ledger.owner.lower() != handle.lower():
            raise ValidationError(
                f"'{handle}' is not the active user ('{self._ledger.owner}')"
            )

    def _persist_handle(self, handle: str) -> None:
        if not self.adapter.write(HANDLE_CACHE_KEY, HANDLE_SCHEMA, handle, str):
            logger.info("Handle not persisted; it will not be restored next session")

    def _recompute(self) -> None:
        self._state = self.engine.compute(self._ledger, self.catalog_cache.key_set)
