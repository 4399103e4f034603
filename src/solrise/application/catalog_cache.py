"""
Catalog Cache: holds the full problem catalog, refreshed at most once per TTL.

Lookup order: in-memory items (if fresh), then the persisted copy (if fresh), then the
Catalog Service with bounded retries.
"""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable

from solrise.domain.constants import (
    CATALOG_BASE_DELAY,
    CATALOG_CACHE_KEY,
    CATALOG_MAX_ATTEMPTS,
    CATALOG_MAX_BYTES,
    CATALOG_RESOURCE,
    CATALOG_SCHEMA,
    CATALOG_TTL_SECONDS,
)
from solrise.domain.errors import NetworkError
from solrise.domain.models import CatalogItem, CatalogResponse
from solrise.domain.ports import CatalogService
from solrise.infrastructure.storage.cache_adapter import PersistentCacheAdapter

from .fetch_coordinator import FetchCoordinator, FetchStatus

logger = logging.getLogger(__name__)


def merge_popularity(response: CatalogResponse) -> list[CatalogItem]:
    """Attach each statistic's popularity to the item with the same Key (default 0)."""
    popularity = {stat.key: stat.popularity for stat in response.statistics}
    return [
        CatalogItem(
            group_id=item.group_id,
            index=item.index,
            name=item.name,
            rating=item.rating,
            tags=item.tags,
            popularity=popularity.get(item.key, 0),
        )
        for item in response.items
    ]


class CatalogCache:
    def __init__(
        self,
        service: CatalogService,
        adapter: PersistentCacheAdapter,
        coordinator: FetchCoordinator | None = None,
        ttl_seconds: float = CATALOG_TTL_SECONDS,
        max_attempts: int = CATALOG_MAX_ATTEMPTS,
        base_delay: float = CATALOG_BASE_DELAY,
        max_bytes: int = CATALOG_MAX_BYTES,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """
        Args:
            service: Catalog Service port.
            adapter: Persistent cache used to survive restarts.
            coordinator: Shared single-flight coordinator; a private one if omitted.
            ttl_seconds: Maximum age of a persisted catalog that is reused as-is.
            max_attempts: Total fetch attempts before giving up.
            base_delay: Backoff unit; attempt ``n`` (0-based) waits ``base_delay * n``.
            max_bytes: Per-key size ceiling for the persisted catalog.
            clock: Time source, seconds since epoch.
            sleep: Awaitable delay used between attempts.
        """
        self.service = service
        self.adapter = adapter
        self.coordinator = coordinator or FetchCoordinator()
        self.ttl_seconds = ttl_seconds
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.max_bytes = max_bytes
        self.clock = clock
        self.sleep = sleep
        self._items: list[CatalogItem] = []
        self._key_set: frozenset[str] = frozenset()
        self._loaded_at: float | None = None

    @property
    def items(self) -> list[CatalogItem]:
        return list(self._items)

    @property
    def key_set(self) -> frozenset[str]:
        return self._key_set

    @property
    def status(self) -> FetchStatus:
        return self.coordinator.status(CATALOG_RESOURCE)

    async def load(self) -> list[CatalogItem]:
        """
        Return the catalog, fetching it at most once across concurrent callers.

        Items held in memory are reused until they are ``ttl_seconds`` old.

        Raises:
            NetworkError: All attempts failed and no earlier copy is available.
        """
        fetched = self.status == FetchStatus.FETCHED
        if self._items and fetched and self._is_fresh(self._loaded_at):
            return list(self._items)
        return await self.coordinator.run(CATALOG_RESOURCE, self._load_uncached)

    def clear(self) -> None:
        self._items = []
        self._key_set = frozenset()
        self._loaded_at = None
        self.coordinator.reset(CATALOG_RESOURCE)
        self.adapter.remove(CATALOG_CACHE_KEY)

    async def _load_uncached(self) -> list[CatalogItem]:
        entry = self.adapter.read(CATALOG_CACHE_KEY, CATALOG_SCHEMA, list[CatalogItem])
        if entry is not None and entry.data and self._is_fresh(entry.timestamp):
            logger.debug(f"Catalog served from persistent cache ({len(entry.data)} items)")
            self._set_items(entry.data, entry.timestamp)
            return list(entry.data)

        try:
            response = await self._fetch_with_retry()
        except NetworkError:
            if not self._items:
                raise
            logger.warning(f"Catalog refresh failed; keeping {len(self._items)} stale items")
            return list(self._items)

        items = merge_popularity(response)
        self._set_items(items, self.clock())

        stored = self.adapter.write(
            CATALOG_CACHE_KEY, CATALOG_SCHEMA, items, list[CatalogItem], self.max_bytes
        )
        if not stored:
            logger.info("Catalog not persisted; continuing with in-memory copy")

        logger.info(f"Catalog fetched: {len(items)} items")
        return list(items)

    def _is_fresh(self, timestamp: float | None) -> bool:
        if timestamp is None:
            return False
        age = self.clock() - timestamp
        if not 0 <= age < self.ttl_seconds:
            logger.debug(f"Catalog is stale (age={age:.0f}s)")
            return False
        return True

    async def _fetch_with_retry(self) -> CatalogResponse:
        last_error: Exception | None = None

        for attempt in range(self.max_attempts):
            if attempt > 0:
                await self.sleep(self.base_delay * attempt)
            try:
                response = await self.service.fetch_catalog()
                if not response.items:
                    raise NetworkError("Catalog response contained no items")
                return response
            except NetworkError as e:
                last_error = e
                logger.warning(
                    f"Catalog fetch attempt {attempt + 1}/{self.max_attempts} failed: {e}"
                )

        raise NetworkError("Failed to fetch problems") from last_error

    def _set_items(self, items: list[CatalogItem], loaded_at: float) -> None:
        self._items = list(items)
        self._key_set = frozenset(item.key for item in items)
        self._loaded_at = loaded_at
