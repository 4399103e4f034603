"""
Session Factory
Centralizes the wiring of stores, adapters and services into a TrackerSession.
"""

from solrise.application.catalog_cache import CatalogCache
from solrise.application.config import AppConfig
from solrise.application.fetch_coordinator import FetchCoordinator
from solrise.application.session import TrackerSession
from solrise.domain.ports import PersistentStore
from solrise.infrastructure.adapters.codeforces import CodeforcesClient
from solrise.infrastructure.storage.cache_adapter import PersistentCacheAdapter
from solrise.infrastructure.storage.stores import JsonFileStore, MemoryStore


def get_store(config: AppConfig) -> PersistentStore:
    """
    Returns a file-backed store when a cache path is configured, else an in-memory one.
    """
    if config.cache_path is None:
        return MemoryStore(quota_bytes=config.storage_quota_bytes)
    return JsonFileStore(config.cache_path, quota_bytes=config.storage_quota_bytes)


def create_session(config: AppConfig, client: CodeforcesClient | None = None) -> TrackerSession:
    """
    Build a TrackerSession backed by the Codeforces API.
    """
    client = client or CodeforcesClient(
        base_url=config.api_base_url,
        timeout=config.request_timeout,
        refresh_count=config.refresh_count,
    )
    adapter = PersistentCacheAdapter(
        get_store(config),
        total_limit_bytes=config.storage_quota_bytes,
        cleanup_target_bytes=config.storage_cleanup_bytes,
    )
    coordinator = FetchCoordinator()
    catalog = CatalogCache(
        client,
        adapter,
        coordinator=coordinator,
        ttl_seconds=config.catalog_ttl_seconds,
        max_attempts=config.fetch_max_attempts,
        base_delay=config.fetch_base_delay,
        max_bytes=config.catalog_max_bytes,
    )
    return TrackerSession(catalog, client, adapter, coordinator=coordinator)
