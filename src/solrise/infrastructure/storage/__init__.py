# Infrastructure Storage Package
from .cache_adapter import CacheEntry, PersistentCacheAdapter
from .stores import JsonFileStore, MemoryStore

__all__ = ["PersistentCacheAdapter", "CacheEntry", "MemoryStore", "JsonFileStore"]
