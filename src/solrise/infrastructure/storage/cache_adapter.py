"""
Persistent Cache Adapter: schema-validated, quota-safe access to a PersistentStore.

Every payload is wrapped in an envelope ``{"schema", "timestamp", "data"}``.
Reads that fail validation are purged and reported as a miss; writes that the
store refuses are abandoned. Neither ever raises to the caller.
"""

import json
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from pydantic import ValidationError as SchemaError

from solrise.domain.constants import (
    MAX_ITEM_BYTES,
    MAX_KEY_LENGTH,
    STORAGE_CLEANUP_TARGET,
    STORAGE_TOTAL_LIMIT,
)
from solrise.domain.errors import CorruptedCache, StorageQuotaError
from solrise.domain.ports import PersistentStore

from .stores import entry_size

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CacheEnvelope(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    schema_tag: str = Field(alias="schema")
    timestamp: float
    data: Any


@dataclass(frozen=True)
class CacheEntry(Generic[T]):
    timestamp: float
    data: T


class PersistentCacheAdapter:
    """
    Bounded key/value wrapper with schema validation and quota-safe writes.
    """

    def __init__(
        self,
        store: PersistentStore,
        total_limit_bytes: int = STORAGE_TOTAL_LIMIT,
        cleanup_target_bytes: int = STORAGE_CLEANUP_TARGET,
        clock: Callable[[], float] = time.time,
    ):
        """
        Args:
            store: The underlying store (port).
            total_limit_bytes: Cumulative ceiling; a write crossing it triggers cleanup first.
            cleanup_target_bytes: Cleanup removes entries until the total drops below this.
            clock: Source of envelope timestamps (seconds since epoch).
        """
        self.store = store
        self.total_limit_bytes = total_limit_bytes
        self.cleanup_target_bytes = cleanup_target_bytes
        self.clock = clock

    # ------------------------------------------------------------------
    # Typed access
    # ------------------------------------------------------------------

    def read(self, key: str, schema: str, model: Any) -> CacheEntry | None:
        """
        Read and validate an enveloped payload.

        Returns None on a miss or when the payload is corrupt (the entry is purged).
        """
        raw = self.read_raw(key)
        if raw is None:
            return None

        try:
            envelope = CacheEnvelope.model_validate_json(raw)
            if envelope.schema_tag != schema:
                raise CorruptedCache(
                    f"schema mismatch: expected {schema}, found {envelope.schema_tag}"
                )
            data = TypeAdapter(model).validate_python(envelope.data)
        except (SchemaError, CorruptedCache) as e:
            logger.warning(f"Discarding corrupted cache entry '{key}': {e}")
            self.remove(key)
            return None

        return CacheEntry(timestamp=envelope.timestamp, data=data)

    def write(
        self,
        key: str,
        schema: str,
        data: Any,
        model: Any,
        max_bytes: int = MAX_ITEM_BYTES,
    ) -> bool:
        """
        Serialize ``data`` (validated as ``model``) into an envelope and store it.

        Returns:
            True if stored, False if refused. A refusal is never fatal.
        """
        payload = TypeAdapter(model).dump_python(data, mode="json")
        envelope = CacheEnvelope(schema_tag=schema, timestamp=self.clock(), data=payload)
        return self.write_raw(key, envelope.model_dump_json(by_alias=True), max_bytes)

    # ------------------------------------------------------------------
    # Raw access
    # ------------------------------------------------------------------

    def read_raw(self, key: str) -> str | None:
        if not key or len(key) > MAX_KEY_LENGTH:
            return None
        try:
            return self.store.get_item(key)
        except OSError as e:
            logger.warning(f"Cache read failed for '{key}': {e}")
            return None

    def write_raw(self, key: str, value: str, max_bytes: int = MAX_ITEM_BYTES) -> bool:
        if not key or len(key) > MAX_KEY_LENGTH:
            logger.warning(f"Refusing cache write: invalid key {key!r}")
            return False

        size = len(value.encode("utf-8"))
        if size > max_bytes:
            logger.warning(f"Storage item too large: '{key}' is {size} bytes (max {max_bytes})")
            return False

        existing = self.store.get_item(key)
        projected = self.total_size() + entry_size(key, value)
        if existing is not None:
            projected -= entry_size(key, existing)
        if projected > self.total_limit_bytes:
            logger.warning("Storage quota approaching limit, cleaning up...")
            self.cleanup()

        try:
            self.store.set_item(key, value)
            return True
        except StorageQuotaError as e:
            logger.error(f"Storage quota exceeded: {e}")
            self.cleanup()
            return False
        except OSError as e:
            logger.error(f"Cache write failed for '{key}': {e}")
            return False

    def remove(self, key: str) -> None:
        try:
            self.store.remove_item(key)
        except OSError as e:
            logger.warning(f"Cache remove failed for '{key}': {e}")

    # ------------------------------------------------------------------
    # Capacity management
    # ------------------------------------------------------------------

    def total_size(self) -> int:
        total = 0
        for key in self.store.keys():
            total += entry_size(key, self.store.get_item(key) or "")
        return total

    def cleanup(self) -> int:
        """
        Evict entries until the store is below ``cleanup_target_bytes``.

        Timestamped entries go first (oldest first), then the rest (largest first).

        Returns:
            Number of entries removed.
        """
        items = []
        for key in self.store.keys():
            value = self.store.get_item(key) or ""
            items.append((key, entry_size(key, value), _envelope_timestamp(value)))

        items.sort(
            key=lambda it: (it[2] is None, it[2] if it[2] is not None else 0, -it[1])
        )

        current = sum(size for _, size, _ in items)
        removed = 0
        for key, size, _ in items:
            if current < self.cleanup_target_bytes:
                break
            self.remove(key)
            current -= size
            removed += 1

        if removed:
            logger.info(f"Cache cleanup evicted {removed} entries ({current} bytes remain)")
        return removed


def _envelope_timestamp(value: str) -> float | None:
    try:
        parsed = json.loads(value)
    except ValueError:
        return None
    if not isinstance(parsed, dict):
        return None
    ts = parsed.get("timestamp")
    if isinstance(ts, bool) or not isinstance(ts, (int, float)):
        return None
    return float(ts)
