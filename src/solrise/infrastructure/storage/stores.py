"""
Bounded key/value stores implementing the PersistentStore port.

Both stores account capacity as the UTF-8 size of ``key + value`` for every
entry and raise StorageQuotaError when a write would exceed it.
"""

import json
import logging
from pathlib import Path

from solrise.domain.errors import StorageQuotaError
from solrise.domain.ports import PersistentStore

logger = logging.getLogger(__name__)


def entry_size(key: str, value: str) -> int:
    return len((key + value).encode("utf-8"))


class MemoryStore(PersistentStore):
    """Process-local store. Used for tests and for runs without a cache file."""

    def __init__(self, quota_bytes: int = 5_000_000):
        self.quota_bytes = quota_bytes
        self._items: dict[str, str] = {}

    def get_item(self, key: str) -> str | None:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._check_quota(key, value)
        self._items[key] = value

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._items)

    def _check_quota(self, key: str, value: str) -> None:
        current = sum(entry_size(k, v) for k, v in self._items.items() if k != key)
        needed = current + entry_size(key, value)
        if needed > self.quota_bytes:
            raise StorageQuotaError(
                f"Quota exceeded writing '{key}': {needed} > {self.quota_bytes} bytes"
            )


class JsonFileStore(MemoryStore):
    """
    MemoryStore persisted as a single JSON object on disk.

    A missing or unreadable file starts empty; every mutation rewrites the file.
    """

    def __init__(self, path: Path, quota_bytes: int = 5_000_000):
        super().__init__(quota_bytes=quota_bytes)
        self.path = path
        self._items = self._load()

    def _load(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable cache file {self.path}: {e}")
            return {}
        if not isinstance(raw, dict):
            logger.warning(f"Ignoring cache file {self.path}: not a JSON object")
            return {}
        return {k: v for k, v in raw.items() if isinstance(k, str) and isinstance(v, str)}

    def set_item(self, key: str, value: str) -> None:
        super().set_item(key, value)
        self._flush()

    def remove_item(self, key: str) -> None:
        if key in self._items:
            super().remove_item(key)
            self._flush()

    def _flush(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_text(json.dumps(self._items), encoding="utf-8")
        tmp.replace(self.path)
