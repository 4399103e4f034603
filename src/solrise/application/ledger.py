"""
Submission Ledger: append-only, id-deduplicated accumulation of ActivityRecords.

Ledgers are immutable values: ``merge`` and ``replace`` return new ledgers.
Records from later merges are prepended, so iteration yields the newest batch first.
"""

from collections.abc import Iterable, Iterator

from solrise.domain.models import ActivityRecord


def _dedupe(records: Iterable[ActivityRecord], seen: set[int]) -> list[ActivityRecord]:
    unique = []
    for record in records:
        if record.id in seen:
            continue
        seen.add(record.id)
        unique.append(record)
    return unique


class SubmissionLedger:
    def __init__(self, owner: str | None = None, records: Iterable[ActivityRecord] = ()):
        self._owner = owner
        self._records: tuple[ActivityRecord, ...] = tuple(_dedupe(records, set()))
        self._ids = frozenset(r.id for r in self._records)

    @classmethod
    def empty(cls) -> "SubmissionLedger":
        return cls()

    @classmethod
    def replace(cls, owner: str, records: Iterable[ActivityRecord]) -> "SubmissionLedger":
        """Full-replace mode: discard any prior ledger and start from ``records``."""
        return cls(owner, records)

    @property
    def owner(self) -> str | None:
        return self._owner

    @property
    def ids(self) -> frozenset[int]:
        return self._ids

    @property
    def records(self) -> tuple[ActivityRecord, ...]:
        return self._records

    @property
    def is_empty(self) -> bool:
        return not self._records

    def merge(self, records: Iterable[ActivityRecord]) -> "SubmissionLedger":
        """
        Incremental-append mode.

        Records whose id is already present (in the ledger or earlier in the
        batch) are dropped. Returns ``self`` when nothing is new.
        """
        fresh = _dedupe(records, set(self._ids))
        if not fresh:
            return self
        return SubmissionLedger(self._owner, [*fresh, *self._records])

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[ActivityRecord]:
        return iter(self._records)

    def __contains__(self, record_id: object) -> bool:
        return record_id in self._ids

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SubmissionLedger):
            return NotImplemented
        return self._owner == other._owner and self._records == other._records

    def __hash__(self) -> int:
        return hash((self._owner, self._records))

    def __repr__(self) -> str:
        return f"SubmissionLedger(owner={self._owner!r}, records={len(self._records)})"
