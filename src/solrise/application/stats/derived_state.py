"""
Derived State Engine: recomputes the observable state from the full ledger.

This is a pure computation module with no I/O. The state is always rebuilt
wholesale; it is never patched incrementally.
"""

from collections import defaultdict
from collections.abc import Collection, Iterable, Mapping
from datetime import date, datetime, timedelta, tzinfo
from types import MappingProxyType

from solrise.domain.models import ActivityRecord, AttemptInfo, DerivedState


def chronological(records: Iterable[ActivityRecord]) -> list[ActivityRecord]:
    """
    Fold order for the engine: oldest first, ties broken by ascending id.

    The last record folded for a Key is its most recent one, regardless of the
    order in which batches arrived.
    """
    return sorted(records, key=lambda r: (r.timestamp, r.id))


class DerivedStateEngine:
    """
    Computes solved set, attempted-but-unsolved map, per-day counts and streak.

    Stateless and side-effect free.
    """

    def __init__(self, tz: tzinfo | None = None):
        """
        Args:
            tz: Zone used for calendar dates. None means the process local zone.
        """
        self.tz = tz

    def local_date(self, timestamp: float) -> date:
        return datetime.fromtimestamp(timestamp, tz=self.tz).date()

    def today(self) -> date:
        return datetime.now(tz=self.tz).date()

    def compute(
        self,
        ledger: Iterable[ActivityRecord],
        catalog_keys: Collection[str] | None = None,
        today: date | None = None,
    ) -> DerivedState:
        attempts: dict[str, AttemptInfo] = {}
        solved: set[str] = set()
        daily_counts: dict[str, int] = defaultdict(int)

        for record in chronological(ledger):
            key = record.key
            info = attempts.get(key)
            if info is None:
                info = AttemptInfo(key=key, group_id=record.group_id, index=record.index)
                attempts[key] = info

            info.attempts += 1
            info.last_outcome = record.outcome
            info.last_timestamp = record.timestamp
            if record.name:
                info.name = record.name
            if record.tags:
                info.tags = record.tags

            if record.is_success:
                solved.add(key)
                daily_counts[self.local_date(record.timestamp).isoformat()] += 1

        attempted_unsolved = {k: v for k, v in attempts.items() if k not in solved}
        streak = self.compute_streak(daily_counts, today or self.today())

        solved_in, attempted_in, untouched = self._catalog_counts(
            solved, attempted_unsolved, catalog_keys
        )

        return DerivedState(
            solved_set=frozenset(solved),
            attempted_unsolved=MappingProxyType(attempted_unsolved),
            daily_counts=MappingProxyType(dict(daily_counts)),
            streak=streak,
            solved_in_catalog=solved_in,
            attempted_in_catalog=attempted_in,
            untouched_in_catalog=untouched,
        )

    def compute_streak(self, daily_counts: Mapping[str, int], today: date) -> int:
        """
        Count consecutive active days walking backward from ``today``.

        Each next active date must be the cursor date or the day before it;
        the first larger gap ends the streak. No activity today or yesterday
        means a streak of 0.
        """
        active = sorted(
            (date.fromisoformat(day) for day, count in daily_counts.items() if count > 0),
            reverse=True,
        )

        streak = 0
        cursor = today
        for day in active:
            if cursor - day in (timedelta(0), timedelta(days=1)):
                streak += 1
                cursor = day
            else:
                break
        return streak

    def _catalog_counts(
        self,
        solved: set[str],
        attempted_unsolved: Mapping[str, AttemptInfo],
        catalog_keys: Collection[str] | None,
    ) -> tuple[int, int, int]:
        if not catalog_keys:
            return 0, 0, 0
        keys = catalog_keys if isinstance(catalog_keys, (set, frozenset)) else set(catalog_keys)
        solved_in = len(solved & keys)
        attempted_in = sum(1 for k in attempted_unsolved if k in keys)
        untouched = max(0, len(keys) - solved_in - attempted_in)
        return solved_in, attempted_in, untouched
