"""
Domain models for the catalog, the activity ledger and derived analytics.

These are pure data structures with no I/O or external dependencies.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

from .constants import GYM_CONTEST_THRESHOLD, SUCCESS_OUTCOME


def normalize_index(index: object) -> str:
    """Upper-case and trim a problem index ("a " -> "A")."""
    if index is None:
        return ""
    return str(index).upper().strip()


def make_key(group_id: int | str | None, index: object) -> str:
    """
    Canonical Key for a catalog item: ``{groupId}-{normalizedIndex}``.

    A missing group id yields an empty prefix, so the Key never collides
    with a real catalog item.
    """
    group = "" if group_id is None else str(group_id)
    return f"{group}-{normalize_index(index)}"


def problem_link(group_id: int | None, index: str) -> str:
    """Problemset URL for a problem; gym contests live under their own section."""
    if group_id is None:
        return ""
    section = "gym" if group_id >= GYM_CONTEST_THRESHOLD else "contest"
    return f"https://codeforces.com/{section}/{group_id}/problem/{index}"


@dataclass(frozen=True)
class CatalogItem:
    """
    One problem of the reference catalog.

    Attributes:
        group_id: Contest id the problem belongs to.
        index: Problem index inside the contest ("A", "B1", ...).
        name: Display name.
        rating: Difficulty rating, if the catalog assigns one.
        tags: Topic tags (unordered).
        popularity: Number of users who solved it, merged from catalog statistics.
    """

    group_id: int
    index: str
    name: str
    rating: int | None = None
    tags: tuple[str, ...] = ()
    popularity: int = 0

    @property
    def key(self) -> str:
        return make_key(self.group_id, self.index)

    @property
    def link(self) -> str:
        return problem_link(self.group_id, self.index)


@dataclass(frozen=True)
class PopularityStat:
    group_id: int
    index: str
    popularity: int

    @property
    def key(self) -> str:
        return make_key(self.group_id, self.index)


@dataclass(frozen=True)
class CatalogResponse:
    """Parsed Catalog Service payload: items plus auxiliary popularity statistics."""

    items: list[CatalogItem]
    statistics: list[PopularityStat] = field(default_factory=list)


@dataclass(frozen=True)
class ActivityRecord:
    """
    A single submission. Immutable once observed.

    Attributes:
        id: Unique submission id.
        group_id: Contest id of the referenced problem (None for problems outside contests).
        index: Problem index (raw; normalized when the Key is built).
        outcome: Verdict label; ``"OK"`` marks success. None while still judging.
        timestamp: Submission time, seconds since epoch.
        name: Problem name as reported with the submission.
        tags: Problem tags as reported with the submission.
    """

    id: int
    group_id: int | None
    index: str
    outcome: str | None
    timestamp: int
    name: str | None = None
    tags: tuple[str, ...] = ()

    @property
    def key(self) -> str:
        return make_key(self.group_id, self.index)

    @property
    def is_success(self) -> bool:
        return self.outcome == SUCCESS_OUTCOME


@dataclass
class AttemptInfo:
    """Per-Key aggregate over every ActivityRecord touching that Key."""

    key: str
    group_id: int | None
    index: str
    attempts: int = 0
    last_outcome: str | None = None
    last_timestamp: int | None = None
    name: str | None = None
    tags: tuple[str, ...] = ()

    @property
    def link(self) -> str:
        return problem_link(self.group_id, self.index)


@dataclass(frozen=True)
class DerivedState:
    """
    Observable state computed wholesale from (Ledger, Catalog).

    ``solved_set`` and the keys of ``attempted_unsolved`` are always disjoint.
    """

    solved_set: frozenset[str]
    attempted_unsolved: Mapping[str, AttemptInfo]
    daily_counts: Mapping[str, int]
    streak: int

    # Catalog-intersected counts (zero when no catalog was supplied)
    solved_in_catalog: int = 0
    attempted_in_catalog: int = 0
    untouched_in_catalog: int = 0

    @classmethod
    def empty(cls, catalog_size: int = 0) -> "DerivedState":
        return cls(
            solved_set=frozenset(),
            attempted_unsolved=MappingProxyType({}),
            daily_counts=MappingProxyType({}),
            streak=0,
            untouched_in_catalog=catalog_size,
        )


@dataclass(frozen=True)
class UserProfile:
    handle: str
    rating: int | None = None
    max_rating: int | None = None
    rank: str | None = None
    title_photo: str | None = None
