import logging
from typing import Any

import httpx
from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as SchemaError

from solrise.domain.constants import (
    CF_BASE_URL,
    DEFAULT_REFRESH_COUNT,
    FULL_HISTORY_COUNT,
    REQUEST_TIMEOUT,
    SCOPED_REFRESH_COUNT,
)
from solrise.domain.errors import NetworkError, NotFound
from solrise.domain.models import (
    ActivityRecord,
    CatalogItem,
    CatalogResponse,
    PopularityStat,
    UserProfile,
    normalize_index,
)
from solrise.domain.ports import ActivityService, CatalogService


class _Payload(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class _ProblemPayload(_Payload):
    contest_id: int | None = Field(default=None, alias="contestId")
    index: str
    name: str = ""
    rating: int | None = None
    tags: list[str] = Field(default_factory=list)


class _StatisticPayload(_Payload):
    contest_id: int = Field(alias="contestId")
    index: str
    solved_count: int = Field(default=0, alias="solvedCount")


class _SubmissionPayload(_Payload):
    id: int
    problem: _ProblemPayload
    verdict: str | None = None
    creation_time_seconds: int = Field(default=0, alias="creationTimeSeconds")


class _UserPayload(_Payload):
    handle: str
    rating: int | None = None
    max_rating: int | None = Field(default=None, alias="maxRating")
    rank: str | None = None
    title_photo: str | None = Field(default=None, alias="titlePhoto")


class CodeforcesClient(CatalogService, ActivityService):
    """Adapter for the Codeforces public API (JSON over HTTP)."""

    def __init__(
        self,
        base_url: str = CF_BASE_URL,
        timeout: float = REQUEST_TIMEOUT,
        refresh_count: int = DEFAULT_REFRESH_COUNT,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.logger = logging.getLogger(__name__)
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.refresh_count = refresh_count
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

        self.logger.debug(f"CodeforcesClient initialized with base_url={self.base_url}")

    # ------------------------------------------------------------------
    # CatalogService
    # ------------------------------------------------------------------

    async def fetch_catalog(self) -> CatalogResponse:
        result = await self._invoke("problemset.problems")
        if not isinstance(result, dict) or not isinstance(result.get("problems"), list):
            raise NetworkError("Invalid API response: missing problems list")

        items = []
        for raw in result["problems"]:
            try:
                problem = _ProblemPayload.model_validate(raw)
            except SchemaError as e:
                self.logger.debug(f"Skipping malformed problem {raw!r}: {e}")
                continue
            if problem.contest_id is None:
                continue
            items.append(
                CatalogItem(
                    group_id=problem.contest_id,
                    index=normalize_index(problem.index),
                    name=problem.name,
                    rating=problem.rating,
                    tags=tuple(problem.tags),
                )
            )

        statistics = []
        for raw in result.get("problemStatistics") or []:
            try:
                stat = _StatisticPayload.model_validate(raw)
            except SchemaError as e:
                self.logger.debug(f"Skipping malformed statistic {raw!r}: {e}")
                continue
            statistics.append(
                PopularityStat(
                    group_id=stat.contest_id,
                    index=normalize_index(stat.index),
                    popularity=stat.solved_count,
                )
            )

        return CatalogResponse(items=items, statistics=statistics)

    # ------------------------------------------------------------------
    # ActivityService
    # ------------------------------------------------------------------

    async def fetch_profile(self, handle: str) -> UserProfile:
        result = await self._invoke("user.info", handle=handle, handles=handle)
        if not isinstance(result, list) or not result:
            raise NotFound(handle)
        try:
            user = _UserPayload.model_validate(result[0])
        except SchemaError as e:
            raise NetworkError(f"Invalid user.info payload: {e}") from e
        return UserProfile(
            handle=user.handle,
            rating=user.rating,
            max_rating=user.max_rating,
            rank=user.rank,
            title_photo=user.title_photo,
        )

    async def fetch_full(self, handle: str) -> list[ActivityRecord]:
        result = await self._invoke(
            "user.status", handle=handle, params={"from": 1, "count": FULL_HISTORY_COUNT}
        )
        return self._parse_submissions(result)

    async def fetch_incremental(
        self, handle: str, group_id: int | None = None
    ) -> list[ActivityRecord]:
        if group_id is not None:
            result = await self._invoke(
                "contest.status",
                handle=handle,
                params={"contestId": group_id, "from": 1, "count": SCOPED_REFRESH_COUNT},
            )
        else:
            result = await self._invoke(
                "user.status",
                handle=handle,
                params={"from": 1, "count": self.refresh_count},
            )
        return self._parse_submissions(result)

    def _parse_submissions(self, result: Any) -> list[ActivityRecord]:
        if not isinstance(result, list):
            raise NetworkError("Invalid API response: submissions must be a list")

        records = []
        for raw in result:
            try:
                sub = _SubmissionPayload.model_validate(raw)
            except SchemaError as e:
                self.logger.debug(f"Skipping malformed submission: {e}")
                continue
            records.append(
                ActivityRecord(
                    id=sub.id,
                    group_id=sub.problem.contest_id,
                    index=normalize_index(sub.problem.index),
                    outcome=sub.verdict,
                    timestamp=sub.creation_time_seconds,
                    name=sub.problem.name or None,
                    tags=tuple(sub.problem.tags),
                )
            )
        return records

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    async def _invoke(
        self,
        method: str,
        handle: str | None = None,
        handles: str | None = None,
        params: dict[str, Any] | None = None,
    ) -> Any:
        query: dict[str, Any] = dict(params or {})
        if handles is not None:
            query["handles"] = handles
        elif handle is not None:
            query["handle"] = handle

        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout, transport=self._transport)

        url = f"{self.base_url}/{method}"
        try:
            resp = await self._client.get(url, params=query)
        except httpx.TimeoutException as e:
            self.logger.error(f"Codeforces call {method} timed out: {e}")
            raise NetworkError(f"Request timeout calling {method}") from e
        except httpx.HTTPError as e:
            self.logger.error(f"Codeforces call {method} failed: {e}")
            raise NetworkError(f"{method} failed: {e}") from e

        try:
            data = resp.json()
        except ValueError as e:
            raise NetworkError(f"{method} returned non-JSON body (HTTP {resp.status_code})") from e

        if not isinstance(data, dict) or "status" not in data:
            raise NetworkError(f"{method} returned an unexpected envelope")

        if data["status"] != "OK":
            comment = str(data.get("comment") or "")
            if handle is not None and "not found" in comment.lower():
                raise NotFound(handle)
            raise NetworkError(
                f"Codeforces API returned {resp.status_code} for {method}: {comment or 'no comment'}"
            )

        if "result" not in data:
            raise NetworkError(f"{method} response is missing required result field")
        return data["result"]

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None
