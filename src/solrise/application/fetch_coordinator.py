"""
Single-flight coordination of logical resource fetches.

At most one fetch per resource is pending at any time; concurrent callers
await the same task and receive the same result (or the same exception).
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from enum import Enum
from typing import Any, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class FetchStatus(str, Enum):
    NEVER = "never"
    IN_FLIGHT = "in_flight"
    FETCHED = "fetched"


class FetchCoordinator:
    """
    Tracks in-flight fetches per resource name (e.g. ``"catalog"``, ``"user:tourist"``).

    A failed fetch reverts the resource to NEVER so the next call retries it.
    """

    def __init__(self) -> None:
        self._tasks: dict[str, asyncio.Task[Any]] = {}
        self._fetched: set[str] = set()

    def status(self, resource: str) -> FetchStatus:
        if resource in self._tasks:
            return FetchStatus.IN_FLIGHT
        if resource in self._fetched:
            return FetchStatus.FETCHED
        return FetchStatus.NEVER

    async def run(self, resource: str, factory: Callable[[], Awaitable[T]]) -> T:
        """
        Run ``factory()`` for ``resource`` unless a fetch is already pending, in
        which case join it.

        The shared task is shielded: cancelling one waiter does not cancel it
        for the others.
        """
        task = self._tasks.get(resource)
        if task is None:
            task = asyncio.ensure_future(self._execute(resource, factory))
            self._tasks[resource] = task
        else:
            logger.debug(f"Joining in-flight fetch for '{resource}'")
        return await asyncio.shield(task)

    def reset(self, resource: str | None = None) -> None:
        """
        Forget fetch state for one resource (or all). A still-pending task keeps
        running but no longer marks the resource as fetched.
        """
        if resource is None:
            self._tasks.clear()
            self._fetched.clear()
            return
        self._tasks.pop(resource, None)
        self._fetched.discard(resource)

    async def _execute(self, resource: str, factory: Callable[[], Awaitable[T]]) -> T:
        current = asyncio.current_task()
        try:
            result = await factory()
        except BaseException:
            if self._tasks.get(resource) is current:
                self._fetched.discard(resource)
            raise
        else:
            if self._tasks.get(resource) is current:
                self._fetched.add(resource)
            return result
        finally:
            if self._tasks.get(resource) is current:
                del self._tasks[resource]
