"""
Ports (interfaces) for the engine's external collaborators.

These define the contract that infrastructure adapters must implement.
Application services depend on these abstractions, not concrete implementations.
"""

from abc import ABC, abstractmethod

from .models import ActivityRecord, CatalogResponse, UserProfile


class CatalogService(ABC):
    """
    Port for fetching the reference catalog.

    Implementations:
        - CodeforcesClient: Codeforces ``problemset.problems`` over HTTP.
    """

    @abstractmethod
    async def fetch_catalog(self) -> CatalogResponse:
        """
        Fetch every catalog item plus popularity statistics.

        Raises:
            NetworkError: On transport failure or a malformed response.
        """
        pass

    async def close(self) -> None:
        """Release transport resources. No-op by default."""
        return None


class ActivityService(ABC):
    """
    Port for fetching a user's activity records.

    Responses are not guaranteed to be sorted by timestamp.
    """

    @abstractmethod
    async def fetch_profile(self, handle: str) -> UserProfile:
        """
        Raises:
            NotFound: The service has no such user.
            NetworkError: On transport failure.
        """
        pass

    @abstractmethod
    async def fetch_full(self, handle: str) -> list[ActivityRecord]:
        """Fetch the (bounded-size) full history for a user."""
        pass

    @abstractmethod
    async def fetch_incremental(
        self, handle: str, group_id: int | None = None
    ) -> list[ActivityRecord]:
        """
        Fetch the most recent records, optionally scoped to one catalog group.
        """
        pass

    async def close(self) -> None:
        """Release transport resources. No-op by default."""
        return None


class PersistentStore(ABC):
    """
    String-keyed, string-valued, bounded-capacity key/value storage.
    """

    @abstractmethod
    def get_item(self, key: str) -> str | None:
        pass

    @abstractmethod
    def set_item(self, key: str, value: str) -> None:
        """
        Raises:
            StorageQuotaError: The write would exceed the store's capacity.
        """
        pass

    @abstractmethod
    def remove_item(self, key: str) -> None:
        pass

    @abstractmethod
    def keys(self) -> list[str]:
        pass
