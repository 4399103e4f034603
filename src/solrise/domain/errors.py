"""
Error taxonomy for the sync engine.

Errors that change externally-visible correctness (ValidationError, NotFound,
exhausted NetworkError) propagate to callers. StorageQuotaError and
CorruptedCache are absorbed at the persistence boundary.
"""


class SolriseError(Exception):
    """Base class for all engine errors."""


class ValidationError(SolriseError):
    """A user handle or group id failed its format check. No I/O was performed."""


class NetworkError(SolriseError):
    """A fetch failed: transport error, timeout, or a malformed/empty response."""


class NotFound(SolriseError):
    """The activity service reports no such user."""

    def __init__(self, handle: str):
        super().__init__(f"User '{handle}' not found. Please check the handle.")
        self.handle = handle


class StorageQuotaError(SolriseError):
    """The persistent store refused a write because its quota is exhausted."""


class CorruptedCache(SolriseError):
    """A persisted payload failed schema validation."""
