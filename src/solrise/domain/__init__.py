# Domain Package
from .errors import (
    CorruptedCache,
    NetworkError,
    NotFound,
    SolriseError,
    StorageQuotaError,
    ValidationError,
)
from .models import (
    ActivityRecord,
    AttemptInfo,
    CatalogItem,
    CatalogResponse,
    DerivedState,
    PopularityStat,
    UserProfile,
    make_key,
    normalize_index,
)
from .ports import ActivityService, CatalogService, PersistentStore

__all__ = [
    "ActivityRecord",
    "ActivityService",
    "AttemptInfo",
    "CatalogItem",
    "CatalogResponse",
    "CatalogService",
    "CorruptedCache",
    "DerivedState",
    "NetworkError",
    "NotFound",
    "PersistentStore",
    "PopularityStat",
    "SolriseError",
    "StorageQuotaError",
    "UserProfile",
    "ValidationError",
    "make_key",
    "normalize_index",
]
