"""Centralized constants for the Solrise engine.

All magic numbers and configuration defaults live here so every layer
imports from a single source of truth.
"""

# ---------- Codeforces API / HTTP ----------
CF_BASE_URL = "https://codeforces.com/api"
REQUEST_TIMEOUT = 15.0
FULL_HISTORY_COUNT = 10000
SCOPED_REFRESH_COUNT = 100
DEFAULT_REFRESH_COUNT = 1000
GYM_CONTEST_THRESHOLD = 10000

# ---------- Catalog Cache ----------
CATALOG_TTL_SECONDS = 6 * 60 * 60
CATALOG_MAX_ATTEMPTS = 3
CATALOG_BASE_DELAY = 1.0  # seconds
CATALOG_RESOURCE = "catalog"

# ---------- Persistent Store ----------
CATALOG_CACHE_KEY = "cf_all_problems"
CATALOG_SCHEMA = "catalog/v1"
HANDLE_CACHE_KEY = "cf_user_handle_v1"
HANDLE_SCHEMA = "handle/v1"
MAX_KEY_LENGTH = 100
MAX_ITEM_BYTES = 500_000
STORAGE_TOTAL_LIMIT = 5_000_000
STORAGE_CLEANUP_TARGET = 3_000_000
# The serialized catalog is several MB; it gets its own per-key ceiling.
CATALOG_MAX_BYTES = 4_500_000

# ---------- Validation ----------
HANDLE_MIN_LENGTH = 3
HANDLE_MAX_LENGTH = 24
HANDLE_PATTERN = r"^[a-zA-Z0-9_-]+$"
GROUP_ID_MIN = 1
GROUP_ID_MAX = 999_999
SANITIZE_MAX_INPUT = 10_000
SANITIZE_MAX_OUTPUT = 100

# ---------- Outcomes ----------
SUCCESS_OUTCOME = "OK"

# ---------- Insights ----------
RATING_BUCKET_WIDTH = 100

# ---------- Problem views ----------
UNSOLVED_LIMIT = 40
UNSOLVED_INDEX_PATTERN = r"^[A-Z0-9]+$"
PROBLEMS_PAGE_SIZE = 30
