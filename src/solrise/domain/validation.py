"""Input validation for user handles and group ids."""

import re
import unicodedata

from .constants import (
    GROUP_ID_MAX,
    GROUP_ID_MIN,
    HANDLE_MAX_LENGTH,
    HANDLE_MIN_LENGTH,
    HANDLE_PATTERN,
    SANITIZE_MAX_INPUT,
    SANITIZE_MAX_OUTPUT,
)
from .errors import ValidationError

_HANDLE_RE = re.compile(HANDLE_PATTERN)
_HTML_CHARS_RE = re.compile(r"[<>'\"&]")
_CONTROL_CHARS_RE = re.compile(r"[\x00-\x1f\x7f]")


def is_valid_handle(handle: object) -> bool:
    """
    Check a Codeforces handle: 3-24 chars of ``[a-zA-Z0-9_-]``.

    Length is checked before the regex, then again after NFKC normalization
    (full-width "ｔｅｓｔ" normalizes to "test").
    """
    if not isinstance(handle, str):
        return False
    if not HANDLE_MIN_LENGTH <= len(handle) <= HANDLE_MAX_LENGTH:
        return False

    normalized = unicodedata.normalize("NFKC", handle)
    if not HANDLE_MIN_LENGTH <= len(normalized) <= HANDLE_MAX_LENGTH:
        return False
    return _HANDLE_RE.fullmatch(normalized) is not None


def is_valid_group_id(group_id: object) -> bool:
    # bool is an int subclass
    if isinstance(group_id, bool) or not isinstance(group_id, int):
        return False
    return GROUP_ID_MIN <= group_id <= GROUP_ID_MAX


def validate_handle(handle: object) -> str:
    if not is_valid_handle(handle):
        raise ValidationError(f"Invalid handle: {handle!r}")
    return unicodedata.normalize("NFKC", handle)  # type: ignore[arg-type]


def validate_group_id(group_id: object) -> int:
    if not is_valid_group_id(group_id):
        raise ValidationError(f"Invalid contest id: {group_id!r}")
    return group_id  # type: ignore[return-value]


def sanitize_input(text: object) -> str:
    """
    Strip HTML special characters and control characters from free text.

    Oversized input is dropped entirely rather than truncated.
    """
    if not isinstance(text, str):
        return ""
    if len(text) > SANITIZE_MAX_INPUT:
        return ""

    cleaned = unicodedata.normalize("NFKC", text)
    cleaned = _HTML_CHARS_RE.sub("", cleaned)
    cleaned = _CONTROL_CHARS_RE.sub("", cleaned)
    return cleaned.strip()[:SANITIZE_MAX_OUTPUT]
