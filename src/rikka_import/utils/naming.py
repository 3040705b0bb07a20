"""Name normalization and uniquification helpers.

Collisions with local records are resolved by appending a RikkaHub
suffix: ``"Foo"`` becomes ``"Foo (RikkaHub)"``, then ``"Foo (RikkaHub 2)"``.
"""

import re
import uuid
from collections.abc import Collection

__all__ = [
    "new_uuid",
    "normalize_base_url",
    "normalize_name",
    "sanitize_key",
    "unique_display_name",
    "unique_key",
]

_CONTROL_WHITESPACE = re.compile(r"[\r\n\t]")
_WHITESPACE_RUN = re.compile(r"\s+")


def sanitize_key(raw: str) -> str:
    """Collapse whitespace; blank input becomes ``"RikkaHub"``."""
    cleaned = _WHITESPACE_RUN.sub(" ", _CONTROL_WHITESPACE.sub(" ", raw)).strip()
    return cleaned or "RikkaHub"


def normalize_name(raw: str) -> str:
    return raw.strip().lower()


def normalize_base_url(raw: str) -> str:
    """Trim, strip trailing slashes and lower-case a base URL for comparison."""
    return raw.strip().rstrip("/").lower()


def _suffixed(base: str, used: Collection[str]) -> str:
    i = 1
    while True:
        suffix = " (RikkaHub)" if i == 1 else f" (RikkaHub {i})"
        candidate = f"{base}{suffix}"
        if candidate not in used:
            return candidate
        i += 1


def unique_key(base: str, used: Collection[str], force_suffix: bool = False) -> str:
    """Return a sanitized key not present in ``used``.

    Args:
        base: Proposed key
        used: Keys already taken
        force_suffix: Append the RikkaHub suffix even if ``base`` is free

    Returns:
        ``base`` itself when free and not forced, otherwise the first free
        suffixed variant
    """
    normalized = sanitize_key(base)
    if not force_suffix and normalized not in used:
        return normalized
    return _suffixed(normalized, used)


def unique_display_name(base: str, used: Collection[str], force_suffix: bool = False) -> str:
    """Like unique_key, for display names; blank input becomes ``"Imported"``."""
    normalized = base.strip() or "Imported"
    if not force_suffix and normalized not in used:
        return normalized
    return _suffixed(normalized, used)


def new_uuid(used: Collection[str]) -> str:
    """Generate a UUID4 string absent from ``used``."""
    while True:
        candidate = str(uuid.uuid4())
        if candidate not in used:
            return candidate
