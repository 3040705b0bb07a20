"""Field resolution and coercion for loosely-typed foreign records.

Records in a RikkaHub export drift between app versions: the same value can
live under ``baseUrl`` or ``apiHost``, a boolean can arrive as ``"yes"`` and
a timestamp as epoch milliseconds. Every reader in this package goes through
these helpers instead of indexing records directly.

None of the helpers raise. Absent or unparsable input yields ``None`` (or an
empty collection) and the caller decides on the default.
"""

import json
import math
from collections.abc import Iterable, Iterator, Mapping, Sequence
from datetime import UTC, datetime
from typing import Any

__all__ = [
    "as_bool",
    "as_float",
    "as_int",
    "as_map_list",
    "decode_list_of_maps",
    "ensure_utc",
    "extract_ids",
    "first_non_null",
    "is_empty",
    "non_empty_strings",
    "parse_datetime",
    "pick_nested",
    "pick_string",
    "pick_value",
    "string_list",
    "to_str_map",
]

# Epoch values above this are milliseconds
_MILLIS_THRESHOLD = 1_000_000_000_000

_TRUE_WORDS = frozenset({"true", "1", "yes"})
_FALSE_WORDS = frozenset({"false", "0", "no"})


def to_str_map(raw: Any) -> dict[str, Any]:
    """Return ``raw`` as a dict with string keys, or an empty dict."""
    if isinstance(raw, Mapping):
        return {str(k): v for k, v in raw.items()}
    return {}


def pick_value(record: Mapping[str, Any], keys: Sequence[str]) -> Any:
    """Return the value of the first alias present in ``record``.

    Exact keys are tried first, in order. If none is present the record
    is scanned case-insensitively and the first alias with a non-None
    value wins.

    Args:
        record: Foreign record
        keys: Acceptable aliases, most preferred first

    Returns:
        The resolved value, or None
    """
    if not record:
        return None
    for key in keys:
        if key in record:
            return record[key]
    lowered = {str(k).lower(): v for k, v in record.items()}
    for key in keys:
        value = lowered.get(key.lower())
        if value is not None:
            return value
    return None


def pick_string(record: Mapping[str, Any], keys: Sequence[str]) -> str | None:
    """Like pick_value, but renders the value as a string."""
    value = pick_value(record, keys)
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def pick_nested(record: Mapping[str, Any], path: Sequence[str]) -> Any:
    """Follow ``path`` through nested mappings using pick_value per segment."""
    current: Any = record
    for segment in path:
        if not isinstance(current, Mapping):
            return None
        current = pick_value(to_str_map(current), [segment])
        if current is None:
            return None
    return current


def first_non_null(*values: Any) -> Any:
    for value in values:
        if value is not None:
            return value
    return None


def as_bool(value: Any) -> bool | None:
    """Coerce booleans, numbers and true/false/1/0/yes/no strings."""
    if value is None:
        return None
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    text = str(value).strip().lower()
    if text in _TRUE_WORDS:
        return True
    if text in _FALSE_WORDS:
        return False
    return None


def as_int(value: Any) -> int | None:
    """Coerce numbers and integer strings; floats are truncated."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if math.isfinite(value) else None
    text = str(value).strip()
    if not text:
        return None
    try:
        return int(text)
    except ValueError:
        return None


def as_float(value: Any) -> float | None:
    """Coerce numbers and numeric strings."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    text = str(value).strip()
    if not text:
        return None
    try:
        return float(text)
    except ValueError:
        return None


def ensure_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes so that comparisons never mix kinds."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def parse_datetime(value: Any) -> datetime | None:
    """Parse datetimes, epoch seconds/milliseconds and ISO-8601 strings.

    Non-positive epoch values are treated as missing.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return ensure_utc(value)
    if isinstance(value, (int, float)):
        if not math.isfinite(value):
            return None
        n = int(value)
        if n <= 0:
            return None
        seconds = n / 1000 if n > _MILLIS_THRESHOLD else n
        try:
            return datetime.fromtimestamp(seconds, tz=UTC)
        except (OverflowError, OSError, ValueError):
            return None
    text = str(value).strip()
    if not text:
        return None
    try:
        return parse_datetime(int(text))
    except ValueError:
        pass
    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        return None
    return ensure_utc(parsed)


def is_empty(value: Any) -> bool:
    """None, blank strings and empty collections count as empty."""
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple, set, frozenset, dict)):
        return len(value) == 0
    return False


def string_list(value: Any) -> list[str]:
    """Trimmed, non-empty string items of a list value."""
    if not isinstance(value, (list, tuple)):
        return []
    items = (str(item).strip() for item in value if item is not None)
    return [item for item in items if item]


def non_empty_strings(values: Iterable[str | None]) -> Iterator[str]:
    for value in values:
        text = (value or "").strip()
        if text:
            yield text


def as_map_list(raw: Any, map_key_id: str | None = None) -> list[dict[str, Any]]:
    """Normalize a collection that is either a list of records or an id -> record map.

    For the map form, the map key is injected as ``map_key_id`` into records
    that carry no id of their own.
    """
    if isinstance(raw, (list, tuple)):
        return [to_str_map(item) for item in raw if isinstance(item, Mapping)]
    if isinstance(raw, Mapping):
        out: list[dict[str, Any]] = []
        for key, value in raw.items():
            if not isinstance(value, Mapping):
                continue
            record = to_str_map(value)
            if map_key_id and not (pick_string(record, [map_key_id]) or "").strip():
                record[map_key_id] = str(key)
            out.append(record)
        return out
    return []


def decode_list_of_maps(raw: Any) -> list[dict[str, Any]]:
    """Decode a column or field holding a list of records.

    Accepts JSON text or bytes, a list, a single record, or a record
    wrapping the list under ``items``.
    """
    if raw is None:
        return []
    decoded: Any = raw
    if isinstance(decoded, (bytes, bytearray, memoryview)):
        decoded = bytes(decoded).decode("utf-8", errors="replace")
    if isinstance(decoded, str):
        text = decoded.strip()
        if not text:
            return []
        try:
            decoded = json.loads(text)
        except json.JSONDecodeError:
            return []
    if isinstance(decoded, list):
        return [to_str_map(item) for item in decoded if isinstance(item, Mapping)]
    if isinstance(decoded, Mapping):
        if isinstance(decoded.get("items"), list):
            return decode_list_of_maps(decoded["items"])
        return [to_str_map(decoded)]
    return []


def extract_ids(raw: Any) -> list[str]:
    """Extract an ordered, de-duplicated id list.

    Accepts a list of ids or of ``{id|uuid|value}`` records, a JSON-encoded
    list, a bare id string, or a single record.
    """
    if isinstance(raw, (list, tuple)):
        out: dict[str, None] = {}
        for item in raw:
            if isinstance(item, Mapping):
                item_id = (pick_string(to_str_map(item), ["id", "uuid", "value"]) or "").strip()
            elif item is None:
                continue
            else:
                item_id = str(item).strip()
            if item_id:
                out.setdefault(item_id, None)
        return list(out)
    if isinstance(raw, str):
        trimmed = raw.strip()
        if not trimmed:
            return []
        try:
            decoded = json.loads(trimmed)
        except json.JSONDecodeError:
            return [trimmed]
        if isinstance(decoded, list):
            return extract_ids(decoded)
        return [trimmed]
    if isinstance(raw, Mapping):
        item_id = (pick_string(to_str_map(raw), ["id", "uuid", "value"]) or "").strip()
        return [item_id] if item_id else []
    return []
