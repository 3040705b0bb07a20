"""Utility functions for rikka_import.

This module contains internal utility functions.
"""

from rikka_import.utils.fields import (
    as_bool,
    as_float,
    as_int,
    extract_ids,
    parse_datetime,
    pick_string,
    pick_value,
)
from rikka_import.utils.naming import (
    new_uuid,
    normalize_base_url,
    normalize_name,
    sanitize_key,
    unique_display_name,
    unique_key,
)

__all__ = [
    "as_bool",
    "as_float",
    "as_int",
    "extract_ids",
    "new_uuid",
    "normalize_base_url",
    "normalize_name",
    "parse_datetime",
    "pick_string",
    "pick_value",
    "sanitize_key",
    "unique_display_name",
    "unique_key",
]
