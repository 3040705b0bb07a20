"""Lookup tables for files extracted from the archive's upload/ directory."""

from collections.abc import Mapping
from dataclasses import dataclass, field

__all__ = [
    "UploadFileIndex",
]


def _normalize_keys(mapping: Mapping[str, str]) -> dict[str, str]:
    out: dict[str, str] = {}
    for key, value in mapping.items():
        normalized = key.strip().lower()
        if normalized and value:
            out[normalized] = value
    return out


@dataclass(frozen=True)
class UploadFileIndex:
    """Maps lower-cased basenames and upload-relative paths to local paths."""

    by_basename: Mapping[str, str] = field(default_factory=dict)
    by_relative: Mapping[str, str] = field(default_factory=dict)
    copied_files: int = 0

    @classmethod
    def from_mappings(
        cls,
        by_basename: Mapping[str, str],
        by_relative: Mapping[str, str],
        copied_files: int = 0,
    ) -> "UploadFileIndex":
        return cls(_normalize_keys(by_basename), _normalize_keys(by_relative), copied_files)

    @property
    def is_empty(self) -> bool:
        return not self.by_basename and not self.by_relative
