"""Rewrites file references found in foreign messages to local paths."""

import posixpath
from collections.abc import Callable
from urllib.parse import unquote, urlsplit

from rikka_import.domain.upload_index import UploadFileIndex

__all__ = [
    "FileReferenceRewriter",
    "normalize_file_reference",
]

_PASSTHROUGH_PREFIXES = ("http://", "https://", "data:")
_UPLOAD_MARKER = "/upload/"


def normalize_file_reference(raw_path: str) -> str:
    """Turn ``file://`` URIs into paths, percent-decode, use forward slashes."""
    normalized = raw_path.strip()
    if normalized.lower().startswith("file://"):
        parts = urlsplit(normalized)
        if parts.netloc and parts.netloc.lower() != "localhost":
            normalized = f"//{parts.netloc}{parts.path}"
        else:
            normalized = parts.path
    return unquote(normalized).replace("\\", "/")


class FileReferenceRewriter:
    """Maps paths from the exporting device onto extracted upload files.

    Lookup order: the part after the last ``/upload/`` (or the whole
    path when it is relative) in the relative-path index, then the
    basename in the basename index. A miss keeps the normalized path and
    records a warning.
    """

    def __init__(self, index: UploadFileIndex, warn: Callable[[str], None]) -> None:
        self._index = index
        self._warn = warn

    def rewrite(self, raw_path: str) -> str:
        trimmed = raw_path.strip()
        if not trimmed:
            return raw_path
        if trimmed.startswith(_PASSTHROUGH_PREFIXES):
            return trimmed

        normalized = normalize_file_reference(trimmed)
        lowered = normalized.lower()
        marker = lowered.rfind(_UPLOAD_MARKER)
        if marker != -1:
            relative = lowered[marker + len(_UPLOAD_MARKER) :]
        elif not normalized.startswith("/"):
            relative = lowered
        else:
            relative = ""
        if relative:
            match = self._index.by_relative.get(relative)
            if match:
                return match

        match = self._index.by_basename.get(posixpath.basename(lowered))
        if match:
            return match

        self._warn(f"Referenced file not found in upload payload: {raw_path}")
        return normalized

    __call__ = rewrite
