"""Zip backup archive access for rikka_import."""

from rikka_import.infra.archive.reader import (
    ArchiveEntry,
    extract_sqlite_database,
    extract_uploads,
    find_entry,
    read_zip_archive,
)

__all__ = [
    "ArchiveEntry",
    "extract_sqlite_database",
    "extract_uploads",
    "find_entry",
    "read_zip_archive",
]
