"""Exceptions raised by rikka_import.

Only conditions that abort the whole import are raised. Everything
recoverable is recorded as a warning on the import result instead.
"""

__all__ = [
    "ArchiveReadError",
    "BackupNotFoundError",
    "DatabaseOpenError",
    "RikkaImportError",
    "SettingsDocumentError",
    "StoreError",
    "UnsupportedArchiveError",
]


class RikkaImportError(Exception):
    """Base class for fatal import errors."""

    def __init__(self, message: str, *args: object) -> None:
        self.message = message
        super().__init__(message, *args)

    def __str__(self) -> str:
        return self.message


class BackupNotFoundError(RikkaImportError):
    """The backup file does not exist."""


class UnsupportedArchiveError(RikkaImportError):
    """The backup file is not a .zip archive."""


class ArchiveReadError(RikkaImportError):
    """The archive could not be opened or decompressed."""


class SettingsDocumentError(RikkaImportError):
    """settings.json is missing or is not a JSON object."""


class DatabaseOpenError(RikkaImportError):
    """The bundled SQLite database could not be opened."""


class StoreError(RikkaImportError):
    """A destination store is unreachable or misconfigured."""
