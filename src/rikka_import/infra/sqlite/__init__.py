"""SQLite infrastructure for rikka_import."""

from rikka_import.infra.sqlite.row_source import SqliteRowSource

__all__ = ["SqliteRowSource"]
