"""SQLite row source for rikka_import.

Reads the conversation tables of the database bundled in a backup.
"""

import sqlite3
from pathlib import Path
from typing import Any

from rikka_import.exceptions import DatabaseOpenError
from rikka_import.interfaces.row_source import RowSourceInterface
from rikka_import.logging import get_logger

__all__ = [
    "SqliteRowSource",
]

logger = get_logger(__name__)


class SqliteRowSource(RowSourceInterface):
    """Read-only row access to an extracted SQLite file.

    Example:
        source = SqliteRowSource(Path("rikka_hub.db"))
        try:
            rows = source.fetch_all("ConversationEntity")
        finally:
            source.close()
    """

    def __init__(self, path: Path) -> None:
        """Open the database and probe its schema.

        Args:
            path: Database file path

        Raises:
            DatabaseOpenError: If the file is not a usable SQLite database
        """
        self._path = path
        try:
            self._conn = sqlite3.connect(path)
        except sqlite3.Error as e:
            raise DatabaseOpenError(f"Unable to open rikka_hub.db: {e}") from e
        self._conn.row_factory = sqlite3.Row
        try:
            self._conn.execute("SELECT name FROM sqlite_master LIMIT 1").fetchall()
        except sqlite3.Error as e:
            self._conn.close()
            raise DatabaseOpenError(f"Unable to open rikka_hub.db: {e}") from e
        logger.debug("sqlite_opened", path=str(path))

    def table_names(self) -> list[str]:
        rows = self._conn.execute("SELECT name FROM sqlite_master WHERE type='table'").fetchall()
        return [str(row["name"]) for row in rows if str(row["name"] or "").strip()]

    def fetch_all(self, table: str) -> list[dict[str, Any]]:
        quoted = '"' + table.replace('"', '""') + '"'
        rows = self._conn.execute(f"SELECT * FROM {quoted}").fetchall()
        return [dict(row) for row in rows]

    def close(self) -> None:
        self._conn.close()
        logger.debug("sqlite_closed", path=str(self._path))
