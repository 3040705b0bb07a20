"""In-memory row source for testing."""

from typing import Any

from rikka_import.interfaces.row_source import RowSourceInterface


class InMemoryRowSource(RowSourceInterface):
    """Tables held as lists of row dicts."""

    def __init__(self, tables: dict[str, list[dict[str, Any]]]) -> None:
        self.tables = tables
        self.closed = False

    def table_names(self) -> list[str]:
        return list(self.tables)

    def fetch_all(self, table: str) -> list[dict[str, Any]]:
        return [dict(row) for row in self.tables[table]]

    def close(self) -> None:
        self.closed = True
