"""Relational row source interface for rikka_import."""

from collections.abc import Sequence
from typing import Any, Protocol, runtime_checkable

__all__ = [
    "RowSourceInterface",
]


@runtime_checkable
class RowSourceInterface(Protocol):
    """Read-only access to the tables of the foreign database."""

    def table_names(self) -> list[str]:
        ...

    def fetch_all(self, table: str) -> Sequence[dict[str, Any]]:
        """Return every row of ``table`` as a column -> value mapping.

        Args:
            table: Exact table name as returned by table_names

        Returns:
            Rows in storage order
        """
        ...

    def close(self) -> None:
        ...
