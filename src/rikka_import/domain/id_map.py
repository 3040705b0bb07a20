"""Immutable foreign-id -> local-id map passed between import phases."""

from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

__all__ = [
    "IdMap",
]


@dataclass(frozen=True)
class IdMap:
    """Read-only mapping from source ids to the ids they were stored under.

    Lookups try the exact id first and fall back to a case-insensitive
    match.
    """

    _entries: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))
    _lowered: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))

    @classmethod
    def from_mapping(cls, entries: Mapping[str, str]) -> "IdMap":
        lowered: dict[str, str] = {}
        for source_id, target_id in entries.items():
            lowered.setdefault(source_id.lower(), target_id)
        return cls(MappingProxyType(dict(entries)), MappingProxyType(lowered))

    def get(self, source_id: str) -> str | None:
        if source_id in self._entries:
            return self._entries[source_id]
        return self._lowered.get(source_id.lower())

    def resolve(self, source_id: str) -> str:
        """Mapped id, or ``source_id`` itself when it was never remapped."""
        mapped = self.get(source_id)
        return source_id if mapped is None else mapped

    def __contains__(self, source_id: object) -> bool:
        return isinstance(source_id, str) and self.get(source_id) is not None

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def items(self) -> Iterator[tuple[str, str]]:
        return iter(self._entries.items())
