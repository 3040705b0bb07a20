"""Internal branch-point record used while rebuilding a conversation."""

from dataclasses import dataclass, field
from typing import Any

__all__ = [
    "NodeRecord",
]


@dataclass
class NodeRecord:
    """One row of the foreign message-node table.

    Never persisted: the tree builder flattens nodes into messages that
    share ``id`` as their group id.
    """

    id: str
    index: int
    select_index: int = 0
    messages: list[dict[str, Any]] = field(default_factory=list)
