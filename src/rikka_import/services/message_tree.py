"""Flattens branching message nodes into versioned messages.

Each node is a branch point holding one or more alternative messages.
Nodes become groups: every variant that renders is stored with
``group_id = node.id`` and the next dense version number, and the node's
selected variant is recorded in the version-selection side index.
"""

import uuid
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from rikka_import.domain.node import NodeRecord
from rikka_import.models.conversation import ChatMessageDTO
from rikka_import.services.message_parts import convert_message
from rikka_import.utils.fields import as_int, decode_list_of_maps, pick_string, pick_value
from rikka_import.utils.naming import new_uuid

__all__ = [
    "BuiltConversation",
    "build_message_tree",
    "clamp_selection",
    "group_node_rows",
    "parse_node_row",
]

_CONVERSATION_ID_FIELDS = [
    "conversationId",
    "conversation_id",
    "conversationEntityId",
    "conversation_entity_id",
    "chatId",
]


@dataclass
class BuiltConversation:
    messages: list[ChatMessageDTO] = field(default_factory=list)
    version_selections: dict[str, int] = field(default_factory=dict)


def clamp_selection(selected: int, count: int) -> int:
    return min(max(selected, 0), count - 1)


def parse_node_row(row: dict[str, Any], position: int) -> NodeRecord:
    """Read one node row; ``position`` is the fallback ordering index."""
    node_id = (pick_string(row, ["id", "nodeId", "uuid"]) or "").strip()
    index = as_int(pick_value(row, ["node_index", "nodeIndex", "index"]))
    select_index = as_int(pick_value(row, ["select_index", "selectIndex", "selectedIndex"]))
    return NodeRecord(
        id=node_id or str(uuid.uuid4()),
        index=position if index is None else index,
        select_index=0 if select_index is None else select_index,
        messages=decode_list_of_maps(
            pick_value(row, ["messages", "messageList", "message_list", "items"])
        ),
    )


def group_node_rows(rows: Iterable[dict[str, Any]]) -> dict[str, list[NodeRecord]]:
    """Group node rows by conversation, each list sorted by node index.

    Rows without a conversation id or without messages are ignored.
    """
    grouped: dict[str, list[NodeRecord]] = {}
    for position, row in enumerate(rows):
        conversation_id = (pick_string(row, _CONVERSATION_ID_FIELDS) or "").strip()
        if not conversation_id:
            continue
        node = parse_node_row(row, position)
        if not node.messages:
            continue
        grouped.setdefault(conversation_id, []).append(node)
    for nodes in grouped.values():
        nodes.sort(key=lambda n: n.index)
    return grouped


def build_message_tree(
    nodes: Sequence[NodeRecord],
    conversation_id: str,
    fallback_timestamp: datetime,
    rewrite: Callable[[str], str],
) -> BuiltConversation:
    """Convert the nodes of one conversation.

    Args:
        nodes: Branch points in any order
        conversation_id: Id stamped on every message
        fallback_timestamp: Used for messages without a timestamp
        rewrite: File reference rewriter

    Returns:
        Messages in display order with dense versions per group, and a
        clamped selection for every group that produced a message
    """
    built = BuiltConversation()
    used_ids: set[str] = set()
    for node in sorted(nodes, key=lambda n: n.index):
        version = 0
        for raw in node.messages:
            message = convert_message(
                raw, conversation_id, node.id, version, fallback_timestamp, rewrite
            )
            if message is None:
                continue
            if message.id in used_ids:
                message = message.model_copy(update={"id": new_uuid(used_ids)})
            used_ids.add(message.id)
            built.messages.append(message)
            version += 1
        if version > 0:
            built.version_selections[node.id] = clamp_selection(node.select_index, version)
    return built
