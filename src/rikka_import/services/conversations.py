"""Conversation import phase.

Reads the conversation and message-node tables, rebuilds each
conversation's message arena and stores it, either as a new conversation
or merged into an existing one with the same id.
"""

from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from rikka_import.domain.upload_index import UploadFileIndex
from rikka_import.interfaces.conversation_store import ConversationStoreInterface
from rikka_import.interfaces.row_source import RowSourceInterface
from rikka_import.logging import get_logger
from rikka_import.models.conversation import ChatMessageDTO, ConversationDTO
from rikka_import.services.assistants import AssistantImportContext
from rikka_import.services.file_references import FileReferenceRewriter
from rikka_import.services.message_tree import build_message_tree, clamp_selection, group_node_rows
from rikka_import.services.reconcile import MergeConflictPolicy, RestoreMode
from rikka_import.services.warnings import ImportWarnings
from rikka_import.utils.fields import as_bool, as_int, parse_datetime, pick_string, pick_value
from rikka_import.utils.naming import new_uuid, unique_display_name

__all__ = [
    "CONVERSATION_TABLES",
    "NODE_TABLES",
    "ConversationImportCounts",
    "ConversationReconciler",
    "pick_table_name",
]

logger = get_logger(__name__)

CONVERSATION_TABLES = ("conversationentity", "conversation_entity", "conversation")
NODE_TABLES = ("message_node", "messagenode")


def pick_table_name(table_names: list[str], candidates: tuple[str, ...]) -> str | None:
    """First candidate present in ``table_names``, compared case-insensitively."""
    by_lower = {name.lower(): name for name in table_names}
    for candidate in candidates:
        match = by_lower.get(candidate.lower())
        if match is not None:
            return match
    return None


@dataclass
class ConversationImportCounts:
    conversations: int = 0
    messages: int = 0


@dataclass
class _ConversationFields:
    source_id: str
    title: str
    created_at: datetime
    updated_at: datetime
    is_pinned: bool
    assistant_id: str | None
    truncate_index: int


class ConversationReconciler:
    """Imports conversations from the foreign database into the conversation store."""

    def __init__(
        self,
        conversation_store: ConversationStoreInterface,
        warnings: ImportWarnings,
    ) -> None:
        self._store = conversation_store
        self._warnings = warnings
        self._used_conversation_ids: set[str] = set()
        self._used_titles: set[str] = set()
        self._used_message_ids: set[str] = set()

    async def import_conversations(
        self,
        rows: RowSourceInterface,
        assistants: AssistantImportContext,
        upload_index: UploadFileIndex,
        mode: RestoreMode,
        policy: MergeConflictPolicy,
    ) -> ConversationImportCounts:
        """Import every conversation found in ``rows``.

        Under overwrite the store is expected to be cleared already.

        Args:
            rows: Foreign database
            assistants: Assistant phase output, for assistant id remapping
            upload_index: Extracted upload files, for file reference rewriting
            mode: Restore mode
            policy: Conflict policy

        Returns:
            Conversations created or extended, and messages written
        """
        counts = ConversationImportCounts()
        tables = rows.table_names()
        conversation_table = pick_table_name(tables, CONVERSATION_TABLES)
        node_table = pick_table_name(tables, NODE_TABLES)
        if conversation_table is None:
            self._warnings("ConversationEntity table not found in sqlite database.")
            return counts
        if node_table is None:
            self._warnings("message_node table not found in sqlite database.")
            return counts

        conversation_rows = rows.fetch_all(conversation_table)
        nodes_by_conversation = group_node_rows(rows.fetch_all(node_table))

        existing = await self._store.get_all_conversations()
        existing_ids = {c.id for c in existing}
        self._used_conversation_ids = set(existing_ids)
        self._used_titles = {c.title.strip() for c in existing}
        self._used_message_ids = set()
        if mode is RestoreMode.MERGE:
            for conversation in existing:
                stored = await self._store.get_messages(conversation.id)
                self._used_message_ids.update(m.id for m in stored)

        rewriter = FileReferenceRewriter(upload_index, self._warnings)
        for row in conversation_rows:
            fields = self._read_conversation(row, assistants)
            if fields is None:
                continue
            built = build_message_tree(
                nodes_by_conversation.get(fields.source_id, []),
                fields.source_id,
                fields.updated_at,
                rewriter,
            )
            messages, selections = self._assign_message_ids(
                built.messages, built.version_selections, mode, policy
            )
            truncate_index = min(max(fields.truncate_index, -1), len(messages))

            if (
                mode is RestoreMode.MERGE
                and policy is MergeConflictPolicy.MERGE_SAME_ITEM
                and fields.source_id in existing_ids
            ):
                added = await self._merge_into_existing(
                    fields, messages, selections, truncate_index
                )
                if added:
                    counts.conversations += 1
                    counts.messages += added
                continue

            conversation_id, title = self._allocate_identity(fields, mode, policy)
            if conversation_id != fields.source_id:
                messages = [
                    m.model_copy(update={"conversation_id": conversation_id}) for m in messages
                ]
            conversation = ConversationDTO(
                id=conversation_id,
                title=title or "Imported",
                created_at=fields.created_at,
                updated_at=fields.updated_at,
                is_pinned=fields.is_pinned,
                assistant_id=fields.assistant_id,
                truncate_index=truncate_index,
                version_selections=selections,
            )
            await self._store.restore_conversation(conversation, messages)
            self._used_conversation_ids.add(conversation_id)
            self._used_titles.add(title)
            counts.conversations += 1
            counts.messages += len(messages)

        logger.info(
            "conversations_imported",
            conversations=counts.conversations,
            messages=counts.messages,
        )
        return counts

    def _read_conversation(
        self,
        row: dict[str, Any],
        assistants: AssistantImportContext,
    ) -> _ConversationFields | None:
        source_id = (pick_string(row, ["id", "conversationId"]) or "").strip()
        if not source_id:
            return None
        created_at = parse_datetime(
            pick_value(row, ["createdAt", "createAt", "created_at", "create_at"])
        ) or datetime.now(UTC)
        updated_at = parse_datetime(
            pick_value(row, ["updatedAt", "updateAt", "updated_at", "update_at"])
        ) or created_at

        assistant_id = None
        old_assistant_id = (pick_string(row, ["assistantId", "assistant_id"]) or "").strip()
        if old_assistant_id:
            mapped = assistants.id_map.resolve(old_assistant_id)
            if mapped in assistants.final_ids:
                assistant_id = mapped

        truncate_index = as_int(pick_value(row, ["truncateIndex", "truncate_index"]))
        return _ConversationFields(
            source_id=source_id,
            title=(pick_string(row, ["title", "name"]) or "Imported").strip(),
            created_at=created_at,
            updated_at=updated_at,
            is_pinned=as_bool(pick_value(row, ["isPinned", "is_pinned", "pinned"])) or False,
            assistant_id=assistant_id,
            truncate_index=-1 if truncate_index is None else truncate_index,
        )

    def _assign_message_ids(
        self,
        messages: list[ChatMessageDTO],
        selections: dict[str, int],
        mode: RestoreMode,
        policy: MergeConflictPolicy,
    ) -> tuple[list[ChatMessageDTO], dict[str, int]]:
        """Make message ids unique store-wide, then re-densify versions.

        Under merge with the same-item policy a message whose id is already
        stored is taken to be imported already and is dropped.
        """
        kept: list[ChatMessageDTO] = []
        versions: dict[str, int] = {}
        skip_known = mode is RestoreMode.MERGE and policy is MergeConflictPolicy.MERGE_SAME_ITEM
        for message in messages:
            message_id = message.id.strip() or new_uuid(self._used_message_ids)
            if message_id in self._used_message_ids:
                if skip_known:
                    self._warnings(f'Skipped duplicated message id "{message_id}".')
                    continue
                message_id = new_uuid(self._used_message_ids)
            self._used_message_ids.add(message_id)
            group_id = (message.group_id or message.id).strip() or new_uuid(())
            version = versions.get(group_id, 0)
            versions[group_id] = version + 1
            update = {"id": message_id, "group_id": group_id, "version": version}
            kept.append(message.model_copy(update=update))

        clamped = {
            group_id: clamp_selection(selected, versions[group_id])
            for group_id, selected in selections.items()
            if versions.get(group_id, 0) > 0
        }
        return kept, clamped

    def _allocate_identity(
        self,
        fields: _ConversationFields,
        mode: RestoreMode,
        policy: MergeConflictPolicy,
    ) -> tuple[str, str]:
        conversation_id = fields.source_id
        title = fields.title
        if conversation_id not in self._used_conversation_ids:
            return conversation_id, title
        conversation_id = new_uuid(self._used_conversation_ids)
        if mode is RestoreMode.MERGE and policy is MergeConflictPolicy.DUPLICATE_ON_CONFLICT:
            title = unique_display_name(title or "Imported", self._used_titles, force_suffix=True)
        return conversation_id, title

    async def _merge_into_existing(
        self,
        fields: _ConversationFields,
        messages: list[ChatMessageDTO],
        selections: dict[str, int],
        truncate_index: int,
    ) -> int:
        """Append ``messages`` to the stored conversation of the same id.

        Incoming versions are shifted past each group's stored maximum so
        no stored variant is replaced.

        Returns:
            Number of messages appended
        """
        conversation_id = fields.source_id
        max_version: dict[str, int] = {}
        for stored in await self._store.get_messages(conversation_id):
            group_id = (stored.group_id or stored.id).strip()
            if group_id and stored.version > max_version.get(group_id, -1):
                max_version[group_id] = stored.version

        offsets: dict[str, int] = {}
        for message in messages:
            offset = offsets.setdefault(message.group_id, max_version.get(message.group_id, -1) + 1)
            await self._store.add_message(
                message.model_copy(
                    update={"conversation_id": conversation_id, "version": offset + message.version}
                )
            )

        existing = await self._store.get_conversation(conversation_id)
        if existing is not None:
            update: dict[str, Any] = {}
            if fields.is_pinned and not existing.is_pinned:
                update["is_pinned"] = True
            if not (existing.assistant_id or "").strip() and fields.assistant_id is not None:
                update["assistant_id"] = fields.assistant_id
            if not existing.title.strip() and fields.title.strip():
                update["title"] = fields.title
            if truncate_index >= 0 and existing.truncate_index < 0:
                update["truncate_index"] = truncate_index
            if fields.updated_at > existing.updated_at:
                update["updated_at"] = fields.updated_at
            shifted = {
                group_id: offsets[group_id] + selected
                for group_id, selected in selections.items()
                if group_id in offsets
            }
            if shifted:
                update["version_selections"] = {**existing.version_selections, **shifted}
            if update:
                await self._store.save_conversation(existing.model_copy(update=update))
        return len(messages)
