"""Assistant import phase.

Resolves each assistant's chat model against the registries built by the
provider phase, then reconciles assistants by id and name.
"""

from dataclasses import dataclass, field
from typing import Any

from rikka_import.domain.id_map import IdMap
from rikka_import.domain.tokens import ModelTokenIndex, ProviderAliasMap
from rikka_import.interfaces.settings_store import SettingsKeys, SettingsStoreInterface
from rikka_import.logging import get_logger
from rikka_import.models.assistant import CONTEXT_SIZE_MAX, CONTEXT_SIZE_MIN, AssistantDTO, ModelRef
from rikka_import.services.providers import ProviderImportContext
from rikka_import.services.reconcile import (
    EntitySpec,
    Incoming,
    MergeConflictPolicy,
    ReconciliationEngine,
    RestoreMode,
    match_id,
    match_normalized,
    merge_keep_local,
)
from rikka_import.services.stored import dump_records, load_json_list, load_records, save_json
from rikka_import.services.warnings import ImportWarnings
from rikka_import.utils.fields import (
    as_bool,
    as_float,
    as_int,
    as_map_list,
    non_empty_strings,
    pick_string,
    pick_value,
    to_str_map,
)
from rikka_import.utils.naming import new_uuid

__all__ = [
    "ASSISTANT_SPEC",
    "AssistantImportContext",
    "AssistantReconciler",
    "map_avatar",
    "prepare_assistant",
    "resolve_assistant_model",
]

logger = get_logger(__name__)

DEFAULT_CONTEXT_SIZE = 64


@dataclass
class AssistantImportContext:
    """What later phases need from the assistant phase.

    Attributes:
        imported_count: Assistants merged or added
        id_map: Foreign assistant id (or ``__assistant_<i>``) -> local id
        final_ids: Ids of every assistant stored after the phase
    """

    imported_count: int = 0
    id_map: IdMap = field(default_factory=IdMap)
    final_ids: frozenset[str] = field(default_factory=frozenset)


def _alias_ref(aliases: ProviderAliasMap, provider_token: str, model_id: str) -> ModelRef:
    provider_key = aliases.resolve(provider_token) or provider_token
    return ModelRef(provider_key=provider_key, model_id=model_id)


def resolve_assistant_model(
    raw: dict[str, Any],
    token_index: ModelTokenIndex,
    aliases: ProviderAliasMap,
) -> ModelRef | None:
    """Resolve the chat model an assistant refers to.

    Tried in order: a nested model object naming both provider and model,
    any model identifier token known to the token index, then flat
    provider and model fields. Provider names go through the alias map.

    Args:
        raw: Foreign assistant record
        token_index: Model tokens registered by the provider phase
        aliases: Provider aliases registered by the provider phase

    Returns:
        The model reference, or None when nothing resolves
    """
    tokens = list(
        non_empty_strings(
            [
                pick_string(raw, ["chatModelUuid", "chat_model_uuid"]),
                pick_string(raw, ["modelUuid", "model_uuid"]),
                pick_string(raw, ["chatModelId", "chat_model_id"]),
                pick_string(raw, ["modelId", "model_id"]),
            ]
        )
    )
    nested = pick_value(raw, ["model", "chatModel"])
    if isinstance(nested, dict):
        model = to_str_map(nested)
        model_token = pick_string(model, ["uuid", "modelUuid", "id", "modelId"])
        tokens.extend(non_empty_strings([model_token]))
        provider_token = pick_string(model, ["provider", "providerId", "providerKey"]) or ""
        provider_token = provider_token.strip()
        model_id = (pick_string(model, ["modelId", "id", "name"]) or "").strip()
        if provider_token and model_id:
            return _alias_ref(aliases, provider_token, model_id)

    for token in dict.fromkeys(tokens):
        ref = token_index.lookup(token)
        if ref is not None:
            return ref

    provider_token = pick_string(raw, ["chatModelProvider", "provider", "providerId"]) or ""
    provider_token = provider_token.strip()
    model_id = (pick_string(raw, ["chatModelId", "modelId", "model"]) or "").strip()
    if provider_token and model_id:
        return _alias_ref(aliases, provider_token, model_id)
    return None


def map_avatar(raw_avatar: Any) -> str | None:
    """Flatten a foreign avatar into an emoji, URL or path."""
    if raw_avatar is None:
        return None
    if isinstance(raw_avatar, str):
        return raw_avatar.strip() or None
    if not isinstance(raw_avatar, dict):
        return None
    avatar = to_str_map(raw_avatar)
    avatar_type = (pick_string(avatar, ["type", "runtimeType"]) or "").strip().lower()
    if "dummy" in avatar_type:
        return None
    if "emoji" in avatar_type:
        fields = ["emoji", "value", "char"]
    elif "image" in avatar_type:
        fields = ["url", "value", "path"]
    else:
        fields = ["url", "emoji", "value", "path"]
    return (pick_string(avatar, fields) or "").strip() or None


def prepare_assistant(
    raw: dict[str, Any],
    index: int,
    providers: ProviderImportContext,
    warnings: ImportWarnings,
    default_context_size: int = DEFAULT_CONTEXT_SIZE,
) -> tuple[str, AssistantDTO]:
    """Convert one foreign assistant.

    A resolved model whose provider is not among the stored providers is
    dropped with a warning, leaving the assistant on the default model.

    Returns:
        (source id, assistant); the source id is empty when the record had none
    """
    source_id = (pick_string(raw, ["id", "uuid", "assistantId", "assistant_id"]) or "").strip()
    name = (pick_string(raw, ["name", "title", "displayName"]) or "").strip()
    name = name or f"RikkaHub Assistant {index + 1}"

    chat_model = resolve_assistant_model(raw, providers.token_index, providers.aliases)
    if chat_model is not None and chat_model.provider_key not in providers.provider_keys:
        warnings(
            f'Assistant "{name}" refers to unknown provider "{chat_model.provider_key}"; '
            "chat model left unset."
        )
        chat_model = None

    avatar = map_avatar(pick_value(raw, ["avatar"]))
    context_size = as_int(pick_value(raw, ["contextMessageSize", "contextCount", "context_size"]))
    if context_size is None:
        context_size = default_context_size
    stream = as_bool(pick_value(raw, ["streamOutput", "stream"]))
    background = (pick_string(raw, ["background"]) or "").strip()

    assistant = AssistantDTO(
        id=source_id or new_uuid(()),
        name=name,
        avatar=avatar,
        use_assistant_avatar=avatar is not None,
        chat_model=chat_model,
        temperature=as_float(pick_value(raw, ["temperature"])),
        top_p=as_float(pick_value(raw, ["topP", "top_p"])),
        context_message_size=min(max(context_size, CONTEXT_SIZE_MIN), CONTEXT_SIZE_MAX),
        limit_context_messages=True,
        stream_output=True if stream is None else stream,
        thinking_budget=as_int(pick_value(raw, ["thinkingBudget", "reasoningBudget"])),
        max_tokens=as_int(pick_value(raw, ["maxTokens", "max_tokens"])),
        system_prompt=(pick_string(raw, ["systemPrompt", "prompt", "system"]) or "").strip(),
        message_template=(
            pick_string(raw, ["messageTemplate", "template"]) or "{{ message }}"
        ).strip(),
        background=background or None,
        enable_memory=as_bool(pick_value(raw, ["enableMemory", "memoryEnabled"])) or False,
        enable_recent_chats_reference=(
            as_bool(pick_value(raw, ["enableRecentChatsReference", "recentChatsReference"]))
            or False
        ),
    )
    return source_id, assistant


def _merge_assistant(local: AssistantDTO, incoming: AssistantDTO) -> AssistantDTO:
    return merge_keep_local(local, incoming)


ASSISTANT_SPEC: EntitySpec[AssistantDTO] = EntitySpec(
    kind="assistant",
    same_item=(match_id, match_normalized("name")),
    merge=_merge_assistant,
    name_field="name",
)


class AssistantReconciler:
    """Imports the ``assistants`` collection of a settings document."""

    def __init__(
        self,
        settings_store: SettingsStoreInterface,
        engine: ReconciliationEngine,
        warnings: ImportWarnings,
        default_context_size: int = DEFAULT_CONTEXT_SIZE,
    ) -> None:
        self._store = settings_store
        self._engine = engine
        self._warnings = warnings
        self._default_context_size = default_context_size

    async def import_assistants(
        self,
        settings_root: dict[str, Any],
        providers: ProviderImportContext,
        mode: RestoreMode,
        policy: MergeConflictPolicy,
    ) -> AssistantImportContext:
        raw_assistants = as_map_list(settings_root.get("assistants"), map_key_id="id")
        stored = await load_json_list(self._store, SettingsKeys.ASSISTANTS) or []
        existing = load_records(AssistantDTO, stored, "assistant", self._warnings)

        incoming: list[Incoming[AssistantDTO]] = []
        for i, raw in enumerate(raw_assistants):
            source_id, assistant = prepare_assistant(
                raw, i, providers, self._warnings, self._default_context_size
            )
            map_key = source_id or f"__assistant_{i}"
            incoming.append(Incoming(record=assistant, map_key=map_key))

        outcome = self._engine.reconcile(ASSISTANT_SPEC, incoming, existing, mode, policy)
        await save_json(self._store, SettingsKeys.ASSISTANTS, dump_records(outcome.records))

        if not raw_assistants:
            self._warnings("No assistants found in settings.json.")
        logger.info(
            "assistants_imported",
            count=outcome.imported_count,
            total=len(outcome.records),
        )
        return AssistantImportContext(
            imported_count=outcome.imported_count,
            id_map=outcome.id_map,
            final_ids=outcome.final_ids,
        )
