"""Provider import phase.

Converts foreign provider records into ProviderConfig, reconciles them with
the local provider map and publishes two registries for the assistant
phase: the model-token index and the provider alias map.
"""

from dataclasses import dataclass, field
from typing import Any

from rikka_import.domain.tokens import ModelTokenIndex, ProviderAliasMap
from rikka_import.interfaces.settings_store import SettingsKeys, SettingsStoreInterface
from rikka_import.logging import get_logger
from rikka_import.models.assistant import ModelRef
from rikka_import.models.provider import ApiKeyConfig, ProviderConfig, ProviderKind
from rikka_import.services.reconcile import (
    EntitySpec,
    IdStrategy,
    Incoming,
    MergeConflictPolicy,
    ReconciliationEngine,
    RestoreMode,
    merge_keep_local,
)
from rikka_import.services.stored import (
    dump_records,
    load_json_list,
    load_json_map,
    load_records,
    save_json,
)
from rikka_import.services.warnings import ImportWarnings
from rikka_import.utils.fields import (
    as_bool,
    as_map_list,
    non_empty_strings,
    pick_string,
    pick_value,
)
from rikka_import.utils.naming import normalize_base_url, normalize_name, sanitize_key

__all__ = [
    "PROVIDER_SPEC",
    "PreparedProvider",
    "ProviderImportContext",
    "ProviderReconciler",
    "extract_api_keys",
    "extract_primary_api_key",
    "prepare_provider",
    "same_provider",
]

logger = get_logger(__name__)

_SINGLE_KEY_FIELDS = ["apiKey", "key", "token", "api_token"]
_KEY_LIST_FIELDS = ["apiKeys", "keys", "keyList", "key_list"]


@dataclass(frozen=True)
class PreparedProvider:
    """An incoming provider in local shape plus what it is known by.

    Attributes:
        source_id: Foreign provider id
        source_name: Foreign display name
        suggested_key: Sanitized key proposed before de-duplication
        config: Provider record keyed by ``suggested_key``
        model_tokens: (token, model id) pairs for every model identifier
    """

    source_id: str
    source_name: str
    suggested_key: str
    config: ProviderConfig
    model_tokens: list[tuple[str, str]] = field(default_factory=list)


@dataclass
class ProviderImportContext:
    imported_count: int = 0
    token_index: ModelTokenIndex = field(default_factory=ModelTokenIndex)
    aliases: ProviderAliasMap = field(default_factory=ProviderAliasMap)
    provider_keys: frozenset[str] = field(default_factory=frozenset)


def extract_api_keys(raw: dict[str, Any]) -> list[str]:
    """All distinct keys: list field items first, then the comma-split single field."""
    out: list[str] = []
    listed = pick_value(raw, _KEY_LIST_FIELDS)
    if isinstance(listed, list):
        for item in listed:
            if isinstance(item, dict):
                key = (pick_string(item, ["key", "value", "apiKey"]) or "").strip()
            elif item is None:
                continue
            else:
                key = str(item).strip()
            if key and key not in out:
                out.append(key)
    single = (pick_string(raw, _SINGLE_KEY_FIELDS) or "").strip()
    for part in single.split(","):
        key = part.strip()
        if key and key not in out:
            out.append(key)
    return out


def extract_primary_api_key(raw: dict[str, Any]) -> str:
    direct = (pick_string(raw, _SINGLE_KEY_FIELDS) or "").strip()
    if direct:
        return direct
    keys = extract_api_keys(raw)
    return keys[0] if keys else ""


def prepare_provider(raw: dict[str, Any], index: int) -> PreparedProvider:
    """Convert one foreign provider record.

    Args:
        raw: Foreign record
        index: Position in the incoming collection, for the fallback key

    Returns:
        The prepared provider
    """
    source_id = (pick_string(raw, ["id", "uuid", "providerId", "provider_id"]) or "").strip()
    source_name = (pick_string(raw, ["name", "displayName", "providerName"]) or "").strip()
    kind = ProviderKind.classify(
        pick_string(raw, ["type", "providerType", "provider_type", "kind"]) or "openai"
    )
    base_url = pick_string(raw, ["baseUrl", "apiHost", "endpoint", "url"]) or ""
    base_url = base_url.strip().rstrip("/")
    key = sanitize_key(source_name or source_id or f"RikkaHub Provider {index + 1}")

    api_key = extract_primary_api_key(raw)
    all_keys = extract_api_keys(raw)

    models: list[str] = []
    tokens: list[tuple[str, str]] = []
    for item in as_map_list(pick_value(raw, ["models", "modelList", "model_list"])):
        model_id = (pick_string(item, ["modelId", "id", "name", "model", "value"]) or "").strip()
        if not model_id:
            continue
        if model_id not in models:
            models.append(model_id)
        candidates = non_empty_strings(
            [
                pick_string(item, ["uuid", "modelUuid", "model_uuid", "id"]),
                pick_string(item, ["modelId", "model_id", "name"]),
            ]
        )
        for token in dict.fromkeys(candidates):
            tokens.append((token, model_id))

    enabled = as_bool(pick_value(raw, ["enabled", "isEnabled"]))
    multi_key = len(all_keys) > 1
    config = ProviderConfig(
        id=key,
        name=key,
        enabled=bool(api_key) if enabled is None else enabled,
        provider_type=kind,
        base_url=base_url or kind.default_base_url,
        api_key=api_key,
        models=models,
        chat_path="/chat/completions" if kind is ProviderKind.OPENAI else None,
        use_response_api=False if kind is ProviderKind.OPENAI else None,
        vertex_ai=False if kind is ProviderKind.GOOGLE else None,
        multi_key_enabled=multi_key,
        api_keys=[ApiKeyConfig.create(k) for k in all_keys] if multi_key else [],
    )
    return PreparedProvider(
        source_id=source_id,
        source_name=source_name,
        suggested_key=key,
        config=config,
        model_tokens=tokens,
    )


def same_provider(local: ProviderConfig, incoming: ProviderConfig) -> bool:
    """Same protocol family and either the same name or the same base URL."""
    if local.provider_type != incoming.provider_type:
        return False
    incoming_name = normalize_name(incoming.name or incoming.id)
    if incoming_name and normalize_name(local.name or local.id) == incoming_name:
        return True
    incoming_base = normalize_base_url(incoming.base_url)
    return bool(incoming_base) and normalize_base_url(local.base_url) == incoming_base


def _merge_provider(local: ProviderConfig, incoming: ProviderConfig) -> ProviderConfig:
    return merge_keep_local(local, incoming, union_fields=("models",))


PROVIDER_SPEC: EntitySpec[ProviderConfig] = EntitySpec(
    kind="provider",
    same_item=(same_provider,),
    merge=_merge_provider,
    id_strategy=IdStrategy.NAME_KEY,
    name_field="name",
)


class ProviderReconciler:
    """Imports the ``providers`` collection of a settings document."""

    def __init__(
        self,
        settings_store: SettingsStoreInterface,
        engine: ReconciliationEngine,
        warnings: ImportWarnings,
    ) -> None:
        self._store = settings_store
        self._engine = engine
        self._warnings = warnings

    async def import_providers(
        self,
        settings_root: dict[str, Any],
        mode: RestoreMode,
        policy: MergeConflictPolicy,
    ) -> ProviderImportContext:
        """Reconcile and persist providers.

        Args:
            settings_root: Merged settings document
            mode: Restore mode
            policy: Conflict policy

        Returns:
            Import count, the final provider keys and the registries the
            assistant phase resolves model references with
        """
        raw_providers = as_map_list(settings_root.get("providers"), map_key_id="id")
        stored = await load_json_map(self._store, SettingsKeys.PROVIDER_CONFIGS)
        existing = load_records(ProviderConfig, stored, "provider", self._warnings)
        stored_order = await load_json_list(self._store, SettingsKeys.PROVIDERS_ORDER)
        if stored_order is None:
            stored_order = [p.id for p in existing]

        prepared = [prepare_provider(raw, i) for i, raw in enumerate(raw_providers)]
        outcome = self._engine.reconcile(
            PROVIDER_SPEC,
            [Incoming(record=p.config, map_key=f"__provider_{i}") for i, p in enumerate(prepared)],
            existing,
            mode,
            policy,
        )

        context = ProviderImportContext(
            imported_count=outcome.imported_count,
            provider_keys=outcome.final_ids,
        )
        for i, p in enumerate(prepared):
            final_key = outcome.id_map.get(f"__provider_{i}")
            if final_key is None:
                continue
            for alias in (p.source_id, p.source_name, p.suggested_key):
                context.aliases.register(alias, final_key)
            for token, model_id in p.model_tokens:
                ref = ModelRef(provider_key=final_key, model_id=model_id)
                context.token_index.register(token, ref)

        order = [] if mode is RestoreMode.OVERWRITE else [str(k) for k in stored_order]
        for record in outcome.records:
            if record.id not in order:
                order.append(record.id)
        order = [k for k in order if k in outcome.final_ids]

        records = dump_records(outcome.records)
        await save_json(
            self._store,
            SettingsKeys.PROVIDER_CONFIGS,
            {record["id"]: record for record in records},
        )
        await save_json(self._store, SettingsKeys.PROVIDERS_ORDER, order)

        if not raw_providers:
            self._warnings("No providers found in settings.json.")
        logger.info(
            "providers_imported",
            count=context.imported_count,
            total=len(outcome.records),
            tokens=len(context.token_index),
        )
        return context
