"""Unit tests for rikka_import models."""

from datetime import UTC, datetime

import pytest
from pydantic import ValidationError

from rikka_import.domain.id_map import IdMap
from rikka_import.domain.tokens import ModelTokenIndex, ProviderAliasMap
from rikka_import.models.assistant import AssistantDTO, ModelRef
from rikka_import.models.conversation import ChatMessageDTO, ConversationDTO
from rikka_import.models.provider import ProviderConfig, ProviderKind
from rikka_import.models.world_book import InjectionPosition, InjectionRole, WorldBookEntryDTO


class TestProviderKind:
    """Tests for provider type classification."""

    @pytest.mark.parametrize(
        ("text", "expected"),
        [
            ("Gemini (Vertex)", ProviderKind.GOOGLE),
            ("google", ProviderKind.GOOGLE),
            ("Anthropic Claude", ProviderKind.CLAUDE),
            ("openai-compatible", ProviderKind.OPENAI),
            ("", ProviderKind.OPENAI),
            (None, ProviderKind.OPENAI),
        ],
    )
    def test_classify(self, text: str | None, expected: ProviderKind) -> None:
        assert ProviderKind.classify(text) is expected

    def test_default_base_urls(self) -> None:
        assert ProviderKind.OPENAI.default_base_url == "https://api.openai.com/v1"
        assert ProviderKind.CLAUDE.default_base_url == "https://api.anthropic.com/v1"


class TestProviderConfig:
    """Tests for ProviderConfig model."""

    def test_type_classified_from_text(self) -> None:
        provider = ProviderConfig(id="Gem", name="Gem", provider_type="Gemini API")

        assert provider.provider_type is ProviderKind.GOOGLE

    def test_type_falls_back_to_id(self) -> None:
        provider = ProviderConfig.model_validate({"id": "Claude Work", "name": "Claude Work"})

        assert provider.provider_type is ProviderKind.CLAUDE

    def test_unknown_fields_survive_round_trip(self) -> None:
        provider = ProviderConfig.model_validate(
            {"id": "p", "name": "p", "custom_headers": {"x": "1"}}
        )

        assert provider.model_dump()["custom_headers"] == {"x": "1"}

    def test_frozen(self) -> None:
        provider = ProviderConfig(id="p", name="p")

        with pytest.raises(ValidationError):
            provider.name = "q"  # type: ignore[misc]


class TestAssistantDTO:
    """Tests for AssistantDTO model."""

    def test_defaults(self) -> None:
        assistant = AssistantDTO(id="a", name="A")

        assert assistant.context_message_size == 64
        assert assistant.message_template == "{{ message }}"
        assert assistant.chat_model is None

    @pytest.mark.parametrize(("size", "expected"), [(0, 1), (-3, 1), (10_000, 4096), (32, 32)])
    def test_context_size_clamped(self, size: int, expected: int) -> None:
        assistant = AssistantDTO(id="a", name="A", context_message_size=size)

        assert assistant.context_message_size == expected


class TestWorldBookEnums:
    """Tests for lenient enum parsing."""

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("AT_DEPTH", InjectionPosition.AT_DEPTH),
            ("atDepth", InjectionPosition.AT_DEPTH),
            ("top_of_chat", InjectionPosition.TOP_OF_CHAT),
            (0, InjectionPosition.BEFORE_SYSTEM_PROMPT),
            (99, InjectionPosition.AFTER_SYSTEM_PROMPT),
            ("sideways", InjectionPosition.AFTER_SYSTEM_PROMPT),
            (None, InjectionPosition.AFTER_SYSTEM_PROMPT),
        ],
    )
    def test_position_parse(self, raw: object, expected: InjectionPosition) -> None:
        assert InjectionPosition.parse(raw) is expected

    def test_role_parse(self) -> None:
        assert InjectionRole.parse("ASSISTANT") is InjectionRole.ASSISTANT
        assert InjectionRole.parse("system") is InjectionRole.USER

    def test_entry_accepts_foreign_spelling(self) -> None:
        entry = WorldBookEntryDTO(id="e", position="BOTTOM_OF_CHAT", role="Assistant")

        assert entry.position is InjectionPosition.BOTTOM_OF_CHAT
        assert entry.role is InjectionRole.ASSISTANT


class TestConversationModels:
    """Tests for conversation and message models."""

    def test_naive_timestamps_become_utc(self) -> None:
        conversation = ConversationDTO(
            id="c",
            title="t",
            created_at=datetime(2024, 1, 1),
            updated_at=datetime(2024, 1, 2),
        )

        assert conversation.created_at.tzinfo is UTC
        assert conversation.truncate_index == -1
        assert conversation.version_selections == {}

    def test_message_rejects_negative_version(self) -> None:
        with pytest.raises(ValidationError):
            ChatMessageDTO(
                id="m",
                conversation_id="c",
                role="user",
                content="hi",
                timestamp=datetime(2024, 1, 1, tzinfo=UTC),
                group_id="g",
                version=-1,
            )

    def test_message_rejects_system_role(self) -> None:
        with pytest.raises(ValidationError):
            ChatMessageDTO(
                id="m",
                conversation_id="c",
                role="system",  # type: ignore[arg-type]
                content="hi",
                timestamp=datetime(2024, 1, 1, tzinfo=UTC),
                group_id="g",
            )


class TestIdMap:
    """Tests for IdMap lookups."""

    def test_case_insensitive_lookup(self) -> None:
        id_map = IdMap.from_mapping({"Asst-1": "local-1"})

        assert id_map.get("Asst-1") == "local-1"
        assert id_map.get("asst-1") == "local-1"
        assert "ASST-1" in id_map
        assert len(id_map) == 1

    def test_resolve_falls_back_to_source(self) -> None:
        id_map = IdMap.from_mapping({"a": "b"})

        assert id_map.resolve("a") == "b"
        assert id_map.resolve("unknown") == "unknown"

    def test_empty_map(self) -> None:
        assert IdMap().get("x") is None


class TestProviderRegistries:
    """Tests for the model token index and provider alias map."""

    def test_token_index_first_registration_wins(self) -> None:
        index = ModelTokenIndex()
        first = ModelRef(provider_key="A", model_id="gpt-4o")
        index.register("GPT-4o", first)
        index.register("gpt-4o", ModelRef(provider_key="B", model_id="gpt-4o"))
        index.register("  ", first)

        assert index.lookup("gpt-4o") == first
        assert index.lookup(" GPT-4O ") == first
        assert index.lookup("") is None

    def test_alias_map_last_registration_wins(self) -> None:
        aliases = ProviderAliasMap()
        aliases.register("prov-1", "OpenAI")
        aliases.register("PROV-1", "OpenAI (RikkaHub)")
        aliases.register(None, "ignored")

        assert aliases.resolve("prov-1") == "OpenAI (RikkaHub)"
        assert aliases.resolve(None) is None
        assert "Prov-1" in aliases
