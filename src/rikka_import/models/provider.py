"""Provider models for rikka_import.

These models describe LLM provider configurations as stored locally.
"""

import uuid
from enum import StrEnum
from typing import Any, Self

from pydantic import BaseModel, Field, model_validator

__all__ = [
    "ApiKeyConfig",
    "ProviderConfig",
    "ProviderKind",
]

_DEFAULT_BASE_URLS = {
    "openai": "https://api.openai.com/v1",
    "google": "https://generativelanguage.googleapis.com/v1beta",
    "claude": "https://api.anthropic.com/v1",
}


class ProviderKind(StrEnum):
    """Wire protocol family of a provider."""

    OPENAI = "openai"
    GOOGLE = "google"
    CLAUDE = "claude"

    @classmethod
    def classify(cls, text: str | None) -> "ProviderKind":
        """Classify free text such as ``"Gemini (Vertex)"`` by keyword."""
        lowered = (text or "").strip().lower()
        if "google" in lowered or "gemini" in lowered:
            return cls.GOOGLE
        if "claude" in lowered or "anthropic" in lowered:
            return cls.CLAUDE
        return cls.OPENAI

    @property
    def default_base_url(self) -> str:
        return _DEFAULT_BASE_URLS[self.value]


class ApiKeyConfig(BaseModel, frozen=True):
    """One key of a multi-key provider."""

    id: str
    key: str
    name: str | None = None
    enabled: bool = True

    @classmethod
    def create(cls, key: str) -> Self:
        return cls(id=str(uuid.uuid4()), key=key)


class ProviderConfig(BaseModel, frozen=True, extra="allow"):
    """Locally stored provider configuration.

    The id doubles as the provider key and display name; keys are unique
    across the provider collection.

    Attributes:
        id: Provider key
        enabled: Whether the provider is offered for selection
        name: Display name (equal to ``id`` for imported providers)
        provider_type: Protocol family
        base_url: API root without trailing slash
        api_key: Primary API key
        models: Ordered, de-duplicated model ids
        multi_key_enabled: True iff more than one distinct key is known
        api_keys: All known keys when multi-key is enabled
    """

    id: str
    enabled: bool = True
    name: str
    provider_type: ProviderKind = Field(default=ProviderKind.OPENAI)
    base_url: str = ""
    api_key: str = ""
    models: list[str] = Field(default_factory=list)
    model_overrides: dict[str, Any] = Field(default_factory=dict)
    chat_path: str | None = Field(default=None, description="OpenAI-compatible only")
    use_response_api: bool | None = Field(default=None, description="OpenAI-compatible only")
    vertex_ai: bool | None = Field(default=None, description="Google only")
    multi_key_enabled: bool = False
    api_keys: list[ApiKeyConfig] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def _classify_provider_type(cls, data: Any) -> Any:
        # Older records carry no type; the id is the best hint left
        if not isinstance(data, dict):
            return data
        value = data.get("provider_type")
        if isinstance(value, ProviderKind):
            return data
        text = str(value).strip() if value is not None else ""
        hint = text or str(data.get("id") or "")
        return {**data, "provider_type": ProviderKind.classify(hint)}
