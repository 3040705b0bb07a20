"""Assistant models for rikka_import."""

from typing import Any

from pydantic import BaseModel, Field, field_validator

__all__ = [
    "CONTEXT_SIZE_MAX",
    "CONTEXT_SIZE_MIN",
    "AssistantDTO",
    "ModelRef",
]

CONTEXT_SIZE_MIN = 1
CONTEXT_SIZE_MAX = 4096


class ModelRef(BaseModel, frozen=True):
    """Reference to a model offered by a local provider."""

    provider_key: str
    model_id: str


class AssistantDTO(BaseModel, frozen=True, extra="allow"):
    """Locally stored assistant.

    Attributes:
        id: Assistant id
        name: Display name
        avatar: Emoji, image URL or path; None for the default avatar
        chat_model: Resolved chat model, unset when the import could not
            resolve it against the known providers
        context_message_size: Number of history messages sent, 1..4096
        message_template: Template applied to each user message
    """

    id: str
    name: str
    avatar: str | None = None
    use_assistant_avatar: bool = False
    chat_model: ModelRef | None = None
    temperature: float | None = None
    top_p: float | None = None
    context_message_size: int = 64
    limit_context_messages: bool = True
    stream_output: bool = True
    thinking_budget: int | None = None
    max_tokens: int | None = None
    system_prompt: str = ""
    message_template: str = Field(default="{{ message }}")
    background: str | None = None
    enable_memory: bool = False
    enable_recent_chats_reference: bool = False

    @field_validator("context_message_size", mode="before")
    @classmethod
    def _clamp_context_size(cls, value: Any) -> Any:
        if isinstance(value, int) and not isinstance(value, bool):
            return min(max(value, CONTEXT_SIZE_MIN), CONTEXT_SIZE_MAX)
        return value
