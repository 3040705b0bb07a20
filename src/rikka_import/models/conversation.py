"""Conversation and message models for rikka_import.

A conversation is stored as a flat arena of messages. Alternative
continuations at a branch point share a ``group_id`` and are told apart by
their 0-based ``version``; which variant is shown is recorded in the
conversation's ``version_selections`` side index.
"""

from datetime import datetime
from typing import Annotated, Literal

from pydantic import AfterValidator, BaseModel, Field

from rikka_import.utils.fields import ensure_utc

__all__ = [
    "ChatMessageDTO",
    "ConversationDTO",
    "MessageRole",
    "UtcDateTime",
]

MessageRole = Literal["user", "assistant", "tool"]

UtcDateTime = Annotated[datetime, AfterValidator(ensure_utc)]


class ChatMessageDTO(BaseModel, frozen=True):
    """One message variant.

    Attributes:
        id: Message id, unique across the store
        conversation_id: Owning conversation
        role: user, assistant or tool
        content: Rendered text, file references already rewritten
        timestamp: Creation time (UTC)
        group_id: Branch point shared by all variants
        version: Dense 0-based rank within the group
        model_id: Model that produced an assistant message
        provider_id: Provider that served the model
        total_tokens: Token usage reported by the provider
    """

    id: str
    conversation_id: str
    role: MessageRole
    content: str
    timestamp: UtcDateTime
    group_id: str
    version: int = Field(default=0, ge=0)
    model_id: str | None = None
    provider_id: str | None = None
    total_tokens: int | None = None


class ConversationDTO(BaseModel, frozen=True):
    """Conversation metadata; messages are stored separately.

    Attributes:
        truncate_index: Messages before this index are hidden from the
            model context; -1 keeps everything
        version_selections: group id -> selected version
    """

    id: str
    title: str
    created_at: UtcDateTime
    updated_at: UtcDateTime
    is_pinned: bool = False
    assistant_id: str | None = None
    truncate_index: int = -1
    version_selections: dict[str, int] = Field(default_factory=dict)
