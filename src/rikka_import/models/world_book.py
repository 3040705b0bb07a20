"""World book (lorebook) models for rikka_import.

A world book is a named collection of entries whose content is injected
into the prompt when one of the entry keywords shows up in the chat.
"""

import re
from enum import StrEnum
from typing import Any, Self

from pydantic import BaseModel, Field, field_validator

__all__ = [
    "InjectionPosition",
    "InjectionRole",
    "WorldBookDTO",
    "WorldBookEntryDTO",
]

_NON_ALNUM = re.compile(r"[^a-z0-9]")


def _squash(value: str) -> str:
    return _NON_ALNUM.sub("", value.lower())


class _LenientEnum(StrEnum):
    """StrEnum that parses ``"atDepth"``, ``"AT_DEPTH"`` and ordinals alike."""

    @classmethod
    def default(cls) -> Self:
        raise NotImplementedError

    @classmethod
    def parse(cls, value: Any) -> Self:
        if isinstance(value, cls):
            return value
        members = list(cls)
        if isinstance(value, int) and not isinstance(value, bool):
            return members[value] if 0 <= value < len(members) else cls.default()
        if value is None:
            return cls.default()
        wanted = _squash(str(value))
        for member in members:
            if _squash(member.value) == wanted or _squash(member.name) == wanted:
                return member
        return cls.default()


class InjectionPosition(_LenientEnum):
    BEFORE_SYSTEM_PROMPT = "before_system_prompt"
    AFTER_SYSTEM_PROMPT = "after_system_prompt"
    TOP_OF_CHAT = "top_of_chat"
    BOTTOM_OF_CHAT = "bottom_of_chat"
    AT_DEPTH = "at_depth"

    @classmethod
    def default(cls) -> "InjectionPosition":
        return cls.AFTER_SYSTEM_PROMPT


class InjectionRole(_LenientEnum):
    USER = "user"
    ASSISTANT = "assistant"

    @classmethod
    def default(cls) -> "InjectionRole":
        return cls.USER


class WorldBookEntryDTO(BaseModel, frozen=True, extra="allow"):
    """A single keyword-triggered lorebook entry."""

    id: str
    name: str = ""
    enabled: bool = True
    priority: int = 0
    position: InjectionPosition = Field(default=InjectionPosition.AFTER_SYSTEM_PROMPT)
    content: str = ""
    inject_depth: int = 4
    role: InjectionRole = Field(default=InjectionRole.USER)
    keywords: list[str] = Field(default_factory=list)
    use_regex: bool = False
    case_sensitive: bool = False
    scan_depth: int = 4
    constant_active: bool = False

    @field_validator("position", mode="before")
    @classmethod
    def _parse_position(cls, value: Any) -> InjectionPosition:
        return InjectionPosition.parse(value)

    @field_validator("role", mode="before")
    @classmethod
    def _parse_role(cls, value: Any) -> InjectionRole:
        return InjectionRole.parse(value)


class WorldBookDTO(BaseModel, frozen=True, extra="allow"):
    """Locally stored world book."""

    id: str
    name: str
    description: str = ""
    enabled: bool = True
    entries: list[WorldBookEntryDTO] = Field(default_factory=list)
