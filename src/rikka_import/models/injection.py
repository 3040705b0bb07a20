"""Instruction injection models for rikka_import."""

from pydantic import BaseModel

__all__ = [
    "InstructionInjectionDTO",
]


class InstructionInjectionDTO(BaseModel, frozen=True, extra="allow"):
    """A reusable prompt snippet ("mode injection") toggled per assistant."""

    id: str
    title: str
    prompt: str = ""
    group: str = ""
