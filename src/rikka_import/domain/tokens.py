"""Registries filled by the provider phase and read by the assistant phase."""

from dataclasses import dataclass, field

from rikka_import.models.assistant import ModelRef

__all__ = [
    "ModelTokenIndex",
    "ProviderAliasMap",
]


@dataclass
class ModelTokenIndex:
    """Alternate model identifiers (uuid, id, name) -> (provider key, model id).

    Every token is registered verbatim and lower-cased; the first
    registration of a token wins.
    """

    _tokens: dict[str, ModelRef] = field(default_factory=dict)

    def register(self, token: str, ref: ModelRef) -> None:
        token = token.strip()
        if not token:
            return
        self._tokens.setdefault(token, ref)
        self._tokens.setdefault(token.lower(), ref)

    def lookup(self, token: str) -> ModelRef | None:
        token = token.strip()
        if not token:
            return None
        return self._tokens.get(token) or self._tokens.get(token.lower())

    def __len__(self) -> int:
        return len(self._tokens)


@dataclass
class ProviderAliasMap:
    """Source provider id / name / suggested key -> final local provider key.

    Unlike model tokens, a later registration replaces an earlier one.
    """

    _aliases: dict[str, str] = field(default_factory=dict)

    def register(self, alias: str | None, key: str) -> None:
        alias = (alias or "").strip()
        if not alias:
            return
        self._aliases[alias] = key
        self._aliases[alias.lower()] = key

    def resolve(self, alias: str | None) -> str | None:
        alias = (alias or "").strip()
        if not alias:
            return None
        return self._aliases.get(alias) or self._aliases.get(alias.lower())

    def __contains__(self, alias: object) -> bool:
        return isinstance(alias, str) and self.resolve(alias) is not None
