from collections.abc import Callable
from importlib import import_module
from typing import Any


def lazy_import(
    module_name: str,
    name: str | None = None,
) -> Callable[[], Any]:
    """Defer importing a store driver until a client is actually built.

    ``lazy_import("redis.asyncio", "Redis")()`` returns the class; with
    ``name`` omitted the module itself is returned.
    """

    def _load() -> Any:
        mod = import_module(module_name)
        return getattr(mod, name) if name else mod

    return _load
