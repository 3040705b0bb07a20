"""Non-fatal problems collected during an import run."""

from collections.abc import Iterator

from rikka_import.logging import get_logger

__all__ = [
    "ImportWarnings",
]

logger = get_logger(__name__)


class ImportWarnings:
    """Order-preserving, de-duplicated warning list with a hard cap.

    Every accepted warning is also logged. Warnings past the cap are
    logged but not kept.
    """

    def __init__(self, limit: int = 200) -> None:
        self._limit = limit
        self._items: dict[str, None] = {}
        self._seen: set[str] = set()

    def add(self, message: str) -> None:
        text = message.strip()
        if not text or text in self._seen:
            return
        self._seen.add(text)
        logger.warning("import_warning", warning=text)
        if len(self._items) >= self._limit:
            return
        self._items[text] = None

    def __call__(self, message: str) -> None:
        self.add(message)

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[str]:
        return iter(self._items)

    def to_list(self) -> list[str]:
        return list(self._items)
