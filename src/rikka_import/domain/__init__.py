"""Internal domain entities for rikka_import.

These are working representations used while an import runs; they are
never persisted as such.
"""

from rikka_import.domain.id_map import IdMap
from rikka_import.domain.node import NodeRecord
from rikka_import.domain.tokens import ModelTokenIndex, ProviderAliasMap
from rikka_import.domain.upload_index import UploadFileIndex

__all__ = [
    "IdMap",
    "ModelTokenIndex",
    "NodeRecord",
    "ProviderAliasMap",
    "UploadFileIndex",
]
