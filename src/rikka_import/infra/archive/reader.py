"""Backup archive access for rikka_import.

The whole archive is read into memory once; the settings document, the
SQLite database and the upload payload are then taken from the entry list.
"""

import posixpath
import zipfile
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from pathlib import Path

from rikka_import.domain.upload_index import UploadFileIndex
from rikka_import.exceptions import ArchiveReadError
from rikka_import.logging import get_logger

__all__ = [
    "ArchiveEntry",
    "extract_sqlite_database",
    "extract_uploads",
    "find_entry",
    "read_zip_archive",
]

logger = get_logger(__name__)

DATABASE_FILENAME = "rikka_hub.db"
_DATABASE_NAMES = ("rikka_hub.db", "rikka_hub")
_UPLOAD_DIR = "upload"


@dataclass(frozen=True)
class ArchiveEntry:
    """One file inside the archive; ``name`` uses forward slashes."""

    name: str
    data: bytes

    @property
    def basename(self) -> str:
        return posixpath.basename(self.name).lower()


def read_zip_archive(path: Path) -> list[ArchiveEntry]:
    """Read every file entry of a zip archive.

    Args:
        path: Path to the .zip file

    Returns:
        File entries in archive order; directory entries are skipped

    Raises:
        ArchiveReadError: If the file is not a readable zip archive
    """
    try:
        with zipfile.ZipFile(path) as archive:
            entries = [
                ArchiveEntry(name=info.filename.replace("\\", "/"), data=archive.read(info))
                for info in archive.infolist()
                if not info.is_dir()
            ]
    except (zipfile.BadZipFile, zipfile.LargeZipFile, OSError, EOFError, NotImplementedError) as e:
        raise ArchiveReadError(f"Unable to read zip: {e}") from e

    logger.debug("archive_read", path=str(path), entries=len(entries))
    return entries


def find_entry(
    entries: Sequence[ArchiveEntry],
    matcher: Callable[[str], bool],
) -> ArchiveEntry | None:
    """First entry whose name satisfies ``matcher``."""
    for entry in entries:
        if matcher(entry.name):
            return entry
    return None


def extract_sqlite_database(entries: Sequence[ArchiveEntry], target_dir: Path) -> Path | None:
    """Write the bundled database and its WAL/SHM siblings into ``target_dir``.

    Entries are matched by basename at any depth, with or without the
    ``.db`` suffix.

    Returns:
        Path of the written database, or None when the archive has none
    """
    database: ArchiveEntry | None = None
    siblings: dict[str, ArchiveEntry] = {}
    for entry in entries:
        base = entry.basename
        if base in _DATABASE_NAMES:
            database = database or entry
            continue
        for name in _DATABASE_NAMES:
            for suffix in ("-wal", "-shm"):
                if base == f"{name}{suffix}":
                    siblings.setdefault(suffix, entry)
    if database is None:
        return None

    db_path = target_dir / DATABASE_FILENAME
    db_path.write_bytes(database.data)
    for suffix, entry in siblings.items():
        Path(f"{db_path}{suffix}").write_bytes(entry.data)
    logger.debug("database_extracted", path=str(db_path), siblings=sorted(siblings))
    return db_path


def _upload_relative_path(name: str) -> str | None:
    """Path below the first ``upload/`` segment, or None if not an upload."""
    segments = [s for s in name.split("/") if s]
    for i, segment in enumerate(segments):
        if segment.lower() == _UPLOAD_DIR:
            rest = segments[i + 1 :]
            if not rest or any(s in (".", "..") for s in rest):
                return None
            return "/".join(rest)
    return None


def extract_uploads(
    entries: Sequence[ArchiveEntry],
    upload_dir: Path,
    warn: Callable[[str], None] | None = None,
) -> UploadFileIndex:
    """Copy upload payload files into ``upload_dir`` and index them.

    Paths that would escape ``upload_dir`` are skipped. An entry that cannot
    be written (e.g. a file and a directory sharing a path) is skipped and
    reported through ``warn``. When two entries share a basename the first
    one wins in the basename index.

    Returns:
        Index keyed by lower-cased basename and upload-relative path
    """
    by_basename: dict[str, str] = {}
    by_relative: dict[str, str] = {}
    copied = 0
    for entry in entries:
        relative = _upload_relative_path(entry.name)
        if relative is None:
            continue
        target = upload_dir.joinpath(*relative.split("/"))
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(entry.data)
        except OSError as e:
            logger.warning("upload_write_failed", entry=entry.name, error=str(e))
            if warn is not None:
                warn(f"Unable to extract upload file {entry.name}: {e.strerror or e}")
            continue
        copied += 1

        local_path = target.as_posix()
        by_relative.setdefault(relative.lower(), local_path)
        by_basename.setdefault(posixpath.basename(relative).lower(), local_path)

    logger.info("uploads_extracted", directory=str(upload_dir), files=copied)
    return UploadFileIndex.from_mappings(by_basename, by_relative, copied_files=copied)
