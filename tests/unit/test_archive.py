"""Unit tests for archive reading and the SQLite row source."""

import zipfile
from pathlib import Path
from typing import Any

import pytest

from rikka_import.exceptions import ArchiveReadError, DatabaseOpenError
from rikka_import.infra.archive import (
    ArchiveEntry,
    extract_sqlite_database,
    extract_uploads,
    find_entry,
    read_zip_archive,
)
from rikka_import.infra.sqlite import SqliteRowSource
from tests.conftest import write_sqlite_database


class TestReadZipArchive:
    """Tests for read_zip_archive."""

    def test_reads_files_and_skips_directories(self, tmp_path: Path) -> None:
        path = tmp_path / "b.zip"
        with zipfile.ZipFile(path, "w") as archive:
            archive.writestr("nested/", b"")
            archive.writestr("nested/settings.json", b"{}")

        entries = read_zip_archive(path)

        assert entries == [ArchiveEntry(name="nested/settings.json", data=b"{}")]
        assert entries[0].basename == "settings.json"

    def test_not_a_zip(self, tmp_path: Path) -> None:
        path = tmp_path / "broken.zip"
        path.write_bytes(b"definitely not a zip")

        with pytest.raises(ArchiveReadError, match="Unable to read zip"):
            read_zip_archive(path)

    def test_find_entry(self) -> None:
        entries = [ArchiveEntry("a.txt", b"a"), ArchiveEntry("dir/settings.json", b"{}")]

        assert find_entry(entries, lambda n: n.endswith("settings.json")) is entries[1]
        assert find_entry(entries, lambda n: n == "missing") is None


class TestExtractDatabase:
    """Tests for extract_sqlite_database."""

    def test_database_and_siblings(self, tmp_path: Path) -> None:
        entries = [
            ArchiveEntry("backup/RIKKA_HUB.db", b"main"),
            ArchiveEntry("backup/rikka_hub.db-wal", b"wal"),
            ArchiveEntry("backup/rikka_hub-shm", b"shm"),
            ArchiveEntry("other/rikka_hub.db", b"second"),
        ]

        db_path = extract_sqlite_database(entries, tmp_path)

        assert db_path == tmp_path / "rikka_hub.db"
        assert db_path.read_bytes() == b"main"
        assert (tmp_path / "rikka_hub.db-wal").read_bytes() == b"wal"
        assert (tmp_path / "rikka_hub.db-shm").read_bytes() == b"shm"

    def test_extensionless_name(self, tmp_path: Path) -> None:
        db_path = extract_sqlite_database([ArchiveEntry("rikka_hub", b"x")], tmp_path)

        assert db_path is not None
        assert db_path.read_bytes() == b"x"

    def test_missing_database(self, tmp_path: Path) -> None:
        assert extract_sqlite_database([ArchiveEntry("settings.json", b"{}")], tmp_path) is None


class TestExtractUploads:
    """Tests for extract_uploads."""

    def test_copies_and_indexes(self, tmp_path: Path) -> None:
        entries = [
            ArchiveEntry("upload/Photo.PNG", b"p"),
            ArchiveEntry("files/upload/docs/a.txt", b"a"),
            ArchiveEntry("other/docs/a.txt", b"not an upload"),
            ArchiveEntry("upload/more/a.txt", b"second a"),
        ]
        target = tmp_path / "upload"

        index = extract_uploads(entries, target)

        assert index.copied_files == 3
        assert (target / "docs" / "a.txt").read_bytes() == b"a"
        assert index.by_basename["photo.png"] == (target / "Photo.PNG").as_posix()
        assert index.by_basename["a.txt"] == (target / "docs" / "a.txt").as_posix()
        assert index.by_relative["more/a.txt"] == (target / "more" / "a.txt").as_posix()

    def test_unwritable_entry_skipped_with_warning(self, tmp_path: Path) -> None:
        entries = [
            ArchiveEntry("upload/a/b.png", b"png"),
            ArchiveEntry("upload/a", b"clashes with the directory"),
        ]
        target = tmp_path / "upload"
        warnings: list[str] = []

        index = extract_uploads(entries, target, warnings.append)

        assert index.copied_files == 1
        assert dict(index.by_relative) == {"a/b.png": (target / "a" / "b.png").as_posix()}
        assert (target / "a").is_dir()
        assert len(warnings) == 1
        assert warnings[0].startswith("Unable to extract upload file upload/a:")

    def test_rejects_traversal(self, tmp_path: Path) -> None:
        entries = [
            ArchiveEntry("upload/../escape.txt", b"x"),
            ArchiveEntry("upload/./dot.txt", b"x"),
            ArchiveEntry("upload/", b""),
        ]

        index = extract_uploads(entries, tmp_path / "upload")

        assert index.copied_files == 0
        assert index.is_empty
        assert not (tmp_path / "escape.txt").exists()


class TestSqliteRowSource:
    """Tests for SqliteRowSource."""

    def test_reads_tables(
        self,
        tmp_path: Path,
        sample_conversations: list[dict[str, Any]],
        sample_nodes: list[dict[str, Any]],
    ) -> None:
        path = write_sqlite_database(tmp_path / "db.sqlite", sample_conversations, sample_nodes)
        source = SqliteRowSource(path)
        try:
            tables = source.table_names()
            rows = source.fetch_all("ConversationEntity")
            nodes = source.fetch_all("message_node")
        finally:
            source.close()

        assert set(tables) == {"ConversationEntity", "message_node"}
        assert rows[0]["id"] == "conv-1"
        assert rows[0]["create_at"] == 1704067200000
        assert len(nodes) == 2
        assert isinstance(nodes[0]["messages"], str)

    def test_not_a_database(self, tmp_path: Path) -> None:
        path = tmp_path / "rikka_hub.db"
        path.write_bytes(b"this is not sqlite" * 100)

        with pytest.raises(DatabaseOpenError, match="Unable to open rikka_hub.db"):
            SqliteRowSource(path)
