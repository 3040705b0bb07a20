#!/usr/bin/env python
"""Import a RikkaHub backup into Redis (settings) and MongoDB (conversations).

Usage:
    python scripts/import_backup.py rikkahub_backup.zip
    python scripts/import_backup.py rikkahub_backup.zip --mode overwrite
    python scripts/import_backup.py rikkahub_backup.zip --policy duplicate_on_conflict

Environment variables (via .env):
    RIKKA_IMPORT_REDIS_URL=redis://localhost:6379/0
    RIKKA_IMPORT_MONGO_URI=mongodb://localhost:27017
    RIKKA_IMPORT_MONGO_DATABASE=rikka_import
    RIKKA_IMPORT_UPLOAD_DIR=/var/lib/rikka_import/upload
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from rikka_import import (
    MergeConflictPolicy,
    MongoConversationStore,
    RedisSettingsStore,
    RestoreMode,
    RikkaHubImporter,
    RikkaImportError,
)
from rikka_import.logging import configure_logging, get_logger

logger = get_logger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Import a RikkaHub backup archive.")
    parser.add_argument("backup", type=Path, help="Path to the RikkaHub .zip backup")
    parser.add_argument(
        "--mode",
        choices=[m.value for m in RestoreMode],
        default=RestoreMode.MERGE.value,
        help="overwrite replaces local data, merge keeps it (default: merge)",
    )
    parser.add_argument(
        "--policy",
        choices=[p.value for p in MergeConflictPolicy],
        default=MergeConflictPolicy.MERGE_SAME_ITEM.value,
        help="conflict policy for merge mode (default: merge_same_item)",
    )
    parser.add_argument("--json-logs", action="store_true", help="emit JSON log lines")
    parser.add_argument("-v", "--verbose", action="store_true", help="enable debug logging")
    return parser.parse_args(argv)


async def main(argv: list[str] | None = None) -> int:
    """Run the import and print a summary."""
    args = parse_args(argv)
    configure_logging(
        level=logging.DEBUG if args.verbose else logging.INFO,
        json_output=args.json_logs,
    )

    try:
        async with RikkaHubImporter(
            settings_store_class=RedisSettingsStore,
            conversation_store_class=MongoConversationStore,
        ) as importer:
            result = await importer.import_backup(
                args.backup,
                mode=RestoreMode(args.mode),
                policy=MergeConflictPolicy(args.policy),
            )
    except RikkaImportError as e:
        logger.error("import_failed", error=e.message)
        print(f"Import failed: {e.message}", file=sys.stderr)
        return 1

    print("\n" + "=" * 60)
    print("IMPORT COMPLETED")
    print("=" * 60)
    print(f"  Providers:        {result.providers}")
    print(f"  Assistants:       {result.assistants}")
    print(f"  Mode injections:  {result.mode_injections}")
    print(f"  Lorebooks:        {result.lorebooks}")
    print(f"  Conversations:    {result.conversations}")
    print(f"  Messages:         {result.messages}")
    print(f"  Files:            {result.files}")
    if result.warnings:
        print(f"\nWarnings ({len(result.warnings)}):")
        for warning in result.warnings:
            print(f"  - {warning}")
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
