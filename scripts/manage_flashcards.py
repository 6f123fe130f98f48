#!/usr/bin/env python3
"""Command line tool for looking after the local flashcards store.

Usage:
    python scripts/manage_flashcards.py init
    python scripts/manage_flashcards.py maintenance
    python scripts/manage_flashcards.py export backup.json
    python scripts/manage_flashcards.py import backup.json
    python scripts/manage_flashcards.py trash
    python scripts/manage_flashcards.py empty-trash
    python scripts/manage_flashcards.py sync

The database location and the remote used by `sync` come from the
FLASHCARDS_* environment variables (a .env file is read too).
"""

import argparse
import asyncio
import sys
from datetime import datetime, timezone
from pathlib import Path

# Add repo root to path so we can import project modules
REPO_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(REPO_ROOT))


def cmd_init(args) -> int:
    from flashcards.database import init_db, init_default_deck
    from flashcards.maintenance import run_database_maintenance

    init_db()
    deck = init_default_deck()
    if deck:
        print(f"Created deck '{deck.name}'")
    results = run_database_maintenance()
    print(f"Store ready ({results})")
    return 0


def cmd_maintenance(args) -> int:
    from flashcards.database import init_db
    from flashcards.maintenance import run_database_maintenance

    init_db()
    results = run_database_maintenance()
    for step, fixed in results.items():
        status = "failed" if fixed is None else f"{fixed} fixed"
        print(f"  {step}: {status}")
    return 1 if None in results.values() else 0


def cmd_export(args) -> int:
    from flashcards.backup import export_to_file
    from flashcards.database import init_db

    init_db()
    document = export_to_file(args.path)
    print(
        f"Exported {len(document['decks'])} decks, {len(document['cards'])} cards, "
        f"{len(document['reviews'])} reviews and {len(document['logs'])} study logs to {args.path}"
    )
    return 0


def cmd_import(args) -> int:
    from flashcards.backup import import_from_file
    from flashcards.database import init_db

    if not args.path.exists():
        print(f"Error: {args.path} not found", file=sys.stderr)
        return 1

    init_db()
    try:
        import_from_file(args.path)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    print(f"Imported {args.path}")
    return 0


def cmd_trash(args) -> int:
    from flashcards.database import init_db
    from flashcards.trash import get_trash_items

    init_db()
    items = get_trash_items()
    if not items:
        print("Trash is empty")
        return 0
    for item in items:
        deleted = datetime.fromtimestamp(item.deleted_at / 1000, tz=timezone.utc)
        print(f"{deleted:%Y-%m-%d %H:%M}  [{item.deck_name}]  {item.name}")
    return 0


def cmd_empty_trash(args) -> int:
    from flashcards.database import init_db
    from flashcards.trash import empty_trash

    init_db()
    removed = empty_trash()
    print(f"Permanently deleted {removed} cards")
    return 0


def cmd_sync(args) -> int:
    from flashcards.cloud_sync import CloudSync, create_remote_from_config
    from flashcards.database import init_db

    remote = create_remote_from_config()
    if remote is None:
        print(
            "Error: no remote configured. Set FLASHCARDS_REMOTE_DB_URL, or "
            "FLASHCARDS_SUPABASE_URL and FLASHCARDS_SUPABASE_KEY",
            file=sys.stderr,
        )
        return 1

    init_db()
    sync = CloudSync(remote)
    asyncio.run(sync.sync_all())
    status = sync.status
    if status.error:
        print(f"Sync failed: {status.error}", file=sys.stderr)
        return 1
    if status.last_sync is None:
        print("Nothing synced: no user signed in")
        return 1
    print("Sync complete")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Manage the local flashcards store")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("init", help="Create the schema and the default deck").set_defaults(func=cmd_init)
    subparsers.add_parser("maintenance", help="Repair deck counts and orphaned rows").set_defaults(
        func=cmd_maintenance
    )

    export_parser = subparsers.add_parser("export", help="Write a JSON backup")
    export_parser.add_argument("path", type=Path, help="Backup file to write")
    export_parser.set_defaults(func=cmd_export)

    import_parser = subparsers.add_parser("import", help="Replace the store with a JSON backup")
    import_parser.add_argument("path", type=Path, help="Backup file to read")
    import_parser.set_defaults(func=cmd_import)

    subparsers.add_parser("trash", help="List deleted cards").set_defaults(func=cmd_trash)
    subparsers.add_parser("empty-trash", help="Permanently delete everything in the trash").set_defaults(
        func=cmd_empty_trash
    )
    subparsers.add_parser("sync", help="Sync with the configured remote").set_defaults(func=cmd_sync)

    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
