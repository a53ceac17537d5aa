"""Operator CLI for inspecting and editing the durable save queue.

Usage::

    python -m knowledge_vault.cli list
    python -m knowledge_vault.cli summary
    python -m knowledge_vault.cli discard <queue_id>
    python -m knowledge_vault.cli purge-failed --yes

Works directly on the SQLite queue file (``QUEUE_DB_PATH``), so it is
meant for use while the service is stopped.  Nothing here talks to the
remote snippet store.
"""

from __future__ import annotations

import argparse
import asyncio
import sys

from knowledge_vault.config.settings import Settings
from knowledge_vault.interfaces.queue_store import IQueueStore
from knowledge_vault.models.queue import QueueStatus
from knowledge_vault.providers.queue_store.sqlite_queue_store import SQLiteQueueStore
from knowledge_vault.services.queue_summary import build_summary
from knowledge_vault.utils.text import preview

_TEXT_COLUMN = 50


# ---------------------------------------------------------------------------
# Command handlers
# ---------------------------------------------------------------------------


async def _handle_list(store: IQueueStore) -> int:
    """Print every entry in enqueue order."""
    entries = await store.list_all()
    if not entries:
        print("Save queue is empty.")
        return 0

    print(f"{'ID':<36}  {'STATUS':<9}  {'TRIES':>5}  TEXT")
    for entry in entries:
        text = preview(" ".join(entry.payload.text.split()), _TEXT_COLUMN)
        print(f"{entry.id:<36}  {entry.status.value:<9}  {entry.retry_count:>5}  {text}")
        if entry.last_error:
            print(f"{'':<36}  last error: {entry.last_error}")
    return 0


async def _handle_summary(store: IQueueStore, recent_limit: int) -> int:
    """Print the same summary a control panel shows."""
    summary = await build_summary(store, recent_limit=recent_limit, preview_chars=_TEXT_COLUMN)
    failed = sum(1 for item in summary.recent_items if item.status == "failed")

    print("Save Queue Summary")
    print("=" * 40)
    print(f"  Entries:          {await store.count()}")
    print(f"  Pending:          {summary.pending_count}")
    print(f"  Failed (recent):  {failed}")

    if summary.recent_items:
        print("\n  Recent:")
        for item in summary.recent_items:
            print(f"    [{item.status:<7}] {item.source_domain:<24} {item.text}")
    return 0


async def _handle_discard(store: IQueueStore, queue_id: str) -> int:
    if await store.get(queue_id) is None:
        print(f"No queue entry with id {queue_id}", file=sys.stderr)
        return 1
    await store.dequeue_remove(queue_id)
    print(f"Discarded {queue_id}")
    return 0


async def _handle_purge_failed(store: IQueueStore, assume_yes: bool) -> int:
    """Remove every ``failed`` entry after confirmation."""
    failed = [e for e in await store.list_all() if e.status is QueueStatus.FAILED]
    if not failed:
        print("No failed entries. Nothing to purge.")
        return 0

    print(f"  Found {len(failed)} failed entries")
    if not assume_yes:
        confirm = input(f"  Delete all {len(failed)} failed entries? [y/N] ").strip().lower()
        if confirm not in ("y", "yes"):
            print("  Aborted.")
            return 0

    for entry in failed:
        await store.dequeue_remove(entry.id)
    print(f"\n  Deleted {len(failed)} entries.")
    return 0


async def _run(args: argparse.Namespace, app_settings: Settings) -> int:
    store = SQLiteQueueStore(
        db_path=args.db or app_settings.queue_db_path,
        max_size=app_settings.max_queue_size,
    )
    await store.initialize()
    try:
        if args.command == "list":
            return await _handle_list(store)
        if args.command == "summary":
            return await _handle_summary(store, app_settings.recent_items_limit)
        if args.command == "discard":
            return await _handle_discard(store, args.queue_id)
        return await _handle_purge_failed(store, args.yes)
    finally:
        await store.close()


# ---------------------------------------------------------------------------
# Argument parser
# ---------------------------------------------------------------------------


def _build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser for the queue CLI."""
    parser = argparse.ArgumentParser(
        prog="python -m knowledge_vault.cli",
        description="Inspect and edit the Knowledge Vault save queue.",
    )
    parser.add_argument("--db", default=None, help="Queue database path (default: QUEUE_DB_PATH)")
    subparsers = parser.add_subparsers(dest="command", help="Queue commands")

    subparsers.add_parser("list", help="List every queue entry")
    subparsers.add_parser("summary", help="Show pending count and recent entries")

    discard_parser = subparsers.add_parser("discard", help="Remove one entry")
    discard_parser.add_argument("queue_id", help="Id of the entry to remove")

    purge_parser = subparsers.add_parser("purge-failed", help="Remove every failed entry")
    purge_parser.add_argument("--yes", "-y", action="store_true", help="Skip confirmation prompt")

    return parser


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main(argv: list[str] | None = None) -> None:
    """CLI entry point.  Exits with the handler's status code."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    app_settings = Settings()
    exit_code = asyncio.run(_run(args, app_settings))
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
