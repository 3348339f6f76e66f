# =============================================================================
# govguide/cli/manage.py: Corpus management CLI
# =============================================================================
#
#   govguide-manage stats                    → chunk counts per source
#                                              plus the scheme row count
#   govguide-manage delete <source> [--yes]  → delete every chunk of one
#                                              source (its file base name)
#   govguide-manage wipe [--yes]             → delete ALL chunks
#
# delete and wipe are destructive and ask for confirmation unless --yes is
# given. Deleting a source is the way to re-ingest it cleanly, since
# ingestion itself only ever appends.
# =============================================================================

"""Command-line corpus management for GovGuide."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from pydantic import ValidationError

from govguide.core.config import Settings, get_settings
from govguide.core.errors import GovGuideError
from govguide.services.ingestion import CorpusManager
from govguide.store.factory import get_chunk_store, get_scheme_store

logger = logging.getLogger(__name__)


def _build_manager() -> CorpusManager:
    return CorpusManager(get_chunk_store(), get_scheme_store())


def _confirm(prompt: str, assume_yes: bool) -> bool:
    if assume_yes:
        return True
    return input(f"{prompt} [y/N] ").strip().lower() in ("y", "yes")


# ---------------------------------------------------------------------------
# Subcommand handlers
# ---------------------------------------------------------------------------

async def _handle_stats(manager: CorpusManager) -> int:
    counts = await manager.list_sources()
    schemes = await manager.scheme_count()

    print("Corpus Statistics")
    print("=" * 40)
    if not counts:
        print("  No documents found.")
    else:
        print("  Documents by source:")
        for idx, (source, count) in enumerate(counts.items(), start=1):
            print(f"    {idx}. {source} ({count} chunks)")
        print(f"\n  Total chunks:  {sum(counts.values())}")
    if schemes is not None:
        print(f"  Scheme rows:   {schemes}")
    return 0


async def _handle_delete(args: argparse.Namespace, manager: CorpusManager) -> int:
    counts = await manager.list_sources()
    found = counts.get(args.source, 0)
    if found == 0:
        print(f"No chunks found for source '{args.source}'. Nothing to delete.")
        return 0

    if not _confirm(f"Delete {found} chunks of '{args.source}'?", args.yes):
        print("Aborted.")
        return 0

    deleted = await manager.delete_source(args.source)
    print(f"Deleted {deleted} chunks.")
    return 0


async def _handle_wipe(args: argparse.Namespace, manager: CorpusManager) -> int:
    if not _confirm("Delete ALL document chunks?", args.yes):
        print("Aborted.")
        return 0
    deleted = await manager.delete_all()
    print(f"Deleted {deleted} chunks.")
    return 0


# ---------------------------------------------------------------------------
# Argument parser
# ---------------------------------------------------------------------------

def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="govguide-manage",
        description="Inspect and prune the GovGuide document store.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("stats", help="Show chunk counts per source")

    delete_parser = subparsers.add_parser("delete", help="Delete all chunks of one source")
    delete_parser.add_argument("source", help="Source identifier (file base name)")
    delete_parser.add_argument("--yes", action="store_true", help="Skip confirmation")

    wipe_parser = subparsers.add_parser("wipe", help="Delete every chunk")
    wipe_parser.add_argument("--yes", action="store_true", help="Skip confirmation")

    return parser


async def _dispatch(args: argparse.Namespace, manager: CorpusManager, app_settings: Settings) -> int:
    try:
        if args.command == "stats":
            return await _handle_stats(manager)
        if args.command == "delete":
            return await _handle_delete(args, manager)
        return await _handle_wipe(args, manager)
    except GovGuideError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    finally:
        if app_settings.store_backend.lower() == "postgres":
            from govguide.db.session import dispose_engine
            await dispose_engine()


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)

    try:
        app_settings = get_settings()
    except ValidationError as exc:
        print(f"Configuration error:\n{exc}", file=sys.stderr)
        return 1

    logging.basicConfig(
        level=logging.DEBUG if app_settings.debug else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    return asyncio.run(_dispatch(args, _build_manager(), app_settings))


if __name__ == "__main__":
    sys.exit(main())
