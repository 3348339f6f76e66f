# =============================================================================
# govguide/cli/ingest.py: Ingestion CLIs (document corpus + scheme table)
# =============================================================================
#
# Three console scripts share this module:
#
#   govguide-ingest <file.pdf>         → ingest one PDF; exit 1 on a fatal
#                                        error (missing file, unreadable PDF,
#                                        missing or rejected credentials)
#   govguide-ingest-batch [directory]  → ingest every PDF in a directory
#                                        (default DOCUMENTS_DIR) one by one;
#                                        unreadable files are skipped, exit 0;
#                                        exit 1 when every model key is
#                                        rejected
#   govguide-ingest-schemes [csv]      → load the scheme CSV into the scheme
#                                        table (default SCHEMES_CSV_PATH)
#
# Per-chunk failures never change the exit code: they are listed in the
# summary so the operator can delete the source and re-run.
# =============================================================================

"""Command-line entry points for building the GovGuide corpus.

Usage::

    govguide-ingest public/pm-kisan.pdf
    govguide-ingest-batch public/
    govguide-ingest-schemes "public/Indian Government Schemes, Loans, and Policies Data Table.csv"
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from pydantic import ValidationError

from govguide.core.config import Settings, get_settings
from govguide.core.errors import GovGuideError
from govguide.llm.credentials import CredentialState
from govguide.services.ingestion import (
    BatchReport,
    IngestionPipeline,
    IngestionReport,
    SchemeIngestionService,
)
from govguide.store.factory import get_chunk_store, get_scheme_store

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Wiring
# ---------------------------------------------------------------------------

def _load_settings() -> Settings | None:
    try:
        return get_settings()
    except ValidationError as exc:
        print(f"Configuration error:\n{exc}", file=sys.stderr)
        return None


def _configure_logging(app_settings: Settings) -> None:
    logging.basicConfig(
        level=logging.DEBUG if app_settings.debug else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )


def _build_pipeline(app_settings: Settings) -> IngestionPipeline:
    credentials = CredentialState.from_settings(app_settings)
    return IngestionPipeline.from_settings(app_settings, credentials, get_chunk_store())


def _build_scheme_service(app_settings: Settings) -> SchemeIngestionService:
    return SchemeIngestionService.from_settings(app_settings, get_scheme_store())


async def _close(app_settings: Settings) -> None:
    if app_settings.store_backend.lower() == "postgres":
        from govguide.db.session import dispose_engine
        await dispose_engine()


# ---------------------------------------------------------------------------
# Output
# ---------------------------------------------------------------------------

def _print_report(report: IngestionReport) -> None:
    if report.skipped:
        print(f"  {report.source}: skipped ({report.skipped_reason})")
        return
    print(f"  {report.source}: {report.chunks_stored}/{report.chunks_total} chunks stored "
          f"in {report.elapsed_ms / 1000:.1f}s")
    if report.failed_chunks:
        print(f"    failed chunk indices: {', '.join(str(i) for i in report.failed_chunks)}")


def _print_batch(batch: BatchReport) -> None:
    print(f"\nBatch ingestion of {batch.directory}:")
    for report in batch.reports:
        _print_report(report)
    print(f"\n  Files:          {batch.files_total} ({batch.files_skipped} skipped)")
    print(f"  Chunks stored:  {batch.chunks_stored}")
    print(f"  Chunks failed:  {batch.chunks_failed}")


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------

async def _handle_file(path: str, pipeline: IngestionPipeline) -> int:
    print(f"Ingesting: {path}")
    try:
        report = await pipeline.ingest_file(path)
    except GovGuideError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    _print_report(report)
    return 0


async def _handle_batch(directory: str, pipeline: IngestionPipeline) -> int:
    try:
        batch = await pipeline.ingest_directory(directory)
    except GovGuideError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    _print_batch(batch)
    return 0


async def _handle_schemes(path: str, service: SchemeIngestionService) -> int:
    print(f"Loading schemes from: {path}")
    try:
        report = await service.ingest_csv(path)
    except GovGuideError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    print(f"  Inserted {report.records_inserted}/{report.records_total} scheme rows")
    for start, end in report.failed_batches:
        print(f"    failed rows {start}-{end}")
    return 0


# ---------------------------------------------------------------------------
# Entry points
# ---------------------------------------------------------------------------

def _run(app_settings: Settings, handler) -> int:
    async def _main() -> int:
        try:
            return await handler
        finally:
            await _close(app_settings)
    return asyncio.run(_main())


def main_file(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="govguide-ingest",
        description="Ingest one PDF into the GovGuide document store.",
    )
    parser.add_argument("file", help="Path to the PDF file")
    args = parser.parse_args(argv)

    app_settings = _load_settings()
    if app_settings is None:
        return 1
    _configure_logging(app_settings)
    try:
        pipeline = _build_pipeline(app_settings)
    except GovGuideError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    return _run(app_settings, _handle_file(args.file, pipeline))


def main_batch(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="govguide-ingest-batch",
        description="Ingest every PDF in a directory, one file at a time.",
    )
    parser.add_argument("directory", nargs="?", default=None,
                        help="Directory to scan (default: DOCUMENTS_DIR)")
    args = parser.parse_args(argv)

    app_settings = _load_settings()
    if app_settings is None:
        return 1
    _configure_logging(app_settings)
    try:
        pipeline = _build_pipeline(app_settings)
    except GovGuideError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    directory = args.directory or app_settings.documents_dir
    return _run(app_settings, _handle_batch(directory, pipeline))


def main_schemes(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="govguide-ingest-schemes",
        description="Load the government scheme CSV into the scheme table.",
    )
    parser.add_argument("csv", nargs="?", default=None,
                        help="Path to the CSV file (default: SCHEMES_CSV_PATH)")
    args = parser.parse_args(argv)

    app_settings = _load_settings()
    if app_settings is None:
        return 1
    _configure_logging(app_settings)
    service = _build_scheme_service(app_settings)
    return _run(app_settings, _handle_schemes(args.csv or app_settings.schemes_csv_path, service))


if __name__ == "__main__":
    sys.exit(main_file())
