"""
Document Ingestion Service

Orchestrates the offline pipeline that fills the chunk store:

  PDF bytes
     │
     ▼
  PdfTextExtractor ──► zero characters? → report skipped, store nothing
     │
     ▼
  Chunker (1000 chars / 200 overlap)
     │
     ▼  for each chunk, strictly in chunk_index order:
  EmbeddingClient.embed  (0.5 s pacing, 2 s × 2^n backoff on 429, 5 attempts)
     │
     ▼
  ChunkStore.insert({content, metadata: {source, chunk_index}, embedding})

Failure isolation:
  - One chunk failing (embed or write) is logged with source + chunk index
    and recorded in the report; the remaining chunks are still processed.
  - In batch mode one file failing to open/parse is recorded as skipped;
    the remaining files are still processed.
  - In single-file mode a missing or unreadable file raises IngestionError.
  - A credential failure with no rotation left (CredentialError) or missing
    configuration aborts the whole run, single-file or batch.

Re-ingesting a source appends rows. CorpusManager.delete_source() is the
explicit delete-before-reingest operation.

Files are processed one after another, never concurrently, so the provider
sees a steady, predictable request rate.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Sequence

from govguide.core.errors import (
    ConfigurationError,
    CredentialError,
    ExtractionError,
    IngestionError,
    StoreError,
)
from govguide.llm.credentials import CredentialState
from govguide.processing.chunking import Chunker
from govguide.processing.embeddings import EmbeddingClient
from govguide.processing.extractor import PdfTextExtractor
from govguide.processing.tabular import parse_scheme_csv
from govguide.schemas.retrieval import DocumentChunk, SchemeRecord
from govguide.store.base import ChunkStore, SchemeStore

logger = logging.getLogger(__name__)

DEFAULT_EXTENSIONS: tuple[str, ...] = (".pdf",)

# Log a progress line every N stored chunks
_PROGRESS_EVERY = 10


# ---------------------------------------------------------------------------
# Reports
# ---------------------------------------------------------------------------

@dataclass
class IngestionReport:
    """Outcome of ingesting one source."""
    source:         str
    chunks_total:   int = 0
    chunks_stored:  int = 0
    failed_chunks:  list[int] = field(default_factory=list)
    skipped_reason: str | None = None
    elapsed_ms:     float = 0.0

    @property
    def skipped(self) -> bool:
        return self.skipped_reason is not None

    @property
    def complete(self) -> bool:
        return not self.skipped and not self.failed_chunks


@dataclass
class BatchReport:
    directory: str
    reports:   list[IngestionReport] = field(default_factory=list)

    @property
    def files_total(self) -> int:
        return len(self.reports)

    @property
    def files_skipped(self) -> int:
        return sum(1 for r in self.reports if r.skipped)

    @property
    def chunks_stored(self) -> int:
        return sum(r.chunks_stored for r in self.reports)

    @property
    def chunks_failed(self) -> int:
        return sum(len(r.failed_chunks) for r in self.reports)


@dataclass
class SchemeIngestionReport:
    source:           str
    records_total:    int = 0
    records_inserted: int = 0
    failed_batches:   list[tuple[int, int]] = field(default_factory=list)  # [start, end) row ranges


# ---------------------------------------------------------------------------
# Document pipeline
# ---------------------------------------------------------------------------

class IngestionPipeline:
    """
    Usage:
        pipeline = IngestionPipeline.from_settings(settings, credentials, store)
        report   = await pipeline.ingest_file("public/pm-kisan.pdf")
    """

    def __init__(
        self,
        extractor: PdfTextExtractor,
        chunker:   Chunker,
        embedder:  EmbeddingClient,
        store:     ChunkStore,
    ) -> None:
        self._extractor = extractor
        self._chunker   = chunker
        self._embedder  = embedder
        self._store     = store

    @classmethod
    def from_settings(
        cls,
        settings,
        credentials: CredentialState,
        store:       ChunkStore,
    ) -> "IngestionPipeline":
        return cls(
            extractor=PdfTextExtractor(),
            chunker=Chunker.from_settings(settings),
            embedder=EmbeddingClient.for_ingestion(settings, credentials),
            store=store,
        )

    # ------------------------------------------------------------------
    # Single source
    # ------------------------------------------------------------------

    async def ingest_bytes(self, source: str, data: bytes) -> IngestionReport:
        """
        Extract, chunk, embed and store one document.

        Raises:
            ExtractionError:    the bytes are not a readable PDF.
            CredentialError:    the endpoint rejected every configured key.
            ConfigurationError: required settings are missing.
        """
        t0 = time.monotonic()
        report = IngestionReport(source=source)

        extraction = await self._extractor.extract(data)
        if extraction.is_empty:
            report.skipped_reason = "no extractable text"
            logger.warning("Ingestion | source=%s empty text, skipping", source)
            return self._finish(report, t0)

        pieces = self._chunker.split(extraction.full_text)
        report.chunks_total = len(pieces)
        if not pieces:
            report.skipped_reason = "no chunks produced"
            logger.warning("Ingestion | source=%s produced no chunks, skipping", source)
            return self._finish(report, t0)

        logger.info(
            "Ingestion | source=%s pages=%d chunks=%d",
            source, extraction.page_count, len(pieces),
        )

        for index, content in enumerate(pieces):
            try:
                embedding = await self._embedder.embed(content)
                await self._store.insert(DocumentChunk(
                    content=content,
                    source=source,
                    chunk_index=index,
                    embedding=embedding,
                ))
            except (CredentialError, ConfigurationError):
                # fatal for the whole run
                logger.error(
                    "Ingestion | source=%s chunk_index=%d no usable credential, aborting",
                    source, index,
                )
                raise
            except Exception as exc:
                # unit-local: one chunk never aborts the document
                report.failed_chunks.append(index)
                logger.error(
                    "Ingestion | source=%s chunk_index=%d failed: %s",
                    source, index, exc,
                )
                continue

            report.chunks_stored += 1
            if report.chunks_stored % _PROGRESS_EVERY == 0:
                logger.info(
                    "Ingestion | source=%s progress=%d/%d",
                    source, index + 1, len(pieces),
                )

        return self._finish(report, t0)

    async def ingest_file(self, path: str | Path) -> IngestionReport:
        """
        Ingest one file; the stored source identifier is its base name.

        Raises:
            IngestionError: the file is missing, unreadable or not a PDF.
        """
        path = Path(path)
        if not path.is_file():
            raise IngestionError(f"File not found: {path}")

        try:
            data = path.read_bytes()
        except OSError as exc:
            raise IngestionError(f"Could not read {path}: {exc}") from exc

        logger.info("Ingestion | processing file=%s bytes=%d", path.name, len(data))
        try:
            return await self.ingest_bytes(path.name, data)
        except ExtractionError as exc:
            raise IngestionError(f"Could not extract text from {path.name}: {exc.message}") from exc

    # ------------------------------------------------------------------
    # Batch
    # ------------------------------------------------------------------

    async def ingest_directory(
        self,
        directory:  str | Path,
        extensions: Sequence[str] = DEFAULT_EXTENSIONS,
    ) -> BatchReport:
        """
        Ingest every eligible file in `directory`, sorted by name, one at a time.
        A file that cannot be read or parsed is recorded as skipped.

        Raises:
            IngestionError:  `directory` does not exist.
            CredentialError: the endpoint rejected every configured key; files
                             after the current one are not attempted.
        """
        directory = Path(directory)
        if not directory.is_dir():
            raise IngestionError(f"Directory not found: {directory}")

        wanted = {e.lower() for e in extensions}
        files  = sorted(
            p for p in directory.iterdir()
            if p.is_file() and p.suffix.lower() in wanted
        )
        logger.info(
            "Ingestion | batch directory=%s files=%d: %s",
            directory, len(files), ", ".join(p.name for p in files),
        )

        batch = BatchReport(directory=str(directory))
        for path in files:
            try:
                report = await self.ingest_file(path)
            except IngestionError as exc:
                logger.error("Ingestion | file=%s skipped: %s", path.name, exc.message)
                report = IngestionReport(source=path.name, skipped_reason=exc.message)
            batch.reports.append(report)

        logger.info(
            "Ingestion | batch done files=%d skipped=%d chunks_stored=%d chunks_failed=%d",
            batch.files_total, batch.files_skipped, batch.chunks_stored, batch.chunks_failed,
        )
        return batch

    @staticmethod
    def _finish(report: IngestionReport, t0: float) -> IngestionReport:
        report.elapsed_ms = (time.monotonic() - t0) * 1000
        logger.info(
            "Ingestion | source=%s stored=%d/%d failed=%d skipped=%s elapsed_ms=%.0f",
            report.source, report.chunks_stored, report.chunks_total,
            len(report.failed_chunks), report.skipped_reason or "-", report.elapsed_ms,
        )
        return report


# ---------------------------------------------------------------------------
# Scheme table
# ---------------------------------------------------------------------------

class SchemeIngestionService:
    """Loads the scheme CSV into the structured table. No embeddings."""

    def __init__(self, store: SchemeStore, batch_size: int = 50) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        self._store      = store
        self._batch_size = batch_size

    @classmethod
    def from_settings(cls, settings, store: SchemeStore) -> "SchemeIngestionService":
        return cls(store=store, batch_size=settings.scheme_insert_batch_size)

    async def ingest_csv(self, path: str | Path) -> SchemeIngestionReport:
        """
        Raises:
            IngestionError: the file is missing or not a parseable CSV.
        """
        path = Path(path)
        if not path.is_file():
            raise IngestionError(f"File not found: {path}")
        try:
            records = parse_scheme_csv(path.read_bytes())
        except (OSError, ExtractionError) as exc:
            raise IngestionError(f"Could not read scheme CSV {path.name}: {exc}") from exc

        return await self.ingest_records(records, source=path.name)

    async def ingest_records(
        self,
        records: Sequence[SchemeRecord],
        source:  str = "records",
    ) -> SchemeIngestionReport:
        report = SchemeIngestionReport(source=source, records_total=len(records))
        logger.info("SchemeIngestion | source=%s records=%d", source, len(records))

        for start in range(0, len(records), self._batch_size):
            end   = min(start + self._batch_size, len(records))
            batch = records[start:end]
            try:
                report.records_inserted += await self._store.insert_many(batch)
            except StoreError as exc:
                report.failed_batches.append((start, end))
                logger.error("SchemeIngestion | batch rows=%d-%d failed: %s", start, end, exc.message)
                continue
            logger.info("SchemeIngestion | inserted rows=%d-%d", start, end)

        logger.info(
            "SchemeIngestion | done inserted=%d/%d failed_batches=%d",
            report.records_inserted, report.records_total, len(report.failed_batches),
        )
        return report


# ---------------------------------------------------------------------------
# Corpus management
# ---------------------------------------------------------------------------

class CorpusManager:
    """Operator view of the chunk store: counts per source, targeted and full deletes."""

    def __init__(self, chunk_store: ChunkStore, scheme_store: SchemeStore | None = None) -> None:
        self._chunks  = chunk_store
        self._schemes = scheme_store

    async def list_sources(self) -> dict[str, int]:
        return await self._chunks.count_by_source()

    async def delete_source(self, source: str) -> int:
        deleted = await self._chunks.delete_by_source(source)
        logger.info("Corpus | deleted source=%s chunks=%d", source, deleted)
        return deleted

    async def delete_all(self) -> int:
        deleted = await self._chunks.delete_all()
        logger.warning("Corpus | deleted ALL chunks=%d", deleted)
        return deleted

    async def scheme_count(self) -> int | None:
        if self._schemes is None:
            return None
        return await self._schemes.count()
