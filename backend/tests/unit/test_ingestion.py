"""
Unit Tests — Ingestion
══════════════════════
Document pipeline (extract → chunk → embed → store), scheme CSV loading and
corpus management, against the in-memory store.

All tests:
  • Use a FakeEmbedder instead of the model endpoint
  • Build PDFs in memory (make_pdf) or stub the extractor outright
  • Never touch PostgreSQL

Coverage targets:
  ✅ Chunks stored with contiguous chunk_index and base-name source
  ✅ Zero-text document → skipped, nothing embedded or stored
  ✅ One chunk failing (embed or write) → recorded, the rest still stored
  ✅ Rejected credentials → the run aborts after the first chunk
  ✅ Missing / corrupt single file → IngestionError
  ✅ Batch → sorted, filtered by extension, bad files skipped not fatal
  ✅ Scheme CSV → batched inserts, a failed batch does not stop the rest
  ✅ CorpusManager → counts, delete-by-source, wipe
"""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from govguide.core.errors import CredentialError, IngestionError, RateLimitExhaustedError, StoreError
from govguide.processing.chunking import Chunker
from govguide.processing.extractor import ExtractionResult, PdfTextExtractor
from govguide.schemas.retrieval import DocumentChunk, SchemeRecord
from govguide.services.ingestion import (
    CorpusManager,
    IngestionPipeline,
    SchemeIngestionService,
)
from govguide.store.memory import InMemoryChunkStore, InMemorySchemeStore
from tests.conftest import unit_vector

PAGES = [
    "alpha bravo charlie delta",
    "echo foxtrot golf hotel",
    "india juliet kilo lima",
]


# ─────────────────────────────────────────────────────────────────────────────
# Helpers
# ─────────────────────────────────────────────────────────────────────────────

class FakeEmbedder:
    """Returns a fixed vector; raises on the call numbers listed in fail_on."""

    def __init__(self, fail_on: set[int] = frozenset()) -> None:
        self.fail_on = fail_on
        self.texts: list[str] = []

    async def embed(self, text: str) -> list[float]:
        self.texts.append(text)
        if len(self.texts) - 1 in self.fail_on:
            raise RateLimitExhaustedError(5)
        return unit_vector(4)


class RejectedKeyEmbedder:
    """Every call fails as if both model keys were rejected."""

    def __init__(self) -> None:
        self.calls = 0

    async def embed(self, text: str) -> list[float]:
        self.calls += 1
        raise CredentialError()


class FlakyChunkStore(InMemoryChunkStore):
    """In-memory store whose insert fails for the listed chunk indexes."""

    def __init__(self, fail_indexes: set[int]) -> None:
        super().__init__()
        self.fail_indexes = fail_indexes

    async def insert(self, chunk: DocumentChunk) -> None:
        if chunk.chunk_index in self.fail_indexes:
            raise StoreError("connection reset")
        await super().insert(chunk)


def _stub_extractor(page_texts: list[str]) -> MagicMock:
    extractor = MagicMock(spec=PdfTextExtractor)
    extractor.extract = AsyncMock(return_value=ExtractionResult(page_texts=page_texts))
    return extractor


def _pipeline(store, embedder=None, extractor=None) -> IngestionPipeline:
    return IngestionPipeline(
        extractor=extractor or PdfTextExtractor(),
        chunker=Chunker(chunk_size=30, overlap=0),
        embedder=embedder or FakeEmbedder(),
        store=store,
    )


# ─────────────────────────────────────────────────────────────────────────────
# Single document
# ─────────────────────────────────────────────────────────────────────────────

@pytest.mark.unit
@pytest.mark.ingestion
class TestIngestBytes:

    async def test_chunks_stored_in_order(self, chunk_store):
        embedder = FakeEmbedder()
        pipeline = _pipeline(chunk_store, embedder, _stub_extractor(PAGES))

        report = await pipeline.ingest_bytes("pm-kisan.pdf", b"%PDF")

        stored = chunk_store.chunks("pm-kisan.pdf")
        assert [c.chunk_index for c in stored] == [0, 1, 2]
        assert [c.content for c in stored] == PAGES
        assert embedder.texts == PAGES
        assert report.chunks_total == report.chunks_stored == 3
        assert report.complete is True

    async def test_empty_text_is_skipped(self, chunk_store):
        embedder = FakeEmbedder()
        pipeline = _pipeline(chunk_store, embedder, _stub_extractor(["", "   "]))

        report = await pipeline.ingest_bytes("scanned.pdf", b"%PDF")

        assert report.skipped is True
        assert report.skipped_reason == "no extractable text"
        assert embedder.texts == []
        assert await chunk_store.count_by_source() == {}

    async def test_embedding_failure_is_chunk_local(self, chunk_store):
        pipeline = _pipeline(chunk_store, FakeEmbedder(fail_on={1}), _stub_extractor(PAGES))

        report = await pipeline.ingest_bytes("mudra.pdf", b"%PDF")

        assert [c.chunk_index for c in chunk_store.chunks("mudra.pdf")] == [0, 2]
        assert report.failed_chunks == [1]
        assert report.chunks_stored == 2
        assert report.complete is False

    async def test_store_failure_is_chunk_local(self):
        store    = FlakyChunkStore(fail_indexes={0})
        pipeline = _pipeline(store, FakeEmbedder(), _stub_extractor(PAGES))

        report = await pipeline.ingest_bytes("mudra.pdf", b"%PDF")

        assert report.failed_chunks == [0]
        assert [c.chunk_index for c in store.chunks()] == [1, 2]

    async def test_rejected_credentials_abort_the_document(self, chunk_store):
        embedder = RejectedKeyEmbedder()
        pipeline = _pipeline(chunk_store, embedder, _stub_extractor(PAGES))

        with pytest.raises(CredentialError):
            await pipeline.ingest_bytes("x.pdf", b"%PDF")

        assert embedder.calls == 1
        assert await chunk_store.count_by_source() == {}

    async def test_reingest_appends(self, chunk_store):
        pipeline = _pipeline(chunk_store, FakeEmbedder(), _stub_extractor(PAGES))

        await pipeline.ingest_bytes("pm-kisan.pdf", b"%PDF")
        await pipeline.ingest_bytes("pm-kisan.pdf", b"%PDF")

        assert await chunk_store.count_by_source() == {"pm-kisan.pdf": 6}

    def test_from_settings(self, test_settings, credentials, chunk_store):
        pipeline = IngestionPipeline.from_settings(test_settings, credentials, chunk_store)
        assert isinstance(pipeline, IngestionPipeline)


@pytest.mark.unit
@pytest.mark.ingestion
class TestIngestFile:

    async def test_source_is_base_name(self, tmp_path, make_pdf, chunk_store):
        path = tmp_path / "pm-kisan.pdf"
        path.write_bytes(make_pdf(PAGES))

        report = await _pipeline(chunk_store).ingest_file(path)

        assert report.source == "pm-kisan.pdf"
        assert report.chunks_stored == 3
        assert list((await chunk_store.count_by_source()).keys()) == ["pm-kisan.pdf"]

    async def test_link_markers_reach_the_store(self, tmp_path, make_pdf, chunk_store):
        path = tmp_path / "links.pdf"
        path.write_bytes(make_pdf(["Apply online"], links={0: ["https://pmkisan.gov.in/"]}))

        pipeline = IngestionPipeline(
            extractor=PdfTextExtractor(),
            chunker=Chunker(),
            embedder=FakeEmbedder(),
            store=chunk_store,
        )
        await pipeline.ingest_file(path)

        assert "[Link: https://pmkisan.gov.in/]" in chunk_store.chunks("links.pdf")[0].content

    async def test_missing_file_raises(self, tmp_path, chunk_store):
        with pytest.raises(IngestionError, match="File not found"):
            await _pipeline(chunk_store).ingest_file(tmp_path / "absent.pdf")

    async def test_corrupt_file_raises(self, tmp_path, chunk_store):
        path = tmp_path / "broken.pdf"
        path.write_bytes(b"not a pdf at all")

        with pytest.raises(IngestionError, match="Could not extract text from broken.pdf"):
            await _pipeline(chunk_store).ingest_file(path)
        assert await chunk_store.count_by_source() == {}


@pytest.mark.unit
@pytest.mark.ingestion
class TestIngestDirectory:

    async def test_bad_files_are_skipped_not_fatal(self, tmp_path, make_pdf, chunk_store):
        (tmp_path / "b-good.pdf").write_bytes(make_pdf(PAGES))
        (tmp_path / "a-broken.pdf").write_bytes(b"not a pdf at all")
        (tmp_path / "c-blank.pdf").write_bytes(make_pdf([""]))
        (tmp_path / "notes.txt").write_text("ignored")

        batch = await _pipeline(chunk_store).ingest_directory(tmp_path)

        assert [r.source for r in batch.reports] == ["a-broken.pdf", "b-good.pdf", "c-blank.pdf"]
        assert batch.files_total == 3
        assert batch.files_skipped == 2
        assert batch.chunks_stored == 3
        assert batch.reports[0].skipped_reason.startswith("Could not extract text")
        assert batch.reports[2].skipped_reason == "no extractable text"
        assert await chunk_store.count_by_source() == {"b-good.pdf": 3}

    async def test_extension_filter(self, tmp_path, make_pdf, chunk_store):
        (tmp_path / "guide.PDF").write_bytes(make_pdf(PAGES))

        batch = await _pipeline(chunk_store).ingest_directory(tmp_path, extensions=(".pdf",))

        assert [r.source for r in batch.reports] == ["guide.PDF"]

    async def test_chunk_failures_are_totalled(self, tmp_path, make_pdf, chunk_store):
        (tmp_path / "one.pdf").write_bytes(make_pdf(PAGES))
        pipeline = _pipeline(chunk_store, FakeEmbedder(fail_on={0}))

        batch = await pipeline.ingest_directory(tmp_path)

        assert batch.chunks_failed == 1
        assert batch.chunks_stored == 2

    async def test_rejected_credentials_abort_the_batch(self, tmp_path, make_pdf, chunk_store):
        (tmp_path / "a.pdf").write_bytes(make_pdf(PAGES))
        (tmp_path / "b.pdf").write_bytes(make_pdf(PAGES))
        embedder = RejectedKeyEmbedder()

        with pytest.raises(CredentialError):
            await _pipeline(chunk_store, embedder).ingest_directory(tmp_path)

        assert embedder.calls == 1

    async def test_missing_directory_raises(self, tmp_path, chunk_store):
        with pytest.raises(IngestionError, match="Directory not found"):
            await _pipeline(chunk_store).ingest_directory(tmp_path / "nope")


# ─────────────────────────────────────────────────────────────────────────────
# Scheme table
# ─────────────────────────────────────────────────────────────────────────────

class FlakySchemeStore(InMemorySchemeStore):
    """Fails the N-th insert_many call (0-based)."""

    def __init__(self, fail_call: int) -> None:
        super().__init__()
        self.fail_call = fail_call
        self.calls = 0

    async def insert_many(self, records):
        call, self.calls = self.calls, self.calls + 1
        if call == self.fail_call:
            raise StoreError("statement timeout")
        return await super().insert_many(records)


def _records(n: int) -> list[SchemeRecord]:
    return [SchemeRecord(Scheme_Name=f"Scheme {i}", Category="Agriculture") for i in range(n)]


@pytest.mark.unit
@pytest.mark.ingestion
class TestSchemeIngestion:

    async def test_records_inserted_in_batches(self):
        store = InMemorySchemeStore()
        report = await SchemeIngestionService(store, batch_size=2).ingest_records(_records(5))

        assert report.records_total == 5
        assert report.records_inserted == 5
        assert report.failed_batches == []
        assert await store.count() == 5

    async def test_failed_batch_does_not_stop_the_rest(self):
        store = FlakySchemeStore(fail_call=1)
        report = await SchemeIngestionService(store, batch_size=2).ingest_records(_records(5))

        assert report.failed_batches == [(2, 4)]
        assert report.records_inserted == 3
        assert store.calls == 3

    async def test_ingest_csv(self, tmp_path):
        path = tmp_path / "schemes.csv"
        path.write_text(
            "Scheme_Name,Category,Target_Beneficiaries\n"
            "Kisan Credit Card,Agriculture,Farmers\n"
            "PMEGP,MSME,Youth\n",
            encoding="utf-8",
        )
        store = InMemorySchemeStore()

        report = await SchemeIngestionService(store).ingest_csv(path)

        assert report.source == "schemes.csv"
        assert report.records_inserted == 2
        assert [r.scheme_name for r in await store.search("farmer", 4)] == ["Kisan Credit Card"]

    async def test_missing_csv_raises(self, tmp_path):
        with pytest.raises(IngestionError):
            await SchemeIngestionService(InMemorySchemeStore()).ingest_csv(tmp_path / "absent.csv")

    async def test_empty_csv_raises(self, tmp_path):
        path = tmp_path / "empty.csv"
        path.write_bytes(b"")
        with pytest.raises(IngestionError, match="empty.csv"):
            await SchemeIngestionService(InMemorySchemeStore()).ingest_csv(path)

    def test_batch_size_must_be_positive(self):
        with pytest.raises(ValueError):
            SchemeIngestionService(InMemorySchemeStore(), batch_size=0)


# ─────────────────────────────────────────────────────────────────────────────
# Corpus management
# ─────────────────────────────────────────────────────────────────────────────

@pytest.mark.unit
@pytest.mark.ingestion
class TestCorpusManager:

    async def _seeded(self, chunk_store) -> InMemoryChunkStore:
        for source, n in (("pm-kisan.pdf", 3), ("mudra.pdf", 2)):
            for i in range(n):
                await chunk_store.insert(DocumentChunk(
                    content=f"{source} {i}", source=source, chunk_index=i, embedding=unit_vector(4),
                ))
        return chunk_store

    async def test_list_and_delete_source(self, chunk_store, scheme_store):
        manager = CorpusManager(await self._seeded(chunk_store), scheme_store)

        assert await manager.list_sources() == {"mudra.pdf": 2, "pm-kisan.pdf": 3}
        assert await manager.delete_source("pm-kisan.pdf") == 3
        assert await manager.list_sources() == {"mudra.pdf": 2}
        assert await manager.scheme_count() == 2

    async def test_delete_all(self, chunk_store):
        manager = CorpusManager(await self._seeded(chunk_store))

        assert await manager.delete_all() == 5
        assert await manager.list_sources() == {}
        assert await manager.scheme_count() is None
