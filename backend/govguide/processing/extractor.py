"""
PDF Text Extraction  —  PyMuPDF (fitz)
══════════════════════════════════════

Per page:
  1. Text lines in reading order, each kept as-is, joined with single spaces
  2. URI link annotations appended as inline markers so they survive
     chunking as retrievable text:

        <page text…>
        Referenced Links:  [Link: https://pmkisan.gov.in/]  [Link: …]

Pages are joined with "\n" into one document-level blob before chunking.

PyMuPDF reads the native text layer only; image-only pages come back empty.
A document that yields zero characters is reported by the caller as skipped,
not as a batch failure.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field

from govguide.core.errors import ExtractionError

logger = logging.getLogger(__name__)

LINK_SECTION_HEADER = "Referenced Links: "


def link_marker(url: str) -> str:
    return f" [Link: {url}] "


# ---------------------------------------------------------------------------
# Result dataclass
# ---------------------------------------------------------------------------

@dataclass
class ExtractionResult:
    """
    page_texts : per-page text, link markers already appended
    page_links : per-page URI annotations, in annotation order
    elapsed_ms : wall time of the parse
    """
    page_texts: list[str]
    page_links: list[list[str]] = field(default_factory=list)
    elapsed_ms: float = 0.0

    @property
    def full_text(self) -> str:
        return "\n".join(self.page_texts)

    @property
    def page_count(self) -> int:
        return len(self.page_texts)

    @property
    def total_chars(self) -> int:
        return len(self.full_text.strip())

    @property
    def is_empty(self) -> bool:
        return self.total_chars == 0


# ---------------------------------------------------------------------------
# Extractor
# ---------------------------------------------------------------------------

class PdfTextExtractor:
    """
    Stateless; accepts raw bytes (never a path) and is safe for concurrent use:
    fitz.open() returns an independent document per call.

    Usage:
        result = await PdfTextExtractor().extract(pdf_bytes)
        text   = result.full_text
    """

    async def extract(self, pdf_bytes: bytes) -> ExtractionResult:
        loop = asyncio.get_event_loop()
        t0 = time.monotonic()

        try:
            result = await loop.run_in_executor(None, self._extract_sync, pdf_bytes)
        except ExtractionError:
            raise
        except Exception as exc:
            raise ExtractionError(f"Could not parse PDF: {exc}") from exc

        result.elapsed_ms = (time.monotonic() - t0) * 1000
        logger.info(
            "PdfTextExtractor | pages=%d total_chars=%d links=%d elapsed_ms=%.0f",
            result.page_count, result.total_chars,
            sum(len(links) for links in result.page_links), result.elapsed_ms,
        )
        return result

    def _extract_sync(self, pdf_bytes: bytes) -> ExtractionResult:
        """Blocking extraction — runs in thread executor."""
        import fitz  # PyMuPDF

        if not pdf_bytes:
            raise ExtractionError("Empty PDF payload")

        page_texts: list[str]       = []
        page_links: list[list[str]] = []

        with fitz.open(stream=pdf_bytes, filetype="pdf") as doc:
            if doc.page_count == 0:
                raise ExtractionError("PDF has no pages")
            for page in doc:
                # one text line per item, reading order; spacing inside a line kept
                items = [line.strip() for line in page.get_text("text", sort=True).splitlines()]
                text  = " ".join(item for item in items if item)

                links = [
                    link["uri"]
                    for link in page.get_links()
                    if link.get("kind") == fitz.LINK_URI and link.get("uri")
                ]
                if links:
                    text += "\n" + LINK_SECTION_HEADER + "".join(link_marker(u) for u in links)

                page_texts.append(text)
                page_links.append(links)

        return ExtractionResult(page_texts=page_texts, page_links=page_links)
