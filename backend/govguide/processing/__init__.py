"""
Document Processing Package
════════════════════════════

  Text Extraction → Chunking → Embedding

Modules
───────
  extractor.py  PyMuPDF page text + link markers
  tabular.py    Scheme CSV → SchemeRecord rows
  chunking.py   Recursive character splitter (1000 / 200)
  embeddings.py One-text-at-a-time embedding client with pacing and backoff
"""

from govguide.processing.chunking import Chunker
from govguide.processing.embeddings import EmbeddingClient
from govguide.processing.extractor import ExtractionResult, PdfTextExtractor
from govguide.processing.tabular import parse_scheme_csv

__all__ = [
    "Chunker",
    "EmbeddingClient",
    "ExtractionResult",
    "PdfTextExtractor",
    "parse_scheme_csv",
]
