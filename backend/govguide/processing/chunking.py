"""
Chunker  —  Recursive character splitting with overlap
══════════════════════════════════════════════════════

Splits extracted document text on a preference-ordered list of separators:

    "\n\n"  paragraph break
    "\n"    line break
    ". "    sentence break
    " "     word break

Each segment aims to stay ≤ chunk_size characters, and consecutive segments
share up to `overlap` characters so a fact cut at a boundary still appears
whole in at least one chunk. There is no "" separator: a single
word longer than chunk_size is emitted whole, never truncated.

Defaults: 1000 characters, 200 overlap (characters, not tokens).
"""

from __future__ import annotations

import logging
from typing import Sequence

from langchain_text_splitters import RecursiveCharacterTextSplitter

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE    = 1000
DEFAULT_CHUNK_OVERLAP = 200

SEPARATORS: tuple[str, ...] = ("\n\n", "\n", ". ", " ")


class Chunker:
    """
    Stateless; split() is a pure function of its input.

    Usage:
        chunker = Chunker(chunk_size=1000, overlap=200)
        pieces  = chunker.split(full_text)
    """

    def __init__(
        self,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        overlap:    int = DEFAULT_CHUNK_OVERLAP,
        separators: Sequence[str] = SEPARATORS,
    ) -> None:
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        if overlap < 0 or overlap >= chunk_size:
            raise ValueError("overlap must be in [0, chunk_size)")
        self._chunk_size = chunk_size
        self._overlap    = overlap
        self._splitter   = RecursiveCharacterTextSplitter(
            chunk_size=chunk_size,
            chunk_overlap=overlap,
            length_function=len,
            separators=list(separators),
            keep_separator="end",
            strip_whitespace=True,
        )

    @classmethod
    def from_settings(cls, settings) -> "Chunker":
        return cls(chunk_size=settings.chunk_size, overlap=settings.chunk_overlap)

    @property
    def chunk_size(self) -> int:
        return self._chunk_size

    @property
    def overlap(self) -> int:
        return self._overlap

    def split(self, full_text: str) -> list[str]:
        """
        Return the ordered chunks of `full_text`.

        Whitespace-only input yields []; callers must skip such documents
        rather than store vacuous embeddings.
        """
        if not full_text or not full_text.strip():
            return []

        chunks = [c.strip() for c in self._splitter.split_text(full_text) if c.strip()]

        logger.debug(
            "Chunker | chars=%d chunks=%d avg_chars=%.0f",
            len(full_text), len(chunks),
            sum(len(c) for c in chunks) / max(1, len(chunks)),
        )
        return chunks


def split(full_text: str, chunk_size: int = DEFAULT_CHUNK_SIZE, overlap: int = DEFAULT_CHUNK_OVERLAP) -> list[str]:
    """Functional form of Chunker.split()."""
    return Chunker(chunk_size=chunk_size, overlap=overlap).split(full_text)
