"""
SQLAlchemy ORM Models — Document chunks & Scheme records

These models map directly to the tables created in
migrations/001_govguide_schema.sql. SQLAlchemy 2.x mapped classes for full
async support; embeddings use the pgvector column type.

    documents   one row per embedded chunk
                metadata JSONB = {"source": <file basename>, "chunk_index": <int>}
    schemes     one row per government scheme, columns named as in the CSV

Similarity search does NOT go through the ORM: it calls the
match_documents(query_embedding, match_threshold, match_count) SQL function
shipped in the migration (see store/postgres.py).
"""

from __future__ import annotations

from datetime import datetime

from pgvector.sqlalchemy import Vector
from sqlalchemy import BigInteger, DateTime, Text, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

# Output size of text-embedding-3-small; must match EMBEDDING_DIMENSIONS
EMBEDDING_DIM = 1536


# ---------------------------------------------------------------------------
# Declarative base, shared across all models
# ---------------------------------------------------------------------------

class Base(DeclarativeBase):
    pass


# ---------------------------------------------------------------------------
# Document chunk model (table: documents)
# ---------------------------------------------------------------------------

class DocumentChunkRow(Base):
    """
    One embedded chunk of a source document.

    Rows are immutable once written. Re-ingesting a source appends new rows;
    callers delete by metadata->>'source' first when they want a replacement.
    """

    __tablename__ = "documents"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)

    content: Mapped[str] = mapped_column(Text, nullable=False)

    chunk_metadata: Mapped[dict] = mapped_column(
        "metadata",                 # PostgreSQL column name stays 'metadata'
        JSONB,
        nullable=False,
        default=dict,
        server_default="{}",
        comment='{"source": <file basename>, "chunk_index": <int>}',
    )

    embedding: Mapped[list[float]] = mapped_column(Vector(EMBEDDING_DIM), nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    @property
    def source(self) -> str:
        return self.chunk_metadata.get("source", "unknown")

    @property
    def chunk_index(self) -> int | None:
        return self.chunk_metadata.get("chunk_index")

    def __repr__(self) -> str:
        return (
            f"<DocumentChunkRow id={self.id} source={self.source!r} "
            f"chunk_index={self.chunk_index}>"
        )


# ---------------------------------------------------------------------------
# Scheme model (table: schemes)
# ---------------------------------------------------------------------------

class SchemeRow(Base):
    """
    Reference row loaded from the scheme CSV. Never embedded; retrieval uses
    ILIKE over Scheme_Name, Target_Beneficiaries and Category.
    """

    __tablename__ = "schemes"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)

    scheme_name:            Mapped[str | None] = mapped_column("Scheme_Name", Text)
    category:               Mapped[str | None] = mapped_column("Category", Text)
    target_beneficiaries:   Mapped[str | None] = mapped_column("Target_Beneficiaries", Text)
    eligibility_criteria:   Mapped[str | None] = mapped_column("Eligibility_Criteria", Text)
    benefits_provided:      Mapped[str | None] = mapped_column("Benefits_Provided", Text)
    loan_amount_or_subsidy: Mapped[str | None] = mapped_column("Loan_Amount_or_Subsidy", Text)
    interest_rate:          Mapped[str | None] = mapped_column("Interest_Rate", Text)
    documents_required:     Mapped[str | None] = mapped_column("Documents_Required", Text)
    application_process:    Mapped[str | None] = mapped_column("Application_Process", Text)
    application_mode:       Mapped[str | None] = mapped_column("Application_Mode", Text)
    official_website_link:  Mapped[str | None] = mapped_column("Official_Website_Link", Text)
    state_or_central:       Mapped[str | None] = mapped_column("State_or_Central", Text)
    state_name:             Mapped[str | None] = mapped_column("State_Name", Text)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    def __repr__(self) -> str:
        return f"<SchemeRow id={self.id} name={self.scheme_name!r}>"
