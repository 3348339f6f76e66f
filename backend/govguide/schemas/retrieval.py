"""
Retrieval — Pydantic Schemas

Covers the data that flows through ingestion and query time:
  - DocumentChunk    one embedded segment of a source document
  - ScoredChunk      a chunk returned by similarity search
  - SchemeRecord     one row of the government scheme table
  - ChatMessage      one {role, content} turn of conversation history
  - RetrievalContext the per-query aggregate handed to the prompt builder

Scheme columns keep the names of the source CSV (Scheme_Name, Category, …)
as aliases so rows round-trip between the CSV, the table and the model.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator


# ---------------------------------------------------------------------------
# Document chunks
# ---------------------------------------------------------------------------

class DocumentChunk(BaseModel):
    """Immutable once stored; chunk_index is contiguous per source from 0."""
    model_config = ConfigDict(frozen=True)

    content:     str
    source:      str
    chunk_index: int = Field(..., ge=0)
    embedding:   list[float] = Field(..., min_length=1)

    @property
    def metadata(self) -> dict:
        return {"source": self.source, "chunk_index": self.chunk_index}


class ScoredChunk(BaseModel):
    id:          int | str | None = None
    content:     str
    source:      str = "unknown"
    chunk_index: int | None = None
    similarity:  float = Field(..., description="Cosine similarity, higher is closer")


# ---------------------------------------------------------------------------
# Scheme records
# ---------------------------------------------------------------------------

SCHEME_COLUMNS: tuple[str, ...] = (
    "Scheme_Name",
    "Category",
    "Target_Beneficiaries",
    "Eligibility_Criteria",
    "Benefits_Provided",
    "Loan_Amount_or_Subsidy",
    "Interest_Rate",
    "Documents_Required",
    "Application_Process",
    "Application_Mode",
    "Official_Website_Link",
    "State_or_Central",
    "State_Name",
)

# Columns matched by the keyword branch of hybrid retrieval
SCHEME_SEARCH_COLUMNS: tuple[str, ...] = ("Scheme_Name", "Target_Beneficiaries", "Category")


class SchemeRecord(BaseModel):
    """Read-mostly reference row; never embedded."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    scheme_name:           str = Field("", alias="Scheme_Name")
    category:              str = Field("", alias="Category")
    target_beneficiaries:  str = Field("", alias="Target_Beneficiaries")
    eligibility_criteria:  str = Field("", alias="Eligibility_Criteria")
    benefits_provided:     str = Field("", alias="Benefits_Provided")
    loan_amount_or_subsidy: str = Field("", alias="Loan_Amount_or_Subsidy")
    interest_rate:         str = Field("", alias="Interest_Rate")
    documents_required:    str = Field("", alias="Documents_Required")
    application_process:   str = Field("", alias="Application_Process")
    application_mode:      str = Field("", alias="Application_Mode")
    official_website_link: str = Field("", alias="Official_Website_Link")
    state_or_central:      str = Field("", alias="State_or_Central")
    state_name:            str = Field("", alias="State_Name")

    @field_validator("*", mode="before")
    @classmethod
    def _none_to_empty(cls, value):
        if value is None:
            return ""
        return str(value).strip()

    def to_row(self) -> dict[str, str]:
        """Column-name keyed dict, as stored in the schemes table."""
        return self.model_dump(by_alias=True)


# ---------------------------------------------------------------------------
# Conversation
# ---------------------------------------------------------------------------

class ChatMessage(BaseModel):
    role:    Literal["system", "user", "assistant"]
    content: str


# ---------------------------------------------------------------------------
# Query context
# ---------------------------------------------------------------------------

class RetrievalContext(BaseModel):
    """
    Ephemeral, never persisted. The two lists are independent: no ranking
    is defined between a chunk and a scheme row.
    """
    query:       str = ""
    chunks:      list[ScoredChunk]  = Field(default_factory=list)
    scheme_rows: list[SchemeRecord] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.chunks and not self.scheme_rows
