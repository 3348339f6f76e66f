"""
Root conftest.py — Shared fixtures for ALL tests (unit + integration)

Fixture hierarchy:
  function-scoped : sleeps, fake_openai, credentials, chunk_store, scheme_store,
                    make_pdf, farmer_schemes, app_client

Environment strategy:
  - STORE_BACKEND=memory: no PostgreSQL needed.
  - The OpenAI SDK client is replaced by FakeOpenAI, which builds one mock
    client per API key so tests can see which credential served each call.
  - Backoff sleeps are injected (SleepRecorder) and never actually wait.
  - PDFs are generated in memory with PyMuPDF.

How to run:
  pytest                          # all tests
  pytest -m unit                  # unit tests only (fast, no I/O)
  pytest -m integration           # HTTP API tests (ASGI in-process)
"""

from __future__ import annotations

import os
from typing import AsyncGenerator
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest
import pytest_asyncio

# ─────────────────────────────────────────────────────────────────────────────
# Patch settings BEFORE any app imports so modules read test config
# ─────────────────────────────────────────────────────────────────────────────

os.environ.setdefault("GITHUB_TOKEN",        "ghp-test-primary")
os.environ.setdefault("GITHUB_TOKEN_BACKUP", "ghp-test-backup")
os.environ.setdefault("STORE_BACKEND",       "memory")
os.environ.setdefault("APP_ENV",             "development")
os.environ.setdefault("DEBUG",               "false")

PRIMARY_KEY = "ghp-test-primary"
BACKUP_KEY  = "ghp-test-backup"

EMBEDDING_URL  = "https://models.inference.ai.azure.com/embeddings"
COMPLETION_URL = "https://models.inference.ai.azure.com/chat/completions"


# ─────────────────────────────────────────────────────────────────────────────
# Provider payloads and errors
# ─────────────────────────────────────────────────────────────────────────────

def unit_vector(dim: int, hot: int = 0) -> list[float]:
    """1.0 at index `hot`, zeros elsewhere."""
    vec = [0.0] * dim
    vec[hot] = 1.0
    return vec


def embedding_payload(vector: list[float]) -> dict:
    return {
        "object": "list",
        "data":   [{"object": "embedding", "index": 0, "embedding": vector}],
        "model":  "text-embedding-3-small",
    }


def completion_payload(content: str | None) -> dict:
    return {
        "id":      "chatcmpl-test",
        "model":   "gpt-4o-mini",
        "choices": [{
            "index":         0,
            "message":       {"role": "assistant", "content": content},
            "finish_reason": "stop",
        }],
    }


def provider_error(status: int, url: str = EMBEDDING_URL) -> Exception:
    """A real openai.APIStatusError subclass for the given HTTP status."""
    import openai

    response = httpx.Response(status, request=httpx.Request("POST", url))
    cls = {
        401: openai.AuthenticationError,
        403: openai.PermissionDeniedError,
        429: openai.RateLimitError,
        500: openai.InternalServerError,
    }.get(status, openai.APIStatusError)
    return cls(f"HTTP {status}", response=response, body=None)


# ─────────────────────────────────────────────────────────────────────────────
# Fakes
# ─────────────────────────────────────────────────────────────────────────────

class SleepRecorder:
    """Async stand-in for asyncio.sleep that records requested delays."""

    def __init__(self) -> None:
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


class FakeOpenAI:
    """
    Replaces openai.AsyncOpenAI. Every client it builds forwards to the two
    shared AsyncMocks below, adding the api_key it was built with:

        fake.embeddings_create(api_key=..., model=..., input=...)
        fake.completions_create(api_key=..., model=..., messages=..., ...)
    """

    def __init__(self) -> None:
        self.embeddings_create  = AsyncMock()
        self.completions_create = AsyncMock()
        self.keys: list[str] = []

    def __call__(self, api_key: str, **kwargs) -> MagicMock:
        self.keys.append(api_key)
        client = MagicMock()
        client.api_key = api_key

        async def _embed(**kw):
            return await self.embeddings_create(api_key=api_key, **kw)

        async def _complete(**kw):
            return await self.completions_create(api_key=api_key, **kw)

        client.embeddings.create       = _embed
        client.chat.completions.create = _complete
        return client


# ─────────────────────────────────────────────────────────────────────────────
# Fixtures: provider
# ─────────────────────────────────────────────────────────────────────────────

@pytest.fixture
def sleeps() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def fake_openai():
    fake = FakeOpenAI()
    with patch("openai.AsyncOpenAI", new=fake):
        yield fake


@pytest.fixture
def credentials():
    from govguide.llm.credentials import CredentialState
    return CredentialState(PRIMARY_KEY, BACKUP_KEY)


@pytest.fixture
def test_settings():
    """Settings built from the test environment, uncached."""
    from govguide.core.config import Settings
    return Settings()


# ─────────────────────────────────────────────────────────────────────────────
# Fixtures: stores
# ─────────────────────────────────────────────────────────────────────────────

@pytest.fixture
def chunk_store():
    from govguide.store.memory import InMemoryChunkStore
    return InMemoryChunkStore()


@pytest.fixture
def farmer_schemes():
    from govguide.schemas.retrieval import SchemeRecord
    return [
        SchemeRecord(
            Scheme_Name="Kisan Credit Card",
            Category="Agriculture",
            Target_Beneficiaries="Farmers",
            Eligibility_Criteria="Owner cultivators and tenant farmers",
            Benefits_Provided="Short-term crop loans",
            Application_Process="Apply at any commercial bank branch",
            Official_Website_Link="https://pmkisan.gov.in/",
        ),
        SchemeRecord(
            Scheme_Name="Stand-Up India",
            Category="Entrepreneurship",
            Target_Beneficiaries="SC/ST and women entrepreneurs",
            Benefits_Provided="Bank loans between 10 lakh and 1 crore",
            Official_Website_Link="https://www.standupmitra.in/",
        ),
    ]


@pytest.fixture
def scheme_store(farmer_schemes):
    from govguide.store.memory import InMemorySchemeStore
    return InMemorySchemeStore(farmer_schemes)


# ─────────────────────────────────────────────────────────────────────────────
# PDF factory
# ─────────────────────────────────────────────────────────────────────────────

@pytest.fixture
def make_pdf():
    """
    Factory fixture: build a PDF in memory.

    Usage:
        data = make_pdf(["page one text", "page two text"])
        data = make_pdf(["see link"], links={0: ["https://pmkisan.gov.in/"]})
        data = make_pdf([""])          # image-less blank page, no text layer
    """
    import fitz

    def _build(pages: list[str], links: dict[int, list[str]] | None = None) -> bytes:
        links = links or {}
        doc = fitz.open()
        for number, body in enumerate(pages):
            page = doc.new_page()
            if body:
                page.insert_text((72, 72), body, fontsize=11)
            for offset, uri in enumerate(links.get(number, [])):
                top = 100 + offset * 20
                page.insert_link({
                    "kind": fitz.LINK_URI,
                    "from": fitz.Rect(72, top, 300, top + 14),
                    "uri":  uri,
                })
        data = doc.tobytes()
        doc.close()
        return data

    return _build


# ─────────────────────────────────────────────────────────────────────────────
# FastAPI test client with orchestrator override
# ─────────────────────────────────────────────────────────────────────────────

@pytest.fixture
def mock_orchestrator():
    from govguide.rag.pipeline import ChatOrchestrator
    orchestrator = MagicMock(spec=ChatOrchestrator)
    orchestrator.answer = AsyncMock()
    return orchestrator


@pytest.fixture
def app_with_overrides(mock_orchestrator):
    """FastAPI app with the chat orchestrator replaced by a mock."""
    from govguide.api.v1.chat import get_orchestrator
    from govguide.main import app

    app.dependency_overrides[get_orchestrator] = lambda: mock_orchestrator
    yield app
    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def app_client(app_with_overrides) -> AsyncGenerator[httpx.AsyncClient, None]:
    """Async HTTP test client; httpx >= 0.28 needs ASGITransport explicitly."""
    transport = httpx.ASGITransport(app=app_with_overrides)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
