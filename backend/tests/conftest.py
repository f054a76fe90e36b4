"""
Shared fixtures: file-backed SQLite user store, in-memory Qdrant,
deterministic fake embeddings and a context-echo chat model.
"""

import os

os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")
os.environ.setdefault("MAX_UPLOAD_BYTES", "65536")
os.environ.setdefault("CORS_ORIGINS", "http://testserver")

import pytest
from fastapi.testclient import TestClient
from langchain_core.embeddings import DeterministicFakeEmbedding, Embeddings
from langchain_core.messages import AIMessage
from qdrant_client import AsyncQdrantClient
from tenacity import wait_none

from ragdesk.config import get_settings
from ragdesk.core.database import create_db_engine, create_session_factory, init_db
from ragdesk.features.auth.repository import SqlUserRepository
from ragdesk.features.chat.service import RagService
from ragdesk.features.knowledge.embedding import Embedder
from ragdesk.features.knowledge.ingestion import IngestionService
from ragdesk.features.knowledge.vector_index import VectorIndex
from ragdesk.main import AppServices, create_app

DIM = 32
COLLECTION = "test_docs"


class ProviderError(Exception):
    """Stands in for an SDK error carrying an HTTP status."""

    def __init__(self, status_code: int):
        self.status_code = status_code
        super().__init__(f"provider answered {status_code}")


class CountingEmbeddings(Embeddings):
    """Deterministic embeddings that count calls and can fail on cue.

    `failures` is consumed one entry per call: an exception is raised,
    None means succeed.
    """

    def __init__(self, size: int = DIM, failures=None, fail_from_call: int | None = None, error=None):
        self.inner = DeterministicFakeEmbedding(size=size)
        self.calls = 0
        self.failures = list(failures or [])
        self.fail_from_call = fail_from_call
        self.error = error

    def _next(self, text: str) -> list[float]:
        self.calls += 1
        if self.failures:
            failure = self.failures.pop(0)
            if failure is not None:
                raise failure
        if self.fail_from_call is not None and self.calls >= self.fail_from_call:
            raise self.error
        return self.inner.embed_query(text)

    def embed_documents(self, texts: list[str]) -> list[list[float]]:
        return [self._next(t) for t in texts]

    def embed_query(self, text: str) -> list[float]:
        return self._next(text)

    async def aembed_query(self, text: str) -> list[float]:
        return self._next(text)


class ContextEchoLLM:
    """Chat model double: replies with the prompt's context, or the fallback if it is empty."""

    def __init__(self, fallback: str):
        self.fallback = fallback
        self.calls = []

    async def ainvoke(self, messages):
        self.calls.append(messages)
        system = messages[0].content
        context = system.split("## Context\n", 1)[1].strip()
        return AIMessage(content=context or self.fallback)


class BrokenLLM:
    async def ainvoke(self, messages):
        raise ConnectionError("model endpoint down")


@pytest.fixture
def settings():
    return get_settings()


@pytest.fixture
def session_factory(tmp_path):
    engine = create_db_engine(f"sqlite:///{tmp_path / 'users.db'}", pool_size=5, pool_timeout=5)
    init_db(engine)
    yield create_session_factory(engine)
    engine.dispose()


@pytest.fixture
def user_repo(session_factory):
    return SqlUserRepository(session_factory)


@pytest.fixture
def vector_index():
    return VectorIndex(AsyncQdrantClient(location=":memory:"), COLLECTION, DIM)


@pytest.fixture
def fake_embeddings():
    return CountingEmbeddings()


@pytest.fixture
def embedder(fake_embeddings):
    return Embedder(fake_embeddings, dimensions=DIM, max_attempts=3, wait=wait_none())


@pytest.fixture
def llm(settings):
    return ContextEchoLLM(settings.FALLBACK_ANSWER)


@pytest.fixture
def ingestion(embedder, vector_index):
    return IngestionService(embedder, vector_index, chunk_size=100, chunk_overlap=20)


@pytest.fixture
def rag(embedder, vector_index, llm, settings):
    return RagService(embedder, vector_index, llm, fallback_answer=settings.FALLBACK_ANSWER, top_k=4)


@pytest.fixture
def services(user_repo, vector_index, ingestion, rag):
    return AppServices(users=user_repo, vector_index=vector_index, ingestion=ingestion, rag=rag)


@pytest.fixture
def client(services):
    app = create_app(services_factory=lambda: services)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def registered(client):
    """A registered user: (token, user dict)."""
    resp = client.post(
        "/api/auth/register",
        json={"name": "Alice", "email": "a@x.com", "password": "pw"},
    )
    assert resp.status_code == 200
    body = resp.json()
    return body["token"], body["user"]


@pytest.fixture
def auth_headers(registered):
    token, _ = registered
    return {"Authorization": f"Bearer {token}"}


def make_pdf(text: str) -> bytes:
    """Build a one-page PDF showing `text` in Helvetica."""
    stream = f"BT /F1 12 Tf 72 720 Td ({text}) Tj ET".encode("latin-1")
    objects = [
        b"<< /Type /Catalog /Pages 2 0 R >>",
        b"<< /Type /Pages /Kids [3 0 R] /Count 1 >>",
        b"<< /Type /Page /Parent 2 0 R /MediaBox [0 0 612 792] "
        b"/Resources << /Font << /F1 4 0 R >> >> /Contents 5 0 R >>",
        b"<< /Type /Font /Subtype /Type1 /BaseFont /Helvetica >>",
        b"<< /Length %d >>\nstream\n" % len(stream) + stream + b"\nendstream",
    ]
    out = bytearray(b"%PDF-1.4\n")
    offsets = []
    for number, body in enumerate(objects, start=1):
        offsets.append(len(out))
        out += b"%d 0 obj\n" % number + body + b"\nendobj\n"
    xref_at = len(out)
    out += b"xref\n0 %d\n" % (len(objects) + 1)
    out += b"0000000000 65535 f \n"
    for offset in offsets:
        out += b"%010d 00000 n \n" % offset
    out += b"trailer\n<< /Size %d /Root 1 0 R >>\nstartxref\n%d\n%%%%EOF\n" % (len(objects) + 1, xref_at)
    return bytes(out)


@pytest.fixture
def pdf_factory():
    return make_pdf
