"""
Shared fixtures: configuration and in-memory stand-ins for the backends.
"""

import logging
from datetime import datetime, timedelta, timezone

import pytest

from shared.exceptions import EmbeddingError, StoreError
from shared.helper.HelperConfig import HelperConfig
from shared.models.document import ChunkMatch, ChunkRow, Document, SyncWatermark, private_scope

BASE_TIME = datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)

# environment keys read by the code under test, cleared for every test
ENV_KEYS = [
    "RAG_ENABLED", "EMBED_ENGINE", "EMBED_MODEL", "EMBED_DIMENSIONS",
    "EMBED_API_KEY", "EMBED_BASE_URL", "OPENROUTER_API_KEY", "OPENROUTER_BASE_URL",
    "LLM_GATEWAY_API_KEY", "LLM_GATEWAY_BASE_URL", "EMBED_OPENAI_REFERER", "EMBED_OPENAI_APP_TITLE",
    "RAG_CHUNK_SIZE", "RAG_CHUNK_OVERLAP", "RAG_ENGINE", "DMS_ENGINE", "STATE_ENGINE",
    "RAG_QDRANT_BASE_URL", "RAG_QDRANT_API_KEY", "RAG_QDRANT_COLLECTION",
    "DMS_POSTGREST_BASE_URL", "DMS_POSTGREST_API_KEY", "DMS_PAGE_SIZE",
    "STATE_POSTGREST_BASE_URL", "STATE_POSTGREST_API_KEY", "APP_API_KEY",
]


@pytest.fixture
def helper_config(monkeypatch):
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    return HelperConfig(logger=logging.getLogger("rag_index.tests"))


@pytest.fixture
def make_document():
    def _make(doc_id: str, minutes: int = 0, content: str = "Some content.", scope: str = "persona-1",
              title: str | None = None, is_folder: bool = False) -> Document:
        return Document(
            id=doc_id,
            owner_scope=scope,
            persona_id=None if scope.startswith("private:") else scope,
            title=title,
            content=content,
            updated_at=BASE_TIME + timedelta(minutes=minutes),
            is_folder=is_folder,
        )
    return _make


##########################################
################# FAKES ##################
##########################################

class FakeEmbedClient:
    """Deterministic embeddings: every text maps to [len(text), 1.0, 0.0]."""

    embed_dimensions = 3

    def __init__(self):
        self.calls: list[list[str]] = []
        self.fail_on: set[str] = set()

    async def do_embed(self, texts):
        texts = list(texts)
        self.calls.append(texts)
        for text in texts:
            if any(marker in text for marker in self.fail_on):
                raise EmbeddingError("embedding backend failed", status_code=500)
        return [[float(len(text)), 1.0, 0.0] for text in texts]


class FakeChunkStore:
    def __init__(self):
        self.rows: dict[tuple[str, str], list[ChunkRow]] = {}
        self.calls: list[tuple] = []
        self.insert_batches: list[int] = []
        self.matches: list[ChunkMatch] = []
        self.fail_insert_for: set[str] = set()

    async def do_delete_chunks(self, owner_user_id, doc_id):
        self.calls.append(("delete", owner_user_id, doc_id))
        self.rows.pop((owner_user_id, doc_id), None)

    async def do_insert_chunks(self, rows):
        if rows and rows[0].doc_id in self.fail_insert_for:
            raise StoreError("insert failed", status_code=500)
        self.calls.append(("insert", len(rows)))
        self.insert_batches.append(len(rows))
        for row in rows:
            self.rows.setdefault((row.owner_user_id, row.doc_id), []).append(row)

    async def do_similarity_search(self, query_vector, match_count, scopes):
        self.calls.append(("search", match_count, list(scopes)))
        return list(self.matches)


class FakeDocumentStore:
    def __init__(self):
        self.documents: list[Document] = []
        self.personas: dict[str, list[str]] = {}
        self.fetch_calls: list[dict] = []

    async def do_fetch_persona_ids(self, user_id):
        return list(self.personas.get(user_id, []))

    async def do_fetch_documents(self, user_id, persona_ids, updated_after=None):
        self.fetch_calls.append({"user_id": user_id, "persona_ids": persona_ids, "updated_after": updated_after})
        scopes = set(persona_ids) | {private_scope(user_id)}
        return [
            document for document in self.documents
            if document.owner_scope in scopes and (updated_after is None or document.updated_at >= updated_after)
        ]

    async def do_fetch_documents_by_ids(self, doc_ids, private_owners=None):
        wanted = set(doc_ids)
        return [document for document in self.documents if document.id in wanted]


class FakeStateStore:
    def __init__(self):
        self.watermarks: dict[str, SyncWatermark] = {}
        self.writes: list[tuple[str, SyncWatermark]] = []
        self.fail_read = False
        self.fail_write = False

    async def do_get_watermark(self, user_id):
        if self.fail_read:
            raise StoreError("state store unreachable")
        return self.watermarks.get(user_id)

    async def do_set_watermark(self, user_id, watermark):
        if self.fail_write:
            raise StoreError("state write failed", status_code=503)
        self.writes.append((user_id, watermark))
        self.watermarks[user_id] = watermark


@pytest.fixture
def embed_client():
    return FakeEmbedClient()


@pytest.fixture
def chunk_store():
    return FakeChunkStore()


@pytest.fixture
def document_store():
    return FakeDocumentStore()


@pytest.fixture
def state_store():
    return FakeStateStore()


@pytest.fixture
def base_time():
    return BASE_TIME
