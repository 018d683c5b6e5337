"""
Tests for the HTTP API.
"""

import logging

import pytest
from fastapi.testclient import TestClient

from server.api_server import app
from services.rag_index.IndexWriter import IndexWriter
from services.rag_index.Retriever import Retriever
from services.rag_index.SyncCoordinator import IncrementalSyncCoordinator
from shared.exceptions import StoreError
from shared.models.document import ChunkMatch

HEADERS = {"X-Api-Key": "secret"}


@pytest.fixture
def api(monkeypatch, helper_config, document_store, state_store, chunk_store, embed_client, make_document):
    monkeypatch.setenv("APP_API_KEY", "secret")
    document_store.personas["user-1"] = ["persona-1"]
    document_store.documents = [make_document("d1"), make_document("d2", minutes=1)]

    app.state.logging = logging.getLogger("rag_index.tests")
    app.state.helper_config = helper_config
    app.state.embed_available = True
    app.state.sync_coordinator = IncrementalSyncCoordinator(
        helper_config=helper_config,
        dms_client=document_store,
        state_client=state_store,
        index_writer=IndexWriter(helper_config=helper_config, rag_client=chunk_store),
        embed_client=embed_client,
    )
    app.state.retriever = Retriever(
        helper_config=helper_config,
        rag_client=chunk_store,
        dms_client=document_store,
        embed_client=embed_client,
    )
    # no context manager: the lifespan (real backends) is not started
    return TestClient(app)


class TestApiServer:
    """Tests for the index and query routes."""

    def test_healthz(self, api):
        response = api.get("/healthz")

        assert response.status_code == 200
        assert response.json()["status"] == "ok"
        assert response.json()["embedding_available"] is True

    def test_requires_api_key(self, api):
        assert api.post("/index", json={"user_id": "user-1"}).status_code == 401
        assert api.post("/index", json={"user_id": "user-1"}, headers={"X-Api-Key": "wrong"}).status_code == 401

    def test_index_returns_stats(self, api, state_store):
        response = api.post("/index", json={"user_id": "user-1"}, headers=HEADERS)

        assert response.status_code == 200
        body = response.json()
        assert (body["docs_fetched"], body["docs_indexed"], body["chunks_indexed"]) == (2, 2, 2)
        assert body["indexed_doc_id"] == "d2"
        assert state_store.watermarks["user-1"].last_indexed_doc_id == "d2"

    def test_index_failure_reports_partial_stats(self, api, embed_client, document_store, make_document):
        document_store.documents[1] = make_document("d2", minutes=1, content="poison")
        embed_client.fail_on.add("poison")

        response = api.post("/index", json={"user_id": "user-1"}, headers=HEADERS)

        assert response.status_code == 502
        assert response.json()["stats"]["docs_indexed"] == 1
        assert response.json()["stats"]["indexed_doc_id"] == "d1"

    def test_index_store_failure(self, api, state_store):
        state_store.fail_read = True

        response = api.post("/index", json={"user_id": "user-1"}, headers=HEADERS)

        assert response.status_code == 502

    def test_index_in_background(self, api, state_store):
        response = api.post("/index/background", json={"user_id": "user-1"}, headers=HEADERS)

        assert response.status_code == 202
        assert response.json()["status"] == "accepted"
        # TestClient runs background tasks before returning
        assert state_store.watermarks["user-1"].last_indexed_doc_id == "d2"

    def test_query_returns_ranked_documents(self, api, chunk_store):
        chunk_store.matches = [ChunkMatch(doc_id="d2", score=0.9), ChunkMatch(doc_id="d1", score=0.4)]

        response = api.post("/query", json={"query": "hello", "scopes": ["persona-1"]}, headers=HEADERS)

        assert response.status_code == 200
        body = response.json()
        assert body["total"] == 2
        assert [item["id"] for item in body["results"]] == ["d2", "d1"]

    def test_query_without_provider_is_unavailable(self, api, helper_config, chunk_store, document_store):
        app.state.retriever = Retriever(helper_config=helper_config, rag_client=chunk_store, dms_client=document_store, embed_client=None)

        response = api.post("/query", json={"query": "hello", "scopes": ["persona-1"]}, headers=HEADERS)

        assert response.status_code == 503

    def test_query_backend_failure(self, api, chunk_store):
        async def failing_search(query_vector, match_count, scopes):
            raise StoreError("search failed", status_code=500)

        chunk_store.do_similarity_search = failing_search

        response = api.post("/query", json={"query": "hello", "scopes": ["persona-1"]}, headers=HEADERS)

        assert response.status_code == 502
