"""
Tests for per-document re-indexing.
"""

import pytest

from services.rag_index.IndexWriter import EMBED_BATCH_SIZE, INSERT_BATCH_SIZE, IndexWriter
from shared.exceptions import EmbeddingError, StoreError


@pytest.fixture
def writer(helper_config, chunk_store):
    return IndexWriter(helper_config=helper_config, rag_client=chunk_store)


def _many_paragraphs(count: int) -> str:
    # each paragraph fills one 200 character chunk on its own
    return "\n\n".join(f"{i:04d} " + "w" * 190 for i in range(count))


class TestIndexWriter:
    """Tests for IndexWriter.do_reindex."""

    @pytest.mark.asyncio
    async def test_empty_document_is_noop(self, writer, chunk_store, embed_client, make_document):
        result = await writer.do_reindex("user-1", make_document("d1", content="   \n "), embed_client)

        assert result.chunk_count == 0
        assert chunk_store.calls == []
        assert embed_client.calls == []

    @pytest.mark.asyncio
    async def test_folder_is_noop(self, writer, chunk_store, embed_client, make_document):
        result = await writer.do_reindex("user-1", make_document("d1", content="text", is_folder=True), embed_client)

        assert result.chunk_count == 0
        assert chunk_store.calls == []

    @pytest.mark.asyncio
    async def test_writes_chunk_rows(self, writer, chunk_store, embed_client, make_document):
        document = make_document("d1", content="Body text.", title="Title", minutes=5)

        result = await writer.do_reindex("user-1", document, embed_client)

        assert result.chunk_count == 1
        assert chunk_store.calls == [("delete", "user-1", "d1"), ("insert", 1)]
        [row] = chunk_store.rows[("user-1", "d1")]
        assert row.content == "Title\n\nBody text."
        assert row.owner_scope == "persona-1"
        assert row.chunk_index == 0
        assert row.doc_updated_at == document.updated_at
        assert row.embedding == [float(len("Title\n\nBody text.")), 1.0, 0.0]

    @pytest.mark.asyncio
    async def test_batches_embeddings_and_inserts(self, writer, chunk_store, embed_client, make_document, monkeypatch):
        monkeypatch.setattr(writer, "chunk_size", 200)
        monkeypatch.setattr(writer, "chunk_overlap", 0)
        count = EMBED_BATCH_SIZE * 2 + 20

        result = await writer.do_reindex("user-1", make_document("d1", content=_many_paragraphs(count)), embed_client)

        assert result.chunk_count == count
        assert [len(batch) for batch in embed_client.calls] == [EMBED_BATCH_SIZE, EMBED_BATCH_SIZE, 20]
        assert chunk_store.insert_batches == [INSERT_BATCH_SIZE, count - INSERT_BATCH_SIZE]
        indices = [row.chunk_index for row in chunk_store.rows[("user-1", "d1")]]
        assert indices == list(range(count))

    @pytest.mark.asyncio
    async def test_reindex_is_idempotent(self, writer, chunk_store, embed_client, make_document):
        document = make_document("d1", content=_many_paragraphs(12))

        await writer.do_reindex("user-1", document, embed_client)
        first = [row.model_dump() for row in chunk_store.rows[("user-1", "d1")]]
        await writer.do_reindex("user-1", document, embed_client)
        second = [row.model_dump() for row in chunk_store.rows[("user-1", "d1")]]

        assert first == second

    @pytest.mark.asyncio
    async def test_embedding_failure_leaves_document_unindexed(self, writer, chunk_store, embed_client, make_document):
        await writer.do_reindex("user-1", make_document("d1", content="old version"), embed_client)
        embed_client.fail_on.add("new version")

        with pytest.raises(EmbeddingError):
            await writer.do_reindex("user-1", make_document("d1", content="new version", minutes=1), embed_client)

        assert ("user-1", "d1") not in chunk_store.rows

    @pytest.mark.asyncio
    async def test_store_failure_propagates(self, writer, chunk_store, embed_client, make_document):
        chunk_store.fail_insert_for.add("d1")

        with pytest.raises(StoreError):
            await writer.do_reindex("user-1", make_document("d1"), embed_client)

    @pytest.mark.asyncio
    async def test_chunk_settings_from_environment(self, helper_config, chunk_store, monkeypatch):
        monkeypatch.setenv("RAG_CHUNK_SIZE", "400")
        monkeypatch.setenv("RAG_CHUNK_OVERLAP", "40")

        writer = IndexWriter(helper_config=helper_config, rag_client=chunk_store)

        assert (writer.chunk_size, writer.chunk_overlap) == (400, 40)
