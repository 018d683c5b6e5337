"""Per-document re-indexing.

Replaces the full chunk set of one document: chunk the text, delete the
old chunks, embed the new ones in batches and insert them in batches.
"""

from shared.clients.embed.EmbedClientInterface import EmbedClientInterface
from shared.clients.rag.RAGClientInterface import RAGClientInterface
from shared.helper.HelperConfig import HelperConfig
from shared.models.document import ChunkRow, Document, IndexResult
from services.rag_index.chunking import DEFAULT_CHUNK_SIZE, DEFAULT_OVERLAP, split_text_into_chunks

EMBED_BATCH_SIZE = 96    # max texts per embedding request
INSERT_BATCH_SIZE = 200  # max rows per chunk store insert


class IndexWriter:
    """Rebuilds the chunks of single documents in the chunk store."""

    def __init__(self, helper_config: HelperConfig, rag_client: RAGClientInterface) -> None:
        self.logging = helper_config.get_logger()
        self._rag_client = rag_client
        self.chunk_size = helper_config.get_int_val("RAG_CHUNK_SIZE", default=DEFAULT_CHUNK_SIZE)
        self.chunk_overlap = helper_config.get_int_val("RAG_CHUNK_OVERLAP", default=DEFAULT_OVERLAP, minimum=0)

    ##########################################
    ############### CORE INDEX ###############
    ##########################################

    async def do_reindex(self, user_id: str, document: Document, embed_client: EmbedClientInterface) -> IndexResult:
        """Replace the chunks of a document in the index of a user.

        Empty documents and folders are skipped without touching the chunk store.
        The old chunks are deleted before the new ones are embedded; if embedding
        or inserting fails afterwards, the document stays unindexed until its next
        successful re-index.

        Args:
            user_id (str): The user whose index is written.
            document (Document): The document to index.
            embed_client (EmbedClientInterface): The embedding provider.

        Returns:
            IndexResult: Number of chunks written.

        Raises:
            EmbeddingError: If embedding a batch fails.
            StoreError: If deleting or inserting chunks fails.
        """
        if document.is_folder or not document.content.strip():
            self.logging.debug("Skipping document '%s' (folder or empty).", document.id)
            return IndexResult(chunk_count=0)

        chunks = split_text_into_chunks(document.build_index_text(), self.chunk_size, self.chunk_overlap)

        await self._rag_client.do_delete_chunks(user_id, document.id)

        rows: list[ChunkRow] = []
        for start in range(0, len(chunks), EMBED_BATCH_SIZE):
            batch = chunks[start:start + EMBED_BATCH_SIZE]
            vectors = await embed_client.do_embed(batch)
            for offset, (text, vector) in enumerate(zip(batch, vectors)):
                rows.append(
                    ChunkRow(
                        owner_user_id=user_id,
                        doc_id=document.id,
                        owner_scope=document.owner_scope,
                        chunk_index=start + offset,
                        content=text,
                        embedding=vector,
                        doc_updated_at=document.updated_at,
                    )
                )

        for start in range(0, len(rows), INSERT_BATCH_SIZE):
            await self._rag_client.do_insert_chunks(rows[start:start + INSERT_BATCH_SIZE])

        self.logging.info("Indexed document '%s' for user '%s': %d chunks.", document.id, user_id, len(rows))
        return IndexResult(chunk_count=len(rows))
