"""Incremental per-user sync of the RAG index.

Brings the chunk store of one user up to date with the document store,
processing changed documents in (updated_at, id) order and advancing a
persisted watermark past every document that was fully processed.
"""

import asyncio

from shared.clients.dms.DMSClientInterface import DMSClientInterface
from shared.clients.embed.EmbedClientInterface import EmbedClientInterface
from shared.clients.state.StateClientInterface import StateClientInterface
from shared.exceptions import ClientRequestError, SyncAbortedError
from shared.helper.HelperConfig import HelperConfig
from shared.models.document import Document, SyncStats, SyncWatermark
from services.rag_index.IndexWriter import IndexWriter


class IncrementalSyncCoordinator:
    """Runs at most one sync per user at a time within this process.

    Concurrent callers for the same user share the in-flight run and
    receive its result or its error.
    """

    def __init__(
        self,
        helper_config: HelperConfig,
        dms_client: DMSClientInterface,
        state_client: StateClientInterface,
        index_writer: IndexWriter,
        embed_client: EmbedClientInterface | None,
    ) -> None:
        self.logging = helper_config.get_logger()
        self._dms_client = dms_client
        self._state_client = state_client
        self._index_writer = index_writer
        self._embed_client = embed_client
        self._in_flight: dict[str, asyncio.Task] = {}

    ##########################################
    ############### SINGLE FLIGHT ############
    ##########################################

    async def do_ensure_up_to_date(self, user_id: str) -> SyncStats:
        """Bring the index of a user up to date.

        Args:
            user_id (str): The user to sync.

        Returns:
            SyncStats: Progress of the run. All zero but docs_fetched when no
                embedding provider is configured.

        Raises:
            StoreError: If the watermark or the document listing cannot be read.
            SyncAbortedError: If a document failed to index. Carries the partial stats,
                the triggering EmbeddingError / StoreError is its __cause__.
        """
        task = self._in_flight.get(user_id)
        if task is None:
            task = asyncio.create_task(self._run_sync(user_id))
            self._in_flight[user_id] = task
            task.add_done_callback(lambda done: self._release(user_id, done))
        else:
            self.logging.debug("Sync for user '%s' already running, joining it.", user_id)
        # a cancelled caller must not cancel the run shared with others
        return await asyncio.shield(task)

    def _release(self, user_id: str, task: asyncio.Task) -> None:
        if self._in_flight.get(user_id) is task:
            del self._in_flight[user_id]

    def is_running(self, user_id: str) -> bool:
        return user_id in self._in_flight

    ##########################################
    ############### CORE SYNC ################
    ##########################################

    async def do_fetch_pending_documents(self, user_id: str, watermark: SyncWatermark | None) -> tuple[int, list[Document]]:
        """Fetch the documents of a user that lie after the watermark.

        Args:
            user_id (str): The user.
            watermark (SyncWatermark | None): The current watermark, None for a full resync.

        Returns:
            tuple[int, list[Document]]: Number of documents fetched, and the pending
                documents sorted ascending by (updated_at, id).
        """
        persona_ids = await self._dms_client.do_fetch_persona_ids(user_id)
        documents = await self._dms_client.do_fetch_documents(
            user_id,
            persona_ids,
            updated_after=watermark.last_indexed_at if watermark else None,
        )
        fetched = len(documents)
        if watermark is not None:
            documents = [document for document in documents if watermark.is_before(document)]
        documents.sort(key=lambda document: document.get_cursor())
        return fetched, documents

    async def _run_sync(self, user_id: str) -> SyncStats:
        watermark = await self._state_client.do_get_watermark(user_id)
        if watermark is None:
            self.logging.info("No watermark for user '%s', running full sync.", user_id)

        fetched, documents = await self.do_fetch_pending_documents(user_id, watermark)
        stats = SyncStats(docs_fetched=fetched)

        if self._embed_client is None:
            self.logging.warning("Embedding provider unavailable, skipping indexing of %d documents for user '%s'.", len(documents), user_id)
            return stats
        if not documents:
            self.logging.info("Index of user '%s' is up to date (%d fetched).", user_id, fetched)
            return stats

        failure: ClientRequestError | None = None
        failed_doc_id: str | None = None
        for document in documents:
            try:
                result = await self._index_writer.do_reindex(user_id, document, self._embed_client)
            except ClientRequestError as exc:
                failure = exc
                failed_doc_id = document.id
                break
            if result.chunk_count > 0:
                stats.docs_indexed += 1
                stats.chunks_indexed += result.chunk_count
            stats.indexed_at = document.updated_at
            stats.indexed_doc_id = document.id

        if stats.indexed_doc_id is not None:
            reached = SyncWatermark(last_indexed_at=stats.indexed_at, last_indexed_doc_id=stats.indexed_doc_id)
            if failure is None:
                await self._state_client.do_set_watermark(user_id, reached)
            else:
                # the abort and its stats are reported even if the prefix cannot be saved
                try:
                    await self._state_client.do_set_watermark(user_id, reached)
                except ClientRequestError as exc:
                    self.logging.error("Could not save watermark of user '%s' after aborted sync: %s", user_id, exc)

        if failure is not None:
            self.logging.error(
                "Sync for user '%s' aborted at document '%s': %s (%d documents indexed before the failure).",
                user_id, failed_doc_id, failure, stats.docs_indexed,
            )
            raise SyncAbortedError(f"Sync for user '{user_id}' aborted at document '{failed_doc_id}': {failure}", stats) from failure

        self.logging.info(
            "Sync for user '%s' finished: %d fetched, %d indexed, %d chunks.",
            user_id, stats.docs_fetched, stats.docs_indexed, stats.chunks_indexed,
        )
        return stats
