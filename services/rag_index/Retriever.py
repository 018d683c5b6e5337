"""Similarity retrieval over the RAG index."""

from shared.clients.dms.DMSClientInterface import DMSClientInterface
from shared.clients.embed.EmbedClientInterface import EmbedClientInterface
from shared.clients.rag.RAGClientInterface import RAGClientInterface
from shared.exceptions import ConfigurationUnavailable
from shared.helper.HelperConfig import HelperConfig
from shared.models.document import ChunkMatch, Document, PRIVATE_SCOPE_PREFIX

DEFAULT_MAX_RESULTS = 6
MAX_RESULTS_LIMIT = 12
MATCHES_PER_RESULT = 4   # chunk matches requested per wanted document


def clamp_max_results(max_results: int) -> int:
    return min(max(int(max_results), 1), MAX_RESULTS_LIMIT)


def select_document_ids(matches: list[ChunkMatch], max_results: int) -> list[str]:
    """Collapse ranked chunk matches to distinct document ids.

    Args:
        matches (list[ChunkMatch]): Chunk matches in any order.
        max_results (int): Maximum number of ids.

    Returns:
        list[str]: Document ids in descending score order, first occurrence wins.
    """
    ranked = sorted((m for m in matches if m.doc_id), key=lambda m: m.score, reverse=True)
    doc_ids: list[str] = []
    seen: set[str] = set()
    for match in ranked:
        if match.doc_id in seen:
            continue
        seen.add(match.doc_id)
        doc_ids.append(match.doc_id)
        if len(doc_ids) >= max_results:
            break
    return doc_ids


class Retriever:
    """Answers which documents within a set of scopes are most relevant to a query."""

    def __init__(
        self,
        helper_config: HelperConfig,
        rag_client: RAGClientInterface,
        dms_client: DMSClientInterface,
        embed_client: EmbedClientInterface | None,
    ) -> None:
        self.logging = helper_config.get_logger()
        self._rag_client = rag_client
        self._dms_client = dms_client
        self._embed_client = embed_client

    async def do_retrieve(self, query: str, candidate_scopes: list[str], max_results: int = DEFAULT_MAX_RESULTS) -> list[Document]:
        """Return the documents most relevant to a query, best first.

        Args:
            query (str): The search text.
            candidate_scopes (list[str]): Persona ids and private scopes the result may come from.
            max_results (int): Maximum number of documents, clamped to [1, 12].

        Returns:
            list[Document]: At most max_results documents, all within candidate_scopes.

        Raises:
            ConfigurationUnavailable: If no embedding provider is configured.
            EmbeddingError: If the query cannot be embedded.
            StoreError: If the chunk store or the document store fails.
        """
        if self._embed_client is None:
            raise ConfigurationUnavailable("Retrieval unavailable: no embedding credentials configured.")

        max_results = clamp_max_results(max_results)
        scopes = [scope for scope in dict.fromkeys(candidate_scopes or []) if scope]
        if not scopes or not (query or "").strip():
            return []

        vectors = await self._embed_client.do_embed([query])
        matches = await self._rag_client.do_similarity_search(vectors[0], MATCHES_PER_RESULT * max_results, scopes)

        doc_ids = select_document_ids(matches, max_results)
        if not doc_ids:
            self.logging.debug("No chunk matches for query within %d scopes.", len(scopes))
            return []

        private_owners = [scope[len(PRIVATE_SCOPE_PREFIX):] for scope in scopes if scope.startswith(PRIVATE_SCOPE_PREFIX)]
        rows = await self._dms_client.do_fetch_documents_by_ids(doc_ids, private_owners=private_owners)
        by_id = {document.id: document for document in rows}

        allowed = set(scopes)
        results: list[Document] = []
        for doc_id in doc_ids:
            document = by_id.get(doc_id)
            if document is None:
                continue
            if document.owner_scope not in allowed:
                self.logging.warning("Dropping document '%s' outside the requested scopes.", doc_id)
                continue
            results.append(document)

        self.logging.info("Retrieved %d documents (%d chunk matches, %d candidate ids).", len(results), len(matches), len(doc_ids))
        return results
