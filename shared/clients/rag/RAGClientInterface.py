from abc import abstractmethod
import uuid

import httpx
from shared.clients.ClientInterface import ClientInterface
from shared.clients.rag.models.VectorPoint import VectorPoint
from shared.exceptions import StoreError
from shared.helper.HelperConfig import HelperConfig
from shared.models.document import ChunkMatch, ChunkRow


def make_point_id(owner_user_id: str, doc_id: str, chunk_index: int) -> str:
    """Build a deterministic UUID5 point ID for a chunk vector.

    The same (user, document, chunk) always maps to the same point ID, so a
    repeated insert overwrites rather than duplicates.

    Args:
        owner_user_id (str): User whose index the chunk belongs to.
        doc_id (str): Document ID in the document store.
        chunk_index (int): Zero-based chunk index within the document.

    Returns:
        str: UUID string usable as a point ID.
    """
    return str(uuid.uuid5(uuid.NAMESPACE_OID, f"{owner_user_id}:{doc_id}:{chunk_index}"))


class RAGClientInterface(ClientInterface):
    """Chunk store: holds the embedded chunks of every indexed document."""

    error_class = StoreError

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_client_type(self) -> str:
        """
        Returns the type of the client. E.g. "rag"
        """
        return "rag"

    ################ ENDPOINTS ##################
    @abstractmethod
    def _get_endpoint_points(self) -> str:
        """
        Returns the endpoint path for points upsert requests.

        Returns:
            str: The endpoint path for points requests (e.g. "/collections/my_col/points")
        """
        pass

    @abstractmethod
    def _get_endpoint_delete_points(self) -> str:
        """
        Returns the endpoint path for deleting points by filter.

        Returns:
            str: The endpoint path (e.g. "/collections/my_col/points/delete")
        """
        pass

    @abstractmethod
    def _get_endpoint_search(self) -> str:
        """
        Returns the endpoint path for similarity search requests.

        Returns:
            str: The endpoint path (e.g. "/collections/my_col/points/search")
        """
        pass

    @abstractmethod
    def _get_endpoint_check_collection_existence(self) -> str:
        """
        Returns the endpoint path for collection existence check requests.

        Returns:
            str: The endpoint path (e.g. "/collections/my_col/exists")
        """
        pass

    @abstractmethod
    def _get_endpoint_create_collection(self) -> str:
        """
        Returns the endpoint path for create collection requests.

        Returns:
            str: The endpoint path (e.g. "/collections/my_col")
        """
        pass

    ################ PAYLOAD BUILDER ##################
    @abstractmethod
    def get_document_filter(self, owner_user_id: str, doc_id: str) -> dict:
        """
        Builds the backend-specific filter matching all chunks of one document of one user.

        Args:
            owner_user_id (str): The user whose index is addressed.
            doc_id (str): The document ID.

        Returns:
            dict: The filter.
        """
        pass

    @abstractmethod
    def get_delete_payload(self, filter: dict) -> dict:
        """
        Builds the backend-specific request payload for a filter-based delete.

        Args:
            filter (dict): The filter that identifies which points to delete.

        Returns:
            dict: The payload for the delete request.
        """
        pass

    @abstractmethod
    def get_upsert_payload(self, rows: list[ChunkRow]) -> dict:
        """
        Builds the backend-specific request payload for inserting chunk rows.

        Args:
            rows (list[ChunkRow]): The chunk rows to write.

        Returns:
            dict: The payload for the upsert request.
        """
        pass

    @abstractmethod
    def get_search_payload(self, query_vector: list[float], match_count: int, scopes: list[str]) -> dict:
        """
        Builds the backend-specific request payload for a scope-restricted similarity search.

        Args:
            query_vector (list[float]): The query embedding.
            match_count (int): Maximum number of chunk matches.
            scopes (list[str]): Owner scopes the search is restricted to.

        Returns:
            dict: The payload for the search request.
        """
        pass

    @abstractmethod
    def extract_matches(self, raw_response: dict) -> list[ChunkMatch]:
        """
        Extracts ranked chunk matches from a raw search response.

        Args:
            raw_response (dict): The raw JSON response from the search endpoint.

        Returns:
            list[ChunkMatch]: Matches ranked descending by similarity.

        Raises:
            StoreError: If the response is malformed.
        """
        pass

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def do_existence_check(self) -> bool:
        """Check if the collection exists in the rag backend.

        Returns:
            bool: True if the collection exists, False otherwise.
        """
        resp = await self.do_request(method="GET", endpoint=self._get_endpoint_check_collection_existence(), raise_on_error=True)
        return bool((self.parse_json(resp).get("result") or {}).get("exists"))

    async def do_create_collection(self, vector_size: int, distance: str = "Cosine") -> httpx.Response:
        """Create the collection in the rag backend.

        Args:
            vector_size (int): The dimensionality of the stored vectors.
            distance (str): The distance metric for the vectors.

        Returns:
            httpx.Response: The response from the create collection request.
        """
        self.logging.info("Creating collection on %s (size=%d, distance=%s).", self.get_engine_name(), vector_size, distance)
        return await self.do_request(
            method="PUT",
            json={"vectors": {"size": vector_size, "distance": distance}},
            endpoint=self._get_endpoint_create_collection(),
            raise_on_error=True,
        )

    async def do_ensure_collection(self, vector_size: int) -> None:
        """Create the collection unless it already exists."""
        if not await self.do_existence_check():
            await self.do_create_collection(vector_size=vector_size)

    async def do_delete_chunks(self, owner_user_id: str, doc_id: str) -> None:
        """Delete every chunk of a document from the index of a user. Idempotent.

        Args:
            owner_user_id (str): The user whose index is addressed.
            doc_id (str): The document ID.

        Raises:
            StoreError: If the delete request fails.
        """
        await self.do_request(
            method="POST",
            json=self.get_delete_payload(self.get_document_filter(owner_user_id, doc_id)),
            endpoint=self._get_endpoint_delete_points(),
            params={"wait": "true"},
            raise_on_error=True,
        )

    async def do_insert_chunks(self, rows: list[ChunkRow]) -> None:
        """Write a batch of chunk rows. Batching is the caller's responsibility.

        Args:
            rows (list[ChunkRow]): The rows to write.

        Raises:
            StoreError: If the upsert request fails.
        """
        if not rows:
            return
        await self.do_request(
            method="PUT",
            json=self.get_upsert_payload(rows),
            endpoint=self._get_endpoint_points(),
            params={"wait": "true"},
            raise_on_error=True,
        )

    async def do_similarity_search(self, query_vector: list[float], match_count: int, scopes: list[str]) -> list[ChunkMatch]:
        """Find the chunks nearest to a query vector within the given scopes.

        Args:
            query_vector (list[float]): The query embedding.
            match_count (int): Maximum number of chunk matches.
            scopes (list[str]): Owner scopes the search is restricted to.

        Returns:
            list[ChunkMatch]: Matches ranked descending by similarity.

        Raises:
            StoreError: If the search request fails or the response is malformed.
        """
        if not scopes:
            return []
        resp = await self.do_request(
            method="POST",
            json=self.get_search_payload(query_vector, match_count, scopes),
            endpoint=self._get_endpoint_search(),
            raise_on_error=True,
        )
        return self.extract_matches(self.parse_json(resp))

    ##########################################
    ################# OTHER ##################
    ##########################################

    def build_point(self, row: ChunkRow) -> dict:
        """Convert a chunk row into a point with deterministic ID, vector and payload."""
        return {
            "id": make_point_id(row.owner_user_id, row.doc_id, row.chunk_index),
            "vector": row.embedding,
            "payload": VectorPoint.from_chunk_row(row).model_dump(),
        }
