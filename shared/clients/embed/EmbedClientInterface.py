from abc import abstractmethod

from shared.clients.ClientInterface import ClientInterface
from shared.exceptions import EmbeddingError
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import EmbedCredentials


class EmbedClientInterface(ClientInterface):
    error_class = EmbeddingError

    def __init__(self, helper_config: HelperConfig, credentials: EmbedCredentials):
        super().__init__(helper_config=helper_config)

        # model and embedding config
        self.embed_model = credentials.model
        self.embed_dimensions = credentials.dimensions

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_client_type(self) -> str:
        """
        Returns the type of the client. E.g. "embed"
        """
        return "embed"

    ################ ENDPOINTS ##################
    @abstractmethod
    def get_endpoint_embedding(self) -> str:
        """
        Returns the endpoint path for embedding requests.

        Returns:
            str: The endpoint path for embedding requests (e.g. "/embeddings")

        Raises:
            NotImplementedError: If the method is not implemented in a subclass.
        """
        pass

    ################ PAYLOAD BUILDER ##################
    @abstractmethod
    def get_embed_payload(self, texts: list[str]) -> dict:
        """Build the backend-specific request body for an embedding request.

        Args:
            texts (list[str]): The texts to embed.

        Returns:
            dict: JSON-serialisable request body (e.g. {"model": "...", "input": [...]}).
        """
        pass

    ##########################################
    ################# OTHER ##################
    ##########################################

    @abstractmethod
    def extract_embeddings_from_response(self, response_data: dict) -> list[list[float]]:
        """Extract embedding vectors from a raw embedding API response.

        Args:
            response_data (dict): The parsed JSON response body.

        Returns:
            list[list[float]]: Embedding vectors in the same order as the input texts.

        Raises:
            EmbeddingError: If the response format is invalid.
        """
        pass

    def validate_embeddings(self, vectors: list[list[float]], expected_count: int) -> list[list[float]]:
        """Check the count and the dimensionality of a batch of returned vectors.

        Args:
            vectors (list[list[float]]): The extracted vectors.
            expected_count (int): Number of input texts.

        Returns:
            list[list[float]]: The unchanged vectors.

        Raises:
            EmbeddingError: On a dimension or count mismatch.
        """
        for vector in vectors:
            if len(vector) != self.embed_dimensions:
                raise EmbeddingError(
                    f"Embedding dimensions mismatch (got {len(vector)}, expected {self.embed_dimensions})"
                )
        if len(vectors) != expected_count:
            raise EmbeddingError(
                f"Embeddings response length mismatch (got {len(vectors)}, expected {expected_count})"
            )
        return vectors

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def do_embed(self, texts: list[str] | str) -> list[list[float]]:
        """Send an embedding request and return the validated vectors.

        The batch is sent as a single request: splitting oversized batches and
        retrying are left to the caller.

        Args:
            texts (list[str] | str): One or more texts to embed.

        Returns:
            list[list[float]]: Embedding vectors in the same order as the inputs.

        Raises:
            EmbeddingError: If the request fails, the body is malformed, or the vectors
                do not match the expected count or dimensionality.
        """
        texts = [texts] if isinstance(texts, str) else list(texts)
        if not texts:
            return []
        body = self.get_embed_payload(texts)
        response = await self.do_request(method="POST", endpoint=self.get_endpoint_embedding(), json=body)
        if not response.is_success:
            self.logging.error(
                "Embedding request failed: status %d, body: %s",
                response.status_code,
                response.text[:200],
            )
            raise EmbeddingError(
                f"Embeddings request failed ({response.status_code}): {response.text[:200] or response.reason_phrase}",
                status_code=response.status_code,
            )
        vectors = self.extract_embeddings_from_response(self.parse_json(response))
        return self.validate_embeddings(vectors, expected_count=len(texts))
