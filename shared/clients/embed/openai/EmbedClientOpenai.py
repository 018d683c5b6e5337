import math

from shared.clients.embed.EmbedClientInterface import EmbedClientInterface
from shared.exceptions import EmbeddingError
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import EmbedCredentials, EnvConfig


class EmbedClientOpenai(EmbedClientInterface):
    """Embedding client for OpenAI-compatible APIs (OpenAI, OpenRouter and other gateways)."""

    def __init__(self, helper_config: HelperConfig, credentials: EmbedCredentials):
        super().__init__(helper_config=helper_config, credentials=credentials)
        self._base_url = credentials.base_url
        self._api_key = credentials.api_key
        self._referer = self.get_config_val("REFERER", default="", val_type="string")
        self._app_title = self.get_config_val("APP_TITLE", default="", val_type="string")

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_engine_name(self) -> str:
        return "Openai"

    ################ CONFIG ##################
    def _get_required_config(self) -> list[EnvConfig]:
        # key, base url and model are resolved by EmbedClientManager
        return [
            EnvConfig(env_key="REFERER", val_type="string", default=""),
            EnvConfig(env_key="APP_TITLE", val_type="string", default=""),
        ]

    ################ AUTH ##################
    def _get_auth_header(self) -> dict:
        headers = {"Authorization": f"Bearer {self._api_key}"}
        # OpenRouter attribution headers
        if self._referer:
            headers["HTTP-Referer"] = self._referer
        if self._app_title:
            headers["X-Title"] = self._app_title
        return headers

    ################ ENDPOINTS ##################
    def _get_base_url(self) -> str:
        return self._base_url

    def _get_endpoint_healthcheck(self) -> str:
        return "/models"

    def get_endpoint_embedding(self) -> str:
        return "/embeddings"

    ################ PAYLOAD BUILDER ##################
    def get_embed_payload(self, texts: list[str]) -> dict:
        """Build the OpenAI embedding request body.

        Args:
            texts (list[str]): The texts to embed.

        Returns:
            dict: {"model": "...", "input": [...]}
        """
        return {"model": self.embed_model, "input": texts}

    ##########################################
    ################# OTHER ##################
    ##########################################

    def extract_embeddings_from_response(self, response_data: dict) -> list[list[float]]:
        """Extract embedding vectors from an OpenAI /embeddings response.

        Items carrying an "index" are sorted by it, otherwise the response order is kept.

        Args:
            response_data (dict): The parsed JSON response body.

        Returns:
            list[list[float]]: Embedding vectors in input order.

        Raises:
            EmbeddingError: If the response does not contain valid embeddings.
        """
        data = response_data.get("data") if isinstance(response_data, dict) else None
        if not isinstance(data, list):
            raise EmbeddingError("Invalid embeddings response: missing 'data' list")

        items: list[tuple[int, list[float]]] = []
        for position, item in enumerate(data):
            embedding = item.get("embedding") if isinstance(item, dict) else None
            if not isinstance(embedding, list):
                raise EmbeddingError("Invalid embeddings response: item without 'embedding' list")
            index = item.get("index", position)
            if not isinstance(index, int):
                index = position
            items.append((index, self._to_vector(embedding)))

        items.sort(key=lambda entry: entry[0])
        return [vector for _, vector in items]

    def _to_vector(self, raw: list) -> list[float]:
        vector: list[float] = []
        for value in raw:
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise EmbeddingError(f"Invalid embeddings response: non-numeric value {value!r}")
            if not math.isfinite(value):
                raise EmbeddingError("Invalid embeddings response: non-finite value")
            vector.append(float(value))
        return vector
