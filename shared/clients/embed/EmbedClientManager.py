from shared.clients.ClientManager import ClientManager
from shared.helper.HelperConfig import HelperConfig
from shared.clients.embed.EmbedClientInterface import EmbedClientInterface
from shared.models.config import EmbedCredentials, EmbedCredentialSource

DEFAULT_EMBED_MODEL = "text-embedding-3-small"
DEFAULT_EMBED_DIMENSIONS = 1536

# Ordered credential fallback list. The first source with an API key wins.
EMBED_CREDENTIAL_SOURCES: list[EmbedCredentialSource] = [
    EmbedCredentialSource(
        name="dedicated",
        api_key_env="EMBED_API_KEY",
        base_url_envs=["EMBED_BASE_URL"],
        default_base_url="https://api.openai.com/v1",
    ),
    EmbedCredentialSource(
        name="openrouter",
        api_key_env="OPENROUTER_API_KEY",
        base_url_envs=["EMBED_BASE_URL", "OPENROUTER_BASE_URL"],
        default_base_url="https://openrouter.ai/api/v1",
        prefix_bare_models=True,
    ),
    EmbedCredentialSource(
        name="gateway",
        api_key_env="LLM_GATEWAY_API_KEY",
        base_url_envs=["EMBED_BASE_URL", "LLM_GATEWAY_BASE_URL"],
        default_base_url="https://openrouter.ai/api/v1",
        prefix_bare_models=True,
    ),
]


class EmbedClientManager(ClientManager):
    """
    Selects the embedding engine from EMBED_ENGINE (default "openai").

    Credentials are resolved once, at construction. If RAG is disabled or no
    credential source resolves, the embedding provider is unavailable and
    get_client() returns None instead of raising.
    """

    client_type = "embed"
    class_prefix = "EmbedClient"
    default_engine = "openai"

    def __init__(self, helper_config: HelperConfig, sources: list[EmbedCredentialSource] | None = None):
        self._sources = sources if sources is not None else EMBED_CREDENTIAL_SOURCES
        self.credentials: EmbedCredentials | None = None
        super().__init__(helper_config=helper_config)

    def _get_dimensions_from_env(self) -> int:
        try:
            dimensions = self.helper_config.get_number_val("EMBED_DIMENSIONS", default=DEFAULT_EMBED_DIMENSIONS)
        except ValueError:
            self.logging.warning("EMBED_DIMENSIONS is not a number, falling back to %d.", DEFAULT_EMBED_DIMENSIONS)
            return DEFAULT_EMBED_DIMENSIONS
        dimensions = int(dimensions)
        return dimensions if dimensions > 0 else DEFAULT_EMBED_DIMENSIONS

    def resolve_credentials(self) -> EmbedCredentials | None:
        """
        Walks the ordered credential sources and returns the first that resolves.

        Returns:
            EmbedCredentials | None: The resolved settings, or None if RAG is disabled or no API key is configured.
        """
        if not self.helper_config.get_bool_val("RAG_ENABLED", default=True):
            self.logging.info("RAG is disabled (RAG_ENABLED=0). Embedding provider unavailable.")
            return None

        model = self.helper_config.get_string_val("EMBED_MODEL", default=DEFAULT_EMBED_MODEL)
        dimensions = self._get_dimensions_from_env()

        for source in self._sources:
            api_key = self.helper_config.get_optional_string_val(source.api_key_env)
            if not api_key:
                continue

            base_url = source.default_base_url
            for env_key in source.base_url_envs:
                candidate = self.helper_config.get_optional_string_val(env_key)
                if candidate:
                    base_url = candidate
                    break

            source_model = model
            if source.prefix_bare_models and "openrouter.ai" in base_url and "/" not in source_model:
                source_model = f"openai/{source_model}"

            self.logging.info(
                "Embedding credentials resolved from source '%s' (model=%s, dimensions=%d).",
                source.name, source_model, dimensions,
            )
            return EmbedCredentials(
                source=source.name,
                api_key=api_key,
                base_url=base_url,
                model=source_model,
                dimensions=dimensions,
            )

        self.logging.warning(
            "No embedding credentials found (checked: %s). Embedding provider unavailable.",
            ", ".join(source.api_key_env for source in self._sources),
        )
        return None

    def _initialize_client(self) -> EmbedClientInterface | None:
        """
        Returns:
            EmbedClientInterface | None: The client, or None if no credentials resolved.

        Raises:
            ValueError: If credentials resolved but the configured engine is not supported.
        """
        self.credentials = self.resolve_credentials()
        if self.credentials is None:
            return None

        client = self._load_client_class()(helper_config=self.helper_config, credentials=self.credentials)
        self.logging.debug("Instantiated embed client for engine: %s", self.engine)
        return client

    def is_available(self) -> bool:
        return self.client is not None

    def get_client(self) -> EmbedClientInterface | None:
        return self.client
