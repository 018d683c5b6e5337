from typing import Any

from shared.helper.HelperConfig import HelperConfig


class ClientManager:
    """
    Picks and instantiates the backend client of one client type.

    The engine is read from "<TYPE>_ENGINE" and resolves to the class
    shared.clients.<type>.<engine>.<Prefix><Engine>, e.g. RAG_ENGINE=qdrant resolves
    to shared.clients.rag.qdrant.RAGClientQdrant.RAGClientQdrant.
    """

    client_type: str = ""
    class_prefix: str = ""
    default_engine: str = ""

    def __init__(self, helper_config: HelperConfig):
        self.helper_config = helper_config
        self.logging = helper_config.get_logger()
        self.engine = self._get_engine_from_env()
        self.client = self._initialize_client()

    def _get_engine_from_env(self) -> str:
        """
        Returns:
            str: The configured engine, capitalized as in the class name, e.g. "Qdrant".
        """
        engine = self.helper_config.get_string_val(f"{self.client_type.upper()}_ENGINE", default=self.default_engine)
        return engine.strip().lower().capitalize()

    def _load_client_class(self) -> type:
        """
        Raises:
            ValueError: If no client class exists for the configured engine.
        """
        class_name = f"{self.class_prefix}{self.engine}"
        try:
            module = __import__(f"shared.clients.{self.client_type}.{self.engine.lower()}.{class_name}", fromlist=[class_name])
            return getattr(module, class_name)
        except (ImportError, AttributeError) as e:
            raise ValueError(f"Unsupported {self.client_type} engine specified: '{self.engine}'. Error: {e}")

    def _initialize_client(self) -> Any:
        client = self._load_client_class()(helper_config=self.helper_config)
        self.logging.debug("Instantiated %s client for engine: %s", self.client_type, self.engine)
        return client

    def get_client(self) -> Any:
        return self.client
