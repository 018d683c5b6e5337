from shared.clients.ClientManager import ClientManager
from shared.clients.rag.RAGClientInterface import RAGClientInterface


class RAGClientManager(ClientManager):
    """Selects the chunk store engine from RAG_ENGINE (default "qdrant")."""

    client_type = "rag"
    class_prefix = "RAGClient"
    default_engine = "qdrant"

    def get_client(self) -> RAGClientInterface:
        return self.client
