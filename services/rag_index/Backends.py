from shared.clients.ClientInterface import ClientInterface
from shared.clients.dms.DMSClientInterface import DMSClientInterface
from shared.clients.dms.DMSClientManager import DMSClientManager
from shared.clients.embed.EmbedClientInterface import EmbedClientInterface
from shared.clients.embed.EmbedClientManager import DEFAULT_EMBED_DIMENSIONS, EmbedClientManager
from shared.clients.rag.RAGClientInterface import RAGClientInterface
from shared.clients.rag.RAGClientManager import RAGClientManager
from shared.clients.state.StateClientInterface import StateClientInterface
from shared.clients.state.StateClientManager import StateClientManager
from shared.exceptions import ClientRequestError
from shared.helper.HelperConfig import HelperConfig
from services.rag_index.IndexWriter import IndexWriter
from services.rag_index.Retriever import Retriever
from services.rag_index.SyncCoordinator import IncrementalSyncCoordinator


class Backends:
    """
    The configured backend clients of one process, plus the services built on them.

    The embedding client is None when no embedding credentials are configured.
    """

    def __init__(
        self,
        helper_config: HelperConfig,
        dms_client: DMSClientInterface,
        rag_client: RAGClientInterface,
        state_client: StateClientInterface,
        embed_client: EmbedClientInterface | None,
    ) -> None:
        self.logging = helper_config.get_logger()
        self.helper_config = helper_config
        self.dms_client = dms_client
        self.rag_client = rag_client
        self.state_client = state_client
        self.embed_client = embed_client

    @classmethod
    def from_config(cls, helper_config: HelperConfig) -> "Backends":
        """
        Instantiates every client from the engine settings.

        Raises:
            ValueError: If an engine is unsupported or a required setting is missing.
        """
        return cls(
            helper_config=helper_config,
            dms_client=DMSClientManager(helper_config=helper_config).get_client(),
            rag_client=RAGClientManager(helper_config=helper_config).get_client(),
            state_client=StateClientManager(helper_config=helper_config).get_client(),
            embed_client=EmbedClientManager(helper_config=helper_config).get_client(),
        )

    ##########################################
    ################ GETTER ##################
    ##########################################

    def get_clients(self) -> list[ClientInterface]:
        clients: list[ClientInterface] = [self.dms_client, self.rag_client, self.state_client]
        if self.embed_client is not None:
            clients.append(self.embed_client)
        return clients

    def get_vector_size(self) -> int:
        return self.embed_client.embed_dimensions if self.embed_client else DEFAULT_EMBED_DIMENSIONS

    def create_sync_coordinator(self) -> IncrementalSyncCoordinator:
        return IncrementalSyncCoordinator(
            helper_config=self.helper_config,
            dms_client=self.dms_client,
            state_client=self.state_client,
            index_writer=IndexWriter(helper_config=self.helper_config, rag_client=self.rag_client),
            embed_client=self.embed_client,
        )

    def create_retriever(self) -> Retriever:
        return Retriever(
            helper_config=self.helper_config,
            rag_client=self.rag_client,
            dms_client=self.dms_client,
            embed_client=self.embed_client,
        )

    ##########################################
    ############### LIFECYCLE ################
    ##########################################

    async def boot(self) -> None:
        for client in self.get_clients():
            await client.boot()
        self.logging.info("Booted %s.", ", ".join(client.get_label() for client in self.get_clients()))

    async def close(self) -> None:
        for client in self.get_clients():
            await client.close()

    async def check_connections(self) -> bool:
        """
        Runs the healthcheck of every client and logs the unreachable ones.

        Returns:
            bool: True if every backend answered with a 2xx status.
        """
        healthy = True
        for client in self.get_clients():
            try:
                result = await client.do_healthcheck()
            except ClientRequestError as e:
                self.logging.warning("%s is not reachable: %s", client.get_label(), e)
                healthy = False
                continue
            if not result.is_success:
                self.logging.warning("%s is not reachable (status %d).", client.get_label(), result.status_code)
                healthy = False
        return healthy

    async def do_ensure_collection(self) -> None:
        """
        Raises:
            StoreError: If the chunk store collection cannot be checked or created.
        """
        await self.rag_client.do_ensure_collection(vector_size=self.get_vector_size())
