from shared.clients.ClientManager import ClientManager
from shared.clients.dms.DMSClientInterface import DMSClientInterface


class DMSClientManager(ClientManager):
    """Selects the document store engine from DMS_ENGINE (default "postgrest")."""

    client_type = "dms"
    class_prefix = "DMSClient"
    default_engine = "postgrest"

    def get_client(self) -> DMSClientInterface:
        return self.client
