from shared.clients.ClientManager import ClientManager
from shared.clients.state.StateClientInterface import StateClientInterface


class StateClientManager(ClientManager):
    """Selects the watermark store engine from STATE_ENGINE (default "postgrest")."""

    client_type = "state"
    class_prefix = "StateClient"
    default_engine = "postgrest"

    def get_client(self) -> StateClientInterface:
        return self.client
