from datetime import datetime, timezone

from shared.helper.HelperConfig import HelperConfig
from shared.clients.state.StateClientInterface import StateClientInterface
from shared.models.config import EnvConfig
from shared.models.document import SyncWatermark


class StateClientPostgrest(StateClientInterface):
    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self._base_url = self.get_config_val("BASE_URL", default=None, val_type="string")
        self._api_key = self.get_config_val("API_KEY", default=None, val_type="string")
        self._state_table = self.get_config_val("TABLE", default="rag_user_index_state", val_type="string")

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_engine_name(self) -> str:
        return "Postgrest"

    ################ CONFIG ##################
    def _get_required_config(self) -> list[EnvConfig]:
        return [
            EnvConfig(env_key="BASE_URL", val_type="string", default=None),
            EnvConfig(env_key="API_KEY", val_type="string", default=None),
            EnvConfig(env_key="TABLE", val_type="string", default="rag_user_index_state"),
        ]

    ################ AUTH ##################
    def _get_auth_header(self) -> dict:
        return {
            "apikey": self._api_key,
            "Authorization": f"Bearer {self._api_key}",
        }

    ################ ENDPOINTS ##################
    def _get_base_url(self) -> str:
        return self._base_url

    def _get_endpoint_healthcheck(self) -> str:
        return "/rest/v1/"

    def _get_endpoint_state(self) -> str:
        return f"/rest/v1/{self._state_table}"

    ################ QUERY BUILDER ##################
    def get_read_params(self, user_id: str) -> dict:
        return {
            "select": "last_indexed_at,last_indexed_doc_id",
            "user_id": f"eq.{user_id}",
            "limit": "1",
        }

    def get_write_payload(self, user_id: str, watermark: SyncWatermark) -> dict:
        return {
            "user_id": user_id,
            "last_indexed_at": watermark.last_indexed_at.isoformat(),
            "last_indexed_doc_id": watermark.last_indexed_doc_id,
            "updated_at": datetime.now(timezone.utc).isoformat(),
        }

    def get_write_headers(self) -> dict:
        return {"Prefer": "resolution=merge-duplicates,return=minimal"}
