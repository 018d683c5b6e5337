from datetime import datetime

from shared.helper.HelperConfig import HelperConfig
from shared.clients.dms.DMSClientInterface import DMSClientInterface, PageCursor
from shared.models.config import EnvConfig

DOCUMENT_COLUMNS = "id,persona_id,title,content,type,updated_at"


def quote_value(value: str) -> str:
    """Double-quote a value for PostgREST list and logic filters."""
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def in_filter(values: list[str]) -> str:
    return "in.(" + ",".join(quote_value(value) for value in values) + ")"


def private_id_prefix(user_id: str) -> str:
    return f"private-{user_id}-"


class DMSClientPostgrest(DMSClientInterface):
    """Document store on a PostgREST API (e.g. Supabase).

    Persona documents live in the documents table with their persona_id set.
    Private documents have no persona and an id of the form "private-{user_id}-...".
    """

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self._base_url = self.get_config_val("BASE_URL", default=None, val_type="string")
        self._api_key = self.get_config_val("API_KEY", default=None, val_type="string")
        self._documents_table = self.get_config_val("DOCUMENTS_TABLE", default="persona_docs", val_type="string")
        self._personas_table = self.get_config_val("PERSONAS_TABLE", default="personas", val_type="string")

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
            EnvConfig(env_key="DOCUMENTS_TABLE", val_type="string", default="persona_docs"),
            EnvConfig(env_key="PERSONAS_TABLE", val_type="string", default="personas"),
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

    def _get_endpoint_personas(self) -> str:
        return f"/rest/v1/{self._personas_table}"

    def _get_endpoint_documents(self) -> str:
        return f"/rest/v1/{self._documents_table}"

    ################ QUERY BUILDER ##################
    def get_persona_ids_params(self, user_id: str) -> dict:
        return {"select": "id", "user_id": f"eq.{user_id}"}

    def get_persona_documents_params(self, persona_ids: list[str], updated_after: datetime | None, after: PageCursor | None, limit: int) -> dict:
        params = {
            "select": DOCUMENT_COLUMNS,
            "persona_id": in_filter(persona_ids),
        }
        return self._with_paging(params, updated_after, after, limit)

    def get_private_documents_params(self, user_id: str, updated_after: datetime | None, after: PageCursor | None, limit: int) -> dict:
        params = {
            "select": DOCUMENT_COLUMNS,
            "persona_id": "is.null",
            "id": f"like.{private_id_prefix(user_id)}*",
        }
        return self._with_paging(params, updated_after, after, limit)

    def get_documents_by_ids_params(self, doc_ids: list[str]) -> dict:
        return {"select": DOCUMENT_COLUMNS, "id": in_filter(doc_ids)}

    def _with_paging(self, params: dict, updated_after: datetime | None, after: PageCursor | None, limit: int) -> dict:
        params["order"] = "updated_at.asc,id.asc"
        params["limit"] = str(limit)
        if updated_after is not None:
            params["updated_at"] = f"gte.{updated_after.isoformat()}"
        if after is not None:
            # rows strictly after the last row of the previous page
            at, doc_id = quote_value(after.updated_at), quote_value(after.id)
            params["or"] = f"(updated_at.gt.{at},and(updated_at.eq.{at},id.gt.{doc_id}))"
        return params

    ##########################################
    ################# OTHER ##################
    ##########################################

    def get_private_owner(self, row: dict, candidates: list[str]) -> str | None:
        doc_id = str(row.get("id") or "")
        for user_id in candidates:
            if doc_id.startswith(private_id_prefix(user_id)):
                return user_id
        return None
