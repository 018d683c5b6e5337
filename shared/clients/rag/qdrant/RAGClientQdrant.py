from pydantic import ValidationError

from shared.helper.HelperConfig import HelperConfig
from shared.clients.rag.RAGClientInterface import RAGClientInterface
from shared.exceptions import StoreError
from shared.models.config import EnvConfig
from shared.models.document import ChunkMatch, ChunkRow


class RAGClientQdrant(RAGClientInterface):
    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self._base_url = self.get_config_val("BASE_URL", default=None, val_type="string")
        self._api_key = self.get_config_val("API_KEY", default="", val_type="string")
        self._collection_name = self.get_config_val("COLLECTION", default="persona_doc_chunks", val_type="string")

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_engine_name(self) -> str:
        return "Qdrant"

    ################ CONFIG ##################
    def _get_required_config(self) -> list[EnvConfig]:
        return [
            EnvConfig(env_key="BASE_URL", val_type="string", default=None),
            EnvConfig(env_key="API_KEY", val_type="string", default=""),
            EnvConfig(env_key="COLLECTION", val_type="string", default="persona_doc_chunks"),
        ]

    ################ AUTH ##################
    def _get_auth_header(self) -> dict:
        if self._api_key:
            return {"api-key": f"{self._api_key}"}
        else:
            return {}

    ################ ENDPOINTS ##################
    def _get_base_url(self) -> str:
        return self._base_url

    def _get_endpoint_healthcheck(self) -> str:
        return "/healthz"

    def _get_endpoint_points(self) -> str:
        return f"/collections/{self._collection_name}/points"

    def _get_endpoint_delete_points(self) -> str:
        return f"/collections/{self._collection_name}/points/delete"

    def _get_endpoint_search(self) -> str:
        return f"/collections/{self._collection_name}/points/search"

    def _get_endpoint_check_collection_existence(self) -> str:
        return f"/collections/{self._collection_name}/exists"

    def _get_endpoint_create_collection(self) -> str:
        return f"/collections/{self._collection_name}"

    ##########################################
    ########### PAYLOAD BUILDER ##############
    ##########################################

    def get_document_filter(self, owner_user_id: str, doc_id: str) -> dict:
        return {
            "must": [
                {"key": "owner_user_id", "match": {"value": owner_user_id}},
                {"key": "doc_id", "match": {"value": doc_id}},
            ]
        }

    def get_delete_payload(self, filter: dict) -> dict:
        return {"filter": filter}

    def get_upsert_payload(self, rows: list[ChunkRow]) -> dict:
        return {"points": [self.build_point(row) for row in rows]}

    def get_search_payload(self, query_vector: list[float], match_count: int, scopes: list[str]) -> dict:
        return {
            "vector": query_vector,
            "limit": match_count,
            "with_payload": ["doc_id", "chunk_index"],
            "with_vector": False,
            "filter": {"must": [{"key": "owner_scope", "match": {"any": scopes}}]},
        }

    ##########################################
    ########### RESPONSE PARSER ##############
    ##########################################

    def extract_matches(self, raw_response: dict) -> list[ChunkMatch]:
        points = raw_response.get("result") if isinstance(raw_response, dict) else None
        if not isinstance(points, list):
            raise StoreError("Malformed Qdrant search response: missing 'result' list")

        matches: list[ChunkMatch] = []
        for point in points:
            payload = (point or {}).get("payload") or {}
            try:
                matches.append(
                    ChunkMatch(
                        doc_id=str(payload.get("doc_id") or ""),
                        score=point.get("score"),
                        chunk_index=payload.get("chunk_index"),
                    )
                )
            except ValidationError as exc:
                raise StoreError(f"Malformed Qdrant search hit: {exc}") from exc
        return matches
