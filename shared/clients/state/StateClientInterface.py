from abc import abstractmethod

from pydantic import ValidationError

from shared.helper.HelperConfig import HelperConfig
from shared.clients.ClientInterface import ClientInterface
from shared.exceptions import StoreError
from shared.models.document import SyncWatermark


class StateClientInterface(ClientInterface):
    """Watermark store: persists how far the incremental sync of each user has progressed."""

    error_class = StoreError

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_client_type(self) -> str:
        return "state"

    ################ ENDPOINTS ##################
    @abstractmethod
    def _get_endpoint_state(self) -> str:
        """
        Returns the endpoint path for watermark reads and writes.

        Returns:
            str: The endpoint path (e.g. "/rest/v1/rag_user_index_state")
        """
        pass

    ################ QUERY BUILDER ##################
    @abstractmethod
    def get_read_params(self, user_id: str) -> dict:
        """
        Builds the query parameters selecting the watermark row of a user.
        """
        pass

    @abstractmethod
    def get_write_payload(self, user_id: str, watermark: SyncWatermark) -> dict:
        """
        Builds the upsert body for the watermark row of a user.
        """
        pass

    @abstractmethod
    def get_write_headers(self) -> dict:
        """
        Returns the extra headers turning the write into an upsert.
        """
        pass

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def do_get_watermark(self, user_id: str) -> SyncWatermark | None:
        """
        Reads the watermark of a user.

        Args:
            user_id (str): The user.

        Returns:
            SyncWatermark | None: The watermark, or None if the user was never synced.

        Raises:
            StoreError: If the read fails or the stored row is malformed.
        """
        resp = await self.do_request(
            method="GET",
            endpoint=self._get_endpoint_state(),
            params=self.get_read_params(user_id),
            raise_on_error=True,
        )
        rows = self.parse_json(resp)
        if not isinstance(rows, list):
            raise StoreError(f"Malformed watermark response from {self.get_engine_name()}: expected a list of rows")
        if not rows:
            return None

        row = rows[0] if isinstance(rows[0], dict) else {}
        if not row.get("last_indexed_at"):
            return None
        try:
            return SyncWatermark(
                last_indexed_at=row["last_indexed_at"],
                last_indexed_doc_id=str(row.get("last_indexed_doc_id") or ""),
            )
        except ValidationError as exc:
            raise StoreError(f"Malformed watermark row for user '{user_id}': {exc}") from exc

    async def do_set_watermark(self, user_id: str, watermark: SyncWatermark) -> None:
        """
        Writes (upserts) the watermark of a user.

        Args:
            user_id (str): The user.
            watermark (SyncWatermark): The new watermark.

        Raises:
            StoreError: If the write fails.
        """
        await self.do_request(
            method="POST",
            endpoint=self._get_endpoint_state(),
            json=self.get_write_payload(user_id, watermark),
            additional_headers=self.get_write_headers(),
            raise_on_error=True,
        )
        self.logging.debug(
            "Stored watermark for user '%s': (%s, %s)",
            user_id, watermark.last_indexed_at.isoformat(), watermark.last_indexed_doc_id,
        )
