from abc import abstractmethod
from datetime import datetime
from typing import NamedTuple

from pydantic import ValidationError

from shared.helper.HelperConfig import HelperConfig
from shared.clients.ClientInterface import ClientInterface
from shared.exceptions import StoreError
from shared.models.document import Document, PRIVATE_SCOPE_PREFIX, private_scope

# hard stop for runaway pagination
MAX_LIST_ROWS = 100_000


class PageCursor(NamedTuple):
    """Sort key of the last row of a page, as returned by the store."""

    updated_at: str
    id: str


class DMSClientInterface(ClientInterface):
    """Document store: read-only access to persona documents and private documents."""

    error_class = StoreError

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self.page_size = helper_config.get_int_val("DMS_PAGE_SIZE", default=200, minimum=1)

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_client_type(self) -> str:
        """
        Returns the type of the client. E.g. "rag"
        """
        return "dms"

    ################ ENDPOINTS ##################
    @abstractmethod
    def _get_endpoint_personas(self) -> str:
        """
        Returns the endpoint path for persona listing requests.

        Returns:
            str: The endpoint path (e.g. "/rest/v1/personas")
        """
        pass

    @abstractmethod
    def _get_endpoint_documents(self) -> str:
        """
        Returns the endpoint path for document listing requests.

        Returns:
            str: The endpoint path (e.g. "/rest/v1/persona_docs")
        """
        pass

    ################ QUERY BUILDER ##################
    @abstractmethod
    def get_persona_ids_params(self, user_id: str) -> dict:
        """
        Builds the query parameters selecting the persona ids owned by a user.

        Args:
            user_id (str): The owning user.

        Returns:
            dict: The query parameters.
        """
        pass

    @abstractmethod
    def get_persona_documents_params(self, persona_ids: list[str], updated_after: datetime | None, after: PageCursor | None, limit: int) -> dict:
        """
        Builds the query parameters for one page of persona documents.

        Pages must be ordered ascending by (updated_at, id).

        Args:
            persona_ids (list[str]): Personas whose documents are listed.
            updated_after (datetime | None): Inclusive lower bound on updated_at, or None for all.
            after (PageCursor | None): Only rows sorting strictly after this key, or None for the first page.
            limit (int): Page size.

        Returns:
            dict: The query parameters.
        """
        pass

    @abstractmethod
    def get_private_documents_params(self, user_id: str, updated_after: datetime | None, after: PageCursor | None, limit: int) -> dict:
        """
        Builds the query parameters for one page of the private documents of a user.

        Args:
            user_id (str): The owning user.
            updated_after (datetime | None): Inclusive lower bound on updated_at, or None for all.
            after (PageCursor | None): Only rows sorting strictly after this key, or None for the first page.
            limit (int): Page size.

        Returns:
            dict: The query parameters.
        """
        pass

    @abstractmethod
    def get_documents_by_ids_params(self, doc_ids: list[str]) -> dict:
        """
        Builds the query parameters selecting documents by id.

        Args:
            doc_ids (list[str]): The document ids.

        Returns:
            dict: The query parameters.
        """
        pass

    @abstractmethod
    def get_private_owner(self, row: dict, candidates: list[str]) -> str | None:
        """
        Returns the candidate user id owning a private document row, or None if no candidate owns it.

        Args:
            row (dict): A raw document row without persona.
            candidates (list[str]): User ids the row may belong to.
        """
        pass

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def do_fetch_persona_ids(self, user_id: str) -> list[str]:
        """
        Fetches the ids of all personas owned by a user.

        Args:
            user_id (str): The owning user.

        Returns:
            list[str]: The persona ids, empty ids dropped.

        Raises:
            StoreError: If the request fails or the response is malformed.
        """
        resp = await self.do_request(
            method="GET",
            endpoint=self._get_endpoint_personas(),
            params=self.get_persona_ids_params(user_id),
            raise_on_error=True,
        )
        rows = self._parse_rows(resp)
        return [str(row["id"]) for row in rows if row.get("id")]

    async def do_fetch_documents(self, user_id: str, persona_ids: list[str], updated_after: datetime | None = None) -> list[Document]:
        """
        Fetches all persona documents and private documents visible to a user.

        Persona documents are fetched first, then the private documents. Both are
        paged and ordered ascending by (updated_at, id); the union is deduplicated
        by id, keeping the most recent version of a row listed twice.

        Args:
            user_id (str): The user whose documents are listed.
            persona_ids (list[str]): The personas of the user.
            updated_after (datetime | None): Inclusive lower bound on updated_at, or None for all.

        Returns:
            list[Document]: The documents, deduplicated by id.

        Raises:
            StoreError: If any page request fails or a response is malformed.
        """
        rows: list[dict] = []
        if persona_ids:
            rows.extend(await self._fetch_paged(
                lambda after, limit: self.get_persona_documents_params(persona_ids, updated_after, after, limit)
            ))
        rows.extend(await self._fetch_paged(
            lambda after, limit: self.get_private_documents_params(user_id, updated_after, after, limit)
        ))

        documents: list[Document] = []
        positions: dict[str, int] = {}
        for row in rows:
            document = self._parse_document(row, private_owners=[user_id])
            if document is None:
                continue
            if document.id not in positions:
                positions[document.id] = len(documents)
                documents.append(document)
            elif document.updated_at > documents[positions[document.id]].updated_at:
                # edited while listing, listed again behind the cursor
                documents[positions[document.id]] = document

        self.logging.info(
            "Fetched %d documents for user '%s' from %s (%d personas, updated_after=%s).",
            len(documents), user_id, self.get_engine_name(), len(persona_ids),
            updated_after.isoformat() if updated_after else None,
        )
        return documents

    async def do_fetch_documents_by_ids(self, doc_ids: list[str], private_owners: list[str] | None = None) -> list[Document]:
        """
        Fetches documents by id. Unknown ids are silently missing from the result.

        Args:
            doc_ids (list[str]): The document ids.
            private_owners (list[str] | None): User ids whose private documents may be among the ids.
                Private rows of any other user get an owner scope matching no user.

        Returns:
            list[Document]: The existing documents, in no particular order.

        Raises:
            StoreError: If the request fails or the response is malformed.
        """
        if not doc_ids:
            return []
        resp = await self.do_request(
            method="GET",
            endpoint=self._get_endpoint_documents(),
            params=self.get_documents_by_ids_params(doc_ids),
            raise_on_error=True,
        )
        documents = []
        for row in self._parse_rows(resp):
            document = self._parse_document(row, private_owners=private_owners or [])
            if document is not None:
                documents.append(document)
        return documents

    async def _fetch_paged(self, params_factory) -> list[dict]:
        """
        Lists all rows with keyset paging: each page starts strictly after the
        (updated_at, id) of the last row of the previous page. Rows edited while
        the listing runs move behind the cursor instead of shifting later rows
        out of the listing.

        Raises:
            StoreError: If a full page has no row usable as the next cursor.
        """
        rows: list[dict] = []
        page_size = self.page_size
        after: PageCursor | None = None
        while len(rows) < MAX_LIST_ROWS:
            resp = await self.do_request(
                method="GET",
                endpoint=self._get_endpoint_documents(),
                params=params_factory(after, page_size),
                raise_on_error=True,
            )
            page = self._parse_rows(resp)
            rows.extend(page)
            self.logging.debug("Fetched document page after %s from %s (%d rows).", after, self.get_engine_name(), len(page))
            if len(page) < page_size:
                break
            after = self._get_page_cursor(page)
        return rows

    def _get_page_cursor(self, page: list[dict]) -> PageCursor:
        for row in reversed(page):
            if row.get("id") and row.get("updated_at"):
                return PageCursor(updated_at=str(row["updated_at"]), id=str(row["id"]))
        raise StoreError(f"Cannot continue listing from {self.get_engine_name()}: no row of the page has an id and updated_at")

    ##########################################
    ############### PARSER ###################
    ##########################################

    def _parse_rows(self, resp) -> list[dict]:
        data = self.parse_json(resp)
        if not isinstance(data, list):
            raise StoreError(f"Malformed response from {self.get_engine_name()}: expected a list of rows")
        return [row for row in data if isinstance(row, dict)]

    def _parse_document(self, row: dict, private_owners: list[str]) -> Document | None:
        """
        Converts a raw row into a Document.

        Rows without an id or without a parseable updated_at cannot be placed on
        the sync cursor and are skipped with a warning.

        Args:
            row (dict): The raw row.
            private_owners (list[str]): User ids a private row may belong to.

        Returns:
            Document | None: The document, or None if the row was rejected.
        """
        doc_id = row.get("id")
        if not doc_id or not row.get("updated_at"):
            self.logging.warning("Skipping document row without id or updated_at: %r", doc_id)
            return None

        persona_id = row.get("persona_id") or None
        if persona_id:
            owner_scope = str(persona_id)
        else:
            owner = self.get_private_owner(row, private_owners)
            owner_scope = private_scope(owner) if owner else PRIVATE_SCOPE_PREFIX

        try:
            return Document(
                id=str(doc_id),
                owner_scope=owner_scope,
                persona_id=str(persona_id) if persona_id else None,
                title=row.get("title"),
                content=str(row.get("content") or ""),
                updated_at=row["updated_at"],
                is_folder=self.is_folder_row(row),
            )
        except ValidationError as exc:
            self.logging.warning("Skipping malformed document row '%s': %s", doc_id, exc)
            return None

    def is_folder_row(self, row: dict) -> bool:
        return bool(row.get("is_folder")) or "folder=1" in str(row.get("type") or "")
