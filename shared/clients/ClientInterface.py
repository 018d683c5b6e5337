from abc import ABC, abstractmethod
from typing import Any

import httpx
from httpx._types import QueryParamTypes, RequestContent

from shared.exceptions import ClientRequestError
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import EnvConfig


class ClientInterface(ABC):
    """
    Base of every backend client (embedding provider, chunk store, document store, watermark store).

    A client is identified by its type ("embed", "rag", "dms", "state") and its engine
    ("openai", "qdrant", "postgrest"). Engine settings are read from "<TYPE>_<ENGINE>_<KEY>"
    and the request timeout from "<TYPE>_TIMEOUT". Every failed request raises error_class.
    """

    error_class: type[ClientRequestError] = ClientRequestError

    def __init__(self, helper_config: HelperConfig):
        self.logging = helper_config.get_logger()
        self._helper_config = helper_config
        self.timeout = helper_config.get_number_val(f"{self.get_client_type().upper()}_TIMEOUT", default=30.0)
        self._client: httpx.AsyncClient | None = None

        # fail at construction, not at the first request
        for config in self._get_required_config():
            self.get_config_val(raw_key=config.env_key, default=config.default, val_type=config.val_type)

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ IDENTITY ##################
    def get_client_type(self) -> str:
        return self._get_client_type().lower()

    def get_engine_name(self) -> str:
        return self._get_engine_name().lower()

    def get_label(self) -> str:
        """Returns a short name for log lines, e.g. "rag/qdrant"."""
        return f"{self.get_client_type()}/{self.get_engine_name()}"

    @abstractmethod
    def _get_client_type(self) -> str:
        pass

    @abstractmethod
    def _get_engine_name(self) -> str:
        pass

    ################ CONFIG ##################
    @abstractmethod
    def _get_required_config(self) -> list[EnvConfig]:
        """
        Returns:
            list[EnvConfig]: The engine settings checked when the client is constructed.
        """
        pass

    def get_config_val(self, raw_key: str, default: Any = None, val_type: str = "string") -> Any:
        """
        Reads an engine setting, e.g. raw_key "BASE_URL" of the qdrant chunk store reads RAG_QDRANT_BASE_URL.

        Args:
            raw_key (str): Setting name without the type and engine prefix.
            default (Any): Returned when the setting is unset. None makes it required.
            val_type (str): One of "string", "number" or "bool".

        Raises:
            ValueError: If the setting is required but unset, or val_type is unknown.
        """
        key = f"{self.get_client_type()}_{self.get_engine_name()}_{raw_key}".upper()
        readers = {
            "string": self._helper_config.get_string_val,
            "number": self._helper_config.get_number_val,
            "bool": self._helper_config.get_bool_val,
        }
        if val_type not in readers:
            raise ValueError(f"Unsupported config value type '{val_type}' for setting '{key}' of {self.get_label()}.")
        return readers[val_type](key, default=default)

    ################ BACKEND ##################
    @abstractmethod
    def _get_auth_header(self) -> dict:
        """
        Returns:
            dict: Headers sent with every request. Empty when the backend needs no auth.
        """
        pass

    @abstractmethod
    def _get_base_url(self) -> str:
        pass

    @abstractmethod
    def _get_endpoint_healthcheck(self) -> str:
        pass

    ##########################################
    ############### LIFECYCLE ################
    ##########################################

    async def boot(self, transport: httpx.AsyncBaseTransport | None = None) -> None:
        """
        Opens the connection pool. Must be awaited before the first request.

        Args:
            transport (httpx.AsyncBaseTransport | None): Replaces the network transport, e.g. with httpx.MockTransport in tests.
        """
        self._client = httpx.AsyncClient(timeout=self.timeout, transport=transport)

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    async def do_healthcheck(self) -> httpx.Response:
        return await self.do_request(method="GET", endpoint=self._get_endpoint_healthcheck())

    ##########################################
    ############### REQUESTS #################
    ##########################################

    def _build_url(self, endpoint: str) -> str:
        endpoint = endpoint.strip().lstrip("/")
        base_url = self._get_base_url().rstrip("/")
        return f"{base_url}/{endpoint}" if endpoint else base_url

    async def do_request(
        self,
        method: str = "GET",
        content: RequestContent | None = None,
        json: Any = None,
        params: QueryParamTypes | None = None,
        endpoint: str = "",
        additional_headers: dict | None = None,
        raise_on_error: bool = False,
    ) -> httpx.Response:
        """
        Sends one request to the backend.

        Args:
            method (str): HTTP method.
            content (RequestContent | None): Raw body. Takes precedence over json.
            json (Any): Body serialized as JSON.
            params (QueryParamTypes | None): Query string parameters.
            endpoint (str): Path below the base URL.
            additional_headers (dict | None): Merged over the auth headers.
            raise_on_error (bool): Raise error_class for any non-2xx status.

        Returns:
            httpx.Response: The backend response.

        Raises:
            ClientRequestError: As error_class, if the client is not booted, the transport
                fails, or raise_on_error is set and the status is not 2xx.
        """
        if self._client is None:
            raise self.error_class(f"{self.get_label()} client is not booted.")

        url = self._build_url(endpoint)
        headers = {**self._get_auth_header(), **(additional_headers or {})}
        body: dict = {}
        if content is not None:
            body["content"] = content
        elif json is not None:
            body["json"] = json

        try:
            response = await self._client.request(method, url, headers=headers, params=params, timeout=self.timeout, **body)
        except httpx.HTTPError as exc:
            self.logging.error("%s %s to %s failed: %s", self.get_label(), method, url, exc)
            raise self.error_class(f"{method} {url} failed: {exc}") from exc

        if raise_on_error and not response.is_success:
            self.logging.error("%s %s to %s returned %d: %s", self.get_label(), method, url, response.status_code, response.text[:200])
            raise self.error_class(f"{method} {url} returned status {response.status_code}", status_code=response.status_code)

        return response

    def parse_json(self, response: httpx.Response) -> Any:
        """
        Raises:
            ClientRequestError: As error_class, if the body is not JSON.
        """
        try:
            return response.json()
        except ValueError as exc:
            raise self.error_class(f"Malformed response from {self.get_label()}: {exc}", status_code=response.status_code) from exc
