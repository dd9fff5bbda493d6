"""
Asynchronous Metabase REST client.

MetabaseClient issues one HTTP call per `request()` against the configured Metabase base URL, attaching the
JSON content type and the authentication header supplied by its CredentialManager. Non-success responses are
raised as UpstreamApiError carrying the HTTP status, status text and parsed error body; success bodies that
are not JSON are raised as MalformedResponseError.

The client wraps a single `httpx.AsyncClient` for the lifetime of the process. There are no retries and no
timeout overrides beyond the httpx defaults.

Example:
    async with MetabaseClient(load_config()) as client:
        dashboards = await client.list_dashboards()
"""

import json
import logging
from types import TracebackType
from typing import Any

import httpx

from metabase_mcp._exceptions import MalformedResponseError, UpstreamApiError
from metabase_mcp.config import AuthMethod, MetabaseConfig

from ._credentials import CredentialManager

_LOGGER = logging.getLogger(__name__)

SESSION_PATH = "/api/session"
DATASET_PATH = "/api/dataset"


class MetabaseClient:
    """
    Upstream request client for the Metabase REST API.

    Args:
        config (MetabaseConfig): Validated configuration (base URL and credentials).
        http_client (httpx.AsyncClient | None): Optional pre-built client, e.g. one using `httpx.MockTransport`
            in tests. When omitted, a client is created with the httpx default timeout.

    Attributes:
        credentials (CredentialManager): The credential manager owning the API key or session token.
    """

    def __init__(
        self, config: MetabaseConfig, http_client: httpx.AsyncClient | None = None
    ):
        self._config = config
        self._base_url = config.url.rstrip("/") + "/"
        self._http = http_client or httpx.AsyncClient()
        self.credentials = CredentialManager(config, login=self.login)

    @property
    def base_url(self) -> str:
        return self._base_url

    @property
    def auth_method(self) -> AuthMethod:
        return self.credentials.auth_method

    async def __aenter__(self) -> "MetabaseClient":
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        await self._http.aclose()
        _LOGGER.debug("[MetabaseClient:aclose] HTTP client closed")

    def _url(self, path: str) -> str:
        return self._base_url + path.lstrip("/")

    async def _send(
        self,
        path: str,
        method: str,
        body: Any,
        headers: dict[str, str],
    ) -> Any:
        url = self._url(path)
        _LOGGER.debug(f"[MetabaseClient] Making request to {method} {url}")
        try:
            response = await self._http.request(
                method,
                url,
                headers={"Content-Type": "application/json", **headers},
                content=json.dumps(body) if body is not None else None,
            )
        except httpx.HTTPError as e:
            _LOGGER.warning(f"[MetabaseClient] Request to {path} failed: {e!r}")
            raise UpstreamApiError(0, str(e) or type(e).__name__) from e

        if not response.is_success:
            try:
                error_data = response.json()
            except ValueError:
                error_data = {}
            _LOGGER.warning(
                f"[MetabaseClient] API request failed with status {response.status_code}: {response.reason_phrase}",
                extra={"data": error_data},
            )
            raise UpstreamApiError(response.status_code, response.reason_phrase, error_data)

        _LOGGER.debug(f"[MetabaseClient] Received successful response from {path}")
        try:
            return response.json()
        except ValueError as e:
            _LOGGER.warning(f"[MetabaseClient] Response from {path} is not valid JSON: {e}")
            raise MalformedResponseError(
                response.status_code,
                response.reason_phrase,
                f"Response from {path} is not valid JSON",
            ) from e

    async def login(self, credentials: dict[str, str]) -> Any:
        """
        Post login credentials to Metabase's session endpoint without any auth header.

        Args:
            credentials (dict[str, str]): Body with `username` and `password`.

        Returns:
            Any: The parsed response, expected to contain the session `id`.
        """
        return await self._send(SESSION_PATH, "POST", credentials, {})

    async def request(self, path: str, method: str = "GET", body: Any = None) -> Any:
        """
        Issue one authenticated call against the Metabase API.

        Args:
            path (str): API path relative to the base URL, e.g. `/api/dashboard`.
            method (str): HTTP method. Defaults to GET.
            body (Any): Optional JSON-serializable request body.

        Returns:
            Any: The parsed JSON response body.

        Raises:
            AuthenticationError: If a session login is needed and fails.
            UpstreamApiError: On a non-success status or a transport failure.
            MalformedResponseError: If a success response is not valid JSON.
        """
        headers = await self.credentials.auth_headers()
        return await self._send(path, method, body, headers)

    # Endpoint helpers

    async def list_dashboards(self) -> Any:
        return await self.request("/api/dashboard")

    async def get_dashboard(self, dashboard_id: int) -> Any:
        return await self.request(f"/api/dashboard/{dashboard_id}")

    async def list_cards(self) -> Any:
        return await self.request("/api/card")

    async def get_card(self, card_id: int) -> Any:
        return await self.request(f"/api/card/{card_id}")

    async def execute_card(
        self, card_id: int, parameters: dict[str, Any] | None = None
    ) -> Any:
        return await self.request(
            f"/api/card/{card_id}/query",
            method="POST",
            body={"parameters": parameters or {}},
        )

    async def list_databases(self) -> Any:
        return await self.request("/api/database")

    async def get_database(self, database_id: int) -> Any:
        return await self.request(f"/api/database/{database_id}")

    async def get_database_metadata(self, database_id: int) -> Any:
        return await self.request(f"/api/database/{database_id}/metadata")

    async def run_native_query(
        self,
        database_id: int,
        query: str,
        parameters: list[dict[str, Any]] | None = None,
    ) -> Any:
        """
        Execute a native (SQL) query through Metabase's dataset endpoint.

        Args:
            database_id (int): Metabase id of the database to query.
            query (str): The SQL text.
            parameters (list[dict[str, Any]] | None): Optional native query parameters.

        Returns:
            Any: The raw dataset response. Query-level failures are reported by Metabase inside the body
                (`status: "failed"`, `error`), not as an HTTP error.
        """
        payload: dict[str, Any] = {
            "type": "native",
            "native": {"query": query},
            "database": database_id,
        }
        if parameters is not None:
            payload["parameters"] = parameters
        return await self.request(DATASET_PATH, method="POST", body=payload)
