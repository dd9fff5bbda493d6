"""
Credential management for the Metabase upstream.

The CredentialManager owns the one credential used by the process: either a fixed API key, or a session
token obtained lazily by logging in with the configured username and password. The token is cached for
the rest of the process lifetime; it is never refreshed, and a 401 from Metabase is surfaced to the caller
rather than triggering a new login.

No lock guards the login: two concurrent first calls may both log in, and whichever finishes last has its
token cached. Both tokens are valid.
"""

import logging
from collections.abc import Awaitable, Callable
from typing import Any

from metabase_mcp._exceptions import AuthenticationError
from metabase_mcp.config import AuthMethod, MetabaseConfig

_LOGGER = logging.getLogger(__name__)

API_KEY_HEADER = "X-API-KEY"
"""str: Request header carrying the API key in API-key mode."""

SESSION_HEADER = "X-Metabase-Session"
"""str: Request header carrying the session token in session mode."""

LoginFunc = Callable[[dict[str, str]], Awaitable[Any]]
"""Coroutine function performing the login call; receives the login body and returns the parsed response."""


class CredentialManager:
    """
    Holds and lazily establishes the upstream credential.

    Args:
        config (MetabaseConfig): Validated configuration; selects the auth method.
        login (LoginFunc): Coroutine function that posts the login body to Metabase's session endpoint and
            returns the parsed JSON response. Only called in session mode.

    Example:
        >>> manager = CredentialManager(config, login=client.login)
        >>> token = await manager.get_credential()
    """

    def __init__(self, config: MetabaseConfig, login: LoginFunc):
        self._config = config
        self._login = login
        self._auth_method = config.auth_method
        self._session_token: str | None = None

        if self._auth_method is AuthMethod.API_KEY:
            _LOGGER.info("[CredentialManager] Using API Key authentication method")
        else:
            _LOGGER.info("[CredentialManager] Using Session Token authentication method")

    @property
    def auth_method(self) -> AuthMethod:
        """The active authentication method."""
        return self._auth_method

    @property
    def has_session_token(self) -> bool:
        """True once a session token has been fetched and cached."""
        return self._session_token is not None

    async def get_credential(self) -> str:
        """
        Return a usable credential, logging in first if needed.

        Returns:
            str: The API key in API-key mode, otherwise the cached or freshly fetched session token.

        Raises:
            AuthenticationError: If the login call fails or its response carries no session id.
        """
        if self._auth_method is AuthMethod.API_KEY:
            return self._config.api_key  # type: ignore[return-value]

        if self._session_token is not None:
            return self._session_token

        _LOGGER.info(
            "[CredentialManager:get_credential] Initiating session token authentication with Metabase"
        )
        try:
            response = await self._login(
                {
                    "username": self._config.user_email or "",
                    "password": self._config.password or "",
                }
            )
        except Exception as e:
            _LOGGER.error(
                "[CredentialManager:get_credential] Authentication with Metabase failed",
                exc_info=True,
            )
            raise AuthenticationError("Failed to authenticate with Metabase") from e

        token = response.get("id") if isinstance(response, dict) else None
        if not token:
            _LOGGER.error(
                "[CredentialManager:get_credential] Login response did not contain a session id"
            )
            raise AuthenticationError("Failed to authenticate with Metabase")

        self._session_token = str(token)
        _LOGGER.info(
            "[CredentialManager:get_credential] Successfully authenticated and obtained session token"
        )
        return self._session_token

    async def auth_headers(self) -> dict[str, str]:
        """
        Return the single authentication header for the active method.

        Returns:
            dict[str, str]: `{"X-API-KEY": key}` or `{"X-Metabase-Session": token}`.

        Raises:
            AuthenticationError: If a session login is required and fails.
        """
        credential = await self.get_credential()
        if self._auth_method is AuthMethod.API_KEY:
            return {API_KEY_HEADER: credential}
        return {SESSION_HEADER: credential}
