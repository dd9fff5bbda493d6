"""
Metabase MCP configuration management.

This module loads and validates the server configuration from environment variables. Configuration is read
once, at startup; a missing base URL or missing credentials is a fatal ConfigurationError that aborts the
server before any request is handled.

Environment Variables:
---------------------
- `METABASE_URL` (required): Base URL of the Metabase instance, e.g. `https://metabase.example.com`.
- `METABASE_API_KEY` (optional): API key. When set, API-key authentication is used and no login call is
  ever made.
- `METABASE_USER_EMAIL` / `METABASE_PASSWORD` (optional): Login credentials for session authentication.
  Both are required when `METABASE_API_KEY` is not set.
- `LOG_LEVEL` (optional): Log verbosity, see `metabase_mcp._logging`.

Validation rules:
  - Values are stripped of surrounding whitespace; empty values count as absent.
  - `METABASE_URL` must be present and use the http or https scheme.
  - Either `METABASE_API_KEY`, or both `METABASE_USER_EMAIL` and `METABASE_PASSWORD`, must be present.
  - If both an API key and login credentials are present, the API key takes precedence.

Security:
---------
- API keys and passwords are never logged; use `redact_config` before logging a configuration.

Usage:
    >>> config = load_config()
    >>> config.auth_method
    <AuthMethod.API_KEY: 'api_key'>
"""

__all__ = [
    "AuthMethod",
    "ConfigurationError",
    "MetabaseConfig",
    "URL_ENV_VAR",
    "API_KEY_ENV_VAR",
    "USER_EMAIL_ENV_VAR",
    "PASSWORD_ENV_VAR",
    "load_config",
    "redact_config",
]

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any
from urllib.parse import urlparse

from metabase_mcp._exceptions import ConfigurationError

_LOGGER = logging.getLogger(__name__)

URL_ENV_VAR = "METABASE_URL"
"""str: Environment variable holding the Metabase base URL."""
API_KEY_ENV_VAR = "METABASE_API_KEY"
"""str: Environment variable holding the Metabase API key."""
USER_EMAIL_ENV_VAR = "METABASE_USER_EMAIL"
"""str: Environment variable holding the login username (email)."""
PASSWORD_ENV_VAR = "METABASE_PASSWORD"
"""str: Environment variable holding the login password."""

_REDACTED = "[REDACTED]"


class AuthMethod(str, Enum):
    """Authentication scheme used against Metabase. Exactly one is active per process."""

    SESSION = "session"
    API_KEY = "api_key"


@dataclass(frozen=True)
class MetabaseConfig:
    """
    Validated, immutable server configuration.

    Attributes:
        url (str): Base URL of the Metabase instance.
        api_key (str | None): API key, if API-key authentication is configured.
        user_email (str | None): Login username for session authentication.
        password (str | None): Login password for session authentication.
    """

    url: str
    api_key: str | None = field(default=None, repr=False)
    user_email: str | None = None
    password: str | None = field(default=None, repr=False)

    @property
    def auth_method(self) -> AuthMethod:
        """The active authentication method; an API key takes precedence over login credentials."""
        return AuthMethod.API_KEY if self.api_key else AuthMethod.SESSION


def _read(environ: Mapping[str, str], name: str) -> str | None:
    value = environ.get(name)
    if value is None:
        return None
    value = value.strip()
    return value or None


def load_config(environ: Mapping[str, str] | None = None) -> MetabaseConfig:
    """
    Load and validate the configuration from environment variables.

    Args:
        environ (Mapping[str, str] | None): Environment to read. Defaults to `os.environ`.

    Returns:
        MetabaseConfig: The validated configuration.

    Raises:
        ConfigurationError: If the base URL is missing or invalid, or if neither an API key nor both login
            credentials are configured.
    """
    if environ is None:
        environ = os.environ

    url = _read(environ, URL_ENV_VAR)
    api_key = _read(environ, API_KEY_ENV_VAR)
    user_email = _read(environ, USER_EMAIL_ENV_VAR)
    password = _read(environ, PASSWORD_ENV_VAR)

    if not url or (not api_key and (not user_email or not password)):
        missing = []
        if not url:
            missing.append(URL_ENV_VAR)
        if not api_key and not user_email:
            missing.append(USER_EMAIL_ENV_VAR)
        if not api_key and not password:
            missing.append(PASSWORD_ENV_VAR)
        message = (
            f"{URL_ENV_VAR} is required, and either {API_KEY_ENV_VAR} or both "
            f"{USER_EMAIL_ENV_VAR} and {PASSWORD_ENV_VAR} must be provided "
            f"(missing: {', '.join(missing)})"
        )
        _LOGGER.error(f"[config:load_config] {message}")
        raise ConfigurationError(message)

    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        message = f"{URL_ENV_VAR} must be an http(s) URL, got: {url!r}"
        _LOGGER.error(f"[config:load_config] {message}")
        raise ConfigurationError(message)

    config = MetabaseConfig(
        url=url,
        api_key=api_key,
        user_email=user_email,
        password=password,
    )
    _LOGGER.info(
        "[config:load_config] Configuration loaded",
        extra={"data": redact_config(config)},
    )
    return config


def redact_config(config: MetabaseConfig) -> dict[str, Any]:
    """
    Return a loggable dict view of the configuration with secrets redacted.

    Args:
        config (MetabaseConfig): The configuration to redact.

    Returns:
        dict[str, Any]: Dict with `url`, `auth_method`, `user_email`, and the API key and password replaced by
            a redaction marker when present.
    """
    return {
        "url": config.url,
        "auth_method": config.auth_method.value,
        "api_key": _REDACTED if config.api_key else None,
        "user_email": config.user_email,
        "password": _REDACTED if config.password else None,
    }
