"""Custom exception types for Metabase MCP.

Defines the error taxonomy shared by the credential layer, the upstream request client,
the tool handlers and the resource reader. Every exception carries an ``ErrorCode`` so that
the dispatch layer can render a uniform error envelope (tools) or a typed protocol error
(resources) without inspecting exception types itself.

Exception Hierarchy:
    - McpError (base, carries ``code``)
        - InternalError (also RuntimeError), code ``internal_error``
            - AuthenticationError
        - InvalidRequestError (also ValueError), code ``invalid_request``
        - InvalidParamsError (also ValueError), code ``invalid_params``
        - MethodNotFoundError, code ``method_not_found`` (reserved)
        - UpstreamApiError, code ``internal_error``
            - MalformedResponseError
        - ConfigurationError, code ``internal_error``

Usage Example:
    ```python
    from metabase_mcp._exceptions import UpstreamApiError, classify_exception

    try:
        dashboards = await client.list_dashboards()
    except UpstreamApiError as e:
        _LOGGER.warning(f"Metabase returned {e.status}: {e.detail}")
        raise classify_exception(e) from e
    ```
"""

from enum import Enum
from typing import Any

__all__ = [
    "ErrorCode",
    # Base exceptions
    "McpError",
    "InternalError",
    "AuthenticationError",
    # Request exceptions
    "InvalidRequestError",
    "InvalidParamsError",
    "MethodNotFoundError",
    # Upstream exceptions
    "UpstreamApiError",
    "MalformedResponseError",
    # Configuration exceptions
    "ConfigurationError",
    "classify_exception",
]


class ErrorCode(str, Enum):
    """Classified error codes embedded in tool error messages and protocol errors."""

    INTERNAL_ERROR = "internal_error"
    INVALID_REQUEST = "invalid_request"
    INVALID_PARAMS = "invalid_params"
    METHOD_NOT_FOUND = "method_not_found"


# Base Exceptions


class McpError(Exception):
    """Base exception for all Metabase MCP errors.

    Every subclass declares a default ``code``. The code can be overridden per instance,
    which lets ``classify_exception`` re-label an error without changing its type.

    Examples:
        ```python
        try:
            await dispatch()
        except McpError as e:
            _LOGGER.error(f"[{e.code.value}] {e}")
        ```
    """

    default_code: ErrorCode = ErrorCode.INTERNAL_ERROR

    def __init__(self, message: str, code: ErrorCode | None = None):
        """Initialize the error.

        Args:
            message (str): Human-readable error message.
            code (ErrorCode | None): Classified error code. Defaults to the class's ``default_code``.
        """
        super().__init__(message)
        self.message = message
        self.code: ErrorCode = code or self.default_code


class InternalError(McpError, RuntimeError):
    """Unexpected failure while serving a request.

    Used for unclassified upstream failures, authentication failures and bugs. Inherits from
    RuntimeError to emphasize that the caller did nothing wrong.
    """

    default_code = ErrorCode.INTERNAL_ERROR


class AuthenticationError(InternalError):
    """Raised when the session login against Metabase fails.

    The failure is not masked or retried: it propagates to the invoking handler and is
    reported as an internal error.
    """

    pass


# Request Exceptions


class InvalidRequestError(McpError, ValueError):
    """Raised for a malformed resource URI or an unrecognized tool name."""

    default_code = ErrorCode.INVALID_REQUEST


class InvalidParamsError(McpError, ValueError):
    """Raised when tool arguments or resource parameters are missing or mis-typed."""

    default_code = ErrorCode.INVALID_PARAMS


class MethodNotFoundError(McpError):
    """Reserved for protocol methods that are not implemented."""

    default_code = ErrorCode.METHOD_NOT_FOUND


# Upstream Exceptions


class UpstreamApiError(McpError):
    """Raised when Metabase answers with a non-success HTTP status.

    Attributes:
        status (int): HTTP status code. ``0`` when no response was received at all.
        reason (str): HTTP reason phrase (status text) or transport error description.
        body (Any): Parsed JSON error body, or ``{}`` when the body was empty or not JSON.
    """

    default_code = ErrorCode.INTERNAL_ERROR

    def __init__(self, status: int, reason: str, body: Any = None):
        self.status = status
        self.reason = reason
        self.body = body if body is not None else {}
        super().__init__(
            f"API request failed with status {status}: {reason}"
            if status
            else f"API request failed: {reason}"
        )

    @property
    def detail(self) -> str:
        """The most specific message available: the body's ``message`` field, else the reason."""
        if isinstance(self.body, dict):
            body_message = self.body.get("message")
            if body_message:
                return str(body_message)
        return self.reason or "Unknown error"


class MalformedResponseError(UpstreamApiError):
    """Raised when a successful Metabase response body cannot be parsed as JSON."""

    def __init__(self, status: int, reason: str, detail: str):
        super().__init__(status, reason, {"message": detail})


# Configuration Exceptions


class ConfigurationError(McpError):
    """Raised when the startup configuration is missing or inconsistent.

    Configuration errors abort startup before any request is served.
    """

    pass


def classify_exception(exc: BaseException) -> McpError:
    """Map any exception onto a classified ``McpError``.

    Args:
        exc (BaseException): The exception raised while serving a request.

    Returns:
        McpError: ``exc`` itself for already-classified request errors, an ``InternalError``
            wrapping the upstream detail for ``UpstreamApiError``, and an ``InternalError``
            naming the exception type for anything else.
    """
    if isinstance(exc, UpstreamApiError):
        return InternalError(f"Metabase API error: {exc.detail}")
    if isinstance(exc, McpError):
        return exc
    return InternalError(f"{type(exc).__name__}: {exc}")
