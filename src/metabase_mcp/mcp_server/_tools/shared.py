"""
Shared Utilities - Tool Response Envelope and Request Ids.

Provides internal helpers used across the tool modules:
- ToolResponse: the uniform result of every tool invocation
- Response builders for success (JSON text) and classified errors
- Per-invocation correlation ids for log records

This module contains helpers only; it registers no MCP handlers.
"""

import secrets
from dataclasses import dataclass, field
from typing import Any

from metabase_mcp._exceptions import McpError
from metabase_mcp.formatters import format_json_text

REQUEST_ID_BYTES = 4
"""int: Random bytes per request id. Ids are rendered as hex, so 4 bytes give 8 characters."""


@dataclass
class ToolResponse:
    """
    Result of one tool invocation.

    Attributes:
        content (list[dict[str, str]]): Text blocks, each `{"type": "text", "text": ...}`.
        is_error (bool): True when the invocation failed. The single text block then carries the error message.
    """

    content: list[dict[str, str]] = field(default_factory=list)
    is_error: bool = False

    @property
    def text(self) -> str:
        """Concatenated text of all content blocks."""
        return "".join(block["text"] for block in self.content)


def text_response(data: Any) -> ToolResponse:
    """Wrap an upstream payload as a successful response holding its pretty-printed JSON."""
    return ToolResponse(content=[{"type": "text", "text": format_json_text(data)}])


def error_response(error: McpError) -> ToolResponse:
    """
    Build the error envelope for a classified error.

    Args:
        error (McpError): The classified error.

    Returns:
        ToolResponse: `is_error=True` with one text block reading `Error [<code>]: <message>`.
    """
    return ToolResponse(
        content=[{"type": "text", "text": f"Error [{error.code.value}]: {error.message}"}],
        is_error=True,
    )


def generate_request_id() -> str:
    """Return a short random correlation id, e.g. `'9f2c01ab'`."""
    return secrets.token_hex(REQUEST_ID_BYTES)
