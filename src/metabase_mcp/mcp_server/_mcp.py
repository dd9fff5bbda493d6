"""
Metabase MCP Server - Protocol Wiring.

Defines the MCP `Server` instance and binds its protocol handlers to the tool and resource modules:

    - tools/list                 -> the static tool registry
    - tools/call                 -> `dispatch_tool` (error responses become `isError` results)
    - resources/list             -> dashboards as resources
    - resources/templates/list   -> the dashboard, card and database URI templates
    - resources/read             -> one dashboard, card or database as JSON

The server uses the low-level `mcp.server.Server` so that resources are listed dynamically and resource
failures surface as typed protocol errors. Input validation by the SDK is disabled for tools/call; arguments
are validated by the registry's pydantic models instead.

The application lifespan loads the configuration from the environment, builds the single MetabaseClient
shared by every request and closes it on shutdown. A configuration error aborts startup.
"""

import logging
from collections.abc import AsyncIterator, Iterable
from contextlib import asynccontextmanager
from typing import Any

import mcp.types as types
from mcp.server import Server
from mcp.server.lowlevel.helper_types import ReadResourceContents
from mcp.shared.exceptions import McpError as ProtocolError
from pydantic import AnyUrl

from metabase_mcp._exceptions import ErrorCode, McpError
from metabase_mcp.client import MetabaseClient
from metabase_mcp.config import load_config, redact_config

from ._tools import resources
from ._tools.handlers import dispatch_tool
from ._tools.registry import TOOL_DEFINITIONS

_LOGGER = logging.getLogger(__name__)

SERVER_NAME = "metabase-mcp-server"

JSONRPC_ERROR_CODES: dict[ErrorCode, int] = {
    ErrorCode.INTERNAL_ERROR: types.INTERNAL_ERROR,
    ErrorCode.INVALID_REQUEST: types.INVALID_REQUEST,
    ErrorCode.INVALID_PARAMS: types.INVALID_PARAMS,
    ErrorCode.METHOD_NOT_FOUND: types.METHOD_NOT_FOUND,
}
"""dict[ErrorCode, int]: JSON-RPC error code for each classified error code."""


@asynccontextmanager
async def app_lifespan(server: Server) -> AsyncIterator[dict[str, object]]:
    """
    Async context manager for the MCP server application lifespan.

    Startup:
      - Loads and validates the configuration from the environment (a ConfigurationError propagates and
        aborts startup).
      - Creates the MetabaseClient shared by every request.

    Shutdown:
      - Closes the HTTP client and logs the shutdown.

    Args:
        server (Server): The MCP server instance (required by the lifespan API).

    Yields:
        dict[str, object]: Context with 'metabase_client' (MetabaseClient).
    """
    _LOGGER.info(f"[mcp_server:app_lifespan] Starting MCP server '{server.name}'")
    config = load_config()
    client = MetabaseClient(config)
    _LOGGER.info(
        "[mcp_server:app_lifespan] Metabase client initialized",
        extra={"data": redact_config(config)},
    )
    try:
        yield {"metabase_client": client}
    finally:
        _LOGGER.info(f"[mcp_server:app_lifespan] Shutting down MCP server '{server.name}'")
        await client.aclose()
        _LOGGER.info(f"[mcp_server:app_lifespan] MCP server '{server.name}' shut down.")


mcp_server: Server = Server(SERVER_NAME, lifespan=app_lifespan)


def _client_from_context() -> MetabaseClient:
    return mcp_server.request_context.lifespan_context["metabase_client"]


def to_protocol_error(error: McpError) -> ProtocolError:
    """Convert a classified error into the SDK's protocol error carrying the matching JSON-RPC code."""
    return ProtocolError(
        types.ErrorData(code=JSONRPC_ERROR_CODES[error.code], message=error.message)
    )


@mcp_server.list_tools()
async def list_tools() -> list[types.Tool]:
    _LOGGER.info("[mcp_server:list_tools] Processing request to list available tools")
    return [
        types.Tool(
            name=definition.name,
            description=definition.description,
            inputSchema=definition.input_schema,
        )
        for definition in TOOL_DEFINITIONS
    ]


@mcp_server.call_tool(validate_input=False)
async def call_tool(name: str, arguments: dict[str, Any] | None) -> list[types.TextContent]:
    """
    Run a tool through `dispatch_tool`.

    Raises:
        McpError: Carrying the `Error [<code>]: <message>` text when the tool failed. The SDK renders any
            exception raised here as a result with `isError: true` and the exception text.
    """
    response = await dispatch_tool(_client_from_context(), name, arguments)
    if response.is_error:
        raise McpError(response.text)
    return [types.TextContent(type="text", text=block["text"]) for block in response.content]


@mcp_server.list_resources()
async def list_resources() -> list[types.Resource]:
    try:
        descriptors = await resources.list_resources(_client_from_context())
    except McpError as e:
        raise to_protocol_error(e) from e
    return [
        types.Resource(
            uri=AnyUrl(d["uri"]),
            name=d["name"],
            description=d["description"],
            mimeType=d["mimeType"],
        )
        for d in descriptors
    ]


@mcp_server.list_resource_templates()
async def list_resource_templates() -> list[types.ResourceTemplate]:
    return [
        types.ResourceTemplate(
            uriTemplate=t["uriTemplate"],
            name=t["name"],
            description=t["description"],
            mimeType=t["mimeType"],
        )
        for t in resources.list_resource_templates()
    ]


@mcp_server.read_resource()
async def read_resource(uri: AnyUrl) -> Iterable[ReadResourceContents]:
    try:
        result = await resources.read_resource(
            _client_from_context(), str(uri) if uri is not None else None
        )
    except McpError as e:
        raise to_protocol_error(e) from e
    return [
        ReadResourceContents(content=item["text"], mime_type=item["mimeType"])
        for item in result["contents"]
    ]
