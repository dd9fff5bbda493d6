"""
Tool Handlers - Metabase Tool Implementations and Dispatch.

One handler per registered tool. Every handler receives the shared MetabaseClient, the validated argument
model and the invocation's request id, performs its upstream call(s) and returns a ToolResponse holding the
pretty-printed JSON result.

`dispatch_tool` is the single entry point used by the MCP front. It resolves the tool, validates the
arguments, runs the handler and converts any exception into a classified error response, so raw exceptions
never reach the transport.
"""

import logging
import math
from collections.abc import Awaitable, Callable
from typing import Any

from metabase_mcp._exceptions import InvalidRequestError, classify_exception
from metabase_mcp.client import MetabaseClient
from metabase_mcp.diagnostics import (
    DEFAULT_NUM_SLOW_QUERIES,
    fetch_postgres_diagnostics,
)

from .registry import (
    ExecuteCardArguments,
    ExecuteQueryArguments,
    GetDashboardCardsArguments,
    GetDatabaseSchemaArguments,
    PostgresDiagnosticsArguments,
    ToolArguments,
    get_tool_definition,
    validate_arguments,
)
from .shared import ToolResponse, error_response, generate_request_id, text_response

_LOGGER = logging.getLogger(__name__)

ToolHandler = Callable[[MetabaseClient, Any, str], Awaitable[ToolResponse]]


def _count(payload: Any) -> int:
    """Count listed items; `GET /api/database` wraps its list as `{"data": [...]}`."""
    if isinstance(payload, dict):
        payload = payload.get("data")
    return len(payload) if isinstance(payload, list) else 0


async def list_dashboards(
    client: MetabaseClient, args: ToolArguments, request_id: str
) -> ToolResponse:
    """List all dashboards. Returns the raw `GET /api/dashboard` array."""
    _LOGGER.debug(
        "[tools:list_dashboards] Fetching all dashboards from Metabase",
        extra={"data": {"request_id": request_id}},
    )
    response = await client.list_dashboards()
    _LOGGER.info(
        f"[tools:list_dashboards] Successfully retrieved {_count(response)} dashboards",
        extra={"data": {"request_id": request_id}},
    )
    return text_response(response)


async def list_cards(
    client: MetabaseClient, args: ToolArguments, request_id: str
) -> ToolResponse:
    """List all questions/cards. Returns the raw `GET /api/card` array."""
    _LOGGER.debug(
        "[tools:list_cards] Fetching all cards/questions from Metabase",
        extra={"data": {"request_id": request_id}},
    )
    response = await client.list_cards()
    _LOGGER.info(
        f"[tools:list_cards] Successfully retrieved {_count(response)} cards/questions",
        extra={"data": {"request_id": request_id}},
    )
    return text_response(response)


async def list_databases(
    client: MetabaseClient, args: ToolArguments, request_id: str
) -> ToolResponse:
    _LOGGER.debug(
        "[tools:list_databases] Fetching all databases from Metabase",
        extra={"data": {"request_id": request_id}},
    )
    response = await client.list_databases()
    _LOGGER.info(
        f"[tools:list_databases] Successfully retrieved {_count(response)} databases",
        extra={"data": {"request_id": request_id}},
    )
    return text_response(response)


async def execute_card(
    client: MetabaseClient, args: ExecuteCardArguments, request_id: str
) -> ToolResponse:
    """
    Execute a saved question/card.

    Posts `{"parameters": parameters or {}}` to `/api/card/{card_id}/query` and returns the raw result.
    """
    _LOGGER.debug(
        f"[tools:execute_card] Executing card with ID: {args.card_id}",
        extra={"data": {"request_id": request_id}},
    )
    response = await client.execute_card(args.card_id, args.parameters)
    _LOGGER.info(
        f"[tools:execute_card] Successfully executed card: {args.card_id}",
        extra={"data": {"request_id": request_id}},
    )
    return text_response(response)


async def get_dashboard_cards(
    client: MetabaseClient, args: GetDashboardCardsArguments, request_id: str
) -> ToolResponse:
    """
    Fetch one dashboard and return only its `cards` field.

    A dashboard payload without `cards` yields the JSON text `null`.
    """
    _LOGGER.debug(
        f"[tools:get_dashboard_cards] Fetching cards for dashboard with ID: {args.dashboard_id}",
        extra={"data": {"request_id": request_id}},
    )
    response = await client.get_dashboard(args.dashboard_id)
    cards = response.get("cards") if isinstance(response, dict) else None
    _LOGGER.info(
        f"[tools:get_dashboard_cards] Successfully retrieved {_count(cards)} cards "
        f"from dashboard: {args.dashboard_id}",
        extra={"data": {"request_id": request_id}},
    )
    return text_response(cards)


async def execute_query(
    client: MetabaseClient, args: ExecuteQueryArguments, request_id: str
) -> ToolResponse:
    _LOGGER.debug(
        f"[tools:execute_query] Executing SQL query against database ID: {args.database_id}",
        extra={"data": {"request_id": request_id}},
    )
    response = await client.run_native_query(
        args.database_id, args.query, args.native_parameters or []
    )
    _LOGGER.info(
        f"[tools:execute_query] Successfully executed SQL query against database: {args.database_id}",
        extra={"data": {"request_id": request_id}},
    )
    return text_response(response)


async def get_database_schema(
    client: MetabaseClient, args: GetDatabaseSchemaArguments, request_id: str
) -> ToolResponse:
    """Return the tables, columns and types of one database (`GET /api/database/{id}/metadata`)."""
    _LOGGER.debug(
        f"[tools:get_database_schema] Fetching schema for database ID: {args.database_id}",
        extra={"data": {"request_id": request_id}},
    )
    response = await client.get_database_metadata(args.database_id)
    _LOGGER.info(
        f"[tools:get_database_schema] Successfully retrieved schema for database ID: {args.database_id}",
        extra={"data": {"request_id": request_id}},
    )
    return text_response(response)


def normalize_num_slow_queries(value: Any, request_id: str | None = None) -> int:
    """
    Turn the client-supplied `num_slow_queries` into a positive count.

    Args:
        value (Any): The raw argument. None means absent.
        request_id (str | None): Correlation id for the warning record.

    Returns:
        int: `value` truncated to an int when it is a positive finite number, else DEFAULT_NUM_SLOW_QUERIES.
            Strings, booleans and non-positive numbers fall back to the default with a WARNING.
    """
    if value is None:
        return DEFAULT_NUM_SLOW_QUERIES
    # bool is a subclass of int and must not count as a number here
    if (
        isinstance(value, bool)
        or not isinstance(value, (int, float))
        or not math.isfinite(value)
        or value <= 0
    ):
        _LOGGER.warning(
            "[tools:get_postgres_performance_diagnostics] Invalid num_slow_queries parameter, using default "
            f"{DEFAULT_NUM_SLOW_QUERIES}",
            extra={"data": {"request_id": request_id, "num_slow_queries_provided": value}},
        )
        return DEFAULT_NUM_SLOW_QUERIES
    return max(int(value), 1)


def normalize_target_table_name(value: Any, request_id: str | None = None) -> str | None:
    """Return `value` if it is a non-blank string. Anything else is ignored with a WARNING."""
    if value is None:
        return None
    if isinstance(value, str) and value.strip():
        return value
    _LOGGER.warning(
        "[tools:get_postgres_performance_diagnostics] Invalid target_table_name parameter "
        "(e.g., empty or not a string), will be ignored.",
        extra={"data": {"request_id": request_id, "target_table_name_provided": value}},
    )
    return None


async def get_postgres_performance_diagnostics(
    client: MetabaseClient, args: PostgresDiagnosticsArguments, request_id: str
) -> ToolResponse:
    """
    Build the PostgreSQL diagnostics report for one database.

    Sub-query failures are reported inside the report, so this tool succeeds even when every diagnostic
    query fails upstream.
    """
    num_slow_queries = normalize_num_slow_queries(args.num_slow_queries, request_id)
    target_table_name = normalize_target_table_name(args.target_table_name, request_id)

    _LOGGER.debug(
        "[tools:get_postgres_performance_diagnostics] Fetching PostgreSQL performance diagnostics",
        extra={
            "data": {
                "request_id": request_id,
                "database_id": args.database_id,
                "num_slow_queries": num_slow_queries,
                "target_table_name": target_table_name,
            }
        },
    )
    report = await fetch_postgres_diagnostics(
        client,
        args.database_id,
        num_slow_queries,
        target_table_name,
        request_id=request_id,
    )
    return text_response(report)


TOOL_HANDLERS: dict[str, ToolHandler] = {
    "list_dashboards": list_dashboards,
    "list_cards": list_cards,
    "list_databases": list_databases,
    "execute_card": execute_card,
    "get_dashboard_cards": get_dashboard_cards,
    "execute_query": execute_query,
    "get_database_schema": get_database_schema,
    "get_postgres_performance_diagnostics": get_postgres_performance_diagnostics,
}


async def dispatch_tool(
    client: MetabaseClient, name: str, arguments: dict[str, Any] | None
) -> ToolResponse:
    """
    Run one tool invocation end to end.

    Args:
        client (MetabaseClient): The shared upstream client.
        name (str): Tool name from the `tools/call` request.
        arguments (dict[str, Any] | None): Untyped arguments from the request.

    Returns:
        ToolResponse: The handler's response on success. On any failure, an error response whose text reads
            `Error [<code>]: <message>`:
            - unknown tool name: `invalid_request`
            - argument validation failure: `invalid_params`, naming the failing fields
            - upstream failure: `internal_error` with `Metabase API error: <detail>`
            - anything else: `internal_error` naming the exception type
    """
    request_id = generate_request_id()
    _LOGGER.info(
        f"[tools:dispatch_tool] Processing tool execution request: {name}",
        extra={"data": {"request_id": request_id, "tool": name, "arguments": arguments}},
    )

    try:
        definition = get_tool_definition(name)
        handler = TOOL_HANDLERS.get(name)
        if definition is None or handler is None:
            _LOGGER.warning(
                f"[tools:dispatch_tool] Received request for unknown tool: {name}",
                extra={"data": {"request_id": request_id}},
            )
            raise InvalidRequestError(f"Unknown tool: {name}")

        args = validate_arguments(definition, arguments)
        return await handler(client, args, request_id)
    except Exception as e:
        error = classify_exception(e)
        _LOGGER.error(
            f"[tools:dispatch_tool] Tool execution failed: {error.message}",
            exc_info=error is not e,
            extra={"data": {"request_id": request_id, "tool": name, "code": error.code.value}},
        )
        return error_response(error)
