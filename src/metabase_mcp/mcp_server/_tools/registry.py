"""
Tool Registry - Static Catalog of Metabase MCP Tools.

Each tool is described by a ToolDefinition pairing the JSON schema advertised through `tools/list` with a
pydantic model that validates and types the incoming arguments. The catalog is immutable and ordered; the
order is the order in which tools are listed to clients.

Tools:
    - list_dashboards, list_cards, list_databases: no arguments
    - execute_card: card_id (required), parameters
    - get_dashboard_cards: dashboard_id (required)
    - execute_query: database_id, query (required), native_parameters
    - get_database_schema: database_id (required)
    - get_postgres_performance_diagnostics: database_id (required), num_slow_queries, target_table_name
"""

from dataclasses import dataclass
from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, ValidationError

from metabase_mcp._exceptions import InvalidParamsError


def _whole_number(value: Any) -> Any:
    """Accept JSON numbers with no fractional part. Booleans and strings are rejected, not coerced."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError("must be a number")
    if isinstance(value, float) and not value.is_integer():
        raise ValueError("must be a whole number")
    return int(value)


EntityId = Annotated[int, BeforeValidator(_whole_number)]
"""Metabase object id: a JSON number with no fractional part."""


class ToolArguments(BaseModel):
    """Base class for tool argument models. Unknown keys are ignored."""

    model_config = ConfigDict(extra="ignore")


class NoArguments(ToolArguments):
    pass


class ExecuteCardArguments(ToolArguments):
    card_id: EntityId = Field(description="ID of the card/question to execute")
    parameters: dict[str, Any] | None = Field(
        default=None, description="Optional parameters for the query"
    )


class GetDashboardCardsArguments(ToolArguments):
    dashboard_id: EntityId = Field(description="ID of the dashboard")


class ExecuteQueryArguments(ToolArguments):
    database_id: EntityId = Field(description="ID of the database to query")
    query: str = Field(description="SQL query to execute")
    native_parameters: list[dict[str, Any]] | None = Field(
        default=None, description="Optional parameters for the query"
    )


class GetDatabaseSchemaArguments(ToolArguments):
    database_id: EntityId = Field(description="ID of the Metabase database to get schema for")


class PostgresDiagnosticsArguments(ToolArguments):
    database_id: EntityId = Field(
        description="ID of the PostgreSQL database in Metabase to diagnose"
    )
    # Optional fields accept any JSON value; the handler falls back to defaults for unusable values.
    num_slow_queries: Any = Field(
        default=None, description="Number of slowest queries to retrieve (default: 10)"
    )
    target_table_name: Any = Field(
        default=None,
        description="Specific table name to analyze for index usage and scan frequency",
    )


@dataclass(frozen=True)
class ToolDefinition:
    """
    One entry of the tool catalog.

    Attributes:
        name (str): Unique tool name.
        description (str): Human-readable description shown to clients.
        input_schema (dict[str, Any]): JSON schema advertised by `tools/list`.
        args_model (type[ToolArguments]): Pydantic model used to validate and type the arguments.
    """

    name: str
    description: str
    input_schema: dict[str, Any]
    args_model: type[ToolArguments]


def _schema(
    properties: dict[str, dict[str, Any]] | None = None,
    required: list[str] | None = None,
) -> dict[str, Any]:
    schema: dict[str, Any] = {"type": "object", "properties": properties or {}}
    if required:
        schema["required"] = required
    return schema


TOOL_DEFINITIONS: tuple[ToolDefinition, ...] = (
    ToolDefinition(
        name="list_dashboards",
        description="List all dashboards in Metabase",
        input_schema=_schema(),
        args_model=NoArguments,
    ),
    ToolDefinition(
        name="list_cards",
        description="List all questions/cards in Metabase",
        input_schema=_schema(),
        args_model=NoArguments,
    ),
    ToolDefinition(
        name="list_databases",
        description="List all databases in Metabase",
        input_schema=_schema(),
        args_model=NoArguments,
    ),
    ToolDefinition(
        name="execute_card",
        description="Execute a Metabase question/card and get results",
        input_schema=_schema(
            {
                "card_id": {
                    "type": "number",
                    "description": "ID of the card/question to execute",
                },
                "parameters": {
                    "type": "object",
                    "description": "Optional parameters for the query",
                },
            },
            required=["card_id"],
        ),
        args_model=ExecuteCardArguments,
    ),
    ToolDefinition(
        name="get_dashboard_cards",
        description="Get all cards in a dashboard",
        input_schema=_schema(
            {"dashboard_id": {"type": "number", "description": "ID of the dashboard"}},
            required=["dashboard_id"],
        ),
        args_model=GetDashboardCardsArguments,
    ),
    ToolDefinition(
        name="execute_query",
        description="Execute a SQL query against a Metabase database",
        input_schema=_schema(
            {
                "database_id": {
                    "type": "number",
                    "description": "ID of the database to query",
                },
                "query": {"type": "string", "description": "SQL query to execute"},
                "native_parameters": {
                    "type": "array",
                    "description": "Optional parameters for the query",
                    "items": {"type": "object"},
                },
            },
            required=["database_id", "query"],
        ),
        args_model=ExecuteQueryArguments,
    ),
    ToolDefinition(
        name="get_database_schema",
        description=(
            "Get the schema of a specific database (tables, columns, types) connected to Metabase."
        ),
        input_schema=_schema(
            {
                "database_id": {
                    "type": "number",
                    "description": "ID of the Metabase database to get schema for",
                }
            },
            required=["database_id"],
        ),
        args_model=GetDatabaseSchemaArguments,
    ),
    ToolDefinition(
        name="get_postgres_performance_diagnostics",
        description=(
            "Get performance diagnostics for a PostgreSQL database from Metabase "
            "(e.g., slow queries, index usage)."
        ),
        input_schema=_schema(
            {
                "database_id": {
                    "type": "number",
                    "description": "ID of the PostgreSQL database in Metabase to diagnose",
                },
                "num_slow_queries": {
                    "type": "number",
                    "description": "Number of slowest queries to retrieve (default: 10)",
                },
                "target_table_name": {
                    "type": "string",
                    "description": "Specific table name to analyze for index usage and scan frequency",
                },
            },
            required=["database_id"],
        ),
        args_model=PostgresDiagnosticsArguments,
    ),
)

_TOOLS_BY_NAME: dict[str, ToolDefinition] = {t.name: t for t in TOOL_DEFINITIONS}


def get_tool_definition(name: str) -> ToolDefinition | None:
    """Return the definition registered under `name`, or None if no such tool exists."""
    return _TOOLS_BY_NAME.get(name)


def _format_validation_error(error: ValidationError) -> str:
    parts = []
    for err in error.errors():
        loc = ".".join(str(p) for p in err["loc"]) or "arguments"
        parts.append(f"{loc}: {err['msg']}")
    return "; ".join(parts)


def validate_arguments(
    definition: ToolDefinition, arguments: dict[str, Any] | None
) -> ToolArguments:
    """
    Validate raw tool arguments against the tool's argument model.

    Args:
        definition (ToolDefinition): The tool being invoked.
        arguments (dict[str, Any] | None): Untyped arguments from the client. None is treated as `{}`.

    Returns:
        ToolArguments: An instance of `definition.args_model`.

    Raises:
        InvalidParamsError: If validation fails. The message names every failing field and the violated
            constraint, e.g. `Invalid arguments for tool 'execute_card': card_id: Field required`.
    """
    try:
        return definition.args_model.model_validate(arguments or {})
    except ValidationError as e:
        raise InvalidParamsError(
            f"Invalid arguments for tool '{definition.name}': {_format_validation_error(e)}"
        ) from e
