"""
Resource Reader - Metabase Dashboards, Cards and Databases as MCP Resources.

Resources are addressed by URIs of the form `metabase://{dashboard|card|database}/{id}`. Dashboards are
listed as concrete resources; cards and databases are reachable through the advertised URI templates.

All functions raise classified McpError subclasses, which the MCP front turns into protocol errors:
    - InvalidParamsError: the URI is missing
    - InvalidRequestError: the URI does not match a supported pattern
    - InternalError: Metabase failed to answer
"""

import logging
import re
from typing import Any

from metabase_mcp._exceptions import (
    InternalError,
    InvalidParamsError,
    InvalidRequestError,
    McpError,
    classify_exception,
)
from metabase_mcp.client import MetabaseClient
from metabase_mcp.formatters import format_json_text

from .shared import generate_request_id

_LOGGER = logging.getLogger(__name__)

RESOURCE_MIME_TYPE = "application/json"

RESOURCE_URI_PATTERN = re.compile(r"^metabase://(dashboard|card|database)/(\d+)$")
"""re.Pattern: Matches a resource URI, capturing the resource kind and its integer id."""

RESOURCE_TEMPLATES: tuple[dict[str, str], ...] = (
    {
        "uriTemplate": "metabase://dashboard/{id}",
        "name": "Dashboard by ID",
        "mimeType": RESOURCE_MIME_TYPE,
        "description": "Get a Metabase dashboard by its ID",
    },
    {
        "uriTemplate": "metabase://card/{id}",
        "name": "Card by ID",
        "mimeType": RESOURCE_MIME_TYPE,
        "description": "Get a Metabase question/card by its ID",
    },
    {
        "uriTemplate": "metabase://database/{id}",
        "name": "Database by ID",
        "mimeType": RESOURCE_MIME_TYPE,
        "description": "Get a Metabase database by its ID",
    },
)


async def list_resources(client: MetabaseClient) -> list[dict[str, Any]]:
    """
    List every dashboard as a resource descriptor.

    Returns:
        list[dict[str, Any]]: One `{uri, mimeType, name, description}` entry per dashboard.

    Raises:
        InternalError: `Failed to retrieve Metabase resources` on any upstream failure.
    """
    request_id = generate_request_id()
    _LOGGER.info(
        "[resources:list_resources] Processing request to list resources",
        extra={"data": {"request_id": request_id}},
    )
    try:
        dashboards = await client.list_dashboards()
    except Exception as e:
        _LOGGER.error(
            "[resources:list_resources] Failed to retrieve dashboards from Metabase",
            exc_info=True,
            extra={"data": {"request_id": request_id}},
        )
        raise InternalError("Failed to retrieve Metabase resources") from e

    dashboards = dashboards if isinstance(dashboards, list) else []
    _LOGGER.info(
        f"[resources:list_resources] Successfully retrieved {len(dashboards)} dashboards from Metabase",
        extra={"data": {"request_id": request_id}},
    )
    return [
        {
            "uri": f"metabase://dashboard/{dashboard.get('id')}",
            "mimeType": RESOURCE_MIME_TYPE,
            "name": str(dashboard.get("name", "")),
            "description": f"Metabase dashboard: {dashboard.get('name', '')}",
        }
        for dashboard in dashboards
        if isinstance(dashboard, dict)
    ]


def list_resource_templates() -> list[dict[str, str]]:
    """Return the three static resource templates. No upstream call is made."""
    _LOGGER.info("[resources:list_resource_templates] Processing request to list resource templates")
    return [dict(template) for template in RESOURCE_TEMPLATES]


def parse_resource_uri(uri: str) -> tuple[str, int]:
    """
    Split a resource URI into its kind and id.

    Raises:
        InvalidRequestError: If the URI does not match `metabase://{dashboard|card|database}/{id}`.
    """
    match = RESOURCE_URI_PATTERN.match(uri)
    if not match:
        raise InvalidRequestError(f"Invalid URI format: {uri}")
    return match.group(1), int(match.group(2))


async def read_resource(client: MetabaseClient, uri: str | None) -> dict[str, Any]:
    """
    Fetch the Metabase object addressed by a resource URI.

    Args:
        client (MetabaseClient): The shared upstream client.
        uri (str | None): A `metabase://dashboard/{id}`, `metabase://card/{id}` or `metabase://database/{id}` URI.

    Returns:
        dict[str, Any]: `{"contents": [{"uri": uri, "mimeType": "application/json", "text": <pretty JSON>}]}`.

    Raises:
        InvalidParamsError: If `uri` is missing or empty.
        InvalidRequestError: If `uri` matches no supported pattern.
        InternalError: `Metabase API error: <detail>` if Metabase fails.
    """
    request_id = generate_request_id()
    _LOGGER.info(
        "[resources:read_resource] Processing request to read resource",
        extra={"data": {"request_id": request_id, "uri": uri}},
    )

    if not uri:
        _LOGGER.warning(
            "[resources:read_resource] Missing URI parameter in resource request",
            extra={"data": {"request_id": request_id}},
        )
        raise InvalidParamsError("URI parameter is required")

    try:
        kind, resource_id = parse_resource_uri(uri)
    except InvalidRequestError:
        _LOGGER.warning(
            f"[resources:read_resource] Invalid URI format: {uri}",
            extra={"data": {"request_id": request_id}},
        )
        raise

    fetchers = {
        "dashboard": client.get_dashboard,
        "card": client.get_card,
        "database": client.get_database,
    }
    _LOGGER.debug(
        f"[resources:read_resource] Fetching {kind} with ID: {resource_id}",
        extra={"data": {"request_id": request_id}},
    )
    try:
        response = await fetchers[kind](resource_id)
    except Exception as e:
        error: McpError = classify_exception(e)
        _LOGGER.error(
            f"[resources:read_resource] Failed to fetch Metabase resource: {error.message}",
            exc_info=True,
            extra={"data": {"request_id": request_id, "uri": uri}},
        )
        if not isinstance(error, InternalError):
            error = InternalError(error.message)
        raise error from e

    name = response.get("name") if isinstance(response, dict) else None
    _LOGGER.info(
        f"[resources:read_resource] Successfully retrieved {kind}: {name or resource_id}",
        extra={"data": {"request_id": request_id}},
    )
    return {
        "contents": [
            {"uri": uri, "mimeType": RESOURCE_MIME_TYPE, "text": format_json_text(response)}
        ]
    }
