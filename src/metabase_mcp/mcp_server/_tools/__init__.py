"""
Metabase MCP Tools Package.

This package contains the tool and resource implementations served by the Metabase MCP server. The modules
are plain async functions over a shared MetabaseClient; the MCP protocol wiring lives in `mcp_server._mcp`.

Modules:
    registry: Static tool catalog (JSON schemas and pydantic argument models)
    handlers: One handler per tool, plus `dispatch_tool`
    resources: Resource listing, templates and reads for `metabase://` URIs
    shared: Tool response envelope and request ids (not MCP handlers)

All tools follow consistent patterns:
    - Return a ToolResponse; failures become `Error [<code>]: <message>` responses
    - Never raise exceptions to the MCP layer
    - Attach a per-invocation request id to every log record
"""
