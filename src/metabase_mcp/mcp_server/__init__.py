"""
metabase_mcp.mcp_server package.

This package provides the Metabase MCP server: the MCP `Server` instance (`mcp_server`), its lifespan and
protocol handlers (in the internal module `_mcp.py`), and the tool and resource implementations (in
`_tools`).

Exports:
    - mcp_server: The MCP server instance with all handlers registered.
    - run_server: Coroutine serving the MCP protocol over stdio until the client disconnects.

Usage:
    import asyncio
    from metabase_mcp.mcp_server import run_server
    asyncio.run(run_server())
"""

from mcp.server.stdio import stdio_server

from ._mcp import mcp_server

__all__ = ["mcp_server", "run_server"]


async def run_server() -> None:
    """Serve the MCP protocol over stdin/stdout until the client disconnects."""
    async with stdio_server() as (read_stream, write_stream):
        await mcp_server.run(
            read_stream,
            write_stream,
            mcp_server.create_initialization_options(),
        )
