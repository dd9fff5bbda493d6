"""
Metabase MCP: a Model Context Protocol server exposing a Metabase instance.

The server speaks MCP over stdio and exposes Metabase dashboards, questions/cards and databases as tools
and resources, plus PostgreSQL performance diagnostics run through Metabase native queries.

Subpackages:
    - config: environment configuration
    - client: Metabase REST client and credential handling
    - mcp_server: the MCP server and its tools/resources
"""

__version__ = "0.1.0"
