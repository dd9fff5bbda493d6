"""
CLI entrypoint for the Metabase MCP server.

This module sets up logging and global exception handling, then serves the MCP protocol over stdio. Protocol
traffic owns stdout; every log record goes to stderr.

Exit status:
    - 0 on a normal shutdown, including SIGINT.
    - 1 when startup fails (e.g. missing or invalid configuration).

See the project README for configuration details, available tools, and usage examples.
"""

import asyncio
import logging
import sys

from .._exceptions import ConfigurationError
from .._logging import setup_global_exception_logging, setup_logging
from ..config import load_config

_LOGGER = logging.getLogger(__name__)


def main() -> None:
    """
    Command-line entry point (`metabase-mcp`).

    Configuration is read from the environment: METABASE_URL plus either METABASE_API_KEY or
    METABASE_USER_EMAIL and METABASE_PASSWORD. LOG_LEVEL sets the log level.
    """
    setup_logging()
    setup_global_exception_logging()

    # Checked before the stdio transport starts.
    try:
        load_config()
    except ConfigurationError as e:
        _LOGGER.critical(f"[main] Invalid configuration: {e}")
        sys.exit(1)

    from . import mcp_server, run_server

    _LOGGER.info(f"[main] Starting MCP server '{mcp_server.name}' with transport=stdio")
    try:
        asyncio.run(run_server())
    except KeyboardInterrupt:
        _LOGGER.info("[main] Received SIGINT, shutting down MCP server")
    except Exception:
        _LOGGER.critical("[main] Fatal error running MCP server", exc_info=True)
        sys.exit(1)
    finally:
        _LOGGER.info(f"[main] MCP server '{mcp_server.name}' stopped.")


if __name__ == "__main__":
    main()
