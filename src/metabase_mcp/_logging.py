"""
Logging and global exception handling utilities for the Metabase MCP server.

This module provides functions to:
- Set up root logger configuration early in process startup (`setup_logging`).
- Render every log record as one structured JSON line (`JsonLogFormatter`).
- Ensure all unhandled synchronous and asynchronous exceptions are logged (`setup_global_exception_logging`).

Logs always go to stderr: stdout carries the stdio protocol traffic and must never be written to.

Structured payloads are attached with the standard ``extra`` mechanism:

    _LOGGER.info("Retrieved dashboards", extra={"data": {"request_id": rid, "count": 3}})
"""

import asyncio
import json
import logging
import os
import sys
import traceback
from datetime import datetime, timezone
from types import TracebackType
from typing import Any

LOG_LEVEL_ENV_VARS = ("LOG_LEVEL", "PYTHONLOGLEVEL")
"""Environment variables consulted, in order, for the log level."""

DEFAULT_LOG_LEVEL = "INFO"

_LEVEL_NAMES = {
    logging.DEBUG: "debug",
    logging.INFO: "info",
    logging.WARNING: "warn",
    logging.ERROR: "error",
    logging.CRITICAL: "fatal",
}


class JsonLogFormatter(logging.Formatter):
    """Format log records as single-line JSON objects.

    Each line contains ``timestamp`` (ISO-8601, UTC), ``level``, ``logger`` and ``message``.
    A ``data`` key is added when the record carries ``extra={"data": ...}``, and ``error`` /
    ``stack`` keys are added when the record carries exception information.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc)
            .isoformat(timespec="milliseconds")
            .replace("+00:00", "Z"),
            "level": _LEVEL_NAMES.get(record.levelno, record.levelname.lower()),
            "logger": record.name,
            "message": record.getMessage(),
        }
        data = getattr(record, "data", None)
        if data is not None:
            entry["data"] = data
        if record.exc_info and record.exc_info[1] is not None:
            exc = record.exc_info[1]
            entry["error"] = str(exc) or type(exc).__name__
            entry["stack"] = "".join(traceback.format_exception(*record.exc_info))
        return json.dumps(entry, default=str)


def get_log_level() -> str:
    """Return the configured log level name, defaulting to INFO."""
    for env_var in LOG_LEVEL_ENV_VARS:
        value = os.getenv(env_var)
        if value and value.strip():
            return value.strip().upper()
    return DEFAULT_LOG_LEVEL


def setup_logging() -> None:
    """
    Set up logging configuration for the application.

    This function configures the root logger with a stderr handler using `JsonLogFormatter`. The level is taken
    from LOG_LEVEL (or PYTHONLOGLEVEL), defaulting to INFO. It should be called before any other imports in your
    main entrypoint so that no other module configures logging first.
    """
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JsonLogFormatter())
    logging.basicConfig(
        level=get_log_level(),
        handlers=[handler],
        force=True,  # Ensure we override any existing logging configuration
    )
    # httpx logs every request at INFO, which would duplicate our own request logging
    logging.getLogger("httpx").setLevel(logging.WARNING)


# Idempotency guard for global exception logging setup
_EXC_LOGGING_INSTALLED = False


def setup_global_exception_logging() -> None:
    """
    Set up global logging for all unhandled exceptions (synchronous and asynchronous) in the process.

    This function ensures that:
        - Uncaught exceptions in synchronous code are logged at CRITICAL ("fatal"). The interpreter then exits
          with a non-zero status, as it does by default.
        - Unhandled exceptions in asyncio event loops are logged at CRITICAL but do not stop the loop.
        - Every event loop created later gets the async handler (`asyncio.new_event_loop` is patched), and the
          current loop gets it too, if one exists.

    Usage:
        Call this function once at process startup, before any event loops are created or server code is run.
    """
    global _EXC_LOGGING_INSTALLED
    if _EXC_LOGGING_INSTALLED:
        return
    _EXC_LOGGING_INSTALLED = True

    def _log_unhandled_exception(
        exc_type: type[BaseException],
        exc_value: BaseException,
        exc_traceback: TracebackType | None,
    ) -> None:
        if issubclass(exc_type, KeyboardInterrupt):
            return
        logging.critical(
            "Uncaught exception detected", exc_info=(exc_type, exc_value, exc_traceback)
        )

    sys.excepthook = _log_unhandled_exception

    def _asyncio_exception_handler(
        loop: asyncio.AbstractEventLoop, context: dict[str, Any]
    ) -> None:
        exception = context.get("exception")
        logging.critical(
            f"Unhandled async exception detected: {context.get('message')}",
            exc_info=(
                (type(exception), exception, exception.__traceback__)
                if exception
                else None
            ),
        )

    _orig_new_event_loop = asyncio.new_event_loop

    def _patched_new_event_loop(*args: Any, **kwargs: Any) -> asyncio.AbstractEventLoop:
        loop = _orig_new_event_loop(*args, **kwargs)
        loop.set_exception_handler(_asyncio_exception_handler)
        return loop

    asyncio.new_event_loop = _patched_new_event_loop

    try:
        asyncio.get_event_loop().set_exception_handler(_asyncio_exception_handler)
    except RuntimeError:
        # No event loop yet; the patched factory covers loops created later
        pass
