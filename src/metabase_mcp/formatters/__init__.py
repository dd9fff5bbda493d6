"""Formatters turning Metabase payloads into MCP text content."""

from ._json import format_json_text

__all__ = ["format_json_text"]
