"""JSON text formatters for Metabase payloads."""

import json
from typing import Any


def format_json_text(data: Any) -> str:
    """
    Render a parsed Metabase payload as pretty-printed JSON text.

    Args:
        data (Any): JSON-compatible payload (dicts, lists, scalars). Values that are not JSON-serializable
            are rendered with `str()`.

    Returns:
        str: The payload as JSON with two-space indentation.
             Example: '{\\n  "id": 123,\\n  "name": "Sales"\\n}'
    """
    return json.dumps(data, indent=2, default=str)
