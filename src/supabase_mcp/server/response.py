"""Response envelopes returned by every tool.

Each helper returns the list of MCP content blocks a tool call
answers with. Tools never raise: failures become ``error_response`` or
``guided_error_response`` payloads.
"""

from __future__ import annotations

import json
from typing import Any

from mcp.types import TextContent


def strip_nulls(data: Any) -> Any:
    """Recursively drop None-valued keys from dicts, including inside lists."""
    if isinstance(data, dict):
        return {k: strip_nulls(v) for k, v in data.items() if v is not None}
    if isinstance(data, list):
        return [strip_nulls(item) for item in data]
    return data


def _text(text: str) -> list[TextContent]:
    return [TextContent(type="text", text=text)]


def success_response(data: Any) -> list[TextContent]:
    return _text(json.dumps(strip_nulls(data), indent=2, default=str))


def markdown_response(markdown: str) -> list[TextContent]:
    return _text(markdown)


def error_response(message: str, status: int | None = None) -> list[TextContent]:
    payload: dict[str, Any] = {"error": True, "message": message}
    if status is not None:
        payload["status"] = status
    return _text(json.dumps(payload, indent=2))


def guided_error_response(message: str, guidance: str = "") -> list[TextContent]:
    return _text(f"## ❌ Query Error\n\n**Error**: {message}\n\n{guidance}")
