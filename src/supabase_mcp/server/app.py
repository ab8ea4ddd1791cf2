"""MCP server wiring over stdio."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import structlog
from mcp.server import Server
from mcp.server.stdio import stdio_server

from supabase_mcp.server.registry import build_registry

if TYPE_CHECKING:
    from mcp.types import TextContent, Tool

    from supabase_mcp.core.config import Settings
    from supabase_mcp.server.registry import ToolRegistry

SERVER_NAME = "supabase"


def build_server(registry: ToolRegistry) -> Server:
    """Create a low-level MCP server exposing the registry's tools."""
    server: Server = Server(SERVER_NAME)

    @server.list_tools()
    async def list_tools() -> list[Tool]:
        return registry.tool_definitions()

    @server.call_tool()
    async def call_tool(name: str, arguments: dict[str, Any]) -> list[TextContent]:
        return await registry.call(name, arguments)

    return server


async def run_server(settings: Settings) -> None:
    """Serve the enabled tools until the client closes stdin."""
    log = structlog.get_logger()
    registry = build_registry(settings)
    server = build_server(registry)

    log.info(
        "starting MCP server",
        mode=settings.database_mode.value,
        tools=len(registry),
    )
    async with stdio_server() as (read_stream, write_stream):
        await server.run(
            read_stream,
            write_stream,
            server.create_initialization_options(),
        )
    log.info("MCP server stopped")
