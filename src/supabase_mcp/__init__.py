"""Supabase MCP server: Postgres introspection and Storage tools over MCP."""

from supabase_mcp.__about__ import __version__

__all__ = ["__version__"]
