"""Tool registration and dispatch.

A ToolSpec pairs a tool name with its argument model and handler. The
registry keeps the enabled subset, validates arguments before a handler
runs, and converts every failure into an error payload so nothing
reaches the transport as an exception.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import sentry_sdk
import structlog
from mcp.types import Tool
from pydantic import BaseModel, ConfigDict, ValidationError
from pydantic.alias_generators import to_camel

from supabase_mcp.core.exceptions import SupabaseMcpError
from supabase_mcp.server.response import error_response

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Iterable

    from mcp.types import TextContent

    from supabase_mcp.core.client import DatabaseClient
    from supabase_mcp.core.config import Settings
    from supabase_mcp.core.storage import StorageClient


class ToolArgs(BaseModel):
    """Base for tool argument models; fields are exposed in camelCase."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


@dataclass(frozen=True)
class ToolSpec:
    name: str
    description: str
    args_model: type[ToolArgs]
    handler: Callable[[Any], Awaitable[list[TextContent]]]

    def definition(self) -> Tool:
        return Tool(
            name=self.name,
            description=self.description,
            inputSchema=self.args_model.model_json_schema(by_alias=True),
        )


def _validation_message(exc: ValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(part) for part in err["loc"])
        parts.append(f"{loc}: {err['msg']}" if loc else err["msg"])
    return "; ".join(parts)


class ToolRegistry:
    def __init__(self, specs: Iterable[ToolSpec], enabled: Iterable[str]) -> None:
        allowed = set(enabled)
        self._tools = {spec.name: spec for spec in specs if spec.name in allowed}

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    @property
    def names(self) -> list[str]:
        return list(self._tools)

    def tool_definitions(self) -> list[Tool]:
        return [spec.definition() for spec in self._tools.values()]

    async def call(
        self, name: str, arguments: dict[str, Any] | None
    ) -> list[TextContent]:
        log = structlog.get_logger()
        spec = self._tools.get(name)
        if spec is None:
            log.warning("unknown tool", tool=name)
            return error_response(f"Unknown tool: {name}")

        try:
            args = spec.args_model.model_validate(arguments or {})
        except ValidationError as e:
            message = _validation_message(e)
            log.warning("invalid tool arguments", tool=name, error=message)
            return error_response(f"Invalid arguments for {name}: {message}")

        with (
            structlog.contextvars.bound_contextvars(tool=name),
            sentry_sdk.start_span(op="mcp.tool", description=name),
        ):
            log.info("tool called")
            try:
                return await spec.handler(args)
            except SupabaseMcpError as e:
                log.warning("tool failed", error=e.message)
                return error_response(e.message, getattr(e, "status", None))
            except Exception as e:
                log.exception("tool internal error")
                sentry_sdk.capture_exception(e)
                return error_response(f"Internal error: {e}")


def build_registry(
    settings: Settings,
    db: DatabaseClient | None = None,
    storage: StorageClient | None = None,
) -> ToolRegistry:
    """Register the enabled tools, creating any client not supplied."""
    from supabase_mcp.core.client import create_database_client
    from supabase_mcp.core.storage import StorageClient
    from supabase_mcp.server.database_tools import DatabaseTools
    from supabase_mcp.server.storage_tools import StorageTools

    specs: list[ToolSpec] = []
    if settings.database_enabled:
        db = db or create_database_client(settings)
        specs.extend(DatabaseTools(db).specs())
    if settings.storage_enabled:
        if storage is None and settings.storage is not None:
            storage = StorageClient(settings.storage, settings.query_timeout)
        if storage is not None:
            specs.extend(StorageTools(storage).specs())
    return ToolRegistry(specs, settings.enabled_tools)
