"""Output format selection for the developer CLI."""

from __future__ import annotations

import sys
from enum import StrEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from supabase_mcp.core.models import QueryResult
    from supabase_mcp.formatters.base import Formatter


class OutputFormat(StrEnum):
    MARKDOWN = "markdown"
    JSON = "json"
    TABLE = "table"


def get_formatter(
    output_format: OutputFormat = OutputFormat.MARKDOWN,
    *,
    compact: bool = False,
    width: int = 40,
) -> Formatter:
    """Build and return the formatter for the chosen output format."""
    # Importing the package populates the registry.
    from supabase_mcp.formatters import registry

    kwargs: dict[str, object] = {}
    if output_format is OutputFormat.TABLE:
        kwargs["width"] = width
    elif output_format is OutputFormat.JSON:
        kwargs["compact"] = compact

    return registry.get(output_format.value, **kwargs)


def write_output(formatter: Formatter, result: QueryResult) -> None:
    for line in formatter.format(result):
        sys.stdout.write(line + "\n")
