"""JSON formatter for QueryResult output."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

from supabase_mcp.formatters.base import registry, serialize_value

if TYPE_CHECKING:
    from collections.abc import Iterator

    from supabase_mcp.core.models import QueryResult


@registry.register("json")
class JSONFormatter:
    def __init__(self, compact: bool = False) -> None:
        self.compact = compact

    def format(self, result: QueryResult) -> Iterator[str]:
        rows = [
            {key: serialize_value(val) for key, val in row.items()}
            for row in result.rows
        ]

        if self.compact:
            yield json.dumps(rows, default=str)
        else:
            yield json.dumps(rows, indent=2, default=str)
