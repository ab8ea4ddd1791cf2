"""Markdown formatter for QueryResult output.

Also exposes the pipe-table helpers shared by the catalog renderers.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

from supabase_mcp.formatters.base import column_names, registry

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator, Sequence

    from supabase_mcp.core.models import QueryResult


def md_value(val: Any) -> str:
    """Render one result value as a markdown table cell."""
    if val is None:
        return "*null*"
    if val == "":
        return "*empty*"
    if isinstance(val, (dict, list)):
        return json.dumps(val, default=str)
    if isinstance(val, bool):
        return "true" if val else "false"
    return str(val)


def md_cell(val: Any) -> str:
    """Escape pipes and line breaks so a value stays inside its cell."""
    text = str(val).replace("|", "\\|")
    return text.replace("\r\n", "<br>").replace("\n", "<br>").replace("\r", "<br>")


def md_table(headers: Sequence[str], rows: Iterable[Sequence[Any]]) -> list[str]:
    lines = [
        f"| {' | '.join(md_cell(h) for h in headers)} |",
        f"|{'|'.join('---' for _ in headers)}|",
    ]
    lines.extend(f"| {' | '.join(md_cell(v) for v in row)} |" for row in rows)
    return lines


@registry.register("markdown")
class MarkdownFormatter:
    def __init__(self, title: str = "Query Result") -> None:
        self.title = title

    def format(self, result: QueryResult) -> Iterator[str]:
        yield f"### {self.title}"
        yield ""
        if result.command:
            yield f"**Command**: {result.command}"
        if result.row_count is not None:
            yield f"**Rows affected**: {result.row_count}"
        yield ""

        if result.rows:
            headers = column_names(result)
            yield from md_table(
                headers,
                ([md_value(row.get(h)) for h in headers] for row in result.rows),
            )
        elif result.command:
            yield "*Query executed successfully*"
        else:
            yield "*No rows returned*"
