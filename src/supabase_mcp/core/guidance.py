"""Remediation hints for failed execute-sql calls.

The guidance is advisory text only. Follow-up catalog lookups are best
effort: if one fails the generic hints are used instead.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

import structlog

from supabase_mcp.core.catalog import (
    DEFAULT_SCHEMA,
    get_table_structure,
    list_public_tables,
    structure_lines,
)
from supabase_mcp.core.client import open_runner
from supabase_mcp.core.exceptions import SupabaseMcpError

if TYPE_CHECKING:
    from supabase_mcp.core.client import DatabaseClient

COLUMN_MISSING_RE = re.compile(r'column "([^"]+)" does not exist', re.IGNORECASE)
RELATION_MISSING_RE = re.compile(r'relation "([^"]+)" does not exist', re.IGNORECASE)
COLUMN_OF_RELATION_RE = re.compile(
    r'column "([^"]+)" of relation "([^"]+)"( does not exist)?', re.IGNORECASE
)

# Tried in order, each first against the error text and then the query.
TABLE_PATTERNS = (
    RELATION_MISSING_RE,
    re.compile(r'column "[^"]+" of relation "([^"]+)"', re.IGNORECASE),
    re.compile(r'table "([^"]+)"', re.IGNORECASE),
    re.compile(r"from (\w+)", re.IGNORECASE),
    re.compile(r"update (\w+)", re.IGNORECASE),
    re.compile(r"insert into (\w+)", re.IGNORECASE),
)

COMMON_ISSUES = """### Common Issues

- **Column doesn't exist**: Check column names using `describe-table`
- **Table doesn't exist**: List available tables using `list-tables`
- **Syntax error**: Review SQL syntax and quotes
- **Permission denied**: Check database permissions

### Next Steps

1. Use `list-tables` to see available tables
2. Use `describe-table` to see table structure
3. Verify column and table names match exactly (case-sensitive)
"""

DEBUGGING_STEPS = """### Debugging Steps

1. Check syntax - Ensure SQL syntax is correct
2. Verify permissions - Ensure you have access to the requested resources
3. Review data types - Ensure values match column data types

### Helpful Commands

- `list-tables` - See all available tables
- `describe-table` - Get detailed table structure
- `describe-functions` - List available database functions
"""

TROUBLESHOOTING = """### Troubleshooting

- Check that the table name is spelled correctly
- Use `list-tables` to see available tables
- Verify you have permissions to access this table
"""


def extract_table_name(error_message: str, query: str) -> str | None:
    for pattern in TABLE_PATTERNS:
        match = pattern.search(error_message) or pattern.search(query)
        if match:
            return match.group(1)
    return None


def _split_qualified(name: str) -> tuple[str | None, str]:
    schema, dot, table = name.rpartition(".")
    return (schema or None, table) if dot else (None, name)


def query_analysis(query: str) -> str:
    return f"### Query Analysis\n\n**Query**: `{query}`\n\n" + DEBUGGING_STEPS


async def _lookup_guidance(
    client: DatabaseClient,
    table_name: str,
    missing_column: str | None,
    missing_relation: bool,
) -> str:
    schema, table = _split_qualified(table_name)
    async with open_runner(client) as runner:
        if schema is None:
            # Unqualified names resolve like the default search_path.
            structure = await get_table_structure(runner, table, DEFAULT_SCHEMA)
            if not structure:
                structure = await get_table_structure(runner, table, None)
        else:
            structure = await get_table_structure(runner, table, schema)
        if structure:
            lines = [f"### Table Structure for '{table_name}'", ""]
            lines.extend(structure_lines(structure))
            guidance = "\n".join(lines) + "\n"
            if missing_column:
                guidance += f"\n**The column '{missing_column}' does not exist**\n"
            return guidance

        if missing_relation:
            tables = await list_public_tables(runner)
            if tables:
                listing = "\n".join(f"- {name}" for name in tables)
                return (
                    f"### Available Tables\n\n{listing}\n\n"
                    f"**The table '{table_name}' does not exist**\n"
                )
    return ""


async def build_guidance(
    error_message: str, query: str, client: DatabaseClient
) -> str:
    """Produce markdown hints for a failed statement.

    Recognized missing-column and missing-relation errors trigger a
    lookup of the affected table's columns, or of the public tables when
    the table itself is missing. Anything else gets query analysis and
    generic debugging steps.
    """
    log = structlog.get_logger()
    column_error = COLUMN_MISSING_RE.search(error_message)
    relation_error = RELATION_MISSING_RE.search(error_message)
    column_of_relation = COLUMN_OF_RELATION_RE.search(error_message)

    if not (column_error or relation_error or column_of_relation):
        return query_analysis(query)

    guidance = ""
    table_name = extract_table_name(error_message, query)
    # "already exists" errors still show the table, but name no missing column.
    column_match = column_error
    if column_of_relation and column_of_relation.group(3):
        column_match = column_of_relation
    if table_name:
        try:
            guidance = await _lookup_guidance(
                client,
                table_name,
                column_match.group(1) if column_match else None,
                relation_error is not None,
            )
        except SupabaseMcpError as e:
            log.warning("guidance lookup failed", table=table_name, error=e.message)
            guidance = ""

    return guidance or COMMON_ISSUES
