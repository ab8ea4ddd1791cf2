"""Catalog lookups and their markdown renderings.

Every function here takes a QueryRunner, so the same lookup works on a
shared direct session or on the remote execution endpoint.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import structlog

from supabase_mcp.core.exceptions import DatabaseError
from supabase_mcp.core.models import (
    ColumnInfo,
    ConstraintInfo,
    FunctionDefinition,
    FunctionInfo,
    TableEntry,
)
from supabase_mcp.formatters.markdown import md_table

if TYPE_CHECKING:
    from supabase_mcp.core.client import QueryRunner

DEFAULT_SCHEMA = "public"

FUNCTION_KINDS = {
    "f": "Function",
    "p": "Procedure",
    "a": "Aggregate",
    "w": "Window",
}

STRUCTURE_SQL = """
SELECT
    c.column_name,
    c.data_type,
    c.is_nullable,
    c.column_default,
    c.character_maximum_length,
    c.numeric_precision,
    c.numeric_scale,
    c.ordinal_position
FROM information_schema.columns c
WHERE c.table_name = %(table)s{schema_filter}
ORDER BY c.ordinal_position
"""

TABLES_SQL = """
SELECT
    t.table_name,
    t.table_type,
    obj_description(c.oid) AS table_comment,
    (
        SELECT COUNT(*)
        FROM information_schema.columns col
        WHERE col.table_name = t.table_name
          AND col.table_schema = t.table_schema
    ) AS column_count
FROM information_schema.tables t
LEFT JOIN pg_namespace n ON n.nspname = t.table_schema
LEFT JOIN pg_class c ON c.relname = t.table_name AND c.relnamespace = n.oid
WHERE t.table_schema = %(schema)s
  AND t.table_type = 'BASE TABLE'
ORDER BY t.table_name
"""

PUBLIC_TABLES_SQL = """
SELECT table_name
FROM information_schema.tables
WHERE table_schema = 'public'
  AND table_type = 'BASE TABLE'
ORDER BY table_name
"""

FUNCTIONS_SQL = """
SELECT
    p.proname AS function_name,
    pg_catalog.pg_get_function_result(p.oid) AS return_type,
    pg_catalog.pg_get_function_arguments(p.oid) AS arguments,
    p.prokind AS function_kind,
    d.description
FROM pg_catalog.pg_proc p
LEFT JOIN pg_catalog.pg_namespace n ON n.oid = p.pronamespace
LEFT JOIN pg_catalog.pg_description d ON d.objoid = p.oid
WHERE n.nspname = %(schema)s
ORDER BY p.proname
"""

FUNCTION_DEFINITION_SQL = """
SELECT
    p.proname AS function_name,
    pg_catalog.pg_get_function_result(p.oid) AS return_type,
    pg_catalog.pg_get_function_arguments(p.oid) AS arguments,
    CASE WHEN p.prokind <> 'a' THEN pg_catalog.pg_get_functiondef(p.oid) END AS definition,
    p.prokind AS function_kind,
    p.provolatile AS volatility,
    p.prosecdef AS security_definer,
    p.proisstrict AS is_strict,
    p.proretset AS returns_set,
    l.lanname AS language,
    d.description,
    p.prosrc AS source_code,
    CASE p.provolatile
        WHEN 'i' THEN 'IMMUTABLE'
        WHEN 's' THEN 'STABLE'
        WHEN 'v' THEN 'VOLATILE'
    END AS volatility_label
FROM pg_catalog.pg_proc p
LEFT JOIN pg_catalog.pg_namespace n ON n.oid = p.pronamespace
LEFT JOIN pg_catalog.pg_language l ON l.oid = p.prolang
LEFT JOIN pg_catalog.pg_description d ON d.objoid = p.oid
WHERE n.nspname = %(schema)s AND p.proname = %(name)s
ORDER BY p.oid
"""

SCHEMA_CONSTRAINTS_SQL = """
SELECT
    tc.table_name,
    tc.constraint_name,
    tc.constraint_type,
    kcu.column_name,
    ccu.table_name AS foreign_table_name,
    ccu.column_name AS foreign_column_name,
    rc.update_rule,
    rc.delete_rule,
    cc.check_clause
FROM information_schema.table_constraints tc
LEFT JOIN information_schema.key_column_usage kcu
    ON tc.constraint_name = kcu.constraint_name
    AND tc.table_schema = kcu.table_schema
LEFT JOIN information_schema.constraint_column_usage ccu
    ON tc.constraint_name = ccu.constraint_name
    AND tc.table_schema = ccu.table_schema
    AND tc.constraint_type = 'FOREIGN KEY'
LEFT JOIN information_schema.referential_constraints rc
    ON tc.constraint_name = rc.constraint_name
    AND tc.table_schema = rc.constraint_schema
LEFT JOIN information_schema.check_constraints cc
    ON tc.constraint_name = cc.constraint_name
    AND tc.table_schema = cc.constraint_schema
WHERE tc.table_schema = %(schema)s
  AND tc.constraint_name NOT LIKE '%%_not_null'{table_filter}
ORDER BY tc.table_name, tc.constraint_name, kcu.ordinal_position
"""


def quote_ident(name: str) -> str:
    """Quote a SQL identifier, doubling embedded quotes."""
    return '"' + name.replace('"', '""') + '"'


def qualified_name(schema: str, table: str) -> str:
    return f"{quote_ident(schema)}.{quote_ident(table)}"


def function_kind_label(kind: str | None) -> str:
    return FUNCTION_KINDS.get(kind or "", "Unknown")


def _yes_no(flag: bool) -> str:
    return "Yes" if flag else "No"


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------


async def get_table_structure(
    runner: QueryRunner, table: str, schema: str | None = DEFAULT_SCHEMA
) -> list[ColumnInfo]:
    """Columns of a table in ordinal order.

    With ``schema=None`` the lookup matches the table name in any schema.
    """
    params = {"table": table}
    schema_filter = ""
    if schema is not None:
        schema_filter = "\n  AND c.table_schema = %(schema)s"
        params["schema"] = schema
    result = await runner.query(
        STRUCTURE_SQL.format(schema_filter=schema_filter), params
    )
    return [ColumnInfo.model_validate(row) for row in result.rows]


async def list_public_tables(runner: QueryRunner) -> list[str]:
    result = await runner.query(PUBLIC_TABLES_SQL)
    return [row["table_name"] for row in result.rows]


async def _count_rows(runner: QueryRunner, schema: str, entry: TableEntry) -> TableEntry:
    log = structlog.get_logger()
    sql = f"SELECT COUNT(*) AS row_count FROM {qualified_name(schema, entry.table_name)}"
    try:
        result = await runner.query(sql)
    except DatabaseError as e:
        log.warning("row count failed", table=entry.table_name, error=e.message)
        return entry.model_copy(update={"row_count": None, "error": "Could not get row count"})
    count = result.rows[0]["row_count"] if result.rows else 0
    return entry.model_copy(update={"row_count": int(count)})


async def list_tables(runner: QueryRunner, schema: str = DEFAULT_SCHEMA) -> list[TableEntry]:
    """Base tables of a schema, each with a live row count.

    A failing count marks only that table; the listing itself still
    succeeds.
    """
    result = await runner.query(TABLES_SQL, {"schema": schema})
    entries = [TableEntry.model_validate(row) for row in result.rows]
    return list(
        await asyncio.gather(*(_count_rows(runner, schema, entry) for entry in entries))
    )


async def describe_functions(
    runner: QueryRunner, schema: str = DEFAULT_SCHEMA
) -> list[FunctionInfo]:
    result = await runner.query(FUNCTIONS_SQL, {"schema": schema})
    return [FunctionInfo.model_validate(row) for row in result.rows]


async def get_function_definition(
    runner: QueryRunner, name: str, schema: str = DEFAULT_SCHEMA
) -> FunctionDefinition | None:
    """Return the first matching function, or None when nothing matches."""
    result = await runner.query(FUNCTION_DEFINITION_SQL, {"schema": schema, "name": name})
    if not result.rows:
        return None
    return FunctionDefinition.model_validate(result.rows[0])


async def show_constraints(
    runner: QueryRunner, schema: str = DEFAULT_SCHEMA, table: str | None = None
) -> dict[str, list[ConstraintInfo]]:
    """Constraints of a schema (or one table) grouped by table name.

    Multi-column constraints are folded into one entry whose column_name
    lists every column.
    """
    params = {"schema": schema}
    table_filter = ""
    if table:
        table_filter = "\n  AND tc.table_name = %(table)s"
        params["table"] = table
    result = await runner.query(
        SCHEMA_CONSTRAINTS_SQL.format(table_filter=table_filter), params
    )

    grouped: dict[str, dict[str, ConstraintInfo]] = {}
    for row in result.rows:
        by_name = grouped.setdefault(row["table_name"], {})
        existing = by_name.get(row["constraint_name"])
        if existing is None:
            by_name[row["constraint_name"]] = ConstraintInfo.model_validate(row)
            continue
        column = row.get("column_name")
        columns = existing.column_name.split(", ") if existing.column_name else []
        if column and column not in columns:
            columns.append(column)
        foreign = existing.foreign_column_name.split(", ") if existing.foreign_column_name else []
        foreign_column = row.get("foreign_column_name")
        if foreign_column and foreign_column not in foreign:
            foreign.append(foreign_column)
        by_name[row["constraint_name"]] = existing.model_copy(
            update={
                "column_name": ", ".join(columns) or None,
                "foreign_column_name": ", ".join(foreign) or None,
            }
        )
    return {name: list(constraints.values()) for name, constraints in grouped.items()}


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------


def structure_lines(
    columns: list[ColumnInfo], *, with_constraints: bool = False
) -> list[str]:
    """Column table with one annotation row per attached constraint."""
    rows: list[list[str]] = []
    for column in columns:
        rows.append(
            [
                column.column_name,
                column.display_type,
                "✓" if column.nullable else "",
                column.column_default or "",
            ]
        )
        if with_constraints and column.constraints:
            for constraint in column.constraints:
                target = ""
                if constraint.foreign_table_name and constraint.foreign_column_name:
                    target = (
                        f" → {constraint.foreign_table_name}."
                        f"{constraint.foreign_column_name}"
                    )
                rows.append(["  ", f"*{constraint.constraint_type}*{target}", "", ""])
    return md_table(["Column", "Type", "Nullable", "Default"], rows)


def render_tables(schema: str, tables: list[TableEntry]) -> str:
    rows = [
        [
            table.table_name,
            table.column_count,
            f"{table.row_count:,}" if table.row_count is not None else "Error",
        ]
        for table in tables
    ]
    lines = [f"## Tables in {schema}", ""]
    lines.extend(md_table(["Table", "Columns", "Rows"], rows))
    lines.extend(["", f"*{len(tables)} tables total*"])
    return "\n".join(lines)


def render_functions(schema: str, functions: list[FunctionInfo]) -> str:
    lines = [f"## Functions in {schema}", ""]
    if not functions:
        lines.append(f"*No functions found in schema '{schema}'*")
        return "\n".join(lines)

    rows = [
        [
            func.function_name,
            func.arguments or "",
            func.return_type or "",
            function_kind_label(func.function_kind),
            func.description or "",
        ]
        for func in functions
    ]
    lines.extend(md_table(["Function", "Arguments", "Returns", "Type", "Description"], rows))
    lines.extend(["", f"*{len(functions)} functions total*"])
    return "\n".join(lines)


def render_function_definition(func: FunctionDefinition) -> str:
    lines = [f"## Function: {func.function_name}", ""]
    if func.description:
        lines.extend([f"**Description**: {func.description}", ""])

    lines.extend(
        [
            "### Signature",
            "```sql",
            f"{func.function_name}({func.arguments or ''})",
            f"RETURNS {func.return_type}",
            "```",
            "",
            "### Properties",
            f"- **Language**: {func.language}",
            f"- **Type**: {function_kind_label(func.function_kind)}",
            f"- **Volatility**: {func.volatility_label}",
            f"- **Security Definer**: {_yes_no(func.security_definer)}",
            f"- **Strict**: {_yes_no(func.is_strict)}",
            f"- **Returns Set**: {_yes_no(func.returns_set)}",
            "",
            "### Definition",
            "```sql",
            func.definition or func.source_code or "",
            "```",
        ]
    )
    return "\n".join(lines) + "\n"


def render_constraints(
    schema: str, grouped: dict[str, list[ConstraintInfo]], table: str | None = None
) -> str:
    title = f"## Constraints on {schema}.{table}" if table else f"## Constraints in {schema}"
    lines = [title, ""]
    if not grouped:
        lines.append("*No constraints found*")
        return "\n".join(lines)

    total = 0
    for table_name, constraints in grouped.items():
        lines.extend([f"### {table_name}", ""])
        rows = []
        for constraint in constraints:
            references = ""
            if constraint.foreign_table_name:
                references = (
                    f"{constraint.foreign_table_name}.{constraint.foreign_column_name}"
                    if constraint.foreign_column_name
                    else constraint.foreign_table_name
                )
            rows.append(
                [
                    constraint.constraint_name,
                    constraint.constraint_type,
                    constraint.column_name or "",
                    references or constraint.check_clause or "",
                    constraint.update_rule or "",
                    constraint.delete_rule or "",
                ]
            )
        lines.extend(
            md_table(
                ["Constraint", "Type", "Columns", "References", "On Update", "On Delete"],
                rows,
            )
        )
        lines.append("")
        total += len(constraints)

    lines.append(f"*{total} constraints total*")
    return "\n".join(lines)
