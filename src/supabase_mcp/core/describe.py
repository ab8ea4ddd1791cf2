"""Table description: structure plus optional report sections.

Each optional section is one TableSection member mapped to a
SectionSpec holding its catalog query, its row parser, and its
markdown renderer. ``describe_table`` runs the structure query and
every requested section concurrently on one runner, then merges
constraint rows into the column structure.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING, Any

from supabase_mcp.core.catalog import (
    DEFAULT_SCHEMA,
    get_table_structure,
    qualified_name,
    structure_lines,
)
from supabase_mcp.core.models import (
    ConstraintInfo,
    DependencyInfo,
    IndexInfo,
    ReferenceInfo,
    RlsPolicy,
    TableReport,
    TriggerInfo,
)
from supabase_mcp.formatters.markdown import md_table

if TYPE_CHECKING:
    from collections.abc import Callable, Collection

    from supabase_mcp.core.client import QueryRunner
    from supabase_mcp.core.models import QueryResult


class TableSection(StrEnum):
    """Optional sections, declared in rendering order."""

    CONSTRAINTS = "constraints"
    SAMPLE_ROWS = "sample_rows"
    RLS_POLICIES = "rls_policies"
    TRIGGERS = "triggers"
    INDEXES = "indexes"
    DEPENDENCIES = "dependencies"
    REFERENCED_BY = "referenced_by"


CONSTRAINTS_SQL = """
SELECT
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
LEFT JOIN information_schema.referential_constraints rc
    ON tc.constraint_name = rc.constraint_name
    AND tc.table_schema = rc.constraint_schema
LEFT JOIN information_schema.check_constraints cc
    ON tc.constraint_name = cc.constraint_name
    AND tc.table_schema = cc.constraint_schema
WHERE tc.table_name = %(table)s
  AND tc.table_schema = %(schema)s
ORDER BY tc.constraint_name
"""

RLS_POLICIES_SQL = """
SELECT
    pol.polname AS policy_name,
    pol.polpermissive AS is_permissive,
    pol.polroles AS roles,
    pol.polcmd AS command,
    pg_get_expr(pol.polqual, pol.polrelid) AS using_expression,
    pg_get_expr(pol.polwithcheck, pol.polrelid) AS with_check_expression
FROM pg_policy pol
JOIN pg_class pc ON pol.polrelid = pc.oid
JOIN pg_namespace pn ON pn.oid = pc.relnamespace
WHERE pc.relname = %(table)s
  AND pn.nspname = %(schema)s
ORDER BY pol.polname
"""

TRIGGERS_SQL = """
SELECT
    t.trigger_name,
    t.event_manipulation AS event,
    t.event_object_table AS table_name,
    t.action_timing AS timing,
    t.action_statement AS definition,
    t.action_condition AS condition,
    t.action_orientation AS orientation
FROM information_schema.triggers t
WHERE t.event_object_table = %(table)s
  AND t.event_object_schema = %(schema)s
ORDER BY t.trigger_name
"""

INDEXES_SQL = """
SELECT
    i.indexname AS index_name,
    i.tablename AS table_name,
    i.indexdef AS definition,
    idx.indisunique AS is_unique,
    idx.indisprimary AS is_primary,
    idx.indisexclusion AS is_exclusion,
    idx.indimmediate AS is_immediate,
    idx.indisclustered AS is_clustered,
    idx.indisvalid AS is_valid,
    am.amname AS index_type,
    pg_size_pretty(pg_relation_size(idx_class.oid)) AS size
FROM pg_indexes i
JOIN pg_namespace n ON n.nspname = i.schemaname
JOIN pg_class c ON c.relname = i.tablename AND c.relnamespace = n.oid
JOIN pg_index idx ON idx.indrelid = c.oid
JOIN pg_class idx_class
    ON idx_class.oid = idx.indexrelid
    AND idx_class.relname = i.indexname
JOIN pg_am am ON am.oid = idx_class.relam
WHERE i.tablename = %(table)s
  AND i.schemaname = %(schema)s
ORDER BY i.indexname
"""

DEPENDENCIES_SQL = """
SELECT DISTINCT
    d.classid::regclass::text AS object_type,
    d.objid::regclass::text AS object_name,
    d.objsubid AS object_subid,
    d.refclassid::regclass::text AS referenced_type,
    d.refobjid::regclass::text AS referenced_name,
    d.refobjsubid AS referenced_subid,
    d.deptype::text AS dependency_type,
    CASE d.deptype
        WHEN 'n' THEN 'normal'
        WHEN 'a' THEN 'auto'
        WHEN 'i' THEN 'internal'
        WHEN 'e' THEN 'extension'
        WHEN 'p' THEN 'pin'
        WHEN 'x' THEN 'extension member'
    END AS dependency_type_desc
FROM pg_depend d
JOIN pg_class c ON d.objid = c.oid
JOIN pg_namespace n ON n.oid = c.relnamespace
WHERE c.relname = %(table)s
  AND n.nspname = %(schema)s
  AND d.deptype IN ('n', 'a', 'i')
ORDER BY dependency_type, referenced_name
"""

REFERENCED_BY_SQL = """
SELECT DISTINCT
    tc.table_name AS referencing_table,
    kcu.column_name AS referencing_column,
    ccu.table_name AS referenced_table,
    ccu.column_name AS referenced_column,
    tc.constraint_name,
    rc.update_rule,
    rc.delete_rule
FROM information_schema.table_constraints tc
JOIN information_schema.key_column_usage kcu
    ON tc.constraint_name = kcu.constraint_name
    AND tc.table_schema = kcu.table_schema
JOIN information_schema.constraint_column_usage ccu
    ON tc.constraint_name = ccu.constraint_name
    AND tc.table_schema = ccu.table_schema
JOIN information_schema.referential_constraints rc
    ON tc.constraint_name = rc.constraint_name
    AND tc.table_schema = rc.constraint_schema
WHERE tc.constraint_type = 'FOREIGN KEY'
  AND ccu.table_name = %(table)s
  AND ccu.table_schema = %(schema)s
ORDER BY tc.table_name, kcu.column_name
"""

SAMPLE_LIMIT = 3


# ---------------------------------------------------------------------------
# Section renderers
# ---------------------------------------------------------------------------


def _render_constraints(report: TableReport) -> list[str]:
    table_level = [c for c in report.constraints or [] if not c.column_name]
    if not table_level:
        return []
    lines = []
    for constraint in table_level:
        line = f"- **{constraint.constraint_name}** ({constraint.constraint_type})"
        if constraint.check_clause:
            line += f": {constraint.check_clause}"
        lines.append(line)
    return lines


def _sample_value(val: Any) -> str:
    return "*null*" if val is None else str(val)


def _render_sample_rows(report: TableReport) -> list[str]:
    rows = report.sample_rows or []
    if not rows:
        return ["*No rows*"]
    headers = list(rows[0].keys())
    return md_table(headers, ([_sample_value(row.get(h)) for h in headers] for row in rows))


def _render_rls_policies(report: TableReport) -> list[str]:
    lines = []
    for policy in report.rls_policies or []:
        lines.append(f"- **{policy.policy_name}** ({policy.command})")
        if policy.using_expression:
            lines.append(f"  - Using: {policy.using_expression}")
        if policy.with_check_expression:
            lines.append(f"  - Check: {policy.with_check_expression}")
    return lines


def _render_triggers(report: TableReport) -> list[str]:
    return [
        f"- **{trigger.trigger_name}** ({trigger.timing} {trigger.event})"
        for trigger in report.triggers or []
    ]


def _render_indexes(report: TableReport) -> list[str]:
    lines = []
    for index in report.indexes or []:
        flags = [
            label
            for label, on in (("PRIMARY", index.is_primary), ("UNIQUE", index.is_unique))
            if on
        ]
        flag_str = f" ({', '.join(flags)})" if flags else ""
        lines.append(f"- **{index.index_name}**{flag_str} - {index.size}")
    return lines


def _render_dependencies(report: TableReport) -> list[str]:
    return [
        f"- {dep.object_name} → {dep.referenced_name} ({dep.dependency_type_desc})"
        for dep in report.dependencies or []
    ]


def _render_referenced_by(report: TableReport) -> list[str]:
    return [
        f"- {ref.referencing_table}.{ref.referencing_column}"
        for ref in report.referenced_by or []
    ]


# ---------------------------------------------------------------------------
# Section specs
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SectionSpec:
    title: str
    field: str
    sql: str | None
    parse: Callable[[QueryResult], dict[str, Any]]
    render: Callable[[TableReport], list[str]]


def _parse_rows(
    field: str, model: type, *required: str
) -> Callable[[QueryResult], dict[str, Any]]:
    """Build a parser that validates rows, skipping those missing a required key."""

    def parse(result: QueryResult) -> dict[str, Any]:
        return {
            field: [
                model.model_validate(row)
                for row in result.rows
                if all(row.get(key) for key in required)
            ]
        }

    return parse


def _parse_sample(result: QueryResult) -> dict[str, Any]:
    # row_count here is the sample's own count, never the table size
    return {
        "sample_rows": result.rows,
        "sample_row_count": result.row_count or len(result.rows),
    }


SECTIONS: dict[TableSection, SectionSpec] = {
    TableSection.CONSTRAINTS: SectionSpec(
        title="Constraints",
        field="constraints",
        sql=CONSTRAINTS_SQL,
        parse=_parse_rows(
            "constraints", ConstraintInfo, "constraint_name", "constraint_type"
        ),
        render=_render_constraints,
    ),
    TableSection.SAMPLE_ROWS: SectionSpec(
        title="Sample Data",
        field="sample_rows",
        sql=None,
        parse=_parse_sample,
        render=_render_sample_rows,
    ),
    TableSection.RLS_POLICIES: SectionSpec(
        title="RLS Policies",
        field="rls_policies",
        sql=RLS_POLICIES_SQL,
        parse=_parse_rows("rls_policies", RlsPolicy, "policy_name"),
        render=_render_rls_policies,
    ),
    TableSection.TRIGGERS: SectionSpec(
        title="Triggers",
        field="triggers",
        sql=TRIGGERS_SQL,
        parse=_parse_rows("triggers", TriggerInfo, "trigger_name"),
        render=_render_triggers,
    ),
    TableSection.INDEXES: SectionSpec(
        title="Indexes",
        field="indexes",
        sql=INDEXES_SQL,
        parse=_parse_rows("indexes", IndexInfo),
        render=_render_indexes,
    ),
    TableSection.DEPENDENCIES: SectionSpec(
        title="Dependencies",
        field="dependencies",
        sql=DEPENDENCIES_SQL,
        parse=_parse_rows("dependencies", DependencyInfo),
        render=_render_dependencies,
    ),
    TableSection.REFERENCED_BY: SectionSpec(
        title="Referenced By",
        field="referenced_by",
        sql=REFERENCED_BY_SQL,
        parse=_parse_rows("referenced_by", ReferenceInfo),
        render=_render_referenced_by,
    ),
}


def _section_query(
    runner: QueryRunner, section: TableSection, table: str, schema: str
) -> Any:
    spec = SECTIONS[section]
    if spec.sql is None:
        return runner.query(
            f"SELECT * FROM {qualified_name(schema, table)} LIMIT {SAMPLE_LIMIT}"
        )
    return runner.query(spec.sql, {"table": table, "schema": schema})


async def describe_table(
    runner: QueryRunner,
    table: str,
    schema: str = DEFAULT_SCHEMA,
    sections: Collection[TableSection] = (),
) -> TableReport:
    """Describe one table with the requested optional sections.

    All queries are issued together; any failure propagates and no
    partial report is produced. Sections that were not requested stay
    None on the returned report.
    """
    requested = [section for section in TableSection if section in sections]
    structure, *results = await asyncio.gather(
        get_table_structure(runner, table, schema),
        *(_section_query(runner, section, table, schema) for section in requested),
    )

    fields: dict[str, Any] = {}
    for section, result in zip(requested, results, strict=True):
        fields.update(SECTIONS[section].parse(result))

    if TableSection.CONSTRAINTS in requested:
        by_column: dict[str, list[ConstraintInfo]] = {}
        for constraint in fields["constraints"]:
            if constraint.column_name:
                by_column.setdefault(constraint.column_name, []).append(constraint)
        structure = [
            column.model_copy(update={"constraints": by_column.get(column.column_name, [])})
            for column in structure
        ]

    return TableReport(table_name=table, schema_name=schema, structure=structure, **fields)


def render_table_report(report: TableReport) -> str:
    """Markdown for a TableReport in fixed section order.

    A requested section with nothing to show still gets its heading.
    The constraints heading is the exception: column constraints are
    already shown inline, so it only appears for table-level ones.
    """
    with_constraints = report.constraints is not None
    lines = [f"## {report.table_name}", ""]
    lines.extend(structure_lines(report.structure, with_constraints=with_constraints))

    for section, spec in SECTIONS.items():
        if getattr(report, spec.field) is None:
            continue
        body = spec.render(report)
        if section is TableSection.CONSTRAINTS and not body:
            continue
        lines.extend(["", f"### {spec.title}"])
        lines.extend(body or ["*None*"])

    return "\n".join(lines) + "\n"
