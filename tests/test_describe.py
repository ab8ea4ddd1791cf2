"""Tests for table description and its report rendering."""

import pytest

from supabase_mcp.core.describe import (
    TableSection,
    describe_table,
    render_table_report,
)
from supabase_mcp.core.exceptions import DatabaseError
from tests.fakes import result

STRUCTURE = result(
    {"column_name": "id", "data_type": "integer", "is_nullable": "NO", "ordinal_position": 1},
    {"column_name": "email", "data_type": "text", "is_nullable": "YES", "ordinal_position": 2},
)

SECTION_FRAGMENTS = {
    TableSection.CONSTRAINTS: "ORDER BY tc.constraint_name",
    TableSection.SAMPLE_ROWS: "LIMIT 3",
    TableSection.RLS_POLICIES: "pg_policy",
    TableSection.TRIGGERS: "information_schema.triggers",
    TableSection.INDEXES: "pg_indexes",
    TableSection.DEPENDENCIES: "pg_depend",
    TableSection.REFERENCED_BY: "AS referencing_table",
}


@pytest.fixture
def users_db(fake_db):
    fake_db.on("c.ordinal_position", STRUCTURE)
    return fake_db


@pytest.mark.unit
class TestDescribeTable:
    async def test_structure_only(self, users_db):
        report = await describe_table(users_db, "users")

        assert len(users_db.calls) == 1
        assert [c.column_name for c in report.structure] == ["id", "email"]
        assert report.constraints is None
        assert report.sample_rows is None
        assert report.referenced_by is None

        text = render_table_report(report)
        assert text.startswith("## users\n\n| Column | Type | Nullable | Default |")
        assert "###" not in text

    @pytest.mark.parametrize("section", list(TableSection))
    async def test_each_section_issues_only_its_query(self, users_db, section):
        await describe_table(users_db, "users", sections={section})

        assert len(users_db.calls) == 2
        assert users_db.queries_matching(SECTION_FRAGMENTS[section])
        others = [f for s, f in SECTION_FRAGMENTS.items() if s is not section]
        assert not any(users_db.queries_matching(f) for f in others)

    async def test_section_queries_scoped_by_schema(self, users_db):
        await describe_table(users_db, "users", "auth", sections={TableSection.TRIGGERS})

        _, params = users_db.queries_matching("information_schema.triggers")[0]
        assert params == {"table": "users", "schema": "auth"}

    async def test_sample_rows_query_is_quoted(self, users_db):
        await describe_table(users_db, "users", "auth", sections={TableSection.SAMPLE_ROWS})

        sql, _ = users_db.queries_matching("LIMIT 3")[0]
        assert sql == 'SELECT * FROM "auth"."users" LIMIT 3'

    async def test_constraints_attached_to_columns(self, users_db):
        users_db.on(
            "ORDER BY tc.constraint_name",
            result(
                {
                    "constraint_name": "users_pkey",
                    "constraint_type": "PRIMARY KEY",
                    "column_name": "id",
                },
                {
                    "constraint_name": "users_email_check",
                    "constraint_type": "CHECK",
                    "column_name": None,
                    "check_clause": "(email <> '')",
                },
            ),
        )
        report = await describe_table(users_db, "users", sections={TableSection.CONSTRAINTS})

        id_column, email_column = report.structure
        assert [c.constraint_name for c in id_column.constraints] == ["users_pkey"]
        assert email_column.constraints == []

        text = render_table_report(report)
        assert "|    | *PRIMARY KEY* |  |  |" in text
        assert "### Constraints\n- **users_email_check** (CHECK): (email <> '')" in text

    async def test_constraints_heading_omitted_without_table_level(self, users_db):
        users_db.on(
            "ORDER BY tc.constraint_name",
            result(
                {
                    "constraint_name": "users_pkey",
                    "constraint_type": "PRIMARY KEY",
                    "column_name": "id",
                }
            ),
        )
        report = await describe_table(users_db, "users", sections={TableSection.CONSTRAINTS})
        assert "### Constraints" not in render_table_report(report)

    async def test_sample_rows(self, users_db):
        users_db.on("LIMIT 3", result({"id": 1, "email": None}))
        report = await describe_table(users_db, "users", sections={TableSection.SAMPLE_ROWS})

        assert report.sample_row_count == 1
        text = render_table_report(report)
        assert "### Sample Data\n| id | email |\n|---|---|\n| 1 | *null* |" in text

    async def test_empty_sample(self, users_db):
        report = await describe_table(users_db, "users", sections={TableSection.SAMPLE_ROWS})
        assert report.sample_rows == []
        assert "### Sample Data\n*No rows*" in render_table_report(report)

    async def test_empty_requested_section_still_rendered(self, users_db):
        report = await describe_table(users_db, "users", sections={TableSection.TRIGGERS})
        assert report.triggers == []
        assert "### Triggers\n*None*" in render_table_report(report)

    async def test_sections_render_in_fixed_order(self, users_db):
        users_db.on(
            "pg_indexes",
            result(
                {
                    "index_name": "users_pkey",
                    "is_primary": True,
                    "is_unique": True,
                    "size": "16 kB",
                }
            ),
        )
        users_db.on(
            "AS referencing_table",
            result({"referencing_table": "orders", "referencing_column": "user_id"}),
        )
        users_db.on(
            "pg_policy",
            result(
                {
                    "policy_name": "own_rows",
                    "command": "r",
                    "using_expression": "(auth.uid() = id)",
                }
            ),
        )
        report = await describe_table(
            users_db,
            "users",
            sections={
                TableSection.REFERENCED_BY,
                TableSection.INDEXES,
                TableSection.RLS_POLICIES,
            },
        )
        text = render_table_report(report)

        rls = text.index("### RLS Policies")
        indexes = text.index("### Indexes")
        referenced = text.index("### Referenced By")
        assert rls < indexes < referenced
        assert "- **own_rows** (r)\n  - Using: (auth.uid() = id)" in text
        assert "- **users_pkey** (PRIMARY, UNIQUE) - 16 kB" in text
        assert "- orders.user_id" in text

    async def test_rows_missing_required_keys_skipped(self, users_db):
        users_db.on(
            "information_schema.triggers",
            result(
                {"trigger_name": "audit", "timing": "AFTER", "event": "INSERT"},
                {"trigger_name": None},
            ),
        )
        report = await describe_table(users_db, "users", sections={TableSection.TRIGGERS})

        assert [t.trigger_name for t in report.triggers] == ["audit"]
        assert "- **audit** (AFTER INSERT)" in render_table_report(report)

    async def test_dependencies_rendered(self, users_db):
        users_db.on(
            "pg_depend",
            result(
                {
                    "object_name": "users",
                    "referenced_name": "users_id_seq",
                    "dependency_type_desc": "auto",
                }
            ),
        )
        report = await describe_table(users_db, "users", sections={TableSection.DEPENDENCIES})
        assert "- users → users_id_seq (auto)" in render_table_report(report)

    async def test_section_failure_aborts(self, users_db):
        users_db.on("pg_policy", DatabaseError("permission denied for table pg_policy"))
        with pytest.raises(DatabaseError, match="permission denied"):
            await describe_table(
                users_db,
                "users",
                sections={TableSection.RLS_POLICIES, TableSection.INDEXES},
            )

    async def test_all_sections_share_one_runner(self, users_db):
        await describe_table(users_db, "users", sections=set(TableSection))
        assert len(users_db.calls) == 1 + len(TableSection)
