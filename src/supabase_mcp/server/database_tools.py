"""Database tools: execute-sql and the catalog lookups."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from pydantic import Field

from supabase_mcp.core import catalog
from supabase_mcp.core.client import open_runner
from supabase_mcp.core.describe import TableSection, describe_table, render_table_report
from supabase_mcp.core.exceptions import DatabaseError
from supabase_mcp.core.guidance import TROUBLESHOOTING, build_guidance
from supabase_mcp.formatters.markdown import MarkdownFormatter
from supabase_mcp.server.registry import ToolArgs, ToolSpec
from supabase_mcp.server.response import (
    error_response,
    guided_error_response,
    markdown_response,
)

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from mcp.types import TextContent

    from supabase_mcp.core.client import DatabaseClient, QueryRunner

_SCHEMA_DESCRIPTION = "Schema name (defaults to 'public')"


class ExecuteSqlArgs(ToolArgs):
    query: str = Field(description="The SQL query to execute")


class DescribeTableArgs(ToolArgs):
    table_name: str = Field(description="The name of the table to describe")
    schema_name: str = Field(default=catalog.DEFAULT_SCHEMA, description=_SCHEMA_DESCRIPTION)
    include_constraints: bool = Field(default=False, description="Whether to include constraints")
    include_sample_rows: bool = Field(default=False, description="Whether to include sample rows")
    include_rls_policies: bool = Field(
        default=False, description="Whether to include RLS policies"
    )
    include_triggers: bool = Field(default=False, description="Whether to include triggers")
    include_indexes: bool = Field(default=False, description="Whether to include indexes")
    include_dependencies: bool = Field(
        default=False, description="Whether to include dependencies"
    )
    include_referenced_by: bool = Field(
        default=False, description="Whether to include tables that reference this table"
    )

    def sections(self) -> set[TableSection]:
        flags = {
            TableSection.CONSTRAINTS: self.include_constraints,
            TableSection.SAMPLE_ROWS: self.include_sample_rows,
            TableSection.RLS_POLICIES: self.include_rls_policies,
            TableSection.TRIGGERS: self.include_triggers,
            TableSection.INDEXES: self.include_indexes,
            TableSection.DEPENDENCIES: self.include_dependencies,
            TableSection.REFERENCED_BY: self.include_referenced_by,
        }
        return {section for section, on in flags.items() if on}


class SchemaArgs(ToolArgs):
    schema_name: str = Field(default=catalog.DEFAULT_SCHEMA, description=_SCHEMA_DESCRIPTION)


class FunctionDefinitionArgs(ToolArgs):
    function_name: str = Field(description="The name of the function to get definition for")
    schema_name: str = Field(default=catalog.DEFAULT_SCHEMA, description=_SCHEMA_DESCRIPTION)


class ShowConstraintsArgs(ToolArgs):
    table_name: str | None = Field(
        default=None, description="Limit the listing to one table (defaults to every table)"
    )
    schema_name: str = Field(default=catalog.DEFAULT_SCHEMA, description=_SCHEMA_DESCRIPTION)


class DatabaseTools:
    """Handlers for every database tool, bound to one connection strategy."""

    def __init__(self, client: DatabaseClient) -> None:
        self.client = client

    async def _catalog(
        self, operation: Callable[..., Awaitable[Any]], *args: Any
    ) -> Any:
        async with open_runner(self.client) as runner:
            return await operation(runner, *args)

    async def execute_sql(self, args: ExecuteSqlArgs) -> list[TextContent]:
        try:
            result = await self.client.query(args.query)
        except DatabaseError as e:
            guidance = await build_guidance(e.message, args.query, self.client)
            return guided_error_response(e.message, guidance)
        return markdown_response("\n".join(MarkdownFormatter().format(result)))

    async def describe_table(self, args: DescribeTableArgs) -> list[TextContent]:
        async def run(runner: QueryRunner) -> Any:
            return await describe_table(
                runner, args.table_name, args.schema_name, args.sections()
            )

        try:
            report = await self._catalog(run)
        except DatabaseError as e:
            return guided_error_response(e.message, TROUBLESHOOTING)
        return markdown_response(render_table_report(report))

    async def describe_functions(self, args: SchemaArgs) -> list[TextContent]:
        try:
            functions = await self._catalog(catalog.describe_functions, args.schema_name)
        except DatabaseError as e:
            return guided_error_response(e.message, TROUBLESHOOTING)
        return markdown_response(catalog.render_functions(args.schema_name, functions))

    async def get_function_definition(
        self, args: FunctionDefinitionArgs
    ) -> list[TextContent]:
        try:
            func = await self._catalog(
                catalog.get_function_definition, args.function_name, args.schema_name
            )
        except DatabaseError as e:
            return guided_error_response(e.message, TROUBLESHOOTING)
        if func is None:
            return error_response(
                f"Function '{args.function_name}' not found in schema '{args.schema_name}'"
            )
        return markdown_response(catalog.render_function_definition(func))

    async def list_tables(self, args: SchemaArgs) -> list[TextContent]:
        try:
            tables = await self._catalog(catalog.list_tables, args.schema_name)
        except DatabaseError as e:
            return guided_error_response(e.message, TROUBLESHOOTING)
        return markdown_response(catalog.render_tables(args.schema_name, tables))

    async def show_constraints(self, args: ShowConstraintsArgs) -> list[TextContent]:
        try:
            grouped = await self._catalog(
                catalog.show_constraints, args.schema_name, args.table_name
            )
        except DatabaseError as e:
            return guided_error_response(e.message, TROUBLESHOOTING)
        return markdown_response(
            catalog.render_constraints(args.schema_name, grouped, args.table_name)
        )

    def specs(self) -> list[ToolSpec]:
        return [
            ToolSpec(
                name="execute-sql",
                description=(
                    "Execute SQL queries on Supabase database. Remember to fetch "
                    "the table structure before guessing at the schema."
                ),
                args_model=ExecuteSqlArgs,
                handler=self.execute_sql,
            ),
            ToolSpec(
                name="describe-table",
                description=(
                    "Get table structure, including constraints, RLS policies, "
                    "triggers, indexes, dependencies, and referenced by. Use this "
                    "first before making specific queries against a table."
                ),
                args_model=DescribeTableArgs,
                handler=self.describe_table,
            ),
            ToolSpec(
                name="describe-functions",
                description="Get function signatures from the database",
                args_model=SchemaArgs,
                handler=self.describe_functions,
            ),
            ToolSpec(
                name="get-function-definition",
                description="Get the complete definition of a single RPC function",
                args_model=FunctionDefinitionArgs,
                handler=self.get_function_definition,
            ),
            ToolSpec(
                name="list-tables",
                description="List all tables in a schema with row counts",
                args_model=SchemaArgs,
                handler=self.list_tables,
            ),
            ToolSpec(
                name="show-constraints",
                description=(
                    "List primary key, foreign key, unique and check constraints "
                    "in a schema, grouped by table"
                ),
                args_model=ShowConstraintsArgs,
                handler=self.show_constraints,
            ),
        ]
