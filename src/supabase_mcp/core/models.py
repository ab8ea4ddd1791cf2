"""Result models for supabase-mcp.

QueryResult is what both connection strategies return. The remaining
models are the merged shapes produced by the catalog operations before
they are rendered.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ColumnMeta(BaseModel):
    """Metadata for a single result column (direct mode only)."""

    name: str
    type_oid: int
    type_name: str


class QueryResult(BaseModel):
    """Result of a SQL query execution.

    row_count, command and columns are None when the backend cannot
    report them (remote execution).
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    rows: list[dict[str, Any]] = Field(default_factory=list)
    row_count: int | None = None
    command: str | None = None
    columns: list[ColumnMeta] | None = None


# ---------------------------------------------------------------------------
# Table description
# ---------------------------------------------------------------------------


class ConstraintInfo(BaseModel):
    constraint_name: str
    constraint_type: str
    column_name: str | None = None
    foreign_table_name: str | None = None
    foreign_column_name: str | None = None
    update_rule: str | None = None
    delete_rule: str | None = None
    check_clause: str | None = None


class ColumnInfo(BaseModel):
    column_name: str
    data_type: str
    is_nullable: str = "YES"
    column_default: str | None = None
    character_maximum_length: int | None = None
    numeric_precision: int | None = None
    numeric_scale: int | None = None
    ordinal_position: int | None = None
    constraints: list[ConstraintInfo] | None = None

    @property
    def nullable(self) -> bool:
        return self.is_nullable == "YES"

    @property
    def display_type(self) -> str:
        precision = ""
        if self.numeric_precision:
            scale = f",{self.numeric_scale}" if self.numeric_scale else ""
            precision = f"({self.numeric_precision}{scale})"
        length = (
            f"({self.character_maximum_length})"
            if self.character_maximum_length
            else ""
        )
        return f"{self.data_type}{precision}{length}"


class RlsPolicy(BaseModel):
    policy_name: str
    is_permissive: bool | None = None
    roles: Any = None
    command: str | None = None
    using_expression: str | None = None
    with_check_expression: str | None = None


class TriggerInfo(BaseModel):
    trigger_name: str
    event: str | None = None
    table_name: str | None = None
    timing: str | None = None
    definition: str | None = None
    condition: str | None = None
    orientation: str | None = None


class IndexInfo(BaseModel):
    index_name: str
    table_name: str | None = None
    definition: str | None = None
    is_unique: bool = False
    is_primary: bool = False
    is_exclusion: bool = False
    is_immediate: bool = True
    is_clustered: bool = False
    is_valid: bool = True
    index_type: str | None = None
    size: str | None = None


class DependencyInfo(BaseModel):
    object_type: str | None = None
    object_name: str | None = None
    object_subid: int | None = None
    referenced_type: str | None = None
    referenced_name: str | None = None
    referenced_subid: int | None = None
    dependency_type: str | None = None
    dependency_type_desc: str | None = None


class ReferenceInfo(BaseModel):
    referencing_table: str
    referencing_column: str | None = None
    referenced_table: str | None = None
    referenced_column: str | None = None
    constraint_name: str | None = None
    update_rule: str | None = None
    delete_rule: str | None = None


class TableReport(BaseModel):
    """Merged result of describe-table.

    Optional sections stay None unless they were requested.
    """

    table_name: str
    schema_name: str
    structure: list[ColumnInfo]
    constraints: list[ConstraintInfo] | None = None
    sample_rows: list[dict[str, Any]] | None = None
    sample_row_count: int | None = None
    rls_policies: list[RlsPolicy] | None = None
    triggers: list[TriggerInfo] | None = None
    indexes: list[IndexInfo] | None = None
    dependencies: list[DependencyInfo] | None = None
    referenced_by: list[ReferenceInfo] | None = None


# ---------------------------------------------------------------------------
# Listings
# ---------------------------------------------------------------------------


class TableEntry(BaseModel):
    table_name: str
    table_type: str | None = None
    table_comment: str | None = None
    column_count: int = 0
    row_count: int | None = None
    error: str | None = None


class FunctionInfo(BaseModel):
    function_name: str
    return_type: str | None = None
    arguments: str | None = None
    function_kind: str | None = None
    description: str | None = None


class FunctionDefinition(FunctionInfo):
    definition: str | None = None
    volatility: str | None = None
    volatility_label: str | None = None
    security_definer: bool = False
    is_strict: bool = False
    returns_set: bool = False
    language: str | None = None
    source_code: str | None = None
