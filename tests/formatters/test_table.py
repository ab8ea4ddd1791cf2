"""Tests for TableFormatter."""

import pytest

from supabase_mcp.core.models import QueryResult
from supabase_mcp.formatters.base import Formatter
from supabase_mcp.formatters.table import TableFormatter


def _make_result(rows=None):
    if rows is None:
        rows = [{"id": 1, "name": "alice"}, {"id": 2, "name": None}]
    return QueryResult(rows=rows, row_count=len(rows))


@pytest.mark.unit
def test_table_formatter_implements_protocol():
    assert isinstance(TableFormatter(), Formatter)


@pytest.mark.unit
def test_table_formatter_outputs_headers_and_values():
    output = "\n".join(TableFormatter().format(_make_result()))
    assert "id" in output
    assert "name" in output
    assert "alice" in output


@pytest.mark.unit
def test_table_formatter_null_is_blank():
    output = "\n".join(TableFormatter().format(_make_result()))
    assert "None" not in output


@pytest.mark.unit
def test_table_formatter_empty_result_shows_no_results():
    assert list(TableFormatter().format(_make_result(rows=[]))) == ["No results"]


@pytest.mark.unit
def test_table_formatter_truncates_long_values():
    result = _make_result(rows=[{"text": "x" * 100}])
    output = "\n".join(TableFormatter(width=10).format(result))
    assert "x" * 9 + "…" in output
    assert "x" * 10 not in output
