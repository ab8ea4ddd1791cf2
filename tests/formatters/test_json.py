"""Tests for JSONFormatter."""

import json
from datetime import UTC, datetime
from decimal import Decimal

import pytest

from supabase_mcp.core.models import QueryResult
from supabase_mcp.formatters.base import Formatter
from supabase_mcp.formatters.json import JSONFormatter


def _make_result(rows=None):
    if rows is None:
        rows = [{"id": 1, "name": "alice"}, {"id": 2, "name": "bob"}]
    return QueryResult(rows=rows, row_count=len(rows), command="SELECT")


@pytest.mark.unit
def test_json_formatter_implements_protocol():
    assert isinstance(JSONFormatter(), Formatter)


@pytest.mark.unit
def test_json_formatter_outputs_rows():
    output = "\n".join(JSONFormatter().format(_make_result()))
    assert json.loads(output) == [{"id": 1, "name": "alice"}, {"id": 2, "name": "bob"}]


@pytest.mark.unit
def test_json_formatter_pretty_by_default():
    lines = list(JSONFormatter().format(_make_result()))
    assert "\n  " in lines[0]


@pytest.mark.unit
def test_json_formatter_compact_single_line():
    lines = list(JSONFormatter(compact=True).format(_make_result()))
    assert len(lines) == 1
    assert "\n" not in lines[0]


@pytest.mark.unit
def test_json_formatter_empty_result():
    output = "\n".join(JSONFormatter().format(_make_result(rows=[])))
    assert json.loads(output) == []


@pytest.mark.unit
def test_json_formatter_serializes_non_json_types():
    ts = datetime(2024, 1, 15, 10, 30, tzinfo=UTC)
    result = _make_result(rows=[{"at": ts, "amount": Decimal("9.99"), "tags": ["a"]}])
    parsed = json.loads("\n".join(JSONFormatter().format(result)))
    assert parsed == [{"at": str(ts), "amount": "9.99", "tags": ["a"]}]
