"""Tests for package structure and imports."""

import pytest


@pytest.mark.unit
def test_package_imports():
    """Package imports without errors."""
    import supabase_mcp

    assert supabase_mcp is not None


@pytest.mark.unit
def test_version_accessible():
    from supabase_mcp import __version__

    assert isinstance(__version__, str)
    assert len(__version__) > 0


@pytest.mark.unit
def test_version_format():
    """Version follows semver format."""
    from supabase_mcp import __version__

    parts = __version__.split(".")
    assert len(parts) == 3
    for part in parts:
        assert part.isdigit()


@pytest.mark.unit
def test_server_modules_import():
    from supabase_mcp.server import app, database_tools, registry, storage_tools

    assert app.SERVER_NAME == "supabase"
    assert registry.ToolRegistry is not None
    assert database_tools.DatabaseTools is not None
    assert storage_tools.StorageTools is not None
