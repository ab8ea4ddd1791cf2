"""Shared test fixtures for supabase-mcp."""

from pathlib import Path
from tempfile import TemporaryDirectory

import pytest
from typer.testing import CliRunner

from supabase_mcp.core.config import Settings, StorageSettings
from tests.fakes import FakeDatabase


@pytest.fixture
def fake_db():
    return FakeDatabase()


@pytest.fixture
def storage_settings():
    return StorageSettings(url="https://proj.supabase.co/", service_key="service-key")


@pytest.fixture
def settings(storage_settings):
    return Settings(storage=storage_settings)


@pytest.fixture
def runner():
    """Typer CLI test runner."""
    return CliRunner()


@pytest.fixture
def temp_dir():
    """Temporary directory for test files."""
    with TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)
