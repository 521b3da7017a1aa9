"""Shared test fixtures for postgres-mcp."""

import pytest
from typer.testing import CliRunner

from postgres_mcp.core.config import ServerConfig
from postgres_mcp.core.database import Database
from tests.fakes import FakeConnection, FakePool


@pytest.fixture
def runner():
    """Typer CLI test runner."""
    return CliRunner()


@pytest.fixture
def server_config():
    return ServerConfig(dsn="postgresql://tester@localhost:5432/testdb")


@pytest.fixture
def fake_conn():
    return FakeConnection()


@pytest.fixture
def fake_pool(fake_conn):
    return FakePool(fake_conn)


@pytest.fixture
def db(server_config, fake_pool):
    """Database whose pool is the in-memory fake."""
    database = Database(server_config)
    database._pool = fake_pool  # type: ignore[assignment]
    return database
