"""Tests for the postgres-mcp CLI."""

import json

import pytest

from postgres_mcp import __version__
from postgres_mcp.cli import main as cli_main
from postgres_mcp.cli.main import app, run
from postgres_mcp.core.exceptions import ConfigError, NetworkError
from postgres_mcp.core.exit_codes import ExitCode

NO_DSN_ENV = {"DATABASE_URL": "", "POSTGRES_URL": "", "SENTRY_DSN": ""}
DSN = "postgresql://tester@localhost:5432/testdb"


@pytest.mark.unit
class TestHelpAndVersion:
    def test_help(self, runner):
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        assert "serve" in result.output
        assert "check" in result.output

    def test_version(self, runner):
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert f"postgres-mcp {__version__}" in result.output

    def test_serve_help_lists_options(self, runner):
        result = runner.invoke(app, ["serve", "--help"])
        assert result.exit_code == 0
        assert "--dsn" in result.output
        assert "--pool-max-size" in result.output


@pytest.mark.unit
class TestServe:
    def test_missing_dsn(self, runner):
        result = runner.invoke(app, ["serve"], env=NO_DSN_ENV)
        assert isinstance(result.exception, ConfigError)

    def test_resolves_config(self, runner, monkeypatch):
        captured = {}

        async def fake_serve(config):
            captured["config"] = config

        monkeypatch.setattr(cli_main, "_serve", fake_serve)
        result = runner.invoke(
            app,
            ["serve", "--dsn", DSN, "--pool-max-size", "3"],
            env=NO_DSN_ENV,
        )
        assert result.exit_code == 0, result.output
        config = captured["config"]
        assert config.dsn == DSN
        assert config.pool_max_size == 3
        assert config.sources["dsn"] == "cli: --dsn"

    def test_dsn_from_environment(self, runner, monkeypatch):
        captured = {}

        async def fake_serve(config):
            captured["config"] = config

        monkeypatch.setattr(cli_main, "_serve", fake_serve)
        env = dict(NO_DSN_ENV, POSTGRES_URL=DSN)
        result = runner.invoke(app, ["serve"], env=env)
        assert result.exit_code == 0, result.output
        assert captured["config"].sources["dsn"] == "env: POSTGRES_URL"


@pytest.mark.unit
class TestCheck:
    def test_prints_server_info(self, runner, monkeypatch):
        async def fake_check(config):
            assert config.pool_max_size == 1
            return {"version": "PostgreSQL 16.2", "database": "testdb"}

        monkeypatch.setattr(cli_main, "_check", fake_check)
        result = runner.invoke(app, ["check", "--dsn", DSN], env=NO_DSN_ENV)
        assert result.exit_code == 0, result.output
        assert json.loads(result.output)["database"] == "testdb"


@pytest.mark.unit
class TestRun:
    def test_pg_mcp_error_maps_to_exit_code(self, monkeypatch, capsys):
        def failing_app():
            raise ConfigError("DATABASE_URL or POSTGRES_URL environment variable must be set")

        monkeypatch.setattr(cli_main, "app", failing_app)
        with pytest.raises(SystemExit) as exc_info:
            run()
        assert exc_info.value.code == ExitCode.CONFIG_ERROR
        assert "Error: DATABASE_URL" in capsys.readouterr().err

    def test_network_error_exit_code(self, monkeypatch):
        def failing_app():
            raise NetworkError("Connection failed")

        monkeypatch.setattr(cli_main, "app", failing_app)
        with pytest.raises(SystemExit) as exc_info:
            run()
        assert exc_info.value.code == ExitCode.NETWORK_ERROR

    def test_keyboard_interrupt(self, monkeypatch):
        def interrupted_app():
            raise KeyboardInterrupt

        monkeypatch.setattr(cli_main, "app", interrupted_app)
        with pytest.raises(SystemExit) as exc_info:
            run()
        assert exc_info.value.code == ExitCode.INTERRUPTED

    def test_unexpected_error(self, monkeypatch):
        def broken_app():
            raise RuntimeError("unexpected")

        monkeypatch.setattr(cli_main, "app", broken_app)
        with pytest.raises(SystemExit) as exc_info:
            run()
        assert exc_info.value.code == ExitCode.GENERAL_ERROR
