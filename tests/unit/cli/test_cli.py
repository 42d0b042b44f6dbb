"""Unit tests — CLI commands (serve, drivers, tools, config)."""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from typer.testing import CliRunner

from db_bridge.cli.main import app
from db_bridge.config import Settings

runner = CliRunner()


@pytest.mark.unit
class TestMainCLI:
    def test_help_exits_zero(self) -> None:
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0

    def test_main_no_args_shows_help(self) -> None:
        result = runner.invoke(app, [])
        assert result.exit_code in (0, 2)

    @pytest.mark.parametrize("group", ["serve", "drivers", "tools", "config"])
    def test_subcommand_help(self, group: str) -> None:
        result = runner.invoke(app, [group, "--help"])
        assert result.exit_code == 0


@pytest.mark.unit
class TestServe:
    def test_start_builds_app_and_runs_uvicorn(self) -> None:
        settings = Settings()
        with (
            patch("db_bridge.config.Settings.load", return_value=settings),
            patch("db_bridge.api.server.create_app") as mock_create,
            patch("db_bridge.cli.commands.serve.uvicorn.run") as mock_run,
        ):
            result = runner.invoke(
                app, ["serve", "start", "--port", "41001", "--log-level", "debug"]
            )

        assert result.exit_code == 0
        mock_create.assert_called_once_with(settings=settings)
        mock_run.assert_called_once()
        assert mock_run.call_args.kwargs["port"] == 41001
        assert settings.server.port == 41001
        assert settings.logging.level == "debug"

    def test_stdio_runs_mcp_server(self) -> None:
        settings = Settings()
        with (
            patch("db_bridge.config.Settings.load", return_value=settings) as mock_load,
            patch("db_bridge.api.stdio.serve_stdio", new_callable=AsyncMock) as mock_serve,
        ):
            result = runner.invoke(app, ["serve", "stdio", "-c", "bridge.yaml"])

        assert result.exit_code == 0
        assert result.output == ""
        mock_load.assert_called_once_with(config_file=Path("bridge.yaml"))
        mock_serve.assert_awaited_once_with(settings)
        assert settings.logging.level == "warning"

    def test_status_prints_health(self) -> None:
        resp = MagicMock()
        resp.json.return_value = {"status": "ok", "connections": 2}
        with patch("httpx.get", return_value=resp) as mock_get:
            result = runner.invoke(app, ["serve", "status", "--port", "41002"])

        assert result.exit_code == 0
        mock_get.assert_called_once_with("http://127.0.0.1:41002/health", timeout=5.0)
        assert "connections" in result.output

    def test_status_unreachable(self) -> None:
        with patch("httpx.get", side_effect=OSError("Connection refused")):
            result = runner.invoke(app, ["serve", "status"])
        assert result.exit_code == 1
        assert "Server unreachable" in result.output


@pytest.mark.unit
class TestDrivers:
    def test_list_table(self) -> None:
        result = runner.invoke(app, ["drivers", "list"])
        assert result.exit_code == 0
        assert "redis" in result.output
        assert "mysql" in result.output

    def test_list_json(self) -> None:
        result = runner.invoke(app, ["drivers", "list", "--json"])
        assert result.exit_code == 0
        assert '"type": "postgresql"' in result.output


def _mock_http_client(response: MagicMock) -> MagicMock:
    client = MagicMock()
    client.get.return_value = response
    client.post.return_value = response
    client_cls = MagicMock()
    client_cls.return_value.__enter__.return_value = client
    return client_cls


@pytest.mark.unit
class TestTools:
    def test_list(self) -> None:
        resp = MagicMock()
        resp.json.return_value = [{
            "name": "execute_query",
            "description": "Run a statement.",
            "params_schema": {"required": ["connection", "query"]},
        }]
        client_cls = _mock_http_client(resp)
        with patch("httpx.Client", client_cls):
            result = runner.invoke(app, ["tools", "list"])
        assert result.exit_code == 0
        assert "execute_query" in result.output

    def test_call_success(self) -> None:
        resp = MagicMock()
        resp.json.return_value = {"success": True, "output": {"count": 0}}
        client_cls = _mock_http_client(resp)
        with patch("httpx.Client", client_cls):
            result = runner.invoke(
                app,
                ["tools", "call", "list_connections", "--params", "{}", "--token", "abc"],
            )
        assert result.exit_code == 0
        assert client_cls.call_args.kwargs["headers"] == {"X-DB-Bridge-Token": "abc"}
        client = client_cls.return_value.__enter__.return_value
        client.post.assert_called_once_with("/tools/list_connections", json={})

    def test_call_failure_exits_one(self) -> None:
        resp = MagicMock()
        resp.json.return_value = {"success": False, "error": "Connection 'x' not found"}
        with patch("httpx.Client", _mock_http_client(resp)):
            result = runner.invoke(
                app, ["tools", "call", "execute_query", "-p", '{"connection": "x", "query": "1"}']
            )
        assert result.exit_code == 1

    def test_call_invalid_json(self) -> None:
        result = runner.invoke(app, ["tools", "call", "execute_query", "-p", "{not json"])
        assert result.exit_code == 2

    def test_call_non_object(self) -> None:
        result = runner.invoke(app, ["tools", "call", "execute_query", "-p", "[1, 2]"])
        assert result.exit_code == 2


@pytest.mark.unit
class TestConfig:
    @pytest.fixture
    def config_file(self, tmp_path: Path) -> Path:
        path = tmp_path / "config.yaml"
        path.write_text(
            "connections:\n"
            "  warehouse:\n"
            "    type: postgresql\n"
            "    host: wh.internal\n"
            "    database: dw\n"
            "    user: etl\n"
            "    password: very-secret\n"
        )
        return path

    def test_list(self, config_file: Path) -> None:
        result = runner.invoke(app, ["config", "list", "--config", str(config_file)])
        assert result.exit_code == 0
        assert "warehouse" in result.output

    def test_show_masks_secrets(self, config_file: Path) -> None:
        result = runner.invoke(app, ["config", "show", "warehouse", "-c", str(config_file)])
        assert result.exit_code == 0
        assert "very-secret" not in result.output
        assert "****" in result.output
        assert "wh.internal" in result.output

    def test_show_unknown(self, config_file: Path) -> None:
        result = runner.invoke(app, ["config", "show", "ghost", "-c", str(config_file)])
        assert result.exit_code == 1

    def test_show_masks_camel_case_aws_secrets(self, tmp_path: Path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text(
            "connections:\n"
            "  events:\n"
            "    type: dynamodb\n"
            "    region: eu-west-1\n"
            "    accessKeyId: AKIAEXAMPLE\n"
            "    secretAccessKey: aws-secret\n"
            "    sessionToken: aws-session\n"
        )
        result = runner.invoke(app, ["config", "show", "events", "-c", str(path)])
        assert result.exit_code == 0
        assert "aws-secret" not in result.output
        assert "aws-session" not in result.output
        assert "AKIAEXAMPLE" in result.output
