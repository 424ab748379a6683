"""
Tests for the dyntable CLI.

Each test points the CLI at its own SQLite file with --db-path.
"""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from dyntable import __version__
from dyntable.cli import app

runner = CliRunner()


@pytest.fixture
def cli(tmp_path: Path):
    db = str(tmp_path / "cli.db")

    def invoke(*args: str):
        return runner.invoke(app, ["--db-path", db, *args])

    return invoke


class TestVersion:
    def test_version(self):
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output


class TestTablesCommands:
    """Test `dyntable tables ...`."""

    def test_list_shows_default_table(self, cli):
        result = cli("tables", "list")
        assert result.exit_code == 0
        assert "users" in result.output

    def test_create_from_sample(self, cli):
        result = cli("tables", "create", "events", "--sample", '{"title": "hi", "count": 3}')
        assert result.exit_code == 0, result.output
        assert "events" in result.output

        result = cli("tables", "describe", "events")
        assert result.exit_code == 0
        assert "VARCHAR(255)" in result.output
        assert "INTEGER" in result.output

    def test_create_invalid_json(self, cli):
        result = cli("tables", "create", "events", "--sample", "{not json")
        assert result.exit_code == 1
        assert "Invalid JSON" in result.output

    def test_create_conflict(self, cli):
        cli("tables", "create", "events")
        result = cli("tables", "create", "events")
        assert result.exit_code == 1
        assert "ConflictError" in result.output

    def test_drop_users_forbidden(self, cli):
        result = cli("tables", "drop", "users")
        assert result.exit_code == 1
        assert "ForbiddenError" in result.output


class TestColumnsCommands:
    """Test `dyntable columns ...`."""

    def test_add_and_list(self, cli):
        result = cli("columns", "add", "users", "Work Email")
        assert result.exit_code == 0
        assert "work_email" in result.output

        result = cli("columns", "list", "users")
        assert result.exit_code == 0
        assert "work_email" in result.output

    def test_drop_id_forbidden(self, cli):
        result = cli("columns", "drop", "users", "id")
        assert result.exit_code == 1


class TestRecordsCommands:
    """Test `dyntable records ...`."""

    def test_create_and_list_json(self, cli):
        result = cli("records", "create", '{"nickname": "bob"}')
        assert result.exit_code == 0, result.output

        result = cli("records", "list", "--json")
        assert result.exit_code == 0
        assert json.loads(result.output) == [{"id": 1, "nickname": "bob"}]

    def test_get_update_delete(self, cli):
        cli("records", "create", '{"nickname": "bob"}')

        assert cli("records", "update", "1", '{"nickname": "rob"}').exit_code == 0
        result = cli("records", "get", "1")
        assert json.loads(result.output) == {"id": 1, "nickname": "rob"}

        assert cli("records", "delete", "1").exit_code == 0
        result = cli("records", "get", "1")
        assert result.exit_code == 1
        assert "NotFoundError" in result.output

    def test_invalid_email(self, cli):
        result = cli("records", "create", '{"email": "nope"}')
        assert result.exit_code == 1
        assert "ValidationError" in result.output

    def test_payload_must_be_object(self, cli):
        result = cli("records", "create", "[1, 2]")
        assert result.exit_code == 1


class TestLogsCommand:
    """Test `dyntable logs`."""

    def test_filters_by_level(self, tmp_path: Path):
        log_dir = tmp_path / "logs"
        log_dir.mkdir()
        (log_dir / "dyntable.log").write_text(
            json.dumps({"level": "INFO", "component": "SCHEMA", "message": "Added column"})
            + "\n"
            + json.dumps({"level": "WARNING", "component": "ENGINE", "message": "Field dropped"})
            + "\n",
            encoding="utf-8",
        )

        result = runner.invoke(
            app, ["--log-dir", str(log_dir), "logs", "--level", "WARNING", "--json"]
        )
        assert result.exit_code == 0, result.output
        entries = json.loads(result.output)
        assert [e["message"] for e in entries] == ["Field dropped"]

    def test_empty_log(self, tmp_path: Path):
        result = runner.invoke(app, ["--log-dir", str(tmp_path), "logs"])
        assert result.exit_code == 0
        assert "No log entries" in result.output
