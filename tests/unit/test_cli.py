"""Tests for the lemrecon CLI against a throwaway SQLite file."""

from __future__ import annotations

import pytest
from typer.testing import CliRunner

from lemrecon.cli import app
from lemrecon.config import reset_config

runner = CliRunner()


@pytest.fixture
def db_env(monkeypatch, tmp_path):
    monkeypatch.setenv("DATABASE_URL", f"sqlite+aiosqlite:///{tmp_path / 'cli.db'}")
    reset_config()
    result = runner.invoke(app, ["init"])
    assert result.exit_code == 0, result.output


class TestKp:
    def test_parse(self):
        result = runner.invoke(app, ["kp", "5+250"])
        assert result.exit_code == 0
        assert "5250 m (5+250)" in result.output

    def test_bare_kilometres(self):
        result = runner.invoke(app, ["kp", "12"])
        assert "12000 m (12+000)" in result.output

    def test_unreadable(self):
        result = runner.invoke(app, ["kp", "abc"])
        assert result.exit_code == 1


class TestCoverage:
    def test_empty_history(self, db_env):
        result = runner.invoke(app, ["coverage", "Grading", "5+000", "6+000", "--date", "2024-06-01"])
        assert result.exit_code == 0, result.output
        assert "No overlaps or gaps" in result.output


class TestLifecycleCommands:
    def test_compare_missing_field_log(self, db_env):
        result = runner.invoke(app, ["compare", "00000000-0000-0000-0000-000000000000"])
        assert result.exit_code == 1
        assert "not found" in result.output

    def test_finalize_requires_invoice_option(self, db_env):
        result = runner.invoke(app, ["finalize", "00000000-0000-0000-0000-000000000000"])
        assert result.exit_code != 0

    def test_archive_empty(self, db_env):
        result = runner.invoke(app, ["archive"])
        assert result.exit_code == 0, result.output
        assert "Archived field logs" in result.output
