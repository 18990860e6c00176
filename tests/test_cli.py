"""
Tests for the command-line interface.
"""

import json

import pytest
from click.testing import CliRunner

from careermatch.cli import main
from careermatch.config import ConfigManager
from careermatch.db import CareerMatchDB

from conftest import isolate_env


@pytest.fixture
def cli_env(tmp_path, monkeypatch):
    isolate_env(monkeypatch)
    db_path = tmp_path / "cli.db"
    monkeypatch.setenv("CAREERMATCH_DB_PATH", str(db_path))
    return tmp_path, db_path


def run(tmp_path, *args):
    return CliRunner().invoke(main, ["--config-dir", str(tmp_path), *args])


class TestCli:
    """Test commands that do not need an embedding provider."""

    def test_add_and_list_jobs(self, cli_env):
        tmp_path, db_path = cli_env

        result = run(tmp_path, "jobs", "add", "--title", "Data Engineer", "--company", "Acme")
        assert result.exit_code == 0, result.output
        assert "Added job" in result.output

        result = run(tmp_path, "jobs", "list")
        assert result.exit_code == 0
        assert "Acme" in result.output

        with CareerMatchDB(str(db_path)) as db:
            assert db.get_job_count() == 1

    def test_add_profile_from_file(self, cli_env, sample_resume):
        tmp_path, db_path = cli_env
        resume = tmp_path / "resume.json"
        resume.write_text(json.dumps(sample_resume))

        result = run(tmp_path, "profiles", "add", "--user", "user-1", "--file", str(resume))
        assert result.exit_code == 0, result.output

        with CareerMatchDB(str(db_path)) as db:
            assert db.get_active_profile("user-1").data == sample_resume

    def test_invalid_resume_json(self, cli_env):
        tmp_path, _ = cli_env
        resume = tmp_path / "broken.json"
        resume.write_text("{not json")

        result = run(tmp_path, "profiles", "add", "--user", "user-1", "--file", str(resume))
        assert result.exit_code != 0
        assert "Invalid resume JSON" in result.output

    def test_matches_without_profile_lists_recent_jobs(self, cli_env):
        tmp_path, _ = cli_env
        run(tmp_path, "jobs", "add", "--title", "Backend Engineer", "--company", "Beta")

        result = run(tmp_path, "matches", "show", "--user", "nobody")
        assert result.exit_code == 0
        assert "Backend Engineer" in result.output

    def test_refresh_requires_target(self, cli_env):
        tmp_path, _ = cli_env
        result = run(tmp_path, "scores", "refresh")
        assert result.exit_code != 0
        assert "Provide --user or --profile-id" in result.output

    def test_config_set_and_validate(self, cli_env):
        tmp_path, _ = cli_env

        result = run(tmp_path, "config", "set", "matching", "batch_timeout", "45")
        assert result.exit_code == 0
        assert ConfigManager(str(tmp_path)).get("matching", "batch_timeout") == 45.0

        result = run(tmp_path, "config", "validate")
        assert "jwt_secret" in result.output
