"""
CLI commands via click's CliRunner.
"""

import pytest
from click.testing import CliRunner

from cairn import __version__
from cairn.cli import cli


@pytest.fixture
def env_file(tmp_path):
    path = tmp_path / ".env"
    path.write_text(
        f"CAIRN_DATABASE_URL=sqlite:///{tmp_path / 'cairn.db'}\n"
        f"CAIRN_STATIC_PATH={tmp_path}\n"
    )
    return str(path)


@pytest.fixture
def runner():
    return CliRunner()


class TestCli:

    def test_version(self, runner):
        result = runner.invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_help_lists_commands(self, runner):
        result = runner.invoke(cli, ["--help"])
        assert result.exit_code == 0
        for command in ("run", "seed", "reset-db"):
            assert command in result.output

    def test_seed_then_noop(self, runner, env_file):
        first = runner.invoke(cli, ["--env-file", env_file, "seed"], obj={})
        assert first.exit_code == 0, first.output
        assert "Seeded initial data" in first.output

        second = runner.invoke(cli, ["--env-file", env_file, "seed"], obj={})
        assert second.exit_code == 0
        assert "nothing to do" in second.output

    def test_reset_requires_confirmation(self, runner, env_file):
        result = runner.invoke(cli, ["--env-file", env_file, "reset-db"], input="n\n", obj={})
        assert result.exit_code != 0

    def test_reset_with_yes(self, runner, env_file):
        result = runner.invoke(cli, ["--env-file", env_file, "reset-db", "--yes"], obj={})
        assert result.exit_code == 0, result.output
        assert "Store reset" in result.output

    def test_unknown_project_module(self, runner, env_file):
        result = runner.invoke(cli, ["--app", "no_such_module", "--env-file", env_file, "seed"], obj={})
        assert result.exit_code != 0
        assert "Cannot import project module" in result.output
