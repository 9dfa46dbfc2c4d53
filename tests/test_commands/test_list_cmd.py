"""Tests for the list command."""

from pathlib import Path

from typer.testing import CliRunner

from sift.cli import app
from sift.services.paths import AppPaths


def _output(result) -> str:
    return " ".join(result.output.split())


class TestList:
    """Tests for `sift list`."""

    def test_empty(self, runner: CliRunner, cli_env: AppPaths) -> None:
        result = runner.invoke(app, ["list"])

        assert result.exit_code == 0, result.output
        assert "No entries declared" in _output(result)

    def test_lists_both_kinds(
        self, runner: CliRunner, cli_env: AppPaths, local_skill: Path
    ) -> None:
        runner.invoke(app, ["install", "mcp", "fs", "--scope", "project", "--", "my-server"])
        runner.invoke(app, ["install", "skill", "./skills/notes", "--scope", "project"])

        result = runner.invoke(app, ["list"])

        output = _output(result)
        assert result.exit_code == 0, result.output
        assert "fs local:my-server shell project" in output
        assert "notes" in output
        assert "latest" in output

    def test_filter_by_kind(
        self, runner: CliRunner, cli_env: AppPaths, local_skill: Path
    ) -> None:
        runner.invoke(app, ["install", "mcp", "fs", "--scope", "project", "--", "my-server"])
        runner.invoke(app, ["install", "skill", "./skills/notes", "--scope", "project"])

        result = runner.invoke(app, ["list", "skill"])

        output = _output(result)
        assert "notes" in output
        assert "my-server" not in output

    def test_invalid_manifest(self, runner: CliRunner, cli_env: AppPaths) -> None:
        (cli_env.project_root / "sift.toml").write_text("[mcp\n")

        result = runner.invoke(app, ["list"])

        assert result.exit_code == 1
