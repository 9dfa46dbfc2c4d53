"""Tests for the uninstall command."""

import json

from typer.testing import CliRunner

from sift.cli import app
from sift.services.paths import AppPaths


def _output(result) -> str:
    return " ".join(result.output.split())


class TestUninstall:
    """Tests for `sift uninstall`."""

    def test_removes_server(self, runner: CliRunner, cli_env: AppPaths) -> None:
        runner.invoke(app, ["install", "mcp", "fs", "--scope", "project", "--", "my-server"])

        result = runner.invoke(app, ["uninstall", "mcp", "fs"])

        assert result.exit_code == 0, result.output
        assert "Uninstalled MCP 'fs' (project)" in _output(result)
        mcp_json = json.loads((cli_env.project_root / ".mcp.json").read_text())
        assert mcp_json["mcpServers"] == {}

    def test_all_scopes(self, runner: CliRunner, cli_env: AppPaths) -> None:
        runner.invoke(
            app, ["install", "mcp", "fs", "--scope", "global", "-t", "claude-code", "--", "srv"]
        )

        result = runner.invoke(app, ["uninstall", "mcp", "fs", "--scope", "all"])

        assert result.exit_code == 0, result.output
        claude = json.loads((cli_env.home_dir / ".claude.json").read_text())
        assert "fs" not in claude["mcpServers"]

    def test_unowned_entry_is_kept(self, runner: CliRunner, cli_env: AppPaths) -> None:
        """Only the entries sift wrote are removed."""
        runner.invoke(app, ["install", "mcp", "fs", "--scope", "project", "--", "my-server"])
        mcp_path = cli_env.project_root / ".mcp.json"
        data = json.loads(mcp_path.read_text())
        data["mcpServers"]["mine"] = {"command": "mine"}
        mcp_path.write_text(json.dumps(data))

        runner.invoke(app, ["uninstall", "mcp", "fs"])

        assert json.loads(mcp_path.read_text())["mcpServers"] == {"mine": {"command": "mine"}}

    def test_not_installed(self, runner: CliRunner, cli_env: AppPaths) -> None:
        result = runner.invoke(app, ["uninstall", "skill", "ghost"])

        assert result.exit_code == 1
        assert "Skill 'ghost' is not installed" in _output(result)

    def test_invalid_scope(self, runner: CliRunner, cli_env: AppPaths) -> None:
        result = runner.invoke(app, ["uninstall", "mcp", "fs", "--scope", "everywhere"])

        assert result.exit_code == 1
        assert "Invalid scope" in _output(result)
