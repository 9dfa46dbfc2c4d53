"""Shared pytest fixtures for Sift tests."""

import json
import re
import subprocess
from collections.abc import Callable
from pathlib import Path

import pytest
from typer.testing import CliRunner

from sift.services.paths import AppPaths

SKILL_MD = '---\nname: "{name}"\ndescription: "The {name} skill"\n---\n\n# {name}\n'


def strip_ansi(text: str) -> str:
    """Strip ANSI escape codes from text."""
    return re.sub(r"\x1b\[[0-9;]*m", "", text)


def normalize_paths(text: str) -> str:
    r"""Normalize path separators for cross-platform comparison.

    Example:
        >>> normalize_paths(".claude\\skills\\docs")
        '.claude/skills/docs'
    """
    return text.replace("\\", "/")


def run_git(cwd: Path, *args: str) -> str:
    """Run a git command with a fixed identity and return stdout."""
    result = subprocess.run(
        [
            "git",
            "-c",
            "user.email=test@example.com",
            "-c",
            "user.name=Test User",
            "-c",
            "commit.gpgsign=false",
            *args,
        ],
        cwd=cwd,
        check=True,
        capture_output=True,
        text=True,
    )
    return result.stdout


@pytest.fixture
def path_normalizer():
    """Provide normalize_paths function as a fixture."""
    return normalize_paths


@pytest.fixture
def runner() -> CliRunner:
    """Create a CliRunner for testing commands."""
    return CliRunner()


@pytest.fixture
def app_paths(tmp_path: Path) -> AppPaths:
    """Create an isolated directory layout under tmp_path.

    Returns:
        AppPaths whose home, project, state and config directories all live
        in the test's temporary directory.
    """
    root = tmp_path.resolve()
    paths = AppPaths(
        home_dir=root / "home",
        project_root=root / "project",
        state_dir=root / "state" / "sift",
        config_dir=root / "config" / "sift",
    )
    paths.home_dir.mkdir()
    paths.project_root.mkdir()
    return paths


@pytest.fixture
def git_project(app_paths: AppPaths) -> AppPaths:
    """Turn the project directory into a git repository."""
    run_git(app_paths.project_root, "init", "-q")
    return app_paths


@pytest.fixture
def make_git_repo(tmp_path: Path) -> Callable[[str, dict[str, str]], Path]:
    """Return a factory creating committed git repositories on branch main.

    Example:
        repo = make_git_repo("skills", {"docs/SKILL.md": "..."})
    """

    def _make(name: str, files: dict[str, str]) -> Path:
        repo = tmp_path / "repos" / name
        repo.mkdir(parents=True)
        run_git(repo, "init", "-q")
        for relative, content in files.items():
            path = repo / relative
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content)
        run_git(repo, "add", ".")
        run_git(repo, "commit", "-q", "-m", "Initial commit")
        run_git(repo, "branch", "-M", "main")
        return repo

    return _make


@pytest.fixture
def skills_repo(make_git_repo: Callable[[str, dict[str, str]], Path]) -> Path:
    """A repository holding two skills, ``docs`` and ``review``."""
    return make_git_repo(
        "skills",
        {
            "README.md": "# Skills\n",
            "docs/SKILL.md": SKILL_MD.format(name="docs"),
            "docs/reference/guide.md": "Read the docs.\n",
            "review/SKILL.md": SKILL_MD.format(name="review"),
        },
    )


@pytest.fixture
def marketplace_repo(make_git_repo: Callable[[str, dict[str, str]], Path]) -> Path:
    """A Claude plugin marketplace with an MCP plugin and a skill plugin.

    ``foo`` declares its server in a nested plugin.json; ``docs`` points at a
    skill directory.
    """
    marketplace = {
        "name": "market",
        "owner": {"name": "Test"},
        "plugins": [
            {"name": "foo", "source": "./plugins/foo", "version": "1.2.0"},
            {"name": "docs", "source": "./plugins/docs", "skills": "skills/docs"},
        ],
    }
    plugin = {
        "name": "foo",
        "mcpServers": {"foo": {"command": "npx", "args": ["-y", "foo-server"]}},
    }
    return make_git_repo(
        "market",
        {
            ".claude-plugin/marketplace.json": json.dumps(marketplace, indent=2),
            "plugins/foo/.claude-plugin/plugin.json": json.dumps(plugin, indent=2),
            "plugins/docs/skills/docs/SKILL.md": SKILL_MD.format(name="docs"),
        },
    )


@pytest.fixture
def local_skill(app_paths: AppPaths) -> Path:
    """A skill directory inside the project."""
    skill = app_paths.project_root / "skills" / "notes"
    skill.mkdir(parents=True)
    (skill / "SKILL.md").write_text(SKILL_MD.format(name="notes"))
    (skill / "template.md").write_text("template\n")
    return skill


@pytest.fixture
def cli_env(monkeypatch: pytest.MonkeyPatch, app_paths: AppPaths) -> AppPaths:
    """Point HOME, the XDG directories and the cwd at the isolated layout."""
    monkeypatch.setenv("HOME", str(app_paths.home_dir))
    monkeypatch.setenv("XDG_STATE_HOME", str(app_paths.state_dir.parent))
    monkeypatch.setenv("XDG_CONFIG_HOME", str(app_paths.config_dir.parent))
    monkeypatch.chdir(app_paths.project_root)
    return app_paths
