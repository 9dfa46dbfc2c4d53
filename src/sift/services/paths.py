"""Directory layout used by sift.

``AppPaths`` gathers every root sift reads or writes: the user's home, the
current project, the XDG state directory (caches, bare repos, lockfiles) and
the XDG config directory (global manifest). Tests construct it directly with
temporary directories.
"""

import os
from pathlib import Path

from blake3 import blake3
from pydantic import BaseModel

from sift.models.scope import Scope
from sift.utils.files import get_project_root

MANIFEST_FILENAME = "sift.toml"


def _xdg_dir(env_var: str, fallback: Path) -> Path:
    value = os.environ.get(env_var)
    if value and Path(value).is_absolute():
        return Path(value)
    return fallback


class AppPaths(BaseModel):
    """Resolved directories for one sift invocation.

    Attributes:
        home_dir: The user's home directory.
        project_root: Root of the current project.
        state_dir: Sift state directory (caches, git repos, lockfiles).
        config_dir: Sift config directory (global manifest).
    """

    home_dir: Path
    project_root: Path
    state_dir: Path
    config_dir: Path

    @classmethod
    def from_environment(cls, cwd: Path | None = None) -> "AppPaths":
        """Resolve paths from the process environment.

        Args:
            cwd: Directory to start the project root search from.

        Returns:
            AppPaths for the current user and project.
        """
        home = Path.home()
        state = _xdg_dir("XDG_STATE_HOME", home / ".local" / "state")
        config = _xdg_dir("XDG_CONFIG_HOME", home / ".config")

        return cls(
            home_dir=home,
            project_root=get_project_root(cwd),
            state_dir=state / "sift",
            config_dir=config / "sift",
        )

    @property
    def global_manifest_path(self) -> Path:
        return self.config_dir / MANIFEST_FILENAME

    @property
    def project_manifest_path(self) -> Path:
        return self.project_root / MANIFEST_FILENAME

    def manifest_path(self, scope: Scope) -> Path:
        """Return the manifest file backing a scope.

        Local entries live inside the global manifest.
        """
        if scope == Scope.PROJECT:
            return self.project_manifest_path
        return self.global_manifest_path

    @property
    def project_key(self) -> str:
        """Key of this project's section in the global ``projects`` table."""
        return str(self.project_root)

    @property
    def locks_dir(self) -> Path:
        return self.state_dir / "locks"

    @property
    def lockfile_path(self) -> Path:
        """Lockfile for the current project, keyed by its canonical path."""
        canonical = self.project_root.resolve()
        digest = blake3(str(canonical).encode("utf-8", "surrogateescape")).hexdigest()
        return self.locks_dir / f"{digest}.lock.json"

    @property
    def git_cache_dir(self) -> Path:
        return self.state_dir / "git"

    @property
    def skills_cache_dir(self) -> Path:
        return self.state_dir / "cache" / "skills"

    @property
    def mcpb_cache_dir(self) -> Path:
        return self.state_dir / "cache" / "mcpb"

    @property
    def worktrees_dir(self) -> Path:
        return self.state_dir / "worktrees"

    def is_git_repo(self) -> bool:
        return (self.project_root / ".git").exists()
