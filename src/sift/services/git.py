"""Git operations for fetching skill and registry content.

Every repository URL gets one shared bare, blob-less clone under
``<state>/git/<blake3(url)>.git``. Content is materialized through a
short-lived worktree with a cone-mode sparse checkout of only the needed
subdirectory, copied into the skill cache, and the worktree is removed.
"""

import logging
import os
import re
import shutil
import subprocess
import threading
from pathlib import Path

from blake3 import blake3
from pydantic import BaseModel, ConfigDict, Field

from sift.errors import ExternalToolError, SiftIOError
from sift.models.source import GitSpec
from sift.services.paths import AppPaths
from sift.utils.files import is_pid_alive, remove_path

logger = logging.getLogger(__name__)

MIN_GIT_VERSION = (2, 25)
MAX_WORKTREE_ATTEMPTS = 100
SKILL_MARKER = "SKILL.md"

_VERSION_PATTERN = re.compile(r"git version (\d+)\.(\d+)")
_WORKTREE_NAME = re.compile(r"^(\d+)\.\d+\.\d+$")


class GitError(ExternalToolError):
    """Exception raised for Git operation failures.

    Raised when a git command fails or git is not available.
    """


class FetchedSkill(BaseModel):
    """A skill materialized in the cache.

    Attributes:
        cache_path: Cache directory holding the skill.
        commit: Commit the content was taken from.
        reused: Whether an existing cache entry was reused.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    cache_path: Path
    commit: str
    reused: bool = False


class GitService(BaseModel):
    """Thin wrapper running git commands."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    working_dir: Path | None = None

    def run(
        self, args: list[str], cwd: Path | None = None, check: bool = True
    ) -> subprocess.CompletedProcess[str]:
        """Run a git command.

        Args:
            args: Arguments to pass to git.
            cwd: Directory to run in (default: working_dir).
            check: Raise on a non-zero exit status.

        Returns:
            CompletedProcess with captured text output.

        Raises:
            GitError: If the command fails and check is set, or git is missing.
        """
        cmd = ["git", *args]
        logger.debug(f"Running {' '.join(cmd)}")
        env = {**os.environ, "GIT_TERMINAL_PROMPT": "0"}
        try:
            return subprocess.run(
                cmd,
                cwd=cwd or self.working_dir,
                capture_output=True,
                text=True,
                check=check,
                env=env,
            )
        except subprocess.CalledProcessError as e:
            raise GitError(
                f"Git command failed: {' '.join(cmd)}\n{e.stderr}", command=cmd, stderr=e.stderr
            ) from e
        except FileNotFoundError as e:
            raise GitError("Git is not installed or not in PATH", command=cmd) from e

    def version(self) -> tuple[int, int]:
        """Return the installed git version as (major, minor)."""
        output = self.run(["--version"]).stdout
        match = _VERSION_PATTERN.search(output)
        if not match:
            raise GitError(f"Could not parse git version from: {output.strip()}")
        return int(match.group(1)), int(match.group(2))


class GitFetcher(BaseModel):
    """Fetches repository content into the sift cache.

    Attributes:
        paths: Directory layout holding the git and skill caches.
        git: Git command runner.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    paths: AppPaths
    git: GitService = Field(default_factory=GitService)

    def ensure_git_version(self) -> None:
        """Check that git supports cone-mode sparse checkout.

        Raises:
            GitError: If git is missing or older than 2.25.
        """
        if self.git.version() < MIN_GIT_VERSION:
            raise GitError("Git 2.25+ is required for sparse checkout. Please upgrade git.")

    def bare_repo_dir(self, repo_url: str) -> Path:
        digest = blake3(repo_url.encode("utf-8")).hexdigest()
        return self.paths.git_cache_dir / f"{digest}.git"

    def ensure_bare_repo(self, spec: GitSpec, refresh: bool = False) -> Path:
        """Clone the repository once, or refresh its refs when asked.

        The clone is made at a temp path and renamed into place, so two
        concurrent fetches of the same URL end up with a single clone.

        Args:
            spec: Repository to clone.
            refresh: Fetch new refs into an existing clone.

        Returns:
            Path of the bare repository.
        """
        bare_dir = self.bare_repo_dir(spec.repo_url)

        if bare_dir.exists():
            if refresh:
                logger.info(f"Refreshing {spec.repo_url}")
                self.git.run(
                    [
                        "fetch",
                        "--filter=blob:none",
                        "--prune",
                        "origin",
                        "+refs/heads/*:refs/heads/*",
                        "+refs/tags/*:refs/tags/*",
                    ],
                    cwd=bare_dir,
                )
            return bare_dir

        self.ensure_git_version()
        bare_dir.parent.mkdir(parents=True, exist_ok=True)
        tmp_dir = bare_dir.with_name(f".{bare_dir.name}.{os.getpid()}.tmp")
        remove_path(tmp_dir)

        logger.info(f"Cloning {spec.repo_url}")
        try:
            self.git.run(["clone", "--filter=blob:none", "--bare", spec.repo_url, str(tmp_dir)])
        except GitError:
            remove_path(tmp_dir)
            raise

        try:
            tmp_dir.rename(bare_dir)
        except OSError:
            if not bare_dir.exists():
                remove_path(tmp_dir)
                raise
            # Another process finished the same clone first.
            remove_path(tmp_dir)
        return bare_dir

    def resolve_commit(self, bare_dir: Path, spec: GitSpec, refresh: bool = False) -> str:
        """Resolve the requested ref (or HEAD) to a commit id.

        Local refs are preferred. When they do not know the ref, or a refresh
        is requested, the ref is fetched and ``FETCH_HEAD`` is used.
        """
        target = spec.ref or "HEAD"

        if not (refresh and spec.ref):
            result = self.git.run(
                ["rev-parse", "--verify", "--quiet", f"{target}^{{commit}}"],
                cwd=bare_dir,
                check=False,
            )
            if result.returncode == 0:
                return result.stdout.strip()
            if not spec.ref:
                raise GitError(
                    f"Could not resolve HEAD in {spec.repo_url}", stderr=result.stderr
                )

        logger.info(f"Fetching {target} from {spec.repo_url}")
        self.git.run(["fetch", "--filter=blob:none", "origin", target], cwd=bare_dir)
        return self.git.run(["rev-parse", "FETCH_HEAD"], cwd=bare_dir).stdout.strip()

    def fetch_skill(self, spec: GitSpec, skill_name: str, refresh: bool = False) -> FetchedSkill:
        """Materialize a skill into ``<state>/cache/skills/<name>``.

        A cache holding ``SKILL.md`` is reused unless ``refresh`` is set;
        anything else at the cache path is discarded and rebuilt.

        Args:
            spec: Repository, ref and subdirectory of the skill.
            skill_name: Cache key of the skill.
            refresh: Rebuild the cache from freshly fetched refs.

        Returns:
            FetchedSkill describing the cache entry.

        Raises:
            GitError: If a git command fails.
            SiftIOError: If the fetched content is not a skill.
        """
        cache_path = self.paths.skills_cache_dir / skill_name

        if (cache_path / SKILL_MARKER).is_file() and not refresh:
            bare_dir = self.ensure_bare_repo(spec)
            commit = self.resolve_commit(bare_dir, spec)
            logger.debug(f"Reusing cached skill {cache_path}")
            return FetchedSkill(cache_path=cache_path, commit=commit, reused=True)

        bare_dir = self.ensure_bare_repo(spec, refresh=refresh)
        commit = self.resolve_commit(bare_dir, spec, refresh=refresh)

        tmp_path = cache_path.with_name(f".{cache_path.name}.{os.getpid()}.tmp")
        remove_path(tmp_path)
        self.export_subdir(bare_dir, commit, spec.subdir, tmp_path)

        if not (tmp_path / SKILL_MARKER).is_file():
            remove_path(tmp_path)
            raise SiftIOError(f"No {SKILL_MARKER} found in {spec.display()}")

        remove_path(cache_path)
        tmp_path.rename(cache_path)
        logger.info(f"Cached skill {skill_name} at {commit[:12]}")
        return FetchedSkill(cache_path=cache_path, commit=commit)

    def export_subdir(self, bare_dir: Path, commit: str, subdir: str | None, dest: Path) -> None:
        """Copy a commit's subdirectory (or whole tree) to ``dest``, without ``.git``.

        Raises:
            GitError: If a git command fails.
            SiftIOError: If the subdirectory does not exist at the commit.
        """
        worktree = self._allocate_worktree()
        try:
            self.git.run(
                ["worktree", "add", "--no-checkout", "--detach", str(worktree), commit],
                cwd=bare_dir,
            )
            if subdir:
                self.git.run(["sparse-checkout", "init", "--cone"], cwd=worktree)
                self.git.run(["sparse-checkout", "set", subdir], cwd=worktree)
            self.git.run(["checkout", "--force", commit], cwd=worktree)

            source_root = worktree / subdir if subdir else worktree
            if not source_root.is_dir():
                raise SiftIOError(f"Git checkout did not create expected path: {subdir}")

            dest.parent.mkdir(parents=True, exist_ok=True)
            shutil.copytree(source_root, dest, ignore=shutil.ignore_patterns(".git"))
        finally:
            self.git.run(["worktree", "remove", "--force", str(worktree)], cwd=bare_dir, check=False)
            remove_path(worktree)
            self.git.run(["worktree", "prune"], cwd=bare_dir, check=False)

    def read_file(self, spec: GitSpec, path: str, refresh: bool = False) -> str | None:
        """Read one file at the requested ref without a working tree.

        Returns:
            The file text, or None if the file does not exist at that ref.
        """
        bare_dir = self.ensure_bare_repo(spec, refresh=refresh)
        commit = self.resolve_commit(bare_dir, spec, refresh=refresh)
        result = self.git.run(["show", f"{commit}:{path}"], cwd=bare_dir, check=False)
        if result.returncode != 0:
            return None
        return result.stdout

    def _allocate_worktree(self) -> Path:
        root = self.paths.worktrees_dir
        root.mkdir(parents=True, exist_ok=True)
        self.cleanup_stale_worktrees()

        prefix = f"{os.getpid()}.{threading.get_ident()}"
        for attempt in range(MAX_WORKTREE_ATTEMPTS):
            candidate = root / f"{prefix}.{attempt}"
            if not candidate.exists():
                return candidate

        raise SiftIOError(f"Could not allocate a worktree under {root}")

    def cleanup_stale_worktrees(self) -> list[Path]:
        """Remove worktrees left behind by processes that are no longer running.

        Returns:
            The removed worktree paths.
        """
        root = self.paths.worktrees_dir
        if not root.is_dir():
            return []

        removed: list[Path] = []
        for entry in root.iterdir():
            match = _WORKTREE_NAME.match(entry.name)
            if not match or is_pid_alive(int(match.group(1))):
                continue
            try:
                remove_path(entry)
                removed.append(entry)
                logger.debug(f"Removed stale worktree {entry}")
            except OSError as e:
                logger.warning(f"Failed to remove stale worktree {entry}: {e}")
        return removed
