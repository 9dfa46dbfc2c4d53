"""Resolved sources: where the content of an MCP server or skill comes from."""

from pathlib import Path, PurePosixPath

from pydantic import BaseModel, Field

from sift.errors import ConfigValidationError
from sift.models.lockfile import ResolvedOrigin

GITHUB_PREFIX = "github:"
GIT_PREFIX = "git:"
LOCAL_PREFIX = "local:"
REGISTRY_PREFIX = "registry:"


def validate_subdir(subdir: str) -> str:
    """Normalize a repository subdirectory and reject escaping paths.

    Raises:
        ConfigValidationError: If the path is absolute or contains ``..``.
    """
    path = PurePosixPath(subdir.strip("/"))
    if subdir.startswith("/") or ".." in path.parts:
        raise ConfigValidationError(f"Invalid repository subdirectory: {subdir}")
    return path.as_posix()


class GitSpec(BaseModel):
    """A git repository, optionally narrowed to a ref and subdirectory.

    Attributes:
        repo_url: Clone URL of the repository.
        ref: Branch, tag or commit; the default branch when unset.
        subdir: Directory inside the repository holding the content.
    """

    repo_url: str
    ref: str | None = None
    subdir: str | None = None

    @classmethod
    def parse(cls, source: str) -> "GitSpec":
        """Parse a git source string.

        Accepted forms:

        - ``github:org/repo``, ``github:org/repo@ref``,
          ``github:org/repo@ref/sub/dir``, ``github:org/repo/sub/dir``
        - ``git:<url>`` or a bare URL, optionally with ``#ref``
        - ``https://host/org/repo/tree/<ref>/<path>``

        Raises:
            ConfigValidationError: If the string cannot be parsed.
        """
        raw = source.strip()
        if raw.startswith(GIT_PREFIX):
            raw = raw[len(GIT_PREFIX) :]

        if raw.startswith(GITHUB_PREFIX):
            return cls._parse_github(raw[len(GITHUB_PREFIX) :], source)

        if "/tree/" in raw:
            repo_url, _, rest = raw.partition("/tree/")
            ref, _, path = rest.partition("/")
            if not ref or not path.strip("/"):
                raise ConfigValidationError("Git URL is missing a path after /tree/<ref>/")
            return cls(repo_url=repo_url, ref=ref, subdir=validate_subdir(path))

        repo_url, _, ref = raw.partition("#")
        if ref.startswith("ref="):
            ref = ref[len("ref=") :]
        if not repo_url:
            raise ConfigValidationError(f"Invalid git source: {source}")
        return cls(repo_url=repo_url, ref=ref or None)

    @classmethod
    def _parse_github(cls, rest: str, source: str) -> "GitSpec":
        repo_part, _, ref_part = rest.partition("@")
        segments = [s for s in repo_part.split("/") if s]
        if len(segments) < 2:
            raise ConfigValidationError(f"Invalid GitHub source (expected org/repo): {source}")

        repo_url = f"https://github.com/{segments[0]}/{segments[1]}"
        subdir = "/".join(segments[2:]) or None
        ref = None
        if ref_part:
            ref, _, ref_path = ref_part.partition("/")
            subdir = ref_path or subdir

        return cls(
            repo_url=repo_url,
            ref=ref or None,
            subdir=validate_subdir(subdir) if subdir else None,
        )

    def with_subdir(self, subdir: str | None) -> "GitSpec":
        """Return a copy narrowed to another subdirectory."""
        return self.model_copy(update={"subdir": validate_subdir(subdir) if subdir else None})

    def display(self) -> str:
        text = self.repo_url
        if self.ref:
            text += f"@{self.ref}"
        if self.subdir:
            text += f"/{self.subdir}"
        return text


class LocalSource(BaseModel):
    """Content already on the local filesystem."""

    path: Path


ResolvedSource = LocalSource | GitSpec


class RegistryMetadata(BaseModel):
    """What a registry said about the entry it resolved.

    Attributes:
        original_source: Source string as the user wrote it.
        registry_key: Key of the registry in the manifest.
        plugin_name: Name of the plugin in the registry.
        version: Version declared by the registry.
        aliases: Other names of the entry.
        parent: Parent plugin for grouped entries.
        is_group: Whether the entry expands into several entries.
        pinnable: Whether the registry can serve a requested version.
    """

    original_source: str
    registry_key: str
    plugin_name: str
    version: str | None = None
    aliases: list[str] = Field(default_factory=list)
    parent: str | None = None
    is_group: bool = False
    pinnable: bool = False

    def to_origin(self) -> ResolvedOrigin:
        return ResolvedOrigin(
            original_source=self.original_source,
            registry_key=self.registry_key,
            registry_version=self.version,
            aliases=list(self.aliases),
            parent=self.parent,
            is_group=self.is_group,
        )
