"""Pydantic models for the per-project lockfile.

The lockfile records what sift actually installed: resolved versions, where
skills were delivered, their tree hashes, and ownership hashes for entries
sift wrote into client config files. It lives under the user state directory
rather than inside the project.
"""

import logging
import os
from datetime import UTC, datetime
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from sift.errors import ConfigParseError, SiftIOError
from sift.models.config import LinkMode
from sift.models.scope import Scope

logger = logging.getLogger(__name__)

LOCKFILE_VERSION = 1


def utc_now() -> str:
    """Return the current UTC time as an ISO 8601 string."""
    return datetime.now(UTC).isoformat()


class ResolvedOrigin(BaseModel):
    """Where a registry-sourced entry came from.

    Attributes:
        original_source: Source string as the user wrote it.
        registry_key: Key of the registry that resolved it.
        registry_version: Version declared by the registry, if any.
        aliases: Other names the entry is known by.
        parent: Parent plugin when the entry is part of a group.
        is_group: Whether the entry expands into several entries.
    """

    original_source: str
    registry_key: str
    registry_version: str | None = None
    aliases: list[str] = Field(default_factory=list)
    parent: str | None = None
    is_group: bool = False


class LockedMcp(BaseModel):
    """A locked MCP server.

    Attributes:
        clients: Scope each client was configured at, by client id.
    """

    name: str
    resolved_version: str
    constraint: str
    registry: str
    scope: Scope
    origin: ResolvedOrigin | None = None
    checksum: str | None = None
    clients: dict[str, Scope] = Field(default_factory=dict)


class LockedSkill(BaseModel):
    """A locked skill, including where and how it was delivered.

    Attributes:
        git_repo: Repository URL for git sources.
        git_ref: Requested ref for git sources.
        git_subdir: Subdirectory of the repository holding the skill.
        dst_path: Directory the skill was delivered to.
        cache_src_path: Cache directory the skill was delivered from.
        mode: Link mode used for delivery.
        tree_hash: Tree hash of the delivered content.
        installed_at: ISO timestamp of the delivery.
        deliveries: Destination per client id; ``dst_path`` is the first of them.
    """

    name: str
    resolved_version: str
    constraint: str
    registry: str
    scope: Scope
    origin: ResolvedOrigin | None = None
    checksum: str | None = None
    git_repo: str | None = None
    git_ref: str | None = None
    git_subdir: str | None = None
    dst_path: Path | None = None
    cache_src_path: Path | None = None
    mode: LinkMode | None = None
    tree_hash: str | None = None
    installed_at: str | None = None
    deliveries: dict[str, Path] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _check_install_fields(self) -> "LockedSkill":
        delivered = self.dst_path is not None and self.tree_hash is not None
        if (self.installed_at is not None) != delivered:
            raise ValueError("installed_at must be set exactly when dst_path and tree_hash are")
        return self


class Lockfile(BaseModel):
    """The whole lockfile document.

    Attributes:
        version: Lockfile format version; always 1.
        generated_at: ISO timestamp of the last save.
        mcp_servers: Locked MCP servers by name.
        skills: Locked skills by name.
        managed_configs: Ownership tables: table id -> entry key -> content hash.
    """

    version: int = LOCKFILE_VERSION
    generated_at: str = Field(default_factory=utc_now)
    mcp_servers: dict[str, LockedMcp] = Field(default_factory=dict)
    skills: dict[str, LockedSkill] = Field(default_factory=dict)
    managed_configs: dict[str, dict[str, str]] = Field(default_factory=dict)

    @field_validator("version")
    @classmethod
    def _check_version(cls, value: int) -> int:
        if value != LOCKFILE_VERSION:
            raise ValueError(f"Unsupported lockfile version: {value}")
        return value


def load_lockfile(path: Path) -> Lockfile:
    """Load a lockfile from disk.

    Args:
        path: Path to the lockfile.

    Returns:
        The parsed lockfile, or an empty one if the file does not exist.

    Raises:
        ConfigParseError: If the file is not a valid lockfile.
    """
    if not path.exists():
        return Lockfile()

    try:
        return Lockfile.model_validate_json(path.read_text(encoding="utf-8"))
    except ValidationError as e:
        raise ConfigParseError(path, str(e)) from e


def save_lockfile(lockfile: Lockfile, path: Path) -> None:
    """Save a lockfile through a temp file and a rename.

    The existing target is removed before the rename so the commit behaves
    the same on every platform.

    Args:
        lockfile: Lockfile to save.
        path: Destination path.

    Raises:
        SiftIOError: If the file cannot be written.
    """
    lockfile = Lockfile.model_validate(lockfile.model_dump())
    lockfile.generated_at = utc_now()
    content = lockfile.model_dump_json(indent=2) + "\n"
    tmp_path = path.with_name(f".{path.name}.{os.getpid()}.tmp")

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path.write_bytes(content.encode("utf-8"))
        path.unlink(missing_ok=True)
        tmp_path.rename(path)
    except (OSError, UnicodeEncodeError) as e:
        tmp_path.unlink(missing_ok=True)
        raise SiftIOError(f"Failed to write lockfile {path}: {e}") from e

    logger.debug(f"Saved lockfile {path}")
