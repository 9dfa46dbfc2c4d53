"""Data types exchanged between client adapters and the orchestrator.

Adapters never touch the filesystem. They describe what they support with
``ClientCapabilities`` and answer planning requests with
``ManagedConfigPlan`` (MCP) or ``SkillDeliveryPlan`` (skills), whose paths
are relative to a ``PathRoot``.
"""

from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

from sift.models.config import Transport
from sift.models.scope import ScopeSupport


class PathRoot(str, Enum):
    """Directory a plan path is relative to.

    Attributes:
        USER: The user's home directory.
        PROJECT: The project root.
    """

    USER = "user"
    PROJECT = "project"


class ConfigFormat(str, Enum):
    """On-disk format of a managed client config file."""

    JSON = "json"
    TOML = "toml"


class McpConfigFormat(str, Enum):
    """Family of MCP server object shapes a client expects."""

    CLAUDE_CODE = "claude-code"
    CLAUDE_DESKTOP = "claude-desktop"
    GENERIC = "generic"
    TOML = "toml"


class SkillDeliveryPaths(BaseModel):
    """Where a client looks for skills, relative to each root."""

    user: str | None = None
    project: str | None = None


class ClientCapabilities(BaseModel):
    """Fixed capability table of a client adapter.

    Attributes:
        mcp: Scopes at which MCP servers can be configured.
        skills: Scopes at which skills can be delivered.
        supports_symlinked_skills: Whether a symlinked skill directory works.
        skill_delivery: Skill directories per root.
        mcp_config_format: Shape family of rendered server objects.
        supported_transports: Transports the client can use.
    """

    mcp: ScopeSupport
    skills: ScopeSupport
    supports_symlinked_skills: bool = False
    skill_delivery: SkillDeliveryPaths = Field(default_factory=SkillDeliveryPaths)
    mcp_config_format: McpConfigFormat = McpConfigFormat.GENERIC
    supported_transports: list[Transport] = Field(
        default_factory=lambda: [Transport.STDIO, Transport.HTTP]
    )


class ClientContext(BaseModel):
    """Roots a client adapter plans against."""

    home_dir: Path
    project_root: Path

    def root_path(self, root: PathRoot) -> Path:
        return self.home_dir if root == PathRoot.USER else self.project_root


class ManagedConfigPlan(BaseModel):
    """Where and what to write for MCP servers in one client config file.

    Attributes:
        root: Root the relative path is joined to.
        relative_path: Config file path relative to the root.
        key_path: Nested keys leading to the server map inside the file.
        format: File format.
        entries: Rendered server objects by server name.
    """

    root: PathRoot
    relative_path: str
    key_path: list[str]
    format: ConfigFormat = ConfigFormat.JSON
    entries: dict[str, Any] = Field(default_factory=dict)


class SkillDeliveryPlan(BaseModel):
    """Where to deliver a skill for one client.

    Attributes:
        root: Root the relative path is joined to.
        relative_path: Skills directory relative to the root.
        use_git_exclude: Whether the delivered path must be git-excluded.
    """

    root: PathRoot
    relative_path: str
    use_git_exclude: bool = False
