"""Pydantic models for MCPB bundle manifests (``manifest.json``)."""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class McpbServerType(str, Enum):
    """How the bundled server is launched."""

    NODE = "node"
    PYTHON = "python"
    UV = "uv"
    BINARY = "binary"


class McpbPlatformOverride(BaseModel):
    """Per-platform replacement of command, args or extra env."""

    command: str | None = None
    args: list[str] | None = None
    env: dict[str, str] | None = None


class McpbMcpConfig(BaseModel):
    """Explicit launch configuration of a bundled server.

    Attributes:
        command: Executable to run.
        args: Arguments.
        env: Environment variables.
        platforms: Overrides keyed by ``darwin``, ``linux`` or ``win32``.
    """

    command: str
    args: list[str] = Field(default_factory=list)
    env: dict[str, str] = Field(default_factory=dict)
    platforms: dict[str, McpbPlatformOverride] = Field(default_factory=dict)


class McpbServer(BaseModel):
    """The ``server`` section of a bundle manifest."""

    model_config = ConfigDict(populate_by_name=True)

    type: McpbServerType
    entry_point: str | None = None
    mcp_config: McpbMcpConfig | None = None


class McpbUserConfig(BaseModel):
    """One user-configurable option; only string defaults are used."""

    model_config = ConfigDict(extra="allow")

    type: str | None = None
    default: Any = None


class McpbManifest(BaseModel):
    """A bundle ``manifest.json``.

    Attributes:
        manifest_version: Bundle format version.
        name: Bundle name.
        version: Bundle version.
        description: Short description.
        author: Author information as declared.
        server: How to launch the server.
        user_config: User-configurable options.
    """

    model_config = ConfigDict(extra="allow")

    manifest_version: str | None = None
    name: str
    version: str | None = None
    description: str | None = None
    author: dict[str, Any] | str | None = None
    server: McpbServer
    user_config: dict[str, McpbUserConfig] = Field(default_factory=dict)
