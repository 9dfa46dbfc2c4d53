"""Pydantic models for the sift.toml manifest.

A manifest declares the MCP servers, skills and registries a user wants.
The same schema is used for the global manifest (``~/.config/sift/sift.toml``)
and the project manifest (``<project>/sift.toml``); only the global one may
carry a ``projects`` table holding per-project private entries.
"""

import re
import tomllib
from enum import Enum
from pathlib import Path, PurePath
from typing import Any

import tomli_w
from pydantic import BaseModel, Field, ValidationError

from sift.errors import ConfigParseError, ConfigValidationError

DEFAULT_RUNTIME = "node"
DEFAULT_SKILL_VERSION = "latest"
VALID_RUNTIMES = ("docker", "node", "python", "bun", "shell")
SOURCE_PREFIXES = ("registry:", "local:", "github:", "git:")
MCP_SOURCE_PREFIXES = (*SOURCE_PREFIXES, "mcpb:")

_TOML_LOCATION = re.compile(r"\(at line (\d+), column (\d+)\)")


class Transport(str, Enum):
    """How a client talks to an MCP server.

    Attributes:
        STDIO: The client spawns the server and talks over stdin/stdout.
        HTTP: The client connects to a remote URL.
    """

    STDIO = "stdio"
    HTTP = "http"


class LinkMode(str, Enum):
    """How a cached skill tree is materialized into a client directory.

    Attributes:
        AUTO: Hardlink, falling back to copy across devices.
        HARDLINK: Hardlink every file.
        COPY: Byte copy every file.
        SYMLINK: Symlink the directory itself.
    """

    AUTO = "auto"
    HARDLINK = "hardlink"
    COPY = "copy"
    SYMLINK = "symlink"


class RegistryType(str, Enum):
    """Kinds of registries a manifest may declare."""

    SIFT = "sift"
    CLAUDE_MARKETPLACE = "claude-marketplace"


def _check_targets(targets: list[str] | None, ignore_targets: list[str] | None) -> None:
    if targets is not None and ignore_targets is not None:
        raise ConfigValidationError("Cannot specify both 'targets' and 'ignore_targets'")


class McpEntry(BaseModel):
    """A declared MCP server.

    Attributes:
        transport: stdio (default) or http.
        source: Where the server comes from (registry:, local:, github:, git:).
        runtime: Runtime used to launch a stdio server.
        args: Extra command arguments.
        url: Server URL for http transport.
        headers: HTTP headers sent by the client.
        env: Environment variables for the server process.
        targets: Only configure these clients.
        ignore_targets: Configure every client except these.
        reset_targets: Drop ``targets`` inherited from a lower layer.
        reset_ignore_targets: Drop ``ignore_targets`` inherited from a lower layer.
        reset_env: Env keys to drop from a lower layer.
        reset_env_all: Drop the whole env inherited from a lower layer.
    """

    transport: Transport | None = None
    source: str = ""
    runtime: str | None = None
    args: list[str] = Field(default_factory=list)
    url: str | None = None
    headers: dict[str, str] = Field(default_factory=dict)
    env: dict[str, str] = Field(default_factory=dict)
    targets: list[str] | None = None
    ignore_targets: list[str] | None = None
    reset_targets: bool = False
    reset_ignore_targets: bool = False
    reset_env: list[str] | None = None
    reset_env_all: bool = False

    @property
    def effective_transport(self) -> Transport:
        return self.transport or Transport.STDIO

    def ensure_valid(self) -> None:
        """Check the entry invariants.

        Raises:
            ConfigValidationError: If any invariant is violated.
        """
        _check_targets(self.targets, self.ignore_targets)

        if self.effective_transport == Transport.STDIO:
            if not self.source.startswith(MCP_SOURCE_PREFIXES):
                raise ConfigValidationError(
                    "Invalid source format for stdio transport: must be 'registry:name', "
                    "'local:/path', 'github:org/repo', or 'git:url'"
                )
        elif not self.url:
            raise ConfigValidationError("URL is required for http transport")

        if self.runtime is not None and self.runtime not in VALID_RUNTIMES:
            raise ConfigValidationError(
                f"Invalid runtime '{self.runtime}'. Expected one of: {', '.join(VALID_RUNTIMES)}"
            )
        if self.reset_targets and self.targets is not None:
            raise ConfigValidationError("'reset_targets' cannot be combined with 'targets'")
        if self.reset_ignore_targets and self.ignore_targets is not None:
            raise ConfigValidationError(
                "'reset_ignore_targets' cannot be combined with 'ignore_targets'"
            )
        if self.reset_env_all and self.env:
            raise ConfigValidationError("'reset_env_all' cannot be combined with 'env'")
        if self.reset_env and set(self.reset_env) & set(self.env):
            raise ConfigValidationError("'reset_env' cannot reset keys that 'env' sets")


class SkillEntry(BaseModel):
    """A declared skill.

    Attributes:
        source: Where the skill comes from (registry:, local:, github:, git:).
        version: Version constraint, ``latest`` when unset.
        targets: Only deliver to these clients.
        ignore_targets: Deliver to every client except these.
        reset_version: Drop a version pinned by a lower layer.
    """

    source: str = ""
    version: str | None = None
    targets: list[str] | None = None
    ignore_targets: list[str] | None = None
    reset_version: bool = False

    @property
    def effective_version(self) -> str:
        return self.version or DEFAULT_SKILL_VERSION

    def ensure_valid(self) -> None:
        """Check the entry invariants.

        Raises:
            ConfigValidationError: If any invariant is violated.
        """
        _check_targets(self.targets, self.ignore_targets)
        if not self.source.startswith(SOURCE_PREFIXES):
            raise ConfigValidationError(
                "Invalid source format: must be 'registry:author/skill', 'local:/path', "
                "'github:org/repo', or 'git:url'"
            )
        if self.reset_version and self.version is not None:
            raise ConfigValidationError("'reset_version' cannot be combined with 'version'")


class RegistryEntry(BaseModel):
    """A declared registry.

    Attributes:
        type: Registry protocol.
        url: Endpoint of a sift registry.
        source: Git source of a Claude marketplace (github: or git:).
    """

    type: RegistryType = RegistryType.SIFT
    url: str | None = None
    source: str | None = None

    def ensure_valid(self) -> None:
        if self.type == RegistryType.SIFT and not self.url:
            raise ConfigValidationError("Sift registries require a 'url'")
        if self.type == RegistryType.CLAUDE_MARKETPLACE and not (
            self.source and self.source.startswith(("github:", "git:"))
        ):
            raise ConfigValidationError(
                "Claude marketplace registries require a 'source' starting with "
                "'github:' or 'git:'"
            )


class ClientEntry(BaseModel):
    """Per-client settings."""

    enabled: bool = True


class McpOverride(BaseModel):
    """Narrow per-project override of an MCP server (runtime and env only)."""

    runtime: str | None = None
    env: dict[str, str] = Field(default_factory=dict)


class SkillOverride(BaseModel):
    """Narrow per-project override of a skill (version only)."""

    version: str | None = None


class ProjectOverride(BaseModel):
    """Private, per-project section of the global manifest.

    Attributes:
        path: Absolute project path (informational; the table key is used).
        mcp: Local-scope MCP servers.
        skill: Local-scope skills.
        mcp_overrides: Runtime/env overrides for servers declared elsewhere.
        skill_overrides: Version overrides for skills declared elsewhere.
    """

    path: str = ""
    mcp: dict[str, McpEntry] = Field(default_factory=dict)
    skill: dict[str, SkillEntry] = Field(default_factory=dict)
    mcp_overrides: dict[str, McpOverride] = Field(default_factory=dict)
    skill_overrides: dict[str, SkillOverride] = Field(default_factory=dict)

    def is_empty(self) -> bool:
        return not (self.mcp or self.skill or self.mcp_overrides or self.skill_overrides)


class SiftConfig(BaseModel):
    """A whole sift.toml document.

    Attributes:
        mcp: Declared MCP servers by name.
        skill: Declared skills by name.
        registry: Declared registries by key.
        clients: Per-client settings by client id.
        projects: Per-project private sections, keyed by absolute path.
        link_mode: Preferred skill delivery mode.
    """

    mcp: dict[str, McpEntry] = Field(default_factory=dict)
    skill: dict[str, SkillEntry] = Field(default_factory=dict)
    registry: dict[str, RegistryEntry] = Field(default_factory=dict)
    clients: dict[str, ClientEntry] = Field(default_factory=dict)
    projects: dict[str, ProjectOverride] = Field(default_factory=dict)
    link_mode: LinkMode | None = None

    def ensure_valid(self) -> None:
        """Validate every entry, prefixing errors with the entry name.

        Raises:
            ConfigValidationError: If any entry is invalid.
        """
        sections: list[tuple[str, dict[str, Any]]] = [
            ("MCP server", self.mcp),
            ("skill", self.skill),
            ("registry", self.registry),
        ]
        for override in self.projects.values():
            sections.append(("MCP server", override.mcp))
            sections.append(("skill", override.skill))

        for label, entries in sections:
            for name, entry in entries.items():
                try:
                    entry.ensure_valid()
                except ConfigValidationError as e:
                    raise ConfigValidationError(
                        f"Invalid {label} configuration '{name}': {e}"
                    ) from e

        for key, override in self.projects.items():
            for name, mcp_override in override.mcp_overrides.items():
                if mcp_override.runtime and mcp_override.runtime not in VALID_RUNTIMES:
                    raise ConfigValidationError(
                        f"Invalid runtime override '{mcp_override.runtime}' for '{name}' "
                        f"in project '{key}'"
                    )

    def is_empty(self) -> bool:
        return not (
            self.mcp or self.skill or self.registry or self.clients or self.projects
        ) and self.link_mode is None

    def project_override(self, project_path: Path | str) -> tuple[str, ProjectOverride] | None:
        """Find the project section that applies to a path.

        The longest key that is the path itself or one of its ancestors wins,
        so the result never depends on table order.

        Args:
            project_path: Absolute path of the current project.

        Returns:
            The matching (key, override) pair, or None.
        """
        target = PurePath(project_path)
        best: tuple[str, ProjectOverride] | None = None
        best_depth = -1

        for key, override in self.projects.items():
            candidate = PurePath(key)
            if target == candidate or candidate in target.parents:
                depth = len(candidate.parts)
                if depth > best_depth:
                    best, best_depth = (key, override), depth

        return best

    def to_toml(self) -> str:
        """Serialize to TOML with sorted keys and no empty sub-tables."""
        data = self.model_dump(mode="json", exclude_defaults=True)
        return tomli_w.dumps(_prune(data))

    @classmethod
    def from_toml(cls, content: str, path: Path) -> "SiftConfig":
        """Parse and validate TOML text.

        Args:
            content: Raw TOML text.
            path: File the text came from, used in error messages.

        Raises:
            ConfigParseError: If the text is not valid TOML or does not match
                the schema.
        """
        try:
            data = tomllib.loads(content)
        except tomllib.TOMLDecodeError as e:
            raise _toml_error(path, content, e) from e

        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise ConfigParseError(path, str(e)) from e


def _prune(value: Any) -> Any:
    """Sort mapping keys recursively and drop empty tables."""
    if isinstance(value, dict):
        pruned = {key: _prune(value[key]) for key in sorted(value)}
        return {key: item for key, item in pruned.items() if item != {}}
    if isinstance(value, list):
        return [_prune(item) for item in value]
    return value


def _toml_error(path: Path, content: str, error: tomllib.TOMLDecodeError) -> ConfigParseError:
    """Build a parse error showing the offending line with surrounding context."""
    message = str(error)
    match = _TOML_LOCATION.search(message)
    if not match:
        return ConfigParseError(path, f"TOML parsing error: {message}")

    line_no = int(match.group(1))
    reason = message[: match.start()].strip()
    lines = content.splitlines()
    first = max(1, line_no - 2)
    last = min(len(lines), line_no + 1)

    context = []
    for number in range(first, last + 1):
        marker = ">>>" if number == line_no else "   "
        context.append(f"{marker} {number:4} | {lines[number - 1]}")

    formatted = (
        f"TOML parsing error at line {line_no}:\n" + "\n".join(context) + f"\n\nError: {reason}"
    )
    return ConfigParseError(path, formatted, line=line_no)
