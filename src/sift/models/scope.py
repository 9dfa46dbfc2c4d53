"""Scope types shared by the manifest store, planners and orchestrator."""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class Scope(str, Enum):
    """Which configuration layer an entry belongs to.

    Attributes:
        GLOBAL: User-wide; global manifest, delivery under the home directory.
        PROJECT: Committed with the project; ``<project>/sift.toml``.
        LOCAL: Private to one project; stored in the global manifest under
            ``projects."<path>"`` and delivered under the project root.
    """

    GLOBAL = "global"
    PROJECT = "project"
    LOCAL = "local"

    @classmethod
    def parse(cls, value: str) -> "Scope":
        """Parse a scope name, accepting ``shared`` as an alias for project.

        Raises:
            ValueError: If the name is unknown.
        """
        normalized = value.strip().lower()
        if normalized == "shared":
            return cls.PROJECT
        return cls(normalized)


class ResourceKind(str, Enum):
    """The two kinds of things sift installs."""

    MCP = "mcp"
    SKILL = "skill"

    @property
    def label(self) -> str:
        return "MCP" if self is ResourceKind.MCP else "Skill"


class ScopeSupport(BaseModel):
    """Per-scope capability flags advertised by a client."""

    model_config = ConfigDict(populate_by_name=True)

    global_: bool = Field(default=False, alias="global")
    project: bool = False
    local: bool = False

    def supports(self, scope: Scope) -> bool:
        return {
            Scope.GLOBAL: self.global_,
            Scope.PROJECT: self.project,
            Scope.LOCAL: self.local,
        }[scope]

    def supported(self) -> list[Scope]:
        return [scope for scope in Scope if self.supports(scope)]


class ScopeDecision(BaseModel):
    """Outcome of scope resolution for one client.

    Exactly one of ``scope`` (apply) or ``warning`` (skip) is set.

    Attributes:
        scope: Scope to configure the client at.
        use_git_exclude: Whether delivered paths must be git-excluded.
        warning: Reason the client was skipped.
    """

    scope: Scope | None = None
    use_git_exclude: bool = False
    warning: str | None = None

    @classmethod
    def apply(cls, scope: Scope, use_git_exclude: bool = False) -> "ScopeDecision":
        return cls(scope=scope, use_git_exclude=use_git_exclude)

    @classmethod
    def skip(cls, warning: str) -> "ScopeDecision":
        return cls(warning=warning)

    @property
    def applied(self) -> bool:
        return self.scope is not None
