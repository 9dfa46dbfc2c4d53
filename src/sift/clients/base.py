"""Base class for client adapters.

An adapter describes one LLM client: which scopes it supports, where it
keeps MCP server definitions and skills, and how it spells a server
object. Adapters are stateless and never touch the filesystem; they only
return plans that the orchestrator executes.
"""

from abc import ABC, abstractmethod
from pathlib import Path, PurePath
from typing import Any

from sift.errors import UnsupportedPlanError
from sift.models.client import (
    ClientCapabilities,
    ClientContext,
    ConfigFormat,
    ManagedConfigPlan,
    PathRoot,
    SkillDeliveryPlan,
)
from sift.models.config import Transport
from sift.models.scope import Scope
from sift.models.server import McpResolvedServer


def resolve_plan_path(root: Path, relative_path: str) -> Path:
    """Join a plan's relative path onto its root.

    Raises:
        UnsupportedPlanError: If the path is absolute or climbs out of the root.
    """
    relative = PurePath(relative_path)
    if relative.is_absolute() or relative.anchor:
        raise UnsupportedPlanError(f"Plan path must be relative: {relative_path}")
    if ".." in relative.parts:
        raise UnsupportedPlanError(f"Plan path must not contain '..': {relative_path}")
    return root / relative


def stdio_fields(server: McpResolvedServer) -> dict[str, Any]:
    """The ``command``/``args``/``env`` triple most clients share."""
    return {"command": server.command, "args": list(server.args), "env": dict(server.env)}


class ClientAdapter(ABC):
    """A supported LLM client.

    Subclasses set ``id`` and ``capabilities`` and implement
    ``mcp_location`` and ``render_server``.
    """

    id: str
    capabilities: ClientCapabilities
    config_format: ConfigFormat = ConfigFormat.JSON

    @abstractmethod
    def mcp_location(self, ctx: ClientContext, scope: Scope) -> tuple[PathRoot, str, list[str]]:
        """Return (root, relative config path, key path) for a supported scope."""

    @abstractmethod
    def render_server(self, server: McpResolvedServer) -> dict[str, Any]:
        """Render one server in the client's own config shape."""

    def plan_mcp(
        self, ctx: ClientContext, scope: Scope, servers: list[McpResolvedServer]
    ) -> ManagedConfigPlan:
        """Plan the managed config write for ``servers`` at ``scope``.

        Raises:
            UnsupportedPlanError: If the client has no MCP config at this
                scope or cannot use a server's transport.
        """
        if not self.capabilities.mcp.supports(scope):
            raise UnsupportedPlanError(
                f"{self.id} does not support MCP servers at {scope.value} scope"
            )

        entries: dict[str, Any] = {}
        for server in servers:
            if server.transport not in self.capabilities.supported_transports:
                raise UnsupportedPlanError(
                    f"{self.id} does not support {server.transport.value} servers"
                )
            if server.transport == Transport.HTTP and not server.url:
                raise UnsupportedPlanError(f"HTTP server '{server.name}' has no URL")
            entries[server.name] = self.render_server(server)

        root, relative_path, key_path = self.mcp_location(ctx, scope)
        return ManagedConfigPlan(
            root=root,
            relative_path=relative_path,
            key_path=key_path,
            format=self.config_format,
            entries=entries,
        )

    def plan_skill(self, ctx: ClientContext, scope: Scope) -> SkillDeliveryPlan:
        """Plan where skills go at ``scope``.

        Global skills go under the home directory; project and local skills
        go under the project root.

        Raises:
            UnsupportedPlanError: If the client has no skills directory there.
        """
        delivery = self.capabilities.skill_delivery
        if scope == Scope.GLOBAL:
            root, relative_path = PathRoot.USER, delivery.user
        else:
            root, relative_path = PathRoot.PROJECT, delivery.project

        if not self.capabilities.skills.supports(scope) or not relative_path:
            raise UnsupportedPlanError(f"{self.id} does not support skills at {scope.value} scope")
        return SkillDeliveryPlan(root=root, relative_path=relative_path)
