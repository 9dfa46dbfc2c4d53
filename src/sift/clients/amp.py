"""Amp adapter."""

from typing import Any

from sift.clients.base import ClientAdapter, stdio_fields
from sift.models.client import ClientCapabilities, ClientContext, PathRoot, SkillDeliveryPaths
from sift.models.config import Transport
from sift.models.scope import Scope, ScopeSupport
from sift.models.server import McpResolvedServer

SETTINGS_KEY = "amp.mcpServers"


class AmpClient(ClientAdapter):
    """Amp stores servers under a dotted ``amp.mcpServers`` settings key."""

    id = "amp"
    capabilities = ClientCapabilities(
        mcp=ScopeSupport(global_=True, project=True),
        skills=ScopeSupport(global_=True, project=True),
        skill_delivery=SkillDeliveryPaths(user=".config/agents/skills", project=".agents/skills"),
    )

    def mcp_location(self, ctx: ClientContext, scope: Scope) -> tuple[PathRoot, str, list[str]]:
        if scope == Scope.GLOBAL:
            return PathRoot.USER, ".config/amp/settings.json", [SETTINGS_KEY]
        return PathRoot.PROJECT, ".vscode/settings.json", [SETTINGS_KEY]

    def render_server(self, server: McpResolvedServer) -> dict[str, Any]:
        if server.transport == Transport.HTTP:
            return {"url": server.url, "headers": dict(server.headers)}
        return stdio_fields(server)
