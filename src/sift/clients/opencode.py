"""OpenCode adapter."""

from typing import Any

from sift.clients.base import ClientAdapter
from sift.models.client import ClientCapabilities, ClientContext, PathRoot, SkillDeliveryPaths
from sift.models.config import Transport
from sift.models.scope import Scope, ScopeSupport
from sift.models.server import McpResolvedServer


class OpenCodeClient(ClientAdapter):
    """OpenCode takes the command and its arguments as a single list."""

    id = "opencode"
    capabilities = ClientCapabilities(
        mcp=ScopeSupport(project=True),
        skills=ScopeSupport(global_=True, project=True),
        skill_delivery=SkillDeliveryPaths(user=".config/opencode/skill", project=".opencode/skill"),
    )

    def mcp_location(self, ctx: ClientContext, scope: Scope) -> tuple[PathRoot, str, list[str]]:
        return PathRoot.PROJECT, "opencode.json", ["mcp"]

    def render_server(self, server: McpResolvedServer) -> dict[str, Any]:
        if server.transport == Transport.HTTP:
            entry: dict[str, Any] = {"type": "remote", "url": server.url}
            if server.headers:
                entry["headers"] = dict(server.headers)
            return entry

        entry = {"type": "local", "command": [server.command, *server.args]}
        if server.env:
            entry["environment"] = dict(server.env)
        return entry
