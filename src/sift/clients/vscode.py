"""VS Code (GitHub Copilot) adapter."""

from typing import Any

from sift.clients.base import ClientAdapter
from sift.models.client import ClientCapabilities, ClientContext, PathRoot, SkillDeliveryPaths
from sift.models.config import Transport
from sift.models.scope import Scope, ScopeSupport
from sift.models.server import McpResolvedServer


class VSCodeClient(ClientAdapter):
    """VS Code reads servers from the workspace ``.vscode/mcp.json`` only."""

    id = "vscode"
    capabilities = ClientCapabilities(
        mcp=ScopeSupport(project=True),
        skills=ScopeSupport(global_=True, project=True),
        skill_delivery=SkillDeliveryPaths(user=".copilot/skills", project=".github/skills"),
    )

    def mcp_location(self, ctx: ClientContext, scope: Scope) -> tuple[PathRoot, str, list[str]]:
        return PathRoot.PROJECT, ".vscode/mcp.json", ["servers"]

    def render_server(self, server: McpResolvedServer) -> dict[str, Any]:
        if server.transport == Transport.HTTP:
            entry: dict[str, Any] = {"type": "http", "url": server.url}
            if server.headers:
                entry["headers"] = dict(server.headers)
            return entry

        entry = {"type": "stdio", "command": server.command}
        if server.args:
            entry["args"] = list(server.args)
        if server.env:
            entry["env"] = dict(server.env)
        return entry
