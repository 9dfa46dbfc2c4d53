"""Factory Droid adapter."""

from typing import Any

from sift.clients.base import ClientAdapter, stdio_fields
from sift.models.client import ClientCapabilities, ClientContext, PathRoot, SkillDeliveryPaths
from sift.models.config import Transport
from sift.models.scope import Scope, ScopeSupport
from sift.models.server import McpResolvedServer

CONFIG_PATH = ".factory/mcp.json"
SKILLS_DIR = ".factory/skills"


class DroidClient(ClientAdapter):
    id = "droid"
    capabilities = ClientCapabilities(
        mcp=ScopeSupport(global_=True, project=True),
        skills=ScopeSupport(global_=True, project=True),
        skill_delivery=SkillDeliveryPaths(user=SKILLS_DIR, project=SKILLS_DIR),
    )

    def mcp_location(self, ctx: ClientContext, scope: Scope) -> tuple[PathRoot, str, list[str]]:
        root = PathRoot.USER if scope == Scope.GLOBAL else PathRoot.PROJECT
        return root, CONFIG_PATH, ["mcpServers"]

    def render_server(self, server: McpResolvedServer) -> dict[str, Any]:
        if server.transport == Transport.HTTP:
            return {"type": "http", "url": server.url, "headers": dict(server.headers)}
        return {"type": "stdio", **stdio_fields(server)}
