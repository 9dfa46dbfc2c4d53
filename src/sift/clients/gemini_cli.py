"""Gemini CLI adapter."""

from typing import Any

from sift.clients.base import ClientAdapter, stdio_fields
from sift.models.client import ClientCapabilities, ClientContext, PathRoot, SkillDeliveryPaths
from sift.models.config import Transport
from sift.models.scope import Scope, ScopeSupport
from sift.models.server import McpResolvedServer

SETTINGS_PATH = ".gemini/settings.json"
SKILLS_DIR = ".gemini/skills"


class GeminiCliClient(ClientAdapter):
    """Gemini CLI names the streamable HTTP endpoint ``httpUrl``."""

    id = "gemini-cli"
    capabilities = ClientCapabilities(
        mcp=ScopeSupport(global_=True, project=True),
        skills=ScopeSupport(global_=True, project=True),
        skill_delivery=SkillDeliveryPaths(user=SKILLS_DIR, project=SKILLS_DIR),
    )

    def mcp_location(self, ctx: ClientContext, scope: Scope) -> tuple[PathRoot, str, list[str]]:
        root = PathRoot.USER if scope == Scope.GLOBAL else PathRoot.PROJECT
        return root, SETTINGS_PATH, ["mcpServers"]

    def render_server(self, server: McpResolvedServer) -> dict[str, Any]:
        if server.transport == Transport.HTTP:
            entry: dict[str, Any] = {"httpUrl": server.url}
            if server.headers:
                entry["headers"] = dict(server.headers)
            return entry
        return stdio_fields(server)
