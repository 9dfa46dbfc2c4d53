"""OpenAI Codex CLI adapter."""

from typing import Any

from sift.clients.base import ClientAdapter, stdio_fields
from sift.models.client import (
    ClientCapabilities,
    ClientContext,
    ConfigFormat,
    McpConfigFormat,
    PathRoot,
    SkillDeliveryPaths,
)
from sift.models.config import Transport
from sift.models.scope import Scope, ScopeSupport
from sift.models.server import McpResolvedServer


class CodexClient(ClientAdapter):
    """Codex keeps servers in the ``mcp_servers`` table of ``~/.codex/config.toml``."""

    id = "codex"
    config_format = ConfigFormat.TOML
    capabilities = ClientCapabilities(
        mcp=ScopeSupport(global_=True),
        skills=ScopeSupport(global_=True, project=True),
        skill_delivery=SkillDeliveryPaths(user=".codex/skills", project=".codex/skills"),
        mcp_config_format=McpConfigFormat.TOML,
    )

    def mcp_location(self, ctx: ClientContext, scope: Scope) -> tuple[PathRoot, str, list[str]]:
        return PathRoot.USER, ".codex/config.toml", ["mcp_servers"]

    def render_server(self, server: McpResolvedServer) -> dict[str, Any]:
        if server.transport == Transport.HTTP:
            entry: dict[str, Any] = {"url": server.url}
            if server.headers:
                entry["http_headers"] = dict(server.headers)
            return entry
        return stdio_fields(server)
