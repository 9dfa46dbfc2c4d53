"""Claude Code adapter."""

from typing import Any

from sift.clients.base import ClientAdapter, stdio_fields
from sift.models.client import (
    ClientCapabilities,
    ClientContext,
    McpConfigFormat,
    PathRoot,
    SkillDeliveryPaths,
)
from sift.models.config import Transport
from sift.models.scope import Scope, ScopeSupport
from sift.models.server import McpResolvedServer

USER_CONFIG = ".claude.json"
PROJECT_CONFIG = ".mcp.json"
SKILLS_DIR = ".claude/skills"


class ClaudeCodeClient(ClientAdapter):
    """Claude Code keeps user and per-project-local servers in ``~/.claude.json``.

    Local servers live under ``projects.<project root>.mcpServers`` of the
    user file; shared servers go to ``<project>/.mcp.json``.
    """

    id = "claude-code"
    capabilities = ClientCapabilities(
        mcp=ScopeSupport(global_=True, project=True, local=True),
        skills=ScopeSupport(global_=True, project=True),
        supports_symlinked_skills=True,
        skill_delivery=SkillDeliveryPaths(user=SKILLS_DIR, project=SKILLS_DIR),
        mcp_config_format=McpConfigFormat.CLAUDE_CODE,
    )

    def mcp_location(self, ctx: ClientContext, scope: Scope) -> tuple[PathRoot, str, list[str]]:
        if scope == Scope.PROJECT:
            return PathRoot.PROJECT, PROJECT_CONFIG, ["mcpServers"]
        if scope == Scope.LOCAL:
            return PathRoot.USER, USER_CONFIG, ["projects", str(ctx.project_root), "mcpServers"]
        return PathRoot.USER, USER_CONFIG, ["mcpServers"]

    def render_server(self, server: McpResolvedServer) -> dict[str, Any]:
        if server.transport == Transport.HTTP:
            return {"type": "http", "url": server.url, "headers": dict(server.headers)}
        return stdio_fields(server)
