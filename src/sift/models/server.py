"""Fully resolved MCP server, ready to be rendered by a client adapter."""

from pydantic import BaseModel, Field

from sift.models.config import Transport


class McpResolvedServer(BaseModel):
    """An MCP server with a concrete command or URL.

    Attributes:
        name: Server name as declared in the manifest.
        transport: stdio or http.
        command: Executable for stdio servers.
        args: Arguments for stdio servers.
        env: Environment for stdio servers.
        url: Endpoint for http servers.
        headers: HTTP headers for http servers.
    """

    name: str
    transport: Transport = Transport.STDIO
    command: str | None = None
    args: list[str] = Field(default_factory=list)
    env: dict[str, str] = Field(default_factory=dict)
    url: str | None = None
    headers: dict[str, str] = Field(default_factory=dict)
