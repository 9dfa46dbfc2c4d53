"""Building runnable MCP server definitions from manifest entries."""

import logging
from pathlib import PurePath
from typing import Any

from pydantic import BaseModel, ConfigDict

from sift.errors import ConfigValidationError, RegistryResolutionError
from sift.models.config import McpEntry, Transport
from sift.models.lockfile import ResolvedOrigin
from sift.models.marketplace import MarketplacePlugin
from sift.models.server import McpResolvedServer
from sift.models.source import GIT_PREFIX, GITHUB_PREFIX, LOCAL_PREFIX, REGISTRY_PREFIX
from sift.services.mcpb import MCPB_PREFIX, McpbFetcher, is_mcpb_url, manifest_to_server
from sift.services.source_resolver import SourceResolver

logger = logging.getLogger(__name__)

UNMANAGED_VERSION = "unmanaged"

_RUNTIME_BY_COMMAND = {
    "uvx": "python",
    "uv": "python",
    "python": "python",
    "python3": "python",
    "npx": "node",
    "npm": "node",
    "node": "node",
    "bunx": "bun",
    "bun": "bun",
}

_RUNTIME_BY_EXTENSION = {".py": "python", ".ts": "bun", ".js": "node", ".mjs": "node"}

# Runtime binary used to launch a local script.
_INTERPRETERS = {"node": "node", "python": "python", "bun": "bun"}


def infer_runtime(command: str) -> str:
    """Guess the runtime from the first token of a command.

    Args:
        command: Command line or path.

    Returns:
        One of python, node, bun, docker or shell.
    """
    tokens = command.split()
    first = tokens[0] if tokens else ""
    name = PurePath(first).name

    if name in _RUNTIME_BY_COMMAND:
        return _RUNTIME_BY_COMMAND[name]
    if name.startswith("docker"):
        return "docker"
    return _RUNTIME_BY_EXTENSION.get(PurePath(name).suffix, "shell")


def package_command(runtime: str | None, package: str, version: str | None) -> tuple[str, list[str]]:
    """Command that runs a published package with its runtime's package runner."""
    tag = version or "latest"
    if runtime == "python":
        return "uvx", [package if version is None else f"{package}=={version}"]
    if runtime == "bun":
        return "bunx", [f"{package}@{tag}"]
    if runtime == "docker":
        return "docker", ["run", "-i", "--rm", f"{package}:{tag}"]
    if runtime == "shell":
        return package, []
    return "npx", ["-y", f"{package}@{tag}"]


class BuiltServers(BaseModel):
    """Servers produced for one manifest entry, plus lockfile details.

    Attributes:
        servers: Servers to render into client configs.
        resolved_version: Commit, bundle version, or ``unmanaged``.
        constraint: Requested version constraint.
        registry: Registry key, or the kind of unmanaged source.
        origin: Registry origin for registry sources.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    servers: list[McpResolvedServer]
    resolved_version: str = UNMANAGED_VERSION
    constraint: str = UNMANAGED_VERSION
    registry: str = "local"
    origin: ResolvedOrigin | None = None

    def names(self) -> list[str]:
        return [server.name for server in self.servers]


class McpServerBuilder(BaseModel):
    """Turns an MCP manifest entry into concrete server definitions.

    Attributes:
        resolver: Resolver for registry sources.
        mcpb: Fetcher for MCPB bundles.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    resolver: SourceResolver
    mcpb: McpbFetcher

    def build(
        self, name: str, entry: McpEntry, version: str | None = None, force: bool = False
    ) -> BuiltServers:
        """Build the servers declared by ``entry``.

        Args:
            name: Manifest key of the entry.
            entry: The merged manifest entry.
            version: Requested version, if any.
            force: Re-download bundles and refresh registry refs.

        Returns:
            BuiltServers for rendering and locking.

        Raises:
            ConfigValidationError: If the entry cannot produce a server.
            RegistryResolutionError: If a registry source cannot be resolved.
        """
        if entry.effective_transport == Transport.HTTP:
            if not entry.url:
                raise ConfigValidationError("HTTP transport requires a URL")
            server = McpResolvedServer(
                name=name, transport=Transport.HTTP, url=entry.url, headers=dict(entry.headers)
            )
            return BuiltServers(servers=[server], registry="url")

        source = entry.source
        if source.startswith(MCPB_PREFIX):
            return self._build_mcpb(name, entry, source[len(MCPB_PREFIX) :], force)
        if source.startswith(GIT_PREFIX) and is_mcpb_url(source[len(GIT_PREFIX) :]):
            return self._build_mcpb(name, entry, source[len(GIT_PREFIX) :], force)
        if source.startswith(REGISTRY_PREFIX):
            return self._build_registry(name, entry, version, force)
        if source.startswith(LOCAL_PREFIX):
            return BuiltServers(servers=[self._build_local(name, entry)])
        if source.startswith((GITHUB_PREFIX, GIT_PREFIX)):
            return BuiltServers(servers=[self._build_git(name, entry)], registry="git")

        raise ConfigValidationError(f"Unsupported MCP source '{source}'")

    def _build_local(self, name: str, entry: McpEntry) -> McpResolvedServer:
        target = entry.source[len(LOCAL_PREFIX) :]
        runtime = entry.runtime or infer_runtime(target)
        interpreter = _INTERPRETERS.get(runtime)

        if runtime == "shell" or interpreter is None:
            command, args = target, list(entry.args)
        else:
            path = self.resolver.resolve_local(target).path
            command, args = interpreter, [str(path), *entry.args]

        return McpResolvedServer(name=name, command=command, args=args, env=dict(entry.env))

    def _build_git(self, name: str, entry: McpEntry) -> McpResolvedServer:
        spec = entry.source.removeprefix(GIT_PREFIX)
        if entry.runtime == "python":
            package = spec if spec.startswith("git+") else f"git+{spec}"
            command, args = "uvx", ["--from", package, name]
        else:
            command, args = "npx", ["-y", spec]
        return McpResolvedServer(
            name=name, command=command, args=[*args, *entry.args], env=dict(entry.env)
        )

    def _build_mcpb(self, name: str, entry: McpEntry, url: str, force: bool) -> BuiltServers:
        bundle_dir = self.mcpb.fetch(url, force=force)
        manifest = self.mcpb.load_manifest(bundle_dir)
        server = manifest_to_server(name, manifest, bundle_dir)
        server.args.extend(entry.args)
        server.env.update(entry.env)
        bundle_version = manifest.version or UNMANAGED_VERSION
        return BuiltServers(
            servers=[server],
            resolved_version=bundle_version,
            constraint=bundle_version,
            registry="mcpb",
        )

    def _build_registry(
        self, name: str, entry: McpEntry, version: str | None, force: bool
    ) -> BuiltServers:
        resolved = self.resolver.resolve(entry.source, refresh=force)
        plugin, metadata = resolved.plugin, resolved.metadata
        if plugin is None or metadata is None:
            raise RegistryResolutionError(f"Source '{entry.source}' did not resolve to a plugin")

        servers = self._plugin_servers(name, plugin, entry, version, force)
        origin = metadata.to_origin()
        origin.aliases = sorted({*origin.aliases, *(s.name for s in servers)} - {name})

        return BuiltServers(
            servers=servers,
            resolved_version=resolved.commit or metadata.version or UNMANAGED_VERSION,
            constraint=version or "latest",
            registry=metadata.registry_key,
            origin=origin,
        )

    def _plugin_servers(
        self,
        name: str,
        plugin: MarketplacePlugin,
        entry: McpEntry,
        version: str | None,
        force: bool,
    ) -> list[McpResolvedServer]:
        declared = plugin.mcp_servers

        if isinstance(declared, str):
            if is_mcpb_url(declared):
                return self._build_mcpb(name, entry, declared, force).servers
            return [McpResolvedServer(name=name, transport=Transport.HTTP, url=declared)]

        if not declared:
            logger.debug(f"Plugin {plugin.name} declares no MCP servers; using package runner")
            command, args = package_command(entry.runtime, plugin.name, version)
            return [
                McpResolvedServer(
                    name=name, command=command, args=[*args, *entry.args], env=dict(entry.env)
                )
            ]

        if name in declared:
            selected = {name: declared[name]}
        elif len(declared) == 1:
            selected = {name: next(iter(declared.values()))}
        else:
            selected = dict(declared)

        return [
            self._plugin_server(server_name, config, entry)
            for server_name, config in sorted(selected.items())
        ]

    def _plugin_server(
        self, name: str, config: Any, entry: McpEntry
    ) -> McpResolvedServer:
        if not isinstance(config, dict):
            raise RegistryResolutionError(f"MCP server '{name}' must be an object")

        url = config.get("url") or config.get("httpUrl")
        if url:
            headers = {**config.get("headers", {}), **entry.headers}
            return McpResolvedServer(
                name=name, transport=Transport.HTTP, url=str(url), headers=headers
            )

        command = config.get("command")
        if not command:
            raise RegistryResolutionError(f"MCP server '{name}' has neither command nor url")

        return McpResolvedServer(
            name=name,
            command=str(command),
            args=[*(str(a) for a in config.get("args", [])), *entry.args],
            env={**{k: str(v) for k, v in config.get("env", {}).items()}, **entry.env},
        )
