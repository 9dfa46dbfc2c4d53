"""MCPB bundle download, extraction and conversion to a runnable server.

Bundles are zip archives holding a ``manifest.json`` and the server code.
They are extracted once into ``<state>/cache/mcpb/<hash of url>`` and
reused until a forced refresh.
"""

import asyncio
import io
import logging
import os
import sys
import zipfile
from pathlib import Path, PurePosixPath
from urllib.parse import urlparse

import httpx
from blake3 import blake3
from pydantic import BaseModel, ConfigDict, ValidationError

from sift.errors import ConfigParseError, ConfigValidationError, SiftIOError
from sift.models.mcpb import McpbManifest, McpbMcpConfig, McpbServerType
from sift.models.server import McpResolvedServer
from sift.services.paths import AppPaths
from sift.utils.files import remove_path

logger = logging.getLogger(__name__)

MCPB_PREFIX = "mcpb:"
MANIFEST_FILENAME = "manifest.json"
DIRNAME_TOKEN = "${__dirname}"
DOWNLOAD_TIMEOUT = 60.0


def is_mcpb_url(url: str) -> bool:
    """Return True if the URL path (ignoring query and fragment) ends in ``.mcpb``."""
    return urlparse(url).path.lower().endswith(".mcpb")


def bundle_cache_key(url: str) -> str:
    """First 16 bytes of the blake3 hash of the URL, hex encoded."""
    return blake3(url.encode("utf-8")).hexdigest()[:32]


def current_platform() -> str:
    if sys.platform.startswith("win"):
        return "win32"
    if sys.platform == "darwin":
        return "darwin"
    return "linux"


def _is_safe_member(name: str) -> bool:
    path = PurePosixPath(name.replace("\\", "/"))
    if path.is_absolute() or ".." in path.parts:
        return False
    return not (path.parts and ":" in path.parts[0])


def extract_bundle(data: bytes, dest: Path) -> None:
    """Extract a bundle archive, skipping members with unsafe paths.

    Raises:
        SiftIOError: If the data is not a zip archive.
    """
    try:
        archive = zipfile.ZipFile(io.BytesIO(data))
    except zipfile.BadZipFile as e:
        raise SiftIOError(f"Downloaded bundle is not a valid zip archive: {e}") from e

    with archive:
        for member in archive.infolist():
            if not _is_safe_member(member.filename):
                logger.warning(f"Skipping unsafe bundle entry: {member.filename}")
                continue
            archive.extract(member, dest)


def validate_entry_point(entry_point: str, extract_dir: Path, manifest_name: str) -> Path:
    """Resolve an entry point inside the bundle directory.

    Raises:
        ConfigValidationError: If the entry point is absolute or escapes the
            bundle directory.
    """
    entry = PurePosixPath(entry_point.replace("\\", "/"))
    if entry.is_absolute() or Path(entry_point).is_absolute():
        raise ConfigValidationError(
            f"MCPB manifest '{manifest_name}' has invalid entry_point: absolute paths are "
            f"not allowed (got '{entry_point}')"
        )

    base = Path(os.path.normpath(extract_dir))
    full = Path(os.path.normpath(base / entry))
    if full != base and base not in full.parents:
        raise ConfigValidationError(
            f"MCPB manifest '{manifest_name}' has invalid entry_point: path traversal "
            f"detected (entry_point '{entry_point}' resolves outside bundle directory)"
        )
    return full


def manifest_to_server(
    name: str, manifest: McpbManifest, extract_dir: Path, platform: str | None = None
) -> McpResolvedServer:
    """Turn a bundle manifest into a stdio server definition.

    Args:
        name: Server name to use.
        manifest: Parsed bundle manifest.
        extract_dir: Directory the bundle was extracted to.
        platform: Platform key for overrides (default: the running platform).

    Returns:
        A stdio McpResolvedServer.

    Raises:
        ConfigValidationError: If neither mcp_config nor entry_point is given,
            or the entry point is unsafe.
    """
    config = manifest.server.mcp_config or _derive_config(manifest, extract_dir)

    override = config.platforms.get(platform or current_platform())
    command, args, env = config.command, list(config.args), dict(config.env)
    if override is not None:
        command = override.command or command
        args = list(override.args) if override.args is not None else args
        env.update(override.env or {})

    directory = str(extract_dir)
    env = {key: value.replace(DIRNAME_TOKEN, directory) for key, value in env.items()}
    for key, option in manifest.user_config.items():
        if isinstance(option.default, str):
            env.setdefault(key.upper(), option.default)

    return McpResolvedServer(
        name=name,
        command=command.replace(DIRNAME_TOKEN, directory),
        args=[arg.replace(DIRNAME_TOKEN, directory) for arg in args],
        env=env,
    )


def _derive_config(manifest: McpbManifest, extract_dir: Path) -> McpbMcpConfig:
    server = manifest.server
    if not server.entry_point:
        raise ConfigValidationError(
            f"MCPB manifest must specify either mcp_config or entry_point for "
            f"{server.type.value} server"
        )

    entry = str(validate_entry_point(server.entry_point, extract_dir, manifest.name))
    if server.type == McpbServerType.NODE:
        return McpbMcpConfig(command="node", args=[entry])
    if server.type == McpbServerType.PYTHON:
        return McpbMcpConfig(command="python", args=[entry])
    if server.type == McpbServerType.UV:
        return McpbMcpConfig(command="uv", args=["run", entry])
    return McpbMcpConfig(command=entry)


class McpbFetcher(BaseModel):
    """Downloads and caches MCPB bundles.

    Attributes:
        paths: Directory layout holding the bundle cache.
        transport: Optional httpx transport, used by tests.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    paths: AppPaths
    transport: httpx.AsyncBaseTransport | None = None

    def fetch(self, url: str, force: bool = False) -> Path:
        """Make sure a bundle is extracted in the cache.

        Args:
            url: Bundle URL.
            force: Download again even if a cached copy exists.

        Returns:
            The extraction directory.
        """
        bundle_dir = self.paths.mcpb_cache_dir / bundle_cache_key(url)
        if (bundle_dir / MANIFEST_FILENAME).is_file() and not force:
            logger.debug(f"Reusing cached bundle {bundle_dir}")
            return bundle_dir

        data = asyncio.run(self._download(url))

        tmp_dir = bundle_dir.with_name(f".{bundle_dir.name}.{os.getpid()}.tmp")
        remove_path(tmp_dir)
        tmp_dir.mkdir(parents=True)
        try:
            extract_bundle(data, tmp_dir)
            if not (tmp_dir / MANIFEST_FILENAME).is_file():
                raise SiftIOError(f"Bundle {url} has no {MANIFEST_FILENAME}")
            remove_path(bundle_dir)
            tmp_dir.rename(bundle_dir)
        except (OSError, SiftIOError):
            remove_path(tmp_dir)
            raise

        logger.info(f"Extracted bundle {url} to {bundle_dir}")
        return bundle_dir

    async def _download(self, url: str) -> bytes:
        logger.info(f"Downloading {url}")
        try:
            async with httpx.AsyncClient(
                timeout=DOWNLOAD_TIMEOUT, follow_redirects=True, transport=self.transport
            ) as client:
                response = await client.get(url)
                response.raise_for_status()
                return response.content
        except httpx.HTTPError as e:
            raise SiftIOError(f"Failed to download bundle {url}: {e}") from e

    def load_manifest(self, bundle_dir: Path) -> McpbManifest:
        path = bundle_dir / MANIFEST_FILENAME
        try:
            return McpbManifest.model_validate_json(path.read_text(encoding="utf-8"))
        except ValidationError as e:
            raise ConfigParseError(path, str(e)) from e

