"""Turning source strings into fetchable locations.

Sources come in four prefixed forms:

- ``local:<path>``: a directory on disk, relative to the project root,
  the home directory (``~/``) or absolute.
- ``github:org/repo[@ref][/subdir]`` and ``git:<url>``: a git repository.
- ``registry:[<key>/]<name>``: a plugin listed by a configured registry.

Unprefixed strings are classified by ``normalize_source``.
"""

import logging
import posixpath
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from sift.errors import ConfigValidationError, RegistryResolutionError, SiftIOError
from sift.models.config import RegistryEntry, RegistryType
from sift.models.marketplace import (
    MarketplaceManifest,
    MarketplacePlugin,
    merge_plugin_data,
    parse_plugin_manifest,
)
from sift.models.source import (
    GIT_PREFIX,
    GITHUB_PREFIX,
    LOCAL_PREFIX,
    REGISTRY_PREFIX,
    GitSpec,
    LocalSource,
    RegistryMetadata,
    ResolvedSource,
    validate_subdir,
)
from sift.services.git import GitFetcher
from sift.services.paths import AppPaths

logger = logging.getLogger(__name__)

MARKETPLACE_PATHS = (".claude-plugin/marketplace.json", "marketplace.json")
PLUGIN_MANIFEST_PATH = ".claude-plugin/plugin.json"
KNOWN_PREFIXES = (LOCAL_PREFIX, GITHUB_PREFIX, GIT_PREFIX, REGISTRY_PREFIX)


def normalize_source(raw: str, project_root: Path) -> str:
    """Classify an unprefixed source string.

    Paths (``/``, ``./``, ``../``, ``~/`` or an existing path) become
    ``local:``; URL-shaped strings become ``git:``; anything else is a
    registry name.

    Args:
        raw: Source as typed by the user.
        project_root: Directory relative paths are checked against.

    Returns:
        A prefixed source string.
    """
    source = raw.strip()
    if source.startswith(KNOWN_PREFIXES):
        return source
    if source.startswith(("/", "./", "../", "~/")) or (project_root / source).exists():
        return f"{LOCAL_PREFIX}{source}"
    if source.startswith(("http://", "https://", "git@")) or "/tree/" in source:
        return f"{GIT_PREFIX}{source}"
    return f"{REGISTRY_PREFIX}{source}"


def split_registry_source(source: str) -> tuple[str | None, str]:
    """Split ``registry:[key/]name`` into (key, name)."""
    body = source[len(REGISTRY_PREFIX) :] if source.startswith(REGISTRY_PREFIX) else source
    key, sep, name = body.partition("/")
    if not sep:
        return None, body
    return key, name


def derive_name(source: str) -> str:
    """Guess an entry name from a prefixed source.

    Registry sources yield the plugin name; paths and URLs yield their last
    segment without ``@ref``, ``.git`` or ``.mcpb`` suffixes.

    Raises:
        ConfigValidationError: If no name can be derived.
    """
    if source.startswith(REGISTRY_PREFIX):
        name = split_registry_source(source)[1]
    else:
        body = source.partition(":")[2] if source.startswith(KNOWN_PREFIXES) else source
        body = body.split("?", 1)[0].split("#", 1)[0].rstrip("/")
        name = body.rsplit("/", 1)[-1].rsplit(":", 1)[-1]
        name = name.split("@", 1)[0].removesuffix(".git").removesuffix(".mcpb")

    if not name or name in (".", "..", "~"):
        raise ConfigValidationError(f"Cannot derive a name from source '{source}'")
    return name


class ResolvedEntry(BaseModel):
    """Result of resolving a source string.

    Attributes:
        source: Local directory or git location of the content.
        metadata: Registry information for registry sources.
        plugin: Marketplace plugin for registry sources.
        commit: Resolved commit for git-backed registry sources.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    source: ResolvedSource
    metadata: RegistryMetadata | None = None
    plugin: MarketplacePlugin | None = None
    commit: str | None = None

    def skill_source(self) -> ResolvedSource:
        """Location of the skill content, honoring the plugin's ``skills`` path."""
        skill_path = self.plugin.skill_path() if self.plugin else None
        if not skill_path:
            return self.source
        if isinstance(self.source, GitSpec):
            base = self.source.subdir or ""
            return self.source.with_subdir(posixpath.normpath(posixpath.join(base, skill_path)))
        return LocalSource(path=self.source.path / skill_path)


class SourceResolver(BaseModel):
    """Resolves source strings against the filesystem and registries.

    Attributes:
        paths: Directory layout of the current invocation.
        registries: Registries declared in the merged manifest.
        git: Fetcher used to read registry manifests.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    paths: AppPaths
    registries: dict[str, RegistryEntry] = Field(default_factory=dict)
    git: GitFetcher

    def resolve(self, source: str, refresh: bool = False) -> ResolvedEntry:
        """Resolve any source string.

        Raises:
            RegistryResolutionError: If a registry source cannot be resolved.
            ConfigValidationError: If a git source is malformed.
        """
        normalized = normalize_source(source, self.paths.project_root)
        if normalized.startswith(LOCAL_PREFIX):
            return ResolvedEntry(source=self.resolve_local(normalized))
        if normalized.startswith(REGISTRY_PREFIX):
            return self.resolve_registry(normalized, refresh=refresh)
        return ResolvedEntry(source=GitSpec.parse(normalized))

    def resolve_local(self, source: str) -> LocalSource:
        raw = source[len(LOCAL_PREFIX) :] if source.startswith(LOCAL_PREFIX) else source
        if raw.startswith("~/"):
            return LocalSource(path=self.paths.home_dir / raw[2:])
        if raw.startswith("/"):
            return LocalSource(path=Path(raw))
        if raw.startswith("./"):
            raw = raw[2:]
        return LocalSource(path=self.paths.project_root / raw)

    def registry_for(self, source: str) -> tuple[str, RegistryEntry, str]:
        """Pick the registry a ``registry:`` source refers to.

        Returns:
            Tuple of (registry key, registry entry, plugin name).

        Raises:
            RegistryResolutionError: If no registry, or no unique registry,
                matches.
        """
        key, name = split_registry_source(source)
        if not self.registries:
            raise RegistryResolutionError("No registries configured")

        if key is None:
            if len(self.registries) > 1:
                raise RegistryResolutionError(
                    f"Multiple registries configured; specify registry explicitly: "
                    f"registry:NAME/{name}"
                )
            key = next(iter(self.registries))

        entry = self.registries.get(key)
        if entry is None:
            raise RegistryResolutionError(f"Unknown registry '{key}'")
        return key, entry, name

    def resolve_registry(self, source: str, refresh: bool = False) -> ResolvedEntry:
        key, registry, name = self.registry_for(source)

        if registry.type == RegistryType.SIFT:
            raise RegistryResolutionError(
                f"Registry '{key}': sift registries are not yet implemented"
            )

        market_spec = GitSpec.parse(registry.source or "")
        marketplace = self.load_marketplace(key, market_spec, refresh=refresh)
        raw_plugin = marketplace.find_plugin(name)
        if raw_plugin is None:
            raise RegistryResolutionError(f"Plugin '{name}' not found in registry '{key}'")

        outer = MarketplacePlugin.model_validate(raw_plugin)
        plugin_source = outer.source_string()

        if plugin_source.startswith(LOCAL_PREFIX):
            relative = plugin_source[len(LOCAL_PREFIX) :]
            parts = [market_spec.subdir or "", marketplace.plugin_root() or "", relative]
            joined = posixpath.normpath(posixpath.join(*[p for p in parts if p]))
            subdir = None if joined in (".", "") else validate_subdir(joined)
            spec = GitSpec(repo_url=market_spec.repo_url, ref=market_spec.ref or "main", subdir=subdir)
        else:
            spec = GitSpec.parse(plugin_source)

        plugin = self._merge_nested_manifest(spec, raw_plugin, refresh)
        commit = self._resolve_commit(spec, refresh)

        metadata = RegistryMetadata(
            original_source=f"{REGISTRY_PREFIX}{key}/{name}",
            registry_key=key,
            plugin_name=plugin.name,
            version=plugin.version,
            aliases=[name],
        )
        logger.debug(f"Resolved {source} to {spec.display()} at {commit}")
        return ResolvedEntry(source=spec, metadata=metadata, plugin=plugin, commit=commit)

    def load_marketplace(
        self, key: str, spec: GitSpec, refresh: bool = False
    ) -> MarketplaceManifest:
        """Read and parse a registry's marketplace.json straight from git.

        Raises:
            RegistryResolutionError: If no marketplace.json exists at the ref.
        """
        for candidate in MARKETPLACE_PATHS:
            path = posixpath.join(spec.subdir, candidate) if spec.subdir else candidate
            content = self.git.read_file(spec, path, refresh=refresh)
            if content is not None:
                return MarketplaceManifest.parse(content)

        raise RegistryResolutionError(
            f"Registry '{key}': no marketplace.json found in {spec.display()}"
        )

    def _merge_nested_manifest(
        self, spec: GitSpec, raw_plugin: dict[str, Any], refresh: bool
    ) -> MarketplacePlugin:
        path = (
            posixpath.join(spec.subdir, PLUGIN_MANIFEST_PATH) if spec.subdir else PLUGIN_MANIFEST_PATH
        )
        nested_text = self.git.read_file(spec, path, refresh=refresh)
        data = raw_plugin
        if nested_text is not None:
            nested = parse_plugin_manifest(nested_text, path)
            data = merge_plugin_data(nested, raw_plugin)
        return MarketplacePlugin.model_validate(data)

    def _resolve_commit(self, spec: GitSpec, refresh: bool) -> str:
        try:
            bare_dir = self.git.ensure_bare_repo(spec, refresh=refresh)
            return self.git.resolve_commit(bare_dir, spec, refresh=refresh)
        except OSError as e:
            raise SiftIOError(f"Failed to resolve {spec.display()}: {e}") from e
