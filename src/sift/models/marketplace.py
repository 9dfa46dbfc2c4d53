"""Pydantic models for Claude plugin marketplace manifests.

Two top-level shapes are accepted::

    {"name": ..., "owner": {...}, "metadata": {...}, "plugins": [...]}
    {"marketplace": {"name": ..., "owner": {...}}, "plugins": [...]}
"""

import json
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from sift.errors import RegistryResolutionError

DEFAULT_PLUGIN_VERSION = "0.1.0"


class MarketplaceOwner(BaseModel):
    """Owner of a marketplace or author of a plugin."""

    name: str
    email: str | None = None


class PluginSourceObject(BaseModel):
    """Structured plugin source.

    Attributes:
        source: One of github, url, local.
        repo: ``org/repo`` for github sources.
        url: Clone URL for url sources.
        ref: Branch, tag or commit.
        path: Subdirectory inside the repository.
    """

    model_config = ConfigDict(populate_by_name=True)

    source: str
    repo: str | None = None
    url: str | None = None
    ref: str | None = None
    path: str | None = None


class MarketplacePlugin(BaseModel):
    """One plugin listed in a marketplace.

    Attributes:
        name: Plugin name.
        description: Short description.
        version: Declared version.
        source: Relative path string or structured source.
        skills: Skill directory (or directories) inside the plugin.
        mcp_servers: Declared MCP servers: a URL string or a name-to-config map.
    """

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    name: str
    description: str = ""
    version: str = DEFAULT_PLUGIN_VERSION
    source: str | PluginSourceObject = "./"
    skills: str | list[str] | None = None
    mcp_servers: str | dict[str, Any] | None = Field(default=None, alias="mcpServers")

    def source_string(self) -> str:
        """Render the plugin source as a sift source string."""
        if isinstance(self.source, str):
            if self.source.startswith(("./", "../")):
                return f"local:{self.source}"
            return self.source

        obj = self.source
        kind = obj.source.lower()
        if kind == "github":
            if not obj.repo:
                raise RegistryResolutionError(f"Plugin '{self.name}': github source requires 'repo'")
            text = f"github:{obj.repo}"
            if obj.ref:
                text += f"@{obj.ref}"
            if obj.path:
                text += f"/{obj.path.strip('/')}"
            return text
        if kind == "url":
            if not obj.url:
                raise RegistryResolutionError(f"Plugin '{self.name}': url source requires 'url'")
            return obj.url if not obj.ref else f"{obj.url}#{obj.ref}"
        if kind == "local":
            return f"local:{obj.path or '.'}"
        raise RegistryResolutionError(f"Plugin '{self.name}': unknown source type '{obj.source}'")

    def skill_path(self) -> str | None:
        """First declared skill directory, if any."""
        if isinstance(self.skills, list):
            return self.skills[0] if self.skills else None
        return self.skills


class MarketplaceManifest(BaseModel):
    """A parsed marketplace.json."""

    name: str | None = None
    owner: MarketplaceOwner | str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    plugins: list[dict[str, Any]] = Field(default_factory=list)

    @classmethod
    def parse(cls, content: str) -> "MarketplaceManifest":
        """Parse either supported marketplace.json shape.

        Plugins are kept as raw mappings so they can be merged with nested
        plugin manifests before validation.

        Raises:
            RegistryResolutionError: If the content is not a marketplace.
        """
        try:
            data = json.loads(content)
        except json.JSONDecodeError as e:
            raise RegistryResolutionError(f"Failed to parse marketplace.json: {e}") from e
        if not isinstance(data, dict):
            raise RegistryResolutionError("Failed to parse marketplace.json: expected an object")

        wrapper = data.get("marketplace")
        if isinstance(wrapper, dict):
            data = {**wrapper, "plugins": data.get("plugins", [])}

        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise RegistryResolutionError(f"Failed to parse marketplace.json: {e}") from e

    def find_plugin(self, name: str) -> dict[str, Any] | None:
        for plugin in self.plugins:
            if isinstance(plugin, dict) and plugin.get("name") == name:
                return plugin
        return None

    def plugin_root(self) -> str | None:
        """Directory plugins are relative to, from ``metadata.pluginRoot``."""
        root = self.metadata.get("pluginRoot") or self.metadata.get("plugin_root")
        if not root:
            return None
        return str(root).strip("/") or None


def parse_plugin_manifest(content: str, path: str) -> dict[str, Any]:
    """Parse a nested ``plugin.json`` into a raw mapping.

    Raises:
        RegistryResolutionError: If the file is not a JSON object.
    """
    try:
        data = json.loads(content)
    except json.JSONDecodeError as e:
        raise RegistryResolutionError(f"Failed to parse {path}: {e}") from e
    if not isinstance(data, dict):
        raise RegistryResolutionError(f"Failed to parse {path}: expected an object")
    return data


def merge_plugin_data(nested: dict[str, Any], outer: dict[str, Any]) -> dict[str, Any]:
    """Overlay a marketplace entry onto the plugin's own plugin.json.

    Objects merge recursively; MCP server maps merge server by server with
    the outer definition replacing a server of the same name.
    """
    result = dict(nested)
    for key, value in outer.items():
        base = nested.get(key)
        if key in ("mcpServers", "mcp_servers") and isinstance(base, dict) and isinstance(value, dict):
            result[key] = {**base, **value}
        elif isinstance(base, dict) and isinstance(value, dict):
            result[key] = merge_plugin_data(base, value)
        else:
            result[key] = value
    return result
