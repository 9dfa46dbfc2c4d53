"""Three-layer manifest merging: global, then project, then local override.

Field rules for MCP entries:

- transport: the overlay wins; a mismatch is reported as a warning.
- runtime: the overlay wins unless it is the default (``node`` or unset) and
  the base pins something else. Swapping between incompatible runtimes is
  reported; node and bun are interchangeable.
- source, args, url, targets, ignore_targets: the overlay wins when present
  and non-empty.
- headers, env: merged key by key.

Skill versions follow the same pinning rule as runtimes with ``latest`` as
the default. Registries merge additively with the first definition winning.
"""

import logging
from pathlib import Path

from sift.models.config import (
    DEFAULT_RUNTIME,
    DEFAULT_SKILL_VERSION,
    McpEntry,
    ProjectOverride,
    SiftConfig,
    SkillEntry,
)

logger = logging.getLogger(__name__)

_COMPATIBLE_RUNTIMES = frozenset({"node", "bun"})


def merge_configs(
    global_config: SiftConfig | None,
    project_config: SiftConfig | None,
    project_path: Path | str,
) -> tuple[SiftConfig, list[str]]:
    """Merge the global and project manifests for one project.

    The project section of the global manifest whose key is the longest
    ancestor of ``project_path`` is applied last. The merged view never
    carries a ``projects`` table.

    Args:
        global_config: The global manifest, if any.
        project_config: The project manifest, if any.
        project_path: Absolute path of the current project.

    Returns:
        Tuple of (merged config, warnings raised while merging).
    """
    warnings: list[str] = []
    merged = global_config.model_copy(deep=True) if global_config else SiftConfig()

    if project_config is not None:
        if project_config.projects:
            warnings.append(
                "[projects] section found in the project sift.toml is ignored; "
                "it is only allowed in the global manifest"
            )
        _merge_layer(merged, project_config, warnings)

    match = merged.project_override(project_path)
    if match is not None:
        key, override = match
        logger.debug(f"Applying project override '{key}' to {project_path}")
        _merge_layer(merged, SiftConfig(mcp=override.mcp, skill=override.skill), warnings)
        _apply_override(merged, override)

    merged.projects = {}

    for warning in warnings:
        logger.warning(warning)
    return merged, warnings


def _merge_layer(base: SiftConfig, layer: SiftConfig, warnings: list[str]) -> None:
    for name, entry in layer.mcp.items():
        if name in base.mcp:
            merge_mcp_entry(base.mcp[name], entry, name, warnings)
        else:
            base.mcp[name] = entry.model_copy(deep=True)

    for name, entry in layer.skill.items():
        if name in base.skill:
            merge_skill_entry(base.skill[name], entry)
        else:
            base.skill[name] = entry.model_copy(deep=True)

    for key, registry in layer.registry.items():
        base.registry.setdefault(key, registry.model_copy(deep=True))

    for client_id, client in layer.clients.items():
        base.clients[client_id] = client.model_copy(deep=True)

    if layer.link_mode is not None:
        base.link_mode = layer.link_mode


def merge_mcp_entry(
    base: McpEntry, overlay: McpEntry, name: str = "", warnings: list[str] | None = None
) -> None:
    """Merge ``overlay`` into ``base`` in place.

    Args:
        base: Entry from the lower layer; modified in place.
        overlay: Entry from the higher layer.
        name: Entry name used in warnings.
        warnings: List collecting merge warnings.
    """
    notes = warnings if warnings is not None else []

    if overlay.reset_targets:
        base.targets = None
    if overlay.reset_ignore_targets:
        base.ignore_targets = None
    if overlay.reset_env_all:
        base.env = {}
    elif overlay.reset_env:
        for key in overlay.reset_env:
            base.env.pop(key, None)

    if overlay.transport is not None:
        if base.transport is not None and base.transport != overlay.transport:
            notes.append(
                f"MCP '{name}': transport changed from {base.transport.value} "
                f"to {overlay.transport.value}"
            )
        base.transport = overlay.transport

    base.runtime = _merge_runtime(base.runtime, overlay.runtime, name, notes)

    if overlay.source:
        base.source = overlay.source
    if overlay.args:
        base.args = list(overlay.args)
    if overlay.url:
        base.url = overlay.url
    if overlay.targets is not None:
        base.targets = list(overlay.targets)
    if overlay.ignore_targets is not None:
        base.ignore_targets = list(overlay.ignore_targets)

    base.headers.update(overlay.headers)
    base.env.update(overlay.env)


def merge_skill_entry(base: SkillEntry, overlay: SkillEntry) -> None:
    """Merge ``overlay`` into ``base`` in place."""
    if overlay.reset_version:
        base.version = None

    if overlay.version is not None:
        pinned = base.version not in (None, DEFAULT_SKILL_VERSION)
        if not (overlay.version == DEFAULT_SKILL_VERSION and pinned):
            base.version = overlay.version

    if overlay.source:
        base.source = overlay.source
    if overlay.targets is not None:
        base.targets = list(overlay.targets)
    if overlay.ignore_targets is not None:
        base.ignore_targets = list(overlay.ignore_targets)


def _merge_runtime(
    base: str | None, overlay: str | None, name: str, warnings: list[str]
) -> str | None:
    if overlay is None:
        return base
    if overlay == DEFAULT_RUNTIME and base not in (None, DEFAULT_RUNTIME):
        # A pinned runtime survives a layer that only states the default.
        return base
    if base is not None and base != overlay and not {base, overlay} <= _COMPATIBLE_RUNTIMES:
        warnings.append(f"MCP '{name}': runtime changed from {base} to {overlay}")
    return overlay


def _apply_override(merged: SiftConfig, override: ProjectOverride) -> None:
    for name, mcp_override in override.mcp_overrides.items():
        entry = merged.mcp.get(name)
        if entry is None:
            continue
        if mcp_override.runtime is not None:
            entry.runtime = mcp_override.runtime
        entry.env.update(mcp_override.env)

    for name, skill_override in override.skill_overrides.items():
        entry = merged.skill.get(name)
        if entry is not None and skill_override.version is not None:
            entry.version = skill_override.version
