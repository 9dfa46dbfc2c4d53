"""Sift list command - show declared MCP servers and skills."""

import logging

import typer
from rich.table import Table

from sift.errors import SiftError
from sift.models.scope import ResourceKind, Scope
from sift.services import AppPaths, ManifestStore
from sift.utils import console, print_error, print_warning

logger = logging.getLogger(__name__)

# Highest precedence first
_SCOPE_ORDER = (Scope.LOCAL, Scope.PROJECT, Scope.GLOBAL)


def list_entries(
    kind: ResourceKind | None = typer.Argument(
        None, help="Only list this kind: mcp or skill.", show_default=False
    ),
) -> None:
    """List MCP servers and skills from the merged manifests."""
    try:
        store = ManifestStore(paths=AppPaths.from_environment())
        merged, warnings = store.load_merged()
        rows: list[tuple[str, ...]] = []

        if kind in (None, ResourceKind.MCP):
            for name, entry in sorted(merged.mcp.items()):
                detail = entry.url if entry.url else (entry.runtime or "")
                scope = _declared_scope(store, ResourceKind.MCP, name)
                rows.append(("mcp", name, entry.source or "-", detail, scope))

        if kind in (None, ResourceKind.SKILL):
            for name, entry in sorted(merged.skill.items()):
                scope = _declared_scope(store, ResourceKind.SKILL, name)
                rows.append(("skill", name, entry.source, entry.effective_version, scope))
    except SiftError as e:
        print_error(str(e))
        raise typer.Exit(1) from e

    for warning in warnings:
        print_warning(warning)

    if not rows:
        print_warning("No entries declared")
        return

    table = Table(show_header=True, box=None)
    table.add_column("Kind", style="dim", header_style="bold bright_white")
    table.add_column("Name", style="cyan", header_style="bold bright_white")
    table.add_column("Source", style="white", header_style="bold bright_white")
    table.add_column("Detail", style="dim", header_style="bold bright_white")
    table.add_column("Scope", style="green", header_style="bold bright_white")
    for row in rows:
        table.add_row(*row)
    console.print(table)


def _declared_scope(store: ManifestStore, kind: ResourceKind, name: str) -> str:
    for scope in _SCOPE_ORDER:
        if store.get_entry(scope, kind, name) is not None:
            return scope.value
    return "-"
