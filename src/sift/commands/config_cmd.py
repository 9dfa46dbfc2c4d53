"""Sift config command - show one manifest layer."""

import logging

import typer

from sift.commands.options import parse_scope
from sift.errors import ConfigValidationError, SiftError
from sift.models.scope import ResourceKind, Scope
from sift.services import AppPaths, ManifestStore
from sift.utils import console, print_error

logger = logging.getLogger(__name__)


def config(
    scope: str = typer.Argument(..., help="global, shared/project or local."),
) -> None:
    """Show the manifest file backing a scope and the entries it declares."""
    try:
        parsed = parse_scope(scope)
        if parsed is None:
            raise ConfigValidationError("config requires an explicit scope")
        paths = AppPaths.from_environment()
        store = ManifestStore(paths=paths)
        entries = {kind: sorted(store.entries(parsed, kind)) for kind in ResourceKind}
    except SiftError as e:
        print_error(str(e))
        raise typer.Exit(1) from e

    path = paths.manifest_path(parsed)
    console.print(f"[bold]{parsed.value} manifest:[/bold] {path}")
    if parsed == Scope.LOCAL:
        console.print(f"[dim]section projects.\"{paths.project_key}\"[/dim]")
    if not path.exists():
        console.print("[dim](file does not exist yet)[/dim]")

    for kind, names in entries.items():
        console.print(f"\n[bold]{kind.label}:[/bold]")
        if not names:
            console.print("  [dim](none)[/dim]")
        for name in names:
            console.print(f"  {name}")
