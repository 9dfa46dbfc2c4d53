"""Sift uninstall command - remove an MCP server or skill."""

import logging

import typer

from sift.commands.options import ALL_SCOPES, parse_scope
from sift.errors import SiftError
from sift.models.scope import ResourceKind
from sift.services import AppPaths, InstallOrchestrator, UninstallOptions
from sift.utils import console, print_client_result, print_error, print_success, print_warning

logger = logging.getLogger(__name__)


def uninstall(
    kind: ResourceKind = typer.Argument(..., help="What to remove: mcp or skill."),
    name: str = typer.Argument(..., help="Entry name."),
    scope: str = typer.Option(
        "auto", "--scope", help="auto, global, shared/project, local or all."
    ),
) -> None:
    """Uninstall an MCP server or skill.

    Removes the manifest entry, the client config entries or skill
    directories sift created, and the lockfile record. Entries sift does not
    own are left in place with a warning.
    """
    try:
        options = UninstallOptions(
            kind=kind,
            name=name,
            scope=parse_scope(scope, allow_all=True),
            all_scopes=scope.strip().lower() == ALL_SCOPES,
        )
        report = InstallOrchestrator(paths=AppPaths.from_environment()).uninstall(options)
    except SiftError as e:
        print_error(str(e))
        raise typer.Exit(1) from e

    for result in report.clients:
        print_client_result(result.client_id, f"removed from {result.path}")
    if report.clients:
        console.print()

    for warning in report.warnings:
        print_warning(warning)

    scopes = ", ".join(s.value for s in report.scopes)
    print_success(f"Uninstalled {kind.label} '{name}' ({scopes})")
