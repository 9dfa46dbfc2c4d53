"""Sift status command - compare the manifest, lockfile and disk.

This module implements the 'sift status' command. Every declared or locked
entry is classified as ok, not-locked, stale or orphaned; with --verify each
client deployment is also checked against the hashes in the lockfile.
"""

import logging

import typer
from rich.table import Table

from sift.commands.options import parse_scope
from sift.errors import SiftError
from sift.services import AppPaths, EntryState, StatusReport, StatusService
from sift.utils import console, print_error, print_success, print_warning

logger = logging.getLogger(__name__)

_STATE_STYLES = {
    EntryState.OK: "green",
    EntryState.NOT_LOCKED: "yellow",
    EntryState.STALE: "yellow",
    EntryState.ORPHANED: "red",
}


def status(
    scope: str = typer.Option("auto", "--scope", help="Only show entries at this scope."),
    verify: bool = typer.Option(
        False, "--verify", help="Check every client deployment against the lockfile."
    ),
    json_output: bool = typer.Option(False, "--json", help="Print the report as JSON."),
    quiet: bool = typer.Option(
        False, "--quiet", "-q", help="Print nothing; exit 1 when issues are found."
    ),
) -> None:
    """Show the state of installed MCP servers and skills."""
    try:
        service = StatusService(paths=AppPaths.from_environment())
        report = service.collect(scope=parse_scope(scope), verify=verify)
    except SiftError as e:
        if not quiet:
            print_error(str(e))
        raise typer.Exit(1) from e

    if quiet:
        if report.issues:
            raise typer.Exit(1)
        return

    if json_output:
        typer.echo(report.model_dump_json(indent=2))
        return

    _print_report(report, verify)


def _print_report(report: StatusReport, verify: bool) -> None:
    console.print(f"\n[bold]Project:[/bold] {report.project_root}")
    console.print(f"[bold]Link mode:[/bold] {report.link_mode.value}\n")

    if not report.entries:
        print_warning("No MCP servers or skills declared")
        return

    table = Table(show_header=True, box=None)
    table.add_column("Kind", style="dim", header_style="bold bright_white")
    table.add_column("Name", style="cyan", header_style="bold bright_white")
    table.add_column("State", header_style="bold bright_white")
    table.add_column("Scope", style="white", header_style="bold bright_white")
    table.add_column("Version", style="dim", header_style="bold bright_white")

    for entry in report.entries:
        style = _STATE_STYLES[entry.state]
        table.add_row(
            entry.kind.value,
            entry.name,
            f"[{style}]{entry.state.value}[/{style}]",
            entry.scope.value if entry.scope else "-",
            entry.resolved_version or "-",
        )
    console.print(table)

    if verify:
        console.print()
        for entry in report.entries:
            for deployment in entry.deployments:
                console.print(
                    f"  {entry.name} [dim]{deployment.client_id}[/dim] "
                    f"{deployment.integrity.value} [dim]({deployment.path})[/dim]"
                )

    console.print()
    if report.issues:
        print_warning(f"{report.issues} issue(s) found")
    else:
        print_success("Everything is up to date")
