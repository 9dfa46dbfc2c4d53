"""Sift install command - add an MCP server or skill.

This module implements the 'sift install' command which records the entry
in the manifest, configures every targeted client and writes the lockfile.
"""

import logging

import typer

from sift.commands.options import parse_pairs, parse_scope
from sift.errors import ConfigValidationError, SiftError
from sift.models.config import McpEntry, SkillEntry, Transport
from sift.models.scope import ResourceKind
from sift.models.source import REGISTRY_PREFIX
from sift.services import AppPaths, InstallOptions, InstallOrchestrator, InstallReport, Outcome
from sift.services.source_resolver import derive_name, normalize_source
from sift.utils import (
    console,
    create_spinner,
    print_client_result,
    print_error,
    print_success,
    print_warning,
)

logger = logging.getLogger(__name__)


def install(
    kind: ResourceKind = typer.Argument(..., help="What to install: mcp or skill."),
    name: str = typer.Argument(..., help="Entry name (or a source for skills)."),
    command: list[str] | None = typer.Argument(
        None, help="Stdio command and arguments, given after --.", show_default=False
    ),
    source: str | None = typer.Option(
        None,
        "--source",
        "-s",
        help="Source: registry:NAME, local:PATH, github:ORG/REPO or git:URL.",
    ),
    scope: str = typer.Option(
        "auto", "--scope", help="auto, global, shared/project or local."
    ),
    force: bool = typer.Option(
        False, "--force", "-f", help="Overwrite differing entries and modified content."
    ),
    version: str | None = typer.Option(None, "--version", help="Version constraint."),
    runtime: str | None = typer.Option(
        None, "--runtime", help="Runtime: docker, node, python, bun or shell."
    ),
    transport: Transport | None = typer.Option(
        None, "--transport", case_sensitive=False, help="stdio or http."
    ),
    url: str | None = typer.Option(None, "--url", help="Server URL for http transport."),
    env: list[str] | None = typer.Option(
        None, "--env", "-e", help="Environment variable KEY=VALUE (repeatable)."
    ),
    header: list[str] | None = typer.Option(
        None, "--header", "-H", help="HTTP header KEY=VALUE (repeatable)."
    ),
    target: list[str] | None = typer.Option(
        None, "--target", "-t", help="Only configure this client (repeatable)."
    ),
    ignore_target: list[str] | None = typer.Option(
        None, "--ignore-target", help="Skip this client (repeatable)."
    ),
) -> None:
    """Install an MCP server or skill.

    The entry is written to the manifest at the requested scope, then every
    applicable client is configured and the result is locked. With the
    default auto scope, sift picks local inside a git repository, project
    when a sift.toml exists, and global otherwise.

    Pass a stdio command after -- to run an arbitrary program as an MCP
    server, for example: sift install mcp fs -- npx -y my-server
    """
    try:
        paths = AppPaths.from_environment()
        options = _build_options(
            kind,
            name,
            paths,
            command=command or [],
            source=source,
            scope=scope,
            force=force,
            version=version,
            runtime=runtime,
            transport=transport,
            url=url,
            env=env,
            header=header,
            target=target,
            ignore_target=ignore_target,
        )
        orchestrator = InstallOrchestrator(paths=paths)
        with create_spinner(f"Installing {options.kind.label} '{options.name}'..."):
            report = orchestrator.install(options)
    except SiftError as e:
        print_error(str(e))
        raise typer.Exit(1) from e

    _print_report(report)


def _build_options(
    kind: ResourceKind,
    name: str,
    paths: AppPaths,
    command: list[str],
    source: str | None,
    scope: str,
    force: bool,
    version: str | None,
    runtime: str | None,
    transport: Transport | None,
    url: str | None,
    env: list[str] | None,
    header: list[str] | None,
    target: list[str] | None,
    ignore_target: list[str] | None,
) -> InstallOptions:
    """Translate command-line flags into an install request.

    Raises:
        ConfigValidationError: If the flags contradict each other.
    """
    targets = list(target) if target else None
    ignore_targets = list(ignore_target) if ignore_target else None

    if kind == ResourceKind.SKILL:
        if command or url or transport or runtime or env or header:
            raise ConfigValidationError(
                "Skills do not accept a command, --url, --transport, --runtime, --env "
                "or --header"
            )
        if source is None:
            source = normalize_source(name, paths.project_root)
            if not source.startswith(REGISTRY_PREFIX) or "/" in name:
                name = derive_name(source)
        else:
            source = normalize_source(source, paths.project_root)

        entry: McpEntry | SkillEntry = SkillEntry(
            source=source, version=version, targets=targets, ignore_targets=ignore_targets
        )
        return InstallOptions(
            kind=kind, name=name, entry=entry, scope=parse_scope(scope), force=force
        )

    if command:
        if url or transport == Transport.HTTP:
            raise ConfigValidationError(
                "A stdio command after -- cannot be combined with --url or --transport http"
            )
        if source is not None:
            raise ConfigValidationError("A stdio command after -- cannot be combined with --source")
        source = f"local:{command[0]}"
        runtime = "shell"
        args = list(command[1:])
    else:
        args = []
        if url and transport is None:
            transport = Transport.HTTP
        if source is not None:
            source = normalize_source(source, paths.project_root)
        elif not url:
            source = f"{REGISTRY_PREFIX}{name}"

    entry = McpEntry(
        transport=transport,
        source=source or "",
        runtime=runtime,
        args=args,
        url=url,
        headers=parse_pairs(header, "--header"),
        env=parse_pairs(env, "--env"),
        targets=targets,
        ignore_targets=ignore_targets,
    )
    return InstallOptions(
        kind=kind,
        name=name,
        entry=entry,
        scope=parse_scope(scope),
        force=force,
        version=version,
    )


def _print_report(report: InstallReport) -> None:
    label = report.kind.label
    console.print(f"\n[bold]{label} '{report.name}'[/bold] [dim]({report.scope.value} scope)[/dim]")

    for result in report.clients:
        if result.applied and result.scope is not None:
            detail = f"{result.scope.value}, {'updated' if result.changed else 'unchanged'}"
            print_client_result(result.client_id, detail)
        else:
            print_client_result(result.client_id, "skipped", ok=False)

    console.print()
    for warning in report.warnings:
        print_warning(warning)

    if not report.applied:
        print_warning(f"{label} '{report.name}' was recorded but no client was configured")
    elif report.outcome == Outcome.NOOP:
        print_success(f"{label} '{report.name}' is already up to date")
    else:
        print_success(f"Installed {label} '{report.name}'")
