"""Sift CLI entry point.

This module provides the main entry point for the Sift CLI application,
a package manager for MCP servers and skills across LLM coding clients.
"""

import logging

import typer

from sift import __version__
from sift.commands import config, install, list_entries, status, uninstall

logger = logging.getLogger(__name__)

app = typer.Typer(
    name="sift",
    help="Sift - Install MCP servers and skills into LLM coding clients",
    no_args_is_help=True,
)


def version_callback(value: bool) -> None:
    """Handle the version flag callback.

    Args:
        value: Whether the version flag was provided.

    Raises:
        typer.Exit: Always raised after printing version when value is True.
    """
    if value:
        typer.echo(f"sift {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(
        None,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
) -> None:
    """Sift - Install MCP servers and skills into LLM coding clients."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


app.command(name="install", help="Install an MCP server or skill")(install)
app.command(name="uninstall", help="Uninstall an MCP server or skill")(uninstall)
app.command(name="status", help="Show the state of installed entries")(status)
app.command(name="list", help="List declared MCP servers and skills")(list_entries)
app.command(name="config", help="Show the manifest for a scope")(config)


if __name__ == "__main__":
    app()
