"""Rich console helpers shared by every sift command.

All user-facing output goes through the single ``console`` instance so that
tests can capture it and styling stays consistent across commands.
"""

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager

from rich.console import Console

logger = logging.getLogger(__name__)

# Legacy Windows encodings that cannot render the status glyphs
LEGACY_WINDOWS_ENCODINGS = frozenset({"cp1252", "cp437", "ascii"})


def create_console(stderr: bool = False) -> Console:
    """Create a Rich Console suited to the current terminal.

    Args:
        stderr: Write to standard error instead of standard output.

    Returns:
        Console: A configured Rich Console instance.
    """
    if sys.platform == "win32":
        encoding = getattr(sys.stdout, "encoding", None) or "utf-8"
        encoding = encoding.lower().replace("-", "")

        if encoding in LEGACY_WINDOWS_ENCODINGS:
            logger.debug(f"Legacy Windows encoding '{encoding}', using legacy_windows")
            return Console(legacy_windows=True, stderr=stderr)

    return Console(stderr=stderr)


console = create_console()


def print_success(message: str) -> None:
    """Print a success message with a green checkmark.

    Args:
        message: The success message to display.
    """
    console.print(f"[bold green]✓[/bold green] {message}")


def print_error(message: str) -> None:
    """Print an error message with a red X.

    Args:
        message: The error message to display.
    """
    console.print(f"[bold red]✗[/bold red] {message}")


def print_warning(message: str) -> None:
    """Print a warning message with a yellow warning sign.

    Args:
        message: The warning message to display.
    """
    console.print(f"[bold yellow]⚠[/bold yellow] {message}")


def print_client_result(client_id: str, detail: str, ok: bool = True) -> None:
    """Print an indented per-client result line.

    Args:
        client_id: Identifier of the client the line refers to.
        detail: Short description of what happened.
        ok: Whether the line reports a success.
    """
    mark = "[green]✓[/green]" if ok else "[yellow]-[/yellow]"
    console.print(f"  {mark} {client_id} [dim]({detail})[/dim]")


@contextmanager
def create_spinner(message: str) -> Iterator[None]:
    """Create a spinner context manager for long operations.

    Args:
        message: The status message to display while spinning.

    Yields:
        None: The spinner runs while the context is active.
    """
    with console.status(message, spinner="dots"):
        yield
