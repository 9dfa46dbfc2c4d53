"""Tests for console utilities."""

from unittest.mock import MagicMock, patch

import pytest
from rich.console import Console

from sift.utils.console import (
    LEGACY_WINDOWS_ENCODINGS,
    console,
    create_console,
    create_spinner,
    print_client_result,
    print_error,
    print_success,
    print_warning,
)


class TestCreateConsole:
    """Tests for create_console with various encoding scenarios."""

    def test_shared_console(self) -> None:
        assert isinstance(console, Console)

    def test_stderr_console(self) -> None:
        assert create_console(stderr=True).stderr is True

    @pytest.mark.parametrize("encoding", ["cp1252", "cp437", "ascii"])
    def test_windows_legacy_encoding_enables_legacy_mode(self, encoding: str) -> None:
        """Legacy encodings on Windows enable legacy_windows mode."""
        mock_stdout = MagicMock()
        mock_stdout.encoding = encoding

        with (
            patch("sift.utils.console.sys.platform", "win32"),
            patch("sift.utils.console.sys.stdout", mock_stdout),
        ):
            result = create_console()

        assert result.legacy_windows is True

    def test_utf8_is_not_legacy(self) -> None:
        assert "utf8" not in LEGACY_WINDOWS_ENCODINGS

    def test_missing_encoding_attribute(self) -> None:
        """A stdout without an encoding falls back to UTF-8."""
        with (
            patch("sift.utils.console.sys.platform", "win32"),
            patch("sift.utils.console.sys.stdout", MagicMock(spec=[])),
        ):
            assert isinstance(create_console(), Console)


class TestPrintHelpers:
    """Tests for the message helpers."""

    @pytest.mark.parametrize(
        ("printer", "style", "glyph"),
        [
            (print_success, "[bold green]", "✓"),
            (print_error, "[bold red]", "✗"),
            (print_warning, "[bold yellow]", "⚠"),
        ],
    )
    def test_styled_message(self, printer, style: str, glyph: str) -> None:
        with patch.object(console, "print") as mock_print:
            printer("Installed foo")

        message = mock_print.call_args[0][0]
        assert "Installed foo" in message
        assert style in message
        assert glyph in message

    def test_client_result_ok(self) -> None:
        with patch.object(console, "print") as mock_print:
            print_client_result("claude-code", "project")

        message = mock_print.call_args[0][0]
        assert message.startswith("  [green]")
        assert "claude-code [dim](project)[/dim]" in message

    def test_client_result_skipped(self) -> None:
        with patch.object(console, "print") as mock_print:
            print_client_result("vscode", "skipped", ok=False)

        assert "[yellow]-[/yellow]" in mock_print.call_args[0][0]


class TestCreateSpinner:
    """Tests for create_spinner."""

    def test_wraps_console_status(self) -> None:
        with patch.object(console, "status") as mock_status:
            with create_spinner("Fetching..."):
                pass

        mock_status.assert_called_once_with("Fetching...", spinner="dots")
