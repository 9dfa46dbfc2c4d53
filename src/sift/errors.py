"""Exception hierarchy for sift.

Every failure the install and uninstall paths can surface derives from
``SiftError`` so that commands can report it uniformly and exit with 1.
"""

from pathlib import Path


class SiftError(Exception):
    """Base class for all errors raised by sift."""


class ConfigParseError(SiftError):
    """Raised when a manifest or lockfile cannot be parsed.

    Attributes:
        path: The file that failed to parse.
        line: 1-based line of the error, if known.
    """

    def __init__(self, path: Path, message: str, line: int | None = None) -> None:
        """Initialize ConfigParseError.

        Args:
            path: The file that failed to parse.
            message: Formatted message including any source context.
            line: 1-based line of the error, if known.
        """
        self.path = path
        self.line = line
        super().__init__(f"Failed to parse {path}: {message}")


class ConfigValidationError(SiftError):
    """Raised when a manifest entry or CLI request violates an invariant."""


class ScopeUnsupportedError(SiftError):
    """Raised when a client cannot be configured at the requested scope.

    Install converts this into a warning; it never aborts an operation.
    """


class UnsupportedPlanError(ScopeUnsupportedError):
    """Raised when a client adapter cannot produce a plan for a scope."""


class NotInstalledError(SiftError):
    """Raised when uninstalling an entry that is not installed anywhere."""


class CacheDirtyError(SiftError):
    """Raised when a cached tree no longer matches its locked tree hash.

    Attributes:
        cache_path: The cache directory that was modified.
    """

    def __init__(self, cache_path: Path) -> None:
        """Initialize CacheDirtyError.

        Args:
            cache_path: The cache directory that was modified.
        """
        self.cache_path = cache_path
        super().__init__(
            f"Cache tree at {cache_path} does not match the lockfile. "
            "Use --force to reinstall."
        )


class UnmanagedDestinationError(SiftError):
    """Raised when a delivery destination exists but sift did not create it.

    Attributes:
        dst_path: The existing destination.
    """

    def __init__(self, dst_path: Path) -> None:
        """Initialize UnmanagedDestinationError.

        Args:
            dst_path: The existing destination.
        """
        self.dst_path = dst_path
        super().__init__(
            f"Destination {dst_path} exists and is not managed by sift. "
            "Use --force to replace it."
        )


class OwnershipError(SiftError):
    """Raised when a managed config entry was modified outside sift."""


class ExternalToolError(SiftError):
    """Raised when an external command fails.

    Attributes:
        command: The command line that failed.
        stderr: Captured standard error of the command.
    """

    def __init__(self, message: str, command: list[str] | None = None, stderr: str = "") -> None:
        """Initialize ExternalToolError.

        Args:
            message: Human readable description of the failure.
            command: The command line that failed.
            stderr: Captured standard error of the command.
        """
        self.command = command or []
        self.stderr = stderr
        super().__init__(message)


class SiftIOError(SiftError):
    """Raised when an underlying filesystem operation fails."""


class RegistryResolutionError(SiftError):
    """Raised when a registry source cannot be resolved to a plugin."""


class ModifiedDestinationError(SiftError):
    """Raised when a skill sift delivered was changed in place.

    Attributes:
        dst_path: The modified destination.
    """

    def __init__(self, dst_path: Path) -> None:
        """Initialize ModifiedDestinationError.

        Args:
            dst_path: The modified destination.
        """
        self.dst_path = dst_path
        super().__init__(
            f"Installed skill at {dst_path} was modified locally. Use --force to overwrite it."
        )
