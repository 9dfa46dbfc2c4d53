"""Keeping locally delivered paths out of version control."""

import logging
from pathlib import Path

from sift.errors import ConfigValidationError, SiftIOError

logger = logging.getLogger(__name__)


def ensure_git_exclude(project_root: Path, entry: str) -> bool:
    """Append a path to ``.git/info/exclude`` unless it is already listed.

    Args:
        project_root: Root of the git working tree.
        entry: Path relative to the project root, ``/``-separated.

    Returns:
        True if the line was appended, False if it was already present.

    Raises:
        ConfigValidationError: If the entry spans several lines.
        SiftIOError: If the project is not a git repository or the file
            cannot be written.
    """
    if "\n" in entry or "\r" in entry:
        raise ConfigValidationError(f"Git exclude entry must be a single line: {entry!r}")

    git_dir = project_root / ".git"
    if not git_dir.is_dir():
        raise SiftIOError(f"Not a git repository: {project_root}")

    exclude_path = git_dir / "info" / "exclude"
    try:
        exclude_path.parent.mkdir(parents=True, exist_ok=True)
        content = exclude_path.read_text(encoding="utf-8") if exclude_path.exists() else ""

        if any(line.strip() == entry for line in content.splitlines()):
            return False

        prefix = "" if not content or content.endswith("\n") else "\n"
        with exclude_path.open("a", encoding="utf-8") as f:
            f.write(f"{prefix}{entry}\n")
    except OSError as e:
        raise SiftIOError(f"Failed to update {exclude_path}: {e}") from e

    logger.info(f"Added '{entry}' to {exclude_path}")
    return True
