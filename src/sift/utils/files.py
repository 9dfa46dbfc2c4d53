"""Filesystem helpers for sift.

Every file sift owns (manifests, lockfiles, client configs) is written through
``atomic_write`` so that a concurrent reader never observes a half-written
file: the content goes to a sibling temp file which is then renamed over the
target.
"""

import os
import shutil
from pathlib import Path

PROJECT_MARKERS = ("sift.toml", ".git")


def atomic_write(path: Path | str, content: str | bytes, encoding: str = "utf-8") -> None:
    """Write content to a file through a sibling temp file and a rename.

    Parent directories are created as needed. The temp file name carries the
    process id so concurrent writers never share one.

    Args:
        path: Destination file.
        content: Text or bytes to write.
        encoding: Encoding used when content is text.
    """
    file_path = Path(path)
    file_path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = file_path.with_name(f".{file_path.name}.{os.getpid()}.tmp")
    data = content.encode(encoding) if isinstance(content, str) else content

    try:
        tmp_path.write_bytes(data)
        os.replace(tmp_path, file_path)
    except OSError:
        tmp_path.unlink(missing_ok=True)
        raise


def remove_path(path: Path) -> bool:
    """Remove a file, symlink or directory tree if it exists.

    Returns:
        True if something was removed, False if the path did not exist.
    """
    if path.is_symlink() or path.is_file():
        path.unlink()
        return True
    if path.is_dir():
        shutil.rmtree(path)
        return True
    return False


def get_project_root(start: Path | None = None) -> Path:
    """Find the project root directory.

    Walks up from ``start`` (default: the current working directory) looking
    for a ``sift.toml`` or a ``.git`` entry.

    Returns:
        Path to the project root, or the starting directory if no marker is
        found.
    """
    origin = (start or Path.cwd()).resolve()
    current = origin

    while current != current.parent:
        for marker in PROJECT_MARKERS:
            if (current / marker).exists():
                return current
        current = current.parent

    return origin


def is_pid_alive(pid: int) -> bool:
    """Check whether a process with the given id is running.

    Args:
        pid: Process id to check.

    Returns:
        True if the process exists (even if owned by another user).
    """
    if pid <= 0:
        return False
    if pid == os.getpid():
        return True
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        return True
    except OSError:
        return False
    return True
