"""Deterministic content hash of a directory tree.

Entries are visited sorted by name at every level. For each entry the hash
is fed its path relative to the root (``/``-separated), then a type marker
(``0xFF`` for directories, ``0x00`` for files) and, for files, the file
bytes. The result does not depend on filesystem ordering or timestamps.
"""

from pathlib import Path

from blake3 import blake3

from sift.errors import SiftIOError

DIR_MARKER = b"\xff"
FILE_MARKER = b"\x00"


def hash_tree(root: Path) -> str:
    """Hash a directory tree.

    Args:
        root: Directory to hash.

    Returns:
        64-character hex blake3 digest.

    Raises:
        SiftIOError: If the tree contains a symlink or special file, or the
            root is not a directory.
    """
    if not root.is_dir() or root.is_symlink():
        raise SiftIOError(f"Cannot hash {root}: not a directory")

    hasher = blake3()
    _hash_dir(hasher, root, root)
    return hasher.hexdigest()


def _hash_dir(hasher: blake3, root: Path, current: Path) -> None:
    for entry in sorted(current.iterdir(), key=lambda p: p.name):
        relative = entry.relative_to(root).as_posix().encode("utf-8", "surrogateescape")

        if entry.is_symlink():
            raise SiftIOError(f"Cannot hash symlink inside tree: {entry}")
        if entry.is_dir():
            hasher.update(relative)
            hasher.update(DIR_MARKER)
            _hash_dir(hasher, root, entry)
        elif entry.is_file():
            hasher.update(relative)
            hasher.update(FILE_MARKER)
            hasher.update(entry.read_bytes())
        else:
            raise SiftIOError(f"Cannot hash special file inside tree: {entry}")
