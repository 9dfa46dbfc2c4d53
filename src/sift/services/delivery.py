"""Delivery of cached skill trees into client skill directories.

A tree is first built at a sibling temp path (``.<name>.tmp.<pid>``) and
then renamed over the destination, so a client never sees a half-written
skill. ``LinkMode.AUTO`` hardlinks every file and falls back to copying when
the cache and the destination are on different devices.
"""

import errno
import logging
import os
import re
import shutil
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict

from sift.errors import (
    CacheDirtyError,
    ModifiedDestinationError,
    SiftIOError,
    UnmanagedDestinationError,
)
from sift.models.config import LinkMode
from sift.services.tree_hash import hash_tree
from sift.utils.files import is_pid_alive, remove_path

logger = logging.getLogger(__name__)

MAX_TEMP_ATTEMPTS = 1000
# ERROR_NOT_SAME_DEVICE
_WINDOWS_NOT_SAME_DEVICE = 17


class DeliveryStatus(Enum):
    """Outcome of delivering a skill.

    Attributes:
        CREATED: The destination did not exist before.
        UPDATED: The destination was replaced.
        UNCHANGED: The destination already matched the source.
    """

    CREATED = "created"
    UPDATED = "updated"
    UNCHANGED = "unchanged"


class DeliveryReport(BaseModel):
    """Result of one delivery.

    Attributes:
        dst_path: Where the skill now lives.
        mode: Link mode actually used.
        status: What happened to the destination.
        tree_hash: Tree hash of the delivered content, for managed deliveries.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    dst_path: Path
    mode: LinkMode
    status: DeliveryStatus
    tree_hash: str | None = None


def is_cross_device(error: OSError) -> bool:
    """Return True if an OS error means source and target are on different devices."""
    if error.errno == errno.EXDEV:
        return True
    return getattr(error, "winerror", None) == _WINDOWS_NOT_SAME_DEVICE


class DeliveryEngine(BaseModel):
    """Materializes source trees at destinations."""

    def deliver(
        self,
        src: Path,
        dst: Path,
        mode: LinkMode = LinkMode.AUTO,
        allow_symlink: bool = False,
        force: bool = False,
        managed: bool = False,
    ) -> DeliveryReport:
        """Deliver ``src`` to ``dst``.

        Args:
            src: Source directory.
            dst: Destination directory.
            mode: Preferred link mode.
            allow_symlink: Whether the client accepts symlinked skills;
                symlink mode is downgraded to auto otherwise.
            force: Replace an existing destination.
            managed: The destination is known to be ours and may be replaced.

        Returns:
            DeliveryReport describing the delivery.

        Raises:
            UnmanagedDestinationError: If the destination exists and neither
                force nor managed is set.
            SiftIOError: If the filesystem operation fails.
        """
        if not src.is_dir():
            raise SiftIOError(f"Skill source {src} is not a directory")
        if mode == LinkMode.SYMLINK and not allow_symlink:
            logger.debug(f"Symlinks not supported for {dst}, using auto mode")
            mode = LinkMode.AUTO

        existed = dst.exists() or dst.is_symlink()

        if mode == LinkMode.SYMLINK:
            if dst.is_symlink() and dst.resolve() == src.resolve():
                return DeliveryReport(dst_path=dst, mode=mode, status=DeliveryStatus.UNCHANGED)
            tmp = self._allocate_temp(dst)
            try:
                os.symlink(src.resolve(), tmp, target_is_directory=True)
            except OSError as e:
                raise SiftIOError(f"Failed to symlink {src} to {dst}: {e}") from e
            used = mode
        else:
            tmp, used = self._build_tree(src, dst, mode)

        self._replace(tmp, dst, force or managed)
        status = DeliveryStatus.UPDATED if existed else DeliveryStatus.CREATED
        logger.info(f"Delivered {src} to {dst} ({used.value})")
        return DeliveryReport(dst_path=dst, mode=used, status=status)

    def deliver_managed(
        self,
        src: Path,
        dst: Path,
        mode: LinkMode = LinkMode.AUTO,
        allow_symlink: bool = False,
        force: bool = False,
        locked_hash: str | None = None,
        locked_dst: Path | None = None,
        verify_source: bool = True,
    ) -> DeliveryReport:
        """Deliver with lockfile-backed integrity checks.

        The source tree is hashed and compared with the locked hash; a
        mismatch means the cache was modified and aborts unless forced. An
        existing destination recorded in the lockfile is left untouched when
        it already matches, and needs force otherwise. An existing
        destination the lockfile does not know about needs force to adopt.

        Args:
            src: Cache directory to deliver.
            dst: Destination directory.
            mode: Preferred link mode.
            allow_symlink: Whether the client accepts symlinked skills.
            force: Skip the integrity checks and replace the destination.
            locked_hash: Tree hash recorded by the previous install.
            locked_dst: Destination recorded by the previous install.
            verify_source: Compare the source against ``locked_hash``.

        Returns:
            DeliveryReport including the tree hash of the delivered content.

        Raises:
            CacheDirtyError: If the source no longer matches the lockfile.
            ModifiedDestinationError: If our destination was edited in place.
            UnmanagedDestinationError: If the destination is not ours.
        """
        source_hash = hash_tree(src)
        if verify_source and locked_hash and source_hash != locked_hash and not force:
            raise CacheDirtyError(src)

        managed = locked_dst is not None and Path(locked_dst) == dst
        if dst.exists() or dst.is_symlink():
            if not managed and not force:
                raise UnmanagedDestinationError(dst)
            if managed and self._matches(src, dst, source_hash):
                used = LinkMode.SYMLINK if dst.is_symlink() else mode
                return DeliveryReport(
                    dst_path=dst,
                    mode=used,
                    status=DeliveryStatus.UNCHANGED,
                    tree_hash=source_hash,
                )
            if managed and not force:
                raise ModifiedDestinationError(dst)

        report = self.deliver(src, dst, mode, allow_symlink, force=True)
        report.tree_hash = source_hash
        return report

    def _matches(self, src: Path, dst: Path, source_hash: str) -> bool:
        if dst.is_symlink():
            return dst.resolve() == src.resolve()
        if not dst.is_dir():
            return False
        try:
            return hash_tree(dst) == source_hash
        except SiftIOError:
            return False

    def _build_tree(self, src: Path, dst: Path, mode: LinkMode) -> tuple[Path, LinkMode]:
        tmp = self._allocate_temp(dst)
        try:
            if mode in (LinkMode.AUTO, LinkMode.HARDLINK):
                try:
                    _hardlink_tree(src, tmp)
                    return tmp, LinkMode.HARDLINK
                except OSError as e:
                    if mode == LinkMode.HARDLINK or not is_cross_device(e):
                        raise
                    logger.info(f"Cross-device hardlink for {dst}, falling back to copy")
                    remove_path(tmp)
            shutil.copytree(src, tmp)
            return tmp, LinkMode.COPY
        except OSError as e:
            remove_path(tmp)
            raise SiftIOError(f"Failed to deliver {src} to {dst}: {e}") from e

    def _allocate_temp(self, dst: Path) -> Path:
        dst.parent.mkdir(parents=True, exist_ok=True)
        _sweep_stale_temps(dst)

        base = f".{dst.name}.tmp.{os.getpid()}"
        for attempt in range(MAX_TEMP_ATTEMPTS):
            name = base if attempt == 0 else f"{base}.{attempt}"
            candidate = dst.parent / name
            if not (candidate.exists() or candidate.is_symlink()):
                return candidate

        raise SiftIOError(f"Could not allocate a temporary path next to {dst}")

    def _replace(self, tmp: Path, dst: Path, allow_replace: bool) -> None:
        try:
            if dst.exists() or dst.is_symlink():
                if not allow_replace:
                    raise UnmanagedDestinationError(dst)
                remove_path(dst)
            os.rename(tmp, dst)
        except OSError as e:
            remove_path(tmp)
            raise SiftIOError(f"Failed to move {tmp} to {dst}: {e}") from e
        except UnmanagedDestinationError:
            remove_path(tmp)
            raise


def _hardlink_tree(src: Path, dst: Path) -> None:
    dst.mkdir()
    for entry in sorted(src.iterdir(), key=lambda p: p.name):
        target = dst / entry.name
        if entry.is_dir() and not entry.is_symlink():
            _hardlink_tree(entry, target)
        else:
            os.link(entry, target)


def _sweep_stale_temps(dst: Path) -> None:
    """Remove temp siblings left behind by processes that no longer exist."""
    pattern = re.compile(rf"^\.{re.escape(dst.name)}\.tmp\.(\d+)(\.\d+)?$")
    if not dst.parent.is_dir():
        return

    for sibling in dst.parent.iterdir():
        match = pattern.match(sibling.name)
        if match and not is_pid_alive(int(match.group(1))):
            try:
                remove_path(sibling)
                logger.debug(f"Removed stale delivery temp {sibling}")
            except OSError as e:
                logger.warning(f"Failed to remove stale temp {sibling}: {e}")
