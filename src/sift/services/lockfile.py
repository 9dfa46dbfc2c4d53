"""Lockfile access for the current project.

Every operation is a full load, modify, save cycle on the single lockfile of
the project. Saves are skipped when nothing changed so that repeating an
install leaves the file byte-identical.
"""

import json
import logging
from pathlib import Path
from typing import Any

from blake3 import blake3
from pydantic import BaseModel, ConfigDict

from sift.models.lockfile import (
    LockedMcp,
    LockedSkill,
    Lockfile,
    load_lockfile,
    save_lockfile,
)

logger = logging.getLogger(__name__)


def hash_json(value: Any) -> str:
    """Hash a JSON-compatible value independently of key order.

    Args:
        value: Any JSON-serializable value.

    Returns:
        Hex blake3 digest of the canonical JSON encoding.
    """
    canonical = json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    return blake3(canonical.encode("utf-8")).hexdigest()


def ownership_key(config_path: Path, key_path: list[str] | tuple[str, ...] | None = None) -> str:
    """Return the id of the ownership table for one config file location.

    Args:
        config_path: Absolute path of the managed config file.
        key_path: Nested key path inside the file.

    Returns:
        Hex blake3 digest of ``<config path>#<dotted key path>``.
    """
    field = ".".join(key_path or ())
    return blake3(f"{config_path}#{field}".encode("utf-8", "surrogateescape")).hexdigest()


class LockfileService(BaseModel):
    """Typed access to the entries and ownership tables of a lockfile.

    Attributes:
        path: Location of the lockfile.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    path: Path

    def load(self) -> Lockfile:
        return load_lockfile(self.path)

    def save(self, lockfile: Lockfile) -> None:
        save_lockfile(lockfile, self.path)

    def _update(self, lockfile: Lockfile, before: Lockfile) -> bool:
        if _content(lockfile) == _content(before):
            return False
        self.save(lockfile)
        return True

    def get_mcp(self, name: str) -> LockedMcp | None:
        return self.load().mcp_servers.get(name)

    def add_mcp(self, name: str, locked: LockedMcp) -> bool:
        """Record an MCP server; returns True if the file changed."""
        before = self.load()
        lockfile = before.model_copy(deep=True)
        lockfile.mcp_servers[name] = locked
        return self._update(lockfile, before)

    def remove_mcp(self, name: str) -> bool:
        """Forget an MCP server; returns True if it was recorded."""
        lockfile = self.load()
        if lockfile.mcp_servers.pop(name, None) is None:
            return False
        self.save(lockfile)
        return True

    def get_skill(self, name: str) -> LockedSkill | None:
        return self.load().skills.get(name)

    def add_skill(self, name: str, locked: LockedSkill) -> bool:
        """Record a skill; returns True if the file changed."""
        before = self.load()
        lockfile = before.model_copy(deep=True)
        lockfile.skills[name] = locked
        return self._update(lockfile, before)

    def remove_skill(self, name: str) -> bool:
        """Forget a skill; returns True if it was recorded."""
        lockfile = self.load()
        if lockfile.skills.pop(name, None) is None:
            return False
        self.save(lockfile)
        return True

    def load_ownership(
        self, config_path: Path, key_path: list[str] | tuple[str, ...] | None = None
    ) -> dict[str, str]:
        """Return the entry-key to content-hash table for a config location."""
        table_id = ownership_key(config_path, key_path)
        return dict(self.load().managed_configs.get(table_id, {}))

    def save_ownership(
        self,
        config_path: Path,
        key_path: list[str] | tuple[str, ...] | None,
        ownership: dict[str, str],
    ) -> bool:
        """Replace the ownership table for a config location.

        An empty table is removed from the lockfile.

        Returns:
            True if the file changed.
        """
        table_id = ownership_key(config_path, key_path)
        before = self.load()
        lockfile = before.model_copy(deep=True)
        if ownership:
            lockfile.managed_configs[table_id] = dict(sorted(ownership.items()))
        else:
            lockfile.managed_configs.pop(table_id, None)
        return self._update(lockfile, before)


def _content(lockfile: Lockfile) -> dict[str, Any]:
    return lockfile.model_dump(mode="json", exclude={"generated_at"})
