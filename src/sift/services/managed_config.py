"""Ownership-aware edits of third-party client config files.

Sift only touches the keys it wrote. For every managed map (a config file
plus a nested key path) the lockfile keeps ``entry key -> content hash`` of
the values sift last wrote. An entry whose current value no longer matches
that hash was edited by the user and is left alone unless forced. Keys sift
never wrote are never removed, and unknown sibling keys anywhere in the file
are preserved.
"""

import json
import logging
import tomllib
from pathlib import Path
from typing import Any

import tomli_w
from pydantic import BaseModel, ConfigDict, Field

from sift.errors import ConfigParseError, ConfigValidationError, OwnershipError, SiftIOError
from sift.models.client import ConfigFormat
from sift.services.lockfile import LockfileService, hash_json
from sift.utils.files import atomic_write

logger = logging.getLogger(__name__)


class ManagedResult(BaseModel):
    """Outcome of one managed-config edit.

    Attributes:
        changed: Whether the config file was rewritten.
        written: Keys written or refreshed.
        removed: Keys removed.
        skipped: Keys left alone because sift does not own them.
    """

    changed: bool = False
    written: list[str] = Field(default_factory=list)
    removed: list[str] = Field(default_factory=list)
    skipped: list[str] = Field(default_factory=list)


def load_config_file(path: Path, fmt: ConfigFormat) -> dict[str, Any]:
    """Read a client config file into a mapping.

    Returns:
        The parsed mapping, or an empty one if the file does not exist.

    Raises:
        ConfigParseError: If the file cannot be parsed or is not a mapping.
    """
    if not path.exists():
        return {}

    content = path.read_text(encoding="utf-8")
    if not content.strip():
        return {}

    if fmt == ConfigFormat.TOML:
        try:
            return tomllib.loads(content)
        except tomllib.TOMLDecodeError as e:
            raise ConfigParseError(path, str(e)) from e

    try:
        data = json.loads(content)
    except json.JSONDecodeError as e:
        raise ConfigParseError(path, e.msg, line=e.lineno) from e
    if not isinstance(data, dict):
        raise ConfigParseError(path, "Expected a JSON object at the top level")
    return data


def dump_config_file(data: dict[str, Any], fmt: ConfigFormat) -> str:
    """Serialize a mapping in the given format."""
    if fmt == ConfigFormat.TOML:
        return tomli_w.dumps(_drop_none(data))
    return json.dumps(data, indent=2, ensure_ascii=False) + "\n"


def read_map_at_path(root: dict[str, Any], key_path: list[str]) -> dict[str, Any]:
    """Return the mapping at a nested key path.

    A missing segment yields an empty mapping.

    Raises:
        ConfigValidationError: If the path is empty or a segment is not a mapping.
    """
    if not key_path:
        raise ConfigValidationError("Path for managed entries cannot be empty")

    current: Any = root
    for segment in key_path:
        if segment not in current:
            return {}
        current = current[segment]
        if not isinstance(current, dict):
            raise ConfigValidationError(f"Expected '{segment}' to be an object")
    return current


def set_map_at_path(root: dict[str, Any], key_path: list[str], value: dict[str, Any]) -> None:
    """Set the mapping at a nested key path, creating parents as needed."""
    current = root
    for segment in key_path[:-1]:
        child = current.setdefault(segment, {})
        if not isinstance(child, dict):
            raise ConfigValidationError(f"Expected '{segment}' to be an object")
        current = child
    current[key_path[-1]] = value


def _drop_none(value: Any) -> Any:
    if isinstance(value, dict):
        return {key: _drop_none(item) for key, item in value.items() if item is not None}
    if isinstance(value, list):
        return [_drop_none(item) for item in value if item is not None]
    return value


class ManagedConfigWriter(BaseModel):
    """Applies ownership-checked upserts and removals to a client config.

    Attributes:
        lockfile: Lockfile holding the ownership tables.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    lockfile: LockfileService

    def apply(
        self,
        config_path: Path,
        key_path: list[str],
        fmt: ConfigFormat,
        upserts: dict[str, Any] | None = None,
        removals: list[str] | None = None,
        force: bool = False,
    ) -> ManagedResult:
        """Write and remove entries in one managed map.

        Args:
            config_path: Absolute path of the client config file.
            key_path: Nested keys leading to the managed map.
            fmt: File format.
            upserts: Entries to write, by key.
            removals: Keys to remove.
            force: Overwrite or remove entries even if the user changed them,
                and adopt existing entries sift did not write.

        Returns:
            ManagedResult describing what happened.

        Raises:
            OwnershipError: If an entry was modified outside sift, or an entry
                sift did not write would be overwritten, and force is not set.
        """
        upserts = upserts or {}
        result = ManagedResult()

        root = load_config_file(config_path, fmt)
        existing = read_map_at_path(root, key_path)
        owned = self.lockfile.load_ownership(config_path, key_path)
        merged = dict(existing)
        ownership = dict(owned)

        for key in removals or []:
            if key not in existing:
                ownership.pop(key, None)
                continue
            if key not in owned:
                result.skipped.append(key)
                continue
            if hash_json(existing[key]) != owned[key] and not force:
                raise OwnershipError(f"Refusing to remove user-modified entry: {key}")
            del merged[key]
            ownership.pop(key)
            result.removed.append(key)

        for key, value in upserts.items():
            if key in existing and not force:
                if key not in owned:
                    raise OwnershipError(
                        f"Entry '{key}' already exists and is not managed by Sift"
                    )
                if existing[key] != value and hash_json(existing[key]) != owned[key]:
                    raise OwnershipError(f"Refusing to overwrite user-modified entry: {key}")
            merged[key] = value
            ownership[key] = hash_json(value)
            result.written.append(key)

        if merged != existing:
            set_map_at_path(root, key_path, merged)
            try:
                atomic_write(config_path, dump_config_file(root, fmt))
            except OSError as e:
                raise SiftIOError(f"Failed to write {config_path}: {e}") from e
            result.changed = True
            logger.info(f"Updated {config_path} at {'.'.join(key_path)}")

        self.lockfile.save_ownership(config_path, key_path, ownership)
        return result

