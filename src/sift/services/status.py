"""Comparing declared entries, the lockfile and what is on disk."""

import logging
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

from sift.clients.base import ClientAdapter, resolve_plan_path
from sift.clients.registry import ClientRegistry
from sift.errors import SiftError
from sift.models.client import ClientContext
from sift.models.config import LinkMode, SiftConfig
from sift.models.lockfile import Lockfile, LockedMcp, LockedSkill
from sift.models.scope import ResourceKind, Scope
from sift.services.lockfile import LockfileService, hash_json, ownership_key
from sift.services.managed_config import load_config_file, read_map_at_path
from sift.services.manifest_store import ManifestStore
from sift.services.paths import AppPaths
from sift.services.scope import mcp_client_scopes
from sift.services.tree_hash import hash_tree

logger = logging.getLogger(__name__)


class EntryState(str, Enum):
    """How a declared entry relates to the lockfile.

    Attributes:
        OK: Declared and locked with a matching constraint.
        NOT_LOCKED: Declared but never installed.
        STALE: Locked with a different constraint than declared.
        ORPHANED: Locked but no longer declared.
    """

    OK = "ok"
    NOT_LOCKED = "not-locked"
    STALE = "stale"
    ORPHANED = "orphaned"


class McpIntegrity(str, Enum):
    OK = "ok"
    MODIFIED = "modified"
    MISSING = "missing"
    NOT_DEPLOYED = "not-deployed"


class SkillIntegrity(str, Enum):
    INSTALLED = "installed"
    MODIFIED = "modified"
    NOT_FOUND = "not-found"
    NOT_DEPLOYED = "not-deployed"


class Deployment(BaseModel):
    """Integrity of one entry in one client."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    client_id: str
    path: Path
    integrity: McpIntegrity | SkillIntegrity


class EntryStatus(BaseModel):
    """Status of one MCP server or skill.

    Attributes:
        kind: MCP or skill.
        name: Entry name.
        state: Relationship between declaration and lockfile.
        scope: Scope recorded in the lockfile, if locked.
        constraint: Declared constraint.
        resolved_version: Version recorded in the lockfile.
        deployments: Per-client integrity, filled in by a verify run.
    """

    kind: ResourceKind
    name: str
    state: EntryState
    scope: Scope | None = None
    constraint: str = ""
    resolved_version: str | None = None
    deployments: list[Deployment] = Field(default_factory=list)

    @property
    def issues(self) -> int:
        count = 0 if self.state == EntryState.OK else 1
        for deployment in self.deployments:
            if deployment.integrity not in (
                McpIntegrity.OK,
                SkillIntegrity.INSTALLED,
                McpIntegrity.NOT_DEPLOYED,
                SkillIntegrity.NOT_DEPLOYED,
            ):
                count += 1
        return count


class StatusReport(BaseModel):
    """Status of every entry for the current project."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    project_root: Path
    scope: Scope | None = None
    link_mode: LinkMode = LinkMode.AUTO
    entries: list[EntryStatus] = Field(default_factory=list)
    issues: int = 0


def entry_state(declared_constraint: str | None, locked_constraint: str | None) -> EntryState:
    """Classify an entry.

    Args:
        declared_constraint: Declared constraint, or None if not declared.
            An empty string accepts any locked constraint.
        locked_constraint: Locked constraint, or None if not locked.
    """
    if declared_constraint is None:
        return EntryState.ORPHANED if locked_constraint is not None else EntryState.NOT_LOCKED
    if locked_constraint is None:
        return EntryState.NOT_LOCKED
    if not declared_constraint or declared_constraint == locked_constraint:
        return EntryState.OK
    return EntryState.STALE


class StatusService(BaseModel):
    """Builds status reports.

    Attributes:
        paths: Directory layout of the current invocation.
        clients: Client adapters to inspect.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    paths: AppPaths
    clients: ClientRegistry = Field(default_factory=ClientRegistry.default)

    def collect(self, scope: Scope | None = None, verify: bool = False) -> StatusReport:
        """Build a status report.

        Args:
            scope: Only report entries declared or locked at this scope.
            verify: Check integrity of every client deployment.

        Returns:
            StatusReport with an issue count.
        """
        store = ManifestStore(paths=self.paths)
        merged, _ = store.load_merged()
        declared = merged if scope is None else self._declared_at(store, scope)
        lockfile = LockfileService(path=self.paths.lockfile_path).load()

        entries: list[EntryStatus] = []
        for name in sorted(set(declared.mcp) | set(lockfile.mcp_servers)):
            locked = lockfile.mcp_servers.get(name)
            if not self._in_scope(scope, name in declared.mcp, locked):
                continue
            status = EntryStatus(
                kind=ResourceKind.MCP,
                name=name,
                state=entry_state("" if name in declared.mcp else None, _constraint(locked)),
                scope=locked.scope if locked else None,
                resolved_version=locked.resolved_version if locked else None,
            )
            if verify and locked is not None:
                status.deployments = self._verify_mcp(name, locked, lockfile)
            entries.append(status)

        for name in sorted(set(declared.skill) | set(lockfile.skills)):
            entry = declared.skill.get(name)
            locked = lockfile.skills.get(name)
            if not self._in_scope(scope, entry is not None, locked):
                continue
            status = EntryStatus(
                kind=ResourceKind.SKILL,
                name=name,
                state=entry_state(entry.effective_version if entry else None, _constraint(locked)),
                scope=locked.scope if locked else None,
                constraint=entry.effective_version if entry else "",
                resolved_version=locked.resolved_version if locked else None,
            )
            if verify and locked is not None:
                status.deployments = self._verify_skill(name, locked)
            entries.append(status)

        return StatusReport(
            project_root=self.paths.project_root,
            scope=scope,
            link_mode=merged.link_mode or LinkMode.AUTO,
            entries=entries,
            issues=sum(e.issues for e in entries),
        )

    def _declared_at(self, store: ManifestStore, scope: Scope) -> SiftConfig:
        config = store.load(scope)
        if scope == Scope.LOCAL:
            override = config.projects.get(self.paths.project_key)
            if override is None:
                return SiftConfig()
            return SiftConfig(mcp=override.mcp, skill=override.skill)
        return config

    @staticmethod
    def _in_scope(
        scope: Scope | None, declared: bool, locked: LockedMcp | LockedSkill | None
    ) -> bool:
        if scope is None or declared:
            return True
        return locked is not None and locked.scope == scope

    def _verify_mcp(self, name: str, locked: LockedMcp, lockfile: Lockfile) -> list[Deployment]:
        ctx = ClientContext(home_dir=self.paths.home_dir, project_root=self.paths.project_root)
        is_git = self.paths.is_git_repo()
        deployments: list[Deployment] = []

        pairs = mcp_client_scopes(self.clients, locked.scope, locked.clients, is_git)
        for adapter, client_scope in pairs:
            root, relative_path, key_path = adapter.mcp_location(ctx, client_scope)
            config_path = resolve_plan_path(ctx.root_path(root), relative_path)
            owned = lockfile.managed_configs.get(ownership_key(config_path, key_path), {})
            deployments.append(
                Deployment(
                    client_id=adapter.id,
                    path=config_path,
                    integrity=self._mcp_integrity(name, config_path, key_path, adapter, owned),
                )
            )
        return deployments

    @staticmethod
    def _mcp_integrity(
        name: str,
        config_path: Path,
        key_path: list[str],
        adapter: ClientAdapter,
        owned: dict[str, str],
    ) -> McpIntegrity:
        if name not in owned:
            return McpIntegrity.NOT_DEPLOYED
        try:
            current = read_map_at_path(load_config_file(config_path, adapter.config_format), key_path)
        except SiftError as e:
            logger.warning(f"Could not read {config_path}: {e}")
            return McpIntegrity.MISSING
        if name not in current:
            return McpIntegrity.MISSING
        if hash_json(current[name]) != owned[name]:
            return McpIntegrity.MODIFIED
        return McpIntegrity.OK

    def _verify_skill(self, name: str, locked: LockedSkill) -> list[Deployment]:
        destinations = dict(locked.deliveries)
        if not destinations and locked.dst_path is not None:
            destinations["default"] = locked.dst_path
        if not destinations:
            return [
                Deployment(
                    client_id="-",
                    path=self.paths.project_root,
                    integrity=SkillIntegrity.NOT_DEPLOYED,
                )
            ]

        deployments: list[Deployment] = []
        for client_id, dst in destinations.items():
            if not dst.exists():
                integrity = SkillIntegrity.NOT_FOUND
            else:
                try:
                    actual = hash_tree(dst.resolve() if dst.is_symlink() else dst)
                except SiftError as e:
                    logger.warning(f"Could not hash {dst}: {e}")
                    actual = None
                integrity = (
                    SkillIntegrity.INSTALLED
                    if actual == locked.tree_hash
                    else SkillIntegrity.MODIFIED
                )
            deployments.append(Deployment(client_id=client_id, path=dst, integrity=integrity))
        return deployments


def _constraint(locked: LockedMcp | LockedSkill | None) -> str | None:
    return locked.constraint if locked is not None else None
