"""Install and uninstall orchestration.

An install commits the manifest entry, resolves the scope for every
targeted client, writes MCP servers into client configs or delivers skill
content, and records the result in the lockfile. An uninstall walks the
same steps backwards.
"""

import logging
from enum import Enum
from pathlib import Path

import httpx
from pydantic import BaseModel, ConfigDict, Field

from sift.clients.base import ClientAdapter, resolve_plan_path
from sift.clients.registry import ClientRegistry
from sift.errors import (
    ConfigValidationError,
    NotInstalledError,
    SiftIOError,
    ScopeUnsupportedError,
)
from sift.models.client import ClientContext
from sift.models.config import (
    LinkMode,
    McpEntry,
    RegistryType,
    SiftConfig,
    SkillEntry,
)
from sift.models.lockfile import LockedMcp, LockedSkill, ResolvedOrigin, utc_now
from sift.models.scope import ResourceKind, Scope, ScopeDecision
from sift.models.source import REGISTRY_PREFIX, GitSpec, LocalSource
from sift.services.delivery import DeliveryEngine, DeliveryStatus
from sift.services.git import GitFetcher
from sift.services.git_exclude import ensure_git_exclude
from sift.services.lockfile import LockfileService, hash_json
from sift.services.managed_config import ManagedConfigWriter
from sift.services.manifest_store import ManifestStore
from sift.services.mcpb import McpbFetcher
from sift.services.paths import AppPaths
from sift.services.scope import auto_manifest_scope, mcp_client_scopes, resolve_scope
from sift.services.server_builder import McpServerBuilder
from sift.services.skills import is_valid_skill_dir, read_skill_info
from sift.services.source_resolver import ResolvedEntry, SourceResolver
from sift.utils.files import remove_path

logger = logging.getLogger(__name__)

LOCAL_VERSION = "local"


class Outcome(str, Enum):
    """Whether an install changed anything."""

    CHANGED = "changed"
    NOOP = "noop"


class ClientResult(BaseModel):
    """What happened for one client.

    Attributes:
        client_id: Adapter id.
        scope: Scope the client was configured at; None when skipped.
        path: Config file written (MCP) or skill destination.
        changed: Whether anything on disk changed for this client.
        warning: Why the client was skipped.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    client_id: str
    scope: Scope | None = None
    path: Path | None = None
    changed: bool = False
    warning: str | None = None

    @property
    def applied(self) -> bool:
        return self.warning is None and self.scope is not None


class InstallOptions(BaseModel):
    """One install request.

    Attributes:
        kind: MCP or skill.
        name: Entry name.
        entry: Entry to write to the manifest.
        scope: Requested scope; None means auto.
        force: Overwrite differing entries and modified content.
        version: Requested MCP version (skills carry it in the entry).
    """

    kind: ResourceKind
    name: str
    entry: McpEntry | SkillEntry
    scope: Scope | None = None
    force: bool = False
    version: str | None = None


class InstallReport(BaseModel):
    """Result of an install.

    Attributes:
        name: Entry name.
        kind: MCP or skill.
        scope: Manifest scope the entry was recorded at.
        outcome: changed or noop.
        applied: Whether at least one client was configured.
        clients: Per-client results.
        warnings: Notes for the user.
    """

    name: str
    kind: ResourceKind
    scope: Scope
    outcome: Outcome
    applied: bool = False
    clients: list[ClientResult] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


class UninstallOptions(BaseModel):
    """One uninstall request.

    Attributes:
        kind: MCP or skill.
        name: Entry name.
        scope: Scope to remove from; None means auto.
        all_scopes: Remove from every scope.
    """

    kind: ResourceKind
    name: str
    scope: Scope | None = None
    all_scopes: bool = False


class UninstallReport(BaseModel):
    """Result of an uninstall.

    Attributes:
        name: Entry name.
        kind: MCP or skill.
        scopes: Scopes something was removed from.
        clients: Per-client results.
        warnings: Notes for the user.
    """

    name: str
    kind: ResourceKind
    scopes: list[Scope] = Field(default_factory=list)
    clients: list[ClientResult] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


class PreparedSkill(BaseModel):
    """Skill content ready for delivery."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    src: Path
    resolved_version: str
    constraint: str
    registry: str
    spec: GitSpec | None = None
    origin: ResolvedOrigin | None = None
    reused: bool = False


class InstallOrchestrator(BaseModel):
    """Runs installs and uninstalls for one project.

    Attributes:
        paths: Directory layout of the current invocation.
        clients: Client adapters to configure.
        transport: Optional httpx transport for bundle downloads.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    paths: AppPaths
    clients: ClientRegistry = Field(default_factory=ClientRegistry.default)
    transport: httpx.AsyncBaseTransport | None = None

    @property
    def store(self) -> ManifestStore:
        return ManifestStore(paths=self.paths)

    @property
    def lockfile(self) -> LockfileService:
        return LockfileService(path=self.paths.lockfile_path)

    @property
    def context(self) -> ClientContext:
        return ClientContext(home_dir=self.paths.home_dir, project_root=self.paths.project_root)

    def _git(self) -> GitFetcher:
        return GitFetcher(paths=self.paths)

    def _resolver(self, config: SiftConfig) -> SourceResolver:
        return SourceResolver(paths=self.paths, registries=config.registry, git=self._git())

    def install(self, options: InstallOptions) -> InstallReport:
        """Install one MCP server or skill.

        Args:
            options: What to install and where.

        Returns:
            InstallReport describing the outcome.

        Raises:
            ConfigValidationError: If the entry is invalid or differs from an
                existing entry and force is not set.
            SiftError: Any failure while resolving, writing or delivering.
        """
        entry = options.entry.model_copy(deep=True)
        warnings: list[str] = []
        merged, merge_warnings = self.store.load_merged()
        warnings.extend(merge_warnings)

        version = options.version
        if options.kind == ResourceKind.SKILL:
            version = entry.version
        if version and self._unpinnable_registry(entry.source, merged):
            warnings.append(
                f"Registry for '{entry.source}' does not support version pinning; "
                f"ignoring version '{version}'"
            )
            version = None
            if isinstance(entry, SkillEntry):
                entry.version = None

        entry.ensure_valid()

        is_git = self.paths.is_git_repo()
        has_project_manifest = self.store.project_manifest_exists()
        scope = options.scope or auto_manifest_scope(is_git, has_project_manifest)
        manifest_changed = self._commit_manifest(options.kind, scope, options.name, entry, options.force)

        merged, _ = self.store.load_merged()
        table = merged.mcp if options.kind == ResourceKind.MCP else merged.skill
        effective = table.get(options.name, entry)

        results: list[ClientResult] = []
        decisions: list[tuple[ClientAdapter, ScopeDecision]] = []
        for adapter in self.clients.applicable_clients(
            effective.targets, effective.ignore_targets, merged.clients
        ):
            caps = adapter.capabilities
            support = caps.mcp if options.kind == ResourceKind.MCP else caps.skills
            decision = resolve_scope(
                options.kind, options.scope, support, is_git, has_project_manifest
            )
            if not decision.applied:
                warning = f"{adapter.id}: {decision.warning}"
                warnings.append(warning)
                results.append(ClientResult(client_id=adapter.id, warning=warning))
                continue
            if decision.warning:
                warnings.append(f"{adapter.id}: {decision.warning}")
            decisions.append((adapter, decision))

        lock_changed = False
        if decisions:
            if options.kind == ResourceKind.MCP:
                lock_changed = self._install_mcp(
                    options, effective, merged, scope, version, decisions, results, warnings
                )
            else:
                lock_changed = self._install_skill(
                    options, effective, merged, scope, decisions, results
                )

        changed = manifest_changed or lock_changed or any(r.changed for r in results)
        return InstallReport(
            name=options.name,
            kind=options.kind,
            scope=scope,
            outcome=Outcome.CHANGED if changed else Outcome.NOOP,
            applied=any(r.applied for r in results),
            clients=results,
            warnings=warnings,
        )

    def _unpinnable_registry(self, source: str, config: SiftConfig) -> bool:
        if not source.startswith(REGISTRY_PREFIX):
            return False
        _, registry, _ = self._resolver(config).registry_for(source)
        return registry.type == RegistryType.CLAUDE_MARKETPLACE

    def _commit_manifest(
        self,
        kind: ResourceKind,
        scope: Scope,
        name: str,
        entry: McpEntry | SkillEntry,
        force: bool,
    ) -> bool:
        existing = self.store.get_entry(scope, kind, name)
        if existing == entry:
            logger.debug(f"{kind.label} '{name}' already recorded at {scope.value} scope")
            return False
        if existing is not None and not force:
            raise ConfigValidationError(
                f"{kind.label} '{name}' already exists at {scope.value} scope with different "
                f"settings. Use --force to overwrite."
            )
        self.store.set_entry(scope, kind, name, entry)
        return True

    def _install_mcp(
        self,
        options: InstallOptions,
        entry: McpEntry,
        merged: SiftConfig,
        scope: Scope,
        version: str | None,
        decisions: list[tuple[ClientAdapter, ScopeDecision]],
        results: list[ClientResult],
        warnings: list[str],
    ) -> bool:
        builder = McpServerBuilder(
            resolver=self._resolver(merged),
            mcpb=McpbFetcher(paths=self.paths, transport=self.transport),
        )
        built = builder.build(options.name, entry, version=version, force=options.force)
        writer = ManagedConfigWriter(lockfile=self.lockfile)
        ctx = self.context

        for adapter, decision in decisions:
            try:
                plan = adapter.plan_mcp(ctx, decision.scope, built.servers)
            except ScopeUnsupportedError as e:
                warnings.append(f"{adapter.id}: {e}")
                results.append(ClientResult(client_id=adapter.id, warning=str(e)))
                continue

            config_path = resolve_plan_path(ctx.root_path(plan.root), plan.relative_path)
            outcome = writer.apply(
                config_path, plan.key_path, plan.format, upserts=plan.entries, force=options.force
            )
            results.append(
                ClientResult(
                    client_id=adapter.id,
                    scope=decision.scope,
                    path=config_path,
                    changed=outcome.changed,
                )
            )

        if not any(r.applied for r in results):
            return False

        locked = LockedMcp(
            name=options.name,
            resolved_version=built.resolved_version,
            constraint=built.constraint,
            registry=built.registry,
            scope=scope,
            origin=built.origin,
            checksum=hash_json([server.model_dump(mode="json") for server in built.servers]),
            clients={r.client_id: r.scope for r in results if r.applied},
        )
        return self.lockfile.add_mcp(options.name, locked)

    def _install_skill(
        self,
        options: InstallOptions,
        entry: SkillEntry,
        merged: SiftConfig,
        scope: Scope,
        decisions: list[tuple[ClientAdapter, ScopeDecision]],
        results: list[ClientResult],
    ) -> bool:
        prepared = self._prepare_skill(options.name, entry, merged, options.force)
        if read_skill_info(prepared.src) is None:
            logger.warning(f"SKILL.md in {prepared.src} has no name or description frontmatter")
        previous = self.lockfile.get_skill(options.name)
        engine = DeliveryEngine()
        ctx = self.context

        deliveries: dict[str, Path] = {}
        tree_hash: str | None = None
        used_mode: LinkMode | None = None
        delivery_changed = False

        for adapter, decision in decisions:
            plan = adapter.plan_skill(ctx, decision.scope)
            skills_dir = resolve_plan_path(ctx.root_path(plan.root), plan.relative_path)
            dst = skills_dir / options.name

            if dst in deliveries.values():
                continue

            locked_dst = None
            if previous is not None:
                locked_dst = previous.deliveries.get(adapter.id) or previous.dst_path

            report = engine.deliver_managed(
                prepared.src,
                dst,
                mode=merged.link_mode or LinkMode.AUTO,
                allow_symlink=adapter.capabilities.supports_symlinked_skills,
                force=options.force,
                locked_hash=previous.tree_hash if previous else None,
                locked_dst=locked_dst,
                verify_source=prepared.reused,
            )

            changed = report.status != DeliveryStatus.UNCHANGED
            if decision.use_git_exclude:
                relative = dst.relative_to(ctx.project_root).as_posix()
                changed = ensure_git_exclude(ctx.project_root, relative) or changed

            deliveries[adapter.id] = dst
            tree_hash = report.tree_hash
            used_mode = report.mode
            if report.status == DeliveryStatus.UNCHANGED and previous is not None:
                used_mode = previous.mode or report.mode
            delivery_changed = delivery_changed or changed
            results.append(
                ClientResult(
                    client_id=adapter.id, scope=decision.scope, path=dst, changed=changed
                )
            )

        if not deliveries:
            return False

        installed_at = utc_now()
        if previous is not None and previous.installed_at and not delivery_changed:
            installed_at = previous.installed_at

        spec = prepared.spec
        locked = LockedSkill(
            name=options.name,
            resolved_version=prepared.resolved_version,
            constraint=prepared.constraint,
            registry=prepared.registry,
            scope=scope,
            origin=prepared.origin,
            git_repo=spec.repo_url if spec else None,
            git_ref=spec.ref if spec else None,
            git_subdir=spec.subdir if spec else None,
            dst_path=next(iter(deliveries.values())),
            cache_src_path=prepared.src,
            mode=used_mode,
            tree_hash=tree_hash,
            installed_at=installed_at,
            deliveries=deliveries,
        )
        return self.lockfile.add_skill(options.name, locked)

    def _prepare_skill(
        self, name: str, entry: SkillEntry, merged: SiftConfig, force: bool
    ) -> PreparedSkill:
        resolved: ResolvedEntry = self._resolver(merged).resolve(entry.source, refresh=force)
        source = resolved.skill_source()
        registry = resolved.metadata.original_source if resolved.metadata else entry.source
        origin = resolved.metadata.to_origin() if resolved.metadata else None

        if isinstance(source, LocalSource):
            if not is_valid_skill_dir(source.path):
                raise SiftIOError(f"No SKILL.md found in {source.path}")
            return PreparedSkill(
                src=source.path,
                resolved_version=LOCAL_VERSION,
                constraint=entry.effective_version,
                registry=registry,
                origin=origin,
            )

        locked = self.lockfile.get_skill(name)
        reusable = (
            not force
            and locked is not None
            and locked.constraint == entry.effective_version
            and locked.git_ref == source.ref
            and locked.git_repo == source.repo_url
            and locked.git_subdir == source.subdir
            and locked.cache_src_path is not None
            and is_valid_skill_dir(locked.cache_src_path)
        )
        fetched = self._git().fetch_skill(source, name, refresh=not reusable)
        return PreparedSkill(
            src=fetched.cache_path,
            resolved_version=fetched.commit,
            constraint=entry.effective_version,
            registry=registry,
            spec=source,
            origin=origin,
            reused=fetched.reused,
        )

    def uninstall(self, options: UninstallOptions) -> UninstallReport:
        """Remove one MCP server or skill.

        Args:
            options: What to remove and from which scopes.

        Returns:
            UninstallReport describing what was removed.

        Raises:
            NotInstalledError: If nothing was found to remove.
        """
        report = UninstallReport(name=options.name, kind=options.kind)
        for scope in self._uninstall_scopes(options):
            if self._uninstall_scope(options, scope, report):
                report.scopes.append(scope)

        if not report.scopes:
            raise NotInstalledError(f"{options.kind.label} '{options.name}' is not installed")
        return report

    def _locked(self, kind: ResourceKind, name: str) -> LockedMcp | LockedSkill | None:
        if kind == ResourceKind.MCP:
            return self.lockfile.get_mcp(name)
        return self.lockfile.get_skill(name)

    def _uninstall_scopes(self, options: UninstallOptions) -> list[Scope]:
        if options.all_scopes:
            return [Scope.GLOBAL, Scope.PROJECT, Scope.LOCAL]
        if options.scope is not None:
            return [options.scope]

        locked = self._locked(options.kind, options.name)
        if locked is not None:
            return [locked.scope]
        for scope in (Scope.GLOBAL, Scope.PROJECT, Scope.LOCAL):
            if self.store.get_entry(scope, options.kind, options.name) is not None:
                return [scope]
        return []

    def _uninstall_scope(
        self, options: UninstallOptions, scope: Scope, report: UninstallReport
    ) -> bool:
        entry = self.store.get_entry(scope, options.kind, options.name)
        changed = self.store.remove_entry(scope, options.kind, options.name)
        locked = self._locked(options.kind, options.name)
        if locked is not None and locked.scope != scope:
            return changed

        if options.kind == ResourceKind.MCP:
            changed = self._remove_mcp(options.name, scope, locked, report) or changed
            changed = self.lockfile.remove_mcp(options.name) or changed
        else:
            if locked is not None:
                changed = self._remove_skill(locked, report) or changed
            elif entry is not None:
                changed = self._sweep_skill(options.name, scope, entry, report) or changed
            changed = self.lockfile.remove_skill(options.name) or changed
        return changed

    def _remove_mcp(
        self, name: str, scope: Scope, locked: LockedMcp | None, report: UninstallReport
    ) -> bool:
        names = [name]
        if locked is not None and locked.origin is not None:
            names.extend(alias for alias in locked.origin.aliases if alias not in names)

        writer = ManagedConfigWriter(lockfile=self.lockfile)
        ctx = self.context
        is_git = self.paths.is_git_repo()
        changed = False

        recorded = locked.clients if locked is not None else {}
        for adapter, client_scope in mcp_client_scopes(self.clients, scope, recorded, is_git):
            root, relative_path, key_path = adapter.mcp_location(ctx, client_scope)
            config_path = resolve_plan_path(ctx.root_path(root), relative_path)
            if not config_path.exists():
                continue

            outcome = writer.apply(config_path, key_path, adapter.config_format, removals=names)
            for key in outcome.skipped:
                report.warnings.append(
                    f"Client config entry '{key}' is not managed by Sift; skipping removal"
                )
            if outcome.removed:
                changed = True
                report.clients.append(
                    ClientResult(
                        client_id=adapter.id,
                        scope=client_scope,
                        path=config_path,
                        changed=outcome.changed,
                    )
                )
        return changed

    def _remove_skill(self, locked: LockedSkill, report: UninstallReport) -> bool:
        destinations = dict(locked.deliveries)
        if not destinations and locked.dst_path is not None:
            destinations["default"] = locked.dst_path

        changed = False
        for client_id, dst in destinations.items():
            if remove_path(dst):
                changed = True
                logger.info(f"Removed {dst}")
                report.clients.append(
                    ClientResult(client_id=client_id, scope=locked.scope, path=dst, changed=True)
                )
        return changed

    def _sweep_skill(
        self, name: str, scope: Scope, entry: SkillEntry, report: UninstallReport
    ) -> bool:
        """Remove skill directories when the lockfile has no record of them.

        Destinations are planned from the manifest entry the same way an
        install at ``scope`` would place them.
        """
        merged, _ = self.store.load_merged()
        ctx = self.context
        is_git = self.paths.is_git_repo()
        has_project_manifest = self.store.project_manifest_exists()

        removed: set[Path] = set()
        for adapter in self.clients.applicable_clients(
            entry.targets, entry.ignore_targets, merged.clients
        ):
            support = adapter.capabilities.skills
            decision = resolve_scope(
                ResourceKind.SKILL, scope, support, is_git, has_project_manifest
            )
            if not decision.applied:
                continue
            try:
                plan = adapter.plan_skill(ctx, decision.scope)
            except ScopeUnsupportedError as e:
                logger.debug(f"{adapter.id}: {e}")
                continue

            dst = resolve_plan_path(ctx.root_path(plan.root), plan.relative_path) / name
            if dst in removed or not remove_path(dst):
                continue
            removed.add(dst)
            logger.info(f"Removed {dst}")
            report.clients.append(
                ClientResult(client_id=adapter.id, scope=decision.scope, path=dst, changed=True)
            )
        return bool(removed)
