"""Sift services."""

from sift.services.delivery import DeliveryEngine, DeliveryReport, DeliveryStatus
from sift.services.git import GitError, GitFetcher, GitService
from sift.services.lockfile import LockfileService
from sift.services.managed_config import ManagedConfigWriter
from sift.services.manifest_store import ManifestStore
from sift.services.mcpb import McpbFetcher
from sift.services.merge import merge_configs
from sift.services.orchestrator import (
    ClientResult,
    InstallOptions,
    InstallOrchestrator,
    InstallReport,
    Outcome,
    UninstallOptions,
    UninstallReport,
)
from sift.services.paths import AppPaths
from sift.services.server_builder import McpServerBuilder
from sift.services.source_resolver import SourceResolver, normalize_source
from sift.services.status import (
    EntryState,
    EntryStatus,
    McpIntegrity,
    SkillIntegrity,
    StatusReport,
    StatusService,
)
from sift.services.tree_hash import hash_tree

__all__ = [
    "AppPaths",
    "ClientResult",
    "DeliveryEngine",
    "DeliveryReport",
    "DeliveryStatus",
    "EntryState",
    "EntryStatus",
    "GitError",
    "GitFetcher",
    "GitService",
    "InstallOptions",
    "InstallOrchestrator",
    "InstallReport",
    "LockfileService",
    "ManagedConfigWriter",
    "ManifestStore",
    "McpIntegrity",
    "McpServerBuilder",
    "McpbFetcher",
    "Outcome",
    "SkillIntegrity",
    "SourceResolver",
    "StatusReport",
    "StatusService",
    "UninstallOptions",
    "UninstallReport",
    "hash_tree",
    "merge_configs",
    "normalize_source",
]
