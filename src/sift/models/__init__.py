"""Sift data models."""

from sift.models.client import (
    ClientCapabilities,
    ClientContext,
    ConfigFormat,
    ManagedConfigPlan,
    PathRoot,
    SkillDeliveryPaths,
    SkillDeliveryPlan,
)
from sift.models.config import (
    ClientEntry,
    LinkMode,
    McpEntry,
    ProjectOverride,
    RegistryEntry,
    RegistryType,
    SiftConfig,
    SkillEntry,
    Transport,
)
from sift.models.lockfile import (
    LockedMcp,
    LockedSkill,
    Lockfile,
    ResolvedOrigin,
    load_lockfile,
    save_lockfile,
)
from sift.models.marketplace import MarketplaceManifest, MarketplacePlugin
from sift.models.mcpb import McpbManifest
from sift.models.scope import ResourceKind, Scope, ScopeDecision, ScopeSupport
from sift.models.server import McpResolvedServer
from sift.models.source import GitSpec, LocalSource, RegistryMetadata

__all__ = [
    "ClientCapabilities",
    "ClientContext",
    "ClientEntry",
    "ConfigFormat",
    "GitSpec",
    "LinkMode",
    "LocalSource",
    "LockedMcp",
    "LockedSkill",
    "Lockfile",
    "ManagedConfigPlan",
    "MarketplaceManifest",
    "MarketplacePlugin",
    "McpEntry",
    "McpResolvedServer",
    "McpbManifest",
    "PathRoot",
    "ProjectOverride",
    "RegistryEntry",
    "RegistryMetadata",
    "RegistryType",
    "ResolvedOrigin",
    "ResourceKind",
    "Scope",
    "ScopeDecision",
    "ScopeSupport",
    "SiftConfig",
    "SkillDeliveryPaths",
    "SkillDeliveryPlan",
    "SkillEntry",
    "Transport",
    "load_lockfile",
    "save_lockfile",
]
