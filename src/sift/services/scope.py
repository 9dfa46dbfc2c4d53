"""Scope resolution for install and uninstall."""

from collections.abc import Iterable

from sift.clients.base import ClientAdapter
from sift.models.scope import ResourceKind, Scope, ScopeDecision, ScopeSupport

NO_SUPPORTED_SCOPE = "Client does not support any requested scopes"


def auto_candidates(is_git: bool, has_project_manifest: bool) -> list[Scope]:
    """Scopes tried, in order, when the user asked for ``auto``.

    Args:
        is_git: Whether the project is a git repository.
        has_project_manifest: Whether the project has a sift.toml.

    Returns:
        Candidate scopes, highest priority first; always ends with global.
    """
    candidates: list[Scope] = []
    if is_git:
        candidates.append(Scope.LOCAL)
    if has_project_manifest:
        candidates.append(Scope.PROJECT)
    candidates.append(Scope.GLOBAL)
    return candidates


def auto_manifest_scope(is_git: bool, has_project_manifest: bool) -> Scope:
    """Manifest scope an ``auto`` install is recorded at."""
    return auto_candidates(is_git, has_project_manifest)[0]


def resolve_explicit(
    kind: ResourceKind, scope: Scope, support: ScopeSupport, is_git: bool
) -> ScopeDecision:
    """Decide how one client handles an explicitly requested scope.

    A local skill on a client without local skill directories is delivered
    at project scope and kept out of git through ``.git/info/exclude``.

    Args:
        kind: MCP or skill.
        scope: Requested scope.
        support: The client's support flags for ``kind``.
        is_git: Whether the project is a git repository.

    Returns:
        Apply with the scope to use, or Skip with a warning.
    """
    if support.supports(scope):
        return ScopeDecision.apply(scope)

    if kind == ResourceKind.SKILL and scope == Scope.LOCAL and support.project:
        decision = ScopeDecision.apply(Scope.PROJECT, use_git_exclude=is_git)
        if not is_git:
            decision.warning = (
                "Local skill scope requires a git repository to stay private; "
                "delivered at project scope"
            )
        return decision

    return ScopeDecision.skip(f"{kind.label} {scope.value} scope is not supported by this client")


def resolve_scope(
    kind: ResourceKind,
    requested: Scope | None,
    support: ScopeSupport,
    is_git: bool,
    has_project_manifest: bool,
) -> ScopeDecision:
    """Resolve the scope one client is configured at.

    Args:
        kind: MCP or skill.
        requested: Explicit scope, or None for ``auto``.
        support: The client's support flags for ``kind``.
        is_git: Whether the project is a git repository.
        has_project_manifest: Whether the project has a sift.toml.

    Returns:
        The scope decision for this client.
    """
    if requested is not None:
        return resolve_explicit(kind, requested, support, is_git)

    for candidate in auto_candidates(is_git, has_project_manifest):
        decision = resolve_explicit(kind, candidate, support, is_git)
        if decision.applied:
            return decision

    return ScopeDecision.skip(NO_SUPPORTED_SCOPE)


def mcp_client_scopes(
    clients: Iterable[ClientAdapter], scope: Scope, recorded: dict[str, Scope], is_git: bool
) -> list[tuple[ClientAdapter, Scope]]:
    """Clients an MCP entry at ``scope`` was written to, with their scopes.

    Uses the per-client scopes recorded in the lockfile when available and
    falls back to explicit resolution of ``scope`` otherwise.
    """
    if recorded:
        return [(adapter, recorded[adapter.id]) for adapter in clients if adapter.id in recorded]

    pairs: list[tuple[ClientAdapter, Scope]] = []
    for adapter in clients:
        decision = resolve_explicit(ResourceKind.MCP, scope, adapter.capabilities.mcp, is_git)
        if decision.applied:
            pairs.append((adapter, decision.scope))
    return pairs
