"""Tests for the status service."""

import json
from pathlib import Path

import pytest

from sift.models.config import McpEntry, SkillEntry
from sift.models.scope import ResourceKind, Scope
from sift.services.manifest_store import ManifestStore
from sift.services.orchestrator import InstallOptions, InstallOrchestrator
from sift.services.paths import AppPaths
from sift.services.status import (
    EntryState,
    McpIntegrity,
    SkillIntegrity,
    StatusService,
    entry_state,
)

NOTES = SkillEntry(source="local:./skills/notes", targets=["claude-code"])
SHELL_SERVER = McpEntry(source="local:my-server", runtime="shell", targets=["claude-code"])


def _install(paths: AppPaths, kind: ResourceKind, name: str, entry) -> None:
    InstallOrchestrator(paths=paths).install(
        InstallOptions(kind=kind, name=name, entry=entry, scope=Scope.PROJECT)
    )


def _entry(report, name: str):
    return next(e for e in report.entries if e.name == name)


class TestEntryState:
    """Tests for entry_state."""

    @pytest.mark.parametrize(
        ("declared", "locked", "expected"),
        [
            ("latest", "latest", EntryState.OK),
            ("", "whatever", EntryState.OK),
            ("v2", "v1", EntryState.STALE),
            ("latest", None, EntryState.NOT_LOCKED),
            (None, "latest", EntryState.ORPHANED),
            (None, None, EntryState.NOT_LOCKED),
        ],
    )
    def test_states(self, declared: str | None, locked: str | None, expected: EntryState) -> None:
        assert entry_state(declared, locked) == expected


class TestCollect:
    """Tests for StatusService.collect."""

    def test_empty_project(self, app_paths: AppPaths) -> None:
        report = StatusService(paths=app_paths).collect()
        assert report.entries == []
        assert report.issues == 0
        assert report.project_root == app_paths.project_root

    def test_declared_but_not_installed(self, app_paths: AppPaths) -> None:
        ManifestStore(paths=app_paths).set_entry(Scope.PROJECT, ResourceKind.MCP, "x", SHELL_SERVER)

        report = StatusService(paths=app_paths).collect()

        assert _entry(report, "x").state == EntryState.NOT_LOCKED
        assert report.issues == 1

    def test_installed_entries_are_ok(self, app_paths: AppPaths, local_skill: Path) -> None:
        _install(app_paths, ResourceKind.MCP, "mine", SHELL_SERVER)
        _install(app_paths, ResourceKind.SKILL, "notes", NOTES)

        report = StatusService(paths=app_paths).collect()

        assert [(e.kind, e.name, e.state) for e in report.entries] == [
            (ResourceKind.MCP, "mine", EntryState.OK),
            (ResourceKind.SKILL, "notes", EntryState.OK),
        ]
        notes = _entry(report, "notes")
        assert notes.scope == Scope.PROJECT
        assert notes.resolved_version == "local"
        assert report.issues == 0

    def test_orphaned_entry(self, app_paths: AppPaths, local_skill: Path) -> None:
        _install(app_paths, ResourceKind.SKILL, "notes", NOTES)
        ManifestStore(paths=app_paths).remove_entry(Scope.PROJECT, ResourceKind.SKILL, "notes")

        report = StatusService(paths=app_paths).collect()

        assert _entry(report, "notes").state == EntryState.ORPHANED

    def test_stale_entry(self, app_paths: AppPaths, local_skill: Path) -> None:
        """A changed constraint makes the locked version stale."""
        _install(app_paths, ResourceKind.SKILL, "notes", NOTES)
        pinned = NOTES.model_copy(update={"version": "v2"})
        ManifestStore(paths=app_paths).set_entry(Scope.PROJECT, ResourceKind.SKILL, "notes", pinned)

        report = StatusService(paths=app_paths).collect()

        notes = _entry(report, "notes")
        assert notes.state == EntryState.STALE
        assert notes.constraint == "v2"

    def test_scope_filter(self, app_paths: AppPaths, local_skill: Path) -> None:
        _install(app_paths, ResourceKind.SKILL, "notes", NOTES)

        assert StatusService(paths=app_paths).collect(scope=Scope.GLOBAL).entries == []
        assert len(StatusService(paths=app_paths).collect(scope=Scope.PROJECT).entries) == 1


class TestVerify:
    """Tests for integrity checks."""

    def test_mcp_modified(self, app_paths: AppPaths) -> None:
        _install(app_paths, ResourceKind.MCP, "mine", SHELL_SERVER)
        service = StatusService(paths=app_paths)

        deployments = _entry(service.collect(verify=True), "mine").deployments
        assert [(d.client_id, d.integrity) for d in deployments] == [
            ("claude-code", McpIntegrity.OK)
        ]

        mcp_path = app_paths.project_root / ".mcp.json"
        data = json.loads(mcp_path.read_text())
        data["mcpServers"]["mine"]["args"] = ["--changed"]
        mcp_path.write_text(json.dumps(data))

        report = service.collect(verify=True)
        assert _entry(report, "mine").deployments[0].integrity == McpIntegrity.MODIFIED
        assert report.issues == 1

    def test_mcp_missing(self, app_paths: AppPaths) -> None:
        _install(app_paths, ResourceKind.MCP, "mine", SHELL_SERVER)
        (app_paths.project_root / ".mcp.json").write_text('{"mcpServers": {}}')

        report = StatusService(paths=app_paths).collect(verify=True)

        assert _entry(report, "mine").deployments[0].integrity == McpIntegrity.MISSING

    def test_skill_modified_and_removed(self, app_paths: AppPaths, local_skill: Path) -> None:
        _install(app_paths, ResourceKind.SKILL, "notes", NOTES)
        service = StatusService(paths=app_paths)
        dst = app_paths.project_root / ".claude" / "skills" / "notes"

        assert _entry(service.collect(verify=True), "notes").deployments[0].integrity == (
            SkillIntegrity.INSTALLED
        )

        (dst / "extra.md").write_text("extra\n")
        assert _entry(service.collect(verify=True), "notes").deployments[0].integrity == (
            SkillIntegrity.MODIFIED
        )

        for child in dst.iterdir():
            child.unlink()
        dst.rmdir()
        assert _entry(service.collect(verify=True), "notes").deployments[0].integrity == (
            SkillIntegrity.NOT_FOUND
        )
