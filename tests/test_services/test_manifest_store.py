"""Tests for ManifestStore."""

import pytest

from sift.errors import ConfigParseError, ConfigValidationError
from sift.models.config import McpEntry, SkillEntry
from sift.models.scope import ResourceKind, Scope
from sift.services.manifest_store import ManifestStore
from sift.services.paths import AppPaths


class TestManifestStore:
    """Tests for per-scope manifest access."""

    def test_missing_manifest_is_empty(self, app_paths: AppPaths) -> None:
        store = ManifestStore(paths=app_paths)
        assert store.load(Scope.PROJECT).mcp == {}
        assert store.entries(Scope.GLOBAL, ResourceKind.SKILL) == {}

    def test_project_entry_goes_to_project_manifest(self, app_paths: AppPaths) -> None:
        store = ManifestStore(paths=app_paths)

        store.set_entry(Scope.PROJECT, ResourceKind.MCP, "foo", McpEntry(source="registry:foo"))

        content = (app_paths.project_root / "sift.toml").read_text()
        assert "[mcp.foo]" in content
        assert not app_paths.global_manifest_path.exists()

    def test_local_entry_goes_to_project_section(self, app_paths: AppPaths) -> None:
        """Local entries live under projects."<root>" of the global manifest."""
        store = ManifestStore(paths=app_paths)

        store.set_entry(Scope.LOCAL, ResourceKind.SKILL, "docs", SkillEntry(source="local:./docs"))

        config = store.load(Scope.GLOBAL)
        assert config.skill == {}
        assert "docs" in config.projects[app_paths.project_key].skill
        assert store.get_entry(Scope.LOCAL, ResourceKind.SKILL, "docs") is not None
        assert store.get_entry(Scope.GLOBAL, ResourceKind.SKILL, "docs") is None

    def test_set_entry_keeps_other_entries(self, app_paths: AppPaths) -> None:
        store = ManifestStore(paths=app_paths)
        store.set_entry(Scope.GLOBAL, ResourceKind.MCP, "a", McpEntry(source="registry:a"))
        store.set_entry(Scope.GLOBAL, ResourceKind.MCP, "b", McpEntry(source="registry:b"))

        assert sorted(store.entries(Scope.GLOBAL, ResourceKind.MCP)) == ["a", "b"]

    def test_remove_entry(self, app_paths: AppPaths) -> None:
        store = ManifestStore(paths=app_paths)
        store.set_entry(Scope.PROJECT, ResourceKind.MCP, "foo", McpEntry(source="registry:foo"))

        assert store.remove_entry(Scope.PROJECT, ResourceKind.MCP, "foo") is True
        assert store.remove_entry(Scope.PROJECT, ResourceKind.MCP, "foo") is False

    def test_removing_last_local_entry_drops_section(self, app_paths: AppPaths) -> None:
        store = ManifestStore(paths=app_paths)
        store.set_entry(Scope.LOCAL, ResourceKind.MCP, "foo", McpEntry(source="registry:foo"))

        store.remove_entry(Scope.LOCAL, ResourceKind.MCP, "foo")

        assert store.load(Scope.GLOBAL).projects == {}

    def test_load_merged_applies_local_section(self, app_paths: AppPaths) -> None:
        store = ManifestStore(paths=app_paths)
        store.set_entry(Scope.GLOBAL, ResourceKind.MCP, "g", McpEntry(source="registry:g"))
        store.set_entry(Scope.PROJECT, ResourceKind.MCP, "p", McpEntry(source="registry:p"))
        store.set_entry(Scope.LOCAL, ResourceKind.MCP, "l", McpEntry(source="registry:l"))

        merged, warnings = store.load_merged()

        assert sorted(merged.mcp) == ["g", "l", "p"]
        assert warnings == []

    def test_invalid_entry_names_the_file(self, app_paths: AppPaths) -> None:
        app_paths.project_manifest_path.write_text('[mcp.foo]\nsource = "foo"\n')
        store = ManifestStore(paths=app_paths)

        with pytest.raises(ConfigValidationError, match="sift.toml"):
            store.load(Scope.PROJECT)

    def test_invalid_toml(self, app_paths: AppPaths) -> None:
        app_paths.project_manifest_path.write_text("[mcp.foo\n")
        store = ManifestStore(paths=app_paths)

        with pytest.raises(ConfigParseError):
            store.load(Scope.PROJECT)
