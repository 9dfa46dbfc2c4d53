"""Tests for three-layer manifest merging."""

from pathlib import Path

from sift.models.config import (
    McpEntry,
    McpOverride,
    ProjectOverride,
    RegistryEntry,
    SiftConfig,
    SkillEntry,
    SkillOverride,
    Transport,
)
from sift.services.merge import merge_configs, merge_mcp_entry, merge_skill_entry

PROJECT = Path("/work/app")


class TestMergeMcpEntry:
    """Tests for field-level MCP merging."""

    def test_pinned_runtime_survives_default(self) -> None:
        """A layer stating the default runtime does not unpin the base."""
        base = McpEntry(source="registry:foo", runtime="python")
        merge_mcp_entry(base, McpEntry(source="registry:foo", runtime="node"), "foo")
        assert base.runtime == "python"

    def test_incompatible_runtime_warns(self) -> None:
        warnings: list[str] = []
        base = McpEntry(source="registry:foo", runtime="python")
        merge_mcp_entry(base, McpEntry(runtime="docker"), "foo", warnings)
        assert base.runtime == "docker"
        assert warnings == ["MCP 'foo': runtime changed from python to docker"]

    def test_node_and_bun_are_compatible(self) -> None:
        warnings: list[str] = []
        base = McpEntry(source="registry:foo", runtime="node")
        merge_mcp_entry(base, McpEntry(runtime="bun"), "foo", warnings)
        assert base.runtime == "bun"
        assert warnings == []

    def test_transport_mismatch_warns(self) -> None:
        warnings: list[str] = []
        base = McpEntry(transport=Transport.STDIO, source="registry:foo")
        merge_mcp_entry(base, McpEntry(transport=Transport.HTTP, url="https://x"), "foo", warnings)
        assert base.transport == Transport.HTTP
        assert "transport changed" in warnings[0]

    def test_env_and_headers_merge_by_key(self) -> None:
        base = McpEntry(source="registry:foo", env={"A": "1", "B": "2"}, headers={"X": "1"})
        merge_mcp_entry(base, McpEntry(env={"B": "3"}, headers={"Y": "2"}))
        assert base.env == {"A": "1", "B": "3"}
        assert base.headers == {"X": "1", "Y": "2"}

    def test_empty_overlay_fields_keep_base(self) -> None:
        base = McpEntry(source="registry:foo", args=["--flag"])
        merge_mcp_entry(base, McpEntry())
        assert base.source == "registry:foo"
        assert base.args == ["--flag"]

    def test_reset_env(self) -> None:
        base = McpEntry(source="registry:foo", env={"A": "1", "B": "2"})
        merge_mcp_entry(base, McpEntry(reset_env=["A"]))
        assert base.env == {"B": "2"}

    def test_reset_env_all_then_set(self) -> None:
        base = McpEntry(source="registry:foo", env={"A": "1"})
        merge_mcp_entry(base, McpEntry(reset_env_all=True))
        assert base.env == {}

    def test_reset_targets(self) -> None:
        base = McpEntry(source="registry:foo", targets=["vscode"])
        merge_mcp_entry(base, McpEntry(reset_targets=True))
        assert base.targets is None


class TestMergeSkillEntry:
    """Tests for skill merging."""

    def test_pinned_version_survives_latest(self) -> None:
        base = SkillEntry(source="registry:docs", version="v1")
        merge_skill_entry(base, SkillEntry(version="latest"))
        assert base.version == "v1"

    def test_overlay_pin_wins(self) -> None:
        base = SkillEntry(source="registry:docs", version="v1")
        merge_skill_entry(base, SkillEntry(version="v2"))
        assert base.version == "v2"

    def test_reset_version(self) -> None:
        base = SkillEntry(source="registry:docs", version="v1")
        merge_skill_entry(base, SkillEntry(reset_version=True))
        assert base.version is None


class TestMergeConfigs:
    """Tests for merging whole manifests."""

    def test_project_layer_adds_and_overrides(self) -> None:
        global_config = SiftConfig(
            mcp={"foo": McpEntry(source="registry:foo", env={"A": "1"})},
            skill={"docs": SkillEntry(source="registry:docs")},
        )
        project_config = SiftConfig(
            mcp={
                "foo": McpEntry(env={"B": "2"}),
                "bar": McpEntry(source="registry:bar"),
            }
        )

        merged, warnings = merge_configs(global_config, project_config, PROJECT)

        assert set(merged.mcp) == {"foo", "bar"}
        assert merged.mcp["foo"].env == {"A": "1", "B": "2"}
        assert "docs" in merged.skill
        assert warnings == []

    def test_inputs_are_not_modified(self) -> None:
        global_config = SiftConfig(mcp={"foo": McpEntry(source="registry:foo")})
        project_config = SiftConfig(mcp={"foo": McpEntry(env={"B": "2"})})

        merge_configs(global_config, project_config, PROJECT)

        assert global_config.mcp["foo"].env == {}

    def test_local_section_applies_last(self) -> None:
        global_config = SiftConfig(
            mcp={"foo": McpEntry(source="registry:foo")},
            projects={
                "/work": ProjectOverride(
                    mcp={"local-only": McpEntry(source="local:/bin/x")},
                    mcp_overrides={"foo": McpOverride(runtime="python", env={"K": "v"})},
                    skill_overrides={"docs": SkillOverride(version="v3")},
                )
            },
        )
        project_config = SiftConfig(
            mcp={"foo": McpEntry(runtime="docker")},
            skill={"docs": SkillEntry(source="registry:docs")},
        )

        merged, _ = merge_configs(global_config, project_config, PROJECT)

        assert "local-only" in merged.mcp
        assert merged.mcp["foo"].runtime == "python"
        assert merged.mcp["foo"].env == {"K": "v"}
        assert merged.skill["docs"].version == "v3"
        assert merged.projects == {}

    def test_unrelated_project_section_is_ignored(self) -> None:
        global_config = SiftConfig(
            projects={"/elsewhere": ProjectOverride(mcp={"x": McpEntry(source="registry:x")})}
        )
        merged, _ = merge_configs(global_config, None, PROJECT)
        assert merged.mcp == {}

    def test_projects_in_project_manifest_warns(self) -> None:
        project_config = SiftConfig(projects={"/work/app": ProjectOverride()})
        _, warnings = merge_configs(None, project_config, PROJECT)
        assert any("[projects]" in warning for warning in warnings)

    def test_first_registry_definition_wins(self) -> None:
        global_config = SiftConfig(registry={"main": RegistryEntry(url="https://a")})
        project_config = SiftConfig(registry={"main": RegistryEntry(url="https://b")})

        merged, _ = merge_configs(global_config, project_config, PROJECT)

        assert merged.registry["main"].url == "https://a"

    def test_merging_merged_view_again_changes_nothing(self) -> None:
        """Re-merging the global manifest over a merged view is stable."""
        global_config = SiftConfig(
            mcp={
                "foo": McpEntry(source="registry:foo", runtime="python", env={"A": "1"}),
                "plain": McpEntry(source="registry:plain"),
            },
            skill={"docs": SkillEntry(source="registry:docs", version="v1")},
            registry={"main": RegistryEntry(url="https://a")},
            projects={
                "/work": ProjectOverride(
                    mcp={"local-only": McpEntry(source="local:/bin/x", runtime="shell")},
                    mcp_overrides={"plain": McpOverride(runtime="docker", env={"K": "v"})},
                    skill_overrides={"notes": SkillOverride(version="v3")},
                )
            },
        )
        project_config = SiftConfig(
            mcp={
                "foo": McpEntry(runtime="node", env={"B": "2"}),
                "bar": McpEntry(source="registry:bar", transport=Transport.HTTP, url="https://x"),
            },
            skill={
                "docs": SkillEntry(version="latest"),
                "notes": SkillEntry(source="registry:notes"),
            },
            registry={"main": RegistryEntry(url="https://b")},
        )

        once, _ = merge_configs(global_config, project_config, PROJECT)
        twice, _ = merge_configs(global_config, once, PROJECT)

        assert twice == once
        assert once.mcp["foo"].runtime == "python"
        assert once.mcp["plain"].runtime == "docker"
        assert once.skill["docs"].version == "v1"
        assert once.skill["notes"].version == "v3"
