"""Tests for ownership-aware client config edits."""

import json
import tomllib
from pathlib import Path

import pytest

from sift.errors import ConfigParseError, ConfigValidationError, OwnershipError
from sift.models.client import ConfigFormat
from sift.services.lockfile import LockfileService
from sift.services.managed_config import (
    ManagedConfigWriter,
    read_map_at_path,
    set_map_at_path,
)

SERVER = {"command": "npx", "args": ["-y", "foo-server"], "env": {}}


@pytest.fixture
def writer(tmp_path: Path) -> ManagedConfigWriter:
    return ManagedConfigWriter(lockfile=LockfileService(path=tmp_path / "p.lock.json"))


class TestMapHelpers:
    """Tests for nested key path helpers."""

    def test_read_missing_path_is_empty(self) -> None:
        assert read_map_at_path({"a": {}}, ["a", "b"]) == {}

    def test_read_rejects_non_mapping(self) -> None:
        with pytest.raises(ConfigValidationError, match="'a'"):
            read_map_at_path({"a": []}, ["a"])

    def test_read_rejects_empty_path(self) -> None:
        with pytest.raises(ConfigValidationError):
            read_map_at_path({}, [])

    def test_set_creates_parents(self) -> None:
        root: dict = {"keep": 1}
        set_map_at_path(root, ["projects", "/work", "mcpServers"], {"foo": 1})
        assert root == {"keep": 1, "projects": {"/work": {"mcpServers": {"foo": 1}}}}


class TestManagedConfigWriter:
    """Tests for ManagedConfigWriter.apply."""

    def test_creates_file_and_records_ownership(
        self, tmp_path: Path, writer: ManagedConfigWriter
    ) -> None:
        config = tmp_path / ".mcp.json"

        result = writer.apply(config, ["mcpServers"], ConfigFormat.JSON, upserts={"foo": SERVER})

        assert result.changed is True
        assert result.written == ["foo"]
        assert json.loads(config.read_text()) == {"mcpServers": {"foo": SERVER}}
        assert "foo" in writer.lockfile.load_ownership(config, ["mcpServers"])

    def test_preserves_unrelated_keys(self, tmp_path: Path, writer: ManagedConfigWriter) -> None:
        """Sibling keys and other servers survive an upsert."""
        config = tmp_path / ".claude.json"
        config.write_text(
            json.dumps({"theme": "dark", "mcpServers": {"mine": {"command": "x"}}})
        )

        writer.apply(config, ["mcpServers"], ConfigFormat.JSON, upserts={"foo": SERVER})

        data = json.loads(config.read_text())
        assert data["theme"] == "dark"
        assert data["mcpServers"]["mine"] == {"command": "x"}
        assert data["mcpServers"]["foo"] == SERVER

    def test_repeated_apply_does_not_rewrite(
        self, tmp_path: Path, writer: ManagedConfigWriter
    ) -> None:
        config = tmp_path / ".mcp.json"
        writer.apply(config, ["mcpServers"], ConfigFormat.JSON, upserts={"foo": SERVER})
        before = config.read_bytes()

        result = writer.apply(config, ["mcpServers"], ConfigFormat.JSON, upserts={"foo": SERVER})

        assert result.changed is False
        assert config.read_bytes() == before

    def test_refuses_to_overwrite_unmanaged_entry(
        self, tmp_path: Path, writer: ManagedConfigWriter
    ) -> None:
        config = tmp_path / ".mcp.json"
        config.write_text(json.dumps({"mcpServers": {"foo": {"command": "mine"}}}))

        with pytest.raises(OwnershipError, match="not managed by Sift"):
            writer.apply(config, ["mcpServers"], ConfigFormat.JSON, upserts={"foo": SERVER})

    def test_equal_unmanaged_entry_is_not_taken_over(
        self, tmp_path: Path, writer: ManagedConfigWriter
    ) -> None:
        """An entry someone else wrote stays theirs even when it matches ours."""
        config = tmp_path / ".mcp.json"
        config.write_text(json.dumps({"mcpServers": {"foo": SERVER}}))
        before = config.read_bytes()

        with pytest.raises(OwnershipError, match="not managed by Sift"):
            writer.apply(config, ["mcpServers"], ConfigFormat.JSON, upserts={"foo": SERVER})

        assert config.read_bytes() == before
        assert writer.lockfile.load_ownership(config, ["mcpServers"]) == {}

    def test_force_takes_over_equal_entry(
        self, tmp_path: Path, writer: ManagedConfigWriter
    ) -> None:
        config = tmp_path / ".mcp.json"
        config.write_text(json.dumps({"mcpServers": {"foo": SERVER}}))

        writer.apply(
            config, ["mcpServers"], ConfigFormat.JSON, upserts={"foo": SERVER}, force=True
        )

        assert "foo" in writer.lockfile.load_ownership(config, ["mcpServers"])

    def test_refuses_to_overwrite_user_modified_entry(
        self, tmp_path: Path, writer: ManagedConfigWriter
    ) -> None:
        config = tmp_path / ".mcp.json"
        writer.apply(config, ["mcpServers"], ConfigFormat.JSON, upserts={"foo": SERVER})
        config.write_text(json.dumps({"mcpServers": {"foo": {"command": "edited"}}}))

        with pytest.raises(OwnershipError, match="user-modified"):
            writer.apply(
                config, ["mcpServers"], ConfigFormat.JSON, upserts={"foo": {"command": "new"}}
            )

    def test_force_overwrites(self, tmp_path: Path, writer: ManagedConfigWriter) -> None:
        config = tmp_path / ".mcp.json"
        config.write_text(json.dumps({"mcpServers": {"foo": {"command": "mine"}}}))

        writer.apply(
            config, ["mcpServers"], ConfigFormat.JSON, upserts={"foo": SERVER}, force=True
        )

        assert json.loads(config.read_text())["mcpServers"]["foo"] == SERVER

    def test_remove_owned_entry(self, tmp_path: Path, writer: ManagedConfigWriter) -> None:
        config = tmp_path / ".mcp.json"
        writer.apply(config, ["mcpServers"], ConfigFormat.JSON, upserts={"foo": SERVER})

        result = writer.apply(config, ["mcpServers"], ConfigFormat.JSON, removals=["foo"])

        assert result.removed == ["foo"]
        assert json.loads(config.read_text()) == {"mcpServers": {}}
        assert writer.lockfile.load_ownership(config, ["mcpServers"]) == {}

    def test_never_removes_unowned_entry(
        self, tmp_path: Path, writer: ManagedConfigWriter
    ) -> None:
        config = tmp_path / ".mcp.json"
        config.write_text(json.dumps({"mcpServers": {"mine": {"command": "x"}}}))

        result = writer.apply(config, ["mcpServers"], ConfigFormat.JSON, removals=["mine"])

        assert result.skipped == ["mine"]
        assert "mine" in json.loads(config.read_text())["mcpServers"]

    def test_refuses_to_remove_user_modified_entry(
        self, tmp_path: Path, writer: ManagedConfigWriter
    ) -> None:
        config = tmp_path / ".mcp.json"
        writer.apply(config, ["mcpServers"], ConfigFormat.JSON, upserts={"foo": SERVER})
        config.write_text(json.dumps({"mcpServers": {"foo": {"command": "edited"}}}))

        with pytest.raises(OwnershipError, match="remove"):
            writer.apply(config, ["mcpServers"], ConfigFormat.JSON, removals=["foo"])

    def test_toml_file(self, tmp_path: Path, writer: ManagedConfigWriter) -> None:
        config = tmp_path / "config.toml"
        config.write_text('model = "o3"\n')

        writer.apply(config, ["mcp_servers"], ConfigFormat.TOML, upserts={"foo": SERVER})

        data = tomllib.loads(config.read_text())
        assert data["model"] == "o3"
        assert data["mcp_servers"]["foo"]["command"] == "npx"

    def test_invalid_json_is_parse_error(
        self, tmp_path: Path, writer: ManagedConfigWriter
    ) -> None:
        config = tmp_path / ".mcp.json"
        config.write_text("{broken")

        with pytest.raises(ConfigParseError):
            writer.apply(config, ["mcpServers"], ConfigFormat.JSON, upserts={"foo": SERVER})
