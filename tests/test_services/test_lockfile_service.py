"""Tests for LockfileService and the hashing helpers."""

from pathlib import Path

from sift.models.lockfile import LockedMcp
from sift.models.scope import Scope
from sift.services.lockfile import LockfileService, hash_json, ownership_key


def _locked(version: str = "1.0.0") -> LockedMcp:
    return LockedMcp(
        name="foo",
        resolved_version=version,
        constraint="latest",
        registry="market",
        scope=Scope.GLOBAL,
    )


class TestHashJson:
    """Tests for hash_json."""

    def test_key_order_does_not_matter(self) -> None:
        assert hash_json({"a": 1, "b": [1, 2]}) == hash_json({"b": [1, 2], "a": 1})

    def test_values_matter(self) -> None:
        assert hash_json({"a": 1}) != hash_json({"a": 2})


class TestOwnershipKey:
    """Tests for ownership_key."""

    def test_key_path_is_part_of_id(self) -> None:
        path = Path("/home/me/.claude.json")
        assert ownership_key(path, ["mcpServers"]) != ownership_key(
            path, ["projects", "/work", "mcpServers"]
        )

    def test_stable(self) -> None:
        path = Path("/home/me/.claude.json")
        assert ownership_key(path, ["mcpServers"]) == ownership_key(path, ("mcpServers",))


class TestLockfileService:
    """Tests for LockfileService."""

    def test_add_and_get_mcp(self, tmp_path: Path) -> None:
        service = LockfileService(path=tmp_path / "p.lock.json")

        assert service.add_mcp("foo", _locked()) is True
        assert service.get_mcp("foo") == _locked()

    def test_unchanged_add_does_not_rewrite(self, tmp_path: Path) -> None:
        """Recording the same entry twice leaves the file byte-identical."""
        path = tmp_path / "p.lock.json"
        service = LockfileService(path=path)
        service.add_mcp("foo", _locked())
        before = path.read_bytes()

        assert service.add_mcp("foo", _locked()) is False
        assert path.read_bytes() == before

    def test_remove_mcp(self, tmp_path: Path) -> None:
        service = LockfileService(path=tmp_path / "p.lock.json")
        service.add_mcp("foo", _locked())

        assert service.remove_mcp("foo") is True
        assert service.remove_mcp("foo") is False
        assert service.get_mcp("foo") is None

    def test_ownership_round_trip(self, tmp_path: Path) -> None:
        service = LockfileService(path=tmp_path / "p.lock.json")
        config = tmp_path / ".mcp.json"

        service.save_ownership(config, ["mcpServers"], {"b": "2", "a": "1"})

        assert service.load_ownership(config, ["mcpServers"]) == {"a": "1", "b": "2"}
        assert service.load_ownership(config, ["other"]) == {}

    def test_empty_ownership_table_is_dropped(self, tmp_path: Path) -> None:
        service = LockfileService(path=tmp_path / "p.lock.json")
        config = tmp_path / ".mcp.json"
        service.save_ownership(config, ["mcpServers"], {"a": "1"})

        service.save_ownership(config, ["mcpServers"], {})

        assert service.load().managed_configs == {}
