"""Tests for git source parsing."""

import pytest

from sift.errors import ConfigValidationError
from sift.models.source import GitSpec, RegistryMetadata, validate_subdir


class TestGitSpecParse:
    """Tests for GitSpec.parse."""

    def test_github_repo(self) -> None:
        """github:org/repo expands to a GitHub clone URL."""
        spec = GitSpec.parse("github:org/repo")
        assert spec.repo_url == "https://github.com/org/repo"
        assert spec.ref is None
        assert spec.subdir is None

    def test_github_ref_and_subdir(self) -> None:
        """The segment after @ is the ref and the rest is the subdirectory."""
        spec = GitSpec.parse("github:org/repo@v1.0/skills/docs")
        assert spec.ref == "v1.0"
        assert spec.subdir == "skills/docs"

    def test_github_subdir_without_ref(self) -> None:
        """Extra path segments without @ are a subdirectory."""
        spec = GitSpec.parse("github:org/repo/skills/docs")
        assert spec.ref is None
        assert spec.subdir == "skills/docs"

    def test_github_requires_org_and_repo(self) -> None:
        """A single segment is not a repository."""
        with pytest.raises(ConfigValidationError, match="org/repo"):
            GitSpec.parse("github:org")

    def test_git_url_with_fragment_ref(self) -> None:
        """#ref selects a ref on plain git URLs."""
        spec = GitSpec.parse("git:https://example.com/repo.git#develop")
        assert spec.repo_url == "https://example.com/repo.git"
        assert spec.ref == "develop"

    def test_fragment_with_ref_prefix(self) -> None:
        """#ref=<ref> is accepted as well."""
        assert GitSpec.parse("git:https://example.com/repo.git#ref=v2").ref == "v2"

    def test_tree_url(self) -> None:
        """Browser URLs carry the ref and path after /tree/."""
        spec = GitSpec.parse("https://github.com/org/repo/tree/main/skills/docs")
        assert spec.repo_url == "https://github.com/org/repo"
        assert spec.ref == "main"
        assert spec.subdir == "skills/docs"

    def test_tree_url_requires_path(self) -> None:
        """A /tree/<ref> URL with no path is rejected."""
        with pytest.raises(ConfigValidationError, match="/tree/"):
            GitSpec.parse("https://github.com/org/repo/tree/main")

    def test_file_url(self) -> None:
        """Local file URLs work with the git: prefix."""
        spec = GitSpec.parse("git:file:///srv/repos/skills/tree/main/docs")
        assert spec.repo_url == "file:///srv/repos/skills"
        assert spec.subdir == "docs"

    def test_display(self) -> None:
        """display() renders url@ref/subdir."""
        spec = GitSpec(repo_url="https://example.com/r", ref="main", subdir="docs")
        assert spec.display() == "https://example.com/r@main/docs"


class TestValidateSubdir:
    """Tests for subdirectory validation."""

    def test_strips_slashes(self) -> None:
        assert validate_subdir("skills/docs/") == "skills/docs"

    @pytest.mark.parametrize("subdir", ["/etc", "../outside", "skills/../../x"])
    def test_rejects_escaping_paths(self, subdir: str) -> None:
        """Absolute paths and .. segments are rejected."""
        with pytest.raises(ConfigValidationError):
            validate_subdir(subdir)


class TestRegistryMetadata:
    """Tests for RegistryMetadata.to_origin."""

    def test_to_origin_copies_fields(self) -> None:
        meta = RegistryMetadata(
            original_source="registry:market/foo",
            registry_key="market",
            plugin_name="foo",
            version="1.2.0",
            aliases=["foo-extra"],
        )
        origin = meta.to_origin()
        assert origin.registry_key == "market"
        assert origin.registry_version == "1.2.0"
        assert origin.aliases == ["foo-extra"]
