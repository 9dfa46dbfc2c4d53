"""Loading, saving and editing sift.toml manifests per scope."""

import logging

from pydantic import BaseModel, ConfigDict

from sift.errors import ConfigValidationError, SiftIOError
from sift.models.config import McpEntry, ProjectOverride, SiftConfig, SkillEntry
from sift.models.scope import ResourceKind, Scope
from sift.services.merge import merge_configs
from sift.services.paths import AppPaths
from sift.utils.files import atomic_write

logger = logging.getLogger(__name__)

Entry = McpEntry | SkillEntry


class ManifestStore(BaseModel):
    """Reads and writes the manifest backing each scope.

    Global and local scopes share the global manifest; local entries live
    in its ``projects."<project root>"`` section. The project scope uses
    ``<project>/sift.toml``.

    Attributes:
        paths: Directory layout of the current invocation.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    paths: AppPaths

    def load(self, scope: Scope) -> SiftConfig:
        """Load the manifest file backing a scope.

        Args:
            scope: Scope whose file to read.

        Returns:
            The parsed manifest, or an empty one if the file does not exist.

        Raises:
            ConfigParseError: If the file is not valid TOML or schema.
            ConfigValidationError: If an entry violates an invariant.
        """
        path = self.paths.manifest_path(scope)
        if not path.exists():
            return SiftConfig()

        config = SiftConfig.from_toml(path.read_text(encoding="utf-8"), path)
        try:
            config.ensure_valid()
        except ConfigValidationError as e:
            raise ConfigValidationError(f"{path}: {e}") from e
        return config

    def save(self, scope: Scope, config: SiftConfig) -> None:
        """Atomically write the manifest file backing a scope.

        Raises:
            SiftIOError: If the file cannot be written.
        """
        path = self.paths.manifest_path(scope)
        try:
            atomic_write(path, config.to_toml())
        except OSError as e:
            raise SiftIOError(f"Failed to write manifest {path}: {e}") from e
        logger.info(f"Saved manifest {path}")

    def load_merged(self) -> tuple[SiftConfig, list[str]]:
        """Load the effective configuration for the current project.

        Returns:
            Tuple of (merged config, merge warnings).
        """
        global_config = self.load(Scope.GLOBAL)
        project_config = self.load(Scope.PROJECT)
        return merge_configs(global_config, project_config, self.paths.project_root)

    def project_manifest_exists(self) -> bool:
        return self.paths.project_manifest_path.exists()

    def get_entry(self, scope: Scope, kind: ResourceKind, name: str) -> Entry | None:
        """Return the entry declared at exactly this scope, if any."""
        return self._table(self.load(scope), scope, kind).get(name)

    def entries(self, scope: Scope, kind: ResourceKind) -> dict[str, Entry]:
        """Return every entry of one kind declared at exactly this scope."""
        return dict(self._table(self.load(scope), scope, kind))

    def set_entry(self, scope: Scope, kind: ResourceKind, name: str, entry: Entry) -> None:
        """Write one entry at a scope, leaving every other entry untouched."""
        config = self.load(scope)
        self._table(config, scope, kind, create=True)[name] = entry
        self.save(scope, config)

    def remove_entry(self, scope: Scope, kind: ResourceKind, name: str) -> bool:
        """Remove one entry from a scope.

        An emptied local project section is dropped from the global manifest.

        Returns:
            True if the entry existed and was removed.
        """
        config = self.load(scope)
        table = self._table(config, scope, kind)
        if name not in table:
            return False

        del table[name]
        if scope == Scope.LOCAL:
            key = self.paths.project_key
            override = config.projects.get(key)
            if override is not None and override.is_empty():
                del config.projects[key]

        self.save(scope, config)
        return True

    def _table(
        self, config: SiftConfig, scope: Scope, kind: ResourceKind, create: bool = False
    ) -> dict:
        if scope == Scope.LOCAL:
            key = self.paths.project_key
            override = config.projects.get(key)
            if override is None:
                override = ProjectOverride(path=key)
                if create:
                    config.projects[key] = override
            return override.mcp if kind == ResourceKind.MCP else override.skill

        return config.mcp if kind == ResourceKind.MCP else config.skill
