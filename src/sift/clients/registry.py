"""The fixed set of client adapters and target selection."""

from sift.clients.amp import AmpClient
from sift.clients.base import ClientAdapter
from sift.clients.claude_code import ClaudeCodeClient
from sift.clients.codex import CodexClient
from sift.clients.droid import DroidClient
from sift.clients.gemini_cli import GeminiCliClient
from sift.clients.opencode import OpenCodeClient
from sift.clients.vscode import VSCodeClient
from sift.errors import ConfigValidationError
from sift.models.config import ClientEntry


class ClientRegistry:
    """Ordered collection of client adapters.

    Args:
        adapters: Adapters in the order they are configured.
    """

    def __init__(self, adapters: list[ClientAdapter]) -> None:
        self._adapters = list(adapters)

    @classmethod
    def default(cls) -> "ClientRegistry":
        return cls(
            [
                ClaudeCodeClient(),
                VSCodeClient(),
                AmpClient(),
                CodexClient(),
                DroidClient(),
                GeminiCliClient(),
                OpenCodeClient(),
            ]
        )

    def __iter__(self):
        return iter(self._adapters)

    def ids(self) -> list[str]:
        return [adapter.id for adapter in self._adapters]

    def get(self, client_id: str) -> ClientAdapter:
        """Look up an adapter by id.

        Raises:
            ConfigValidationError: If no adapter has that id.
        """
        for adapter in self._adapters:
            if adapter.id == client_id:
                return adapter
        raise ConfigValidationError(
            f"Unknown client '{client_id}'. Expected one of: {', '.join(self.ids())}"
        )

    def applicable_clients(
        self,
        targets: list[str] | None = None,
        ignore_targets: list[str] | None = None,
        clients: dict[str, ClientEntry] | None = None,
    ) -> list[ClientAdapter]:
        """Adapters an entry should be configured for.

        ``targets`` (when set) is a whitelist; otherwise ``ignore_targets``
        is a blacklist. Clients disabled in the manifest are always left out.

        Args:
            targets: Client ids to restrict to.
            ignore_targets: Client ids to exclude.
            clients: Per-client settings from the manifest.

        Returns:
            Matching adapters in registry order.
        """
        for client_id in [*(targets or []), *(ignore_targets or [])]:
            self.get(client_id)

        settings = clients or {}
        selected: list[ClientAdapter] = []
        for adapter in self._adapters:
            entry = settings.get(adapter.id)
            if entry is not None and not entry.enabled:
                continue
            if targets is not None:
                if adapter.id in targets:
                    selected.append(adapter)
            elif ignore_targets is None or adapter.id not in ignore_targets:
                selected.append(adapter)
        return selected
