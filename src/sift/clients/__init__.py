"""Client adapters for the LLM clients sift configures."""

from sift.clients.amp import AmpClient
from sift.clients.base import ClientAdapter, resolve_plan_path
from sift.clients.claude_code import ClaudeCodeClient
from sift.clients.codex import CodexClient
from sift.clients.droid import DroidClient
from sift.clients.gemini_cli import GeminiCliClient
from sift.clients.opencode import OpenCodeClient
from sift.clients.registry import ClientRegistry
from sift.clients.vscode import VSCodeClient

__all__ = [
    "AmpClient",
    "ClaudeCodeClient",
    "ClientAdapter",
    "ClientRegistry",
    "CodexClient",
    "DroidClient",
    "GeminiCliClient",
    "OpenCodeClient",
    "VSCodeClient",
    "resolve_plan_path",
]
