"""Sift CLI commands."""

from sift.commands.config_cmd import config
from sift.commands.install import install
from sift.commands.list_cmd import list_entries
from sift.commands.status import status
from sift.commands.uninstall import uninstall

__all__ = ["install", "uninstall", "status", "list_entries", "config"]
