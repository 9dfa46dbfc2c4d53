"""Sift utilities."""

from sift.utils.console import (
    console,
    create_spinner,
    print_client_result,
    print_error,
    print_success,
    print_warning,
)
from sift.utils.files import (
    atomic_write,
    get_project_root,
    is_pid_alive,
    remove_path,
)

__all__ = [
    "atomic_write",
    "console",
    "create_spinner",
    "get_project_root",
    "is_pid_alive",
    "print_client_result",
    "print_error",
    "print_success",
    "print_warning",
    "remove_path",
]
