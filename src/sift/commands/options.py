"""Option parsing shared by sift commands."""

from sift.errors import ConfigValidationError
from sift.models.scope import Scope

AUTO_SCOPE = "auto"
ALL_SCOPES = "all"


def parse_scope(value: str, allow_all: bool = False) -> Scope | None:
    """Parse a ``--scope`` value.

    Args:
        value: auto, global, shared, project, local (or all when allowed).
        allow_all: Whether ``all`` is accepted.

    Returns:
        The scope, or None for ``auto`` and ``all``.

    Raises:
        ConfigValidationError: If the value is not a known scope.
    """
    normalized = value.strip().lower()
    if normalized == AUTO_SCOPE or (allow_all and normalized == ALL_SCOPES):
        return None
    try:
        return Scope.parse(normalized)
    except ValueError:
        choices = "auto, global, shared, project, local" + (", all" if allow_all else "")
        raise ConfigValidationError(f"Invalid scope '{value}'. Expected one of: {choices}") from None


def parse_pairs(values: list[str] | None, option: str) -> dict[str, str]:
    """Parse repeated ``KEY=VALUE`` options into a dict.

    Raises:
        ConfigValidationError: If a value has no ``=`` or an empty key.
    """
    pairs: dict[str, str] = {}
    for item in values or []:
        key, sep, value = item.partition("=")
        if not sep or not key.strip():
            raise ConfigValidationError(f"Invalid {option} value '{item}': expected KEY=VALUE")
        pairs[key.strip()] = value
    return pairs
