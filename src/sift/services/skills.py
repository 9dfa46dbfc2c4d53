"""Skill directory inspection.

A skill is a directory holding a ``SKILL.md`` whose YAML frontmatter names
and describes it.
"""

import logging
import re
from pathlib import Path

import yaml
from pydantic import BaseModel, ConfigDict

logger = logging.getLogger(__name__)

SKILL_FILENAME = "SKILL.md"

_FRONTMATTER_PATTERN = re.compile(r"^---\s*\n(.*?)\n---", re.DOTALL)


class SkillInfo(BaseModel):
    """Information about a validated skill.

    Attributes:
        name: The skill name from frontmatter.
        description: The skill description from frontmatter.
        path: Path to the skill directory.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    name: str
    description: str
    path: Path


def parse_frontmatter(content: str) -> dict[str, object] | None:
    """Parse YAML frontmatter from a markdown file.

    Args:
        content: The full content of the markdown file.

    Returns:
        The frontmatter mapping, or None if there is no valid frontmatter.
    """
    match = _FRONTMATTER_PATTERN.match(content)
    if not match:
        return None

    try:
        data = yaml.safe_load(match.group(1))
    except yaml.YAMLError as e:
        logger.debug(f"Invalid SKILL.md frontmatter: {e}")
        return None

    return data if isinstance(data, dict) else None


def is_valid_skill_dir(path: Path) -> bool:
    """Return True if the directory contains a SKILL.md file."""
    return (path / SKILL_FILENAME).is_file()


def read_skill_info(path: Path) -> SkillInfo | None:
    """Read name and description of the skill at ``path``.

    Returns:
        SkillInfo, or None if SKILL.md is missing or lacks a name or
        description.
    """
    skill_md = path / SKILL_FILENAME
    if not skill_md.is_file():
        return None

    try:
        content = skill_md.read_text(encoding="utf-8")
    except OSError:
        return None

    frontmatter = parse_frontmatter(content)
    if frontmatter is None:
        return None

    name = frontmatter.get("name")
    description = frontmatter.get("description")
    if not name or not description:
        return None

    return SkillInfo(name=str(name), description=str(description), path=path)
