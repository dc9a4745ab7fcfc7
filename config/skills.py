"""File-backed skill catalog.

Skills are markdown files with YAML frontmatter that define reusable
instruction sets. They are discovered under the configured skill paths
(workspace-relative or ``~``-prefixed) and looked up by name when a user
message mentions ``$skill-name``.
"""

import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import yaml

MAX_SKILL_NAME_LENGTH = 100
MAX_SKILL_DESCRIPTION_LENGTH = 500

_FRONTMATTER_RE = re.compile(r"^---\r?\n(.*?)\r?\n---\r?\n?(.*)$", re.DOTALL)

logger = logging.getLogger(__name__)


@dataclass
class Skill:
    """A named instruction set parsed from a markdown file."""

    name: str
    description: str
    content: str
    file_path: Path


def parse_skill_file(path: Path) -> Optional[Skill]:
    """
    Parse a skill file with YAML frontmatter.

    Args:
        path: Path to the skill file

    Returns:
        Skill object or None if parsing fails
    """
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as e:
        logger.warning("Failed to read skill file %s: %s", path, e)
        return None

    match = _FRONTMATTER_RE.match(content)
    if not match:
        logger.debug("Skill file %s missing YAML frontmatter", path)
        return None

    try:
        frontmatter = yaml.safe_load(match.group(1))
    except yaml.YAMLError as e:
        logger.warning("Invalid YAML frontmatter in %s: %s", path, e)
        return None

    if not isinstance(frontmatter, dict):
        logger.warning("Frontmatter in %s is not a dictionary", path)
        return None

    name = frontmatter.get("name")
    if not isinstance(name, str) or not name.strip() or len(name) > MAX_SKILL_NAME_LENGTH:
        logger.warning("Invalid skill name in %s: %s", path, name)
        return None

    description = frontmatter.get("description", "")
    if not isinstance(description, str):
        description = str(description)

    return Skill(
        name=name.strip(),
        description=description.strip()[:MAX_SKILL_DESCRIPTION_LENGTH],
        content=match.group(2).strip(),
        file_path=path,
    )


class SkillRegistry:
    """Discovers skills under a list of search paths.

    The first skill found for a name wins, so earlier paths shadow later ones.
    """

    def __init__(self, search_paths: list[str], workspace_root: str | None = None):
        self.workspace_root = Path(workspace_root or os.getcwd())
        self.search_paths = search_paths
        self._skills: dict[str, Skill] = {}
        self._loaded = False

    def _directories(self) -> list[Path]:
        directories: list[Path] = []
        for raw in self.search_paths:
            path = Path(os.path.expanduser(raw))
            if not path.is_absolute():
                path = self.workspace_root / path
            directories.append(path)
        return directories

    def load_skills(self) -> None:
        """Discover and load all skill files from the search paths."""
        self._skills.clear()

        for directory in self._directories():
            if not directory.is_dir():
                continue
            skill_files = sorted(directory.rglob("*.md"))
            logger.debug("Found %d skill file(s) in %s", len(skill_files), directory)
            for skill_file in skill_files:
                skill = parse_skill_file(skill_file)
                if skill and skill.name not in self._skills:
                    self._skills[skill.name] = skill

        logger.info("Loaded %d skill(s)", len(self._skills))
        self._loaded = True

    def _ensure_loaded(self) -> dict[str, Skill]:
        if not self._loaded:
            self.load_skills()
        return self._skills

    def get_skill(self, name: str) -> Optional[Skill]:
        return self._ensure_loaded().get(name)

    def list_skills(self) -> list[Skill]:
        """Skills in discovery order, loading them on first use."""
        return list(self._ensure_loaded().values())

    async def load_content(self, skill: Skill) -> str:
        """Skill body, re-read from disk so edits are picked up."""
        fresh = parse_skill_file(skill.file_path)
        return fresh.content if fresh else skill.content

    def reload(self) -> None:
        """Rescan the search paths."""
        logger.info("Rescanning skill paths")
        self.load_skills()
