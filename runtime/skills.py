"""
Skill selection and injection.

A user message that mentions ``$skill-name`` gets the matching skills'
instructions injected into history as one synthetic user message before it.
The injected message is flagged ``skill=True`` and removed again when the
run finishes, so skills never carry over to later turns implicitly.
"""

import logging
import os
import re
from typing import Any, Protocol, runtime_checkable

from config.main_config import SkillsConfig
from config.skills import Skill
from core.abort import AbortSignal
from core.constants import TRUNCATION_MARKER
from core.models import Message, Session, user_message

logger = logging.getLogger(__name__)

_MENTION_RE = re.compile(r"\$([A-Za-z0-9_](?:[A-Za-z0-9_.-]{0,126}[A-Za-z0-9_])?)")
_ENV_VAR_RE = re.compile(r"^[A-Z][A-Z0-9_]*$")

SKILLS_USAGE = "\n".join(
    [
        "- Trigger: when the user writes `$<skill-name>`, you MUST apply that skill for this turn.",
        "- The skill contents arrive as a `<skill>...</skill>` block in the conversation history.",
        "- When several skills are mentioned, apply ALL of them. Skills are additive.",
        "- Skills are listed in mention order. If their instructions conflict, say so and ask the user how to proceed.",
        "- Do not keep applying a skill in later turns unless it is mentioned again.",
        "- If a skill is missing or cannot be loaded, say so briefly and continue without it.",
    ]
)


@runtime_checkable
class SkillCatalog(Protocol):
    """Where skills come from. ``config.skills.SkillRegistry`` implements it."""

    def list_skills(self) -> list[Skill]: ...

    def get_skill(self, name: str) -> Skill | None: ...

    async def load_content(self, skill: Skill) -> str: ...


def extract_skill_mentions(text: str) -> list[str]:
    """
    Distinct ``$name`` mentions in order of first appearance.

    ALL_CAPS names such as ``$GITHUB_OUTPUT`` are treated as environment
    variables and ignored.
    """
    seen: list[str] = []
    for match in _MENTION_RE.finditer(text or ""):
        name = match.group(1)
        if _ENV_VAR_RE.match(name) or name in seen:
            continue
        seen.append(name)
    return seen


def select_skills_for_text(text: str, catalog: SkillCatalog) -> tuple[list[Skill], list[str]]:
    """
    Split mentions into known skills and unknown names.

    Returns:
        (selected skills, unknown names), both in mention order
    """
    selected: list[Skill] = []
    unknown: list[str] = []
    for name in extract_skill_mentions(text):
        skill = catalog.get_skill(name)
        if skill is None:
            unknown.append(name)
        else:
            selected.append(skill)
    return selected, unknown


def redact_path_for_prompt(path: Any, workspace_root: str | None) -> str:
    """Workspace-relative path when inside the root, ``~``-relative under home."""
    text = os.path.abspath(str(path))
    if workspace_root:
        root = os.path.abspath(workspace_root)
        if text == root or text.startswith(root + os.sep):
            return os.path.relpath(text, root).replace(os.sep, "/")
    home = os.path.expanduser("~")
    if text.startswith(home + os.sep):
        return "~/" + os.path.relpath(text, home).replace(os.sep, "/")
    return text.replace(os.sep, "/")


def render_skills_section(
    skills: list[Skill],
    max_skills: int,
    workspace_root: str | None = None,
) -> str | None:
    """
    System prompt section listing available skills.

    Args:
        skills: Catalog entries
        max_skills: How many to list; 0 disables the section
        workspace_root: Used to shorten file paths

    Returns:
        Markdown text, or None when disabled
    """
    if max_skills <= 0:
        return None

    shown = skills[:max_skills]
    remaining = len(skills) - len(shown)

    lines = [
        "## Skills",
        "A skill is a reusable set of local instructions stored in a markdown file. "
        "If the user mentions a skill (e.g. `$my-skill`), follow its instructions for that turn.",
        "### Available skills",
    ]
    if not shown:
        lines.append("- (none)")
    for skill in shown:
        label = f" (file: {redact_path_for_prompt(skill.file_path, workspace_root)})"
        lines.append(f"- {skill.name}: {skill.description}{label}")
    if remaining > 0:
        lines.append(f"- ... and {remaining} more (truncated)")
    lines.append("### How to use skills")
    lines.append(SKILLS_USAGE)
    return "\n".join(lines)


async def build_skill_injection(
    session: Session,
    text: str,
    catalog: SkillCatalog | None,
    config: SkillsConfig,
    workspace_root: str | None = None,
    signal: AbortSignal | None = None,
) -> Message | None:
    """
    Build the synthetic message carrying skills mentioned in ``text``.

    Selected skill names are recorded in ``session.mentioned_skills``.
    Skills whose content cannot be loaded are skipped.

    Returns:
        A user message flagged ``synthetic`` and ``skill``, or None when
        nothing was selected
    """
    if catalog is None or not config.enabled:
        return None
    if not extract_skill_mentions(text):
        return None

    selected, unknown = select_skills_for_text(text, catalog)
    if unknown:
        logger.debug("Unknown skill mention(s): %s", ", ".join(unknown))
    if not selected:
        return None

    chosen = selected[: config.max_inject_skills]
    active = ", ".join(f"${skill.name}" for skill in chosen)
    blocks = [
        "\n".join(
            [
                "<skills>",
                f"<active>{active}</active>",
                "You MUST apply ALL active skills for the next user request.",
                "Treat skill instructions as additive. If they conflict, call it out and ask "
                "the user how to proceed (do not ignore a skill silently).",
                "</skills>",
            ]
        )
    ]

    for skill in chosen:
        if signal is not None and signal.aborted:
            break
        if skill.name not in session.mentioned_skills:
            session.mentioned_skills.append(skill.name)
        try:
            body = await catalog.load_content(skill)
        except OSError as e:
            logger.warning("Failed to load skill %s: %s", skill.name, e)
            continue

        truncated = len(body) > config.max_inject_chars
        if truncated:
            body = body[: config.max_inject_chars]
        lines = [
            "<skill>",
            f"<name>{skill.name}</name>",
            f"<path>{redact_path_for_prompt(skill.file_path, workspace_root)}</path>",
            body.rstrip(),
        ]
        if truncated:
            lines.append(TRUNCATION_MARKER)
        lines.append("</skill>")
        blocks.append("\n".join(lines))

    return user_message("\n\n".join(blocks), synthetic=True, skill=True)


def strip_skill_messages(session: Session) -> None:
    """Drop injected skill messages from the session history."""
    session.history = [
        message
        for message in session.history
        if not (message.role == "user" and message.metadata.skill)
    ]
