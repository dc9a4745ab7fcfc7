"""
System prompt composition and transient mode reminders.
"""

import logging
from typing import Any

from config.agent_config import Mode
from config.main_config import SkillsConfig
from core.models import Message, TextPart
from plugins.models import PluginHooks

from .prompts import (
    BUILD_SWITCH_PROMPT,
    EXTERNAL_PATHS_DISABLED_REMINDER,
    EXTERNAL_PATHS_ENABLED_REMINDER,
    PLAN_PROMPT,
)
from .skills import SkillCatalog, render_skills_section

logger = logging.getLogger(__name__)


def wrap_system_reminder(text: str) -> str:
    trimmed = (text or "").strip()
    if not trimmed:
        return ""
    return f"<system-reminder>\n{trimmed}\n</system-reminder>"


def insert_mode_reminders(
    history: list[Message],
    mode: Mode,
    allow_external_paths: bool | None = None,
) -> list[Message]:
    """
    Append reminder text parts to the last user message.

    The input list and its messages are left untouched; the last user
    message is replaced by a copy. Reminders: the plan prompt in plan mode,
    the build switch notice when an earlier assistant turn ran in plan mode
    and the mode is now build, and the external paths setting when known.

    Args:
        history: Model-view history
        mode: Current mode
        allow_external_paths: External path setting, or None to omit

    Returns:
        A new list with the reminders applied
    """
    last_user = next(
        (index for index in range(len(history) - 1, -1, -1) if history[index].role == "user"),
        None,
    )
    if last_user is None:
        return history

    additions: list[str] = []
    if mode == "plan":
        additions.append(wrap_system_reminder(PLAN_PROMPT))

    was_plan = any(
        message.role == "assistant" and message.metadata.mode == "plan" for message in history
    )
    if was_plan and mode == "build":
        additions.append(wrap_system_reminder(BUILD_SWITCH_PROMPT))

    if allow_external_paths is not None:
        additions.append(
            wrap_system_reminder(
                EXTERNAL_PATHS_ENABLED_REMINDER if allow_external_paths else EXTERNAL_PATHS_DISABLED_REMINDER
            )
        )

    if not additions:
        return history

    updated = list(history)
    target = history[last_user].model_copy(deep=True)
    target.parts.extend(TextPart(text=text) for text in additions)
    updated[last_user] = target
    return updated


class PromptComposer:
    """Builds the system prompt entries for a model call.

    The first entry is the base prompt followed by the skills section. The
    ``experimental.chat.system.transform`` hook may rewrite the list.
    """

    def __init__(
        self,
        plugins: PluginHooks,
        skills: SkillCatalog | None = None,
        skills_config: SkillsConfig | None = None,
        workspace_root: str | None = None,
    ):
        self.plugins = plugins
        self.skills = skills
        self.skills_config = skills_config or SkillsConfig()
        self.workspace_root = workspace_root

    def skills_section(self) -> str | None:
        if self.skills is None or not self.skills_config.enabled:
            return None
        try:
            available = self.skills.list_skills()
        except OSError as e:
            logger.warning("Failed to list skills: %s", e)
            return None
        return render_skills_section(available, self.skills_config.max_prompt_skills, self.workspace_root)

    async def compose(
        self,
        base_prompt: str,
        *,
        session_id: str | None,
        mode: Mode,
        model_id: str,
    ) -> list[str]:
        """
        Compose the system prompt entries.

        Args:
            base_prompt: Configured system prompt
            session_id: Session the call belongs to
            mode: Current mode
            model_id: Model being called

        Returns:
            Non-empty list of system prompt strings
        """
        header = "\n".join(text for text in (base_prompt, self.skills_section()) if text)
        system = [header] if header else []

        output: dict[str, Any] = await self.plugins.trigger(
            "experimental.chat.system.transform",
            {"session_id": session_id, "mode": mode, "model_id": model_id},
            {"system": system},
        )
        transformed = output.get("system") if isinstance(output, dict) else None
        if isinstance(transformed, list):
            system = [entry for entry in transformed if isinstance(entry, str) and entry]

        if not system:
            system = [header]
        if len(system) > 2 and system[0] == header:
            system = [header, "\n".join(system[1:])]
        return system
