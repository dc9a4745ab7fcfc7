"""
Subagent registry for the task tool.

Each subagent type is a profile: a description shown to the parent model,
extra system prompt text appended to the base prompt, and an optional tool
allow-list applied as the child's ``tool_filter``.
"""

from __future__ import annotations

from dataclasses import dataclass

GENERAL = "general"
EXPLORE = "explore"

# Only subagent type the task tool may spawn from plan mode
PLAN_MODE_SUBAGENT = EXPLORE


@dataclass(frozen=True)
class SubagentDefinition:
    """Configuration for a subagent type."""

    name: str
    description: str
    prompt: str
    tool_filter: tuple[str, ...] | None = None


BUILTIN_SUBAGENTS: dict[str, SubagentDefinition] = {
    GENERAL: SubagentDefinition(
        name=GENERAL,
        description=(
            "General-purpose agent for complex, multi-step tasks. "
            "Use it to delegate a longer workflow."
        ),
        prompt="""You are a subagent (general).

- Complete the given subtask end-to-end.
- State your assumptions and what you are handing back to the parent.
- Use tools as needed, but keep your output concise.

Return a single final answer to the parent agent.""",
    ),
    EXPLORE: SubagentDefinition(
        name=EXPLORE,
        description=(
            "Fast, read-only agent for exploring a workspace: list files, grep, "
            "read small snippets and summarize findings."
        ),
        prompt="""You are a subagent (explore).

- Read-only exploration: do not write or edit files.
- Prefer list/glob/grep/read/read_range and summarize what you find.
- If code needs to change, report back to the parent instead of editing.

Return a single final answer to the parent agent.""",
        tool_filter=(
            "list",
            "glob",
            "grep",
            "read",
            "read_range",
            "lsp",
            "symbols_search",
            "symbols_peek",
            "skill",
            "workspace",
        ),
    ),
}


def resolve_subagent(name: str) -> SubagentDefinition | None:
    """
    Look up a subagent type, ignoring case and surrounding whitespace.

    Args:
        name: Subagent type name

    Returns:
        The definition or None if not found
    """
    return BUILTIN_SUBAGENTS.get((name or "").strip().lower())


def list_subagents() -> list[SubagentDefinition]:
    """
    List all subagent types.

    Returns:
        Definitions in registration order
    """
    return list(BUILTIN_SUBAGENTS.values())


def list_subagent_names() -> list[str]:
    return list(BUILTIN_SUBAGENTS.keys())
