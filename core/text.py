"""Helpers for cleaning model output text."""

import re

THINK_BLOCK_RE = re.compile(r"<think>[\s\S]*?</think>\s*|</?think>\s*", re.IGNORECASE)

TOOL_BLOCK_RE = re.compile(
    r"(<tool_call>[\s\S]*?</tool_call>\s*"
    r"|<tool_code>[\s\S]*?</tool_code>\s*"
    r"|<invoke>[\s\S]*?</invoke>\s*"
    r"|\[TOOL_CALL\][\s\S]*?\[/TOOL_CALL\]\s*)",
    re.IGNORECASE,
)

_NUMBERED_RE = re.compile(r"^\d+\.\s+\S")
_BULLET_RE = re.compile(r"^[-*•]\s+\S")
_BULLET_PREFIX_RE = re.compile(r"^[-*•]\s+")
_NUMBER_PREFIX_RE = re.compile(r"^\d+\.\s+")

MAX_PLAN_STEPS = 12
MAX_PLAN_BULLETS = 8
MAX_PLAN_QUESTIONS = 3


def strip_think_blocks(content: str) -> str:
    """Remove <think>...</think> sections and stray think tags."""
    return THINK_BLOCK_RE.sub("", content or "")


def strip_tool_blocks(content: str) -> str:
    """Remove tool-call markup some models emit as plain text."""
    return TOOL_BLOCK_RE.sub("", content or "")


def clean_assistant_text(content: str) -> str:
    """Visible assistant text: no think or tool markup, stripped."""
    return strip_tool_blocks(strip_think_blocks(content)).strip()


def extract_plan_from_reasoning(reasoning: str) -> str:
    """
    Recover a numbered plan from reasoning text.

    Used in plan mode when the model put its plan in reasoning and left the
    visible answer empty. Preference order: numbered lines, then bullet
    lines (renumbered), then trailing questions.

    Args:
        reasoning: Raw reasoning text

    Returns:
        A numbered list, or an empty string if nothing plan-like was found
    """
    cleaned = strip_tool_blocks(strip_think_blocks(reasoning or "")).replace("\r\n", "\n")
    lines = [line.strip() for line in cleaned.split("\n") if line.strip()]

    numbered = [line for line in lines if _NUMBERED_RE.match(line)]
    if numbered:
        return "\n".join(numbered[:MAX_PLAN_STEPS]).strip()

    bullets = [
        _BULLET_PREFIX_RE.sub("", line).strip() for line in lines if _BULLET_RE.match(line)
    ]
    bullets = [item for item in bullets if item]
    if bullets:
        return "\n".join(f"{i + 1}. {item}" for i, item in enumerate(bullets[:MAX_PLAN_BULLETS]))

    questions = [line for line in lines if line.rstrip().endswith("?")][:MAX_PLAN_QUESTIONS]
    if questions:
        return "\n".join(
            f"{i + 1}. {_NUMBER_PREFIX_RE.sub('', q)}" for i, q in enumerate(questions)
        )

    return ""
