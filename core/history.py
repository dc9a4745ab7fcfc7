"""
History views and tool output pruning.

The session keeps its full history. What the model sees is derived from it:
only the messages since the last completed compaction, with old tool
outputs replaced by a placeholder once they have been marked as compacted.
"""

import json
import logging
import math
import time
from typing import Any

from config.compaction_config import CompactionConfig, ModelLimit

from .constants import CHARS_PER_TOKEN, MAX_TOOL_RESULT_LENGTH, TRUNCATION_MARKER
from .models import Message, TokenInfo, ToolErrorPart, ToolResult, ToolResultPart

logger = logging.getLogger(__name__)

COMPACTED_TOOL_PLACEHOLDER = "[Old tool result content cleared]"

# User turns at the end of history whose tool outputs are never pruned
PRUNE_PROTECTED_TURNS = 2


def estimate_tokens(text: str) -> int:
    """
    Estimate token count for text.

    Uses a simple heuristic of ~4 characters per token.

    Args:
        text: Text to estimate tokens for

    Returns:
        Estimated token count
    """
    return math.ceil(len(text or "") / CHARS_PER_TOKEN)


def is_compaction_marker(message: Message) -> bool:
    return message.role == "user" and message.metadata.compaction is not None


def is_summary(message: Message) -> bool:
    return message.role == "assistant" and message.metadata.summary


def effective_history(history: list[Message]) -> list[Message]:
    """
    Messages the model should still see.

    Everything before the most recent compaction marker that has a summary
    after it is dropped. A marker with no summary yet does not cut history.
    """
    seen_summary = False
    for index in range(len(history) - 1, -1, -1):
        message = history[index]
        if is_summary(message):
            seen_summary = True
        elif seen_summary and is_compaction_marker(message):
            return history[index:]
    return list(history)


def _tool_output_size(part: ToolResultPart | ToolErrorPart) -> int:
    if isinstance(part, ToolResultPart):
        return estimate_tokens(json.dumps(part.output))
    return estimate_tokens(json.dumps(part.error))


def mark_prunable_tool_outputs(history: list[Message], config: CompactionConfig) -> int:
    """
    Mark old tool outputs as compacted.

    Walks backwards from the newest message. Outputs in the last two user
    turns are protected. Older outputs are counted until their total passes
    ``prune_protect_tokens``; everything past that point becomes a prune
    candidate. Candidates are marked only when they add up to more than
    ``prune_minimum_tokens``. The walk stops at a summary or at an output
    that was already compacted.

    Args:
        history: Messages to mark in place
        config: Compaction settings

    Returns:
        Number of tool outputs marked
    """
    if not config.prune:
        return 0

    total = 0
    pruned = 0
    candidates: list[ToolResultPart] = []
    turns = 0

    for message in reversed(history):
        if message.role == "user":
            turns += 1
        if turns < PRUNE_PROTECTED_TURNS:
            continue
        if is_summary(message):
            break

        stop = False
        for part in reversed(message.parts):
            if not isinstance(part, ToolResultPart):
                continue
            if part.compacted_at is not None:
                stop = True
                break
            estimate = _tool_output_size(part)
            total += estimate
            if total > config.prune_protect_tokens:
                pruned += estimate
                candidates.append(part)
        if stop:
            break

    if pruned <= config.prune_minimum_tokens:
        return 0

    now = time.time()
    for part in candidates:
        part.compacted_at = now
    logger.debug("Pruned %d tool output(s), ~%d tokens", len(candidates), pruned)
    return len(candidates)


def mark_previous_assistant_tool_outputs(history: list[Message]) -> int:
    """
    Mark the tool outputs of the assistant message before the newest one.

    Used when tool outputs are dropped from the model view once the model has
    responded to them.

    Returns:
        Number of tool outputs marked
    """
    assistants = [message for message in history if message.role == "assistant"]
    if len(assistants) < 2:
        return 0
    previous = assistants[-2]
    if is_summary(previous):
        return 0

    now = time.time()
    count = 0
    for part in previous.parts:
        if isinstance(part, ToolResultPart) and part.compacted_at is None:
            part.compacted_at = now
            count += 1
    return count


def history_for_model(history: list[Message]) -> list[Message]:
    """Copies of ``history`` with compacted tool outputs replaced by a placeholder."""
    prepared: list[Message] = []
    for message in history:
        copy = message.model_copy(deep=True)
        for part in copy.parts:
            if isinstance(part, ToolResultPart) and part.compacted_at is not None:
                part.output = COMPACTED_TOOL_PLACEHOLDER
        prepared.append(copy)
    return prepared


def history_for_compaction_prompt(history: list[Message], config: CompactionConfig) -> list[Message]:
    """History to summarize, pruned the same way the model would see it."""
    prepared = [message.model_copy(deep=True) for message in history]
    mark_prunable_tool_outputs(prepared, config)
    return history_for_model(prepared)


def reserved_output_tokens(model_limit: ModelLimit | None, max_output_tokens: int) -> int:
    """Output budget held back from the context window."""
    if model_limit and model_limit.output:
        return min(model_limit.output, max_output_tokens)
    return max_output_tokens


def is_overflow(
    tokens: TokenInfo | None,
    model_limit: ModelLimit | None,
    reserved: int,
    config: CompactionConfig,
) -> bool:
    """
    True when the last turn's usage leaves no room for the reserved output.

    Args:
        tokens: Usage reported for the last assistant message
        model_limit: Limits for the model, if known
        reserved: Output tokens to keep free
        config: Compaction settings; nothing overflows when auto is off

    Returns:
        True if the conversation should be compacted
    """
    if not config.auto or tokens is None or model_limit is None:
        return False
    usable = max(0, model_limit.context - reserved)
    return tokens.used() > usable


def _truncate(text: str) -> str:
    if len(text) > MAX_TOOL_RESULT_LENGTH:
        return text[:MAX_TOOL_RESULT_LENGTH] + TRUNCATION_MARKER
    return text


def format_tool_result(result: ToolResult) -> str:
    """
    Text shown to the model for a tool result.

    An ``output_text`` override in metadata wins. Otherwise string data is
    used as is, None becomes "Done", other data is pretty-printed JSON, and
    failures are rendered as ``{"error": ...}``. Output longer than the
    result budget is cut and marked.
    """
    override = result.metadata.get("output_text")
    if isinstance(override, str) and override:
        return _truncate(override)

    if result.success:
        if isinstance(result.data, str):
            content = result.data
        elif result.data is None:
            content = "Done"
        else:
            content = json.dumps(result.data, indent=2, default=str)
    else:
        content = json.dumps({"error": result.error})

    return _truncate(content)


def prune_tool_result_for_history(output: Any) -> ToolResult:
    """
    Normalize a tool outcome for storage in history.

    Successful results keep the formatted text as ``data``; failures keep a
    bounded error. ``truncated`` is recorded in metadata.
    """
    result = output if isinstance(output, ToolResult) else ToolResult(success=True, data=output)

    if not result.success:
        raw_error = result.error if isinstance(result.error, str) else str(result.error or "Unknown error")
        truncated = len(raw_error) > MAX_TOOL_RESULT_LENGTH or bool(result.metadata.get("truncated"))
        return result.model_copy(
            update={"error": _truncate(raw_error), "metadata": {**result.metadata, "truncated": truncated}}
        )

    formatted = format_tool_result(result)
    truncated = TRUNCATION_MARKER in formatted or bool(result.metadata.get("truncated"))
    return result.model_copy(update={"data": formatted, "metadata": {**result.metadata, "truncated": truncated}})
