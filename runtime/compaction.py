"""
Conversation compaction.

Summarizes the effective history into a single assistant message so the
conversation fits the model's context window again. The operation is
all-or-nothing: on success history gains exactly one marker and summary
pair; on failure or cancellation the marker is removed again and the error
is re-raised.
"""

import logging
from typing import Any

from config.agent_config import Mode
from config.compaction_config import CompactionConfig
from core.abort import AbortSignal, is_abort_error
from core.history import effective_history, history_for_compaction_prompt
from core.models import (
    CompactionMarker,
    Message,
    MessageMetadata,
    Session,
    TextPart,
    user_message,
)
from core.text import strip_think_blocks
from core.timing import log_timing
from plugins.models import PluginHooks

from .callbacks import AgentCallbacks, notify
from .llm import LLMProvider, ModelRequest, collect_stream, to_model_messages
from .prompts import (
    COMPACTION_CONTINUE_TEXT,
    COMPACTION_MARKER_TEXT,
    COMPACTION_PROMPT_TEXT,
    COMPACTION_SYSTEM_PROMPT,
)

logger = logging.getLogger(__name__)


async def _compaction_prompt(plugins: PluginHooks, session_id: str) -> str:
    output: Any = await plugins.trigger(
        "experimental.session.compacting",
        {"session_id": session_id},
        {"context": [], "prompt": None},
    )
    if not isinstance(output, dict):
        return COMPACTION_PROMPT_TEXT

    prompt = output.get("prompt")
    if isinstance(prompt, str) and prompt.strip():
        return prompt
    context = output.get("context")
    extra = [item for item in context if isinstance(item, str) and item] if isinstance(context, list) else []
    return "\n\n".join([COMPACTION_PROMPT_TEXT, *extra])


def _remove_message(session: Session, message_id: str) -> None:
    session.history = [message for message in session.history if message.id != message_id]


async def compact_session(
    session: Session,
    *,
    auto: bool,
    model_id: str,
    mode: Mode,
    provider: LLMProvider,
    plugins: PluginHooks,
    config: CompactionConfig,
    max_output_tokens: int,
    callbacks: AgentCallbacks | None = None,
    signal: AbortSignal | None = None,
) -> Message:
    """
    Summarize the session history and cut it at the summary.

    Args:
        session: Session to compact; its history is rewritten in place
        auto: True when triggered by context overflow; a synthetic
            "continue" message is appended so the loop can carry on
        model_id: Model used for the summary
        mode: Mode recorded on the summary message
        provider: Model transport
        plugins: Plugin hooks (``experimental.session.compacting``)
        config: Compaction settings used to prune the prompt history
        max_output_tokens: Output budget for the summary
        callbacks: Observer callbacks
        signal: Cancellation token

    Returns:
        The summary message

    Raises:
        Exception: Whatever the provider raised; the marker is rolled back
    """
    callbacks = callbacks or AgentCallbacks()
    marker = user_message(
        COMPACTION_MARKER_TEXT,
        synthetic=True,
        compaction=CompactionMarker(auto=auto),
    )
    session.append(marker)
    await notify(
        callbacks.on_compaction_start,
        "on_compaction_start",
        {"auto": auto, "marker_message_id": marker.id},
        on_debug=callbacks.on_debug,
    )

    try:
        prompt_text = await _compaction_prompt(plugins, session.id)
        model = await provider.get_model(model_id)

        prepared = history_for_compaction_prompt(effective_history(session.history), config)
        prompt_message = user_message(prompt_text, synthetic=True)
        request = ModelRequest(
            system=[COMPACTION_SYSTEM_PROMPT],
            messages=to_model_messages([*prepared, prompt_message]),
            temperature=0.0,
            max_output_tokens=max_output_tokens,
            signal=signal,
            max_retries=0,
        )

        with log_timing(logger, f"Compaction of session {session.id}"):
            outcome = await collect_stream(provider, model, request)

        summary_text = strip_think_blocks(outcome.text).strip()
        summary = Message(
            role="assistant",
            metadata=MessageMetadata(
                mode=mode,
                finish_reason=outcome.finish_reason,
                summary=True,
                tokens=outcome.usage,
            ),
        )
        if summary_text:
            summary.parts.append(TextPart(text=summary_text))
        session.append(summary)

        if auto:
            session.append(user_message(COMPACTION_CONTINUE_TEXT, synthetic=True))

        session.history = effective_history(session.history)
    except BaseException as e:
        status = "canceled" if is_abort_error(e) else "error"
        _remove_message(session, marker.id)
        logger.warning("Compaction of session %s failed (%s): %s", session.id, status, type(e).__name__)
        await notify(
            callbacks.on_compaction_end,
            "on_compaction_end",
            {"auto": auto, "marker_message_id": marker.id, "status": status, "error": str(e)},
            on_debug=callbacks.on_debug,
        )
        raise

    logger.info("Compacted session %s", session.id)
    await notify(
        callbacks.on_compaction_end,
        "on_compaction_end",
        {
            "auto": auto,
            "marker_message_id": marker.id,
            "summary_message_id": summary.id,
            "status": "done",
        },
        on_debug=callbacks.on_debug,
    )
    return summary
