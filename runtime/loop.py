"""
The streaming run loop.

One call to ``run_once`` drives a session until the model stops asking for
tools (or the iteration ceiling is hit):

    composing -> streaming -> tool dispatch -> composing
                          \\-> compacting   -> composing
                          \\-> done

Each iteration composes the system prompt and the model view of the history,
streams one completion, dispatches tool calls through the execution pipeline
as they arrive and appends the assistant message to the session.
"""

import json
import logging
import time
from dataclasses import dataclass, field
from typing import Any

from config.agent_config import AgentConfig
from config.compaction_config import CompactionConfig, ModelLimit
from core.abort import AbortController, AbortSignal
from core.constants import MAX_ITERATIONS, TASK_TOOL_ID
from core.exceptions import RetryableProviderError, error_name
from core.handles import FileHandleRegistry, SemanticHandleRegistry
from core.history import (
    effective_history,
    format_tool_result,
    history_for_model,
    is_overflow,
    mark_previous_assistant_tool_outputs,
    prune_tool_result_for_history,
    reserved_output_tokens,
)
from core.models import (
    Message,
    MessageMetadata,
    ReasoningPart,
    Session,
    TextPart,
    ToolCall,
    ToolCallPart,
    ToolErrorCode,
    ToolErrorPart,
    ToolResult,
    ToolResultPart,
)
from core.permissions import PermissionRuleset
from core.retry import classify_error, compute_delay_ms
from core.text import clean_assistant_text, extract_plan_from_reasoning
from core.timing import log_timing
from plugins.models import PluginHooks

from .behaviors import ExecutionScope, ToolBehavior
from .callbacks import AgentCallbacks, debug, notify
from .compaction import compact_session
from .execution import ToolExecutionPipeline
from .llm import (
    ErrorChunk,
    FinishChunk,
    LLMProvider,
    ModelRequest,
    ReasoningDelta,
    TextDelta,
    ToolCallChunk,
    ToolErrorChunk,
    ToolResultChunk,
    stringify_tool_output,
    to_model_messages,
)
from .prompt_composer import PromptComposer, insert_mode_reminders
from .prompts import DEFAULT_SYSTEM_PROMPT
from .tools import ToolProvider

logger = logging.getLogger(__name__)

# Metadata that must not be persisted in the parent history for task results
TASK_ONLY_METADATA = ("child_session", "task")


@dataclass
class RunContext:
    """Collaborators and settings for one run of the loop.

    Built by ``Agent`` for every run; ``behaviors`` maps the tool name the
    model sees to the strategy executing it.
    """

    provider: LLMProvider
    tools: ToolProvider
    plugins: PluginHooks
    composer: PromptComposer
    pipeline: ToolExecutionPipeline
    config: AgentConfig
    compaction: CompactionConfig
    ruleset: PermissionRuleset
    workspace_root: str
    behaviors: dict[str, ToolBehavior] = field(default_factory=dict)
    model_limit: ModelLimit | None = None
    allow_external_paths: bool = False
    files: FileHandleRegistry = field(default_factory=FileHandleRegistry)
    semantic: SemanticHandleRegistry = field(default_factory=SemanticHandleRegistry)


@dataclass
class _Attempt:
    """State accumulated while consuming one model stream."""

    message: Message
    text: str = ""
    reasoning: str = ""
    finish_reason: str | None = None
    usage: Any = None
    saw_tool_call: bool = False


def _last_user_text(session: Session) -> str | None:
    for message in reversed(session.history):
        if message.role == "user":
            return message.text
    return None


async def _model_messages(ctx: RunContext, session: Session) -> list[dict[str, Any]]:
    """Model view of the history: effective, pruned, with mode reminders."""
    prepared = history_for_model(effective_history(session.history))
    reminded = insert_mode_reminders(prepared, ctx.config.mode, ctx.allow_external_paths)

    output = await ctx.plugins.trigger(
        "experimental.chat.messages.transform",
        {"session_id": session.id, "mode": ctx.config.mode, "model_id": ctx.config.model},
        {"messages": reminded},
    )
    messages = output.get("messages") if isinstance(output, dict) else None
    if isinstance(messages, list) and all(isinstance(m, Message) for m in messages):
        reminded = messages
    return to_model_messages(reminded)


def _history_result(behavior: ToolBehavior | None, tool_name: str, raw: Any) -> ToolResult:
    """Bounded copy of a tool result for the session history."""
    result = prune_tool_result_for_history(raw)
    is_task = tool_name == TASK_TOOL_ID or (behavior is not None and behavior.id == TASK_TOOL_ID)
    if is_task and result.metadata:
        metadata = {k: v for k, v in result.metadata.items() if k not in TASK_ONLY_METADATA}
        result = result.model_copy(update={"metadata": metadata})
    return result


def _record_result(message: Message, call_id: str, tool_name: str, result: ToolResult) -> None:
    message.add_tool_output(
        ToolResultPart(
            tool_call_id=call_id,
            tool_name=tool_name,
            output=format_tool_result(result),
            success=result.success,
            metadata=result.metadata,
        )
    )


async def _dispatch_tool_call(
    ctx: RunContext,
    session: Session,
    attempt: _Attempt,
    chunk: ToolCallChunk,
    callbacks: AgentCallbacks,
    signal: AbortSignal,
) -> None:
    """Run one tool call from the stream and record its outcome."""
    attempt.saw_tool_call = True
    args = chunk.input if isinstance(chunk.input, dict) else {}
    call = ToolCall(id=chunk.tool_call_id, name=chunk.tool_name, arguments=json.dumps(args, default=str))
    attempt.message.parts.append(
        ToolCallPart(tool_call_id=chunk.tool_call_id, tool_name=chunk.tool_name, input=args)
    )

    behavior = ctx.behaviors.get(chunk.tool_name)
    if behavior is None:
        logger.warning("Model requested unknown tool %s", chunk.tool_name)
        raw = ToolResult.failure(f"Unknown tool: {chunk.tool_name}", ToolErrorCode.UNKNOWN_TOOL)
    else:
        await notify(
            callbacks.on_status_change,
            "on_status_change",
            {"type": "running", "message": ""},
            on_debug=callbacks.on_debug,
        )
        await notify(
            callbacks.on_tool_call,
            f"on_tool_call tool={behavior.id}",
            call,
            behavior.definition,
            on_debug=callbacks.on_debug,
        )
        scope = ExecutionScope(
            session=session,
            mode=ctx.config.mode,
            ruleset=ctx.ruleset,
            workspace_root=ctx.workspace_root,
            tools=ctx.tools,
            files=ctx.files,
            semantic=ctx.semantic,
            allow_external_paths=ctx.allow_external_paths,
            auto_approve=ctx.config.auto_approve,
            callbacks=callbacks,
            signal=signal,
        )
        raw = await ctx.pipeline.execute(behavior, scope, chunk.tool_call_id, chunk.tool_name, args)

    stored = _history_result(behavior, chunk.tool_name, raw)
    _record_result(attempt.message, chunk.tool_call_id, chunk.tool_name, stored)

    label = behavior.id if behavior else chunk.tool_name
    await notify(callbacks.on_tool_result, f"on_tool_result tool={label}", call, raw, on_debug=callbacks.on_debug)
    await notify(
        callbacks.on_status_change,
        "on_status_change",
        {"type": "running", "message": ""},
        on_debug=callbacks.on_debug,
    )


async def _stream_attempt(
    ctx: RunContext,
    session: Session,
    model: Any,
    request: ModelRequest,
    callbacks: AgentCallbacks,
    signal: AbortSignal,
    attempt: _Attempt,
) -> None:
    """Consume one model stream into ``attempt``, dispatching tool calls inline."""
    async for part in ctx.provider.stream(model, request):
        signal.raise_if_aborted()
        if isinstance(part, TextDelta):
            attempt.text += part.text
            await notify(callbacks.on_token, "on_token", part.text, on_debug=callbacks.on_debug)
            await notify(callbacks.on_assistant_token, "on_assistant_token", part.text, on_debug=callbacks.on_debug)
        elif isinstance(part, ReasoningDelta):
            attempt.reasoning += part.text
            await notify(callbacks.on_thought_token, "on_thought_token", part.text, on_debug=callbacks.on_debug)
        elif isinstance(part, ToolCallChunk):
            await _dispatch_tool_call(ctx, session, attempt, part, callbacks, signal)
        elif isinstance(part, ToolResultChunk):
            behavior = ctx.behaviors.get(part.tool_name)
            if attempt.message.find_tool_call(part.tool_call_id) is None:
                attempt.message.parts.append(ToolCallPart(tool_call_id=part.tool_call_id, tool_name=part.tool_name))
            raw = part.output if isinstance(part.output, ToolResult) else stringify_tool_output(part.output)
            stored = _history_result(behavior, part.tool_name, raw)
            _record_result(attempt.message, part.tool_call_id, part.tool_name, stored)
            call = ToolCall(id=part.tool_call_id, name=part.tool_name)
            await notify(
                callbacks.on_tool_result,
                f"on_tool_result tool={part.tool_name}",
                call,
                raw if isinstance(raw, ToolResult) else stored,
                on_debug=callbacks.on_debug,
            )
        elif isinstance(part, ToolErrorChunk):
            if attempt.message.find_tool_call(part.tool_call_id) is None:
                attempt.message.parts.append(ToolCallPart(tool_call_id=part.tool_call_id, tool_name=part.tool_name))
            attempt.message.add_tool_output(
                ToolErrorPart(tool_call_id=part.tool_call_id, tool_name=part.tool_name, error=part.error)
            )
            call = ToolCall(id=part.tool_call_id, name=part.tool_name)
            await notify(
                callbacks.on_tool_result,
                f"on_tool_result tool={part.tool_name}",
                call,
                ToolResult(success=False, error=part.error),
                on_debug=callbacks.on_debug,
            )
        elif isinstance(part, FinishChunk):
            attempt.finish_reason = part.finish_reason
            attempt.usage = part.usage
        elif isinstance(part, ErrorChunk):
            raise part.error


def _report_request_error(ctx: RunContext, error: BaseException) -> None:
    hook = getattr(ctx.provider, "on_request_error", None)
    if hook is None:
        return
    try:
        hook(error, {"model_id": ctx.config.model, "mode": ctx.config.mode})
    except Exception as e:
        logger.debug("Provider on_request_error failed: %s", error_name(e))


async def _stream_with_retry(
    ctx: RunContext,
    session: Session,
    model: Any,
    request: ModelRequest,
    callbacks: AgentCallbacks,
    signal: AbortSignal,
) -> _Attempt:
    """
    Stream one completion, retrying transient failures.

    A failed attempt is retried only while nothing visible happened: no tool
    call was dispatched and no non-empty text was streamed. Reasoning alone
    does not prevent a retry.

    Raises:
        RetryableProviderError: A retryable failure that can't be retried again
        Exception: Any other provider failure
    """
    max_retries = max(0, ctx.config.max_retries)
    retry_attempt = 0
    while True:
        attempt = _Attempt(message=Message(role="assistant"))
        try:
            with log_timing(logger, f"Model stream for session {session.id}"):
                await _stream_attempt(ctx, session, model, request, callbacks, signal, attempt)
            return attempt
        except Exception as e:
            reason = classify_error(e)
            saw_output = attempt.saw_tool_call or bool(attempt.text.strip())
            can_retry = reason is not None and retry_attempt < max_retries and not saw_output and not signal.aborted
            if can_retry:
                retry_attempt += 1
                wait_ms = compute_delay_ms(retry_attempt, reason.retry_after_ms)
                logger.info(
                    "Retrying model stream for session %s (attempt %d) in %.0f ms: %s",
                    session.id,
                    retry_attempt,
                    wait_ms,
                    reason.message,
                )
                await notify(
                    callbacks.on_status_change,
                    "on_status_change",
                    {
                        "type": "retry",
                        "attempt": retry_attempt,
                        "next_retry_time": time.time() * 1000 + wait_ms,
                        "message": reason.message,
                    },
                    on_debug=callbacks.on_debug,
                )
                await signal.sleep(wait_ms / 1000)
                continue

            if not signal.aborted:
                _report_request_error(ctx, e)
            if reason is not None:
                raise RetryableProviderError(reason.message, cause=e) from e
            raise


def _finalize_message(ctx: RunContext, attempt: _Attempt, final_text: str) -> Message:
    """Put reasoning and text in front of the tool parts and attach metadata."""
    message = attempt.message
    leading: list[Any] = []
    if attempt.reasoning.strip():
        leading.append(ReasoningPart(text=attempt.reasoning))
    if final_text:
        leading.append(TextPart(text=final_text))
    message.parts = [*leading, *message.parts]
    message.metadata = MessageMetadata(
        mode=ctx.config.mode,
        finish_reason=attempt.finish_reason,
        tokens=attempt.usage,
    )
    return message


async def run_once(
    ctx: RunContext,
    session: Session,
    callbacks: AgentCallbacks | None = None,
    signal: AbortSignal | None = None,
) -> str:
    """
    Run the loop on ``session`` until the model is done.

    The caller has already appended the user message. The returned text is
    the last non-empty assistant text; when the iteration ceiling is hit the
    best effort so far is returned.

    Args:
        ctx: Collaborators and settings
        session: Session to drive; history is mutated in place
        callbacks: Observer callbacks
        signal: Caller cancellation token

    Returns:
        Final assistant text

    Raises:
        ConfigurationError: Unknown model
        RetryableProviderError: Transient provider failure out of retries
        AbortError: The run was cancelled
    """
    callbacks = callbacks or AgentCallbacks()
    config = ctx.config
    model_id = config.model or ""
    mode = config.mode
    session_id = session.id

    model = await ctx.provider.get_model(model_id)

    call_params = await ctx.plugins.trigger(
        "chat.params",
        {"session_id": session_id, "mode": mode, "model_id": model_id, "message": _last_user_text(session)},
        {"temperature": config.temperature, "top_p": None, "options": {}},
    )
    if not isinstance(call_params, dict):
        call_params = {"temperature": config.temperature, "top_p": None, "options": {}}

    tool_schemas = [behavior.definition.schema_for_model() for behavior in ctx.behaviors.values()]

    reserved = reserved_output_tokens(ctx.model_limit, config.max_output_tokens)
    last_response = ""

    for iteration in range(1, MAX_ITERATIONS + 1):
        await notify(
            callbacks.on_iteration_start,
            f"on_iteration_start iteration={iteration}",
            iteration,
            on_debug=callbacks.on_debug,
        )
        await notify(callbacks.on_thinking, "on_thinking", on_debug=callbacks.on_debug)

        controller = AbortController()
        combined = AbortSignal.any(signal, controller.signal)
        try:
            system = await ctx.composer.compose(
                config.system_prompt or DEFAULT_SYSTEM_PROMPT,
                session_id=session_id,
                mode=mode,
                model_id=model_id,
            )
            request = ModelRequest(
                system=system,
                messages=await _model_messages(ctx, session),
                tools=tool_schemas,
                temperature=call_params.get("temperature"),
                top_p=call_params.get("top_p"),
                max_output_tokens=config.max_output_tokens,
                options=call_params.get("options") or {},
                signal=combined,
                max_retries=0,
            )

            attempt = await _stream_with_retry(ctx, session, model, request, callbacks, combined)
        finally:
            combined.dispose()

        final_text = clean_assistant_text(attempt.text)
        if not final_text and mode == "plan" and attempt.reasoning.strip():
            final_text = extract_plan_from_reasoning(attempt.reasoning)
            if final_text:
                session.pending_plan = final_text
        if final_text:
            output = await ctx.plugins.trigger(
                "experimental.text.complete",
                {"session_id": session_id, "message_id": attempt.message.id},
                {"text": final_text},
            )
            if isinstance(output, dict) and isinstance(output.get("text"), str):
                final_text = output["text"]

        message = _finalize_message(ctx, attempt, final_text)
        session.append(message)

        assistant_text = message.text.strip()
        last_response = assistant_text or last_response

        if ctx.compaction.prune and ctx.compaction.tool_output_mode == "after_tool_call":
            mark_previous_assistant_tool_outputs(session.history)

        await notify(
            callbacks.on_iteration_end,
            f"on_iteration_end iteration={iteration}",
            iteration,
            on_debug=callbacks.on_debug,
        )

        if attempt.finish_reason == "tool-calls" and is_overflow(
            message.metadata.tokens, ctx.model_limit, reserved, ctx.compaction
        ):
            await debug(callbacks, f"[Compaction] context overflow in session {session_id}; compacting")
            await compact_session(
                session,
                auto=True,
                model_id=model_id,
                mode=mode,
                provider=ctx.provider,
                plugins=ctx.plugins,
                config=ctx.compaction,
                max_output_tokens=config.max_output_tokens,
                callbacks=callbacks,
                signal=signal,
            )
            continue

        if attempt.finish_reason == "tool-calls" or message.has_tool_parts():
            continue

        await ctx.plugins.trigger(
            "experimental.chat.complete",
            {
                "session_id": session_id,
                "mode": mode,
                "model_id": model_id,
                "message_id": message.id,
                "assistant_text": assistant_text,
                "returned_text": last_response,
            },
            {},
        )
        await notify(callbacks.on_complete, "on_complete", last_response, on_debug=callbacks.on_debug)
        return last_response

    logger.warning("Session %s hit the iteration ceiling (%d)", session_id, MAX_ITERATIONS)
    await notify(callbacks.on_complete, "on_complete", last_response, on_debug=callbacks.on_debug)
    return last_response
