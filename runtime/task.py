"""
Task tool: spawn a subagent on a child session.

The parent model calls ``task`` with a description, a prompt and a subagent
type. The tool runs a child agent in build mode on its own session, waits for
its final answer and returns that text (bounded, with a ``<task_metadata>``
trailer) as the tool output. Child sessions are kept in a bounded LRU cache so
that a later call can continue one by passing its ``session_id``.
"""

from __future__ import annotations

import logging
import re
import uuid
from collections import OrderedDict
from typing import TYPE_CHECKING, Any

from core.constants import SUBAGENT_CACHE_SIZE, TASK_TOOL_ID, TRUNCATION_MARKER
from core.exceptions import error_name
from core.models import (
    Session,
    ToolCall,
    ToolDefinition,
    ToolErrorCode,
    ToolExecution,
    ToolMetadata,
    ToolResult,
)

from .behaviors import ExecutionScope, ToolBehavior
from .callbacks import AgentCallbacks, debug, notify
from .prompts import DEFAULT_SYSTEM_PROMPT
from .skills import strip_skill_messages
from .subagents import PLAN_MODE_SUBAGENT, list_subagent_names, list_subagents, resolve_subagent

if TYPE_CHECKING:
    from .agent import Agent

logger = logging.getLogger(__name__)

RECURSION_DENIED_MESSAGE = "Subagents cannot spawn other subagents via task."
PLAN_MODE_SUBAGENT_MESSAGE = "Only the explore subagent is allowed in Plan mode."
MISSING_MODEL_MESSAGE = "No model configured. Set AgentConfig.model."

MAX_SESSION_ID_LENGTH = 64
_SESSION_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")


def _task_description() -> str:
    agents = "\n".join(f"- {agent.name}: {agent.description}" for agent in list_subagents())
    return "\n".join(
        [
            "Launch a subagent to handle a complex, multistep task autonomously.",
            "",
            "Available subagent types:",
            agents or "- (none)",
            "",
            "Usage:",
            "- Use `subagent_type` to select the agent.",
            "- Use `session_id` to continue a previous task session.",
            "",
            "Notes:",
            "- The subagent returns a single final answer back to you.",
            "- The task tool is non-recursive: subagents cannot spawn other subagents via task.",
        ]
    )


TASK_TOOL = ToolDefinition(
    id=TASK_TOOL_ID,
    name="Task",
    description=_task_description(),
    parameters={
        "type": "object",
        "properties": {
            "description": {"type": "string", "description": "Short (3-5 words) description of the task"},
            "prompt": {"type": "string", "description": "Detailed instructions for the subagent"},
            "subagent_type": {
                "type": "string",
                "description": 'Which subagent to use (e.g. "explore", "general")',
            },
            "session_id": {"type": "string", "description": "Existing task session id to continue (optional)"},
        },
        "required": ["description", "prompt", "subagent_type"],
    },
    execution=ToolExecution(type="function", handler="runtime.task"),
    metadata=ToolMetadata(category="agent", permission="task"),
)


def normalize_session_id(value: Any) -> str | None:
    """
    Accept a caller supplied session id only if it is a short url-safe token.

    Args:
        value: Raw ``session_id`` argument

    Returns:
        The trimmed id, or None when missing or malformed
    """
    trimmed = value.strip() if isinstance(value, str) else ""
    if not trimmed or len(trimmed) > MAX_SESSION_ID_LENGTH:
        return None
    if not _SESSION_ID_PATTERN.match(trimmed):
        return None
    return trimmed


def format_task_output_text(text: str, child_session_id: str, max_chars: int | None) -> str:
    """
    Build the text the parent model sees for a finished subagent.

    The ``<task_metadata>`` trailer always survives; only the subagent's
    text is truncated to fit ``max_chars``.

    Args:
        text: Final text of the child run
        child_session_id: Id of the child session
        max_chars: Character budget (None or <= 0 means unbounded)

    Returns:
        Output text with the metadata trailer
    """
    base_text = (text or "").rstrip()
    metadata_block = "\n\n" + "\n".join(["<task_metadata>", f"session_id: {child_session_id}", "</task_metadata>"])

    if not max_chars or max_chars <= 0:
        return base_text + metadata_block

    full = base_text + metadata_block
    if len(full) <= max_chars:
        return full

    reserved = len(TRUNCATION_MARKER) + len(metadata_block)
    if reserved >= max_chars:
        if len(metadata_block) <= max_chars:
            return metadata_block
        return metadata_block[len(metadata_block) - max_chars :]

    available = max_chars - reserved
    truncated = base_text[:available].rstrip()
    return truncated + TRUNCATION_MARKER + metadata_block


class SubagentSessionCache:
    """Bounded LRU of child sessions keyed by session id."""

    def __init__(self, max_size: int = SUBAGENT_CACHE_SIZE):
        self.max_size = max_size
        self._sessions: OrderedDict[str, Session] = OrderedDict()

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions

    def get(self, session_id: str) -> Session | None:
        return self._sessions.get(session_id)

    def keys(self) -> list[str]:
        return list(self._sessions.keys())

    def checkout(self, session_id: str, parent_session_id: str, subagent_type: str) -> Session:
        """
        Get or create the child session and mark it most recently used.

        Eviction drops the oldest entries while the cache is over capacity,
        but never the session being checked out.

        Args:
            session_id: Child session id
            parent_session_id: Id of the spawning session
            subagent_type: Subagent type running on the child

        Returns:
            The child session
        """
        existing = self._sessions.get(session_id)
        if existing is not None:
            existing.parent_session_id = parent_session_id
            existing.subagent_type = subagent_type
            self._sessions.move_to_end(session_id)
            return existing

        session = Session(id=session_id, parent_session_id=parent_session_id, subagent_type=subagent_type)
        self._sessions[session_id] = session
        while len(self._sessions) > self.max_size:
            oldest = next(iter(self._sessions))
            if oldest == session_id:
                break
            del self._sessions[oldest]
            logger.debug("Evicted subagent session %s", oldest)
        return session


class TaskToolBehavior(ToolBehavior):
    """Runs the ``task`` tool by spawning a child agent of ``parent``."""

    def __init__(self, definition: ToolDefinition, parent: Agent, sessions: SubagentSessionCache):
        super().__init__(definition)
        self.parent = parent
        self.sessions = sessions

    async def resolve_args(self, scope: ExecutionScope, args: dict[str, Any]) -> tuple[dict[str, Any], ToolResult | None]:
        return args, None

    def decorate_result(self, scope: ExecutionScope, result: ToolResult) -> ToolResult:
        return result

    async def _child_model(self, scope: ExecutionScope, child: Session, parent_model: str) -> tuple[str, str | None, str]:
        """Pick the child model; returns (model_id, warning, requested_model_id)."""
        config = self.parent.config
        configured = (config.subagent_model or "").strip()
        desired = child.model_id or configured or parent_model
        if desired == parent_model:
            return parent_model, None, desired

        try:
            await self.parent.provider.get_model(desired)
            return desired, None, desired
        except Exception as e:
            warning = f'Subagent model "{desired}" is unavailable; using parent model "{parent_model}".'
            logger.warning(warning)
            await notify(
                scope.callbacks.on_notice,
                "on_notice subagent_model_fallback",
                {"level": "warning", "message": warning},
                on_debug=scope.callbacks.on_debug,
            )
            await debug(
                scope.callbacks,
                f"[Task] subagent model fallback requested={desired} using={parent_model} error={error_name(e)}",
            )
            return parent_model, warning, desired

    async def execute(self, scope: ExecutionScope, call_id: str, args: dict[str, Any]) -> ToolResult:
        session = scope.session
        if session.is_subagent:
            return ToolResult.failure(RECURSION_DENIED_MESSAGE, ToolErrorCode.TASK_RECURSION_DENIED)

        for field_name in ("description", "prompt", "subagent_type"):
            if not isinstance(args.get(field_name), str):
                return ToolResult.failure(
                    f"{field_name} is required and must be a string",
                    ToolErrorCode.INVALID_ARGUMENTS,
                )
        description: str = args["description"]
        prompt: str = args["prompt"]
        raw_type = args["subagent_type"].strip()

        subagent = resolve_subagent(raw_type)
        if subagent is None:
            names = ", ".join(list_subagent_names()) or "(none)"
            return ToolResult.failure(
                f"Unknown subagent_type: {raw_type}. Available: {names}",
                ToolErrorCode.UNKNOWN_SUBAGENT_TYPE,
                subagent_type=raw_type,
            )

        if scope.mode == "plan" and subagent.name != PLAN_MODE_SUBAGENT:
            return ToolResult.failure(
                PLAN_MODE_SUBAGENT_MESSAGE,
                ToolErrorCode.SUBAGENT_DENIED_IN_PLAN,
                subagent_type=subagent.name,
            )

        parent_session_id = session.id
        child_session_id = normalize_session_id(args.get("session_id")) or str(uuid.uuid4())
        child = self.sessions.checkout(child_session_id, parent_session_id, subagent.name)

        parent_model = self.parent.config.model
        if not parent_model:
            return ToolResult.failure(MISSING_MODEL_MESSAGE, ToolErrorCode.MISSING_MODEL)

        child_model, model_warning, requested_model = await self._child_model(scope, child, parent_model)
        child.model_id = child_model

        base_prompt = self.parent.config.system_prompt or DEFAULT_SYSTEM_PROMPT
        child_config = self.parent.config.with_updates(
            model=child_model,
            mode="build",
            tool_filter=subagent.tool_filter or None,
            system_prompt=f"{base_prompt}\n\n{subagent.prompt}",
            session_id=child_session_id,
        )
        runner = self.parent.with_config(child_config)

        tool_summary: dict[str, dict[str, str]] = {}

        def on_tool_call(call: ToolCall, definition: ToolDefinition) -> None:
            tool_summary[call.id] = {"id": call.id, "tool": definition.id, "status": "running"}

        def on_tool_result(call: ToolCall, result: ToolResult) -> None:
            previous = tool_summary.get(call.id)
            tool_summary[call.id] = {
                "id": call.id,
                "tool": previous["tool"] if previous else call.name,
                "status": "success" if result.success else "error",
            }

        child_callbacks = AgentCallbacks(
            on_request_approval=scope.callbacks.on_request_approval,
            on_tool_call=on_tool_call,
            on_tool_result=on_tool_result,
        )

        logger.info("Spawning %s subagent on session %s", subagent.name, child_session_id)
        try:
            run = runner.run(child, prompt, callbacks=child_callbacks, signal=scope.signal)
            done = await run.drain()
            text = done.text or ""
        except Exception as e:
            logger.warning("Subagent %s on session %s failed: %s", subagent.name, child_session_id, error_name(e))
            return ToolResult.failure(str(e) or error_name(e), ToolErrorCode.TASK_SUBAGENT_FAILED)
        finally:
            strip_skill_messages(child)

        task_metadata: dict[str, Any] = {
            "description": description,
            "subagent_type": subagent.name,
            "session_id": child_session_id,
            "parent_session_id": parent_session_id,
            "summary": [tool_summary[key] for key in sorted(tool_summary)],
            "model_id": child_model,
        }
        if model_warning:
            task_metadata["model_warning"] = model_warning
            task_metadata["requested_model_id"] = requested_model

        return ToolResult(
            success=True,
            data={"session_id": child_session_id, "subagent_type": subagent.name, "text": text},
            metadata={
                "title": description,
                "output_text": format_task_output_text(text, child_session_id, self.parent.runtime.task.max_output_chars),
                "task": task_metadata,
                "child_session": child.export_snapshot(),
            },
        )
