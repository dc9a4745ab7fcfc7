"""
Tool execution pipeline.

Runs one tool call through its behavior in a fixed order:

1. ``tool.execute.before`` hook (may replace the arguments)
2. behavior.resolve_args (handles)
3. behavior.check_policy (plan mode, ruleset, shell, external paths)
4. ``permission.ask`` hook (may deny, force or waive approval)
5. approval callback when required and not auto-approved
6. behavior.execute
7. behavior.decorate_result
8. ``tool.execute.after`` hook (may retitle or rewrite the output text)

Every failure before step 6 is a structured ToolResult, never an exception.
"""

import inspect
import json
import logging
from typing import Any

from core.constants import USER_REJECTED_MESSAGE
from core.exceptions import error_name
from core.history import format_tool_result
from core.models import ToolCall, ToolErrorCode, ToolResult
from plugins.models import PluginHooks

from .behaviors import ExecutionScope, ToolBehavior
from .callbacks import debug, notify

logger = logging.getLogger(__name__)

PLUGIN_DENIED_MESSAGE = "Tool is denied by a plugin permission hook."


class ToolExecutionPipeline:
    """Drives tool calls through behaviors with plugin hooks around them."""

    def __init__(self, plugins: PluginHooks):
        self.plugins = plugins

    async def execute(
        self,
        behavior: ToolBehavior,
        scope: ExecutionScope,
        call_id: str,
        tool_name: str,
        args: dict[str, Any],
    ) -> ToolResult:
        """
        Execute one tool call with all policies applied.

        Args:
            behavior: Strategy for the tool
            scope: Run scope
            call_id: Tool call id from the model
            tool_name: Tool name as requested by the model
            args: Decoded arguments

        Returns:
            The (possibly decorated) tool result
        """
        definition = behavior.definition
        session_id = scope.session.id
        callbacks = scope.callbacks
        hook_input = {"tool": tool_name, "session_id": session_id, "call_id": call_id}

        before = await self.plugins.trigger("tool.execute.before", dict(hook_input), {"args": args})
        if isinstance(before, dict) and isinstance(before.get("args"), dict):
            args = before["args"]

        args, failure = await behavior.resolve_args(scope, args)
        if failure is not None:
            return failure

        call = ToolCall(id=call_id, name=tool_name, arguments=json.dumps(args, default=str))

        policy = await behavior.check_policy(scope, args)
        if policy.blocked is not None:
            await self._blocked(scope, call, behavior, policy.blocked)
            return policy.blocked

        requires_approval = policy.requires_approval
        decision = await self.plugins.trigger(
            "permission.ask",
            {
                **hook_input,
                "patterns": policy.patterns,
                "metadata": {
                    "mode": scope.mode,
                    "requires_approval": requires_approval,
                    "permission": policy.permission,
                },
            },
            {"status": "ask" if requires_approval else "allow"},
        )
        status = decision.get("status") if isinstance(decision, dict) else None
        if status == "deny":
            blocked = ToolResult.failure(PLUGIN_DENIED_MESSAGE, ToolErrorCode.PERMISSION_DENIED)
            await self._blocked(scope, call, behavior, blocked)
            return blocked
        if status == "allow":
            requires_approval = False
        elif status == "ask":
            requires_approval = True

        auto_approve = scope.auto_approve and scope.mode != "plan"
        if requires_approval and not auto_approve:
            if not await self._request_approval(scope, call, behavior):
                logger.info("Tool %s rejected by user", definition.id)
                return ToolResult.failure(USER_REJECTED_MESSAGE, ToolErrorCode.USER_REJECTED)

        result = await behavior.execute(scope, call_id, args)
        result = behavior.decorate_result(scope, result)
        return await self._after(hook_input, definition.name, result)

    async def _blocked(self, scope: ExecutionScope, call: ToolCall, behavior: ToolBehavior, result: ToolResult) -> None:
        logger.info("Tool %s blocked: %s", behavior.id, result.error)
        await notify(
            scope.callbacks.on_tool_blocked,
            f"on_tool_blocked tool={behavior.id}",
            call,
            behavior.definition,
            result.error,
            on_debug=scope.callbacks.on_debug,
        )

    async def _request_approval(self, scope: ExecutionScope, call: ToolCall, behavior: ToolBehavior) -> bool:
        """Ask the host; a missing callback or a failing one counts as a rejection."""
        callback = scope.callbacks.on_request_approval
        if callback is None:
            return False
        try:
            approved = callback(call, behavior.definition)
            if inspect.isawaitable(approved):
                approved = await approved
        except Exception as e:
            await debug(scope.callbacks, f"[Callbacks] on_request_approval threw ({error_name(e)})")
            return False
        return bool(approved)

    async def _after(self, hook_input: dict[str, Any], title: str, result: ToolResult) -> ToolResult:
        output = await self.plugins.trigger(
            "tool.execute.after",
            dict(hook_input),
            {"title": title, "output": format_tool_result(result), "metadata": dict(result.metadata)},
        )
        if not isinstance(output, dict):
            return result

        metadata = dict(result.metadata)
        extra = output.get("metadata")
        if isinstance(extra, dict):
            metadata.update(extra)
        new_title = output.get("title")
        if isinstance(new_title, str) and new_title.strip():
            metadata["title"] = new_title
        text = output.get("output")
        if isinstance(text, str):
            metadata["output_text"] = text
        return result.model_copy(update={"metadata": metadata})
