"""
Per-tool behavior strategies.

A ToolBehavior owns everything that varies between tools: how arguments are
resolved, which policy checks apply, how the tool runs and how its result is
decorated. The execution pipeline drives the steps in a fixed order and
handles what is common to every tool (plugin hooks, approval).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from config.agent_config import Mode
from core.abort import AbortSignal
from core.constants import (
    ALLOW_EXTERNAL_PATHS_SETTING,
    MAX_BLOCKED_PATHS,
    PERMISSION_DENIED_MESSAGE,
    PLAN_MODE_BLOCKED_MESSAGE,
)
from core.handles import FileHandleRegistry, SemanticHandleRegistry, resolve_handles
from core.models import Session, ToolDefinition, ToolErrorCode, ToolResult
from core.permissions import (
    Level,
    PermissionRuleset,
    ShellVerdict,
    collect_dotenv_targets,
    evaluate_permission,
    evaluate_shell_command,
    external_path_patterns,
    find_external_path_references,
    is_shell_tool,
    is_sub_path,
    plan_mode_block_reason,
    shell_command_for,
    tool_permission_name,
    tool_permission_patterns,
)
from core.permissions.shell import resolve_workdir

from .callbacks import AgentCallbacks
from .tools import ToolContext, ToolProvider

logger = logging.getLogger(__name__)

EXTERNAL_SHELL_PATHS_MESSAGE = (
    "External paths are disabled. This shell command references paths outside the current "
    "workspace. Enable allowExternalPaths to allow external path access."
)
EXTERNAL_PATHS_MESSAGE = (
    "External paths are disabled. Enable allowExternalPaths to allow access outside the "
    "current workspace."
)


@dataclass
class ExecutionScope:
    """Everything a tool call needs from the run it belongs to.

    Attributes:
        session: Session the call belongs to
        mode: Current mode
        ruleset: Permission rules for the mode
        workspace_root: Absolute workspace root
        allow_external_paths: External path setting
        auto_approve: Skip approval prompts (never applies in plan mode)
        tools: Tool provider executing the call
        files: File handle registry
        semantic: Semantic handle registry
        callbacks: Observer callbacks of the run
        signal: Cancellation token of the current iteration
    """

    session: Session
    mode: Mode
    ruleset: PermissionRuleset
    workspace_root: str
    tools: ToolProvider
    files: FileHandleRegistry
    semantic: SemanticHandleRegistry
    allow_external_paths: bool = False
    auto_approve: bool = False
    callbacks: AgentCallbacks = field(default_factory=AgentCallbacks)
    signal: AbortSignal | None = None

    def tool_context(self) -> ToolContext:
        return ToolContext(
            workspace_root=self.workspace_root,
            allow_external_paths=self.allow_external_paths,
            session_id=self.session.id,
            signal=self.signal,
        )


@dataclass
class PolicyOutcome:
    """Result of the policy checks for one call.

    ``blocked`` is set when the call must not run. Otherwise
    ``requires_approval`` says whether the host has to confirm it.
    """

    permission: str
    patterns: list[str] = field(default_factory=list)
    requires_approval: bool = False
    blocked: ToolResult | None = None

    @property
    def reason(self) -> str | None:
        return self.blocked.error if self.blocked else None


class ToolBehavior:
    """Default strategy: handle resolution, ruleset checks, provider execution.

    Subclasses override single steps; the pipeline calls them in the order
    resolve_args, check_policy, execute, decorate_result.
    """

    def __init__(self, definition: ToolDefinition):
        self.definition = definition

    @property
    def id(self) -> str:
        return self.definition.id

    async def resolve_args(self, scope: ExecutionScope, args: dict[str, Any]) -> tuple[dict[str, Any], ToolResult | None]:
        """Resolve handle arguments; returns (args, failure)."""
        return resolve_handles(scope.session, self.definition, args, scope.files, scope.semantic)

    async def check_policy(self, scope: ExecutionScope, args: dict[str, Any]) -> PolicyOutcome:
        """
        Plan mode gate, ruleset evaluation, dotenv and external path checks.

        Args:
            scope: Run scope
            args: Resolved arguments

        Returns:
            The policy outcome
        """
        definition = self.definition
        permission = tool_permission_name(definition)
        outcome = PolicyOutcome(permission=permission)

        if scope.mode == "plan":
            reason = plan_mode_block_reason(definition)
            if reason:
                outcome.blocked = ToolResult.failure(reason, ToolErrorCode.PLAN_MODE_BLOCKED)
                return outcome

        outcome.patterns = tool_permission_patterns(definition, args, scope.workspace_root)
        action = evaluate_permission(permission, outcome.patterns, scope.ruleset)
        if action == Level.DENY:
            if scope.mode == "plan":
                outcome.blocked = ToolResult.failure(PLAN_MODE_BLOCKED_MESSAGE, ToolErrorCode.PLAN_MODE_BLOCKED)
            else:
                outcome.blocked = ToolResult.failure(PERMISSION_DENIED_MESSAGE, ToolErrorCode.PERMISSION_DENIED)
            return outcome

        outcome.requires_approval = action == Level.ASK or definition.metadata.requires_approval
        dotenv_targets = collect_dotenv_targets(definition, args)
        if dotenv_targets:
            logger.debug("Tool %s touches dotenv file(s) %s; approval required", definition.id, dotenv_targets)
            outcome.requires_approval = True

        blocked = self.check_shell(scope, args, outcome)
        if blocked is not None:
            outcome.blocked = blocked
            return outcome

        external = external_path_patterns(definition, args, scope.workspace_root)
        if external and not scope.allow_external_paths:
            outcome.blocked = ToolResult.failure(
                EXTERNAL_PATHS_MESSAGE,
                ToolErrorCode.EXTERNAL_PATHS_DISABLED,
                blocked_setting_key=ALLOW_EXTERNAL_PATHS_SETTING,
                is_outside_workspace=True,
                blocked_paths=external[:MAX_BLOCKED_PATHS],
                blocked_paths_truncated=len(external) > MAX_BLOCKED_PATHS,
            )
        return outcome

    def check_shell(self, scope: ExecutionScope, args: dict[str, Any], outcome: PolicyOutcome) -> ToolResult | None:
        """Extra checks for shell tools; the default tool has none."""
        return None

    async def execute(self, scope: ExecutionScope, call_id: str, args: dict[str, Any]) -> ToolResult:
        return await scope.tools.execute_tool(self.definition.id, args, scope.tool_context())

    def decorate_result(self, scope: ExecutionScope, result: ToolResult) -> ToolResult:
        """Attach file and semantic handles to search results."""
        protocol = self.definition.metadata.protocol
        if protocol.glob_output:
            result = scope.files.decorate_glob_result(scope.session, result)
        if protocol.grep_output:
            result = scope.files.decorate_grep_result(scope.session, result, scope.semantic)
        if protocol.symbols_output:
            result = scope.semantic.decorate_symbols_result(scope.session, result, scope.files)
        return result


class ShellToolBehavior(ToolBehavior):
    """Shell tools: external path references and static command safety."""

    def check_shell(self, scope: ExecutionScope, args: dict[str, Any], outcome: PolicyOutcome) -> ToolResult | None:
        definition = self.definition
        command = shell_command_for(definition, args)

        if not scope.allow_external_paths and scope.workspace_root:
            raw_cwd = args.get("workdir")
            if raw_cwd is None and definition.execution.type == "shell":
                raw_cwd = definition.execution.cwd
            cwd = resolve_workdir(raw_cwd, scope.workspace_root)

            blocked_paths: list[str] = []
            if not is_sub_path(cwd, scope.workspace_root):
                blocked_paths.append(cwd)
            if command and command.strip():
                for path in find_external_path_references(command, cwd, scope.workspace_root):
                    if path not in blocked_paths:
                        blocked_paths.append(path)

            if blocked_paths:
                return ToolResult.failure(
                    EXTERNAL_SHELL_PATHS_MESSAGE,
                    ToolErrorCode.EXTERNAL_PATHS_DISABLED,
                    blocked_setting_key=ALLOW_EXTERNAL_PATHS_SETTING,
                    is_outside_workspace=True,
                    blocked_paths=blocked_paths[:MAX_BLOCKED_PATHS],
                    blocked_paths_truncated=len(blocked_paths) > MAX_BLOCKED_PATHS,
                )

        if command is None:
            return None
        decision = evaluate_shell_command(command)
        if decision.verdict == ShellVerdict.DENY:
            return ToolResult.failure(f"Blocked command: {decision.reason}", ToolErrorCode.COMMAND_BLOCKED)
        if decision.verdict == ShellVerdict.NEEDS_APPROVAL:
            outcome.requires_approval = True
        return None


def behavior_for(definition: ToolDefinition) -> ToolBehavior:
    """Strategy for a plain tool definition."""
    if is_shell_tool(definition):
        return ShellToolBehavior(definition)
    return ToolBehavior(definition)
