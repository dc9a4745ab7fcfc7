"""
Agent: the public entry point of the runtime.

An Agent binds a model provider, a tool provider, plugins and skills to an
AgentConfig. ``run`` appends a user message to a session and drives the run
loop in a background task, exposing what happens as an async event queue.
"""

from __future__ import annotations

import asyncio
import logging
import os
import re
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from config.agent_config import AgentConfig
from config.compaction_config import CompactionConfig, ModelLimit
from config.main_config import Config, SkillsConfig, TaskConfig
from config.permissions_config import PermissionsConfig
from core.abort import AbortSignal
from core.constants import TASK_TOOL_ID
from core.events import Event
from core.exceptions import ConfigurationError, PluginToolConflictError, error_name
from core.handles import FileHandleRegistry, SemanticHandleRegistry
from core.history import effective_history
from core.models import Message, Session, ToolDefinition, ToolMetadata, user_message
from core.queue import AsyncEventQueue
from plugins.models import NoPlugins, PluginHooks, PluginTool

from .behaviors import ToolBehavior, behavior_for
from .callbacks import AgentCallbacks, notify
from .compaction import compact_session
from .execution import ToolExecutionPipeline
from .llm import LLMProvider
from .loop import RunContext, run_once
from .prompt_composer import PromptComposer
from .skills import SkillCatalog, build_skill_injection, strip_skill_messages
from .task import TASK_TOOL, SubagentSessionCache, TaskToolBehavior
from .tools import LayeredToolProvider, ToolProvider

logger = logging.getLogger(__name__)

NO_MODEL_MESSAGE = "No model configured"


class RuntimeOptions(BaseModel):
    """Host-level settings shared by an agent and the subagents it spawns."""

    model_config = ConfigDict(frozen=True)

    workspace_root: str = Field(default_factory=os.getcwd)
    allow_external_paths: bool = False
    compaction: CompactionConfig = Field(default_factory=CompactionConfig)
    permissions: PermissionsConfig = Field(default_factory=PermissionsConfig)
    skills: SkillsConfig = Field(default_factory=SkillsConfig)
    task: TaskConfig = Field(default_factory=TaskConfig)
    model_limits: dict[str, ModelLimit] = Field(default_factory=dict)

    @classmethod
    def from_config(cls, config: Config, workspace_root: str | None = None) -> "RuntimeOptions":
        """Runtime options from the loaded configuration."""
        return cls(
            workspace_root=os.path.abspath(workspace_root or os.getcwd()),
            allow_external_paths=config.security.allow_external_paths,
            compaction=config.compaction,
            permissions=config.permissions,
            skills=config.skills,
            task=config.task,
            model_limits=config.model_limits,
        )


@dataclass
class RunResult:
    """Outcome of a finished run."""

    text: str
    session: Session


@dataclass
class AgentRun:
    """Handle to a run in progress.

    Attributes:
        events: Observable events, closed when the run succeeds and failed
            with the run's error otherwise
        done: Task resolving to the RunResult
    """

    events: AsyncEventQueue[Event]
    done: asyncio.Task[RunResult]

    async def result(self) -> RunResult:
        """Wait for the run to finish without consuming the events."""
        return await self.done

    async def drain(self) -> RunResult:
        """Wait for the run to finish, discarding its events as they arrive."""

        async def discard() -> None:
            async for _ in self.events:
                pass

        _, result = await asyncio.gather(discard(), self.done)
        return result


def filter_tools(tools: list[ToolDefinition], patterns: tuple[str, ...] | list[str] | None) -> list[ToolDefinition]:
    """
    Keep the tools matching an allow-list.

    A pattern containing ``*`` is a wildcard over the whole id. Any other
    pattern matches the id exactly or as a dotted prefix (``fs`` matches
    ``fs.read``).

    Args:
        tools: Candidate tools
        patterns: Allow-list; None or empty keeps everything

    Returns:
        Matching tools in their original order
    """
    if not patterns:
        return list(tools)

    def matches(tool_id: str, pattern: str) -> bool:
        if "*" in pattern:
            regex = "^" + ".*".join(re.escape(piece) for piece in pattern.split("*")) + "$"
            return re.match(regex, tool_id) is not None
        return tool_id == pattern or tool_id.startswith(pattern + ".")

    return [tool for tool in tools if any(matches(tool.id, pattern) for pattern in patterns)]


def plugin_tool_definition(tool: PluginTool) -> ToolDefinition:
    return ToolDefinition(
        id=tool.id,
        name=tool.id,
        description=tool.description,
        parameters=tool.parameters,
        metadata=ToolMetadata(category="plugin", read_only=tool.read_only),
    )


class Agent:
    """Runs sessions against a model with tools, plugins and skills.

    Example:
        agent = Agent(provider, registry, AgentConfig(model="claude-sonnet-4-20250514"))
        run = agent.run(session, "List the files in src/")
        async for event in run.events:
            ...
        result = await run.done
    """

    def __init__(
        self,
        provider: LLMProvider,
        tools: ToolProvider,
        config: AgentConfig | None = None,
        runtime: RuntimeOptions | None = None,
        plugins: PluginHooks | None = None,
        skills: SkillCatalog | None = None,
    ):
        self.provider = provider
        self.config = config or AgentConfig()
        self.runtime = runtime or RuntimeOptions()
        self.plugins = plugins or NoPlugins()
        self.skills = skills
        self.tools = tools if isinstance(tools, LayeredToolProvider) else LayeredToolProvider(tools)
        self.registered_plugin_tools: set[str] = set()
        self.task_sessions = SubagentSessionCache(self.runtime.task.cache_size)
        self.files = FileHandleRegistry(self.runtime.workspace_root)
        self.semantic = SemanticHandleRegistry()
        self.pipeline = ToolExecutionPipeline(self.plugins)
        self.composer = PromptComposer(
            self.plugins,
            skills=skills,
            skills_config=self.runtime.skills,
            workspace_root=self.runtime.workspace_root,
        )

    @property
    def mode(self) -> str:
        return self.config.mode

    def with_config(self, config: AgentConfig | None = None, **updates: Any) -> "Agent":
        """
        New agent sharing this agent's collaborators with another config.

        Args:
            config: Replacement config (defaults to the current one)
            **updates: Field updates applied on top

        Returns:
            A new Agent
        """
        base = config or self.config
        if updates:
            base = base.with_updates(**updates)
        derived = Agent(
            self.provider,
            self.tools,
            base,
            runtime=self.runtime,
            plugins=self.plugins,
            skills=self.skills,
        )
        # Same overlay, so plugin tools registered by either agent are known to both
        derived.registered_plugin_tools = self.registered_plugin_tools
        return derived

    def _model_limit(self, model_id: str) -> ModelLimit | None:
        return self.runtime.model_limits.get(model_id)

    async def _ensure_plugin_tools_registered(self) -> None:
        """Register plugin tools once; ids must not shadow existing tools."""
        plugin_tools = self.plugins.tools()
        if not plugin_tools:
            return
        existing = {tool.id for tool in await self.tools.base.get_tools()}
        existing.add(TASK_TOOL_ID)
        for tool in plugin_tools:
            if tool.id in self.registered_plugin_tools:
                continue
            if tool.id in existing or self.tools.overlay.has_tool(tool.id):
                raise PluginToolConflictError(tool.id, tool.plugin or None)
            self.tools.overlay.register_tool(plugin_tool_definition(tool), tool.handler)
            self.registered_plugin_tools.add(tool.id)
            logger.info("Registered plugin tool %s from %s", tool.id, tool.plugin or "<unknown>")

    async def _behaviors(self) -> dict[str, ToolBehavior]:
        definitions = await self.tools.get_tools()
        if not any(definition.id == TASK_TOOL_ID for definition in definitions):
            definitions.append(TASK_TOOL)

        behaviors: dict[str, ToolBehavior] = {}
        for definition in filter_tools(definitions, self.config.tool_filter):
            if definition.id == TASK_TOOL_ID:
                behaviors[definition.id] = TaskToolBehavior(definition, self, self.task_sessions)
            else:
                behaviors[definition.id] = behavior_for(definition)
        return behaviors

    async def _context(self) -> RunContext:
        model_id = (self.config.model or "").strip()
        if not model_id:
            raise ConfigurationError(NO_MODEL_MESSAGE)
        await self._ensure_plugin_tools_registered()
        return RunContext(
            provider=self.provider,
            tools=self.tools,
            plugins=self.plugins,
            composer=self.composer,
            pipeline=self.pipeline,
            config=self.config,
            compaction=self.runtime.compaction,
            ruleset=self.runtime.permissions.ruleset_for(self.config.mode),
            workspace_root=self.runtime.workspace_root,
            behaviors=await self._behaviors(),
            model_limit=self._model_limit(model_id),
            allow_external_paths=self.runtime.allow_external_paths,
            files=self.files,
            semantic=self.semantic,
        )

    async def _inject_skills(
        self,
        session: Session,
        text: str,
        callbacks: AgentCallbacks,
        signal: AbortSignal | None,
    ) -> None:
        message = await build_skill_injection(
            session,
            text,
            self.skills,
            self.runtime.skills,
            workspace_root=self.runtime.workspace_root,
            signal=signal,
        )
        if message is not None:
            session.append(message)
            logger.debug("Injected skills into session %s: %s", session.id, ", ".join(session.mentioned_skills))

    def run(
        self,
        session: Session,
        user_input: str | Message,
        callbacks: AgentCallbacks | None = None,
        signal: AbortSignal | None = None,
    ) -> AgentRun:
        """
        Start a run in the background.

        Must be called from a running event loop.

        Args:
            session: Session to drive
            user_input: User text or a prepared user message
            callbacks: Observer callbacks; every observable callback is also
                pushed into ``events``
            signal: Cancellation token

        Returns:
            AgentRun with the event queue and the completion task
        """
        queue: AsyncEventQueue[Event] = AsyncEventQueue()
        proxy = _event_proxy(callbacks or AgentCallbacks(), queue)
        done = asyncio.ensure_future(self._run(session, user_input, callbacks, proxy, queue, signal))
        return AgentRun(events=queue, done=done)

    async def _run(
        self,
        session: Session,
        user_input: str | Message,
        callbacks: AgentCallbacks | None,
        proxy: AgentCallbacks,
        queue: AsyncEventQueue[Event],
        signal: AbortSignal | None,
    ) -> RunResult:
        try:
            message = user_message(user_input) if isinstance(user_input, str) else user_input
            await self._inject_skills(session, message.text, proxy, signal)
            session.append(message)
            text = await run_once(await self._context(), session, proxy, signal)
            queue.push(Event(type="status", properties={"type": "done", "message": ""}))
            queue.close()
            return RunResult(text=text, session=session)
        except BaseException as e:
            logger.warning("Run on session %s failed: %s: %s", session.id, error_name(e), e)
            if callbacks is not None:
                await notify(callbacks.on_error, "on_error", e, on_debug=callbacks.on_debug)
            queue.push(Event(type="status", properties={"type": "error", "message": str(e)}))
            queue.fail(e)
            raise
        finally:
            strip_skill_messages(session)

    async def resume(
        self,
        session: Session,
        callbacks: AgentCallbacks | None = None,
        signal: AbortSignal | None = None,
    ) -> str:
        """Run the loop on the existing history without adding a user message."""
        return await run_once(await self._context(), session, callbacks, signal)

    async def compact_session(
        self,
        session: Session,
        callbacks: AgentCallbacks | None = None,
        model_id: str | None = None,
        auto: bool = False,
        signal: AbortSignal | None = None,
    ) -> Message | None:
        """
        Summarize the session on request.

        Args:
            session: Session to compact
            callbacks: Observer callbacks (compaction start/end)
            model_id: Model for the summary (defaults to the agent model)
            auto: Append the synthetic continue message after the summary
            signal: Cancellation token

        Returns:
            The summary message, or None when there is nothing to compact

        Raises:
            ConfigurationError: If no model is configured
        """
        model = (model_id or self.config.model or "").strip()
        if not model:
            raise ConfigurationError(NO_MODEL_MESSAGE)
        if not effective_history(session.history):
            logger.debug("Nothing to compact in session %s", session.id)
            return None
        return await compact_session(
            session,
            auto=auto,
            model_id=model,
            mode=self.config.mode,
            provider=self.provider,
            plugins=self.plugins,
            config=self.runtime.compaction,
            max_output_tokens=self.config.max_output_tokens,
            callbacks=callbacks,
            signal=signal,
        )


def _event_proxy(callbacks: AgentCallbacks, queue: AsyncEventQueue[Event]) -> AgentCallbacks:
    """Callbacks that forward to ``callbacks`` and push an Event for each call."""
    on_debug = callbacks.on_debug

    async def forward(fn: Any, label: str, event_type: str, properties: dict[str, Any], *args: Any) -> Any:
        result = await notify(fn, label, *args, on_debug=on_debug if fn is not on_debug else None)
        queue.push(Event(type=event_type, properties=properties))
        return result

    async def debug_proxy(message: str) -> None:
        await forward(on_debug, "on_debug", "debug", {"message": message}, message)

    async def notice_proxy(notice: dict[str, Any]) -> Any:
        return await forward(callbacks.on_notice, "on_notice", "notice", {"notice": notice}, notice)

    async def status_proxy(status: dict[str, Any]) -> None:
        await forward(callbacks.on_status_change, "on_status_change", "status", dict(status), status)

    async def assistant_token_proxy(token: str) -> None:
        await forward(callbacks.on_assistant_token, "on_assistant_token", "assistant_token", {"token": token}, token)

    async def thought_token_proxy(token: str) -> None:
        await forward(callbacks.on_thought_token, "on_thought_token", "thought_token", {"token": token}, token)

    async def tool_call_proxy(call: Any, definition: ToolDefinition) -> None:
        await forward(
            callbacks.on_tool_call,
            f"on_tool_call tool={definition.id}",
            "tool_call",
            {"tool": call, "definition": definition},
            call,
            definition,
        )

    async def tool_blocked_proxy(call: Any, definition: ToolDefinition, reason: str | None) -> None:
        await forward(
            callbacks.on_tool_blocked,
            f"on_tool_blocked tool={definition.id}",
            "tool_blocked",
            {"tool": call, "definition": definition, "reason": reason},
            call,
            definition,
            reason,
        )

    async def tool_result_proxy(call: Any, result: Any) -> None:
        await forward(
            callbacks.on_tool_result,
            f"on_tool_result tool={call.name}",
            "tool_result",
            {"tool": call, "result": result},
            call,
            result,
        )

    async def compaction_start_proxy(event: dict[str, Any]) -> Any:
        return await forward(callbacks.on_compaction_start, "on_compaction_start", "compaction_start", dict(event), event)

    async def compaction_end_proxy(event: dict[str, Any]) -> Any:
        return await forward(callbacks.on_compaction_end, "on_compaction_end", "compaction_end", dict(event), event)

    return callbacks.with_overrides(
        on_debug=debug_proxy,
        on_notice=notice_proxy,
        on_status_change=status_proxy,
        on_assistant_token=assistant_token_proxy,
        on_thought_token=thought_token_proxy,
        on_tool_call=tool_call_proxy,
        on_tool_blocked=tool_blocked_proxy,
        on_tool_result=tool_result_proxy,
        on_compaction_start=compaction_start_proxy,
        on_compaction_end=compaction_end_proxy,
    )
