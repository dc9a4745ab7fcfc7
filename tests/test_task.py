"""Tests for the task tool and subagent sessions."""

from unittest.mock import AsyncMock

import pytest

from core.constants import TRUNCATION_MARKER
from core.models import Session, ToolErrorCode
from plugins import PluginPipeline, collect_plugin, plugin_tool
from runtime import TASK_TOOL, Agent, AgentCallbacks, SubagentSessionCache, TaskToolBehavior, format_task_output_text
from runtime.subagents import list_subagent_names, resolve_subagent
from runtime.task import PLAN_MODE_SUBAGENT_MESSAGE, RECURSION_DENIED_MESSAGE, normalize_session_id

from fakes import ScriptedProvider, text_turn, tool_turn


def task_args(subagent_type="general", **extra):
    return {"description": "Find files", "prompt": "List the python files", "subagent_type": subagent_type, **extra}


class TestSubagentSessionCache:
    """LRU behaviour of child sessions."""

    def test_checkout_creates_child(self):
        cache = SubagentSessionCache(max_size=2)

        child = cache.checkout("a", "parent", "general")

        assert child.id == "a"
        assert child.parent_session_id == "parent"
        assert child.subagent_type == "general"
        assert child.is_subagent
        assert "a" in cache

    def test_checkout_reuses_and_refreshes(self):
        cache = SubagentSessionCache(max_size=2)
        first = cache.checkout("a", "p1", "general")
        cache.checkout("b", "p1", "general")

        again = cache.checkout("a", "p2", "explore")
        cache.checkout("c", "p2", "general")

        assert again is first
        assert again.parent_session_id == "p2"
        assert again.subagent_type == "explore"
        assert cache.keys() == ["a", "c"]
        assert cache.get("b") is None
        assert len(cache) == 2

    def test_zero_capacity_keeps_current(self):
        cache = SubagentSessionCache(max_size=0)

        cache.checkout("a", "p", "general")

        assert cache.keys() == ["a"]


class TestHelpers:
    """Session id normalisation, output formatting and subagent lookup."""

    @pytest.mark.parametrize("raw", [None, "", "   ", "has space", "x" * 65, "../etc", 12])
    def test_rejected_session_ids(self, raw):
        assert normalize_session_id(raw) is None

    def test_accepted_session_id(self):
        assert normalize_session_id("  task_01-a ") == "task_01-a"

    def test_output_unbounded(self):
        assert format_task_output_text("answer\n", "s1", None) == (
            "answer\n\n<task_metadata>\nsession_id: s1\n</task_metadata>"
        )

    def test_output_truncated_keeps_trailer(self):
        trailer = "\n\n<task_metadata>\nsession_id: s1\n</task_metadata>"
        budget = len(trailer) + len(TRUNCATION_MARKER) + 10

        text = format_task_output_text("x" * 100, "s1", budget)

        assert text == "x" * 10 + TRUNCATION_MARKER + trailer
        assert len(text) == budget

    def test_output_tiny_budget(self):
        text = format_task_output_text("x" * 100, "s1", 12)

        assert text == "</task_metadata>"[-12:]

    def test_resolve_subagent(self):
        assert resolve_subagent(" Explore ").name == "explore"
        assert resolve_subagent("reviewer") is None
        assert list_subagent_names() == ["general", "explore"]


class TestTaskToolPolicy:
    """Requests the task tool refuses before spawning anything."""

    @pytest.fixture
    def behavior(self, make_agent):
        agent = make_agent(ScriptedProvider())
        return TaskToolBehavior(TASK_TOOL, agent, SubagentSessionCache())

    @pytest.mark.asyncio
    async def test_recursion_denied(self, behavior, make_scope):
        scope = make_scope(session=Session(parent_session_id="parent", subagent_type="general"))

        result = await behavior.execute(scope, "call_1", task_args())

        assert result.error == RECURSION_DENIED_MESSAGE
        assert result.error_code == ToolErrorCode.TASK_RECURSION_DENIED
        assert len(behavior.sessions) == 0

    @pytest.mark.asyncio
    async def test_unknown_subagent_type(self, behavior, make_scope):
        result = await behavior.execute(make_scope(), "call_1", task_args("reviewer"))

        assert result.error == "Unknown subagent_type: reviewer. Available: general, explore"
        assert result.error_code == ToolErrorCode.UNKNOWN_SUBAGENT_TYPE

    @pytest.mark.asyncio
    async def test_general_denied_in_plan_mode(self, behavior, make_scope):
        result = await behavior.execute(make_scope("plan"), "call_1", task_args("general"))

        assert result.error == PLAN_MODE_SUBAGENT_MESSAGE
        assert result.error_code == ToolErrorCode.SUBAGENT_DENIED_IN_PLAN

    @pytest.mark.asyncio
    async def test_missing_prompt(self, behavior, make_scope):
        args = task_args()
        del args["prompt"]

        result = await behavior.execute(make_scope(), "call_1", args)

        assert result.error_code == ToolErrorCode.INVALID_ARGUMENTS


class TestTaskToolRun:
    """Spawning a child agent."""

    @pytest.mark.asyncio
    async def test_explore_subagent(self, make_agent, make_scope):
        provider = ScriptedProvider(text_turn("main.py and README.md"))
        behavior = TaskToolBehavior(TASK_TOOL, make_agent(provider), SubagentSessionCache())

        result = await behavior.execute(make_scope("plan"), "call_1", task_args("explore", session_id="child-1"))

        assert result.success
        assert result.data == {"session_id": "child-1", "subagent_type": "explore", "text": "main.py and README.md"}
        assert result.metadata["title"] == "Find files"
        assert result.metadata["output_text"].startswith("main.py and README.md\n\n<task_metadata>")
        assert result.metadata["task"]["session_id"] == "child-1"
        assert result.metadata["child_session"]["session_id"] == "child-1"

        request = provider.requests[0]
        assert sorted(tool["name"] for tool in request.tools) == ["glob", "read"]
        assert "You are a subagent (explore)." in request.system[0]
        assert request.messages[0]["content"][0]["text"] == "List the python files"

    @pytest.mark.asyncio
    async def test_continue_child_session(self, make_agent, make_scope):
        provider = ScriptedProvider(text_turn("first"), text_turn("second"))
        cache = SubagentSessionCache()
        behavior = TaskToolBehavior(TASK_TOOL, make_agent(provider), cache)
        scope = make_scope()

        await behavior.execute(scope, "call_1", task_args(session_id="child-1"))
        await behavior.execute(scope, "call_2", task_args(session_id="child-1"))

        assert len(cache) == 1
        assert [m.role for m in cache.get("child-1").history] == ["user", "assistant", "user", "assistant"]
        assert len(provider.requests[1].messages) == 3

    @pytest.mark.asyncio
    async def test_child_tool_summary(self, make_agent, make_scope):
        provider = ScriptedProvider(
            tool_turn("c1", "read", filePath="main.py"),
            text_turn("It prints hello"),
        )
        behavior = TaskToolBehavior(TASK_TOOL, make_agent(provider), SubagentSessionCache())

        result = await behavior.execute(make_scope(), "call_1", task_args())

        assert result.metadata["task"]["summary"] == [{"id": "c1", "tool": "read", "status": "success"}]

    @pytest.mark.asyncio
    async def test_subagent_model_fallback(self, make_agent, make_scope):
        provider = ScriptedProvider(text_turn("ok"), unknown_models=("claude-haiku-unknown",))
        agent = make_agent(provider, subagent_model="claude-haiku-unknown")
        behavior = TaskToolBehavior(TASK_TOOL, agent, SubagentSessionCache())
        on_notice = AsyncMock()

        result = await behavior.execute(make_scope(callbacks=AgentCallbacks(on_notice=on_notice)), "c", task_args())

        task = result.metadata["task"]
        assert task["model_id"] == agent.config.model
        assert task["requested_model_id"] == "claude-haiku-unknown"
        assert "unavailable" in task["model_warning"]
        assert on_notice.await_args.args[0]["level"] == "warning"

    @pytest.mark.asyncio
    async def test_child_failure(self, make_agent, make_scope):
        provider = ScriptedProvider([ValueError("bad request")])
        behavior = TaskToolBehavior(TASK_TOOL, make_agent(provider), SubagentSessionCache())

        result = await behavior.execute(make_scope(), "call_1", task_args())

        assert result.error == "bad request"
        assert result.error_code == ToolErrorCode.TASK_SUBAGENT_FAILED


class TestTaskThroughAgent:
    """The parent loop sees the bounded task output, not the child snapshot."""

    @pytest.mark.asyncio
    async def test_parent_history(self, make_agent, session):
        provider = ScriptedProvider(
            tool_turn("call_1", "task", description="Look around", prompt="What is here?", subagent_type="explore"),
            text_turn("Two files."),
            text_turn("The workspace has two files."),
        )
        agent = make_agent(provider)

        result = await agent.run(session, "Summarize the workspace").result()

        assert result.text == "The workspace has two files."
        assistant = session.history[1]
        output = assistant.tool_outputs()[0]
        assert output.output.startswith("Two files.\n\n<task_metadata>\nsession_id: ")
        assert "child_session" not in output.metadata
        assert "task" not in output.metadata
        assert len(agent.task_sessions) == 1

    @pytest.mark.asyncio
    async def test_child_events_are_consumed(self, make_agent, session, monkeypatch):
        runs = []
        original_run = Agent.run

        def recording_run(self, *args, **kwargs):
            run = original_run(self, *args, **kwargs)
            runs.append(run)
            return run

        monkeypatch.setattr(Agent, "run", recording_run)
        provider = ScriptedProvider(
            tool_turn("call_1", "task", description="Look around", prompt="What is here?", subagent_type="explore"),
            text_turn("Two files."),
            text_turn("Done."),
        )

        await make_agent(provider).run(session, "Summarize the workspace").result()

        child_run = runs[1]
        assert child_run.events.closed
        assert len(child_run.events) == 0

    @pytest.mark.asyncio
    async def test_child_uses_plugin_tools(self, make_agent, session):
        @plugin_tool("shout", "Upper-case text", read_only=True)
        def shout(args, ctx):
            return args["text"].upper()

        provider = ScriptedProvider(
            tool_turn("call_1", "task", description="Shout", prompt="Shout hi", subagent_type="general"),
            tool_turn("c1", "shout", text="hi"),
            text_turn("HI"),
            text_turn("The subagent shouted."),
        )
        plugins = PluginPipeline([collect_plugin("extras", [("shout", shout)])])
        agent = make_agent(provider, plugins=plugins)

        result = await agent.run(session, "Delegate the shouting").result()

        assert result.text == "The subagent shouted."
        output = session.history[1].tool_outputs()[0]
        assert output.type == "tool-result"
        assert output.output.startswith("HI\n\n<task_metadata>")
        child = agent.task_sessions.get(agent.task_sessions.keys()[0])
        assert child.history[1].tool_outputs()[0].output == "HI"
