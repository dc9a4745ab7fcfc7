"""Tests for the streaming run loop, driven through Agent.run."""

import json
from unittest.mock import MagicMock

import pytest

from config import ModelLimit
from core.abort import AbortController
from core.constants import PLAN_MODE_BLOCKED_MESSAGE
from core.exceptions import AbortError, ProviderError, RetryableProviderError
from core.models import TokenInfo
from plugins import LoadedPlugin, PluginPipeline
from runtime import AgentCallbacks, FinishChunk, ReasoningDelta, RuntimeOptions, TextDelta
from runtime.prompts import COMPACTION_CONTINUE_TEXT, COMPACTION_MARKER_TEXT

from fakes import TEST_MODEL, ScriptedProvider, text_turn, tool_turn

OVERLOADED = {"status_code": 529, "headers": {"retry-after-ms": "5"}}


async def drain(run):
    """All events of a run, plus the error it failed with (if any)."""
    events = []
    error = None
    try:
        async for event in run.events:
            events.append(event)
    except Exception as e:
        error = e
    return events, error


def event_types(events):
    return [event.type for event in events]


class TestSimpleAnswer:
    """A single turn without tools."""

    @pytest.mark.asyncio
    async def test_text_answer(self, make_agent, session):
        provider = ScriptedProvider(text_turn("Hello there!", TokenInfo(input=12, output=3)))
        run = make_agent(provider).run(session, "Hi")

        events, error = await drain(run)
        result = await run.result()

        assert error is None
        assert result.text == "Hello there!"
        assert [m.role for m in session.history] == ["user", "assistant"]
        assistant = session.history[1]
        assert assistant.metadata.finish_reason == "stop"
        assert assistant.metadata.mode == "build"
        assert assistant.metadata.tokens.input == 12
        assert "assistant_token" in event_types(events)
        assert events[-1].type == "status"
        assert events[-1].properties == {"type": "done", "message": ""}

    @pytest.mark.asyncio
    async def test_request_contents(self, make_agent, session):
        provider = ScriptedProvider(text_turn("ok"))

        await make_agent(provider, temperature=0.3).run(session, "Hi").result()

        request = provider.requests[0]
        assert provider.resolved == [TEST_MODEL]
        assert request.temperature == 0.3
        assert request.max_output_tokens == 4096
        assert sorted(tool["name"] for tool in request.tools) == ["bash", "glob", "read", "task", "write"]
        user = request.messages[0]
        assert user["role"] == "user"
        assert user["content"][0]["text"] == "Hi"
        assert "External paths are disabled" in user["content"][-1]["text"]

    @pytest.mark.asyncio
    async def test_think_blocks_are_removed(self, make_agent, session):
        provider = ScriptedProvider(text_turn("<think>let me see</think>The answer is 4."))

        result = await make_agent(provider).run(session, "2+2?").result()

        assert result.text == "The answer is 4."

    @pytest.mark.asyncio
    async def test_reasoning_is_kept_first(self, make_agent, session):
        provider = ScriptedProvider(text_turn("Done.", reasoning="thinking..."))
        run = make_agent(provider).run(session, "Go")

        events, _ = await drain(run)
        await run.result()

        parts = session.history[1].parts
        assert [part.type for part in parts] == ["reasoning", "text"]
        assert "thought_token" in event_types(events)


class TestToolCalls:
    """Tool calls are dispatched while streaming and recorded in history."""

    @pytest.mark.asyncio
    async def test_tool_call_then_answer(self, make_agent, session):
        provider = ScriptedProvider(
            tool_turn("call_1", "read", filePath="main.py"),
            text_turn("It prints hello."),
        )
        run = make_agent(provider).run(session, "What does main.py do?")

        events, _ = await drain(run)
        result = await run.result()

        assert result.text == "It prints hello."
        assert [m.role for m in session.history] == ["user", "assistant", "assistant"]
        output = session.history[1].tool_outputs()[0]
        assert output.output == "print('hello')\n"
        assert output.success

        tool_message = provider.requests[1].messages[2]
        assert tool_message["role"] == "tool"
        assert tool_message["content"][0]["output"] == "print('hello')\n"
        types = event_types(events)
        assert types.index("tool_call") < types.index("tool_result")

    @pytest.mark.asyncio
    async def test_plan_mode_blocks_write(self, make_agent, session, workspace):
        provider = ScriptedProvider(
            tool_turn("call_1", "write", filePath="x.txt", content="nope"),
            text_turn("1. Create x.txt"),
        )
        run = make_agent(provider, mode="plan").run(session, "Create x.txt")

        events, _ = await drain(run)
        result = await run.result()

        assert result.text == "1. Create x.txt"
        assert not (workspace / "x.txt").exists()
        output = session.history[1].tool_outputs()[0]
        assert not output.success
        assert json.loads(output.output) == {"error": PLAN_MODE_BLOCKED_MESSAGE}
        blocked = [e for e in events if e.type == "tool_blocked"]
        assert blocked[0].properties["reason"] == PLAN_MODE_BLOCKED_MESSAGE

    @pytest.mark.asyncio
    async def test_unknown_tool(self, make_agent, session):
        provider = ScriptedProvider(tool_turn("call_1", "teleport"), text_turn("Sorry."))

        await make_agent(provider).run(session, "Go").result()

        output = session.history[1].tool_outputs()[0]
        assert output.metadata["error_code"] == "unknown_tool"

    @pytest.mark.asyncio
    async def test_tool_filter(self, make_agent, session):
        provider = ScriptedProvider(tool_turn("call_1", "bash", command="ls"), text_turn("ok"))

        await make_agent(provider, tool_filter=("read", "glob")).run(session, "Go").result()

        assert sorted(tool["name"] for tool in provider.requests[0].tools) == ["glob", "read"]
        assert session.history[1].tool_outputs()[0].metadata["error_code"] == "unknown_tool"

    @pytest.mark.asyncio
    async def test_plan_extracted_from_reasoning(self, make_agent, session):
        provider = ScriptedProvider(
            [ReasoningDelta("Thinking.\n1. Read main.py\n2. Add a test"), FinishChunk("stop")]
        )

        result = await make_agent(provider, mode="plan").run(session, "Plan it").result()

        assert result.text == "1. Read main.py\n2. Add a test"
        assert session.pending_plan == result.text


class TestCompactionTrigger:
    """Context overflow after a tool turn compacts and keeps going."""

    @pytest.mark.asyncio
    async def test_overflow_compacts(self, make_agent, session, workspace):
        runtime = RuntimeOptions(
            workspace_root=str(workspace),
            model_limits={TEST_MODEL: ModelLimit(context=1000, output=100)},
        )
        provider = ScriptedProvider(
            tool_turn("call_1", "read", TokenInfo(input=950), filePath="main.py"),
            text_turn("We read main.py."),
            text_turn("All done."),
        )
        run = make_agent(provider, runtime=runtime).run(session, "Inspect main.py")

        events, _ = await drain(run)
        result = await run.result()

        assert result.text == "All done."
        assert [m.text for m in session.history] == [
            COMPACTION_MARKER_TEXT,
            "We read main.py.",
            COMPACTION_CONTINUE_TEXT,
            "All done.",
        ]
        types = event_types(events)
        assert types.index("compaction_start") < types.index("compaction_end")
        assert types.count("compaction_start") == types.count("compaction_end") == 1
        last = provider.requests[2].messages
        assert len(last) == 3
        assert last[0]["content"][0]["text"] == COMPACTION_MARKER_TEXT

    @pytest.mark.asyncio
    async def test_no_overflow_below_limit(self, make_agent, session, workspace):
        runtime = RuntimeOptions(
            workspace_root=str(workspace),
            model_limits={TEST_MODEL: ModelLimit(context=1000, output=100)},
        )
        provider = ScriptedProvider(
            tool_turn("call_1", "read", TokenInfo(input=900), filePath="main.py"),
            text_turn("Fine."),
        )

        await make_agent(provider, runtime=runtime).run(session, "Inspect").result()

        assert len(session.history) == 3
        assert session.history[0].text == "Inspect"


class TestRetry:
    """Transient failures are retried while nothing visible happened."""

    @pytest.mark.asyncio
    async def test_retry_then_success(self, make_agent, session):
        provider = ScriptedProvider([ProviderError("overloaded", **OVERLOADED)], text_turn("Recovered."))
        statuses = []
        callbacks = AgentCallbacks(on_status_change=statuses.append)

        result = await make_agent(provider, max_retries=2).run(session, "Go", callbacks=callbacks).result()

        assert result.text == "Recovered."
        retry = next(s for s in statuses if s["type"] == "retry")
        assert retry["attempt"] == 1
        assert retry["message"] == "Provider is overloaded"
        assert retry["next_retry_time"] > 0

    @pytest.mark.asyncio
    async def test_retry_after_reasoning_only(self, make_agent, session):
        provider = ScriptedProvider(
            [ReasoningDelta("hmm"), ProviderError("overloaded", **OVERLOADED)],
            text_turn("Second try."),
        )

        result = await make_agent(provider, max_retries=1).run(session, "Go").result()

        assert result.text == "Second try."

    @pytest.mark.asyncio
    async def test_no_retry_after_text(self, make_agent, session):
        provider = ScriptedProvider([TextDelta("Partial"), ProviderError("overloaded", **OVERLOADED)])
        on_error = MagicMock()
        run = make_agent(provider, max_retries=3).run(session, "Go", callbacks=AgentCallbacks(on_error=on_error))

        _, error = await drain(run)

        assert isinstance(error, RetryableProviderError)
        assert str(error) == "Provider is overloaded"
        assert isinstance(error.cause, ProviderError)
        on_error.assert_called_once_with(error)
        with pytest.raises(RetryableProviderError):
            await run.result()
        assert len(provider.requests) == 1

    @pytest.mark.asyncio
    async def test_retries_exhausted(self, make_agent, session):
        provider = ScriptedProvider(
            [ProviderError("overloaded", **OVERLOADED)],
            [ProviderError("overloaded", **OVERLOADED)],
        )

        with pytest.raises(RetryableProviderError):
            await make_agent(provider, max_retries=1).run(session, "Go").result()

        assert len(provider.requests) == 2

    @pytest.mark.asyncio
    async def test_fatal_error_is_not_retried(self, make_agent, session):
        provider = ScriptedProvider([ProviderError("invalid x-api-key", status_code=401)])

        with pytest.raises(ProviderError, match="invalid x-api-key"):
            await make_agent(provider, max_retries=3).run(session, "Go").result()

        assert len(provider.requests) == 1


class TestLoopControl:
    """Cancellation, the iteration ceiling and plugin hooks."""

    @pytest.mark.asyncio
    async def test_abort(self, make_agent, session):
        controller = AbortController()
        controller.abort("user pressed stop")
        provider = ScriptedProvider(text_turn("never"))

        with pytest.raises(AbortError):
            await make_agent(provider).run(session, "Go", signal=controller.signal).result()

    @pytest.mark.asyncio
    async def test_caller_signal_released_each_iteration(self, make_agent, session):
        controller = AbortController()
        provider = ScriptedProvider(
            tool_turn("call_1", "read", filePath="main.py"),
            tool_turn("call_2", "read", filePath="main.py"),
            text_turn("Read it twice."),
        )

        result = await make_agent(provider).run(session, "Go", signal=controller.signal).result()

        assert result.text == "Read it twice."
        assert controller.signal._listeners == []

    @pytest.mark.asyncio
    async def test_iteration_ceiling(self, make_agent, session, monkeypatch):
        monkeypatch.setattr("runtime.loop.MAX_ITERATIONS", 2)
        provider = ScriptedProvider(
            [TextDelta("Still working"), *tool_turn("c1", "glob")],
            [TextDelta("Still working"), *tool_turn("c2", "glob")],
        )

        result = await make_agent(provider).run(session, "Loop").result()

        assert result.text == "Still working"
        assert len(provider.requests) == 2

    @pytest.mark.asyncio
    async def test_text_complete_hook(self, make_agent, session):
        plugins = PluginPipeline(
            [LoadedPlugin(name="sign", hooks={"experimental.text.complete": [lambda i, o: {"text": o["text"] + " (signed)"}]})]
        )
        provider = ScriptedProvider(text_turn("Done."))

        result = await make_agent(provider, plugins=plugins).run(session, "Go").result()

        assert result.text == "Done. (signed)"
        assert session.history[-1].text == "Done. (signed)"

    @pytest.mark.asyncio
    async def test_chat_params_hook(self, make_agent, session):
        def params(input, output):
            assert input["message"] == "Go"
            output["temperature"] = 0.9
            output["options"] = {"thinking": True}

        plugins = PluginPipeline([LoadedPlugin(name="params", hooks={"chat.params": [params]})])
        provider = ScriptedProvider(text_turn("ok"))

        await make_agent(provider, plugins=plugins).run(session, "Go").result()

        assert provider.requests[0].temperature == 0.9
        assert provider.requests[0].options == {"thinking": True}
