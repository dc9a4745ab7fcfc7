"""Tests for the session and message models."""

import pytest

from core.exceptions import InvalidOperationError
from core.models import (
    Message,
    ReasoningPart,
    Session,
    TextPart,
    TokenInfo,
    ToolCall,
    ToolCallPart,
    ToolErrorPart,
    ToolResult,
    ToolResultPart,
    user_message,
)
from runtime import to_model_messages


def assistant_with_call(call_id: str = "call_1") -> Message:
    return Message(
        role="assistant",
        parts=[TextPart(text="Reading."), ToolCallPart(tool_call_id=call_id, tool_name="read", input={"filePath": "a.py"})],
    )


class TestSession:
    """History ownership and snapshots."""

    def test_duplicate_message_id(self):
        session = Session()
        message = session.append(user_message("hi"))

        with pytest.raises(InvalidOperationError, match="Duplicate message id"):
            session.append(message)

    def test_get_history_is_a_copy(self):
        session = Session()
        session.append(user_message("hi"))

        copy = session.get_history()
        copy[0].parts.append(TextPart(text="changed"))

        assert session.history[0].text == "hi"

    def test_snapshot_restores_session(self):
        session = Session(parent_session_id="parent", subagent_type="explore", model_id="m")
        session.append(user_message("hi"))
        message = assistant_with_call()
        message.add_tool_output(ToolResultPart(tool_call_id="call_1", tool_name="read", output="x = 1"))
        message.metadata.tokens = TokenInfo(input=3, output=4)
        session.append(message)
        session.pending_plan = "1. Do it"
        session.file_handles.by_id["F1"] = "a.py"
        session.file_handles.next_id = 2

        restored = Session.from_snapshot(session.export_snapshot())

        assert restored.id == session.id
        assert restored.is_subagent
        assert restored.history == session.history
        assert isinstance(restored.history[1].parts[2], ToolResultPart)
        assert restored.pending_plan == "1. Do it"
        assert restored.file_handles.by_id == {"F1": "a.py"}
        assert restored.file_handles.next_id == 2

    def test_root_session_is_not_subagent(self):
        assert not Session().is_subagent


class TestMessage:
    """Tool bookkeeping on assistant messages."""

    def test_tool_output_for_unknown_call(self):
        message = assistant_with_call()

        with pytest.raises(InvalidOperationError):
            message.add_tool_output(ToolErrorPart(tool_call_id="other", tool_name="read", error="boom"))

    def test_tool_output_replaces_previous(self):
        message = assistant_with_call()
        message.add_tool_output(ToolErrorPart(tool_call_id="call_1", tool_name="read", error="boom"))
        message.add_tool_output(ToolResultPart(tool_call_id="call_1", tool_name="read", output="ok"))

        outputs = message.tool_outputs()
        assert len(outputs) == 1
        assert outputs[0].output == "ok"
        assert message.has_tool_parts()

    def test_tool_call_arguments(self):
        assert ToolCall(id="c", name="read", arguments='{"a": 1}').parsed_arguments() == {"a": 1}
        assert ToolCall(id="c", name="read", arguments="[1, 2]").parsed_arguments() == {}
        assert ToolCall(id="c", name="read", arguments="not json").parsed_arguments() == {}

    def test_failure_result(self):
        result = ToolResult.failure("nope", blocked_paths=["/etc"])

        assert not result.success
        assert result.error_code is None
        assert result.metadata == {"blocked_paths": ["/etc"]}


class TestModelMessages:
    """Neutral message conversion for providers."""

    def test_missing_tool_output_is_synthesized(self):
        messages = to_model_messages([user_message("go"), assistant_with_call()])

        assert [m["role"] for m in messages] == ["user", "assistant", "tool"]
        result = messages[2]["content"][0]
        assert result["tool_call_id"] == "call_1"
        assert result["is_error"] is True
        assert result["output"] == "Tool execution did not complete"

    def test_reasoning_only_message_is_dropped(self):
        messages = to_model_messages([Message(role="assistant", parts=[ReasoningPart(text="hmm")])])

        assert messages == []
