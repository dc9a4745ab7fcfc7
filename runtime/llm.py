"""
Language model provider contract.

The run loop talks to models only through ``LLMProvider``. A provider turns
a ``ModelRequest`` into an async stream of typed parts. Messages are passed
in a neutral, provider-agnostic dict shape built by ``to_model_messages``.
"""

import json
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Protocol, Union, runtime_checkable

from core.abort import AbortSignal
from core.models import (
    Message,
    ReasoningPart,
    TextPart,
    TokenInfo,
    ToolCallPart,
    ToolErrorPart,
    ToolResultPart,
)

MISSING_TOOL_OUTPUT = "Tool execution did not complete"


@dataclass
class TextDelta:
    text: str
    type: str = "text-delta"


@dataclass
class ReasoningDelta:
    text: str
    type: str = "reasoning-delta"


@dataclass
class ToolCallChunk:
    """The model asked for a tool. ``input`` is the decoded argument object."""

    tool_call_id: str
    tool_name: str
    input: dict[str, Any] = field(default_factory=dict)
    type: str = "tool-call"


@dataclass
class ToolResultChunk:
    """A tool executed by the provider itself."""

    tool_call_id: str
    tool_name: str
    output: Any = None
    type: str = "tool-result"


@dataclass
class ToolErrorChunk:
    tool_call_id: str
    tool_name: str
    error: str
    type: str = "tool-error"


@dataclass
class FinishChunk:
    finish_reason: str = "stop"
    usage: TokenInfo | None = None
    type: str = "finish"


@dataclass
class ErrorChunk:
    error: BaseException
    type: str = "error"


StreamPart = Union[
    TextDelta,
    ReasoningDelta,
    ToolCallChunk,
    ToolResultChunk,
    ToolErrorChunk,
    FinishChunk,
    ErrorChunk,
]


@dataclass
class ModelRequest:
    """Everything a provider needs for one streamed completion.

    Attributes:
        system: System prompt entries, joined by the provider
        messages: Neutral model messages (see ``to_model_messages``)
        tools: Tool schemas from ``ToolDefinition.schema_for_model``
        signal: Cancellation token; providers stop streaming when it aborts
        max_retries: Provider-side retries; the run loop retries itself
    """

    system: list[str]
    messages: list[dict[str, Any]]
    tools: list[dict[str, Any]] = field(default_factory=list)
    temperature: float | None = None
    top_p: float | None = None
    max_output_tokens: int | None = None
    options: dict[str, Any] = field(default_factory=dict)
    signal: AbortSignal | None = None
    max_retries: int = 0


@runtime_checkable
class LLMProvider(Protocol):
    """Model transport used by the run loop.

    Providers may also define ``on_request_error(error)`` to observe
    failures the loop gives up on.
    """

    id: str

    async def get_model(self, model_id: str) -> Any:
        """Resolve a model id to a provider handle. Raises if unknown."""
        ...

    def stream(self, model: Any, request: ModelRequest) -> AsyncIterator[StreamPart]:
        """Stream parts for one request."""
        ...


def _tool_output_block(part: ToolResultPart | ToolErrorPart) -> dict[str, Any]:
    if isinstance(part, ToolResultPart):
        return {
            "type": "tool-result",
            "tool_call_id": part.tool_call_id,
            "tool_name": part.tool_name,
            "output": part.output,
            "is_error": not part.success,
        }
    return {
        "type": "tool-result",
        "tool_call_id": part.tool_call_id,
        "tool_name": part.tool_name,
        "output": part.error,
        "is_error": True,
    }


def to_model_messages(history: list[Message]) -> list[dict[str, Any]]:
    """
    Convert history into neutral model messages.

    User and system messages become text blocks. An assistant message
    becomes text and tool-call blocks, followed by a ``tool`` message with
    one result block per call. Calls without a recorded output get a
    synthetic error so that every call is answered. Reasoning is not sent
    back to the model.

    Args:
        history: Model-view history

    Returns:
        List of ``{"role": ..., "content": [...]}`` dicts
    """
    messages: list[dict[str, Any]] = []
    for message in history:
        if message.role != "assistant":
            content = [
                {"type": "text", "text": part.text}
                for part in message.parts
                if isinstance(part, TextPart) and part.text
            ]
            if content:
                messages.append({"role": message.role, "content": content})
            continue

        content = []
        outputs: dict[str, ToolResultPart | ToolErrorPart] = {}
        for part in message.parts:
            if isinstance(part, TextPart) and part.text:
                content.append({"type": "text", "text": part.text})
            elif isinstance(part, ToolCallPart):
                content.append(
                    {
                        "type": "tool-call",
                        "tool_call_id": part.tool_call_id,
                        "tool_name": part.tool_name,
                        "input": part.input,
                    }
                )
            elif isinstance(part, (ToolResultPart, ToolErrorPart)):
                outputs[part.tool_call_id] = part
            elif isinstance(part, ReasoningPart):
                continue
        if not content:
            continue
        messages.append({"role": "assistant", "content": content})

        calls = message.tool_calls()
        if calls:
            results = []
            for call in calls:
                output = outputs.get(call.tool_call_id)
                if output is None:
                    output = ToolErrorPart(
                        tool_call_id=call.tool_call_id,
                        tool_name=call.tool_name,
                        error=MISSING_TOOL_OUTPUT,
                    )
                results.append(_tool_output_block(output))
            messages.append({"role": "tool", "content": results})
    return messages


def stringify_tool_output(output: Any) -> str:
    """Text form of a provider-executed tool output."""
    if isinstance(output, str):
        return output
    return json.dumps(output, default=str)


@dataclass
class StreamOutcome:
    """Accumulated result of a fully consumed stream."""

    text: str = ""
    reasoning: str = ""
    finish_reason: str = "stop"
    usage: TokenInfo | None = None


async def collect_stream(provider: LLMProvider, model: Any, request: ModelRequest) -> StreamOutcome:
    """
    Consume a stream that is not expected to call tools.

    Raises:
        BaseException: The error carried by an error part
    """
    outcome = StreamOutcome()
    async for part in provider.stream(model, request):
        if request.signal is not None:
            request.signal.raise_if_aborted()
        if isinstance(part, TextDelta):
            outcome.text += part.text
        elif isinstance(part, ReasoningDelta):
            outcome.reasoning += part.text
        elif isinstance(part, FinishChunk):
            outcome.finish_reason = part.finish_reason
            outcome.usage = part.usage
        elif isinstance(part, ErrorChunk):
            raise part.error
    return outcome
