"""
LLMProvider backed by Pydantic AI models.

Uses Pydantic AI only as a model transport (``pydantic_ai.direct``): the run
loop owns tool dispatch, so the provider streams a single response and
reports the tool calls the model made as ``ToolCallChunk`` parts.
"""

import logging
from typing import Any, AsyncIterator

from pydantic_ai.direct import model_request_stream
from pydantic_ai.exceptions import ModelHTTPError, UnexpectedModelBehavior, UserError
from pydantic_ai.messages import (
    ModelMessage,
    ModelRequest as PaiModelRequest,
    ModelResponse,
    PartDeltaEvent,
    PartStartEvent,
    SystemPromptPart,
    TextPart,
    TextPartDelta,
    ThinkingPart,
    ThinkingPartDelta,
    ToolCallPart,
    ToolReturnPart,
    UserPromptPart,
)
from pydantic_ai.models import Model, ModelRequestParameters, infer_model
from pydantic_ai.settings import ModelSettings
from pydantic_ai.tools import ToolDefinition as PaiToolDefinition

from config.defaults import DEFAULT_MODEL
from core.exceptions import ProviderError
from core.models import TokenInfo
from runtime.llm import (
    FinishChunk,
    ModelRequest,
    ReasoningDelta,
    StreamPart,
    TextDelta,
    ToolCallChunk,
)

logger = logging.getLogger(__name__)

DEFAULT_PROVIDER_PREFIX = "anthropic"

# Pydantic AI finish reasons mapped to the runtime's vocabulary
FINISH_REASONS = {
    "stop": "stop",
    "length": "length",
    "content_filter": "content-filter",
    "tool_call": "tool-calls",
    "error": "error",
}


def qualified_model_name(model_id: str) -> str:
    """``claude-...`` becomes ``anthropic:claude-...``; qualified names pass through."""
    model_id = (model_id or DEFAULT_MODEL).strip()
    if ":" in model_id:
        return model_id
    return f"{DEFAULT_PROVIDER_PREFIX}:{model_id}"


def _text_of(content: list[dict[str, Any]]) -> str:
    return "\n".join(block.get("text", "") for block in content if block.get("type") == "text")


def to_pydantic_ai_messages(system: list[str], messages: list[dict[str, Any]]) -> list[ModelMessage]:
    """
    Convert neutral model messages into Pydantic AI message history.

    System entries are sent as system prompt parts on the first request.
    Tool outputs become tool return parts on the following request.

    Args:
        system: System prompt entries
        messages: Output of ``runtime.llm.to_model_messages``

    Returns:
        Pydantic AI messages, alternating requests and responses
    """
    history: list[ModelMessage] = []
    pending: list[Any] = [SystemPromptPart(content=entry) for entry in system if entry]

    def flush() -> None:
        nonlocal pending
        if pending:
            history.append(PaiModelRequest(parts=pending))
            pending = []

    for message in messages:
        role = message.get("role")
        content = message.get("content") or []
        if role == "assistant":
            flush()
            parts: list[Any] = []
            for block in content:
                if block.get("type") == "text" and block.get("text"):
                    parts.append(TextPart(content=block["text"]))
                elif block.get("type") == "tool-call":
                    parts.append(
                        ToolCallPart(
                            tool_name=block["tool_name"],
                            args=block.get("input") or {},
                            tool_call_id=block["tool_call_id"],
                        )
                    )
            if parts:
                history.append(ModelResponse(parts=parts))
        elif role == "tool":
            for block in content:
                pending.append(
                    ToolReturnPart(
                        tool_name=block["tool_name"],
                        content=block.get("output", ""),
                        tool_call_id=block["tool_call_id"],
                    )
                )
        else:
            text = _text_of(content)
            if text:
                pending.append(UserPromptPart(content=text))
    flush()
    return history


def _token_info(usage: Any) -> TokenInfo | None:
    if usage is None:
        return None
    input_tokens = getattr(usage, "input_tokens", None) or getattr(usage, "request_tokens", None) or 0
    output_tokens = getattr(usage, "output_tokens", None) or getattr(usage, "response_tokens", None) or 0
    return TokenInfo(
        input=input_tokens,
        output=output_tokens,
        cache_read=getattr(usage, "cache_read_tokens", 0) or 0,
        cache_write=getattr(usage, "cache_write_tokens", 0) or 0,
    )


class PydanticAIProvider:
    """LLMProvider for any model Pydantic AI can infer (``anthropic:...`` by default).

    Example:
        provider = PydanticAIProvider()
        agent = Agent(provider, registry, AgentConfig(model="claude-sonnet-4-20250514"))
    """

    id = "pydantic-ai"

    def __init__(self) -> None:
        self._models: dict[str, Model] = {}

    async def get_model(self, model_id: str) -> Model:
        """
        Resolve a model id.

        Raises:
            ProviderError: If Pydantic AI cannot build the model (unknown
                provider, missing credentials)
        """
        name = qualified_model_name(model_id)
        if name not in self._models:
            try:
                self._models[name] = infer_model(name)
            except UserError as e:
                raise ProviderError(f"Unknown model {model_id}: {e}") from e
            logger.debug("Resolved model %s", name)
        return self._models[name]

    def on_request_error(self, error: BaseException, info: dict[str, Any]) -> None:
        logger.warning("Model request failed for %s (%s): %s", info.get("model_id"), info.get("mode"), error)

    async def stream(self, model: Model, request: ModelRequest) -> AsyncIterator[StreamPart]:
        """
        Stream one response.

        Text and thinking deltas are yielded as they arrive; tool calls are
        yielded once the response is complete, followed by the finish part.

        Raises:
            ProviderError: HTTP failures from the model API
        """
        settings: dict[str, Any] = {}
        if request.max_output_tokens is not None:
            settings["max_tokens"] = request.max_output_tokens
        if request.temperature is not None:
            settings["temperature"] = request.temperature
        if request.top_p is not None:
            settings["top_p"] = request.top_p
        settings.update(request.options)

        parameters = ModelRequestParameters(
            function_tools=[
                PaiToolDefinition(
                    name=tool["name"],
                    description=tool.get("description", ""),
                    parameters_json_schema=tool.get("parameters") or {"type": "object", "properties": {}},
                )
                for tool in request.tools
            ],
            allow_text_output=True,
        )
        messages = to_pydantic_ai_messages(request.system, request.messages)

        try:
            async with model_request_stream(
                model,
                messages,
                model_settings=ModelSettings(**settings),
                model_request_parameters=parameters,
            ) as stream:
                iterator = stream.__aiter__()
                while True:
                    try:
                        if request.signal is not None:
                            event = await request.signal.race(iterator.__anext__())
                        else:
                            event = await iterator.__anext__()
                    except StopAsyncIteration:
                        break
                    part = _delta_part(event)
                    if part is not None:
                        yield part

                response = stream.get()
        except ModelHTTPError as e:
            body = e.body if isinstance(e.body, str) else (str(e.body) if e.body is not None else None)
            raise ProviderError(str(e), status_code=e.status_code, body=body) from e
        except UnexpectedModelBehavior as e:
            raise ProviderError(str(e), body=e.body) from e

        calls = [part for part in response.parts if isinstance(part, ToolCallPart)]
        for call in calls:
            yield ToolCallChunk(tool_call_id=call.tool_call_id, tool_name=call.tool_name, input=call.args_as_dict())

        raw_reason = getattr(response, "finish_reason", None)
        finish_reason = FINISH_REASONS.get(raw_reason or "", "stop")
        if calls:
            finish_reason = "tool-calls"
        yield FinishChunk(finish_reason=finish_reason, usage=_token_info(response.usage))


def _delta_part(event: Any) -> StreamPart | None:
    if isinstance(event, PartStartEvent):
        if isinstance(event.part, TextPart) and event.part.content:
            return TextDelta(event.part.content)
        if isinstance(event.part, ThinkingPart) and event.part.content:
            return ReasoningDelta(event.part.content)
    elif isinstance(event, PartDeltaEvent):
        if isinstance(event.delta, TextPartDelta) and event.delta.content_delta:
            return TextDelta(event.delta.content_delta)
        if isinstance(event.delta, ThinkingPartDelta) and event.delta.content_delta:
            return ReasoningDelta(event.delta.content_delta)
    return None
