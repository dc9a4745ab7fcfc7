"""Part models."""

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field


class TextPart(BaseModel):
    type: Literal["text"] = "text"
    text: str


class ReasoningPart(BaseModel):
    type: Literal["reasoning"] = "reasoning"
    text: str


class ToolCallPart(BaseModel):
    type: Literal["tool-call"] = "tool-call"
    tool_call_id: str
    tool_name: str
    input: dict[str, Any] = Field(default_factory=dict)


class ToolResultPart(BaseModel):
    type: Literal["tool-result"] = "tool-result"
    tool_call_id: str
    tool_name: str
    output: str
    success: bool = True
    metadata: dict[str, Any] = Field(default_factory=dict)
    compacted_at: float | None = Field(
        default=None,
        description="Set when the output was pruned from the model-visible history",
    )


class ToolErrorPart(BaseModel):
    type: Literal["tool-error"] = "tool-error"
    tool_call_id: str
    tool_name: str
    error: str


Part = Annotated[
    Union[TextPart, ReasoningPart, ToolCallPart, ToolResultPart, ToolErrorPart],
    Field(discriminator="type"),
]
