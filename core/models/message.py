"""Message models."""

from typing import Literal

from pydantic import BaseModel, Field

from ..exceptions import InvalidOperationError
from .part import (
    Part,
    ReasoningPart,
    TextPart,
    ToolCallPart,
    ToolErrorPart,
    ToolResultPart,
)
from .token_info import TokenInfo
from .utils import gen_id


class CompactionMarker(BaseModel):
    auto: bool = False


class MessageMetadata(BaseModel):
    mode: Literal["build", "plan"] | None = None
    finish_reason: str | None = None
    synthetic: bool = False
    skill: bool = False
    summary: bool = False
    compaction: CompactionMarker | None = Field(
        default=None,
        description="Present on the synthetic user message marking a compaction boundary",
    )
    tokens: TokenInfo | None = None


class Message(BaseModel):
    id: str = Field(default_factory=lambda: gen_id("msg_"))
    role: Literal["user", "assistant", "system"]
    parts: list[Part] = Field(default_factory=list)
    metadata: MessageMetadata = Field(default_factory=MessageMetadata)

    @property
    def text(self) -> str:
        """Concatenated text parts."""
        return "".join(part.text for part in self.parts if isinstance(part, TextPart))

    @property
    def reasoning(self) -> str:
        return "".join(part.text for part in self.parts if isinstance(part, ReasoningPart))

    def tool_calls(self) -> list[ToolCallPart]:
        return [part for part in self.parts if isinstance(part, ToolCallPart)]

    def tool_outputs(self) -> list[ToolResultPart | ToolErrorPart]:
        return [part for part in self.parts if isinstance(part, (ToolResultPart, ToolErrorPart))]

    def has_tool_parts(self) -> bool:
        return any(isinstance(part, ToolCallPart) for part in self.parts)

    def find_tool_call(self, tool_call_id: str) -> ToolCallPart | None:
        for part in self.parts:
            if isinstance(part, ToolCallPart) and part.tool_call_id == tool_call_id:
                return part
        return None

    def add_tool_output(self, part: ToolResultPart | ToolErrorPart) -> None:
        """Record a tool outcome for a tool call already on this message.

        Raises:
            InvalidOperationError: If no tool-call part has the same id
        """
        if self.find_tool_call(part.tool_call_id) is None:
            raise InvalidOperationError(
                f"Tool output references unknown tool call: {part.tool_call_id}"
            )
        self.parts = [
            existing
            for existing in self.parts
            if not (
                isinstance(existing, (ToolResultPart, ToolErrorPart))
                and existing.tool_call_id == part.tool_call_id
            )
        ]
        self.parts.append(part)


def user_message(
    text: str,
    *,
    synthetic: bool = False,
    skill: bool = False,
    compaction: CompactionMarker | None = None,
) -> Message:
    """Create a user message with a single text part."""
    return Message(
        role="user",
        parts=[TextPart(text=text)],
        metadata=MessageMetadata(synthetic=synthetic, skill=skill, compaction=compaction),
    )
