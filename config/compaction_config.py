"""CompactionConfig and ModelLimit models."""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from .defaults import (
    DEFAULT_COMPACTION_AUTO,
    DEFAULT_COMPACTION_PRUNE,
    DEFAULT_PRUNE_MINIMUM_TOKENS,
    DEFAULT_PRUNE_PROTECT_TOKENS,
    DEFAULT_TOOL_OUTPUT_MODE,
)

ToolOutputMode = Literal["after_tool_call", "on_compaction"]


class CompactionConfig(BaseModel):
    """How conversation history is kept within the context budget."""

    model_config = ConfigDict(frozen=True)

    auto: bool = Field(
        default=DEFAULT_COMPACTION_AUTO,
        description="Summarize history automatically when the context overflows",
    )
    prune: bool = Field(
        default=DEFAULT_COMPACTION_PRUNE,
        description="Clear old tool outputs from the model-visible history",
    )
    prune_protect_tokens: int = Field(default=DEFAULT_PRUNE_PROTECT_TOKENS, ge=0)
    prune_minimum_tokens: int = Field(default=DEFAULT_PRUNE_MINIMUM_TOKENS, ge=0)
    tool_output_mode: ToolOutputMode = Field(
        default=DEFAULT_TOOL_OUTPUT_MODE,
        description="after_tool_call clears outputs once the model has seen them; "
        "on_compaction keeps them until the next compaction",
    )


class ModelLimit(BaseModel):
    """Token limits for a model."""

    model_config = ConfigDict(frozen=True)

    context: int = Field(gt=0)
    output: int | None = Field(default=None, gt=0)
