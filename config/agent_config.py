"""AgentConfig model for configuration."""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from .defaults import DEFAULT_MAX_OUTPUT_TOKENS, DEFAULT_MAX_RETRIES, DEFAULT_TEMPERATURE

Mode = Literal["build", "plan"]


class AgentConfig(BaseModel):
    """Per-agent runtime configuration.

    Instances are immutable; use the ``with_*`` helpers or ``model_copy`` to
    derive a changed configuration.
    """

    model_config = ConfigDict(frozen=True)

    model: str | None = Field(
        default=None,
        description="Model identifier used for the run",
    )
    subagent_model: str | None = Field(
        default=None,
        description="Model preferred for subagents spawned by the task tool",
    )
    system_prompt: str | None = Field(
        default=None,
        description="Custom system prompt override",
    )
    mode: Mode = Field(
        default="build",
        description="build allows edits; plan restricts the agent to read-only tools",
    )
    temperature: float = DEFAULT_TEMPERATURE
    max_retries: int = Field(default=DEFAULT_MAX_RETRIES, ge=0)
    max_output_tokens: int = Field(default=DEFAULT_MAX_OUTPUT_TOKENS, gt=0)
    tool_filter: tuple[str, ...] | None = Field(
        default=None,
        description="Tool ids or glob patterns to expose (if None, use all)",
    )
    auto_approve: bool = Field(
        default=False,
        description="Skip approval prompts in build mode",
    )
    session_id: str | None = None

    def with_mode(self, mode: Mode) -> "AgentConfig":
        return self.model_copy(update={"mode": mode})

    def with_model(self, model: str | None) -> "AgentConfig":
        return self.model_copy(update={"model": model})

    def with_updates(self, **updates: Any) -> "AgentConfig":
        """Return a copy with ``updates`` applied and validated."""
        return self.model_validate({**self.model_dump(), **updates})
