"""Main Config model."""

from pydantic import BaseModel, ConfigDict, Field

from core.constants import DEFAULT_TASK_MAX_OUTPUT_CHARS, SUBAGENT_CACHE_SIZE

from .agent_config import AgentConfig
from .compaction_config import CompactionConfig, ModelLimit
from .defaults import (
    DEFAULT_HOOK_TIMEOUT_SECONDS,
    DEFAULT_MAX_INJECT_CHARS,
    DEFAULT_MAX_INJECT_SKILLS,
    DEFAULT_MAX_PROMPT_SKILLS,
    DEFAULT_MODEL_LIMITS,
    DEFAULT_PLUGIN_DIR,
    DEFAULT_SKILL_PATHS,
)
from .permissions_config import PermissionsConfig, SecurityConfig


class SkillsConfig(BaseModel):
    """Skill discovery and injection limits."""

    model_config = ConfigDict(frozen=True)

    enabled: bool = True
    paths: list[str] = Field(default_factory=lambda: list(DEFAULT_SKILL_PATHS))
    max_prompt_skills: int = Field(default=DEFAULT_MAX_PROMPT_SKILLS, ge=0)
    max_inject_skills: int = Field(default=DEFAULT_MAX_INJECT_SKILLS, gt=0)
    max_inject_chars: int = Field(default=DEFAULT_MAX_INJECT_CHARS, gt=0)


class TaskConfig(BaseModel):
    """Subagent (task tool) limits."""

    model_config = ConfigDict(frozen=True)

    max_output_chars: int = Field(
        default=DEFAULT_TASK_MAX_OUTPUT_CHARS,
        gt=0,
        description="Character budget for a subagent's text returned to the parent",
    )
    cache_size: int = Field(
        default=SUBAGENT_CACHE_SIZE,
        gt=0,
        description="Maximum number of child sessions kept for reuse",
    )


class PluginsConfig(BaseModel):
    """Plugin discovery settings."""

    model_config = ConfigDict(frozen=True)

    directory: str = DEFAULT_PLUGIN_DIR
    enabled: list[str] | None = Field(
        default=None,
        description="Plugin names to load (if None, load all)",
    )
    hook_timeout_s: float = Field(default=DEFAULT_HOOK_TIMEOUT_SECONDS, gt=0)


class Config(BaseModel):
    """Main configuration model."""

    agent: AgentConfig = Field(
        default_factory=AgentConfig,
        description="Default agent configuration",
    )
    compaction: CompactionConfig = Field(default_factory=CompactionConfig)
    security: SecurityConfig = Field(default_factory=SecurityConfig)
    permissions: PermissionsConfig = Field(
        default_factory=PermissionsConfig,
        description="Extra permission rules per mode",
    )
    skills: SkillsConfig = Field(default_factory=SkillsConfig)
    task: TaskConfig = Field(default_factory=TaskConfig)
    plugins: PluginsConfig = Field(default_factory=PluginsConfig)
    model_limits: dict[str, ModelLimit] = Field(
        default_factory=lambda: {
            model_id: ModelLimit(**limit) for model_id, limit in DEFAULT_MODEL_LIMITS.items()
        },
        description="Context/output limits by model id",
    )
