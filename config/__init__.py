"""
Configuration module for the agent runtime.

Exports the main configuration classes and functions for use throughout the application.
"""

from .agent_config import AgentConfig, Mode
from .compaction_config import CompactionConfig, ModelLimit, ToolOutputMode
from .defaults import DEFAULT_MODEL
from .loader import get_config, get_working_directory, load_config, load_config_file, merge_configs, strip_jsonc_comments
from .main_config import Config, PluginsConfig, SkillsConfig, TaskConfig
from .permissions_config import PermissionsConfig, SecurityConfig
from .skills import Skill, SkillRegistry

__all__ = [
    # Constants
    "DEFAULT_MODEL",
    # Config models
    "Config",
    "AgentConfig",
    "Mode",
    "CompactionConfig",
    "ModelLimit",
    "ToolOutputMode",
    "SecurityConfig",
    "PermissionsConfig",
    "SkillsConfig",
    "TaskConfig",
    "PluginsConfig",
    # Loader functions
    "load_config",
    "get_config",
    "get_working_directory",
    "load_config_file",
    "merge_configs",
    "strip_jsonc_comments",
    # Skills
    "Skill",
    "SkillRegistry",
]
