"""Default configuration values."""

DEFAULT_MODEL = "claude-sonnet-4-20250514"
DEFAULT_TEMPERATURE = 0.0
DEFAULT_MAX_RETRIES = 0
DEFAULT_MAX_OUTPUT_TOKENS = 4096

# Context and output limits per model, used for overflow detection
DEFAULT_MODEL_LIMITS = {
    "claude-opus-4-5-20251101": {"context": 200_000, "output": 32_000},
    "claude-sonnet-4-20250514": {"context": 200_000, "output": 64_000},
    "claude-haiku-3-5-20241022": {"context": 200_000, "output": 8_192},
}

# Compaction Configuration
DEFAULT_COMPACTION_AUTO = True
DEFAULT_COMPACTION_PRUNE = True
DEFAULT_PRUNE_PROTECT_TOKENS = 40_000  # Recent tool output kept verbatim
DEFAULT_PRUNE_MINIMUM_TOKENS = 20_000  # Smallest prune worth doing
DEFAULT_TOOL_OUTPUT_MODE = "after_tool_call"

# Skills Configuration
DEFAULT_SKILL_PATHS = [".agent-runtime/skills", "~/.agent-runtime/skills"]
DEFAULT_MAX_PROMPT_SKILLS = 50
DEFAULT_MAX_INJECT_SKILLS = 5
DEFAULT_MAX_INJECT_CHARS = 20_000

# Config file locations
CONFIG_DIR_NAME = ".agent-runtime"
GLOBAL_CONFIG_FILENAME = "config.jsonc"
PROJECT_CONFIG_FILENAMES = ["agent-runtime.jsonc", "agent-runtime.json"]

# Plugins
DEFAULT_PLUGIN_DIR = ".agent-runtime/plugins"
DEFAULT_HOOK_TIMEOUT_SECONDS = 5.0
