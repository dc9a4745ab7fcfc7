"""
Core constants for the orchestration runtime.

This module defines system-wide constants used across the codebase.
Following the style guide: no magic constants in code.
"""

# Run loop
MAX_ITERATIONS = 50  # hard ceiling on model/tool iterations per run

# Tool output formatting
MAX_TOOL_RESULT_LENGTH = 40_000  # characters of tool output sent to the model
TRUNCATION_MARKER = "\n\n... [TRUNCATED]"
MAX_GREP_LINE_LENGTH = 2000

# External path blocking
MAX_BLOCKED_PATHS = 20
ALLOW_EXTERNAL_PATHS_SETTING = "agentRuntime.security.allowExternalPaths"

# Tools
EDIT_TOOL_IDS = frozenset({"edit", "write"})
MODE_CONTROL_TOOL_IDS = frozenset({"task", "todowrite"})
SHELL_TOOL_ID = "bash"
TASK_TOOL_ID = "task"

# Subagents
SUBAGENT_CACHE_SIZE = 50
DEFAULT_TASK_MAX_OUTPUT_CHARS = 8000

# Retry policy (milliseconds)
RETRY_INITIAL_DELAY_MS = 2000
RETRY_BACKOFF_FACTOR = 2
RETRY_MAX_DELAY_NO_HEADERS_MS = 30_000

# Token estimation
CHARS_PER_TOKEN = 4

# Reminder text
PLAN_MODE_BLOCKED_MESSAGE = "Tool is disabled in Plan mode. Switch to Build mode to use it."
PERMISSION_DENIED_MESSAGE = "Tool is denied by permissions."
USER_REJECTED_MESSAGE = "User rejected this action"
