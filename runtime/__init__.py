"""
Agent runtime: run loop, tool execution pipeline, compaction and subagents.
"""

from .agent import Agent, AgentRun, RunResult, RuntimeOptions, filter_tools
from .behaviors import ExecutionScope, PolicyOutcome, ShellToolBehavior, ToolBehavior, behavior_for
from .callbacks import AgentCallbacks, notify
from .compaction import compact_session
from .execution import ToolExecutionPipeline
from .llm import (
    ErrorChunk,
    FinishChunk,
    LLMProvider,
    ModelRequest,
    ReasoningDelta,
    StreamPart,
    TextDelta,
    ToolCallChunk,
    ToolErrorChunk,
    ToolResultChunk,
    to_model_messages,
)
from .loop import RunContext, run_once
from .prompt_composer import PromptComposer, insert_mode_reminders
from .skills import SkillCatalog
from .subagents import SubagentDefinition, list_subagents, resolve_subagent
from .task import TASK_TOOL, SubagentSessionCache, TaskToolBehavior, format_task_output_text
from .tools import LayeredToolProvider, ToolContext, ToolProvider, ToolRegistry

__all__ = [
    # Agent
    "Agent",
    "AgentRun",
    "RunResult",
    "RuntimeOptions",
    "filter_tools",
    "AgentCallbacks",
    "notify",
    # Loop
    "RunContext",
    "run_once",
    "compact_session",
    # Model contract
    "LLMProvider",
    "ModelRequest",
    "StreamPart",
    "TextDelta",
    "ReasoningDelta",
    "ToolCallChunk",
    "ToolResultChunk",
    "ToolErrorChunk",
    "FinishChunk",
    "ErrorChunk",
    "to_model_messages",
    # Tools
    "ToolProvider",
    "ToolRegistry",
    "LayeredToolProvider",
    "ToolContext",
    "ToolBehavior",
    "ShellToolBehavior",
    "ExecutionScope",
    "PolicyOutcome",
    "behavior_for",
    "ToolExecutionPipeline",
    # Prompts and skills
    "PromptComposer",
    "insert_mode_reminders",
    "SkillCatalog",
    # Subagents
    "SubagentDefinition",
    "list_subagents",
    "resolve_subagent",
    "SubagentSessionCache",
    "TaskToolBehavior",
    "TASK_TOOL",
    "format_task_output_text",
]
