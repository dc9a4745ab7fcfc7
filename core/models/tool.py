"""Tool definition, call and result models."""

import json
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, Field


class ToolErrorCode(str, Enum):
    """Stable, machine-readable error codes carried in ToolResult metadata."""

    EXTERNAL_PATHS_DISABLED = "external_paths_disabled"
    PERMISSION_DENIED = "permission_denied"
    PLAN_MODE_BLOCKED = "plan_mode_blocked"
    COMMAND_BLOCKED = "command_blocked"
    USER_REJECTED = "user_rejected"
    UNKNOWN_TOOL = "unknown_tool"
    TOOL_FAILED = "tool_failed"
    TASK_RECURSION_DENIED = "task_recursion_denied"
    UNKNOWN_SUBAGENT_TYPE = "unknown_subagent_type"
    SUBAGENT_DENIED_IN_PLAN = "subagent_denied_in_plan"
    MISSING_MODEL = "missing_model"
    TASK_SUBAGENT_FAILED = "task_subagent_failed"
    INVALID_ARGUMENTS = "invalid_arguments"
    UNKNOWN_FILE_ID = "unknown_file_id"
    UNKNOWN_SYMBOL_ID = "unknown_symbol_id"
    UNKNOWN_MATCH_ID = "unknown_match_id"
    UNKNOWN_LOC_ID = "unknown_loc_id"


class PermissionPatternSpec(BaseModel):
    """Which tool argument feeds permission evaluation, and how to read it."""

    arg: str
    kind: Literal["path", "command", "raw"] = "raw"


class ToolProtocol(BaseModel):
    """Handle conventions a tool takes part in.

    Input flags make the pipeline resolve ``fileId`` or semantic handle
    arguments before execution. Output flags select the decoration applied
    to the result.
    """

    file_id_input: bool = False
    semantic_handle_input: bool = False
    glob_output: bool = False
    grep_output: bool = False
    symbols_output: bool = False


class ToolMetadata(BaseModel):
    category: str | None = None
    read_only: bool = False
    requires_approval: bool = False
    supports_external_paths: bool = False
    permission: str | None = Field(
        default=None,
        description="Permission name; defaults to the tool id, with edit tools mapped to 'edit'",
    )
    permission_patterns: list[PermissionPatternSpec] = Field(default_factory=list)
    timeout: float | None = None
    protocol: ToolProtocol = Field(default_factory=ToolProtocol)


class ToolExecution(BaseModel):
    type: Literal["function", "command", "shell", "http", "inline"] = "function"
    handler: str | None = None
    script: str | None = None
    cwd: str | None = None


class ToolDefinition(BaseModel):
    id: str
    name: str
    description: str
    parameters: dict[str, Any] = Field(
        default_factory=lambda: {"type": "object", "properties": {}},
    )
    execution: ToolExecution = Field(default_factory=ToolExecution)
    metadata: ToolMetadata = Field(default_factory=ToolMetadata)

    def schema_for_model(self) -> dict[str, Any]:
        """Tool schema in the neutral shape passed to providers."""
        return {
            "name": self.id,
            "description": self.description,
            "parameters": self.parameters,
        }


class ToolCall(BaseModel):
    id: str
    name: str
    arguments: str = "{}"

    def parsed_arguments(self) -> dict[str, Any]:
        """Decode the JSON arguments; anything that is not an object yields {}."""
        try:
            value = json.loads(self.arguments or "{}")
        except (TypeError, ValueError):
            return {}
        return value if isinstance(value, dict) else {}


class ToolResult(BaseModel):
    success: bool
    data: Any = None
    error: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def failure(
        cls,
        error: str,
        code: ToolErrorCode | None = None,
        **metadata: Any,
    ) -> "ToolResult":
        """Build a structured failure result."""
        if code is not None:
            metadata["error_code"] = code.value
        return cls(success=False, error=error, metadata=metadata)

    @property
    def error_code(self) -> str | None:
        return self.metadata.get("error_code")
