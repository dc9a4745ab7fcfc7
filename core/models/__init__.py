"""
Domain models for the orchestration runtime.

These are the core data structures used throughout the application.
"""

from .message import CompactionMarker, Message, MessageMetadata, user_message
from .part import (
    Part,
    ReasoningPart,
    TextPart,
    ToolCallPart,
    ToolErrorPart,
    ToolResultPart,
)
from .session import (
    FileHandleTable,
    HandleRange,
    SemanticHandle,
    SemanticHandleTable,
    Session,
    SessionSnapshot,
)
from .token_info import TokenInfo
from .tool import (
    PermissionPatternSpec,
    ToolCall,
    ToolDefinition,
    ToolErrorCode,
    ToolExecution,
    ToolMetadata,
    ToolProtocol,
    ToolResult,
)
from .utils import gen_id

__all__ = [
    # Utils
    "gen_id",
    # Session models
    "Session",
    "SessionSnapshot",
    "FileHandleTable",
    "SemanticHandleTable",
    "SemanticHandle",
    "HandleRange",
    # Message models
    "Message",
    "MessageMetadata",
    "CompactionMarker",
    "TokenInfo",
    "user_message",
    # Part models
    "TextPart",
    "ReasoningPart",
    "ToolCallPart",
    "ToolResultPart",
    "ToolErrorPart",
    "Part",
    # Tool models
    "ToolDefinition",
    "ToolMetadata",
    "ToolProtocol",
    "ToolExecution",
    "PermissionPatternSpec",
    "ToolCall",
    "ToolResult",
    "ToolErrorCode",
]
