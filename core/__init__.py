"""
Core business logic package.

This package contains the transport-agnostic pieces of the orchestration
runtime: domain models, permissions, retry classification, history views,
handles and the async primitives the run loop is built on. The runtime
package drives them; the server package provides HTTP bindings.
"""

from .abort import AbortController, AbortSignal, is_abort_error
from .events import RUN_EVENT_TYPES, Event, EventBus, NullEventBus, RunEventType
from .exceptions import (
    AbortError,
    ConfigurationError,
    CoreError,
    InvalidOperationError,
    NotFoundError,
    PluginToolConflictError,
    ProviderError,
    RetryableProviderError,
)
from .models import Message, Session, ToolCall, ToolDefinition, ToolResult
from .queue import AsyncEventQueue

__all__ = [
    # Abort
    "AbortController",
    "AbortSignal",
    "is_abort_error",
    # Events
    "Event",
    "EventBus",
    "NullEventBus",
    "RunEventType",
    "RUN_EVENT_TYPES",
    # Exceptions
    "CoreError",
    "NotFoundError",
    "InvalidOperationError",
    "ConfigurationError",
    "AbortError",
    "ProviderError",
    "RetryableProviderError",
    "PluginToolConflictError",
    # Models
    "Message",
    "Session",
    "ToolCall",
    "ToolDefinition",
    "ToolResult",
    # Queue
    "AsyncEventQueue",
]
