"""
Event types and EventBus protocol.

Run events are what a caller observes while an agent run is in progress.
The EventBus is an abstract interface used to broadcast host-level events
(such as approval requests); the server layer provides an SSE implementation.
"""

from typing import Any, Literal, Protocol

from pydantic import BaseModel, Field

RunEventType = Literal[
    "debug",
    "notice",
    "status",
    "assistant_token",
    "thought_token",
    "tool_call",
    "tool_blocked",
    "tool_result",
    "compaction_start",
    "compaction_end",
]

RUN_EVENT_TYPES: tuple[str, ...] = RunEventType.__args__  # type: ignore[attr-defined]


class Event(BaseModel):
    """Domain event that can be published to subscribers."""

    type: str
    properties: dict[str, Any] = Field(default_factory=dict)


class EventBus(Protocol):
    """Abstract interface for publishing events."""

    async def publish(self, event: Event) -> None:
        """Publish an event to all subscribers."""
        ...


class NullEventBus:
    """No-op EventBus implementation for testing."""

    async def publish(self, event: Event) -> None:
        """Discard the event."""
        pass
