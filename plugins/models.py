"""Plugin models for the plugin system.

Defines the data structures shared by plugins and the runtime:
- HookName: the fixed extension points the runtime triggers
- PluginTool: a tool contributed by a plugin
- PluginHooks: the protocol the runtime talks to
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Literal, Protocol, runtime_checkable

HookName = Literal[
    "chat.params",
    "experimental.chat.system.transform",
    "experimental.chat.messages.transform",
    "experimental.chat.complete",
    "experimental.text.complete",
    "experimental.session.compacting",
    "permission.ask",
    "tool.execute.before",
    "tool.execute.after",
]

HOOK_NAMES: tuple[str, ...] = (
    "chat.params",
    "experimental.chat.system.transform",
    "experimental.chat.messages.transform",
    "experimental.chat.complete",
    "experimental.text.complete",
    "experimental.session.compacting",
    "permission.ask",
    "tool.execute.before",
    "tool.execute.after",
)


@dataclass
class PluginTool:
    """A tool contributed by a plugin.

    Attributes:
        id: Tool id exposed to the model; must not collide with other tools
        description: Description shown to the model
        handler: Callable taking (args, context) and returning the tool output
        parameters: JSON schema for the tool arguments
        read_only: Whether the tool may run in plan mode
        plugin: Name of the plugin that contributed the tool
    """

    id: str
    description: str
    handler: Callable[..., Any]
    parameters: dict[str, Any] = field(
        default_factory=lambda: {"type": "object", "properties": {}}
    )
    read_only: bool = False
    plugin: str = ""


@runtime_checkable
class PluginHooks(Protocol):
    """What the runtime needs from a plugin host.

    ``trigger`` receives the hook input and a default output and returns the
    (possibly replaced) output. It must never raise because of a plugin.
    """

    async def trigger(self, hook_name: str, input: dict[str, Any], output: Any) -> Any: ...

    def tools(self) -> list[PluginTool]: ...


class NoPlugins:
    """Plugin host with nothing loaded."""

    async def trigger(self, hook_name: str, input: dict[str, Any], output: Any) -> Any:
        return output

    def tools(self) -> list[PluginTool]:
        return []
