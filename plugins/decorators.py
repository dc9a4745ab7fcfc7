"""Decorator-based plugin authoring API.

Provides decorators for defining plugin hooks and tools:
- @hook("tool.execute.before"): handler for a named extension point
- @plugin_tool("id", "description"): a tool the model can call

Hook handlers receive ``(input, output)``. They may mutate ``output`` in
place or return a replacement; returning None keeps the current output.

Example usage:
    @hook("tool.execute.after")
    async def tag_output(input, output):
        output["title"] = f"{input['tool']} finished"

    @plugin_tool("word_count", "Count words in text", read_only=True)
    async def word_count(args, ctx):
        return len(args.get("text", "").split())
"""

from typing import Any, Callable, TypeVar

from .models import HOOK_NAMES

F = TypeVar("F", bound=Callable)


def hook(name: str) -> Callable[[F], F]:
    """Register a function as the handler of a named hook.

    Args:
        name: One of the hook names in ``plugins.models.HOOK_NAMES``

    Returns:
        A decorator that attaches the hook metadata to the function.

    Raises:
        ValueError: If the hook name is unknown
    """
    if name not in HOOK_NAMES:
        raise ValueError(f"Unknown hook: {name}")

    def decorator(fn: F) -> F:
        fn._hook_name = name  # type: ignore[attr-defined]
        return fn

    return decorator


def plugin_tool(
    tool_id: str,
    description: str,
    parameters: dict[str, Any] | None = None,
    read_only: bool = False,
) -> Callable[[F], F]:
    """Expose a function as a tool.

    Args:
        tool_id: Tool id shown to the model
        description: What the tool does
        parameters: JSON schema for the arguments
        read_only: True if the tool has no side effects

    Returns:
        A decorator that attaches the tool metadata to the function.
    """

    def decorator(fn: F) -> F:
        fn._plugin_tool = {  # type: ignore[attr-defined]
            "id": tool_id,
            "description": description,
            "parameters": parameters or {"type": "object", "properties": {}},
            "read_only": read_only,
        }
        return fn

    return decorator
