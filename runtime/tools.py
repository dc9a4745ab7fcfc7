"""
Tool provider contract and an in-memory registry.

The run loop never calls tool handlers directly. It asks a ``ToolProvider``
for definitions and to execute a tool by id with a scoped ``ToolContext``.
"""

import asyncio
import inspect
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Protocol, runtime_checkable

from core.abort import AbortSignal
from core.exceptions import AbortError
from core.models import ToolDefinition, ToolErrorCode, ToolResult

logger = logging.getLogger(__name__)

ToolHandler = Callable[[dict[str, Any], "ToolContext"], Any | Awaitable[Any]]


@dataclass
class ToolContext:
    """Scoped context passed to a tool handler.

    Attributes:
        workspace_root: Absolute workspace root
        allow_external_paths: Whether paths outside the root may be touched
        session_id: Id of the session the call belongs to
        signal: Cancellation token for the call
        log: Logger scoped to the tool
    """

    workspace_root: str
    allow_external_paths: bool = False
    session_id: str | None = None
    signal: AbortSignal | None = None
    log: logging.Logger = field(default_factory=lambda: logging.getLogger("runtime.tool"))


@runtime_checkable
class ToolProvider(Protocol):
    """Source of tools for the run loop."""

    async def get_tools(self) -> list[ToolDefinition]: ...

    async def execute_tool(self, tool_id: str, args: dict[str, Any], ctx: ToolContext) -> ToolResult: ...


class ToolRegistry:
    """ToolProvider backed by Python callables.

    Handlers take ``(args, ctx)`` and may be sync or async. A handler that
    returns something other than a ToolResult is treated as successful
    output. Exceptions become ``tool_failed`` results, except cancellation,
    which propagates.
    """

    def __init__(self) -> None:
        self._definitions: dict[str, ToolDefinition] = {}
        self._handlers: dict[str, ToolHandler] = {}

    def register_tool(self, definition: ToolDefinition, handler: ToolHandler) -> None:
        """Register or replace a tool."""
        self._definitions[definition.id] = definition
        self._handlers[definition.id] = handler
        logger.debug("Registered tool %s", definition.id)

    def has_tool(self, tool_id: str) -> bool:
        return tool_id in self._definitions

    async def get_tools(self) -> list[ToolDefinition]:
        return list(self._definitions.values())

    async def execute_tool(self, tool_id: str, args: dict[str, Any], ctx: ToolContext) -> ToolResult:
        """
        Run a registered tool.

        Args:
            tool_id: Tool to run
            args: Resolved arguments
            ctx: Execution context

        Returns:
            The tool's result, or a structured failure

        Raises:
            AbortError: If the context signal aborts while the tool runs
        """
        handler = self._handlers.get(tool_id)
        if handler is None:
            return ToolResult.failure(f"Unknown tool: {tool_id}", ToolErrorCode.UNKNOWN_TOOL)

        definition = self._definitions[tool_id]
        try:
            output = await self._invoke(handler, args, ctx, definition.metadata.timeout)
        except (AbortError, asyncio.CancelledError):
            raise
        except TimeoutError:
            return ToolResult.failure(
                f"Tool {tool_id} timed out after {definition.metadata.timeout}s",
                ToolErrorCode.TOOL_FAILED,
            )
        except Exception as e:
            ctx.log.warning("Tool %s failed: %s", tool_id, e)
            return ToolResult.failure(str(e) or type(e).__name__, ToolErrorCode.TOOL_FAILED)

        if isinstance(output, ToolResult):
            return output
        return ToolResult(success=True, data=output)

    async def _invoke(
        self,
        handler: ToolHandler,
        args: dict[str, Any],
        ctx: ToolContext,
        timeout: float | None,
    ) -> Any:
        async def call() -> Any:
            result = handler(args, ctx)
            if inspect.isawaitable(result):
                result = await result
            return result

        if ctx.signal is not None:
            ctx.signal.raise_if_aborted()
        work = call()
        if timeout:
            work = asyncio.wait_for(work, timeout=timeout)
        if ctx.signal is not None:
            return await ctx.signal.race(work)
        return await work


class LayeredToolProvider:
    """A base ToolProvider with extra registered tools layered on top.

    The agent uses it to add plugin tools without touching the caller's
    provider. Overlay ids are routed to the overlay registry, everything
    else to the base provider.
    """

    def __init__(self, base: ToolProvider, overlay: ToolRegistry | None = None):
        self.base = base
        self.overlay = overlay or ToolRegistry()

    async def get_tools(self) -> list[ToolDefinition]:
        base_tools = await self.base.get_tools()
        return [*base_tools, *await self.overlay.get_tools()]

    async def execute_tool(self, tool_id: str, args: dict[str, Any], ctx: ToolContext) -> ToolResult:
        if self.overlay.has_tool(tool_id):
            return await self.overlay.execute_tool(tool_id, args, ctx)
        return await self.base.execute_tool(tool_id, args, ctx)
