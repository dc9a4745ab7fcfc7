"""Plugin pipeline for executing hooks across multiple plugins.

The pipeline executes hooks in order across all loaded plugins. Like
Rollup/Vite, the output of one handler is the input output of the next.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any

from .loader import LoadedPlugin
from .models import PluginTool

logger = logging.getLogger(__name__)

DEFAULT_HOOK_TIMEOUT_S = 5.0


class PluginPipeline:
    """Executes hooks across multiple plugins in order.

    Every handler receives the hook input and the current output. A handler
    that returns a value other than None replaces the output; otherwise any
    in-place mutation of the output is kept. A handler that raises or times
    out is logged and skipped, and the output it was given carries on.

    Attributes:
        plugins: List of loaded plugins in execution order
        timeout_s: Timeout for each hook call
    """

    def __init__(
        self,
        plugins: list[LoadedPlugin],
        timeout_s: float = DEFAULT_HOOK_TIMEOUT_S,
    ):
        """Initialize the pipeline.

        Args:
            plugins: List of plugins in execution order
            timeout_s: Timeout for each individual hook call
        """
        self.plugins = plugins
        self.timeout_s = timeout_s

    async def trigger(self, hook_name: str, input: dict[str, Any], output: Any) -> Any:
        """Run one hook across all plugins.

        Args:
            hook_name: Extension point name
            input: Read-only context for the hook
            output: Default output, threaded through the handlers

        Returns:
            The final output
        """
        current = output
        for plugin in self.plugins:
            for handler in plugin.hooks.get(hook_name, []):
                try:
                    async with asyncio.timeout(self.timeout_s):
                        result = await self._call(handler, input, current)
                    if result is not None:
                        current = result
                except TimeoutError:
                    logger.warning(
                        "Plugin %s %s timed out after %ss",
                        plugin.name,
                        hook_name,
                        self.timeout_s,
                    )
                except Exception as e:
                    logger.warning("Plugin %s %s failed: %s", plugin.name, hook_name, e)
        return current

    def tools(self) -> list[PluginTool]:
        """All tools contributed by the loaded plugins, in plugin order."""
        return [tool for plugin in self.plugins for tool in plugin.tools]

    async def _call(self, handler: Any, *args: Any) -> Any:
        """Call a handler, handling both sync and async functions.

        Args:
            handler: The function to call
            *args: Arguments to pass to the handler

        Returns:
            The handler's return value
        """
        result = handler(*args)
        if inspect.isawaitable(result):
            return await result
        return result

    def __len__(self) -> int:
        """Return the number of plugins in the pipeline."""
        return len(self.plugins)

    def __bool__(self) -> bool:
        """Return True if there are any plugins."""
        return len(self.plugins) > 0
