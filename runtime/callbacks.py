"""
Observer callbacks for agent runs.

Every callback is optional and may be sync or async. The runtime calls them
only through ``notify``, which swallows and logs anything a callback raises
so that a misbehaving observer can never interrupt a run.
"""

import inspect
import logging
from dataclasses import dataclass, fields
from typing import Any, Callable

from core.exceptions import error_name

logger = logging.getLogger(__name__)

Callback = Callable[..., Any]


@dataclass
class AgentCallbacks:
    """Lifecycle hooks a caller can attach to a run.

    ``on_request_approval`` is the only callback whose return value matters:
    it receives the tool call and definition and returns a bool (or an
    awaitable bool). ``on_status_change`` receives a dict with ``type``
    (running, retry, done or error) and optional ``message``, ``attempt``
    and ``next_retry_time``.
    """

    on_iteration_start: Callback | None = None
    on_iteration_end: Callback | None = None
    on_thinking: Callback | None = None
    on_debug: Callback | None = None
    on_token: Callback | None = None
    on_assistant_token: Callback | None = None
    on_thought_token: Callback | None = None
    on_tool_call: Callback | None = None
    on_tool_blocked: Callback | None = None
    on_tool_result: Callback | None = None
    on_request_approval: Callback | None = None
    on_complete: Callback | None = None
    on_error: Callback | None = None
    on_status_change: Callback | None = None
    on_notice: Callback | None = None
    on_compaction_start: Callback | None = None
    on_compaction_end: Callback | None = None

    def with_overrides(self, **overrides: Callback | None) -> "AgentCallbacks":
        """Copy with some callbacks replaced."""
        values = {f.name: getattr(self, f.name) for f in fields(self)}
        values.update(overrides)
        return AgentCallbacks(**values)


async def notify(
    fn: Callback | None,
    label: str,
    *args: Any,
    on_debug: Callback | None = None,
) -> Any:
    """
    Invoke an observer callback without letting it break the caller.

    Synchronous exceptions and failed awaitables are both caught. The
    failure is reported to ``on_debug`` (itself guarded) and to the module
    logger; only the error class name is included.

    Args:
        fn: Callback to invoke, or None
        label: Name used in the debug message
        *args: Arguments for the callback
        on_debug: Debug sink for failures

    Returns:
        The callback's (awaited) return value, or None on failure
    """
    if fn is None:
        return None
    try:
        result = fn(*args)
        if inspect.isawaitable(result):
            result = await result
        return result
    except Exception as e:
        message = f"[Callbacks] {label} threw ({error_name(e)})"
        logger.debug(message)
        if on_debug is not None and on_debug is not fn:
            try:
                debug_result = on_debug(message)
                if inspect.isawaitable(debug_result):
                    await debug_result
            except Exception:
                logger.debug("[Callbacks] on_debug threw while reporting %s", label)
        return None


async def debug(callbacks: AgentCallbacks, message: str) -> None:
    """Send a debug line to the host and mirror it to the logger."""
    logger.debug(message)
    await notify(callbacks.on_debug, "on_debug", message)
