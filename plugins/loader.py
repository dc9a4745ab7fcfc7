"""Loading plugins from Python files.

Plugin files are executed in their own module namespace with the ``hook``
and ``plugin_tool`` decorators predefined; decorated callables are
collected in source order.
"""

from __future__ import annotations

import inspect
import logging
import sys
import types
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable

from .models import PluginTool

logger = logging.getLogger(__name__)

PLUGIN_API_VERSION = "1.0"


@dataclass
class LoadedPlugin:
    """A plugin loaded from a file.

    Attributes:
        name: Plugin name (from metadata or filename)
        path: Path to the plugin file
        hooks: Hook name to handlers, in definition order
        tools: Tools contributed by the plugin
        metadata: Plugin metadata from the __plugin__ dict
    """

    name: str
    path: Path | None = None
    hooks: dict[str, list[Callable[..., Any]]] = field(default_factory=dict)
    tools: list[PluginTool] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)


def _definition_order(module: types.ModuleType) -> list[tuple[str, Any]]:
    """Module members sorted by source line, falling back to name order."""

    def line_of(item: tuple[str, Any]) -> int:
        try:
            return inspect.getsourcelines(item[1])[1]
        except (OSError, TypeError):
            return sys.maxsize

    members = [(name, obj) for name, obj in inspect.getmembers(module) if callable(obj)]
    return sorted(members, key=line_of)


def collect_plugin(name: str, members: list[tuple[str, Any]], path: Path | None = None) -> LoadedPlugin:
    """Build a LoadedPlugin from decorated callables.

    Args:
        name: Plugin name
        members: (attribute name, object) pairs to inspect
        path: Source file, if any

    Returns:
        The plugin with its hooks and tools
    """
    plugin = LoadedPlugin(name=name, path=path)
    for _, obj in members:
        hook_name = getattr(obj, "_hook_name", None)
        if isinstance(hook_name, str):
            plugin.hooks.setdefault(hook_name, []).append(obj)
        tool_meta = getattr(obj, "_plugin_tool", None)
        if isinstance(tool_meta, dict):
            plugin.tools.append(PluginTool(handler=obj, plugin=name, **tool_meta))
    return plugin


def _execute(plugin_path: Path) -> types.ModuleType:
    """Run a plugin file in a fresh module with the decorators preloaded."""
    from plugins import decorators

    module = types.ModuleType(f"agent_plugin_{plugin_path.stem}_{uuid.uuid4().hex[:8]}")
    module.__file__ = str(plugin_path)
    module.hook = decorators.hook
    module.plugin_tool = decorators.plugin_tool

    # Registered so dataclasses and self-imports inside the plugin resolve
    sys.modules[module.__name__] = module
    try:
        exec(compile(plugin_path.read_text(), str(plugin_path), "exec"), module.__dict__)
    except Exception as e:
        sys.modules.pop(module.__name__, None)
        raise ImportError(f"Plugin {plugin_path} raised while loading: {e}") from e
    return module


def load_plugin_from_file(plugin_path: Path) -> LoadedPlugin:
    """Load one plugin file.

    A plugin file may declare ``__plugin__ = {"api": "1.0", "name": ...}``
    and defines handlers with ``@hook(name)`` and tools with
    ``@plugin_tool(...)``; both decorators are available without imports::

        @hook("experimental.text.complete")
        async def sign(input, output):
            output["text"] += "\\n-- reviewed"

    Raises:
        FileNotFoundError: The path is not a file
        ImportError: Executing the file raised
        ValueError: The declared API major version differs from ours
    """
    if not plugin_path.is_file():
        raise FileNotFoundError(f"No plugin at {plugin_path}")

    module = _execute(plugin_path)
    metadata = dict(getattr(module, "__plugin__", None) or {})
    metadata.setdefault("api", PLUGIN_API_VERSION)
    metadata.setdefault("name", plugin_path.stem)

    if not _same_major(str(metadata["api"]), PLUGIN_API_VERSION):
        raise ValueError(f"Plugin {plugin_path.name} targets API {metadata['api']}, runtime provides {PLUGIN_API_VERSION}")

    plugin = collect_plugin(metadata["name"], _definition_order(module), plugin_path)
    plugin.metadata = metadata
    logger.debug(
        "Plugin %s: hooks=%s tools=%s",
        plugin.name,
        sorted(plugin.hooks),
        [tool.id for tool in plugin.tools],
    )
    return plugin


def load_plugins_from_directory(directory: Path, enabled: list[str] | None = None) -> list[LoadedPlugin]:
    """Load the plugins of a directory in execution order.

    Args:
        directory: Directory holding plugin ``.py`` files
        enabled: File stems to load, in this order; None loads every file
            not starting with ``_``, sorted by name

    Returns:
        The plugins that loaded; failures are logged and skipped
    """
    if not directory.is_dir():
        return []

    if enabled is None:
        paths = sorted(p for p in directory.glob("*.py") if not p.name.startswith("_"))
    else:
        paths = [directory / f"{name}.py" for name in enabled]

    plugins: list[LoadedPlugin] = []
    for path in paths:
        try:
            plugins.append(load_plugin_from_file(path))
        except (FileNotFoundError, ImportError, ValueError) as e:
            logger.warning("Skipping plugin %s: %s", path, e)
    return plugins


def _same_major(version: str, required: str) -> bool:
    return version.partition(".")[0] == required.partition(".")[0]
