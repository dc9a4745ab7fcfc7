"""Plugin system for runtime customization.

Plugins are Vite/Rollup-style middleware around the run loop:

1. Hooks are named extension points (system prompt transform, tool
   execution before/after, permission override, compaction context, ...)
2. Multiple plugins form a pipeline, executed in order at each hook point
3. A failing or slow plugin is logged and skipped, never fatal
"""

from .decorators import hook, plugin_tool
from .loader import LoadedPlugin, collect_plugin, load_plugin_from_file, load_plugins_from_directory
from .models import HOOK_NAMES, HookName, NoPlugins, PluginHooks, PluginTool
from .pipeline import PluginPipeline

__all__ = [
    # Models
    "HOOK_NAMES",
    "HookName",
    "NoPlugins",
    "PluginHooks",
    "PluginTool",
    # Decorators
    "hook",
    "plugin_tool",
    # Loader
    "LoadedPlugin",
    "collect_plugin",
    "load_plugin_from_file",
    "load_plugins_from_directory",
    # Pipeline
    "PluginPipeline",
]
