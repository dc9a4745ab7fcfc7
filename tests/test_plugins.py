"""Tests for the plugin pipeline, loader and decorators."""

import asyncio
from pathlib import Path

import pytest

from plugins import (
    LoadedPlugin,
    NoPlugins,
    PluginPipeline,
    collect_plugin,
    hook,
    load_plugin_from_file,
    load_plugins_from_directory,
    plugin_tool,
)
from plugins.loader import PLUGIN_API_VERSION
from plugins.pipeline import DEFAULT_HOOK_TIMEOUT_S


def plugin_with(name: str, hook_name: str, *handlers) -> LoadedPlugin:
    return LoadedPlugin(name=name, hooks={hook_name: list(handlers)})


class TestDecorators:
    """Tests for the hook and plugin_tool decorators."""

    def test_hook_marks_function(self):
        @hook("tool.execute.before")
        async def before(input, output):
            return None

        assert before._hook_name == "tool.execute.before"

    def test_unknown_hook_name(self):
        with pytest.raises(ValueError, match="Unknown hook"):
            hook("on_begin")

    def test_plugin_tool_defaults(self):
        @plugin_tool("word_count", "Count words")
        def word_count(args, ctx):
            return len(args["text"].split())

        assert word_count._plugin_tool == {
            "id": "word_count",
            "description": "Count words",
            "parameters": {"type": "object", "properties": {}},
            "read_only": False,
        }

    def test_collect_plugin(self):
        @hook("permission.ask")
        def ask(input, output):
            return None

        @plugin_tool("ping", "Ping", read_only=True)
        def ping(args, ctx):
            return "pong"

        plugin = collect_plugin("demo", [("ask", ask), ("ping", ping), ("other", len)])

        assert plugin.hooks == {"permission.ask": [ask]}
        assert [tool.id for tool in plugin.tools] == ["ping"]
        assert plugin.tools[0].plugin == "demo"
        assert plugin.tools[0].read_only is True


class TestPluginPipeline:
    """Tests for PluginPipeline.trigger."""

    def test_init(self):
        pipeline = PluginPipeline([])

        assert len(pipeline) == 0
        assert not pipeline
        assert pipeline.timeout_s == DEFAULT_HOOK_TIMEOUT_S

    @pytest.mark.asyncio
    async def test_no_handlers_returns_output(self):
        pipeline = PluginPipeline([LoadedPlugin(name="empty")])

        assert await pipeline.trigger("chat.params", {}, {"temperature": 0.1}) == {"temperature": 0.1}

    @pytest.mark.asyncio
    async def test_returned_value_replaces_output(self):
        pipeline = PluginPipeline([
            plugin_with("a", "experimental.text.complete", lambda i, o: {"text": o["text"] + " a"}),
            plugin_with("b", "experimental.text.complete", lambda i, o: {"text": o["text"] + " b"}),
        ])

        result = await pipeline.trigger("experimental.text.complete", {}, {"text": "start"})

        assert result == {"text": "start a b"}

    @pytest.mark.asyncio
    async def test_in_place_mutation_is_kept(self):
        async def add_line(input, output):
            output["system"].append(f"session {input['session_id']}")

        pipeline = PluginPipeline([plugin_with("a", "experimental.chat.system.transform", add_line)])

        result = await pipeline.trigger("experimental.chat.system.transform", {"session_id": "s1"}, {"system": ["base"]})

        assert result["system"] == ["base", "session s1"]

    @pytest.mark.asyncio
    async def test_failing_handler_is_skipped(self):
        def broken(input, output):
            raise RuntimeError("boom")

        pipeline = PluginPipeline([
            plugin_with("bad", "permission.ask", broken),
            plugin_with("good", "permission.ask", lambda i, o: {"status": "deny"}),
        ])

        assert await pipeline.trigger("permission.ask", {}, {"status": "ask"}) == {"status": "deny"}

    @pytest.mark.asyncio
    async def test_slow_handler_times_out(self):
        async def slow(input, output):
            await asyncio.sleep(1)
            return {"status": "deny"}

        pipeline = PluginPipeline([plugin_with("slow", "permission.ask", slow)], timeout_s=0.01)

        assert await pipeline.trigger("permission.ask", {}, {"status": "allow"}) == {"status": "allow"}

    def test_tools_in_plugin_order(self):
        @plugin_tool("one", "First")
        def one(args, ctx):
            return 1

        @plugin_tool("two", "Second")
        def two(args, ctx):
            return 2

        pipeline = PluginPipeline([collect_plugin("p1", [("one", one)]), collect_plugin("p2", [("two", two)])])

        assert [tool.id for tool in pipeline.tools()] == ["one", "two"]

    @pytest.mark.asyncio
    async def test_no_plugins(self):
        host = NoPlugins()

        assert await host.trigger("permission.ask", {}, {"status": "ask"}) == {"status": "ask"}
        assert host.tools() == []


class TestLoader:
    """Tests for loading plugins from files."""

    def test_load_plugin_from_file(self, tmp_path: Path):
        plugin_file = tmp_path / "signer.py"
        plugin_file.write_text(
            '''
__plugin__ = {"api": "1.0", "name": "signer"}

@hook("experimental.text.complete")
async def sign(input, output):
    output["text"] += " -- signed"

@plugin_tool("shout", "Upper-case text", read_only=True)
def shout(args, ctx):
    return args["text"].upper()
'''
        )

        plugin = load_plugin_from_file(plugin_file)

        assert plugin.name == "signer"
        assert plugin.path == plugin_file
        assert list(plugin.hooks) == ["experimental.text.complete"]
        assert plugin.tools[0].id == "shout"
        assert plugin.tools[0].handler({"text": "hi"}, None) == "HI"

    def test_default_metadata(self, tmp_path: Path):
        plugin_file = tmp_path / "plain.py"
        plugin_file.write_text("x = 1\n")

        plugin = load_plugin_from_file(plugin_file)

        assert plugin.name == "plain"
        assert plugin.metadata == {"api": PLUGIN_API_VERSION, "name": "plain"}

    def test_missing_file(self, tmp_path: Path):
        with pytest.raises(FileNotFoundError):
            load_plugin_from_file(tmp_path / "nope.py")

    def test_syntax_error(self, tmp_path: Path):
        plugin_file = tmp_path / "broken.py"
        plugin_file.write_text("def broken(:\n")

        with pytest.raises(ImportError, match="raised while loading"):
            load_plugin_from_file(plugin_file)

    def test_incompatible_api(self, tmp_path: Path):
        plugin_file = tmp_path / "future.py"
        plugin_file.write_text('__plugin__ = {"api": "2.0"}\n')

        with pytest.raises(ValueError, match="targets API"):
            load_plugin_from_file(plugin_file)

    def test_load_directory_skips_bad_files(self, tmp_path: Path):
        (tmp_path / "b_good.py").write_text('__plugin__ = {"name": "good"}\n')
        (tmp_path / "a_bad.py").write_text("raise RuntimeError('nope')\n")
        (tmp_path / "_private.py").write_text("")

        plugins = load_plugins_from_directory(tmp_path)

        assert [p.name for p in plugins] == ["good"]

    def test_load_directory_enabled_order(self, tmp_path: Path):
        (tmp_path / "one.py").write_text("")
        (tmp_path / "two.py").write_text("")

        plugins = load_plugins_from_directory(tmp_path, ["two", "one"])

        assert [p.name for p in plugins] == ["two", "one"]

    def test_missing_directory(self, tmp_path: Path):
        assert load_plugins_from_directory(tmp_path / "missing") == []
