"""Tests for the tool execution pipeline."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from core.constants import PLAN_MODE_BLOCKED_MESSAGE, USER_REJECTED_MESSAGE
from core.models import ToolErrorCode
from plugins import LoadedPlugin, NoPlugins, PluginPipeline
from runtime import AgentCallbacks, ToolExecutionPipeline, behavior_for
from runtime.execution import PLUGIN_DENIED_MESSAGE

from fakes import BASH_TOOL, GLOB_TOOL, READ_TOOL, WRITE_TOOL


async def run_tool(scope, definition, args, plugins=None, call_id="call_1"):
    pipeline = ToolExecutionPipeline(plugins or NoPlugins())
    return await pipeline.execute(behavior_for(definition), scope, call_id, definition.id, args)


def plugins_with(**hooks) -> PluginPipeline:
    return PluginPipeline([LoadedPlugin(name="test", hooks={name.replace("_", "."): [fn] for name, fn in hooks.items()})])


class TestBasicExecution:
    """Tools that need no approval run straight through."""

    @pytest.mark.asyncio
    async def test_read_in_build_mode(self, make_scope):
        result = await run_tool(make_scope(), READ_TOOL, {"filePath": "main.py"})

        assert result.success
        assert result.data == "print('hello')\n"

    @pytest.mark.asyncio
    async def test_write_in_build_mode(self, make_scope, workspace):
        result = await run_tool(make_scope(), WRITE_TOOL, {"filePath": "new.txt", "content": "hi"})

        assert result.success
        assert (workspace / "new.txt").read_text() == "hi"

    @pytest.mark.asyncio
    async def test_handler_exception_becomes_failure(self, make_scope):
        result = await run_tool(make_scope(), READ_TOOL, {"filePath": "missing.txt"})

        assert not result.success
        assert result.error_code == ToolErrorCode.TOOL_FAILED


class TestPolicy:
    """Plan mode, external paths and shell checks."""

    @pytest.mark.asyncio
    async def test_write_blocked_in_plan_mode(self, make_scope, workspace):
        on_blocked = AsyncMock()
        scope = make_scope("plan", callbacks=AgentCallbacks(on_tool_blocked=on_blocked))

        result = await run_tool(scope, WRITE_TOOL, {"filePath": "x.txt", "content": "no"})

        assert result.error == PLAN_MODE_BLOCKED_MESSAGE
        assert result.error_code == ToolErrorCode.PLAN_MODE_BLOCKED
        assert not (workspace / "x.txt").exists()
        on_blocked.assert_awaited_once()
        assert on_blocked.await_args.args[2] == PLAN_MODE_BLOCKED_MESSAGE

    @pytest.mark.asyncio
    async def test_read_allowed_in_plan_mode(self, make_scope):
        result = await run_tool(make_scope("plan"), READ_TOOL, {"filePath": "README.md"})

        assert result.success

    @pytest.mark.asyncio
    async def test_external_path_disabled(self, make_scope):
        result = await run_tool(make_scope(), WRITE_TOOL, {"filePath": "/etc/agent-test", "content": "x"})

        assert result.error_code == ToolErrorCode.EXTERNAL_PATHS_DISABLED
        assert result.metadata["is_outside_workspace"] is True
        assert result.metadata["blocked_paths"] == ["/etc/agent-test"]
        assert result.metadata["blocked_paths_truncated"] is False

    @pytest.mark.asyncio
    async def test_shell_external_reference(self, make_scope):
        result = await run_tool(make_scope(), BASH_TOOL, {"command": "cat /etc/passwd"})

        assert result.error_code == ToolErrorCode.EXTERNAL_PATHS_DISABLED
        assert result.metadata["blocked_paths"] == ["/etc/passwd"]

    @pytest.mark.asyncio
    async def test_shell_blocked_command(self, make_scope):
        result = await run_tool(make_scope(allow_external_paths=True), BASH_TOOL, {"command": "rm -rf /"})

        assert result.error_code == ToolErrorCode.COMMAND_BLOCKED
        assert result.error.startswith("Blocked command: ")

    @pytest.mark.asyncio
    async def test_shell_safe_command(self, make_scope):
        result = await run_tool(make_scope(), BASH_TOOL, {"command": "ls -la"})

        assert result.success
        assert result.data == "ran: ls -la"


class TestApproval:
    """Approval requests for dotenv files and risky shell commands."""

    @pytest.mark.asyncio
    async def test_dotenv_without_callback_is_rejected(self, make_scope):
        result = await run_tool(make_scope(), READ_TOOL, {"filePath": ".env"})

        assert result.error == USER_REJECTED_MESSAGE
        assert result.error_code == ToolErrorCode.USER_REJECTED

    @pytest.mark.asyncio
    async def test_dotenv_approved(self, make_scope):
        approve = MagicMock(return_value=True)
        scope = make_scope(callbacks=AgentCallbacks(on_request_approval=approve))

        result = await run_tool(scope, READ_TOOL, {"filePath": ".env"})

        assert result.data == "SECRET=1\n"
        call, definition = approve.call_args.args
        assert call.id == "call_1"
        assert call.parsed_arguments() == {"filePath": ".env"}
        assert definition.id == "read"

    @pytest.mark.asyncio
    async def test_async_approval_denied(self, make_scope):
        scope = make_scope(callbacks=AgentCallbacks(on_request_approval=AsyncMock(return_value=False)))

        result = await run_tool(scope, BASH_TOOL, {"command": "ls | wc -l"})

        assert result.error_code == ToolErrorCode.USER_REJECTED

    @pytest.mark.asyncio
    async def test_failing_callback_counts_as_rejection(self, make_scope):
        scope = make_scope(callbacks=AgentCallbacks(on_request_approval=MagicMock(side_effect=RuntimeError("ui gone"))))

        result = await run_tool(scope, READ_TOOL, {"filePath": ".env"})

        assert result.error_code == ToolErrorCode.USER_REJECTED

    @pytest.mark.asyncio
    async def test_auto_approve(self, make_scope):
        result = await run_tool(make_scope(auto_approve=True), READ_TOOL, {"filePath": ".env"})

        assert result.success

    @pytest.mark.asyncio
    async def test_auto_approve_ignored_in_plan_mode(self, make_scope):
        result = await run_tool(make_scope("plan", auto_approve=True), READ_TOOL, {"filePath": ".env"})

        assert result.error_code == ToolErrorCode.USER_REJECTED


class TestPluginHooks:
    """tool.execute.before, permission.ask and tool.execute.after."""

    @pytest.mark.asyncio
    async def test_before_hook_replaces_args(self, make_scope):
        def redirect(input, output):
            assert input["tool"] == "read"
            return {"args": {"filePath": "README.md"}}

        result = await run_tool(make_scope(), READ_TOOL, {"filePath": "main.py"}, plugins_with(tool_execute_before=redirect))

        assert result.data == "# Demo\n"

    @pytest.mark.asyncio
    async def test_permission_hook_denies(self, make_scope):
        plugins = PluginPipeline([LoadedPlugin(name="deny", hooks={"permission.ask": [lambda i, o: {"status": "deny"}]})])

        result = await run_tool(make_scope(), READ_TOOL, {"filePath": "main.py"}, plugins)

        assert result.error == PLUGIN_DENIED_MESSAGE
        assert result.error_code == ToolErrorCode.PERMISSION_DENIED

    @pytest.mark.asyncio
    async def test_permission_hook_waives_approval(self, make_scope):
        seen = {}

        def allow(input, output):
            seen.update(input["metadata"])
            return {"status": "allow"}

        plugins = PluginPipeline([LoadedPlugin(name="allow", hooks={"permission.ask": [allow]})])

        result = await run_tool(make_scope(), READ_TOOL, {"filePath": ".env"}, plugins)

        assert result.success
        assert seen["requires_approval"] is True
        assert seen["permission"] == "read"

    @pytest.mark.asyncio
    async def test_after_hook_rewrites_output(self, make_scope):
        def after(input, output):
            output["title"] = "Read main"
            output["output"] = output["output"].upper()

        plugins = PluginPipeline([LoadedPlugin(name="after", hooks={"tool.execute.after": [after]})])

        result = await run_tool(make_scope(), READ_TOOL, {"filePath": "main.py"}, plugins)

        assert result.metadata["title"] == "Read main"
        assert result.metadata["output_text"] == "PRINT('HELLO')\n"


class TestHandles:
    """Glob output gets file handles that later calls can use."""

    @pytest.mark.asyncio
    async def test_glob_then_read_by_file_id(self, make_scope):
        scope = make_scope()

        listing = await run_tool(scope, GLOB_TOOL, {"pattern": "*"})
        assert listing.metadata["output_text"].splitlines()[-2:] == ["F1  README.md", "F2  main.py"]

        result = await run_tool(scope, READ_TOOL, {"fileId": "F2"}, call_id="call_2")
        assert result.data == "print('hello')\n"

    @pytest.mark.asyncio
    async def test_unknown_file_id(self, make_scope):
        result = await run_tool(make_scope(), READ_TOOL, {"fileId": "F9"})

        assert result.error_code == ToolErrorCode.UNKNOWN_FILE_ID
        assert result.metadata["file_id"] == "F9"
