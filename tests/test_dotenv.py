"""Tests for dotenv detection."""

import pytest

from core.models import PermissionPatternSpec, ToolDefinition, ToolExecution, ToolMetadata
from core.permissions import collect_dotenv_targets, is_protected_dotenv


def tool(tool_id: str, **execution) -> ToolDefinition:
    return ToolDefinition(id=tool_id, name=tool_id, description="", execution=ToolExecution(**execution))


class TestIsProtectedDotenv:
    """Tests for is_protected_dotenv."""

    @pytest.mark.parametrize("value", [".env", ".env.local", "config/.env", ".ENV.production"])
    def test_protected(self, value):
        assert is_protected_dotenv(value)

    @pytest.mark.parametrize("value", [".env.example", ".env.sample", "env.py", ".envrc", "a.env"])
    def test_not_protected(self, value):
        assert not is_protected_dotenv(value)


class TestCollectDotenvTargets:
    """Tests for collect_dotenv_targets."""

    def test_file_path_argument(self):
        assert collect_dotenv_targets(tool("read"), {"filePath": "app/.env"}) == ["app/.env"]

    def test_grep_include(self):
        assert collect_dotenv_targets(tool("grep"), {"pattern": "KEY", "include": "*.py .env"}) == [".env"]

    def test_shell_command_tokens(self):
        targets = collect_dotenv_targets(tool("bash"), {"command": "cat .env && ENV_FILE=.env.local make"})
        assert targets == [".env", ".env.local"]

    def test_shell_script_tool(self):
        definition = tool("load", type="shell", script="source .env.production")
        assert collect_dotenv_targets(definition, {}) == [".env.production"]

    def test_samples_are_ignored(self):
        assert collect_dotenv_targets(tool("bash"), {"command": "cp .env.example .env.sample"}) == []

    def test_declared_path_arguments(self):
        definition = ToolDefinition(
            id="copy",
            name="copy",
            description="",
            metadata=ToolMetadata(
                permission_patterns=[
                    PermissionPatternSpec(arg="source", kind="path"),
                    PermissionPatternSpec(arg="destination", kind="path"),
                    PermissionPatternSpec(arg="note", kind="raw"),
                ]
            ),
        )

        targets = collect_dotenv_targets(
            definition, {"source": "config/.env.local", "destination": "backup/.env", "note": ".env"}
        )

        assert targets == ["config/.env.local", "backup/.env"]
