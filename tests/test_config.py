"""
Tests for the configuration system.
"""

import json
from pathlib import Path

import pytest

from config import (
    AgentConfig,
    Config,
    PermissionsConfig,
    get_config,
    load_config,
    merge_configs,
    strip_jsonc_comments,
)
from config.defaults import DEFAULT_MODEL
from config.loader import MODEL_ENV_VAR, load_config_file
from core.permissions import Level, PermissionRule, evaluate_permission
from runtime import RuntimeOptions


@pytest.fixture(autouse=True)
def no_env_model(monkeypatch):
    monkeypatch.delenv(MODEL_ENV_VAR, raising=False)


@pytest.fixture
def home(tmp_path: Path) -> Path:
    path = tmp_path / "home"
    path.mkdir()
    return path


@pytest.fixture
def project(tmp_path: Path) -> Path:
    path = tmp_path / "project"
    path.mkdir()
    return path


def write_global(home: Path, content: str) -> None:
    config_dir = home / ".agent-runtime"
    config_dir.mkdir()
    (config_dir / "config.jsonc").write_text(content)


class TestStripJSONComments:
    """Test JSONC comment stripping."""

    def test_single_and_multi_line_comments(self):
        jsonc = """
        {
            // Single line
            "key1": "value1",
            /* Multi
               line */
            "key2": "value2"  // Trailing comment
        }
        """
        assert json.loads(strip_jsonc_comments(jsonc)) == {"key1": "value1", "key2": "value2"}

    def test_comment_markers_inside_strings(self):
        jsonc = '{"url": "https://example.com/*x*/", "glob": "src/**"} // note'

        assert json.loads(strip_jsonc_comments(jsonc)) == {"url": "https://example.com/*x*/", "glob": "src/**"}


class TestLoadConfigFile:
    """Test reading single config files."""

    def test_missing_file(self, tmp_path: Path):
        assert load_config_file(tmp_path / "nope.json") is None

    def test_invalid_json(self, tmp_path: Path):
        path = tmp_path / "bad.json"
        path.write_text("{not json")

        assert load_config_file(path) is None

    def test_non_object(self, tmp_path: Path):
        path = tmp_path / "list.json"
        path.write_text("[1, 2]")

        assert load_config_file(path) is None


class TestLoadConfig:
    """Test layered config loading."""

    def test_defaults(self, project: Path, home: Path):
        config = load_config(project, home)

        assert isinstance(config, Config)
        assert config.agent.model == DEFAULT_MODEL
        assert config.agent.mode == "build"
        assert config.compaction.auto is True
        assert config.security.allow_external_paths is False
        assert config.model_limits[DEFAULT_MODEL].context == 200_000

    def test_project_overrides_global(self, project: Path, home: Path):
        write_global(home, '{"agent": {"model": "global-model", "temperature": 0.5}, "task": {"cache_size": 5}}')
        (project / "agent-runtime.jsonc").write_text(
            """
            {
                // project settings win
                "agent": {"model": "project-model"},
                "security": {"allow_external_paths": true}
            }
            """
        )

        config = load_config(project, home)

        assert config.agent.model == "project-model"
        assert config.agent.temperature == 0.5
        assert config.task.cache_size == 5
        assert config.security.allow_external_paths is True

    def test_first_project_file_wins(self, project: Path, home: Path):
        (project / "agent-runtime.jsonc").write_text('{"agent": {"model": "from-jsonc"}}')
        (project / "agent-runtime.json").write_text('{"agent": {"model": "from-json"}}')

        assert load_config(project, home).agent.model == "from-jsonc"

    def test_env_model_override(self, project: Path, home: Path, monkeypatch):
        (project / "agent-runtime.json").write_text('{"agent": {"model": "file-model"}}')
        monkeypatch.setenv(MODEL_ENV_VAR, "env-model")

        assert load_config(project, home).agent.model == "env-model"

    def test_get_config_is_cached(self, project: Path):
        get_config.cache_clear()
        try:
            assert get_config(project) is get_config(project)
        finally:
            get_config.cache_clear()

    def test_runtime_options_from_config(self, project: Path, home: Path):
        (project / "agent-runtime.json").write_text('{"security": {"allow_external_paths": true}}')

        options = RuntimeOptions.from_config(load_config(project, home), str(project))

        assert options.allow_external_paths is True
        assert options.workspace_root == str(project)


class TestMergeConfigs:
    """Test deep merging."""

    def test_nested_merge(self):
        base = {"agent": {"model": "a", "mode": "build"}, "skills": {"enabled": True}}

        merged = merge_configs(base, {"agent": {"mode": "plan"}, "skills": False})

        assert merged == {"agent": {"model": "a", "mode": "plan"}, "skills": False}
        assert base["agent"]["mode"] == "build"


class TestPermissionsConfig:
    """Extra permission rules per mode."""

    def test_extra_build_rule(self):
        permissions = PermissionsConfig(build=[PermissionRule(permission="bash", action=Level.DENY)])

        ruleset = permissions.ruleset_for("build")

        assert evaluate_permission("bash", ["*"], ruleset) == Level.DENY
        assert evaluate_permission("read", ["a.py"], ruleset) == Level.ALLOW

    def test_plan_extras_only_apply_in_plan(self):
        permissions = PermissionsConfig(plan=[PermissionRule(permission="webfetch", action=Level.ALLOW)])

        assert evaluate_permission("webfetch", ["*"], permissions.ruleset_for("plan")) == Level.ALLOW
        assert len(permissions.ruleset_for("build")) == 1

    def test_rules_from_json(self, project: Path, home: Path):
        (project / "agent-runtime.json").write_text(
            '{"permissions": {"build": [{"permission": "edit", "pattern": "*.lock", "action": "ask"}]}}'
        )

        ruleset = load_config(project, home).permissions.ruleset_for("build")

        assert evaluate_permission("edit", ["poetry.lock"], ruleset) == Level.ASK


class TestAgentConfigValidation:
    """AgentConfig field validation."""

    def test_invalid_mode(self):
        with pytest.raises(ValueError):
            AgentConfig(mode="yolo")

    def test_negative_retries(self):
        with pytest.raises(ValueError):
            AgentConfig(max_retries=-1)
