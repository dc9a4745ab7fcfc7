"""
Shared pytest fixtures for all tests.
"""
import tempfile
from pathlib import Path
from typing import Iterator

import pytest

from config import AgentConfig
from core.handles import FileHandleRegistry, SemanticHandleRegistry
from core.models import Session
from core.permissions import default_ruleset
from runtime import Agent, AgentCallbacks, ExecutionScope, RuntimeOptions

from fakes import TEST_MODEL, build_registry


@pytest.fixture
def temp_dir() -> Iterator[Path]:
    """Create a temporary directory for testing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def workspace(temp_dir: Path) -> Path:
    """Workspace with a couple of files."""
    (temp_dir / "main.py").write_text("print('hello')\n")
    (temp_dir / "README.md").write_text("# Demo\n")
    (temp_dir / ".env").write_text("SECRET=1\n")
    return temp_dir


@pytest.fixture
def registry(workspace: Path):
    return build_registry(str(workspace))


@pytest.fixture
def session() -> Session:
    return Session()


@pytest.fixture
def make_scope(workspace: Path, registry, session):
    """Factory for an ExecutionScope over the sample registry."""

    def factory(mode: str = "build", **overrides) -> ExecutionScope:
        values = dict(
            session=session,
            mode=mode,
            ruleset=default_ruleset(mode),
            workspace_root=str(workspace),
            tools=registry,
            files=FileHandleRegistry(str(workspace)),
            semantic=SemanticHandleRegistry(),
            callbacks=AgentCallbacks(),
        )
        values.update(overrides)
        return ExecutionScope(**values)

    return factory


@pytest.fixture
def make_agent(workspace: Path, registry):
    """Factory for an Agent over a provider, with the sample registry."""

    def factory(provider, plugins=None, skills=None, runtime=None, **config) -> Agent:
        config.setdefault("model", TEST_MODEL)
        return Agent(
            provider,
            registry,
            AgentConfig(**config),
            runtime=runtime or RuntimeOptions(workspace_root=str(workspace)),
            plugins=plugins,
            skills=skills,
        )

    return factory
