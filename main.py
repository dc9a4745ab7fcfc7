"""
Agent runtime server entry point.
"""
import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path

import uvicorn
from fastapi import FastAPI

from config import SkillRegistry, get_config, get_working_directory
from core.permissions import ApprovalBroker
from plugins import PluginPipeline, load_plugins_from_directory
from providers import PydanticAIProvider
from runtime import Agent, RuntimeOptions, ToolRegistry
from server import app, set_agent, set_approval_broker
from server.event_bus import get_event_bus
from server.logging_config import setup_logging

# Initialize logging before anything else
setup_logging()
logger = logging.getLogger(__name__)

# Constants
DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 8000


def build_agent(workspace: str) -> Agent:
    """
    Assemble an agent from the workspace configuration.

    Args:
        workspace: Workspace root used for config lookup, plugins and skills

    Returns:
        Agent with the Pydantic AI provider, an empty tool registry, the
        workspace plugins and the skill catalog
    """
    config = get_config(Path(workspace))

    plugin_dir = Path(workspace) / config.plugins.directory
    plugins = load_plugins_from_directory(plugin_dir, config.plugins.enabled)
    logger.info("Loaded %d plugin(s) from %s", len(plugins), plugin_dir)

    skills = SkillRegistry(config.skills.paths, workspace) if config.skills.enabled else None

    return Agent(
        PydanticAIProvider(),
        ToolRegistry(),
        config.agent,
        RuntimeOptions.from_config(config, workspace),
        PluginPipeline(plugins, timeout_s=config.plugins.hook_timeout_s),
        skills,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the agent and approval broker for the lifetime of the app."""
    workspace = get_working_directory()
    logger.info("Starting agent server")
    logger.info("Working directory: %s", workspace)

    agent = build_agent(workspace)
    logger.info("Model: %s (mode=%s)", agent.config.model, agent.mode)
    set_agent(agent)
    set_approval_broker(ApprovalBroker(get_event_bus()))

    yield

    logger.info("Shutting down agent server")
    set_agent(None)
    set_approval_broker(None)


app.router.lifespan_context = lifespan


def main() -> None:
    """Start the HTTP server."""
    host = os.environ.get("HOST", DEFAULT_HOST)
    port = int(os.environ.get("PORT", str(DEFAULT_PORT)))

    logger.info("Server listening on %s:%d", host, port)
    uvicorn.run(app, host=host, port=port)


if __name__ == "__main__":
    main()
