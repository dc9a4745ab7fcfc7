"""
HTTP host for the agent runtime.

Exposes sessions, streamed runs, compaction and approval responses over
FastAPI with Server-Sent Events.
"""

from .app import app
from .routes import register_routes
from .state import get_agent, get_approval_broker, get_session_store, set_agent, set_approval_broker

# Register all routes with the app
register_routes(app)

__all__ = ["app", "set_agent", "get_agent", "set_approval_broker", "get_approval_broker", "get_session_store"]
