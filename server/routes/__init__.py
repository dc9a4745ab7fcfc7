"""
Route registration for the agent runtime API.
"""

from fastapi import FastAPI

from . import events, health, messages, permissions, sessions


def register_routes(app: FastAPI) -> None:
    """Register all routes with the FastAPI application."""
    app.include_router(events.router)
    app.include_router(health.router)
    app.include_router(permissions.router)
    sessions.register_routes(app)
    messages.register_routes(app)
