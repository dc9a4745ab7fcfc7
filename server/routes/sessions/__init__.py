"""
Session route registration.
"""

from fastapi import FastAPI

from . import abort, compact, create, delete, get, list


def register_routes(app: FastAPI) -> None:
    """Register all session routes."""
    app.include_router(list.router)
    app.include_router(create.router)
    app.include_router(get.router)
    app.include_router(delete.router)
    app.include_router(abort.router)
    app.include_router(compact.router)
