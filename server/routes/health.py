"""
Health check endpoint.
"""

from fastapi import APIRouter

from ..state import get_agent


router = APIRouter()


@router.get("/health")
async def health() -> dict:
    """Health check endpoint."""
    agent = get_agent()
    return {
        "status": "ok",
        "agent_configured": agent is not None,
        "model": agent.config.model if agent else None,
    }
