"""
Create session endpoint.
"""

from fastapi import APIRouter, Query

from ...requests import CreateSessionRequest
from ...state import get_session_store


router = APIRouter()


@router.post("/session")
async def create_session_route(
    request: CreateSessionRequest | None = None, directory: str | None = Query(None)
) -> dict:
    """Create a new session."""
    request = request or CreateSessionRequest()
    session = get_session_store().create(parent_session_id=request.parentID, model_id=request.modelID)
    return session.export_snapshot()
