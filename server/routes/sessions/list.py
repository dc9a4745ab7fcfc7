"""
List sessions endpoint.
"""

from fastapi import APIRouter, Query

from ...state import get_session_store


router = APIRouter()


@router.get("/session")
async def list_sessions_route(directory: str | None = Query(None)) -> list[dict]:
    """List sessions in creation order."""
    return [
        {
            "session_id": session.id,
            "parent_session_id": session.parent_session_id,
            "model_id": session.model_id,
            "message_count": len(session.history),
        }
        for session in get_session_store().list()
    ]
