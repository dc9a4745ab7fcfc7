"""
List messages endpoint.
"""

from fastapi import APIRouter, HTTPException, Query

from core import NotFoundError

from ...state import get_session_store


router = APIRouter()


@router.get("/session/{sessionID}/message")
async def list_messages_route(
    sessionID: str,
    limit: int | None = Query(None),
    directory: str | None = Query(None),
) -> list[dict]:
    """List messages in a session, newest last."""
    try:
        session = get_session_store().get(sessionID)
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Session not found")
    messages = session.get_history()
    if limit is not None and limit > 0:
        messages = messages[-limit:]
    return [message.model_dump(mode="json") for message in messages]
