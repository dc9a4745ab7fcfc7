"""
Abort session endpoint.
"""

from fastapi import APIRouter, HTTPException, Query

from core import NotFoundError

from ...state import get_session_store


router = APIRouter()


@router.post("/session/{sessionID}/abort")
async def abort_session_route(
    sessionID: str, directory: str | None = Query(None)
) -> bool:
    """Abort the active run of a session. Returns False when nothing runs."""
    store = get_session_store()
    try:
        store.get(sessionID)
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Session not found")
    return store.abort(sessionID)
