"""
Get session endpoint.
"""

import logging

from fastapi import APIRouter, HTTPException, Query

from core import NotFoundError

from ...state import get_session_store

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/session/{sessionID}")
async def get_session_route(
    sessionID: str, directory: str | None = Query(None)
) -> dict:
    """Get a session snapshot."""
    try:
        return get_session_store().get(sessionID).export_snapshot()
    except NotFoundError:
        logger.debug("Session not found: %s", sessionID)
        raise HTTPException(status_code=404, detail="Session not found")
