"""
Delete session endpoint.
"""

import logging

from fastapi import APIRouter, HTTPException, Query

from core import NotFoundError

from ...state import get_session_store

logger = logging.getLogger(__name__)

router = APIRouter()


@router.delete("/session/{sessionID}")
async def delete_session_route(
    sessionID: str, directory: str | None = Query(None)
) -> bool:
    """Delete a session, aborting its active run."""
    try:
        return get_session_store().delete(sessionID)
    except NotFoundError:
        logger.debug("Session not found for deletion: %s", sessionID)
        raise HTTPException(status_code=404, detail="Session not found")
