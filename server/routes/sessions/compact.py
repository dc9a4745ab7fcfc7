"""
Compact session endpoint.
"""

import logging

from fastapi import APIRouter, HTTPException, Query
from pydantic import BaseModel

from core import CoreError, NotFoundError

from ...requests import CompactRequest
from ...state import get_agent, get_session_store


logger = logging.getLogger(__name__)


router = APIRouter()


class CompactResponse(BaseModel):
    """Response from compact endpoint."""

    compacted: bool
    summaryMessageID: str | None = None
    messageCount: int = 0


@router.post("/session/{sessionID}/compact")
async def compact_session_route(
    sessionID: str,
    request: CompactRequest | None = None,
    directory: str | None = Query(None),
) -> CompactResponse:
    """Summarize the session history into a single summary message."""
    agent = get_agent()
    if agent is None:
        raise HTTPException(status_code=503, detail="Agent not configured")

    store = get_session_store()
    try:
        session = store.get(sessionID)
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Session not found")
    if store.is_running(sessionID):
        raise HTTPException(status_code=409, detail="Session is running")

    model_id = request.modelID if request else None
    try:
        summary = await agent.compact_session(session, model_id=model_id or session.model_id)
    except CoreError as e:
        logger.error("Compaction failed for session %s: %s", sessionID, e)
        raise HTTPException(status_code=500, detail=f"Compaction failed: {e}")
    except Exception as e:
        logger.exception("Compaction failed for session %s", sessionID)
        raise HTTPException(status_code=502, detail=f"Compaction failed: {e}")

    return CompactResponse(
        compacted=summary is not None,
        summaryMessageID=summary.id if summary else None,
        messageCount=len(session.history),
    )
