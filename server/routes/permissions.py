"""Permission response endpoints."""

import logging

from fastapi import APIRouter, HTTPException

from core.permissions import ApprovalResponse

from ..requests import PermissionResponseRequest
from ..state import get_approval_broker

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/session/{sessionID}/permission/respond")
async def respond_to_permission(sessionID: str, response: PermissionResponseRequest) -> dict:
    """
    Answer a pending approval request.

    Args:
        sessionID: The session ID
        response: Request id and the user's decision

    Returns:
        Success confirmation
    """
    broker = get_approval_broker()
    if broker is None:
        raise HTTPException(status_code=500, detail="Approval broker not initialized")

    resolved = broker.respond(ApprovalResponse(request_id=response.requestID, approved=response.approved))
    if not resolved:
        raise HTTPException(status_code=404, detail="Approval request not found")
    logger.info(
        "Permission response for session %s: %s -> %s",
        sessionID,
        response.requestID,
        "approved" if response.approved else "rejected",
    )
    return {"success": True}


@router.get("/session/{sessionID}/permissions")
async def list_pending_permissions(sessionID: str) -> list[dict]:
    """
    List approval requests still waiting for an answer.

    Args:
        sessionID: The session ID

    Returns:
        Pending requests
    """
    broker = get_approval_broker()
    if broker is None:
        raise HTTPException(status_code=500, detail="Approval broker not initialized")
    return [request.model_dump(mode="json") for request in broker.pending]
