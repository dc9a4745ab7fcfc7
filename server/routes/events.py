"""
Approval request stream.
"""

import json
import logging
from typing import Any, AsyncGenerator

from fastapi import APIRouter, Query
from sse_starlette.sse import EventSourceResponse

from ..event_bus import get_event_bus

logger = logging.getLogger(__name__)

router = APIRouter()

# Seconds between keep-alive comments on an idle stream
PING_INTERVAL_S = 15


def event_session_id(event: dict[str, Any]) -> str | None:
    properties = event.get("properties") or {}
    request = properties.get("request") or {}
    return properties.get("session_id") or request.get("session_id")


@router.get("/global/event")
async def global_event(sessionID: str | None = Query(None)) -> EventSourceResponse:
    """
    Stream host events (``permission.requested``, ``permission.resolved``).

    Args:
        sessionID: Only forward events of this session; events that carry
            no session id are always forwarded
    """
    bus = get_event_bus()
    queue = bus.subscribe()
    logger.debug("Event subscriber attached (session=%s)", sessionID or "*")

    async def forward() -> AsyncGenerator[dict, None]:
        try:
            while True:
                event = await queue.get()
                owner = event_session_id(event)
                if sessionID and owner and owner != sessionID:
                    continue
                yield {"event": event["type"], "data": json.dumps(event)}
        finally:
            bus.unsubscribe(queue)
            logger.debug("Event subscriber detached")

    return EventSourceResponse(forward(), ping=PING_INTERVAL_S)
