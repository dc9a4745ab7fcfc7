"""
Send message endpoint with streaming.
"""

import json
import logging
from typing import AsyncGenerator

from fastapi import APIRouter, HTTPException, Query
from sse_starlette.sse import EventSourceResponse

from core import NotFoundError
from runtime import AgentCallbacks

from ...requests import PromptRequest
from ...state import get_agent, get_approval_broker, get_session_store

logger = logging.getLogger(__name__)


router = APIRouter()


@router.post("/session/{sessionID}/message")
async def send_message_route(
    sessionID: str, request: PromptRequest, directory: str | None = Query(None)
) -> EventSourceResponse:
    """Run the agent on a prompt and stream run events via SSE."""
    agent = get_agent()
    if agent is None:
        raise HTTPException(status_code=503, detail="Agent not configured")

    store = get_session_store()
    try:
        session = store.get(sessionID)
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Session not found")
    if store.is_running(sessionID):
        raise HTTPException(status_code=409, detail="Session is already running")

    updates: dict = {}
    model_id = request.modelID or session.model_id
    if model_id:
        updates["model"] = model_id
    if request.mode:
        updates["mode"] = request.mode
    if request.autoApprove is not None:
        updates["auto_approve"] = request.autoApprove
    runner = agent.with_config(**updates) if updates else agent

    broker = get_approval_broker()
    callbacks = AgentCallbacks(on_request_approval=broker.request_approval if broker else None)

    logger.info("Processing message for session %s with model=%s", sessionID, runner.config.model)

    async def stream_response() -> AsyncGenerator[dict, None]:
        controller = store.start_run(sessionID)
        run = runner.run(session, request.text(), callbacks=callbacks, signal=controller.signal)
        try:
            async for event in run.events:
                yield {"event": event.type, "data": event.model_dump_json()}
            result = await run.done
            yield {"event": "done", "data": json.dumps({"text": result.text})}
        except Exception as e:
            # Can't raise HTTPException in generator, yield error event
            logger.warning("Run failed for session %s: %s", sessionID, e)
            yield {"event": "error", "data": json.dumps({"error": str(e)})}
        finally:
            if not run.done.done():
                controller.abort("Client disconnected")
            store.finish_run(sessionID, controller)

    return EventSourceResponse(stream_response())
