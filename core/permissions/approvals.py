"""Approval broker for hosts that answer approval requests asynchronously."""

import asyncio
import logging

from core.events import Event, EventBus
from core.models import ToolCall, ToolDefinition, gen_id

from .models import ApprovalRequest, ApprovalResponse
from .shell import evaluate_shell_command, is_shell_tool, shell_command_for

logger = logging.getLogger(__name__)

# Timeout for approval requests (5 minutes)
APPROVAL_TIMEOUT_SECONDS = 300


class ApprovalBroker:
    """
    Bridges the runtime's approval callback to an external responder.

    Each request is published on the event bus as ``permission.requested``
    and resolved when ``respond`` is called with the request id. A request
    that times out counts as rejected.
    """

    def __init__(
        self,
        event_bus: EventBus,
        timeout_s: float = APPROVAL_TIMEOUT_SECONDS,
        session_id: str | None = None,
    ):
        """
        Initialize the broker.

        Args:
            event_bus: Event bus for publishing approval events
            timeout_s: Seconds to wait for a response
            session_id: Session the requests belong to
        """
        self.event_bus = event_bus
        self.timeout_s = timeout_s
        self.session_id = session_id
        self._pending: dict[str, ApprovalRequest] = {}
        self._futures: dict[str, asyncio.Future] = {}

    @property
    def pending(self) -> list[ApprovalRequest]:
        return list(self._pending.values())

    async def request_approval(self, call: ToolCall, definition: ToolDefinition) -> bool:
        """
        Ask the host to approve a tool call.

        Args:
            call: The tool call waiting for approval
            definition: The tool's definition

        Returns:
            True if approved, False if rejected or timed out
        """
        request = ApprovalRequest(
            id=gen_id("perm_"),
            session_id=self.session_id,
            call_id=call.id,
            tool=definition.id,
            arguments=call.parsed_arguments(),
        )
        properties = {"request": request.model_dump()}
        if is_shell_tool(definition):
            command = shell_command_for(definition, request.arguments) or ""
            decision = evaluate_shell_command(command)
            properties["warning"] = decision.reason

        future: asyncio.Future = asyncio.get_running_loop().create_future()
        self._pending[request.id] = request
        self._futures[request.id] = future

        await self.event_bus.publish(Event(type="permission.requested", properties=properties))

        try:
            response: ApprovalResponse = await asyncio.wait_for(future, timeout=self.timeout_s)
        except asyncio.TimeoutError:
            logger.warning("Approval request timed out: %s", request.id)
            return False
        finally:
            self._pending.pop(request.id, None)
            self._futures.pop(request.id, None)

        await self.event_bus.publish(
            Event(
                type="permission.responded",
                properties={"request_id": request.id, "approved": response.approved},
            )
        )
        return response.approved

    def respond(self, response: ApprovalResponse) -> bool:
        """
        Resolve a pending request.

        Returns:
            True if the request was pending, False otherwise
        """
        future = self._futures.get(response.request_id)
        if future is None:
            logger.warning("Received response for unknown request: %s", response.request_id)
            return False
        if not future.done():
            future.set_result(response)
            logger.debug("Approval response received: %s -> %s", response.request_id, response.approved)
        return True
