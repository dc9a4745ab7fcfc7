"""Tests for the approval broker."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from core.events import NullEventBus
from core.models import ToolCall
from core.permissions import ApprovalBroker, ApprovalResponse
from runtime import AgentCallbacks

from fakes import BASH_TOOL, READ_TOOL, ScriptedProvider, text_turn, tool_turn


async def wait_for_pending(broker: ApprovalBroker):
    while not broker.pending:
        await asyncio.sleep(0)
    return broker.pending[0]


class TestApprovalBroker:
    """Request/response round trips through the broker."""

    @pytest.mark.asyncio
    async def test_approved(self):
        bus = AsyncMock()
        broker = ApprovalBroker(bus, session_id="ses_1")
        call = ToolCall(id="call_1", name="read", arguments='{"filePath": ".env"}')

        waiting = asyncio.create_task(broker.request_approval(call, READ_TOOL))
        request = await wait_for_pending(broker)
        assert broker.respond(ApprovalResponse(request_id=request.id, approved=True))

        assert await waiting is True
        assert broker.pending == []
        requested, responded = [c.args[0] for c in bus.publish.await_args_list]
        assert requested.type == "permission.requested"
        assert requested.properties["request"]["arguments"] == {"filePath": ".env"}
        assert requested.properties["request"]["session_id"] == "ses_1"
        assert "warning" not in requested.properties
        assert responded.properties == {"request_id": request.id, "approved": True}

    @pytest.mark.asyncio
    async def test_rejected(self):
        broker = ApprovalBroker(NullEventBus())
        call = ToolCall(id="call_1", name="read")

        waiting = asyncio.create_task(broker.request_approval(call, READ_TOOL))
        request = await wait_for_pending(broker)
        broker.respond(ApprovalResponse(request_id=request.id, approved=False))

        assert await waiting is False

    @pytest.mark.asyncio
    async def test_timeout_counts_as_rejection(self):
        broker = ApprovalBroker(NullEventBus(), timeout_s=0.01)

        assert await broker.request_approval(ToolCall(id="c", name="read"), READ_TOOL) is False
        assert broker.pending == []

    @pytest.mark.asyncio
    async def test_shell_warning(self):
        bus = AsyncMock()
        broker = ApprovalBroker(bus, timeout_s=0.01)
        call = ToolCall(id="c", name="bash", arguments='{"command": "ls | wc -l"}')

        await broker.request_approval(call, BASH_TOOL)

        requested = bus.publish.await_args_list[0].args[0]
        assert "operators" in requested.properties["warning"]

    def test_unknown_request(self):
        broker = ApprovalBroker(NullEventBus())

        assert broker.respond(ApprovalResponse(request_id="perm_missing", approved=True)) is False


class TestBrokerWithAgent:
    """The broker plugs into a run as the approval callback."""

    @pytest.mark.asyncio
    async def test_run_waits_for_approval(self, make_agent, session):
        broker = ApprovalBroker(NullEventBus())
        provider = ScriptedProvider(tool_turn("call_1", "read", filePath=".env"), text_turn("SECRET is set."))
        callbacks = AgentCallbacks(on_request_approval=broker.request_approval)

        run = make_agent(provider).run(session, "Show .env", callbacks=callbacks)
        request = await wait_for_pending(broker)
        assert request.tool == "read"
        broker.respond(ApprovalResponse(request_id=request.id, approved=True))
        result = await run.result()

        assert result.text == "SECRET is set."
        assert session.history[1].tool_outputs()[0].output == "SECRET=1\n"
