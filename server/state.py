"""
Server-side state management.

Holds the configured agent, the approval broker and the in-memory session
store used by the HTTP routes.
"""

import logging

from core.abort import AbortController
from core.exceptions import NotFoundError
from core.models import Session
from core.permissions import ApprovalBroker
from runtime import Agent

logger = logging.getLogger(__name__)


class SessionStore:
    """In-memory sessions plus the abort controller of each active run."""

    def __init__(self) -> None:
        self._sessions: dict[str, Session] = {}
        self._runs: dict[str, AbortController] = {}

    def create(self, parent_session_id: str | None = None, model_id: str | None = None) -> Session:
        session = Session(parent_session_id=parent_session_id, model_id=model_id)
        self._sessions[session.id] = session
        logger.info("Created session %s", session.id)
        return session

    def get(self, session_id: str) -> Session:
        """
        Look up a session.

        Raises:
            NotFoundError: If the session does not exist
        """
        session = self._sessions.get(session_id)
        if session is None:
            raise NotFoundError("Session", session_id)
        return session

    def list(self) -> list[Session]:
        return list(self._sessions.values())

    def delete(self, session_id: str) -> bool:
        self.get(session_id)
        self.abort(session_id)
        del self._sessions[session_id]
        logger.info("Deleted session %s", session_id)
        return True

    def start_run(self, session_id: str) -> AbortController:
        """Register the controller of a new run; an older run is aborted."""
        self.abort(session_id)
        controller = AbortController()
        self._runs[session_id] = controller
        return controller

    def finish_run(self, session_id: str, controller: AbortController) -> None:
        if self._runs.get(session_id) is controller:
            del self._runs[session_id]

    def is_running(self, session_id: str) -> bool:
        return session_id in self._runs

    def abort(self, session_id: str) -> bool:
        controller = self._runs.pop(session_id, None)
        if controller is None:
            return False
        controller.abort("Run aborted by client")
        logger.info("Aborted run on session %s", session_id)
        return True


# =============================================================================
# Agent Management
# =============================================================================

_agent: Agent | None = None


def set_agent(new_agent: Agent | None) -> None:
    """Set the agent instance. Called by the server entry point."""
    global _agent
    _agent = new_agent


def get_agent() -> Agent | None:
    """Get the current agent instance."""
    return _agent


# =============================================================================
# Approval Management
# =============================================================================

_approval_broker: ApprovalBroker | None = None


def set_approval_broker(broker: ApprovalBroker | None) -> None:
    """Set the approval broker instance."""
    global _approval_broker
    _approval_broker = broker


def get_approval_broker() -> ApprovalBroker | None:
    """Get the current approval broker instance."""
    return _approval_broker


# =============================================================================
# Sessions
# =============================================================================

_sessions = SessionStore()


def get_session_store() -> SessionStore:
    return _sessions


def reset_state() -> None:
    """Drop the agent, broker and sessions (used by tests)."""
    global _sessions
    set_agent(None)
    set_approval_broker(None)
    _sessions = SessionStore()
