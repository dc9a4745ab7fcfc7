"""Permission system models."""

import time
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class Level(str, Enum):
    """Permission action for a tool invocation."""

    ASK = "ask"
    ALLOW = "allow"
    DENY = "deny"


class ShellVerdict(str, Enum):
    """Static safety classification of a shell command."""

    ALLOW = "allow"
    NEEDS_APPROVAL = "needs_approval"
    DENY = "deny"


class PermissionRule(BaseModel):
    """One rule of a ruleset.

    Both ``permission`` and ``pattern`` accept ``*`` and ``?`` wildcards.
    """

    permission: str
    pattern: str = "*"
    action: Level


PermissionRuleset = list[PermissionRule]


class ShellDecision(BaseModel):
    verdict: ShellVerdict
    reason: str | None = None


class PolicyDecision(BaseModel):
    """Outcome of the permission gate for one tool call."""

    action: Level
    patterns: list[str] = Field(default_factory=list)
    requires_approval: bool = False
    dotenv_targets: list[str] = Field(default_factory=list)


class ApprovalRequest(BaseModel):
    """Approval request forwarded to a host for a tool call."""

    id: str
    session_id: str | None = None
    call_id: str
    tool: str
    arguments: dict[str, Any] = Field(default_factory=dict)
    requested_at: float = Field(default_factory=time.time)


class ApprovalResponse(BaseModel):
    """Host response to an approval request."""

    request_id: str
    approved: bool
    created_at: float = Field(default_factory=time.time)


def default_ruleset(mode: str) -> PermissionRuleset:
    """
    Built-in ruleset for a mode.

    Plan mode denies everything except read-only inspection tools and the
    session-local tools. Build mode allows everything; per-tool approvals
    are handled by metadata, dotenv and shell checks.

    Args:
        mode: "build" or "plan"

    Returns:
        A fresh list of rules
    """
    if mode == "plan":
        allowed = ["read", "list", "glob", "grep", "lsp", "memory", "skill", "task", "todoread", "todowrite"]
        return [PermissionRule(permission="*", pattern="*", action=Level.DENY)] + [
            PermissionRule(permission=name, pattern="*", action=Level.ALLOW) for name in allowed
        ]
    return [PermissionRule(permission="*", pattern="*", action=Level.ALLOW)]
