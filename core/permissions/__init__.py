"""
Permission system for tool calls.

Provides the three-tier (ask/allow/deny) rule evaluation, plan-mode gating,
dotenv approval forcing, shell command classification and external path
detection used by the tool execution pipeline.
"""

from .approvals import ApprovalBroker
from .dotenv import collect_dotenv_targets, is_protected_dotenv
from .evaluator import (
    combine_actions,
    evaluate_permission,
    evaluate_rule,
    external_path_patterns,
    plan_mode_block_reason,
    tool_permission_name,
    tool_permission_patterns,
)
from .models import (
    ApprovalRequest,
    ApprovalResponse,
    Level,
    PermissionRule,
    PermissionRuleset,
    PolicyDecision,
    ShellDecision,
    ShellVerdict,
    default_ruleset,
)
from .paths import is_sub_path, normalize_permission_path
from .patterns import match_pattern
from .shell import (
    evaluate_shell_command,
    find_external_path_references,
    is_shell_tool,
    shell_command_for,
)

__all__ = [
    # Permission levels
    "Level",
    "ShellVerdict",
    # Models
    "PermissionRule",
    "PermissionRuleset",
    "PolicyDecision",
    "ShellDecision",
    "ApprovalRequest",
    "ApprovalResponse",
    "default_ruleset",
    # Functions
    "match_pattern",
    "combine_actions",
    "evaluate_rule",
    "evaluate_permission",
    "tool_permission_name",
    "tool_permission_patterns",
    "external_path_patterns",
    "plan_mode_block_reason",
    "collect_dotenv_targets",
    "is_protected_dotenv",
    "evaluate_shell_command",
    "find_external_path_references",
    "is_shell_tool",
    "shell_command_for",
    "normalize_permission_path",
    "is_sub_path",
    # Classes
    "ApprovalBroker",
]
