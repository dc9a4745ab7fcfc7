"""Permission evaluation for tool calls."""

import logging
from typing import Any, Iterable

from core.constants import EDIT_TOOL_IDS, MODE_CONTROL_TOOL_IDS, PLAN_MODE_BLOCKED_MESSAGE
from core.models import ToolDefinition

from .models import Level, PermissionRule, PermissionRuleset
from .paths import is_absolute, normalize_permission_path
from .patterns import match_pattern, specificity

logger = logging.getLogger(__name__)

_SEVERITY = {Level.ALLOW: 0, Level.ASK: 1, Level.DENY: 2}


def combine_actions(current: Level, new: Level) -> Level:
    """Worst case wins: deny over ask over allow."""
    return current if _SEVERITY[current] >= _SEVERITY[new] else new


def evaluate_rule(permission: str, pattern: str, ruleset: PermissionRuleset) -> PermissionRule | None:
    """
    Find the most specific rule matching a permission name and pattern.

    Exact patterns beat globs, globs beat "*". The permission name is ranked
    the same way as a tie-breaker, then the number of literal characters,
    then the later rule.

    Args:
        permission: Permission name (e.g. "edit", "bash")
        pattern: Normalized pattern extracted from tool arguments
        ruleset: Ordered rules

    Returns:
        The winning rule, or None if nothing matches
    """
    best: PermissionRule | None = None
    best_rank: tuple[int, int, int, int, int] | None = None
    for index, rule in enumerate(ruleset):
        if not match_pattern(rule.permission, permission):
            continue
        if not match_pattern(rule.pattern, pattern):
            continue
        pattern_class, pattern_literal = specificity(rule.pattern)
        permission_class, permission_literal = specificity(rule.permission)
        rank = (pattern_class, permission_class, pattern_literal, permission_literal, index)
        if best_rank is None or rank > best_rank:
            best, best_rank = rule, rank
    return best


def evaluate_permission(permission: str, patterns: Iterable[str], ruleset: PermissionRuleset) -> Level:
    """
    Combined action for every pattern of one tool call.

    A pattern with no matching rule evaluates to ASK.
    """
    action = Level.ALLOW
    for pattern in patterns:
        rule = evaluate_rule(permission, pattern, ruleset)
        action = combine_actions(action, rule.action if rule else Level.ASK)
    return action


def tool_permission_name(definition: ToolDefinition) -> str:
    explicit = (definition.metadata.permission or "").strip()
    if explicit:
        return explicit
    if definition.id in EDIT_TOOL_IDS:
        return "edit"
    return definition.id


def tool_permission_patterns(
    definition: ToolDefinition,
    args: dict[str, Any],
    workspace_root: str | None = None,
) -> list[str]:
    """Patterns for permission evaluation; ["*"] when the tool declares none."""
    patterns: list[str] = []
    for source in definition.metadata.permission_patterns:
        raw = args.get(source.arg)
        if not isinstance(raw, str) or not raw.strip():
            continue
        value = raw.strip()
        if source.kind == "path":
            patterns.append(normalize_permission_path(value, workspace_root))
        else:
            patterns.append(value)
    return patterns or ["*"]


def external_path_patterns(
    definition: ToolDefinition,
    args: dict[str, Any],
    workspace_root: str | None = None,
) -> list[str]:
    """Path arguments resolving outside the workspace, for tools that accept them."""
    if not definition.metadata.supports_external_paths or not workspace_root:
        return []
    found: list[str] = []
    for source in definition.metadata.permission_patterns:
        if source.kind != "path":
            continue
        raw = args.get(source.arg)
        if not isinstance(raw, str) or not raw.strip():
            continue
        normalized = normalize_permission_path(raw.strip(), workspace_root)
        if is_absolute(normalized) and normalized not in found:
            found.append(normalized)
    return found


def plan_mode_block_reason(definition: ToolDefinition) -> str | None:
    """Reason a tool is blocked in plan mode, or None if it may run."""
    if definition.metadata.read_only or definition.id in MODE_CONTROL_TOOL_IDS:
        return None
    return PLAN_MODE_BLOCKED_MESSAGE
