"""PermissionsConfig and SecurityConfig models."""

import logging

from pydantic import BaseModel, ConfigDict, Field

from core.permissions import PermissionRule, PermissionRuleset, default_ruleset

logger = logging.getLogger(__name__)


class SecurityConfig(BaseModel):
    """Workspace boundary settings."""

    model_config = ConfigDict(frozen=True)

    allow_external_paths: bool = Field(
        default=False,
        description="Allow tools to touch paths outside the workspace root",
    )


class PermissionsConfig(BaseModel):
    """Extra permission rules layered over the built-in ruleset of each mode.

    Rules are selected by specificity, not order, so an extra rule only wins
    over a built-in one when it is at least as specific.
    """

    model_config = ConfigDict(frozen=True)

    build: list[PermissionRule] = Field(
        default_factory=list,
        description="Additional rules for build mode",
    )
    plan: list[PermissionRule] = Field(
        default_factory=list,
        description="Additional rules for plan mode",
    )

    def ruleset_for(self, mode: str) -> PermissionRuleset:
        """
        Ruleset used for a mode.

        Args:
            mode: "build" or "plan"

        Returns:
            Built-in rules followed by the configured extras
        """
        extras = self.plan if mode == "plan" else self.build
        if extras:
            logger.debug("Applying %d extra permission rule(s) for %s mode", len(extras), mode)
        return default_ruleset(mode) + list(extras)
