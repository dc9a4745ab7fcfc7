"""Request models for running and compacting a session."""

from typing import Literal

from pydantic import BaseModel, Field

from .part_input import TextPartInput


class PromptRequest(BaseModel):
    parts: list[TextPartInput]
    modelID: str | None = None
    mode: Literal["build", "plan"] | None = None
    autoApprove: bool | None = Field(
        default=None,
        description="Skip approval prompts for this run (ignored in plan mode)",
    )

    def text(self) -> str:
        return "\n".join(part.text for part in self.parts if part.text)


class CompactRequest(BaseModel):
    modelID: str | None = None


class PermissionResponseRequest(BaseModel):
    requestID: str
    approved: bool
