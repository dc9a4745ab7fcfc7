"""CreateSessionRequest model."""

from pydantic import BaseModel, Field


class CreateSessionRequest(BaseModel):
    parentID: str | None = None
    modelID: str | None = Field(
        default=None,
        description="Model override recorded on the session",
    )
