"""PartInput models."""

from typing import Literal

from pydantic import BaseModel


class TextPartInput(BaseModel):
    type: Literal["text"] = "text"
    text: str


PartInput = TextPartInput
