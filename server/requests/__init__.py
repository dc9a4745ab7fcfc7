"""
HTTP request models for the API.

These are Pydantic models for validating and parsing API requests.
"""

from .create_session_request import CreateSessionRequest
from .part_input import PartInput, TextPartInput
from .prompt_request import CompactRequest, PermissionResponseRequest, PromptRequest

__all__ = [
    # Session requests
    "CreateSessionRequest",
    "CompactRequest",
    # Message requests
    "TextPartInput",
    "PartInput",
    "PromptRequest",
    # Permission requests
    "PermissionResponseRequest",
]
