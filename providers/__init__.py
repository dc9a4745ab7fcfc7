"""
Model providers implementing ``runtime.llm.LLMProvider``.
"""

from .pydantic_ai_provider import PydanticAIProvider, qualified_model_name, to_pydantic_ai_messages

__all__ = [
    "PydanticAIProvider",
    "qualified_model_name",
    "to_pydantic_ai_messages",
]
