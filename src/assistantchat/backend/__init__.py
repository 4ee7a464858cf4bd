"""Assistant backends: the protocol the chat workflows call and its OpenAI implementation."""

from .base import AssistantBackend, FileInput
from .openai_backend import OpenAIAssistantBackend

__all__ = [
    "AssistantBackend",
    "FileInput",
    "OpenAIAssistantBackend",
]
