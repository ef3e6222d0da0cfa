"""
Text-generation providers.

The gateway talks to providers only through the ``Provider`` protocol;
``OpenAIProvider`` is the concrete implementation and the client SDK's
``AskAIClient`` lets a gateway wrap a remote generation service.
"""

from .base import BaseProvider, Provider
from .openai import OpenAIProvider, extract_text
from .types import CompletionResult, Message, MessageInput, Role, Usage, normalize_messages

__all__ = [
    "Provider",
    "BaseProvider",
    "OpenAIProvider",
    "extract_text",
    "CompletionResult",
    "Message",
    "MessageInput",
    "Role",
    "Usage",
    "normalize_messages",
]
