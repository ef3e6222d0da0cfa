"""
Provider protocol and base classes.

A provider turns a list of messages into one completion. The gateway
resolves temperature and token limits before calling it, so providers
only translate parameters and responses.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Protocol, runtime_checkable

from .types import CompletionResult, Message, MessageInput, normalize_messages


@runtime_checkable
class Provider(Protocol):
    """Interface for text-generation providers."""

    async def complete(
        self,
        messages: MessageInput,
        *,
        model: str,
        temperature: float | None = None,
        max_tokens: int | None = None,
        **kwargs: Any,
    ) -> CompletionResult:
        """
        Generate a completion for the given messages.

        Args:
            messages: Input messages (str, dict, Message, or list of these)
            model: Model id to call
            temperature: Sampling temperature, already resolved for the model
            max_tokens: Maximum tokens to generate
            **kwargs: Provider-specific parameters

        Returns:
            CompletionResult with the model's response
        """
        ...

    async def close(self) -> None:
        """Clean up provider resources."""
        ...

    async def __aenter__(self) -> Provider: ...

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None: ...


class BaseProvider(ABC):
    """
    Abstract base class for provider implementations.

    Provides message normalization and the async context manager; subclasses
    implement ``complete``.
    """

    name: str = "base"

    @staticmethod
    def _normalize_messages(messages: MessageInput) -> list[Message]:
        return normalize_messages(messages)

    @staticmethod
    def _messages_to_api_format(messages: list[Message]) -> list[dict[str, Any]]:
        return [msg.to_dict() for msg in messages]

    @abstractmethod
    async def complete(
        self,
        messages: MessageInput,
        *,
        model: str,
        temperature: float | None = None,
        max_tokens: int | None = None,
        **kwargs: Any,
    ) -> CompletionResult:
        """Generate a completion. Must be implemented by subclasses."""
        ...

    async def close(self) -> None:
        """
        Clean up provider resources.

        Override in subclasses that need cleanup.
        """
        pass

    async def __aenter__(self) -> BaseProvider:
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()


__all__ = ["Provider", "BaseProvider"]
