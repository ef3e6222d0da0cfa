"""
Core types for the provider abstraction layer.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class Role(str, Enum):
    """Message roles in a conversation."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


@dataclass
class Message:
    """A message in a conversation."""

    role: Role
    content: str

    def to_dict(self) -> dict[str, Any]:
        """Convert to API-compatible dictionary format."""
        return {"role": self.role.value, "content": self.content}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Message:
        return cls(role=Role(data["role"]), content=data.get("content") or "")

    @classmethod
    def user(cls, content: str) -> Message:
        return cls(role=Role.USER, content=content)

    @classmethod
    def system(cls, content: str) -> Message:
        return cls(role=Role.SYSTEM, content=content)


@dataclass
class Usage:
    """Token usage statistics."""

    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "input_tokens": self.input_tokens,
            "output_tokens": self.output_tokens,
            "total_tokens": self.total_tokens,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Usage:
        """Create Usage from either our field names or the chat-completions ones."""
        input_tokens = data.get("input_tokens", data.get("prompt_tokens", 0)) or 0
        output_tokens = data.get("output_tokens", data.get("completion_tokens", 0)) or 0
        total_tokens = data.get("total_tokens") or input_tokens + output_tokens
        return cls(
            input_tokens=int(input_tokens),
            output_tokens=int(output_tokens),
            total_tokens=int(total_tokens),
        )


@dataclass
class CompletionResult:
    """Result of a completion request."""

    content: str | None = None
    usage: Usage | None = None
    model: str | None = None
    finish_reason: str | None = None
    refusal: str | None = None

    # Original response for debugging
    raw_response: Any | None = field(default=None, repr=False)

    @property
    def text(self) -> str:
        return self.content or ""

    @property
    def tokens_used(self) -> int | None:
        return self.usage.total_tokens if self.usage else None

    def to_dict(self) -> dict[str, Any]:
        return {
            "content": self.content,
            "usage": self.usage.to_dict() if self.usage else None,
            "model": self.model,
            "finish_reason": self.finish_reason,
            "refusal": self.refusal,
        }


MessageInput = str | Message | dict[str, Any] | Sequence[str | Message | dict[str, Any]]


def normalize_messages(messages: MessageInput) -> list[Message]:
    """
    Normalize various message input formats to a list of Message objects.

    Accepts:
    - str: Converted to single user message
    - dict: Converted using Message.from_dict
    - Message: Used as-is
    - List of the above
    """
    if isinstance(messages, str):
        return [Message.user(messages)]

    if isinstance(messages, Message):
        return [messages]

    if isinstance(messages, dict):
        return [Message.from_dict(messages)]

    if isinstance(messages, (list, tuple)):
        result = []
        for msg in messages:
            if isinstance(msg, str):
                result.append(Message.user(msg))
            elif isinstance(msg, Message):
                result.append(msg)
            elif isinstance(msg, dict):
                result.append(Message.from_dict(msg))
            else:
                raise TypeError(f"Unsupported message type: {type(msg)}")
        return result

    raise TypeError(f"Unsupported messages type: {type(messages)}")


__all__ = ["Role", "Message", "Usage", "CompletionResult", "MessageInput", "normalize_messages"]
