"""
Generation request and response types.

Field names follow the HTTP wire format (``systemPrompt``, ``maxTokens``,
``tokensUsed``) in ``from_dict``/``to_dict`` and snake_case in Python.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from .errors import InvalidRequestError
from .validation import (
    RequestLimits,
    validate_max_tokens,
    validate_temperature,
    validate_text_field,
)

_WIRE_NAMES = {
    "systemPrompt": "system_prompt",
    "maxTokens": "max_tokens",
}


@dataclass
class GenerationRequest:
    """One prompt/input pair plus optional sampling parameters."""

    system_prompt: str
    input: str
    max_tokens: int | None = None
    temperature: float | None = None
    model: str | None = None

    def validate(self, limits: RequestLimits | None = None) -> GenerationRequest:
        """
        Check every field against ``limits``.

        Temperature only has to be a finite, non-negative number here; the
        per-model range is applied later by clamping.

        Raises:
            InvalidRequestError: On the first field that fails.
        """
        limits = limits or RequestLimits()
        validate_text_field("systemPrompt", self.system_prompt, limits.max_system_prompt_chars)
        validate_text_field("input", self.input, limits.max_input_chars)
        if self.max_tokens is not None:
            validate_max_tokens(self.max_tokens, limits.max_tokens_limit)
        if self.temperature is not None:
            self.temperature = validate_temperature(self.temperature)
        if self.model is not None:
            validate_text_field("model", self.model, limits.max_model_chars)
        return self

    @classmethod
    def from_dict(cls, data: Any) -> GenerationRequest:
        if not isinstance(data, dict):
            raise InvalidRequestError("Request body must be a JSON object")
        fields = {_WIRE_NAMES.get(k, k): v for k, v in data.items()}
        missing = [name for name in ("system_prompt", "input") if not fields.get(name)]
        if missing:
            raise InvalidRequestError("systemPrompt and input are required")
        return cls(
            system_prompt=fields["system_prompt"],
            input=fields["input"],
            max_tokens=fields.get("max_tokens"),
            temperature=fields.get("temperature"),
            model=fields.get("model"),
        )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"systemPrompt": self.system_prompt, "input": self.input}
        if self.max_tokens is not None:
            data["maxTokens"] = self.max_tokens
        if self.temperature is not None:
            data["temperature"] = self.temperature
        if self.model is not None:
            data["model"] = self.model
        return data


@dataclass
class GenerationResponse:
    output: str
    tokens_used: int | None = None
    model: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"output": self.output}
        if self.tokens_used is not None:
            data["tokensUsed"] = self.tokens_used
        if self.model is not None:
            data["model"] = self.model
        return data


@dataclass
class ValidatedResult:
    """
    Schema-valid result of a validated generation.

    Attributes:
        data: Parsed output, or a copy of the fallback when both attempts failed.
        raw_output: Raw text of the last attempt.
        attempts: Upstream calls made (1 or 2).
        used_fallback: Whether ``data`` is the fallback.
        validation_errors: Errors from the last failed attempt, if any.
        tokens_used: Total tokens across attempts, when the provider reports them.
        model: Model that produced the last attempt.
    """

    data: Any
    raw_output: str
    attempts: int
    used_fallback: bool = False
    validation_errors: list[str] = field(default_factory=list)
    tokens_used: int | None = None
    model: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "data": self.data,
            "attempts": self.attempts,
            "usedFallback": self.used_fallback,
            "rawOutput": self.raw_output,
        }
        if self.tokens_used is not None:
            data["tokensUsed"] = self.tokens_used
        if self.model is not None:
            data["model"] = self.model
        return data


__all__ = ["GenerationRequest", "GenerationResponse", "ValidatedResult"]
