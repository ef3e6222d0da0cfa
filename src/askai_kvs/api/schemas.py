"""Request and response models for the HTTP routes."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class SuccessResponse(BaseModel):
    success: bool = True


class HealthResponse(BaseModel):
    status: str
    store: str
    version: str


class GenerateBody(BaseModel):
    """Body of ``POST /askai``."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    system_prompt: str | None = Field(default=None, alias="systemPrompt")
    input: str | None = None
    max_tokens: int | None = Field(default=None, alias="maxTokens")
    temperature: float | None = None
    model: str | None = None


class ValidatedGenerateBody(GenerateBody):
    """Body of ``POST /askai/validated``."""

    json_schema: dict[str, Any] = Field(alias="schema")
    fallback: Any = Field(...)
    store_key: str | None = Field(default=None, alias="storeKey")


class GenerateResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    output: str
    tokens_used: int | None = Field(default=None, alias="tokensUsed")
    model: str | None = None


class ValidatedGenerateResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    data: Any
    attempts: int
    used_fallback: bool = Field(alias="usedFallback")
    raw_output: str = Field(alias="rawOutput")
    tokens_used: int | None = Field(default=None, alias="tokensUsed")
    model: str | None = None


__all__ = [
    "SuccessResponse",
    "HealthResponse",
    "GenerateBody",
    "ValidatedGenerateBody",
    "GenerateResponse",
    "ValidatedGenerateResponse",
]
