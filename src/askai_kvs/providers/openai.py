"""
OpenAI provider implementation.

This module implements the Provider interface for OpenAI's chat
completions API, with per-model parameters taken from the capability
table instead of model-name sniffing.
"""

from __future__ import annotations

import inspect
from typing import Any

import openai
from openai import AsyncOpenAI

from ..config.provider import OpenAIConfig
from ..errors import (
    AuthenticationError,
    ErrorContext,
    InvalidResponseError,
    MissingAPIKeyError,
    ModelNotFoundError,
    ProviderError,
    ProviderTimeoutError,
    ProviderUnavailableError,
    RateLimitError,
    error_from_status,
)
from ..logging import StructuredLogger, get_logger
from ..models import CapabilityTable
from .base import BaseProvider
from .types import CompletionResult, MessageInput, Usage

TOKEN_PARAMETERS = ("max_tokens", "max_completion_tokens")


class OpenAIProvider(BaseProvider):
    """
    OpenAI API provider implementation.

    Example:
        ```python
        async with OpenAIProvider(OpenAIConfig(api_key="sk-...")) as provider:
            result = await provider.complete("Hello", model="gpt-4o", max_tokens=100)
            print(result.content)
        ```
    """

    name = "openai"

    def __init__(
        self,
        config: OpenAIConfig | None = None,
        *,
        capabilities: CapabilityTable | None = None,
        client: AsyncOpenAI | None = None,
        logger: StructuredLogger | None = None,
    ) -> None:
        """
        Initialize the OpenAI provider.

        Args:
            config: API key, base URL, organization and timeout
            capabilities: Capability table deciding the token parameter and
                reasoning effort per model
            client: Pre-built client, mainly for tests
            logger: Structured logger for retry warnings
        """
        self.config = config or OpenAIConfig()
        self.capabilities = capabilities or CapabilityTable()
        self.logger = logger or get_logger()

        if client is None:
            if not self.config.api_key:
                raise MissingAPIKeyError(env_var="OPENAI_API_KEY")
            client_kwargs: dict[str, Any] = {
                "api_key": self.config.api_key,
                "timeout": self.config.timeout,
                "max_retries": 0,
            }
            if self.config.base_url:
                client_kwargs["base_url"] = self.config.base_url
            if self.config.organization:
                client_kwargs["organization"] = self.config.organization
            client = AsyncOpenAI(**client_kwargs)
        self.client = client

    async def close(self) -> None:
        """Close provider resources."""
        close_fn = getattr(self.client, "close", None)
        if close_fn:
            res = close_fn()
            if inspect.isawaitable(res):
                await res

    def _build_params(
        self,
        messages: list[dict[str, Any]],
        *,
        model: str,
        temperature: float | None,
        max_tokens: int | None,
        **kwargs: Any,
    ) -> dict[str, Any]:
        caps = self.capabilities.get(model)
        params: dict[str, Any] = {"model": model, "messages": messages}
        if caps.supports_temperature and temperature is not None:
            params["temperature"] = temperature
        params.update(caps.token_params(max_tokens or self.config.default_max_tokens))
        params.update(kwargs)
        return params

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
        Run one chat completion.

        If the API rejects the token parameter as unsupported, the call is
        repeated once with the other parameter name.

        Raises:
            ProviderError: For any API, network or timeout failure
        """
        api_messages = self._messages_to_api_format(self._normalize_messages(messages))
        params = self._build_params(
            api_messages,
            model=model,
            temperature=temperature,
            max_tokens=max_tokens,
            **kwargs,
        )

        try:
            response = await self._create(params)
        except openai.BadRequestError as e:
            rejected = _rejected_token_parameter(e)
            if rejected is None or rejected not in params:
                raise _map_openai_error(e, model) from e
            alternate = "max_completion_tokens" if rejected == "max_tokens" else "max_tokens"
            self.logger.warning(
                "Token parameter rejected, retrying with alternate",
                model=model,
                rejected=rejected,
                alternate=alternate,
            )
            params[alternate] = params.pop(rejected)
            try:
                response = await self._create(params)
            except openai.OpenAIError as retry_error:
                raise _map_openai_error(retry_error, model) from retry_error
        except openai.OpenAIError as e:
            raise _map_openai_error(e, model) from e

        return _to_completion_result(response, model)

    async def _create(self, params: dict[str, Any]) -> Any:
        return await self.client.chat.completions.create(**params)


# =============================================================================
# Response handling
# =============================================================================


def _as_dict(obj: Any) -> dict[str, Any]:
    if isinstance(obj, dict):
        return obj
    dump = getattr(obj, "model_dump", None)
    if callable(dump):
        return dump()
    return {}


def _text_from_part(part: Any) -> str:
    if isinstance(part, str):
        return part
    if isinstance(part, dict):
        for key in ("text", "content", "value"):
            if isinstance(part.get(key), str):
                return part[key]
    return ""


def extract_text(completion: Any) -> tuple[str, str | None]:
    """
    Pull the output text out of a completion.

    Handles string content, content-part lists, objects carrying
    ``text``/``content``/``value``, legacy ``choices[0].text``, and
    ``output_text``. A refusal is returned as text when nothing else is
    present.

    Returns:
        ``(text, refusal)``
    """
    data = _as_dict(completion)
    choices = data.get("choices") or []
    choice = choices[0] if choices else {}
    message = choice.get("message") or {}
    content = message.get("content")
    refusal = message.get("refusal") if isinstance(message.get("refusal"), str) else None

    if isinstance(content, str) and content:
        return content, refusal
    if isinstance(content, dict):
        text = _text_from_part(content)
        if text:
            return text, refusal
    if isinstance(content, list):
        text = "".join(_text_from_part(part) for part in content)
        if text:
            return text, refusal
    if isinstance(choice.get("text"), str):
        return choice["text"], refusal
    if isinstance(data.get("output_text"), str):
        return data["output_text"], refusal
    if refusal and refusal.strip():
        return refusal, refusal
    return "", refusal


def _to_completion_result(response: Any, requested_model: str) -> CompletionResult:
    data = _as_dict(response)
    text, refusal = extract_text(data)
    usage_data = data.get("usage")
    choices = data.get("choices") or [{}]
    return CompletionResult(
        content=text,
        usage=Usage.from_dict(usage_data) if isinstance(usage_data, dict) else None,
        model=data.get("model") or requested_model,
        finish_reason=choices[0].get("finish_reason"),
        refusal=refusal,
        raw_response=response,
    )


# =============================================================================
# Error mapping
# =============================================================================


def _rejected_token_parameter(error: openai.BadRequestError) -> str | None:
    """Return the token parameter the API refused, if that is what failed."""
    if getattr(error, "code", None) != "unsupported_parameter":
        return None
    param = getattr(error, "param", None)
    if param in TOKEN_PARAMETERS:
        return param
    message = str(getattr(error, "message", "") or error)
    # Check the longer name first; "max_tokens" is not a substring of it
    for name in ("max_completion_tokens", "max_tokens"):
        if name in message:
            return name
    return None


def _map_openai_error(error: Exception, model: str) -> ProviderError:
    context = ErrorContext(model=model, operation="complete")
    if isinstance(error, openai.APITimeoutError):
        return ProviderTimeoutError(str(error), context=context, cause=error)
    if isinstance(error, openai.APIConnectionError):
        return ProviderUnavailableError(f"Connection error: {error}", context=context, cause=error)
    if isinstance(error, openai.RateLimitError):
        return RateLimitError(f"Rate limit exceeded: {error}", context=context, cause=error)
    if isinstance(error, (openai.AuthenticationError, openai.PermissionDeniedError)):
        return AuthenticationError(str(error), context=context, cause=error)
    if isinstance(error, openai.NotFoundError):
        return ModelNotFoundError(model=model, context=context, cause=error)
    if isinstance(error, openai.APIStatusError):
        mapped = error_from_status(error.status_code, str(error), context=context)
        if isinstance(mapped, ProviderError):
            mapped.cause = error
            return mapped
        # 4xx the provider attributes to our request
        return InvalidResponseError(str(error), context=context, cause=error)
    return ProviderError(str(error), context=context, cause=error)


__all__ = ["OpenAIProvider", "extract_text"]
