"""
Client SDKs for the HTTP services.

``KVSClient`` talks to the key store routes; ``AskAIClient`` talks to the
generation routes and also implements the Provider protocol, so a
ValidatedGenerationGateway can wrap a remote generation service.

Both accept an existing ``aiohttp.ClientSession``. A session the client
creates itself is closed by ``close()``; an injected one is left open.
Error responses are turned back into the service error taxonomy with
``error_from_status``.
"""

from __future__ import annotations

import asyncio
import json
from typing import Any
from urllib.parse import quote

import aiohttp

from .errors import (
    ErrorContext,
    InvalidResponseError,
    NotFoundError,
    ProviderTimeoutError,
    ProviderUnavailableError,
    ServiceError,
    StoreUnavailableError,
    error_from_status,
)
from .generation import GenerationRequest, GenerationResponse, ValidatedResult
from .providers.base import BaseProvider
from .providers.types import CompletionResult, MessageInput, Role, Usage
from .validation import validate_key


class _HTTPClient:
    """Shared session handling and request plumbing."""

    # Raised for transport failures and timeouts
    unavailable_error: type[ServiceError] = ServiceError

    def __init__(
        self,
        base_url: str,
        *,
        session: aiohttp.ClientSession | None = None,
        timeout: float = 30.0,
        headers: dict[str, str] | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.headers = dict(headers or {})
        self._session = session
        self._owns_session = session is None

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(headers=self.headers)
            self._owns_session = True
        return self._session

    async def _request(
        self,
        method: str,
        path: str,
        *,
        body: Any = None,
        send_body: bool = False,
        context: ErrorContext | None = None,
    ) -> tuple[int, Any]:
        """Send one request and return ``(status, parsed JSON body or None)``."""
        session = await self._get_session()
        kwargs: dict[str, Any] = {"timeout": aiohttp.ClientTimeout(total=self.timeout)}
        if send_body:
            kwargs["data"] = json.dumps(body)
            kwargs["headers"] = {"Content-Type": "application/json"}

        url = f"{self.base_url}{path}"
        try:
            async with session.request(method, url, **kwargs) as response:
                status = response.status
                text = await response.text()
        except asyncio.TimeoutError as e:
            raise self._timeout_error(f"{method} {url} timed out", context, e) from e
        except aiohttp.ClientError as e:
            raise self.unavailable_error(f"{method} {url} failed: {e}", context=context, cause=e) from e

        if not text:
            return status, None
        try:
            return status, json.loads(text)
        except json.JSONDecodeError:
            if status >= 400:
                return status, {"error": text}
            raise InvalidResponseError(f"Non-JSON response from {url}", context=context)

    def _timeout_error(self, message: str, context: ErrorContext | None, cause: Exception) -> ServiceError:
        return self.unavailable_error(message, context=context, cause=cause)

    @staticmethod
    def _raise_for_status(status: int, body: Any, context: ErrorContext | None = None) -> None:
        if status < 400:
            return
        message = f"HTTP {status}"
        if isinstance(body, dict):
            message = body.get("message") or body.get("error") or message
        raise error_from_status(status, str(message), context=context)

    async def close(self) -> None:
        if self._owns_session and self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None


# =============================================================================
# Key store client
# =============================================================================


class KVSClient(_HTTPClient):
    """
    Async client for the key store routes.

    Example:
        ```python
        async with KVSClient("http://localhost:8000/kvs") as kvs:
            await kvs.put("user:123", {"name": "Ada"})
            value = await kvs.get("user:123")
        ```
    """

    unavailable_error = StoreUnavailableError

    @staticmethod
    def _path(key: str) -> str:
        validate_key(key)
        return "/" + quote(key, safe="")

    async def get(self, key: str) -> Any | None:
        """Return the stored value, or None if the key does not exist."""
        context = ErrorContext(key=key, operation="get")
        status, body = await self._request("GET", self._path(key), context=context)
        if status == 404:
            return None
        self._raise_for_status(status, body, context)
        return body

    async def exists(self, key: str) -> bool:
        context = ErrorContext(key=key, operation="exists")
        status, body = await self._request("GET", self._path(key), context=context)
        if status == 404:
            return False
        self._raise_for_status(status, body, context)
        return True

    async def get_many(self, keys: list[str]) -> dict[str, Any]:
        unique = list(dict.fromkeys(keys))
        values = await asyncio.gather(*(self.get(k) for k in unique))
        return {k: v for k, v in zip(unique, values) if v is not None}

    async def put(self, key: str, value: Any) -> None:
        context = ErrorContext(key=key, operation="put")
        status, body = await self._request("PUT", self._path(key), body=value, send_body=True, context=context)
        self._raise_for_status(status, body, context)

    async def create(self, key: str, value: Any) -> None:
        """Create ``key``. Raises ConflictError if it already exists."""
        context = ErrorContext(key=key, operation="create")
        status, body = await self._request("POST", self._path(key), body=value, send_body=True, context=context)
        self._raise_for_status(status, body, context)

    async def patch(self, key: str, partial: Any) -> None:
        """Merge into an existing key. Raises NotFoundError if it does not exist."""
        context = ErrorContext(key=key, operation="patch")
        status, body = await self._request("PATCH", self._path(key), body=partial, send_body=True, context=context)
        if status == 404:
            raise NotFoundError(key=key, context=context)
        self._raise_for_status(status, body, context)

    async def delete(self, key: str) -> None:
        context = ErrorContext(key=key, operation="delete")
        status, body = await self._request("DELETE", self._path(key), context=context)
        if status == 404:
            return
        self._raise_for_status(status, body, context)

    async def __aenter__(self) -> KVSClient:
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()


# =============================================================================
# Generation client
# =============================================================================


class AskAIClient(_HTTPClient, BaseProvider):
    """
    Async client for the generation routes.

    Also a Provider: system messages become ``systemPrompt`` and the
    remaining messages are joined into ``input``.
    """

    name = "askai"
    unavailable_error = ProviderUnavailableError

    def _timeout_error(self, message: str, context: ErrorContext | None, cause: Exception) -> ServiceError:
        return ProviderTimeoutError(message, timeout=self.timeout, context=context, cause=cause)

    async def generate_text(self, request: GenerationRequest) -> GenerationResponse:
        context = ErrorContext(model=request.model, operation="generate_text")
        status, body = await self._request("POST", "", body=request.to_dict(), send_body=True, context=context)
        self._raise_for_status(status, body, context)
        if not isinstance(body, dict) or not isinstance(body.get("output"), str):
            raise InvalidResponseError("Response is missing 'output'", context=context)
        return GenerationResponse(
            output=body["output"],
            tokens_used=body.get("tokensUsed"),
            model=body.get("model"),
        )

    async def generate_validated(
        self,
        request: GenerationRequest,
        schema: dict[str, Any],
        fallback: Any,
        *,
        store_key: str | None = None,
    ) -> ValidatedResult:
        """Call ``POST /validated``; ``store_key`` asks the service to save the result."""
        payload = {**request.to_dict(), "schema": schema, "fallback": fallback}
        if store_key is not None:
            validate_key(store_key)
            payload["storeKey"] = store_key
        context = ErrorContext(model=request.model, key=store_key, operation="generate")
        status, body = await self._request("POST", "/validated", body=payload, send_body=True, context=context)
        self._raise_for_status(status, body, context)
        if not isinstance(body, dict) or "data" not in body:
            raise InvalidResponseError("Response is missing 'data'", context=context)
        return ValidatedResult(
            data=body["data"],
            raw_output=body.get("rawOutput", ""),
            attempts=int(body.get("attempts", 1)),
            used_fallback=bool(body.get("usedFallback", False)),
            tokens_used=body.get("tokensUsed"),
            model=body.get("model"),
        )

    async def complete(
        self,
        messages: MessageInput,
        *,
        model: str,
        temperature: float | None = None,
        max_tokens: int | None = None,
        **kwargs: Any,
    ) -> CompletionResult:
        normalized = self._normalize_messages(messages)
        system = "\n\n".join(m.content for m in normalized if m.role == Role.SYSTEM)
        conversation = "\n\n".join(m.content for m in normalized if m.role != Role.SYSTEM)
        request = GenerationRequest(
            system_prompt=system,
            input=conversation,
            max_tokens=max_tokens,
            temperature=temperature,
            model=model,
        )
        response = await self.generate_text(request)
        usage = Usage(total_tokens=response.tokens_used) if response.tokens_used is not None else None
        return CompletionResult(
            content=response.output,
            usage=usage,
            model=response.model or model,
            raw_response=response,
        )

    async def __aenter__(self) -> AskAIClient:
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()


__all__ = ["KVSClient", "AskAIClient"]
