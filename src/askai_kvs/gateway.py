"""Validated generation gateway.

Turns unreliable generated text into a result that is guaranteed to match
a caller-supplied JSON schema.

Process (at most two upstream calls, strictly sequential):
1. Ask for JSON only, parse it and validate it against the schema.
2. On parse or schema failure, ask again with a stricter prompt that
   restates required fields and allowed enum values, at a lower temperature.
3. If that also fails, return a copy of the caller's fallback.

Validation failures never reach the caller. Provider, network and
timeout failures do.
"""

from __future__ import annotations

import asyncio
import copy
import json
from typing import Any

from .config.gateway import GatewayConfig
from .config.provider import ProviderConfig
from .errors import (
    ErrorContext,
    InvalidResponseError,
    ProviderError,
    ProviderTimeoutError,
    SchemaValidationFailure,
    ServiceError,
    ValidationError,
)
from .generation import GenerationRequest, GenerationResponse, ValidatedResult
from .hooks import HookContext, HookManager
from .logging import (
    GenerationLog,
    StructuredLogger,
    ValidationFailureLog,
    generate_request_id,
    get_logger,
    timed,
    truncate_for_log,
)
from .models import CapabilityTable, ModelCapabilities
from .providers.base import Provider
from .providers.types import CompletionResult, Message
from .validation import RequestLimits, require_json_schema, validate_against_schema


def _extract_json(content: str) -> str:
    """Extract JSON from potential markdown code blocks.

    Handles:
    - Plain JSON
    - ```json ... ``` blocks
    - ``` ... ``` blocks
    """
    content = content.strip()

    if content.startswith("```"):
        lines = content.split("\n")
        if lines[-1].strip() == "```":
            lines = lines[1:-1]
        else:
            lines = lines[1:]
        content = "\n".join(lines)

    return content.strip()


def parse_and_validate(raw: str, schema: dict[str, Any]) -> Any:
    """
    Parse ``raw`` as JSON and validate it against ``schema``.

    Raises:
        SchemaValidationFailure: If the text is empty, not JSON, or does not match.
    """
    content = _extract_json(raw or "")
    if not content:
        raise SchemaValidationFailure("Empty output", errors=["Empty output"], raw_output=raw)
    try:
        data = json.loads(content)
    except json.JSONDecodeError as e:
        raise SchemaValidationFailure(
            f"JSON parse error: {e}", errors=[f"JSON parse error: {e}"], raw_output=raw
        ) from e

    validation = validate_against_schema(data, schema)
    if not validation.valid:
        raise SchemaValidationFailure(
            "; ".join(validation.errors), errors=validation.errors, raw_output=raw
        )
    return data


# =============================================================================
# Prompts
# =============================================================================


def json_instruction(schema: dict[str, Any]) -> str:
    return (
        "Output JSON only. Respond with a single JSON value matching this schema:\n"
        f"```json\n{json.dumps(schema, indent=2)}\n```\n"
        "Do not include any text, comments or markdown outside the JSON."
    )


def describe_constraints(schema: dict[str, Any], path: str = "") -> list[str]:
    """List required fields and enum values found in ``schema``, with dotted paths."""
    lines: list[str] = []
    if not isinstance(schema, dict):
        return lines

    prefix = f"{path}." if path else ""
    label = path or "the top-level value"

    if "enum" in schema:
        allowed = ", ".join(json.dumps(v) for v in schema["enum"])
        lines.append(f"{label} must be one of: {allowed}")
    if "const" in schema:
        lines.append(f"{label} must equal {json.dumps(schema['const'])}")

    required = schema.get("required") or []
    if required:
        fields = ", ".join(f"{prefix}{name}" for name in required)
        lines.append(f"Required fields: {fields}")
    if schema.get("additionalProperties") is False:
        lines.append(f"No fields other than those listed are allowed in {label}")

    for name, subschema in (schema.get("properties") or {}).items():
        lines.extend(describe_constraints(subschema, f"{prefix}{name}"))

    items = schema.get("items")
    if isinstance(items, dict):
        lines.extend(describe_constraints(items, f"{path}[]" if path else "[]"))

    return lines


def strict_instruction(schema: dict[str, Any], errors: list[str]) -> str:
    parts = [
        "IMPORTANT: You MUST output ONLY valid JSON. No prose, no markdown fences, no explanations.",
        "The previous answer was rejected:",
        *(f"- {e}" for e in errors[:5]),
        "The JSON must satisfy every rule below:",
        *(f"- {line}" for line in describe_constraints(schema)),
        "Schema:",
        json.dumps(schema, separators=(",", ":")),
    ]
    return "\n".join(parts)


# =============================================================================
# Gateway
# =============================================================================


class ValidatedGenerationGateway:
    """
    Wraps a Provider with request validation, per-model parameter resolution
    and the retry-then-fallback protocol.

    Example:
        ```python
        gateway = ValidatedGenerationGateway(provider)
        result = await gateway.generate(
            GenerationRequest(system_prompt="Pick a mood", input="sunny day"),
            schema={"type": "object", "properties": {"mood": {"enum": ["happy", "sad"]}}, "required": ["mood"]},
            fallback={"mood": "happy"},
        )
        ```
    """

    def __init__(
        self,
        provider: Provider,
        *,
        capabilities: CapabilityTable | None = None,
        config: GatewayConfig | None = None,
        defaults: ProviderConfig | None = None,
        hooks: HookManager | None = None,
        logger: StructuredLogger | None = None,
    ) -> None:
        self.provider = provider
        self.capabilities = capabilities or CapabilityTable()
        self.config = config or GatewayConfig()
        self.defaults = defaults or ProviderConfig()
        self.hooks = hooks or HookManager()
        self.logger = logger or get_logger()
        self.limits = RequestLimits(
            max_system_prompt_chars=self.config.max_system_prompt_chars,
            max_input_chars=self.config.max_input_chars,
            max_tokens_limit=self.config.max_tokens_limit,
            max_model_chars=self.config.max_model_chars,
        )

    # ------------------------------------------------------------------
    # Parameter resolution
    # ------------------------------------------------------------------

    def _model_for(self, request: GenerationRequest) -> tuple[str, ModelCapabilities]:
        model = request.model or self.defaults.default_model
        return model, self.capabilities.get(model)

    def resolve_temperature(self, request: GenerationRequest, *, retry: bool = False) -> float:
        """Temperature sent upstream for ``request`` on the first attempt or the retry."""
        _, caps = self._model_for(request)
        requested = request.temperature if request.temperature is not None else self.defaults.default_temperature
        if retry:
            requested = min(requested, self.config.retry_temperature)
        return caps.resolve_temperature(requested, self.defaults.default_temperature)

    # ------------------------------------------------------------------
    # Upstream call
    # ------------------------------------------------------------------

    async def _call(
        self,
        request: GenerationRequest,
        system_prompt: str,
        *,
        attempt: int,
        temperature: float,
        context: HookContext,
    ) -> CompletionResult:
        model, _ = self._model_for(request)
        max_tokens = request.max_tokens or self.defaults.default_max_tokens
        messages = [Message.system(system_prompt), Message.user(request.input)]
        entry = GenerationLog(
            request_id=context.request_id or "",
            model=model,
            attempt=attempt,
            temperature=temperature,
            max_tokens=max_tokens,
        )

        await self.hooks.emit(
            "generation.attempt",
            {"attempt": attempt, "model": model, "temperature": temperature, "max_tokens": max_tokens},
            context,
        )
        try:
            with timed() as timer:
                coro = self.provider.complete(messages, model=model, temperature=temperature, max_tokens=max_tokens)
                if self.config.attempt_timeout is not None:
                    result = await asyncio.wait_for(coro, timeout=self.config.attempt_timeout)
                else:
                    result = await coro
        except asyncio.TimeoutError as e:
            error: ServiceError = ProviderTimeoutError(
                f"Generation attempt {attempt} timed out",
                timeout=self.config.attempt_timeout,
                context=ErrorContext(request_id=context.request_id, model=model, attempt=attempt),
                cause=e,
            )
            await self._record_error(entry, error, context)
            raise error from e
        except ServiceError as e:
            await self._record_error(entry, e, context)
            raise
        except Exception as e:
            error = ProviderError(
                f"Provider call failed: {e}",
                context=ErrorContext(request_id=context.request_id, model=model, attempt=attempt),
                cause=e,
            )
            await self._record_error(entry, error, context)
            raise error from e

        entry.duration_ms = timer.elapsed_ms
        entry.tokens_used = result.tokens_used
        entry.output_chars = len(result.text)
        self.logger.log_generation(entry)
        await self.hooks.emit(
            "generation.success",
            {"attempt": attempt, "model": result.model or model, "latency_ms": timer.elapsed_ms},
            context,
        )
        return result

    async def _record_error(self, entry: GenerationLog, error: ServiceError, context: HookContext) -> None:
        entry.success = False
        entry.error = str(error)
        self.logger.log_generation(entry)
        await self.hooks.emit(
            "generation.error",
            {"attempt": entry.attempt, "error_type": type(error).__name__, "error": error.message},
            context,
        )

    async def _report_validation_failure(
        self,
        failure: SchemaValidationFailure,
        *,
        attempt: int,
        model: str,
        will_retry: bool,
        context: HookContext,
    ) -> None:
        self.logger.log_validation_failure(
            ValidationFailureLog(
                request_id=context.request_id or "",
                model=model,
                attempt=attempt,
                errors=failure.errors,
                output_preview=truncate_for_log(failure.raw_output),
                will_retry=will_retry,
            )
        )
        await self.hooks.emit(
            "generation.validation_failed",
            {"attempt": attempt, "errors": list(failure.errors), "will_retry": will_retry},
            context,
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def generate_text(self, request: GenerationRequest) -> GenerationResponse:
        """
        Single upstream call without schema validation.

        Raises:
            InvalidRequestError: If the request is out of bounds.
            InvalidResponseError: If the provider returned no text.
            ProviderError: On any upstream failure.
        """
        request.validate(self.limits)
        model, _ = self._model_for(request)
        context = HookContext(request_id=generate_request_id(), model=model)

        with self.logger.trace_context(request_id=context.request_id, model=model, operation="generate_text") as trace_id:
            context.trace_id = trace_id
            result = await self._call(
                request,
                request.system_prompt,
                attempt=1,
                temperature=self.resolve_temperature(request),
                context=context,
            )

        if not result.text.strip():
            raise InvalidResponseError(
                "Provider produced empty output",
                context=ErrorContext(request_id=context.request_id, model=model),
            )
        return GenerationResponse(output=result.text, tokens_used=result.tokens_used, model=result.model or model)

    async def generate(
        self,
        request: GenerationRequest,
        schema: dict[str, Any],
        fallback: Any,
    ) -> ValidatedResult:
        """
        Produce output that matches ``schema``, falling back to ``fallback``.

        The request, the schema and the fallback are all checked before any
        upstream call. The returned fallback is a deep copy, never merged with
        invalid output.

        Raises:
            InvalidRequestError: If the request is out of bounds.
            InvalidSchemaError: If ``schema`` is not a valid JSON schema.
            ValidationError: If ``fallback`` does not satisfy ``schema``.
            ProviderError: On any upstream failure, on either attempt.
        """
        request.validate(self.limits)
        require_json_schema(schema)
        fallback_check = validate_against_schema(fallback, schema)
        if not fallback_check.valid:
            raise ValidationError(f"Fallback does not satisfy schema: {'; '.join(fallback_check.errors)}")

        model, _ = self._model_for(request)
        context = HookContext(request_id=generate_request_id(), model=model)
        tokens_used: int | None = None

        def _add_tokens(result: CompletionResult) -> None:
            nonlocal tokens_used
            if result.tokens_used is not None:
                tokens_used = (tokens_used or 0) + result.tokens_used

        with self.logger.trace_context(request_id=context.request_id, model=model, operation="generate") as trace_id:
            context.trace_id = trace_id
            first = await self._call(
                request,
                f"{request.system_prompt}\n\n{json_instruction(schema)}",
                attempt=1,
                temperature=self.resolve_temperature(request),
                context=context,
            )
            _add_tokens(first)
            try:
                data = parse_and_validate(first.text, schema)
                return ValidatedResult(
                    data=data,
                    raw_output=first.text,
                    attempts=1,
                    tokens_used=tokens_used,
                    model=first.model or model,
                )
            except SchemaValidationFailure as failure:
                first_failure = failure
            await self._report_validation_failure(
                first_failure, attempt=1, model=model, will_retry=True, context=context
            )

            second = await self._call(
                request,
                f"{request.system_prompt}\n\n{strict_instruction(schema, first_failure.errors)}",
                attempt=2,
                temperature=self.resolve_temperature(request, retry=True),
                context=context,
            )
            _add_tokens(second)
            try:
                data = parse_and_validate(second.text, schema)
                return ValidatedResult(
                    data=data,
                    raw_output=second.text,
                    attempts=2,
                    tokens_used=tokens_used,
                    model=second.model or model,
                )
            except SchemaValidationFailure as failure:
                second_failure = failure
            await self._report_validation_failure(
                second_failure, attempt=2, model=model, will_retry=False, context=context
            )
            await self.hooks.emit("generation.fallback", {"attempts": 2}, context)

        return ValidatedResult(
            data=copy.deepcopy(fallback),
            raw_output=second.text,
            attempts=2,
            used_fallback=True,
            validation_errors=list(second_failure.errors),
            tokens_used=tokens_used,
            model=second.model or model,
        )


__all__ = [
    "ValidatedGenerationGateway",
    "parse_and_validate",
    "json_instruction",
    "strict_instruction",
    "describe_constraints",
]
