"""
Error taxonomy for askai-kvs.

This module provides a hierarchical exception system with:
- Error codes for programmatic handling
- Retryable vs non-retryable classification
- HTTP status mapping for the service routes
- Structured context for debugging
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Standardized error codes for the key store, gateway and links."""

    # Validation errors (1xxx)
    VALIDATION_ERROR = "ERR_1000"
    INVALID_KEY = "ERR_1001"
    INVALID_SCHEMA = "ERR_1002"
    INVALID_REQUEST = "ERR_1003"
    PAYLOAD_TOO_LARGE = "ERR_1004"

    # Store errors (2xxx)
    NOT_FOUND = "ERR_2001"
    CONFLICT = "ERR_2002"
    STORE_UNAVAILABLE = "ERR_2003"

    # Upstream / provider errors (3xxx)
    UPSTREAM_UNAVAILABLE = "ERR_3000"
    PROVIDER_ERROR = "ERR_3001"
    RATE_LIMIT = "ERR_3002"
    AUTHENTICATION = "ERR_3003"
    QUOTA_EXCEEDED = "ERR_3004"
    MODEL_NOT_FOUND = "ERR_3005"
    PROVIDER_UNAVAILABLE = "ERR_3006"
    PROVIDER_TIMEOUT = "ERR_3007"
    INVALID_RESPONSE = "ERR_3008"
    SCHEMA_VALIDATION_FAILURE = "ERR_3009"

    # Link errors (4xxx)
    LINK_ERROR = "ERR_4000"
    LINK_EXPIRED = "ERR_4001"
    LINK_INVALID_SIGNATURE = "ERR_4002"
    LINK_MALFORMED = "ERR_4003"

    # Configuration errors (6xxx)
    CONFIG_ERROR = "ERR_6000"
    MISSING_API_KEY = "ERR_6001"

    # Internal errors (9xxx)
    INTERNAL_ERROR = "ERR_9000"


@dataclass
class ErrorContext:
    """Structured context for error debugging."""

    request_id: str | None = None
    trace_id: str | None = None
    key: str | None = None
    model: str | None = None
    attempt: int = 1
    operation: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "request_id": self.request_id,
            "trace_id": self.trace_id,
            "key": self.key,
            "model": self.model,
            "attempt": self.attempt,
            "operation": self.operation,
            **self.extra,
        }


class ServiceError(Exception):
    """
    Base exception for all askai-kvs errors.

    Attributes:
        code: Standardized error code for programmatic handling
        message: Human-readable error message
        retryable: Whether the operation can be retried
        http_status: Status code used when the error crosses the HTTP boundary
        title: Short error label returned in the ``error`` field of responses
        context: Structured debugging context
        cause: Original exception that caused this error
    """

    code: ErrorCode = ErrorCode.INTERNAL_ERROR
    retryable: bool = False
    http_status: int = 500
    title: str = "Internal server error"

    def __init__(
        self,
        message: str,
        *,
        code: ErrorCode | None = None,
        retryable: bool | None = None,
        http_status: int | None = None,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        if retryable is not None:
            self.retryable = retryable
        if http_status is not None:
            self.http_status = http_status
        self.context = context or ErrorContext()
        self.cause = cause

    def __str__(self) -> str:
        parts = [f"[{self.code.value}] {self.message}"]
        if self.context.request_id:
            parts.append(f"(request_id={self.context.request_id})")
        return " ".join(parts)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "code": self.code.value,
            "message": self.message,
            "retryable": self.retryable,
            "http_status": self.http_status,
            "context": self.context.to_dict(),
            "cause": str(self.cause) if self.cause else None,
        }

    def to_response(self) -> dict[str, Any]:
        """Body returned to HTTP callers: ``{error, message?, code}``."""
        body: dict[str, Any] = {"error": self.title, "code": self.code.value}
        if self.message and self.message != self.title:
            body["message"] = self.message
        return body


# =============================================================================
# Validation Errors
# =============================================================================


class ValidationError(ServiceError):
    """Base class for input validation errors."""

    code = ErrorCode.VALIDATION_ERROR
    retryable = False
    http_status = 400
    title = "Validation error"


class InvalidKeyError(ValidationError):
    """Key is empty, too long, or contains characters outside the allow-list."""

    code = ErrorCode.INVALID_KEY
    title = "Invalid key"

    def __init__(self, message: str = "Invalid key", *, key: str | None = None, **kwargs):
        super().__init__(message, **kwargs)
        self.key = key


class InvalidSchemaError(ValidationError):
    """A caller-supplied JSON schema is not itself a valid schema."""

    code = ErrorCode.INVALID_SCHEMA
    title = "Invalid schema"


class InvalidRequestError(ValidationError):
    """Request body is missing, not JSON, or outside the accepted bounds."""

    code = ErrorCode.INVALID_REQUEST
    title = "Invalid request"


class PayloadTooLargeError(ServiceError):
    """Payload exceeds the configured size cap. Rejected before backend access."""

    code = ErrorCode.PAYLOAD_TOO_LARGE
    retryable = False
    http_status = 413
    title = "Payload too large"

    def __init__(
        self,
        message: str = "Payload too large",
        *,
        max_bytes: int | None = None,
        actual_bytes: int | None = None,
        **kwargs,
    ):
        super().__init__(message, **kwargs)
        self.max_bytes = max_bytes
        self.actual_bytes = actual_bytes


# =============================================================================
# Store Errors
# =============================================================================


class NotFoundError(ServiceError):
    """Key does not exist."""

    code = ErrorCode.NOT_FOUND
    retryable = False
    http_status = 404
    title = "Not found"

    def __init__(self, message: str = "Not found", *, key: str | None = None, **kwargs):
        super().__init__(message, **kwargs)
        self.key = key


class ConflictError(ServiceError):
    """Create was called for a key that already exists."""

    code = ErrorCode.CONFLICT
    retryable = False
    http_status = 409
    title = "Key already exists"

    def __init__(self, message: str = "Key already exists", *, key: str | None = None, **kwargs):
        super().__init__(message, **kwargs)
        self.key = key


# =============================================================================
# Upstream Errors
# =============================================================================


class UpstreamUnavailableError(ServiceError):
    """A store backend or generation provider could not serve the request."""

    code = ErrorCode.UPSTREAM_UNAVAILABLE
    retryable = True
    http_status = 503
    title = "Upstream unavailable"


class StoreUnavailableError(UpstreamUnavailableError):
    """The durable backend failed. Never retried by the store itself."""

    code = ErrorCode.STORE_UNAVAILABLE
    title = "Store unavailable"


class ProviderError(UpstreamUnavailableError):
    """Base class for errors from the text-generation provider."""

    code = ErrorCode.PROVIDER_ERROR
    retryable = False
    http_status = 502
    title = "Provider error"


class RateLimitError(ProviderError):
    """Rate limit exceeded. Operation can be retried after a delay."""

    code = ErrorCode.RATE_LIMIT
    retryable = True
    http_status = 429
    title = "Rate limit exceeded"

    def __init__(
        self,
        message: str = "Rate limit exceeded",
        *,
        retry_after: float | None = None,
        **kwargs,
    ):
        super().__init__(message, **kwargs)
        self.retry_after = retry_after


class AuthenticationError(ProviderError):
    """Invalid or missing provider API key. Not retryable."""

    code = ErrorCode.AUTHENTICATION
    http_status = 401
    title = "Authentication failed"


class QuotaExceededError(ProviderError):
    """Provider quota/spending limit exceeded."""

    code = ErrorCode.QUOTA_EXCEEDED
    http_status = 402
    title = "Quota exceeded"


class ModelNotFoundError(ProviderError):
    """Requested model does not exist or is not accessible."""

    code = ErrorCode.MODEL_NOT_FOUND
    http_status = 404
    title = "Model not found"

    def __init__(
        self,
        message: str = "Model not found",
        *,
        model: str | None = None,
        **kwargs,
    ):
        if model:
            message = f"Model not found: {model}"
        super().__init__(message, **kwargs)


class ProviderUnavailableError(ProviderError):
    """Provider service is temporarily unavailable. Retryable."""

    code = ErrorCode.PROVIDER_UNAVAILABLE
    retryable = True
    http_status = 503
    title = "Provider unavailable"


class ProviderTimeoutError(ProviderError):
    """Request to provider timed out. Retryable."""

    code = ErrorCode.PROVIDER_TIMEOUT
    retryable = True
    http_status = 504
    title = "Provider timeout"

    def __init__(
        self,
        message: str = "Request timed out",
        *,
        timeout: float | None = None,
        **kwargs,
    ):
        super().__init__(message, **kwargs)
        self.timeout = timeout


class InvalidResponseError(ProviderError):
    """Provider returned an empty or unexpected response."""

    code = ErrorCode.INVALID_RESPONSE
    retryable = True
    http_status = 502
    title = "Invalid response from provider"


class SchemaValidationFailure(ServiceError):
    """Generated output did not parse or did not match the caller's schema.

    Raised and absorbed inside the generation gateway only.
    """

    code = ErrorCode.SCHEMA_VALIDATION_FAILURE
    retryable = True
    http_status = 502
    title = "Schema validation failure"

    def __init__(
        self,
        message: str = "Output failed schema validation",
        *,
        errors: list[str] | None = None,
        raw_output: str = "",
        **kwargs,
    ):
        super().__init__(message, **kwargs)
        self.errors = errors or []
        self.raw_output = raw_output


# =============================================================================
# Link Errors
# =============================================================================


class LinkError(ServiceError):
    """Base class for capability-link failures."""

    code = ErrorCode.LINK_ERROR
    retryable = False
    http_status = 403
    title = "Invalid link"


class LinkExpiredError(LinkError):
    code = ErrorCode.LINK_EXPIRED
    title = "Link expired"


class LinkInvalidSignatureError(LinkError):
    code = ErrorCode.LINK_INVALID_SIGNATURE
    title = "Invalid link signature"


class MalformedLinkError(LinkError):
    code = ErrorCode.LINK_MALFORMED
    http_status = 400
    title = "Malformed link"


# =============================================================================
# Configuration Errors
# =============================================================================


class ConfigError(ServiceError):
    """Base class for configuration errors."""

    code = ErrorCode.CONFIG_ERROR
    retryable = False


class MissingAPIKeyError(ConfigError):
    """Required API key is not set."""

    code = ErrorCode.MISSING_API_KEY

    def __init__(
        self,
        message: str = "API key not found",
        *,
        env_var: str | None = None,
        **kwargs,
    ):
        super().__init__(message, **kwargs)
        self.env_var = env_var


# =============================================================================
# Error Mapping from HTTP Status Codes
# =============================================================================


def error_from_status(
    status: int,
    message: str,
    *,
    context: ErrorContext | None = None,
) -> ServiceError:
    """
    Create an appropriate ServiceError from an HTTP status code.

    Used by the client SDKs to turn remote error bodies back into the
    same taxonomy the services raise.

    Args:
        status: HTTP status code
        message: Error message from the remote service
        context: Additional error context

    Returns:
        Appropriate ServiceError subclass
    """
    ctx = context or ErrorContext()

    error_map: dict[int, type[ServiceError]] = {
        400: ValidationError,
        401: AuthenticationError,
        402: QuotaExceededError,
        403: AuthenticationError,
        404: NotFoundError,
        409: ConflictError,
        413: PayloadTooLargeError,
        429: RateLimitError,
        500: ServiceError,
        502: InvalidResponseError,
        503: UpstreamUnavailableError,
        504: ProviderTimeoutError,
    }

    error_class = error_map.get(status)
    if error_class is None:
        return ServiceError(message, http_status=status, retryable=status >= 500, context=ctx)
    return error_class(message, context=ctx)


def is_retryable(error: Exception) -> bool:
    """
    Check if an error is retryable.

    Args:
        error: Exception to check

    Returns:
        True if the error is retryable
    """
    if isinstance(error, ServiceError):
        return error.retryable

    retryable_types = (
        asyncio.TimeoutError,
        ConnectionError,
        TimeoutError,
    )
    return isinstance(error, retryable_types)


__all__ = [
    # Base
    "ErrorCode",
    "ErrorContext",
    "ServiceError",
    # Validation errors
    "ValidationError",
    "InvalidKeyError",
    "InvalidSchemaError",
    "InvalidRequestError",
    "PayloadTooLargeError",
    # Store errors
    "NotFoundError",
    "ConflictError",
    # Upstream errors
    "UpstreamUnavailableError",
    "StoreUnavailableError",
    "ProviderError",
    "RateLimitError",
    "AuthenticationError",
    "QuotaExceededError",
    "ModelNotFoundError",
    "ProviderUnavailableError",
    "ProviderTimeoutError",
    "InvalidResponseError",
    "SchemaValidationFailure",
    # Link errors
    "LinkError",
    "LinkExpiredError",
    "LinkInvalidSignatureError",
    "MalformedLinkError",
    # Config errors
    "ConfigError",
    "MissingAPIKeyError",
    # Utilities
    "error_from_status",
    "is_retryable",
]
