"""
Validation utilities for askai-kvs.

Uses jsonschema for caller-supplied result schemas and plain checks for
keys, payload sizes and generation request bounds. Everything here runs
before any backend or provider is touched.
"""

from __future__ import annotations

import json
import math
import re
from dataclasses import dataclass, field
from typing import Any

from jsonschema import Draft202012Validator
from jsonschema.exceptions import SchemaError
from jsonschema.exceptions import ValidationError as JsonSchemaValidationError
from referencing import Registry
from referencing.exceptions import Unresolvable
from referencing.jsonschema import DRAFT202012

from .errors import InvalidKeyError, InvalidRequestError, InvalidSchemaError, PayloadTooLargeError, ValidationError

KEY_PATTERN = re.compile(r"^[A-Za-z0-9:_\-.]+$")
MAX_KEY_LENGTH = 512
DEFAULT_MAX_PAYLOAD_BYTES = 256 * 1024

# Keywords whose values are instance data, not subschemas
_DATA_KEYWORDS = frozenset({"const", "default", "enum", "examples"})
# Keywords whose values map arbitrary names to subschemas
_NAMED_SUBSCHEMAS = frozenset({"properties", "patternProperties", "$defs", "definitions", "dependentSchemas"})


@dataclass
class ValidationResult:
    valid: bool
    errors: list[str] = field(default_factory=list)

    @classmethod
    def ok(cls) -> ValidationResult:
        return cls(valid=True)

    @classmethod
    def error(cls, error: str) -> ValidationResult:
        return cls(valid=False, errors=[error])

    def __bool__(self) -> bool:
        return self.valid

    def raise_if_invalid(self) -> None:
        if not self.valid:
            raise ValidationError(f"Validation failed: {'; '.join(self.errors)}")


# =============================================================================
# Keys and payloads
# =============================================================================


def validate_key(key: Any) -> str:
    """
    Check a record key against the allow-list.

    Keys are 1-512 characters drawn from letters, digits, ``:``, ``_``,
    ``-`` and ``.``.

    Returns:
        The key unchanged.

    Raises:
        InvalidKeyError: If the key is not a string or breaks the rules.
    """
    if not isinstance(key, str) or not key:
        raise InvalidKeyError("Invalid key", key=key if isinstance(key, str) else None)
    if len(key) > MAX_KEY_LENGTH:
        raise InvalidKeyError(f"Invalid key: length {len(key)} > {MAX_KEY_LENGTH}", key=key)
    if not KEY_PATTERN.fullmatch(key):
        raise InvalidKeyError("Invalid key", key=key)
    return key


def payload_size(value: Any) -> int:
    """Size in bytes of ``value`` as compact UTF-8 JSON."""
    try:
        encoded = json.dumps(value, separators=(",", ":"), ensure_ascii=False, allow_nan=False)
    except (TypeError, ValueError) as e:
        raise ValidationError(f"Value is not JSON serializable: {e}", cause=e) from e
    return len(encoded.encode("utf-8"))


def validate_payload_size(value: Any, max_bytes: int = DEFAULT_MAX_PAYLOAD_BYTES) -> int:
    """Reject ``value`` when its serialized size exceeds ``max_bytes``."""
    size = payload_size(value)
    if size > max_bytes:
        raise PayloadTooLargeError(
            f"Payload of {size} bytes exceeds limit of {max_bytes} bytes",
            max_bytes=max_bytes,
            actual_bytes=size,
        )
    return size


# =============================================================================
# JSON schema
# =============================================================================


def validate_json_schema(schema: Any) -> ValidationResult:
    """Validate that a dict is a valid JSON schema."""
    if not isinstance(schema, dict):
        return ValidationResult.error("Invalid JSON schema: must be an object")
    try:
        Draft202012Validator.check_schema(schema)
        return ValidationResult.ok()
    except SchemaError as e:
        return ValidationResult.error(f"Invalid JSON schema: {e.message}")


def validate_schema_refs(schema: dict[str, Any]) -> ValidationResult:
    """
    Resolve every ``$ref`` in ``schema`` against the schema itself.

    ``check_schema`` only looks at the shape of each keyword, so a reference
    to a missing ``$defs`` entry passes it and only fails once validation
    reaches that branch. Nothing is fetched over the network: references
    must resolve inside the document.
    """
    errors: list[str] = []

    def walk(node: Any, resolver: Any) -> None:
        if isinstance(node, dict):
            if node is not schema and isinstance(node.get("$id"), str):
                resolver = resolver.in_subresource(DRAFT202012.create_resource(node))
            ref = node.get("$ref")
            if isinstance(ref, str):
                try:
                    resolver.lookup(ref)
                except (Unresolvable, LookupError, TypeError, ValueError):
                    errors.append(f"Invalid JSON schema: unresolvable $ref '{ref}'")
            for keyword, value in node.items():
                if keyword in _NAMED_SUBSCHEMAS and isinstance(value, dict):
                    for subschema in value.values():
                        walk(subschema, resolver)
                elif keyword not in _DATA_KEYWORDS:
                    walk(value, resolver)
        elif isinstance(node, list):
            for item in node:
                walk(item, resolver)

    walk(schema, Registry().resolver_with_root(DRAFT202012.create_resource(schema)))
    if errors:
        return ValidationResult(valid=False, errors=errors)
    return ValidationResult.ok()


def require_json_schema(schema: Any) -> dict[str, Any]:
    result = validate_json_schema(schema)
    if result.valid:
        result = validate_schema_refs(schema)
    if not result.valid:
        raise InvalidSchemaError("; ".join(result.errors))
    return schema


def validate_against_schema(data: Any, schema: dict[str, Any]) -> ValidationResult:
    """Validate data against a JSON schema, collecting every error."""
    validator = Draft202012Validator(schema)
    try:
        errors = sorted(validator.iter_errors(data), key=lambda e: list(e.path))
    except Unresolvable as e:
        return ValidationResult.error(f"Validation error: unresolvable reference ({e})")
    if not errors:
        return ValidationResult.ok()
    return ValidationResult(valid=False, errors=[_format_error(e) for e in errors])


def _format_error(error: JsonSchemaValidationError) -> str:
    path = ".".join(str(p) for p in error.path)
    if path:
        return f"Validation failed at '{path}': {error.message}"
    return f"Validation error: {error.message}"


# =============================================================================
# Generation requests
# =============================================================================


@dataclass(frozen=True)
class RequestLimits:
    """Bounds applied to generation requests before they go upstream."""

    max_system_prompt_chars: int = 10_000
    max_input_chars: int = 50_000
    max_tokens_limit: int = 4_000
    max_model_chars: int = 100


def validate_text_field(name: str, value: Any, max_chars: int) -> str:
    if not isinstance(value, str):
        raise InvalidRequestError(f"{name} must be a string")
    if not value:
        raise InvalidRequestError(f"{name} must not be empty")
    if len(value) > max_chars:
        raise InvalidRequestError(f"{name} exceeds {max_chars} characters")
    return value


def validate_max_tokens(value: Any, limit: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidRequestError("maxTokens must be an integer")
    if not 1 <= value <= limit:
        raise InvalidRequestError(f"maxTokens must be between 1 and {limit}")
    return value


def validate_temperature(value: Any) -> float:
    """Temperatures only need to be finite and non-negative; range is clamped per model later."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidRequestError("temperature must be a number")
    if not math.isfinite(value) or value < 0:
        raise InvalidRequestError("temperature must be a finite, non-negative number")
    return float(value)


__all__ = [
    "KEY_PATTERN",
    "MAX_KEY_LENGTH",
    "DEFAULT_MAX_PAYLOAD_BYTES",
    "ValidationResult",
    "RequestLimits",
    "validate_key",
    "payload_size",
    "validate_payload_size",
    "validate_json_schema",
    "validate_schema_refs",
    "require_json_schema",
    "validate_against_schema",
    "validate_text_field",
    "validate_max_tokens",
    "validate_temperature",
]
