"""
Tests for key, payload, schema and request validation.
"""

import math

import pytest

from askai_kvs.errors import (
    InvalidKeyError,
    InvalidRequestError,
    InvalidSchemaError,
    PayloadTooLargeError,
    ValidationError,
)
from askai_kvs.generation import GenerationRequest
from askai_kvs.validation import (
    MAX_KEY_LENGTH,
    RequestLimits,
    ValidationResult,
    payload_size,
    require_json_schema,
    validate_against_schema,
    validate_json_schema,
    validate_key,
    validate_payload_size,
    validate_schema_refs,
    validate_temperature,
)


class TestValidateKey:
    """Keys are 1-512 chars of letters, digits, ':', '_', '-' and '.'."""

    @pytest.mark.parametrize("key", ["a", "user:123", "report_2024-01.v2", "A-Z.0-9:_"])
    def test_valid_keys(self, key):
        assert validate_key(key) == key

    def test_max_length_is_accepted(self):
        key = "k" * MAX_KEY_LENGTH
        assert validate_key(key) == key

    @pytest.mark.parametrize("key", ["", "has space", "slash/key", "quote'", "ünïcode", "trailing\n", None, 42])
    def test_invalid_keys(self, key):
        with pytest.raises(InvalidKeyError):
            validate_key(key)

    def test_too_long(self):
        with pytest.raises(InvalidKeyError) as exc_info:
            validate_key("k" * (MAX_KEY_LENGTH + 1))
        assert "length" in exc_info.value.message


class TestPayloadSize:
    def test_compact_utf8_size(self):
        assert payload_size({"a": 1}) == len('{"a":1}')
        assert payload_size("é") == len('"é"'.encode("utf-8"))

    def test_limit_is_inclusive(self):
        value = "x" * 8  # 10 bytes with quotes
        assert validate_payload_size(value, max_bytes=10) == 10
        with pytest.raises(PayloadTooLargeError) as exc_info:
            validate_payload_size(value, max_bytes=9)
        assert exc_info.value.max_bytes == 9
        assert exc_info.value.actual_bytes == 10

    def test_non_serializable(self):
        with pytest.raises(ValidationError):
            payload_size({"x": object()})

    def test_nan_rejected(self):
        with pytest.raises(ValidationError):
            payload_size({"x": math.nan})


class TestJsonSchema:
    def test_valid_schema(self):
        assert validate_json_schema({"type": "object"}).valid

    def test_schema_must_be_object(self):
        result = validate_json_schema(["not", "a", "schema"])
        assert not result.valid
        assert "must be an object" in result.errors[0]

    def test_invalid_schema_raises(self):
        with pytest.raises(InvalidSchemaError):
            require_json_schema({"type": "no-such-type"})

    @pytest.mark.parametrize(
        "schema",
        [
            {"$ref": "#/$defs/missing"},
            {"properties": {"x": {"$ref": "#/$defs/missing"}}},
            {"items": {"anyOf": [{"type": "null"}, {"$ref": "#/$defs/gone"}]}},
            {"properties": {"enum": {"$ref": "#/$defs/missing"}}},
            {"$ref": "#nowhere"},
            {"$ref": "https://example.com/remote.json"},
        ],
    )
    def test_unresolvable_refs_are_rejected(self, schema):
        assert validate_json_schema(schema).valid
        assert not validate_schema_refs(schema).valid
        with pytest.raises(InvalidSchemaError, match="unresolvable"):
            require_json_schema(schema)

    def test_resolvable_refs(self):
        schema = {
            "$defs": {"mood": {"enum": ["happy", "sad"]}},
            "properties": {"mood": {"$ref": "#/$defs/mood"}},
            "enum": [{"$ref": "not a schema, just data"}],
        }
        assert validate_schema_refs(schema).valid

    def test_nested_id_scopes_refs(self):
        schema = {
            "$id": "https://example.com/root.json",
            "properties": {
                "child": {
                    "$id": "child.json",
                    "$defs": {"n": {"type": "integer"}},
                    "$ref": "#/$defs/n",
                },
            },
        }
        assert validate_schema_refs(schema).valid

    def test_unresolvable_ref_is_an_invalid_result(self):
        schema = {"properties": {"x": {"$ref": "#/$defs/missing"}}}
        assert validate_against_schema({}, schema).valid
        result = validate_against_schema({"x": 1}, schema)
        assert not result.valid
        assert "unresolvable" in result.errors[0]

    def test_collects_all_errors_with_paths(self, mood_schema):
        result = validate_against_schema({"mood": "angry", "score": 11}, mood_schema)

        assert not result.valid
        assert len(result.errors) == 2
        assert any("'mood'" in e for e in result.errors)
        assert any("'score'" in e for e in result.errors)

    def test_root_error_has_no_path(self):
        result = validate_against_schema("text", {"type": "object"})
        assert result.errors[0].startswith("Validation error:")


class TestValidationResult:
    def test_raise_if_invalid(self):
        ValidationResult.ok().raise_if_invalid()
        with pytest.raises(ValidationError):
            ValidationResult.error("bad").raise_if_invalid()


class TestGenerationRequest:
    """Bounds on generation requests."""

    def test_from_dict_reads_wire_names(self):
        request = GenerationRequest.from_dict(
            {"systemPrompt": "sys", "input": "hi", "maxTokens": 100, "temperature": 0.3, "model": "gpt-4o"}
        )
        assert request.system_prompt == "sys"
        assert request.max_tokens == 100
        assert request.to_dict()["maxTokens"] == 100

    @pytest.mark.parametrize("data", [{"input": "hi"}, {"systemPrompt": "sys"}, {"systemPrompt": "", "input": "hi"}])
    def test_required_fields(self, data):
        with pytest.raises(InvalidRequestError) as exc_info:
            GenerationRequest.from_dict(data)
        assert exc_info.value.message == "systemPrompt and input are required"

    def test_body_must_be_object(self):
        with pytest.raises(InvalidRequestError):
            GenerationRequest.from_dict(["systemPrompt"])

    def test_limits(self):
        limits = RequestLimits()
        GenerationRequest("s" * 10_000, "i" * 50_000, max_tokens=4_000, model="m" * 100).validate(limits)

        with pytest.raises(InvalidRequestError):
            GenerationRequest("s" * 10_001, "i").validate(limits)
        with pytest.raises(InvalidRequestError):
            GenerationRequest("s", "i" * 50_001).validate(limits)
        with pytest.raises(InvalidRequestError):
            GenerationRequest("s", "i", model="m" * 101).validate(limits)

    @pytest.mark.parametrize("max_tokens", [0, 4_001, -1, 1.5, True])
    def test_max_tokens_bounds(self, max_tokens):
        with pytest.raises(InvalidRequestError):
            GenerationRequest("s", "i", max_tokens=max_tokens).validate()

    def test_temperature_is_not_range_checked(self):
        request = GenerationRequest("s", "i", temperature=5).validate()
        assert request.temperature == 5.0

    @pytest.mark.parametrize("value", [-0.1, math.inf, math.nan, "0.5", None])
    def test_bad_temperature(self, value):
        with pytest.raises(InvalidRequestError):
            validate_temperature(value)
