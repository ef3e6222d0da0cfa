"""
Tests for the per-model capability table.
"""

import pytest

from askai_kvs.models import (
    DEFAULT_CAPABILITIES,
    REASONING,
    STANDARD,
    CapabilityTable,
    ModelCapabilities,
)


class TestModelCapabilities:
    """Temperature and token parameter resolution."""

    def test_requested_value_is_used(self):
        assert STANDARD.resolve_temperature(0.3, default=0.7) == 0.3

    def test_default_when_not_requested(self):
        assert STANDARD.resolve_temperature(None, default=0.7) == 0.7

    def test_out_of_range_is_clamped(self):
        caps = ModelCapabilities(temperature_range=(0.0, 1.0))
        assert caps.resolve_temperature(1.7, default=0.7) == 1.0
        assert STANDARD.resolve_temperature(5.0, default=0.7) == 2.0

    def test_fixed_temperature_models_ignore_requests(self):
        assert REASONING.resolve_temperature(0.2, default=0.7) == 1.0
        assert REASONING.resolve_temperature(None, default=0.7) == 1.0

    def test_token_params(self):
        assert STANDARD.token_params(500) == {"max_tokens": 500}
        assert REASONING.token_params(500) == {"max_completion_tokens": 500, "reasoning_effort": "minimal"}

    def test_max_output_tokens_caps_request(self):
        caps = ModelCapabilities(max_output_tokens=256)
        assert caps.token_params(1000) == {"max_tokens": 256}

    def test_fixed_temperature_required_when_unsupported(self):
        with pytest.raises(ValueError):
            ModelCapabilities(supports_temperature=False)

    def test_invalid_range(self):
        with pytest.raises(ValueError):
            ModelCapabilities(temperature_range=(1.0, 0.5))

    def test_invalid_token_parameter(self):
        with pytest.raises(ValueError):
            ModelCapabilities(token_parameter="max_output")

    def test_from_dict_overrides_base(self):
        caps = ModelCapabilities.from_dict({"temperature_range": [0, 1]}, base=REASONING)
        assert caps.temperature_range == (0, 1)
        assert caps.token_parameter == "max_completion_tokens"


class TestCapabilityTable:
    """Exact-id lookup, never prefix matching."""

    def test_known_models(self):
        table = CapabilityTable()
        assert table.get("gpt-4-turbo") is STANDARD
        assert table.get("gpt-5-mini") is REASONING

    def test_lookup_is_normalized(self):
        assert CapabilityTable().get("  GPT-5-Mini ") is REASONING

    def test_unknown_model_gets_default(self):
        table = CapabilityTable()
        assert table.get("gpt-5-turbo-preview") is STANDARD
        assert "gpt-5-turbo-preview" not in table

    def test_custom_default(self):
        table = CapabilityTable({}, default=REASONING)
        assert table.get("anything") is REASONING
        assert len(table) == 0

    def test_register(self):
        table = CapabilityTable({})
        table.register("My-Model", REASONING)
        assert "my-model" in table
        assert list(table) == ["my-model"]

    def test_from_config_merges_over_builtins(self):
        table = CapabilityTable.from_config(
            {
                "gpt-5": {"reasoning_effort": "low"},
                "local-llm": {"temperature_range": [0, 1]},
                "default": {"token_parameter": "max_completion_tokens"},
            }
        )

        assert table.get("gpt-5").reasoning_effort == "low"
        assert table.get("gpt-5").supports_temperature is False
        assert table.get("local-llm").resolve_temperature(1.5, default=0.7) == 1.0
        assert table.default.token_parameter == "max_completion_tokens"
        assert len(table) == len(DEFAULT_CAPABILITIES) + 1

    def test_from_config_without_defaults(self):
        table = CapabilityTable.from_config({"x": {}}, include_defaults=False)
        assert list(table) == ["x"]
