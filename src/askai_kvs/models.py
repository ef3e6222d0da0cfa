"""
Per-model capability table.

Which request parameters a model accepts is looked up by exact model id
in a table, never inferred from name prefixes. The built-in table covers
the OpenAI chat models the gateway is deployed against; deployments add
or override entries through ``Settings.models``.
"""

from __future__ import annotations

import math
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, replace
from typing import Any

from .config.base import TokenParameter


@dataclass(frozen=True)
class ModelCapabilities:
    """What one model accepts for temperature and output-length parameters."""

    supports_temperature: bool = True
    temperature_range: tuple[float, float] = (0.0, 2.0)
    # Value the provider applies when custom temperatures are rejected
    fixed_temperature: float | None = None
    token_parameter: TokenParameter = "max_tokens"
    reasoning_effort: str | None = None
    max_output_tokens: int | None = None

    def __post_init__(self):
        low, high = self.temperature_range
        if low < 0 or high < low:
            raise ValueError(f"Invalid temperature_range: {self.temperature_range}")
        if not self.supports_temperature and self.fixed_temperature is None:
            raise ValueError("fixed_temperature is required when supports_temperature is False")
        if self.token_parameter not in ("max_tokens", "max_completion_tokens"):
            raise ValueError(f"Invalid token_parameter: {self.token_parameter}")
        if self.max_output_tokens is not None and self.max_output_tokens <= 0:
            raise ValueError("max_output_tokens must be positive")

    def resolve_temperature(self, requested: float | None, default: float) -> float:
        """
        Temperature to send upstream.

        Models that reject custom values always get ``fixed_temperature``.
        Everything else gets the requested value (or ``default``) clamped
        into ``temperature_range``.
        """
        if not self.supports_temperature:
            return float(self.fixed_temperature)  # type: ignore[arg-type]
        value = default if requested is None else requested
        if not math.isfinite(value):
            value = default
        low, high = self.temperature_range
        return min(max(float(value), low), high)

    def resolve_max_tokens(self, requested: int) -> int:
        if self.max_output_tokens is not None:
            return min(requested, self.max_output_tokens)
        return requested

    def token_params(self, max_tokens: int) -> dict[str, Any]:
        """Output-length and reasoning parameters for a chat-completions call."""
        params: dict[str, Any] = {self.token_parameter: self.resolve_max_tokens(max_tokens)}
        if self.reasoning_effort is not None:
            params["reasoning_effort"] = self.reasoning_effort
        return params

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], base: ModelCapabilities | None = None) -> ModelCapabilities:
        """Build capabilities from config, starting from ``base`` when overriding an entry."""
        fields = dict(data)
        if "temperature_range" in fields:
            fields["temperature_range"] = tuple(fields["temperature_range"])
        if base is not None:
            return replace(base, **fields)
        return cls(**fields)


STANDARD = ModelCapabilities()

REASONING = ModelCapabilities(
    supports_temperature=False,
    fixed_temperature=1.0,
    token_parameter="max_completion_tokens",
    reasoning_effort="minimal",
)

DEFAULT_CAPABILITIES: dict[str, ModelCapabilities] = {
    "gpt-4-turbo": STANDARD,
    "gpt-4o": STANDARD,
    "gpt-4o-mini": STANDARD,
    "gpt-4.1": STANDARD,
    "gpt-4.1-mini": STANDARD,
    "gpt-5": REASONING,
    "gpt-5-mini": REASONING,
    "gpt-5-nano": REASONING,
    "gpt-5.1": REASONING,
    "gpt-5.2": replace(REASONING, reasoning_effort="none"),
    "o3-mini": REASONING,
    "o4-mini": REASONING,
}


def normalize_model_id(model: str) -> str:
    return model.strip().lower()


class CapabilityTable:
    """
    Exact-match lookup of ModelCapabilities by model id.

    Unknown ids resolve to ``default``.
    """

    def __init__(
        self,
        entries: Mapping[str, ModelCapabilities] | None = None,
        default: ModelCapabilities = STANDARD,
    ) -> None:
        source = DEFAULT_CAPABILITIES if entries is None else entries
        self._entries = {normalize_model_id(k): v for k, v in source.items()}
        self.default = default

    def get(self, model: str) -> ModelCapabilities:
        return self._entries.get(normalize_model_id(model), self.default)

    def register(self, model: str, capabilities: ModelCapabilities) -> None:
        self._entries[normalize_model_id(model)] = capabilities

    def __contains__(self, model: object) -> bool:
        return isinstance(model, str) and normalize_model_id(model) in self._entries

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    @classmethod
    def from_config(
        cls,
        overrides: Mapping[str, Mapping[str, Any]] | None = None,
        *,
        include_defaults: bool = True,
    ) -> CapabilityTable:
        """
        Build a table from ``Settings.models``.

        Overrides for a known model are applied on top of its built-in entry;
        new models start from the standard capabilities. The special key
        ``"default"`` replaces the fallback used for unknown models.
        """
        table = cls(DEFAULT_CAPABILITIES if include_defaults else {})
        for name, data in (overrides or {}).items():
            if name == "default":
                table.default = ModelCapabilities.from_dict(data, base=table.default)
                continue
            base = table._entries.get(normalize_model_id(name))
            table.register(name, ModelCapabilities.from_dict(data, base=base))
        return table


__all__ = [
    "ModelCapabilities",
    "CapabilityTable",
    "DEFAULT_CAPABILITIES",
    "STANDARD",
    "REASONING",
    "normalize_model_id",
]
