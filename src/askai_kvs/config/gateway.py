"""
Generation gateway and capability link configuration.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field


@dataclass
class GatewayConfig:
    """Configuration for the validated generation gateway."""

    # Temperature ceiling for the stricter second attempt
    retry_temperature: float = 0.2

    # Request bounds
    max_system_prompt_chars: int = 10_000
    max_input_chars: int = 50_000
    max_tokens_limit: int = 4_000
    max_model_chars: int = 100

    # Per-attempt timeout; None defers to the provider client
    attempt_timeout: float | None = None

    def __post_init__(self):
        """Validate configuration after initialization."""
        if self.retry_temperature < 0:
            raise ValueError("retry_temperature cannot be negative")
        for name in ("max_system_prompt_chars", "max_input_chars", "max_tokens_limit", "max_model_chars"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive")
        if self.attempt_timeout is not None and self.attempt_timeout <= 0:
            raise ValueError("attempt_timeout must be positive")


@dataclass
class LinkConfig:
    """Configuration for capability links."""

    secret: str | None = field(default_factory=lambda: os.getenv("LINK_SECRET"))
    default_ttl_seconds: int = 3600
    base_url: str | None = None

    def __post_init__(self):
        """Validate configuration after initialization."""
        if self.default_ttl_seconds <= 0:
            raise ValueError("default_ttl_seconds must be positive")
        if self.base_url and not self.base_url.startswith(("http://", "https://")):
            raise ValueError("base_url must be a valid HTTP(S) URL")


__all__ = ["GatewayConfig", "LinkConfig"]
