"""
Provider configuration classes.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field


@dataclass
class ProviderConfig:
    """Configuration for the text-generation provider."""

    # API settings
    api_key: str | None = None
    base_url: str | None = None
    organization: str | None = None

    # Request settings
    timeout: float = 60.0

    # Model defaults
    default_model: str = "gpt-4-turbo"
    default_temperature: float = 0.7
    default_max_tokens: int = 500

    def __post_init__(self):
        """Validate configuration after initialization."""
        if self.timeout <= 0:
            raise ValueError("timeout must be positive")
        if not self.default_model:
            raise ValueError("default_model is required")
        if self.default_temperature < 0:
            raise ValueError("default_temperature cannot be negative")
        if self.default_max_tokens <= 0:
            raise ValueError("default_max_tokens must be positive")


@dataclass
class OpenAIConfig(ProviderConfig):
    """OpenAI-specific configuration."""

    api_key: str | None = field(default_factory=lambda: os.getenv("OPENAI_API_KEY"))


__all__ = ["ProviderConfig", "OpenAIConfig"]
