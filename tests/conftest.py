"""
Shared test fixtures and fakes for askai-kvs tests.

This module provides:
- A scripted fake provider that returns queued outputs
- Key store fixtures over the in-memory backend
- A fixed clock
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

import pytest

from askai_kvs.config import GatewayConfig, LinkConfig, LoggingConfig, ProviderConfig, Settings, StoreConfig
from askai_kvs.gateway import ValidatedGenerationGateway
from askai_kvs.hooks import HookManager, InMemoryMetricsHook
from askai_kvs.logging import StructuredLogger
from askai_kvs.models import CapabilityTable
from askai_kvs.providers.base import BaseProvider
from askai_kvs.providers.types import CompletionResult, Message, Usage, normalize_messages
from askai_kvs.store import KeyStore, MemoryStoreBackend

FIXED_NOW = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


# =============================================================================
# Mock Response Factories
# =============================================================================


def make_completion_result(
    content: str = "Test response",
    usage: Usage | None = None,
    model: str = "gpt-4-turbo",
    finish_reason: str = "stop",
) -> CompletionResult:
    """Create a mock CompletionResult."""
    return CompletionResult(
        content=content,
        usage=usage or Usage(input_tokens=10, output_tokens=20, total_tokens=30),
        model=model,
        finish_reason=finish_reason,
    )


# =============================================================================
# Scripted Provider
# =============================================================================


@dataclass
class ProviderCall:
    messages: list[Message]
    model: str
    temperature: float | None
    max_tokens: int | None

    @property
    def system_prompt(self) -> str:
        return next((m.content for m in self.messages if m.role.value == "system"), "")


class ScriptedProvider(BaseProvider):
    """
    Provider returning queued outputs in order.

    Each queued item is either a string (returned as content) or an
    exception instance (raised).
    """

    name = "scripted"

    def __init__(self, outputs: list[str | Exception] | None = None) -> None:
        self.outputs: list[str | Exception] = list(outputs or [])
        self.calls: list[ProviderCall] = []
        self.closed = False

    def queue(self, *outputs: str | Exception) -> None:
        self.outputs.extend(outputs)

    async def complete(
        self,
        messages: Any,
        *,
        model: str,
        temperature: float | None = None,
        max_tokens: int | None = None,
        **kwargs: Any,
    ) -> CompletionResult:
        self.calls.append(
            ProviderCall(
                messages=normalize_messages(messages),
                model=model,
                temperature=temperature,
                max_tokens=max_tokens,
            )
        )
        if not self.outputs:
            raise AssertionError("ScriptedProvider has no queued output")
        item = self.outputs.pop(0)
        if isinstance(item, Exception):
            raise item
        return make_completion_result(content=item, model=model)

    async def close(self) -> None:
        self.closed = True


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def quiet_logger() -> StructuredLogger:
    return StructuredLogger("askai_kvs.tests", level="CRITICAL", json_output=False)


@pytest.fixture
def fixed_clock() -> Callable[[], datetime]:
    return lambda: FIXED_NOW


@pytest.fixture
def metrics() -> InMemoryMetricsHook:
    return InMemoryMetricsHook()


@pytest.fixture
def memory_backend() -> MemoryStoreBackend:
    return MemoryStoreBackend()


@pytest.fixture
def store(memory_backend, metrics, quiet_logger, fixed_clock) -> KeyStore:
    return KeyStore(
        memory_backend,
        StoreConfig(max_payload_bytes=1024),
        hooks=HookManager([metrics]),
        logger=quiet_logger,
        clock=fixed_clock,
    )


@pytest.fixture
def provider() -> ScriptedProvider:
    return ScriptedProvider()


@pytest.fixture
def gateway(provider, metrics, quiet_logger) -> ValidatedGenerationGateway:
    return ValidatedGenerationGateway(
        provider,
        capabilities=CapabilityTable(),
        config=GatewayConfig(retry_temperature=0.2),
        defaults=ProviderConfig(default_model="gpt-4-turbo", default_temperature=0.7, default_max_tokens=500),
        hooks=HookManager([metrics]),
        logger=quiet_logger,
    )


@pytest.fixture
def mood_schema() -> dict[str, Any]:
    return {
        "type": "object",
        "properties": {
            "mood": {"type": "string", "enum": ["happy", "sad", "neutral"]},
            "score": {"type": "integer", "minimum": 0, "maximum": 10},
        },
        "required": ["mood", "score"],
        "additionalProperties": False,
    }


@pytest.fixture
def app_settings() -> Settings:
    return Settings(
        store=StoreConfig(max_payload_bytes=1024),
        links=LinkConfig(secret="test-link-secret"),
        logging=LoggingConfig(level="CRITICAL"),
    )
