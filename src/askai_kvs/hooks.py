"""
Lightweight hooks for observability.

The gateway and key store broadcast events through a HookManager:

- ``generation.attempt`` / ``generation.success`` / ``generation.error``
- ``generation.validation_failed`` (emitted before any retry or fallback)
- ``generation.fallback``
- ``store.<operation>`` and ``store.error``
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any, Protocol

from .logging import StructuredLogger, truncate_for_log


@dataclass
class HookContext:
    """Correlation data passed alongside every event."""

    request_id: str | None = None
    trace_id: str | None = None
    model: str | None = None


class Hook(Protocol):
    """Protocol for observability hooks."""

    async def emit(self, event: str, payload: dict, context: Any) -> None:
        """Emit an event with payload and request context."""
        ...


class HookManager:
    """Manages multiple hooks and broadcasts events to all of them."""

    def __init__(self, hooks: Iterable[Hook] | None = None) -> None:
        self._hooks = list(hooks or [])

    def add(self, hook: Hook) -> None:
        """Add a hook to the manager."""
        self._hooks.append(hook)

    def __len__(self) -> int:
        return len(self._hooks)

    async def emit(self, event: str, payload: dict, context: Any = None) -> None:
        """Emit an event to all registered hooks."""
        for hook in self._hooks:
            result = hook.emit(event, payload, context)
            if asyncio.iscoroutine(result):
                await result


class InMemoryMetricsHook:
    """
    Simple metrics accumulator for tests and local inspection.

    Stores all events as counters and keeps the payloads of validation
    failures, fallbacks and errors.
    """

    def __init__(self) -> None:
        self.counters: dict[str, int] = {}
        self.latencies_ms: list[float] = []
        self.validation_failures: list[dict[str, Any]] = []
        self.fallbacks: int = 0
        self.errors: list[dict[str, Any]] = []
        self.events: list[str] = []

    async def emit(self, event: str, payload: dict, context: Any) -> None:
        self.counters[event] = self.counters.get(event, 0) + 1
        self.events.append(event)

        if event == "generation.success" and "latency_ms" in payload:
            self.latencies_ms.append(float(payload["latency_ms"]))
        elif event == "generation.validation_failed":
            self.validation_failures.append(dict(payload))
        elif event == "generation.fallback":
            self.fallbacks += 1
        elif event.endswith(".error"):
            self.errors.append({"event": event, "payload": payload})

    def snapshot(self) -> dict[str, Any]:
        """Return a snapshot of all collected metrics."""
        return {
            "counters": dict(self.counters),
            "latencies_ms": list(self.latencies_ms),
            "validation_failures": list(self.validation_failures),
            "fallbacks": self.fallbacks,
            "errors": list(self.errors),
        }

    def reset(self) -> dict[str, Any]:
        """Reset metrics and return the previous snapshot."""
        snapshot = self.snapshot()
        self.counters.clear()
        self.latencies_ms.clear()
        self.validation_failures.clear()
        self.fallbacks = 0
        self.errors.clear()
        self.events.clear()
        return snapshot


class LoggingHook:
    """Forwards events to a StructuredLogger."""

    WARN_EVENTS = frozenset({"generation.validation_failed", "generation.fallback"})

    def __init__(self, logger: StructuredLogger) -> None:
        self._logger = logger

    async def emit(self, event: str, payload: dict, context: Any) -> None:
        data = {k: (truncate_for_log(v) if isinstance(v, str) else v) for k, v in payload.items()}
        if context is not None:
            data.setdefault("request_id", getattr(context, "request_id", None))
        if event.endswith(".error"):
            level = logging.ERROR
        elif event in self.WARN_EVENTS:
            level = logging.WARNING
        else:
            level = logging.DEBUG
        self._logger._log(level, event, event_type="hook", data=data)


__all__ = ["Hook", "HookContext", "HookManager", "InMemoryMetricsHook", "LoggingHook"]
