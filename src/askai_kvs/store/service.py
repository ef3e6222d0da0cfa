"""
Key store service.

Per-key document operations with explicit existence rules:

- ``get``: NotFoundError if absent
- ``put``: unconditional create-or-replace
- ``create``: ConflictError if present, never touching the stored value
- ``patch``: NotFoundError if absent; shallow merge when both sides are
  mappings, replace otherwise
- ``delete``: idempotent

Keys and payload sizes are validated before the backend is touched.
Backend failures surface as StoreUnavailableError and are never retried
here; ``get``/``put``/``delete`` are safe for callers to retry, ``create``
and ``patch`` are not.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Iterable
from datetime import datetime
from typing import Any, TypeVar

from ..config.store import StoreConfig
from ..errors import ConflictError, ErrorContext, NotFoundError, ServiceError, StoreUnavailableError
from ..hooks import HookManager
from ..logging import StoreOperationLog, StructuredLogger, get_logger, timed
from ..validation import validate_key, validate_payload_size
from .base import BaseStoreBackend, Record, StoreBackend, utcnow

T = TypeVar("T")


def merge_values(current: Any, patch: Any) -> Any:
    """Shallow merge with ``patch`` winning when both are mappings; otherwise ``patch`` replaces."""
    if isinstance(current, dict) and isinstance(patch, dict):
        return {**current, **patch}
    return patch


class KeyStore:
    """
    Service over a StoreBackend.

    Example:
        ```python
        store = KeyStore(MemoryStoreBackend())
        await store.put("user:123", {"name": "Ada"})
        await store.patch("user:123", {"score": 10})
        value = await store.get("user:123")
        ```
    """

    def __init__(
        self,
        backend: StoreBackend | BaseStoreBackend,
        config: StoreConfig | None = None,
        *,
        hooks: HookManager | None = None,
        logger: StructuredLogger | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.backend = backend
        self.config = config or StoreConfig(backend=backend.name)
        self.hooks = hooks or HookManager()
        self.logger = logger or get_logger()
        self._clock = clock

    @property
    def max_payload_bytes(self) -> int:
        return self.config.max_payload_bytes

    async def _call(
        self,
        operation: str,
        key: str,
        fn: Callable[[], Awaitable[T]],
        *,
        payload_bytes: int | None = None,
    ) -> T:
        """Run one backend call with timeout, error mapping, logging and hooks."""
        entry = StoreOperationLog(
            operation=operation,
            key=key,
            backend=self.backend.name,
            payload_bytes=payload_bytes,
        )
        try:
            with timed() as timer:
                result = await asyncio.wait_for(fn(), timeout=self.config.timeout)
        except ServiceError:
            raise
        except asyncio.TimeoutError as e:
            entry.success = False
            entry.error = "timeout"
            self.logger.log_store_operation(entry)
            await self.hooks.emit("store.error", {"operation": operation, "key": key, "error": "timeout"})
            raise StoreUnavailableError(
                f"Store {operation} timed out after {self.config.timeout}s",
                context=ErrorContext(key=key, operation=operation),
                cause=e,
            ) from e
        except Exception as e:
            entry.success = False
            entry.error = str(e)
            self.logger.log_store_operation(entry)
            await self.hooks.emit("store.error", {"operation": operation, "key": key, "error": str(e)})
            raise StoreUnavailableError(
                f"Store {operation} failed: {e}",
                context=ErrorContext(key=key, operation=operation),
                cause=e,
            ) from e

        entry.duration_ms = timer.elapsed_ms
        self.logger.log_store_operation(entry)
        await self.hooks.emit(f"store.{operation}", {"key": key, "duration_ms": timer.elapsed_ms})
        return result

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_record(self, key: str) -> Record:
        validate_key(key)
        record = await self._call("get", key, lambda: self.backend.read(key))
        if record is None:
            raise NotFoundError(key=key, context=ErrorContext(key=key, operation="get"))
        return record

    async def get(self, key: str) -> Any:
        """Return the stored value or raise NotFoundError."""
        return (await self.get_record(key)).value

    async def exists(self, key: str) -> bool:
        validate_key(key)
        record = await self._call("exists", key, lambda: self.backend.read(key))
        return record is not None

    async def get_many(self, keys: Iterable[str]) -> dict[str, Any]:
        """Fetch several keys concurrently. Missing keys are left out of the result."""
        unique = list(dict.fromkeys(keys))
        for key in unique:
            validate_key(key)

        async def _read(key: str) -> Record | None:
            return await self._call("get", key, lambda: self.backend.read(key))

        records = await asyncio.gather(*(_read(k) for k in unique))
        return {key: record.value for key, record in zip(unique, records) if record is not None}

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def _validate_write(self, key: str, value: Any) -> int:
        validate_key(key)
        return validate_payload_size(value, self.max_payload_bytes)

    async def put(self, key: str, value: Any) -> Record:
        """Create or replace ``key``."""
        size = self._validate_write(key, value)
        record = Record(key=key, value=value, updated_at=self._clock())
        await self._call("put", key, lambda: self.backend.write(record), payload_bytes=size)
        return record

    async def create(self, key: str, value: Any) -> Record:
        """
        Create ``key`` only if it does not exist.

        Uses the backend's atomic insert-if-absent when it has one. Otherwise
        the existence check and the write are separate calls and a concurrent
        writer can slip in between them.
        """
        size = self._validate_write(key, value)
        record = Record(key=key, value=value, updated_at=self._clock())
        conflict = ConflictError(key=key, context=ErrorContext(key=key, operation="create"))

        if self.backend.supports_conditional_insert:
            inserted = await self._call(
                "create", key, lambda: self.backend.insert_if_absent(record), payload_bytes=size
            )
            if not inserted:
                raise conflict
            return record

        existing = await self._call("get", key, lambda: self.backend.read(key))
        if existing is not None:
            raise conflict
        self.logger.debug("Create without conditional insert, using check-then-write", key=key)
        await self._call("create", key, lambda: self.backend.write(record), payload_bytes=size)
        return record

    async def patch(self, key: str, partial: Any) -> Record:
        """Merge ``partial`` into an existing value, or replace it when either side is not a mapping."""
        size = self._validate_write(key, partial)
        existing = await self._call("get", key, lambda: self.backend.read(key))
        if existing is None:
            raise NotFoundError(key=key, context=ErrorContext(key=key, operation="patch"))
        record = Record(key=key, value=merge_values(existing.value, partial), updated_at=self._clock())
        await self._call("patch", key, lambda: self.backend.write(record), payload_bytes=size)
        return record

    async def delete(self, key: str) -> None:
        """Remove ``key``. Succeeds whether or not it existed."""
        validate_key(key)
        await self._call("delete", key, lambda: self.backend.delete(key))

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def ensure_ready(self) -> None:
        await self._call("ensure_ready", "*", self.backend.ensure_ready)

    async def close(self) -> None:
        await self.backend.close()

    async def __aenter__(self) -> KeyStore:
        await self.ensure_ready()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()


__all__ = ["KeyStore", "merge_values"]
