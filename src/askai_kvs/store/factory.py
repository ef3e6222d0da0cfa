"""
Store backend factory.
"""

from __future__ import annotations

from ..config.store import FSStoreConfig, PostgresStoreConfig, RedisStoreConfig, StoreConfig
from .base import BaseStoreBackend
from .fs import FSStoreBackend
from .memory import MemoryStoreBackend


def build_store_backend(config: StoreConfig) -> BaseStoreBackend:
    """Construct the backend selected by ``config.backend``. Network backends connect lazily."""
    backend = config.backend

    if backend == "memory":
        return MemoryStoreBackend()

    if backend == "fs":
        if not isinstance(config, FSStoreConfig):
            config = FSStoreConfig(max_payload_bytes=config.max_payload_bytes, timeout=config.timeout)
        return FSStoreBackend(config)

    if backend == "postgres":
        from .postgres import PostgresStoreBackend

        if not isinstance(config, PostgresStoreConfig):
            config = PostgresStoreConfig(max_payload_bytes=config.max_payload_bytes, timeout=config.timeout)
        return PostgresStoreBackend(config)

    if backend == "redis":
        from .redis import RedisStoreBackend

        if not isinstance(config, RedisStoreConfig):
            config = RedisStoreConfig(max_payload_bytes=config.max_payload_bytes, timeout=config.timeout)
        return RedisStoreBackend(config)

    raise ValueError(f"Unknown store backend: {backend!r}")


__all__ = ["build_store_backend"]
