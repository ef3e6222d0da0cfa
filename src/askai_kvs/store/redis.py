"""
Redis store backend.
"""

from __future__ import annotations

import json

import redis.asyncio as redis_lib

from ..config.store import RedisStoreConfig
from .base import VERSION_MARKER, BaseStoreBackend, Record


class RedisStoreBackend(BaseStoreBackend):
    """One JSON document per key. ``SET NX`` gives the conditional insert."""

    name = "redis"
    supports_conditional_insert = True

    def __init__(self, config: RedisStoreConfig, *, client: redis_lib.Redis | None = None) -> None:
        self.config = config
        self._redis = client
        self._owns_client = client is None

    async def ensure_ready(self) -> None:
        if self._redis is None:
            self._redis = redis_lib.from_url(self.config.redis_url, decode_responses=False)
        await self._redis.ping()

    async def close(self) -> None:
        if self._redis is not None and self._owns_client:
            await self._redis.aclose()
            self._redis = None

    def _rk(self, key: str) -> str:
        return f"{self.config.key_prefix}:{key}:{VERSION_MARKER}"

    def _client(self) -> redis_lib.Redis:
        if self._redis is None:
            self._redis = redis_lib.from_url(self.config.redis_url, decode_responses=False)
        return self._redis

    @staticmethod
    def _encode(record: Record) -> bytes:
        return json.dumps(record.to_dict(), separators=(",", ":"), ensure_ascii=False).encode("utf-8")

    async def read(self, key: str) -> Record | None:
        data = await self._client().get(self._rk(key))
        if data is None:
            return None
        if isinstance(data, bytes):
            data = data.decode("utf-8")
        return Record.from_dict(json.loads(data))

    async def write(self, record: Record) -> None:
        await self._client().set(self._rk(record.key), self._encode(record))

    async def insert_if_absent(self, record: Record) -> bool:
        created = await self._client().set(self._rk(record.key), self._encode(record), nx=True)
        return bool(created)

    async def delete(self, key: str) -> None:
        await self._client().delete(self._rk(key))


__all__ = ["RedisStoreBackend"]
