"""
In-process store backend.
"""

from __future__ import annotations

import asyncio

from .base import BaseStoreBackend, Record


class MemoryStoreBackend(BaseStoreBackend):
    """Dict-backed store for tests and local development. Values are copied in and out."""

    name = "memory"
    supports_conditional_insert = True

    def __init__(self) -> None:
        self._records: dict[str, Record] = {}
        self._lock = asyncio.Lock()

    async def read(self, key: str) -> Record | None:
        record = self._records.get(key)
        return record.copy() if record is not None else None

    async def write(self, record: Record) -> None:
        async with self._lock:
            self._records[record.key] = record.copy()

    async def insert_if_absent(self, record: Record) -> bool:
        async with self._lock:
            if record.key in self._records:
                return False
            self._records[record.key] = record.copy()
            return True

    async def delete(self, key: str) -> None:
        async with self._lock:
            self._records.pop(key, None)

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, key: object) -> bool:
        return key in self._records


__all__ = ["MemoryStoreBackend"]
