"""
PostgreSQL store backend.

SQL is kept in this module. The table holds one row per key with a fixed
version marker in the sort-key column:

    pk TEXT, sk TEXT, value JSONB, updated_at TIMESTAMPTZ, PRIMARY KEY (pk, sk)
"""

from __future__ import annotations

import asyncio
import json
import re
from typing import Any

import asyncpg

from ..config.store import PostgresStoreConfig
from .base import VERSION_MARKER, BaseStoreBackend, Record


def _sanitize_table_name(name: str) -> str:
    """Ensure the table name is safe for SQL interpolation."""
    if not name:
        raise ValueError("table name cannot be empty")
    if not re.fullmatch(r"[a-zA-Z_][a-zA-Z0-9_]*", name):
        raise ValueError(f"Invalid table name: {name!r}")
    return name


class PostgresStoreBackend(BaseStoreBackend):
    """Durable store on an asyncpg pool with a native insert-if-absent."""

    name = "postgres"
    supports_conditional_insert = True

    def __init__(self, config: PostgresStoreConfig, *, pool: asyncpg.Pool | None = None) -> None:
        self.config = config
        self.table = _sanitize_table_name(config.table)
        self._pool = pool
        self._owns_pool = pool is None
        self._table_ready = False
        self._lock = asyncio.Lock()

    async def ensure_ready(self) -> None:
        async with self._lock:
            if self._pool is None:
                self._pool = await asyncpg.create_pool(
                    dsn=self.config.pg_dsn,
                    min_size=self.config.pool_min_size,
                    max_size=self.config.pool_max_size,
                )
            if self._table_ready:
                return
            ddl = f'''
            CREATE TABLE IF NOT EXISTS "{self.table}" (
              pk         TEXT NOT NULL,
              sk         TEXT NOT NULL,
              value      JSONB NOT NULL,
              updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
              PRIMARY KEY (pk, sk)
            )
            '''
            async with self._pool.acquire() as conn:
                await conn.execute(ddl)
            self._table_ready = True

    async def close(self) -> None:
        if self._pool is not None and self._owns_pool:
            await self._pool.close()
            self._pool = None
        self._table_ready = False

    async def _get_pool(self) -> asyncpg.Pool:
        if self._pool is None or not self._table_ready:
            await self.ensure_ready()
        assert self._pool is not None
        return self._pool

    @staticmethod
    def _row_to_record(row: Any) -> Record:
        return Record(
            key=row["pk"],
            value=json.loads(row["value"]),
            updated_at=row["updated_at"],
            version=row["sk"],
        )

    async def read(self, key: str) -> Record | None:
        pool = await self._get_pool()
        q = f'''SELECT pk, sk, value::text AS value, updated_at FROM "{self.table}" WHERE pk = $1 AND sk = $2'''
        async with pool.acquire() as conn:
            row = await conn.fetchrow(q, key, VERSION_MARKER)
        return self._row_to_record(row) if row is not None else None

    async def write(self, record: Record) -> None:
        pool = await self._get_pool()
        q = f'''
        INSERT INTO "{self.table}" (pk, sk, value, updated_at)
        VALUES ($1, $2, $3::jsonb, $4)
        ON CONFLICT (pk, sk)
        DO UPDATE SET
          value = EXCLUDED.value,
          updated_at = EXCLUDED.updated_at
        '''
        async with pool.acquire() as conn:
            await conn.execute(q, record.key, record.version, json.dumps(record.value), record.updated_at)

    async def insert_if_absent(self, record: Record) -> bool:
        pool = await self._get_pool()
        q = f'''
        INSERT INTO "{self.table}" (pk, sk, value, updated_at)
        VALUES ($1, $2, $3::jsonb, $4)
        ON CONFLICT (pk, sk) DO NOTHING
        RETURNING pk
        '''
        async with pool.acquire() as conn:
            inserted = await conn.fetchval(q, record.key, record.version, json.dumps(record.value), record.updated_at)
        return inserted is not None

    async def delete(self, key: str) -> None:
        pool = await self._get_pool()
        q = f'''DELETE FROM "{self.table}" WHERE pk = $1 AND sk = $2'''
        async with pool.acquire() as conn:
            await conn.execute(q, key, VERSION_MARKER)


__all__ = ["PostgresStoreBackend"]
