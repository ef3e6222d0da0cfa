"""
Tests for the KeyStore service.
"""

import asyncio

import pytest

from askai_kvs.config import StoreConfig
from askai_kvs.errors import (
    ConflictError,
    InvalidKeyError,
    NotFoundError,
    PayloadTooLargeError,
    StoreUnavailableError,
)
from askai_kvs.hooks import HookManager
from askai_kvs.store import KeyStore, MemoryStoreBackend, Record, merge_values
from askai_kvs.store.base import BaseStoreBackend


class CheckThenWriteBackend(MemoryStoreBackend):
    """Memory backend that pretends to lack an atomic insert."""

    supports_conditional_insert = False

    async def insert_if_absent(self, record):
        raise AssertionError("insert_if_absent must not be used")


class CountingBackend(MemoryStoreBackend):
    def __init__(self):
        super().__init__()
        self.calls = 0

    async def read(self, key):
        self.calls += 1
        return await super().read(key)

    async def write(self, record):
        self.calls += 1
        await super().write(record)


class BrokenBackend(BaseStoreBackend):
    name = "memory"

    async def read(self, key):
        raise ConnectionError("connection refused")

    async def write(self, record):
        raise ConnectionError("connection refused")

    async def delete(self, key):
        raise ConnectionError("connection refused")


class SlowBackend(MemoryStoreBackend):
    async def read(self, key):
        await asyncio.sleep(1)
        return None


class TestMergeValues:
    def test_mappings_merge_shallowly(self):
        assert merge_values({"a": 1, "n": {"x": 1}}, {"b": 2, "n": {"y": 2}}) == {"a": 1, "b": 2, "n": {"y": 2}}

    @pytest.mark.parametrize(
        "current, patch",
        [
            ([1, 2], [3]),
            ({"a": 1}, [1]),
            ("text", {"a": 1}),
            ({"a": 1}, None),
        ],
    )
    def test_non_mappings_replace(self, current, patch):
        assert merge_values(current, patch) == patch


class TestReadWrite:
    """get/put/delete semantics."""

    @pytest.mark.asyncio
    async def test_put_then_get(self, store, fixed_clock):
        record = await store.put("user:1", {"name": "Ada"})

        assert record.updated_at == fixed_clock()
        assert record.version == "v0"
        assert await store.get("user:1") == {"name": "Ada"}

    @pytest.mark.asyncio
    async def test_put_replaces(self, store):
        await store.put("k", {"a": 1})
        await store.put("k", [1, 2, 3])
        assert await store.get("k") == [1, 2, 3]

    @pytest.mark.asyncio
    async def test_get_missing(self, store):
        with pytest.raises(NotFoundError) as exc_info:
            await store.get("missing")
        assert exc_info.value.key == "missing"

    @pytest.mark.asyncio
    async def test_get_record(self, store):
        await store.put("k", 1)
        record = await store.get_record("k")
        assert isinstance(record, Record)
        assert record.to_dict()["pk"] == "k"

    @pytest.mark.asyncio
    async def test_stored_value_is_isolated_from_caller(self, store):
        value = {"items": [1]}
        await store.put("k", value)
        value["items"].append(2)
        assert await store.get("k") == {"items": [1]}

    @pytest.mark.asyncio
    async def test_delete_is_idempotent(self, store):
        await store.put("k", 1)
        await store.delete("k")
        await store.delete("k")
        assert await store.exists("k") is False

    @pytest.mark.asyncio
    async def test_get_many_skips_missing(self, store):
        await store.put("a", 1)
        await store.put("b", 2)
        assert await store.get_many(["a", "b", "c", "a"]) == {"a": 1, "b": 2}

    @pytest.mark.asyncio
    async def test_scalar_and_null_values(self, store):
        await store.put("n", None)
        await store.put("s", "text")
        assert await store.get("n") is None
        assert await store.exists("n") is True
        assert await store.get("s") == "text"


class TestCreate:
    """create never overwrites."""

    @pytest.mark.asyncio
    async def test_create_new_key(self, store):
        await store.create("k", {"a": 1})
        assert await store.get("k") == {"a": 1}

    @pytest.mark.asyncio
    async def test_create_existing_conflicts_without_mutation(self, store):
        await store.put("k", {"a": 1})
        with pytest.raises(ConflictError):
            await store.create("k", {"a": 2})
        assert await store.get("k") == {"a": 1}

    @pytest.mark.asyncio
    async def test_check_then_write_path(self, quiet_logger):
        store = KeyStore(CheckThenWriteBackend(), logger=quiet_logger)
        await store.create("k", {"a": 1})
        with pytest.raises(ConflictError):
            await store.create("k", {"a": 2})
        assert await store.get("k") == {"a": 1}

    @pytest.mark.asyncio
    async def test_concurrent_creates_have_one_winner(self, store):
        results = await asyncio.gather(
            *(store.create("race", {"n": i}) for i in range(5)),
            return_exceptions=True,
        )
        winners = [r for r in results if isinstance(r, Record)]
        assert len(winners) == 1
        assert sum(isinstance(r, ConflictError) for r in results) == 4
        assert await store.get("race") == winners[0].value


class TestPatch:
    @pytest.mark.asyncio
    async def test_merges_mappings(self, store):
        await store.put("k", {"a": 1, "b": 1})
        record = await store.patch("k", {"b": 2, "c": 3})
        assert record.value == {"a": 1, "b": 2, "c": 3}
        assert await store.get("k") == {"a": 1, "b": 2, "c": 3}

    @pytest.mark.asyncio
    async def test_replaces_non_mappings(self, store):
        await store.put("k", [1, 2])
        await store.patch("k", {"a": 1})
        assert await store.get("k") == {"a": 1}

    @pytest.mark.asyncio
    async def test_missing_key(self, store):
        with pytest.raises(NotFoundError):
            await store.patch("missing", {"a": 1})
        assert await store.exists("missing") is False


class TestValidationBeforeBackend:
    """Invalid input never reaches the backend."""

    @pytest.mark.asyncio
    async def test_invalid_key(self, quiet_logger):
        backend = CountingBackend()
        store = KeyStore(backend, logger=quiet_logger)
        for op in (store.get, store.delete, store.exists):
            with pytest.raises(InvalidKeyError):
                await op("bad key")
        with pytest.raises(InvalidKeyError):
            await store.put("bad/key", 1)
        assert backend.calls == 0

    @pytest.mark.asyncio
    async def test_payload_too_large(self, quiet_logger):
        backend = CountingBackend()
        store = KeyStore(backend, StoreConfig(max_payload_bytes=16), logger=quiet_logger)

        with pytest.raises(PayloadTooLargeError):
            await store.put("k", "x" * 100)
        with pytest.raises(PayloadTooLargeError):
            await store.create("k", "x" * 100)
        with pytest.raises(PayloadTooLargeError):
            await store.patch("k", {"x": "y" * 100})
        assert backend.calls == 0


class TestBackendFailures:
    @pytest.mark.asyncio
    async def test_errors_become_store_unavailable(self, quiet_logger, metrics):
        store = KeyStore(BrokenBackend(), hooks=HookManager([metrics]), logger=quiet_logger)

        with pytest.raises(StoreUnavailableError) as exc_info:
            await store.get("k")

        assert isinstance(exc_info.value.cause, ConnectionError)
        assert exc_info.value.retryable is True
        assert metrics.counters["store.error"] == 1

    @pytest.mark.asyncio
    async def test_timeout(self, quiet_logger):
        store = KeyStore(SlowBackend(), StoreConfig(timeout=0.01), logger=quiet_logger)
        with pytest.raises(StoreUnavailableError, match="timed out"):
            await store.get("k")


class TestHooksAndLifecycle:
    @pytest.mark.asyncio
    async def test_operations_emit_events(self, store, metrics):
        await store.put("k", 1)
        await store.get("k")
        await store.delete("k")
        assert metrics.events == ["store.put", "store.get", "store.delete"]

    @pytest.mark.asyncio
    async def test_async_context_manager(self, quiet_logger):
        async with KeyStore(MemoryStoreBackend(), logger=quiet_logger) as store:
            await store.put("k", 1)
            assert store.config.backend == "memory"
