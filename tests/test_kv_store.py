"""
tests/test_kv_store.py — SqlKVStore Contract Tests
===================================================

Runs the KV contract against in-memory SQLite: metadata round-trips,
TTL expiry driven by a fake clock, prefix listing with cursors.
"""

from __future__ import annotations

import asyncio

import pytest

from cairn.errors import ValidationError


def run_async(coro):
    """Run an async coroutine in a new event loop."""
    return asyncio.run(coro)


class TestGetPutDelete:
    def test_missing_key(self, kv):
        async def _inner():
            assert await kv.get("nope") is None
            record = await kv.get_with_metadata("nope")
            assert record.value is None
            assert record.metadata is None
        run_async(_inner())

    def test_overwrite_replaces_value_and_metadata(self, kv):
        async def _inner():
            await kv.put("k", "1", metadata={"a": 1})
            await kv.put("k", "2")
            record = await kv.get_with_metadata("k")
            assert record.value == "2"
            assert record.metadata is None
        run_async(_inner())

    def test_delete_is_idempotent(self, kv):
        async def _inner():
            await kv.put("k", "v")
            await kv.delete("k")
            await kv.delete("k")
            assert await kv.get("k") is None
        run_async(_inner())

    def test_empty_key_rejected(self, kv):
        with pytest.raises(ValidationError):
            run_async(kv.put("", "v"))

    def test_non_positive_ttl_rejected(self, kv):
        with pytest.raises(ValidationError):
            run_async(kv.put("k", "v", ttl=0))


class TestExpiry:
    def test_entry_expires(self, kv, clock):
        async def _inner():
            await kv.put("k", "v", ttl=10)
            clock.advance(9)
            assert await kv.get("k") == "v"
            clock.advance(2)
            assert await kv.get("k") is None
        run_async(_inner())

    def test_put_refreshes_ttl(self, kv, clock):
        async def _inner():
            await kv.put("k", "v", ttl=10)
            clock.advance(8)
            await kv.put("k", "v2", ttl=10)
            clock.advance(8)
            assert await kv.get("k") == "v2"
        run_async(_inner())

    def test_expired_rows_hidden_from_list(self, kv, clock):
        async def _inner():
            await kv.put("p:a", "1", ttl=5)
            await kv.put("p:b", "2")
            clock.advance(6)
            page = await kv.list("p:")
            assert [k.name for k in page.keys] == ["p:b"]
        run_async(_inner())

    def test_purge_expired(self, kv, clock):
        async def _inner():
            await kv.put("a", "1", ttl=5)
            await kv.put("b", "1", ttl=5)
            await kv.put("c", "1")
            clock.advance(6)
            assert await kv.purge_expired(batch_size=1) == 2
            assert await kv.purge_expired() == 0
            assert await kv.get("c") == "1"
        run_async(_inner())


class TestList:
    def test_prefix_filter_and_metadata(self, kv):
        async def _inner():
            await kv.put("journey:article:1", "3", metadata={"streak": 3})
            await kv.put("journey:event:1", "1")
            await kv.put("other", "x")
            page = await kv.list("journey:article:")
            assert page.complete is True
            assert [(k.name, k.metadata) for k in page.keys] == [
                ("journey:article:1", {"streak": 3}),
            ]
        run_async(_inner())

    def test_prefix_wildcards_are_literal(self, kv):
        async def _inner():
            await kv.put("a_b", "1")
            await kv.put("axb", "1")
            page = await kv.list("a_")
            assert [k.name for k in page.keys] == ["a_b"]
        run_async(_inner())

    def test_cursor_pagination(self, kv):
        async def _inner():
            for i in range(5):
                await kv.put(f"p:{i}", str(i))
            seen = []
            cursor = None
            pages = 0
            while True:
                page = await kv.list("p:", cursor=cursor, limit=2)
                pages += 1
                seen.extend(k.name for k in page.keys)
                if page.complete:
                    break
                cursor = page.cursor
            assert seen == [f"p:{i}" for i in range(5)]
            assert pages == 3
        run_async(_inner())

    def test_invalid_limit(self, kv):
        with pytest.raises(ValidationError):
            run_async(kv.list("p:", limit=0))
