"""
tests/test_identity.py — Identifier Canonicalization & Lazy Migration
======================================================================
"""

from __future__ import annotations

import asyncio

import pytest

from cairn.constants import points_key
from cairn.engine.identity import (
    canonical_user_id,
    is_legacy_id,
    migrate_key,
    normalize_id,
    read_with_fallback,
    validate_id,
)
from cairn.errors import ValidationError


def run_async(coro):
    """Run an async coroutine in a new event loop."""
    return asyncio.run(coro)


# ---------------------------------------------------------------------------
# normalize_id / is_legacy_id
# ---------------------------------------------------------------------------
class TestNormalizeId:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("000000123", "123"),
            ("123", "123"),
            ("0000", "0"),
            ("0", "0"),
            ("007", "7"),
            ("abc", "abc"),
            ("00abc", "00abc"),
            ("12a", "12a"),
            ("-12", "-12"),
            ("", ""),
            ("0000000000000000000000000000000000042", "42"),
        ],
    )
    def test_normalize(self, raw, expected):
        assert normalize_id(raw) == expected

    @pytest.mark.parametrize(
        "raw",
        ["000000123", "123", "0", "abc", "0000", "00x", "user_1", "99999999999999999999"],
    )
    def test_idempotent(self, raw):
        assert normalize_id(normalize_id(raw)) == normalize_id(raw)

    def test_non_numeric_unchanged(self):
        for raw in ("alice", "a-b-c", "ONLINE", "1.5"):
            assert normalize_id(raw) == raw


class TestIsLegacyId:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("000001", True),
            ("00000123", True),
            ("0000000000", True),
            ("0001", False),
            ("007", False),
            ("123", False),
            ("00000abc", False),
            ("abc", False),
        ],
    )
    def test_detection(self, raw, expected):
        assert is_legacy_id(raw) is expected


class TestValidateId:
    def test_accepts_plain_ids(self):
        assert validate_id("user_42") == "user_42"

    @pytest.mark.parametrize("raw", ["", "a:b", "a b", "tab\there", "x" * 129])
    def test_rejects_malformed(self, raw):
        with pytest.raises(ValidationError):
            validate_id(raw)

    def test_canonical_user_id_normalizes(self):
        assert canonical_user_id("0000000042") == "42"

    def test_canonical_user_id_validates_first(self):
        with pytest.raises(ValidationError):
            canonical_user_id("00:12")


# ---------------------------------------------------------------------------
# migrate_key / read_with_fallback
# ---------------------------------------------------------------------------
class TestMigrateKey:
    def test_moves_value_and_metadata(self, kv):
        async def _inner():
            await kv.put("old", "v", metadata={"a": 1})
            assert await migrate_key(kv, "old", "new") is True
            assert await kv.get("old") is None
            record = await kv.get_with_metadata("new")
            assert record.value == "v"
            assert record.metadata == {"a": 1}
        run_async(_inner())

    def test_missing_old_key_is_noop(self, kv):
        async def _inner():
            assert await migrate_key(kv, "old", "new") is False
            assert await kv.get("new") is None
        run_async(_inner())

    def test_same_key_is_noop(self, kv):
        async def _inner():
            await kv.put("k", "v")
            assert await migrate_key(kv, "k", "k") is False
            assert await kv.get("k") == "v"
        run_async(_inner())

    def test_rerun_after_interrupted_copy(self, kv):
        """Both keys present with identical content: re-run drops the old key."""
        async def _inner():
            await kv.put("old", "v")
            await kv.put("new", "v")
            assert await migrate_key(kv, "old", "new") is True
            assert await kv.get("old") is None
            assert await kv.get("new") == "v"
            assert await migrate_key(kv, "old", "new") is False
        run_async(_inner())

    def test_existing_target_wins(self, kv):
        async def _inner():
            await kv.put("old", "stale")
            await kv.put("new", "fresh", metadata={"total": 1})
            assert await migrate_key(kv, "old", "new") is True
            assert await kv.get("old") is None
            record = await kv.get_with_metadata("new")
            assert record.value == "fresh"
            assert record.metadata == {"total": 1}
        run_async(_inner())

    def test_preserves_remaining_ttl(self, kv, clock):
        async def _inner():
            await kv.put("old", "v", ttl=100)
            clock.advance(40)
            await migrate_key(kv, "old", "new")
            record = await kv.get_with_metadata("new")
            assert record.expiration == pytest.approx(clock.now + 60)
            clock.advance(61)
            assert await kv.get("new") is None
        run_async(_inner())


class TestReadWithFallback:
    def test_canonical_hit(self, kv):
        async def _inner():
            await kv.put(points_key("42"), "10")
            record = await read_with_fallback(kv, "0000042", points_key)
            assert record.value == "10"
        run_async(_inner())

    def test_legacy_hit_migrates(self, kv):
        async def _inner():
            await kv.put(points_key("0000042"), "10")
            record = await read_with_fallback(kv, "0000042", points_key)
            assert record.value == "10"
            assert await kv.get(points_key("42")) == "10"
            assert await kv.get(points_key("0000042")) is None
        run_async(_inner())

    def test_canonical_preferred_over_legacy(self, kv):
        async def _inner():
            await kv.put(points_key("42"), "new")
            await kv.put(points_key("0000042"), "old")
            record = await read_with_fallback(kv, "0000042", points_key)
            assert record.value == "new"
        run_async(_inner())

    def test_non_legacy_miss_skips_legacy_read(self, kv):
        async def _inner():
            await kv.put(points_key("007"), "stale")
            record = await read_with_fallback(kv, "007", points_key)
            assert record.value is None
            assert await kv.get(points_key("007")) == "stale"
        run_async(_inner())
