"""
tests/test_leaderboard.py — Journey Leaderboards & Rank
========================================================
"""

from __future__ import annotations

import asyncio
from dataclasses import replace

import pytest

from cairn.constants import journey_key, leaderboard_cache_key
from cairn.errors import ValidationError
from cairn.services import leaderboard_service


def run_async(coro):
    """Run an async coroutine in a new event loop."""
    return asyncio.run(coro)


async def _seed(kv, journey_type: str, user_id: str, streak: int, ttl: int | None = 3600):
    await kv.put(
        journey_key(journey_type, user_id),
        str(streak),
        ttl=ttl,
        metadata={"streak": streak, "lastWrite": 1},
    )


class TestGetLeaderboard:
    def test_ordered_by_streak(self, runtime):
        async def _inner():
            await _seed(runtime.kv, "event", "B", 30)
            await _seed(runtime.kv, "event", "A", 50)
            board = await leaderboard_service.get_leaderboard(runtime, "event", 10)
            assert board == [{"id": "A", "streak": 50}, {"id": "B", "streak": 30}]
            assert await leaderboard_service.get_rank(runtime, "B", "event") == 2
            assert await leaderboard_service.get_rank(runtime, "A", "event") == 1
        run_async(_inner())

    def test_limit_truncates(self, runtime):
        async def _inner():
            for i, streak in enumerate((5, 9, 1, 7)):
                await _seed(runtime.kv, "article", f"u{i}", streak)
            board = await leaderboard_service.get_leaderboard(runtime, "article", 2)
            assert [e["streak"] for e in board] == [9, 7]
        run_async(_inner())

    def test_capped_at_top_k(self, runtime):
        runtime.cfg = replace(runtime.cfg, leaderboard_size=3)

        async def _inner():
            for i in range(5):
                await _seed(runtime.kv, "article", f"u{i}", i + 1)
            board = await leaderboard_service.get_leaderboard(runtime, "article", 100)
            assert [e["id"] for e in board] == ["u4", "u3", "u2"]
        run_async(_inner())

    def test_ties_ordered_by_id(self, runtime):
        async def _inner():
            await _seed(runtime.kv, "prompt", "zed", 4)
            await _seed(runtime.kv, "prompt", "amy", 4)
            board = await leaderboard_service.get_leaderboard(runtime, "prompt", 10)
            assert [e["id"] for e in board] == ["amy", "zed"]
        run_async(_inner())

    def test_excludes_other_types_and_expired(self, runtime, clock):
        async def _inner():
            await _seed(runtime.kv, "event", "a", 3, ttl=10)
            await _seed(runtime.kv, "article", "b", 8)
            clock.advance(11)
            assert await leaderboard_service.get_leaderboard(runtime, "event", 10) == []
        run_async(_inner())

    def test_pages_through_many_records(self, runtime):
        runtime.cfg = replace(runtime.cfg, migration_page_size=2)

        async def _inner():
            for i in range(7):
                await _seed(runtime.kv, "event", f"u{i}", 10 + i)
            board = await leaderboard_service.get_leaderboard(runtime, "event", 10)
            assert len(board) == 7
            assert board[0] == {"id": "u6", "streak": 16}
        run_async(_inner())

    def test_legacy_and_canonical_deduped(self, runtime):
        async def _inner():
            await _seed(runtime.kv, "event", "0000009", 12)
            await _seed(runtime.kv, "event", "9", 3)
            board = await leaderboard_service.get_leaderboard(runtime, "event", 10)
            assert board == [{"id": "9", "streak": 12}]
        run_async(_inner())

    def test_cached_until_window_passes(self, runtime, clock):
        async def _inner():
            await _seed(runtime.kv, "event", "A", 5, ttl=None)
            first = await leaderboard_service.get_leaderboard(runtime, "event", 10)
            await _seed(runtime.kv, "event", "B", 9, ttl=None)
            assert await leaderboard_service.get_leaderboard(runtime, "event", 10) == first
            assert await runtime.kv.get(leaderboard_cache_key("event")) is not None
            clock.advance(runtime.cfg.leaderboard_cache_seconds + 1)
            fresh = await leaderboard_service.get_leaderboard(runtime, "event", 10)
            assert [e["id"] for e in fresh] == ["B", "A"]
        run_async(_inner())

    @pytest.mark.parametrize("limit", [0, -1])
    def test_invalid_limit(self, runtime, limit):
        with pytest.raises(ValidationError):
            run_async(leaderboard_service.get_leaderboard(runtime, "event", limit))

    def test_invalid_type(self, runtime):
        with pytest.raises(ValidationError):
            run_async(leaderboard_service.get_leaderboard(runtime, "nope", 10))


class TestGetRank:
    def test_zero_streak_is_unranked(self, runtime):
        assert run_async(leaderboard_service.get_rank(runtime, "1", "event")) == 0

    def test_zero_streak_skips_scan(self, runtime):
        async def _inner():
            await leaderboard_service.get_rank(runtime, "1", "event")
            assert await runtime.kv.get(leaderboard_cache_key("event")) is None
        run_async(_inner())

    def test_outside_full_top_k(self, runtime):
        runtime.cfg = replace(runtime.cfg, leaderboard_size=2)

        async def _inner():
            await _seed(runtime.kv, "event", "a", 10)
            await _seed(runtime.kv, "event", "b", 8)
            await _seed(runtime.kv, "event", "c", 2)
            assert await leaderboard_service.get_rank(runtime, "c", "event") == 0
        run_async(_inner())

    def test_stale_cache_reports_unranked(self, runtime):
        runtime.cfg = replace(runtime.cfg, leaderboard_size=2)

        async def _inner():
            await _seed(runtime.kv, "event", "a", 10)
            await _seed(runtime.kv, "event", "b", 8)
            await leaderboard_service.get_leaderboard(runtime, "event", 2)
            await _seed(runtime.kv, "event", "c", 20)
            assert await leaderboard_service.get_rank(runtime, "c", "event") == 0
        run_async(_inner())

    def test_legacy_id_matches_canonical_entry(self, runtime):
        async def _inner():
            await _seed(runtime.kv, "article", "5", 4)
            assert await leaderboard_service.get_rank(runtime, "0000005", "article") == 1
        run_async(_inner())
