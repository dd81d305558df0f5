"""
cairn.services.leaderboard_service — Journey Leaderboards
==========================================================

A leaderboard is derived from every live ``journey:{type}:*`` record:
users with a positive streak, ordered by streak descending (ties by
user id), truncated to the top-K.  The full top-K list is cached under
``leaderboard:{type}`` for a freshness window and sliced per request,
so it may lag the journey records by up to that window.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from cairn.constants import JOURNEY_PREFIX, leaderboard_cache_key
from cairn.engine.cache import try_cache
from cairn.engine.identity import canonical_user_id, normalize_id
from cairn.errors import ValidationError
from cairn.services.journey_service import get_journey, parse_journey_type, streak_from_record

if TYPE_CHECKING:
    from cairn.database.models import JourneyType
    from cairn.runtime import Runtime

logger = logging.getLogger(__name__)


async def _scan_streaks(rt: Runtime, journey_type: JourneyType) -> list[dict[str, Any]]:
    """Page through every journey record of *journey_type*.

    A user present under both a legacy and a canonical key mid-migration
    keeps the larger of the two streaks.
    """
    prefix = f"{JOURNEY_PREFIX}{journey_type}:"
    best: dict[str, int] = {}
    cursor: str | None = None

    while True:
        page = await rt.kv.list(prefix, cursor=cursor, limit=rt.cfg.migration_page_size)
        for info in page.keys:
            user_id = normalize_id(info.name[len(prefix):])
            streak = (info.metadata or {}).get("streak")
            if not isinstance(streak, int) or isinstance(streak, bool):
                streak, _ = streak_from_record(await rt.kv.get_with_metadata(info.name))
            if streak > 0 and streak > best.get(user_id, 0):
                best[user_id] = streak
        if page.complete or not page.cursor:
            break
        cursor = page.cursor

    ranked = sorted(best.items(), key=lambda item: (-item[1], item[0]))
    return [{"id": uid, "streak": streak} for uid, streak in ranked[: rt.cfg.leaderboard_size]]


async def _top_entries(rt: Runtime, journey_type: JourneyType) -> list[dict[str, Any]]:
    return await try_cache(
        rt.cache_kv,
        leaderboard_cache_key(journey_type),
        lambda: _scan_streaks(rt, journey_type),
        rt.cfg.leaderboard_cache_seconds,
    )


async def get_leaderboard(rt: Runtime, journey_type: str, limit: int) -> list[dict[str, Any]]:
    """Top ``min(limit, K)`` entries of ``{"id", "streak"}``, best first."""
    jt = parse_journey_type(journey_type)
    if isinstance(limit, bool) or not isinstance(limit, int) or limit < 1:
        raise ValidationError(f"Leaderboard limit must be a positive integer, got {limit!r}")
    entries = await _top_entries(rt, jt)
    return entries[: min(limit, rt.cfg.leaderboard_size)]


async def get_rank(rt: Runtime, user_id: str, journey_type: str) -> int:
    """1-based rank of *user_id*, or 0 when unranked.

    Zero streak is unranked without a scan.  A user missing from a full
    cached list whose streak would still make the cut means the cache is
    stale for them; that is also reported as 0 rather than guessed.
    """
    jt = parse_journey_type(journey_type)
    canonical = canonical_user_id(user_id)

    streak, _ = await get_journey(rt.kv, user_id, jt)
    if streak <= 0:
        return 0

    entries = await _top_entries(rt, jt)
    for position, entry in enumerate(entries, start=1):
        if entry.get("id") == canonical:
            return position

    if len(entries) >= rt.cfg.leaderboard_size and streak >= entries[-1].get("streak", 0):
        logger.debug(
            "Leaderboard cache for %s is stale for user %s (streak %d); reporting unranked",
            jt, canonical, streak,
        )
    return 0
