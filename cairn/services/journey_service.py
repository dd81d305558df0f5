"""
cairn.services.journey_service — Journey Streaks
=================================================

A journey is a per-user, per-type streak counter stored at
``journey:{type}:{userId}`` with an inactivity TTL.  Every increment
refreshes the TTL; if none happens within the window the store purges
the record, which reads back as a streak of zero.

Increments schedule best-effort rewards on the runtime's task runner:
a flat award for the increment itself and, when the user ranks within
the leaderboard's top-K afterwards, a bonus that shrinks with rank.

The activity journey (``journey:activities:{userId}``) is a separate,
non-expiring set of activity ids a user has completed.
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING

from cairn.constants import activities_key, capitalize_fully, journey_key, now_ms
from cairn.database.models import JourneyType
from cairn.engine.identity import canonical_user_id, is_legacy_id, normalize_id, read_with_fallback, validate_id
from cairn.errors import ValidationError

if TYPE_CHECKING:
    from cairn.database.kv import KVRecord, KVStore
    from cairn.runtime import Runtime

logger = logging.getLogger(__name__)


def parse_journey_type(raw: str) -> JourneyType:
    try:
        return JourneyType(str(raw).lower())
    except ValueError:
        raise ValidationError(f"Invalid journey type: {raw!r}") from None


def streak_from_record(record: KVRecord) -> tuple[int, int]:
    """``(streak, last_write)`` from a journey record; ``(0, 0)`` if absent."""
    if record.value is None:
        return 0, 0
    metadata = record.metadata or {}
    streak = metadata.get("streak")
    if not isinstance(streak, int) or isinstance(streak, bool):
        try:
            streak = int(record.value)
        except ValueError:
            logger.warning("Journey record holds a non-numeric streak %r", record.value)
            streak = 0
    last_write = metadata.get("lastWrite")
    if not isinstance(last_write, int) or isinstance(last_write, bool):
        last_write = 0
    return max(0, streak), last_write


def bonus_for_rank(rank: int, *, bonus_max: int, bonus_min: int) -> int:
    """Leaderboard bonus: ``bonus_max - rank`` clamped to ``[bonus_min, bonus_max]``."""
    return min(bonus_max, max(bonus_min, bonus_max - rank))


# ---------------------------------------------------------------------------
# Streaks
# ---------------------------------------------------------------------------
async def get_journey(kv: KVStore, user_id: str, journey_type: str) -> tuple[int, int]:
    jt = parse_journey_type(journey_type)
    canonical_user_id(user_id)
    record = await read_with_fallback(kv, user_id, lambda uid: journey_key(jt, uid))
    return streak_from_record(record)


async def increment_journey(rt: Runtime, user_id: str, journey_type: str) -> int:
    """Add one to the streak and refresh its expiry.  Returns the new streak.

    Elapsed time since the last write is ignored; only the storage TTL
    resets a streak.
    """
    jt = parse_journey_type(journey_type)
    canonical = canonical_user_id(user_id)

    current, _ = await get_journey(rt.kv, user_id, jt)
    streak = current + 1
    await rt.kv.put(
        journey_key(jt, canonical),
        str(streak),
        ttl=rt.cfg.journey_ttl_seconds,
        metadata={"lastWrite": now_ms(), "streak": streak},
    )
    logger.info("Journey %s for user %s incremented to %d", jt, canonical, streak)

    rt.tasks.schedule(
        _reward_increment(rt, canonical, jt),
        name=f"journey-reward:{jt}:{canonical}",
    )
    return streak


async def _reward_increment(rt: Runtime, user_id: str, journey_type: JourneyType) -> None:
    from cairn.services import leaderboard_service  # avoid circular import
    from cairn.services.badge_service import award_points

    label = f"{capitalize_fully(journey_type.value)} Journey"
    await award_points(rt, user_id, rt.cfg.journey_increment_points, label)

    rank = await leaderboard_service.get_rank(rt, user_id, journey_type)
    if not 0 < rank <= rt.cfg.leaderboard_size:
        return
    bonus = bonus_for_rank(
        rank, bonus_max=rt.cfg.leaderboard_bonus_max, bonus_min=rt.cfg.leaderboard_bonus_min,
    )
    await award_points(rt, user_id, bonus, f"{label} Leaderboard Bonus (Rank #{rank})")


async def reset_journey(kv: KVStore, user_id: str, journey_type: str) -> None:
    jt = parse_journey_type(journey_type)
    canonical = canonical_user_id(user_id)
    await kv.delete(journey_key(jt, canonical))
    if is_legacy_id(user_id):
        await kv.delete(journey_key(jt, user_id))
    logger.info("Journey %s for user %s reset", jt, canonical)


# ---------------------------------------------------------------------------
# Activity journey
# ---------------------------------------------------------------------------
async def get_activities(kv: KVStore, user_id: str) -> list[str]:
    canonical_user_id(user_id)
    record = await read_with_fallback(kv, user_id, activities_key)
    if record.value is None:
        return []
    try:
        raw = json.loads(record.value)
    except json.JSONDecodeError:
        logger.warning("Activity journey for user %s is undecodable; treating as empty", user_id)
        return []
    return [item for item in raw if isinstance(item, str)] if isinstance(raw, list) else []


async def add_activity(kv: KVStore, user_id: str, activity_id: str) -> list[str]:
    """Record *activity_id* once.  Returns the full activity list."""
    canonical = canonical_user_id(user_id)
    activity = normalize_id(validate_id(activity_id, label="activity id"))

    activities = await get_activities(kv, user_id)
    if activity not in activities:
        activities.append(activity)
        await kv.put(activities_key(canonical), json.dumps(activities))
    return activities
