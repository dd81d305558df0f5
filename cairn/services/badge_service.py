"""
cairn.services.badge_service — Badge Grants & Progress Evaluation
==================================================================

Shared service module used by the API and the journey pipeline.
Evaluates progress rules against tracker snapshots, persists grant
records at ``user:badge:{userId}:{badgeId}`` and credits rarity rewards.

Grant semantics:
- A grant record's existence means "granted"; it is only removed by an
  explicit revoke or reset.  Granting an already-granted badge is a
  no-op (timestamp and balance unchanged).
- The grant is the primary fact.  Crediting its reward points is
  best-effort: a failure is logged and never undoes the grant.
- Badges bound to the points-earned tracker do not credit points when
  granted, so point-triggered grants cannot feed themselves.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from cairn.constants import BADGE_PREFIX, badge_key, now_ms
from cairn.database.models import TrackerId
from cairn.engine.badges import BADGES, Badge, badges_for_tracker, get_badge
from cairn.engine.identity import canonical_user_id, is_legacy_id, migrate_key, read_with_fallback
from cairn.engine.progress import ProgressContext, evaluate
from cairn.errors import ValidationError
from cairn.services import points_service, tracker_service
from cairn.services.tracker_service import TrackerValue

if TYPE_CHECKING:
    from cairn.database.kv import KVStore
    from cairn.runtime import Runtime

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class BadgeGrant:
    badge_id: str
    granted_at: int  # epoch ms

    def to_dict(self) -> dict:
        return {"badge_id": self.badge_id, "granted_at": self.granted_at}


# ---------------------------------------------------------------------------
# Grant records
# ---------------------------------------------------------------------------
async def get_grant(kv: KVStore, user_id: str, badge_id: str) -> BadgeGrant | None:
    """Return the grant record for *badge_id*, or None if not granted."""
    get_badge(badge_id)
    canonical_user_id(user_id)
    record = await read_with_fallback(kv, user_id, lambda uid: badge_key(uid, badge_id))
    if record.value is None:
        return None

    granted_at = (record.metadata or {}).get("granted_at")
    if granted_at is None:
        try:
            granted_at = json.loads(record.value).get("granted_at")
        except (json.JSONDecodeError, TypeError, AttributeError):
            granted_at = None
    return BadgeGrant(badge_id, int(granted_at or 0))


async def is_granted(kv: KVStore, user_id: str, badge_id: str) -> bool:
    return await get_grant(kv, user_id, badge_id) is not None


async def _list_badge_ids(kv: KVStore, prefix: str) -> list[str]:
    ids: list[str] = []
    cursor: str | None = None
    while True:
        page = await kv.list(prefix, cursor=cursor)
        ids.extend(key.name[len(prefix):] for key in page.keys)
        if page.complete or not page.cursor:
            return ids
        cursor = page.cursor


async def list_granted(kv: KVStore, user_id: str) -> list[str]:
    """Ids of every badge granted to *user_id*.

    Grants still stored under a legacy zero-padded id are merged in and
    migrated to the canonical key as they are found.
    """
    canonical = canonical_user_id(user_id)
    badge_ids = await _list_badge_ids(kv, f"{BADGE_PREFIX}{canonical}:")

    if is_legacy_id(user_id):
        for badge_id in await _list_badge_ids(kv, f"{BADGE_PREFIX}{user_id}:"):
            if badge_id not in badge_ids:
                badge_ids.append(badge_id)
                await migrate_key(kv, badge_key(user_id, badge_id), badge_key(canonical, badge_id))

    return badge_ids


async def list_not_granted(kv: KVStore, user_id: str) -> list[str]:
    granted = set(await list_granted(kv, user_id))
    return [badge.id for badge in BADGES if badge.id not in granted]


# ---------------------------------------------------------------------------
# Progress
# ---------------------------------------------------------------------------
async def get_progress(
    kv: KVStore,
    user_id: str,
    badge_id: str,
    *,
    created_at: datetime | None = None,
    now: datetime | None = None,
) -> float:
    """Progress of *user_id* toward *badge_id*, in ``[0, 1]``.

    - No progress rule: 1 if granted, else 0.
    - Rule without tracker: evaluated on the caller-supplied context.
    - Rule with tracker: evaluated on the tracker snapshot (numeric total
      or unique string values) plus the caller-supplied context.
    """
    badge = get_badge(badge_id)
    canonical_user_id(user_id)

    if badge.progress is None:
        return 1.0 if await is_granted(kv, user_id, badge_id) else 0.0

    value = None
    if badge.tracker_id is not None:
        entries = await tracker_service.load_tracker(kv, user_id, badge.tracker_id)
        value = tracker_service.tracker_value(entries)

    ctx = ProgressContext(value=value, created_at=created_at, now=now or datetime.now(UTC))
    return evaluate(badge.progress, ctx)


# ---------------------------------------------------------------------------
# Mutations
# ---------------------------------------------------------------------------
async def grant_badge(rt: Runtime, user_id: str, badge_id: str) -> bool:
    """Grant *badge_id*.  Returns False if it was already granted."""
    badge = get_badge(badge_id)
    canonical = canonical_user_id(user_id)

    if await is_granted(rt.kv, user_id, badge_id):
        return False

    granted_at = now_ms()
    await rt.kv.put(
        badge_key(canonical, badge_id),
        json.dumps({"granted_at": granted_at}),
        metadata={"granted_at": granted_at},
    )
    logger.info("Badge granted: %s for user %s", badge_id, canonical)

    if badge.tracker_id == TrackerId.IMPACT_POINTS_EARNED:
        return True

    try:
        await award_points(rt, canonical, badge.reward_points, f"Badge Unlocked: {badge.name}")
    except Exception:
        logger.exception(
            "Error adding impact points for badge grant %s (user %s)", badge_id, canonical,
        )
    return True


async def award_points(rt: Runtime, user_id: str, amount: int, reason: str) -> int:
    """Credit engine-issued points and record them as points-earned progress.

    Badges bound to the points-earned tracker are re-checked afterwards.
    Returns the new balance.
    """
    balance, _ = await points_service.add_points(
        rt.kv, user_id, amount, reason, history_limit=rt.cfg.points_history_limit,
    )
    if amount > 0:
        await tracker_service.add_progress(rt.kv, user_id, TrackerId.IMPACT_POINTS_EARNED, amount)
        await check_and_grant(rt, user_id, TrackerId.IMPACT_POINTS_EARNED)
    return balance


async def revoke_badge(kv: KVStore, user_id: str, badge_id: str) -> None:
    get_badge(badge_id)
    canonical = canonical_user_id(user_id)
    await kv.delete(badge_key(canonical, badge_id))
    if is_legacy_id(user_id):
        await kv.delete(badge_key(user_id, badge_id))
    logger.info("Badge revoked: %s for user %s", badge_id, canonical)


async def reset_badge_progress(kv: KVStore, user_id: str, badge_id: str) -> None:
    """Clear the badge's tracker (if any) and revoke the badge.

    A badge cannot stay granted once its backing tracker is cleared.
    """
    badge = get_badge(badge_id)
    if badge.tracker_id is not None:
        await tracker_service.reset_tracker(kv, user_id, badge.tracker_id)
    await revoke_badge(kv, user_id, badge_id)


async def check_and_grant(
    rt: Runtime,
    user_id: str,
    tracker_id: str,
    *,
    created_at: datetime | None = None,
) -> list[str]:
    """Grant every not-yet-granted badge on *tracker_id* whose progress hit 1.

    Returns the newly granted ids and schedules one notification
    describing them (none when nothing was granted).
    """
    canonical = canonical_user_id(user_id)
    newly_granted: list[str] = []

    for badge in badges_for_tracker(tracker_id):
        if await is_granted(rt.kv, canonical, badge.id):
            continue
        progress = await get_progress(rt.kv, canonical, badge.id, created_at=created_at)
        if progress >= 1 and await grant_badge(rt, canonical, badge.id):
            newly_granted.append(badge.id)

    if newly_granted and rt.notifier is not None:
        title, description = _notification_text([get_badge(b) for b in newly_granted])
        rt.tasks.schedule(
            rt.notifier.send(canonical, title, description, type="success"),
            name=f"notify-badges:{canonical}",
        )
    return newly_granted


def _notification_text(badges: list[Badge]) -> tuple[str, str]:
    if len(badges) == 1:
        return "New Badge Unlocked!", f'You\'ve unlocked the "{badges[0].name}" badge!'
    names = ", ".join(badge.name for badge in badges)
    return "New Badges Unlocked!", f"You've unlocked the following badges: {names}."


# ---------------------------------------------------------------------------
# Progress reporting entry points
# ---------------------------------------------------------------------------
async def track_progress(
    rt: Runtime,
    user_id: str,
    tracker_id: str,
    value: TrackerValue | list[TrackerValue],
    *,
    created_at: datetime | None = None,
) -> list[str]:
    """Merge a progress signal, then grant whatever it unlocked."""
    await tracker_service.add_progress(rt.kv, user_id, tracker_id, value)
    return await check_and_grant(rt, user_id, tracker_id, created_at=created_at)


async def add_badge_progress(
    rt: Runtime,
    user_id: str,
    badge_id: str,
    value: TrackerValue | list[TrackerValue],
) -> list[str]:
    """Report progress toward the tracker bound to *badge_id*."""
    badge = get_badge(badge_id)
    if badge.tracker_id is None:
        raise ValidationError(f"Badge {badge_id!r} has no progress tracker")
    return await track_progress(rt, user_id, badge.tracker_id, value)
