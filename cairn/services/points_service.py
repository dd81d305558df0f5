"""
cairn.services.points_service — Impact Points Ledger
=====================================================

A non-negative integer balance per user at ``user:impact_points:{id}``.
The total lives in the record metadata (``{"total": n}``); the value
holds a bounded JSON history of ``{reason, difference, timestamp}``
changes.  A record whose value is a bare decimal string is read as that
balance with an empty history.

Balances are created implicitly by the first mutation and never deleted.
Every mutation is a delta applied to the current total and floored at 0.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass

from cairn.config import DEFAULT_CONFIG
from cairn.constants import now_ms, points_key
from cairn.database.kv import KVRecord, KVStore
from cairn.engine.identity import canonical_user_id, read_with_fallback
from cairn.errors import ValidationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class PointsChange:
    reason: str
    difference: int
    timestamp: int | None = None

    def to_dict(self) -> dict:
        return {"reason": self.reason, "difference": self.difference, "timestamp": self.timestamp}


def _parse_history(raw: object) -> list[PointsChange]:
    history: list[PointsChange] = []
    for item in raw if isinstance(raw, list) else []:
        if not isinstance(item, dict):
            continue
        try:
            history.append(PointsChange(
                reason=str(item.get("reason", "")),
                difference=int(item.get("difference", 0)),
                timestamp=item.get("timestamp"),
            ))
        except (TypeError, ValueError):
            continue
    return history


def _check_amount(amount: int, *, allow_negative: bool = False) -> int:
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise ValidationError(f"Points amount must be an integer, got {amount!r}")
    if amount < 0 and not allow_negative:
        raise ValidationError(f"Points amount cannot be negative, got {amount}")
    return amount


async def _read(kv: KVStore, user_id: str) -> tuple[int, list[PointsChange], bool]:
    """Return ``(total, history, corrupt)`` for *user_id*."""
    record: KVRecord = await read_with_fallback(kv, user_id, points_key)
    if record.value is None:
        return 0, [], False

    value = record.value.strip()
    if value.isascii() and value.isdigit():
        return int(value), [], False

    try:
        history = _parse_history(json.loads(value))
    except (json.JSONDecodeError, TypeError):
        logger.warning(
            "Failed to parse impact points history for user %s; "
            "deleting and defaulting to an empty history.",
            user_id,
        )
        return 0, [], True

    total = (record.metadata or {}).get("total")
    if isinstance(total, int | float) and not isinstance(total, bool):
        return max(0, int(total)), history, False

    total = max(0, sum(change.difference for change in history))
    logger.warning(
        "Impact points total for user %s missing from metadata; "
        "recomputed %d from history.",
        user_id, total,
    )
    return total, history, False


async def get_points(kv: KVStore, user_id: str) -> tuple[int, list[PointsChange]]:
    """Current ``(balance, history)``; ``(0, [])`` for an unknown user."""
    canonical = canonical_user_id(user_id)
    total, history, corrupt = await _read(kv, user_id)
    if corrupt:
        await kv.delete(points_key(canonical))
    return total, history


async def _write(
    kv: KVStore,
    user_id: str,
    new_total: int,
    history: list[PointsChange],
    change: PointsChange,
    history_limit: int,
) -> tuple[int, list[PointsChange]]:
    history = [*history, change][-history_limit:]
    await kv.put(
        points_key(canonical_user_id(user_id)),
        json.dumps([c.to_dict() for c in history]),
        metadata={"total": new_total},
    )
    return new_total, history


async def add_points(
    kv: KVStore,
    user_id: str,
    amount: int,
    reason: str,
    *,
    history_limit: int = DEFAULT_CONFIG.points_history_limit,
) -> tuple[int, list[PointsChange]]:
    """Apply a signed delta.  The balance never drops below 0."""
    canonical_user_id(user_id)
    _check_amount(amount, allow_negative=True)
    current, history, _ = await _read(kv, user_id)
    new_total = max(0, current + amount)
    change = PointsChange(reason, new_total - current, now_ms())
    return await _write(kv, user_id, new_total, history, change, history_limit)


async def remove_points(
    kv: KVStore,
    user_id: str,
    amount: int,
    reason: str,
    *,
    history_limit: int = DEFAULT_CONFIG.points_history_limit,
) -> tuple[int, list[PointsChange]]:
    _check_amount(amount)
    return await add_points(kv, user_id, -amount, reason, history_limit=history_limit)


async def set_points(
    kv: KVStore,
    user_id: str,
    points: int,
    reason: str,
    *,
    history_limit: int = DEFAULT_CONFIG.points_history_limit,
) -> tuple[int, list[PointsChange]]:
    """Overwrite the balance (floored at 0), recording the difference."""
    canonical_user_id(user_id)
    _check_amount(points, allow_negative=True)
    current, history, _ = await _read(kv, user_id)
    new_total = max(0, points)
    change = PointsChange(reason, new_total - current, now_ms())
    return await _write(kv, user_id, new_total, history, change, history_limit)
