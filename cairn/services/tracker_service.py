"""
cairn.services.tracker_service — Progress Tracker Accumulation
===============================================================

A tracker is a named, per-user accumulator stored at
``user:badge_tracker:{userId}:{trackerId}`` as a JSON list of
``{"date": <epoch ms>, "value": <number|string>}`` entries.  A tracker
holds exactly one kind of value:

* **numeric** — a single entry carrying the running sum; adding sums the
  new amounts into it and refreshes its date.
* **string** — one entry per distinct value ever seen (set semantics).

Legacy records may contain array-valued entries; :func:`flatten_entries`
folds them into the canonical shape on every read.  It is pure and
idempotent, and never rewrites storage by itself.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any

from cairn.constants import now_ms, tracker_key
from cairn.database.kv import KVStore
from cairn.engine.identity import canonical_user_id, is_legacy_id, normalize_id, read_with_fallback, validate_id
from cairn.errors import ValidationError

logger = logging.getLogger(__name__)

TrackerValue = int | float | str


@dataclass(slots=True)
class TrackerEntry:
    date: int
    value: TrackerValue

    def to_dict(self) -> dict[str, Any]:
        return {"date": self.date, "value": self.value}


def _is_number(value: object) -> bool:
    return isinstance(value, int | float) and not isinstance(value, bool)


# ---------------------------------------------------------------------------
# Pure helpers
# ---------------------------------------------------------------------------
def flatten_entries(raw: object) -> list[TrackerEntry]:
    """Fold raw stored entries into the canonical tracker shape.

    Array-valued entries are unpacked.  Strings are deduplicated in first
    seen order; numbers collapse to the single highest value (the latest
    accumulated total), placed last.
    """
    if not isinstance(raw, list):
        return []

    entries: list[TrackerEntry] = []
    seen: set[str] = set()
    best_number: TrackerValue | None = None
    best_date = 0

    for item in raw:
        if not isinstance(item, dict):
            continue
        date = item.get("date")
        date = int(date) if _is_number(date) else 0
        value = item.get("value")
        for v in value if isinstance(value, list) else [value]:
            if _is_number(v):
                if best_number is None or v > best_number:
                    best_number, best_date = v, date
            elif isinstance(v, str) and v not in seen:
                seen.add(v)
                entries.append(TrackerEntry(date, v))

    if best_number is not None:
        entries.append(TrackerEntry(best_date, best_number))
    return entries


def tracker_kind(entries: list[TrackerEntry]) -> str | None:
    """``"number"``, ``"string"`` or None for an empty tracker."""
    if not entries:
        return None
    return "number" if _is_number(entries[0].value) else "string"


def tracker_value(entries: list[TrackerEntry]) -> TrackerValue | list[str]:
    """The snapshot handed to progress rules.

    The accumulated total for a numeric tracker, otherwise the list of
    unique string values (empty for an absent tracker).
    """
    if entries and _is_number(entries[-1].value):
        return entries[-1].value
    values: list[str] = []
    for entry in entries:
        if isinstance(entry.value, str) and entry.value not in values:
            values.append(entry.value)
    return values


def _decode(raw: str | None, key: str) -> object:
    if raw is None:
        return []
    try:
        return json.loads(raw)
    except (json.JSONDecodeError, TypeError):
        logger.warning("Tracker %s holds undecodable data; treating as empty", key)
        return []


def _validate_tracker_id(tracker_id: str) -> str:
    return validate_id(tracker_id, label="tracker id")


# ---------------------------------------------------------------------------
# Storage operations
# ---------------------------------------------------------------------------
async def load_tracker(kv: KVStore, user_id: str, tracker_id: str) -> list[TrackerEntry]:
    """Load and flatten a tracker, falling back to the legacy user key."""
    validate_id(user_id, label="user id")
    _validate_tracker_id(tracker_id)
    record = await read_with_fallback(kv, user_id, lambda uid: tracker_key(uid, tracker_id))
    return flatten_entries(_decode(record.value, tracker_key(normalize_id(user_id), tracker_id)))


async def add_progress(
    kv: KVStore,
    user_id: str,
    tracker_id: str,
    value: TrackerValue | list[TrackerValue],
) -> bool:
    """Merge *value* into the tracker.

    Numbers are summed into the accumulator; strings (normalized if they
    look like ids) are appended unless already present.  Returns False
    when the update was dropped because it would mix value kinds; that
    is logged, not raised.
    """
    canonical = canonical_user_id(user_id)
    _validate_tracker_id(tracker_id)

    values = list(value) if isinstance(value, list | tuple) else [value]
    numbers = [v for v in values if _is_number(v)]
    strings = [v for v in values if isinstance(v, str)]
    if len(numbers) + len(strings) != len(values):
        raise ValidationError("Tracker values must be numbers or strings")
    if not values:
        return False
    if numbers and strings:
        logger.warning(
            "Rejected mixed numeric/string progress for tracker %s (user %s)",
            tracker_id, canonical,
        )
        return False

    entries = await load_tracker(kv, user_id, tracker_id)
    kind = tracker_kind(entries)
    now = now_ms()

    if numbers:
        if kind == "string":
            logger.warning(
                "Attempted to add numbers to string tracker %s (user %s)",
                tracker_id, canonical,
            )
            return False
        total = sum(numbers)
        if entries:
            entries[-1].value += total
            entries[-1].date = now
        else:
            entries.append(TrackerEntry(now, total))
    else:
        if kind == "number":
            logger.warning(
                "Attempted to add strings to number tracker %s (user %s)",
                tracker_id, canonical,
            )
            return False
        existing = {entry.value for entry in entries}
        for raw in strings:
            normalized = normalize_id(raw)
            if normalized not in existing:
                entries.append(TrackerEntry(now, normalized))
                existing.add(normalized)

    await kv.put(
        tracker_key(canonical, tracker_id),
        json.dumps([entry.to_dict() for entry in entries]),
    )
    return True


async def reset_tracker(kv: KVStore, user_id: str, tracker_id: str) -> None:
    """Delete the tracker (and any legacy-keyed copy)."""
    canonical = canonical_user_id(user_id)
    _validate_tracker_id(tracker_id)
    await kv.delete(tracker_key(canonical, tracker_id))
    if is_legacy_id(user_id):
        await kv.delete(tracker_key(user_id, tracker_id))
