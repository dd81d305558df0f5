"""
cairn.engine.identity — Identifier Canonicalization & Legacy Keys
==================================================================

Historically some records were keyed by a zero-padded rendering of a
numeric user id (``"000000123"``) while newer records use the canonical
form (``"123"``).  This module owns both halves of the fix:

* :func:`normalize_id` — total, deterministic, idempotent canonicalizer.
* :func:`migrate_key` / :func:`read_with_fallback` — lazy, on-read
  migration of a legacy key to its canonical key.

Reads always try the canonical key first and only fall back to the
legacy key on a miss, so a crash between the copy and the delete of a
migration never produces inconsistent reads.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable

from cairn.database.kv import KVRecord, KVStore
from cairn.errors import ValidationError

logger = logging.getLogger(__name__)

_DIGITS = re.compile(r"[0-9]+")
_LEGACY_ID = re.compile(r"0{5,}[0-9]+")
_BAD_ID_CHARS = re.compile(r"[:\s]")

MAX_ID_LENGTH = 128


# ---------------------------------------------------------------------------
# Pure helpers
# ---------------------------------------------------------------------------
def normalize_id(identifier: str) -> str:
    """Return the canonical form of *identifier*.

    Purely numeric ids lose their leading zeros (``"000123"`` → ``"123"``,
    ``"0000"`` → ``"0"``).  Anything else is returned unchanged.
    """
    if not _DIGITS.fullmatch(identifier):
        return identifier
    return identifier.lstrip("0") or "0"


def is_legacy_id(identifier: str) -> bool:
    """True if *identifier* looks like a historically zero-padded key segment.

    Five or more leading zeros followed by digits.  Short numeric ids such
    as ``"007"`` are ordinary ids, not legacy keys.
    """
    return _LEGACY_ID.fullmatch(identifier) is not None


def validate_id(identifier: str, *, label: str = "id") -> str:
    """Reject ids that would corrupt the colon-delimited key namespace."""
    if not isinstance(identifier, str) or not identifier:
        raise ValidationError(f"{label} cannot be empty")
    if len(identifier) > MAX_ID_LENGTH:
        raise ValidationError(f"{label} is longer than {MAX_ID_LENGTH} characters")
    if _BAD_ID_CHARS.search(identifier):
        raise ValidationError(f"{label} contains ':' or whitespace: {identifier!r}")
    return identifier


def canonical_user_id(identifier: str) -> str:
    """Validate then normalize a caller-supplied user id."""
    return normalize_id(validate_id(identifier, label="user id"))


# ---------------------------------------------------------------------------
# Storage-aware migration
# ---------------------------------------------------------------------------
async def migrate_key(kv: KVStore, old_key: str, new_key: str) -> bool:
    """Move the record at *old_key* to *new_key*.

    Copies value and metadata (and the remaining TTL, if any), then
    deletes *old_key*.  Returns False when there was nothing to migrate.
    If *new_key* already holds a record it wins: *old_key* is deleted
    without being copied, so re-running after an interrupted copy never
    rolls back writes made to *new_key* in between.
    """
    if old_key == new_key:
        return False

    record = await kv.get_with_metadata(old_key)
    if record.value is None:
        return False

    if await kv.get(new_key) is not None:
        await kv.delete(old_key)
        logger.info("Dropped legacy key %s; %s already exists", old_key, new_key)
        return True

    await kv.put(
        new_key,
        record.value,
        ttl=_remaining_ttl(kv, record),
        metadata=record.metadata,
    )
    await kv.delete(old_key)
    logger.info("Migrated legacy key %s → %s", old_key, new_key)
    return True


def _remaining_ttl(kv: KVStore, record: KVRecord) -> float | None:
    if record.expiration is None:
        return None
    now = kv.now()
    # An expired record would not have been returned; keep at least 1s.
    return max(record.expiration - now, 1.0)


async def read_with_fallback(
    kv: KVStore,
    raw_id: str,
    key_for: Callable[[str], str],
) -> KVRecord:
    """Read the canonical key for *raw_id*, falling back to its legacy key.

    On a canonical miss where *raw_id* is legacy-format and the legacy key
    holds a record, that record is migrated to the canonical key and
    returned.
    """
    canonical = normalize_id(raw_id)
    record = await kv.get_with_metadata(key_for(canonical))
    if record.value is not None or not is_legacy_id(raw_id):
        return record

    legacy_key = key_for(raw_id)
    legacy = await kv.get_with_metadata(legacy_key)
    if legacy.value is None:
        return record

    await migrate_key(kv, legacy_key, key_for(canonical))
    return legacy
