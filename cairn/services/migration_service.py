"""
cairn.services.migration_service — Bulk Legacy Key Migration
=============================================================

Administrative sweep over every key under the migrated prefixes.  Any
path segment that is a legacy zero-padded id is rewritten to its
canonical form and the record is moved with
:func:`~cairn.engine.identity.migrate_key`.

The sweep is idempotent and safe to run alongside normal traffic.  A
failure on one key is logged and skipped; only the migrated count is
reported.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from cairn.config import DEFAULT_CONFIG
from cairn.constants import MIGRATION_PREFIXES
from cairn.database.kv import KVStore
from cairn.engine.identity import is_legacy_id, migrate_key, normalize_id

logger = logging.getLogger(__name__)


def canonical_key(key: str, prefix: str) -> str:
    """*key* with every legacy id segment after *prefix* normalized."""
    segments = key[len(prefix):].split(":")
    fixed = [normalize_id(s) if is_legacy_id(s) else s for s in segments]
    return prefix + ":".join(fixed)


async def migrate_legacy_keys(
    kv: KVStore,
    prefixes: Iterable[str] = MIGRATION_PREFIXES,
    *,
    page_size: int = DEFAULT_CONFIG.migration_page_size,
) -> int:
    """Migrate every legacy-keyed record.  Returns the number moved."""
    migrated = 0

    for prefix in prefixes:
        cursor: str | None = None
        while True:
            page = await kv.list(prefix, cursor=cursor, limit=page_size)
            for info in page.keys:
                new_key = canonical_key(info.name, prefix)
                if new_key == info.name:
                    continue
                try:
                    if await migrate_key(kv, info.name, new_key):
                        migrated += 1
                except Exception:
                    logger.exception("Failed to migrate key %s", info.name)
            if page.complete or not page.cursor:
                break
            cursor = page.cursor

    logger.info("Legacy key migration finished: %d key(s) migrated", migrated)
    return migrated
