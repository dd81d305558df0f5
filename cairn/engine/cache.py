"""
cairn.engine.cache — Read-Through KV Cache
===========================================

Derived, expensive-to-compute values (leaderboard snapshots) are cached
as JSON in a KV store with a freshness TTL.  A hit returns immediately;
a miss runs the loader, stores its result and returns it.  Cached data
may therefore lag behind the authoritative records by up to the TTL.

Writing the cache is best-effort: a failure is logged and the freshly
computed value is still returned to the caller.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from cairn.database.kv import KVStore

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_CACHE_TTL = 60 * 60 * 12


async def get_cached(kv: KVStore, key: str) -> Any | None:
    """Return the decoded cached value, or None on a miss or bad payload."""
    raw = await kv.get(key)
    if raw is None:
        return None
    try:
        return json.loads(raw)
    except (json.JSONDecodeError, TypeError):
        logger.warning("Discarding undecodable cache entry %s", key)
        return None


async def set_cached(kv: KVStore, key: str, value: Any, ttl: float = DEFAULT_CACHE_TTL) -> None:
    try:
        await kv.put(key, json.dumps(value), ttl=ttl)
    except Exception:
        logger.exception("Failed to cache data for %s", key)


async def try_cache(
    kv: KVStore,
    key: str,
    loader: Callable[[], Awaitable[T]],
    ttl: float = DEFAULT_CACHE_TTL,
) -> T:
    """Read-through: cached value on a hit, ``await loader()`` on a miss."""
    if not key:
        raise ValueError("Cache key cannot be empty")

    cached = await get_cached(kv, key)
    if cached is not None:
        return cached

    value = await loader()
    await set_cached(kv, key, value, ttl)
    return value


async def clear_cache(kv: KVStore, key: str) -> None:
    try:
        await kv.delete(key)
    except Exception:
        logger.exception("Failed to clear cache for %s", key)
