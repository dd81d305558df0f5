"""
cairn.database.kv — Key-Value Store Contract & SQL Implementation
==================================================================

The whole engine talks to storage through :class:`KVStore`, a narrow
async contract with single-key atomicity only:

    get / get_with_metadata / put(ttl, metadata) / delete / list(prefix)

There are no multi-key transactions and no compare-and-swap; services
are written as read-modify-write sequences that stay correct through
idempotence and additive updates rather than locking.

:class:`SqlKVStore` persists entries in the ``kv_entries`` table.  Each
call is a short synchronous session shipped to a worker thread with
:func:`~cairn.database.engine.run_db`.  Expired rows are invisible to
every read and are purged lazily (on ``get``) or in bulk
(:meth:`SqlKVStore.purge_expired`).
"""

from __future__ import annotations

import abc
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import Engine, delete, or_, select
from sqlalchemy.exc import IntegrityError

from cairn.database.engine import get_session, run_db
from cairn.database.models import KVEntry
from cairn.errors import ValidationError

logger = logging.getLogger(__name__)

DEFAULT_LIST_LIMIT = 1000
PURGE_BATCH_SIZE = 5_000


# ---------------------------------------------------------------------------
# Value objects
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class KVRecord:
    """Result of :meth:`KVStore.get_with_metadata`.  ``value`` is None on a miss."""

    value: str | None = None
    metadata: dict[str, Any] | None = None
    expiration: float | None = None  # epoch seconds


@dataclass(frozen=True, slots=True)
class KeyInfo:
    name: str
    metadata: dict[str, Any] | None = None
    expiration: float | None = None


@dataclass(frozen=True, slots=True)
class ListPage:
    keys: list[KeyInfo] = field(default_factory=list)
    cursor: str | None = None
    complete: bool = True


# ---------------------------------------------------------------------------
# Contract
# ---------------------------------------------------------------------------
class KVStore(abc.ABC):
    """Async key-value storage primitive consumed by every service."""

    def now(self) -> float:
        """Current time in epoch seconds, as the store measures expiry."""
        return time.time()

    async def get(self, key: str) -> str | None:
        return (await self.get_with_metadata(key)).value

    @abc.abstractmethod
    async def get_with_metadata(self, key: str) -> KVRecord: ...

    @abc.abstractmethod
    async def put(
        self,
        key: str,
        value: str,
        *,
        ttl: float | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> None: ...

    @abc.abstractmethod
    async def delete(self, key: str) -> None: ...

    @abc.abstractmethod
    async def list(
        self,
        prefix: str,
        *,
        cursor: str | None = None,
        limit: int = DEFAULT_LIST_LIMIT,
    ) -> ListPage: ...


def _check_key(key: str) -> None:
    if not key:
        raise ValidationError("KV key cannot be empty")


# ---------------------------------------------------------------------------
# SQL-backed store
# ---------------------------------------------------------------------------
class SqlKVStore(KVStore):
    """:class:`KVStore` persisted in the ``kv_entries`` table.

    Parameters
    ----------
    engine : SQLAlchemy engine.
    clock : Returns the current time in epoch seconds.  Injected so
        expiry can be driven deterministically in tests.
    """

    def __init__(self, engine: Engine, clock: Callable[[], float] = time.time) -> None:
        self._engine = engine
        self._clock = clock

    def now(self) -> float:
        return self._clock()

    # -------------------------------------------------------------------
    # Async API
    # -------------------------------------------------------------------
    async def get_with_metadata(self, key: str) -> KVRecord:
        _check_key(key)
        return await run_db(self._get_sync, key)

    async def put(
        self,
        key: str,
        value: str,
        *,
        ttl: float | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        _check_key(key)
        if ttl is not None and ttl <= 0:
            raise ValidationError(f"TTL must be positive, got {ttl}")
        await run_db(self._put_sync, key, value, ttl, metadata)

    async def delete(self, key: str) -> None:
        _check_key(key)
        await run_db(self._delete_sync, key)

    async def list(
        self,
        prefix: str,
        *,
        cursor: str | None = None,
        limit: int = DEFAULT_LIST_LIMIT,
    ) -> ListPage:
        if limit < 1:
            raise ValidationError(f"List limit must be at least 1, got {limit}")
        return await run_db(self._list_sync, prefix, cursor, limit)

    async def purge_expired(self, batch_size: int = PURGE_BATCH_SIZE) -> int:
        """Delete every expired row in batches.  Returns the number removed."""
        return await run_db(self._purge_sync, batch_size)

    # -------------------------------------------------------------------
    # Synchronous workers (run via run_db)
    # -------------------------------------------------------------------
    def _is_live(self, row: KVEntry, now: float) -> bool:
        return row.expires_at is None or row.expires_at > now

    def _get_sync(self, key: str) -> KVRecord:
        now = self._clock()
        with get_session(self._engine) as session:
            row = session.get(KVEntry, key)
            if row is None:
                return KVRecord()
            if not self._is_live(row, now):
                session.delete(row)
                return KVRecord()
            return KVRecord(
                value=row.value,
                metadata=dict(row.metadata_) if row.metadata_ is not None else None,
                expiration=row.expires_at,
            )

    def _put_sync(
        self,
        key: str,
        value: str,
        ttl: float | None,
        metadata: dict[str, Any] | None,
    ) -> None:
        now = self._clock()
        expires_at = now + ttl if ttl is not None else None
        try:
            self._upsert(key, value, metadata, expires_at, now)
        except IntegrityError:
            # A concurrent writer inserted the key first; last write wins.
            self._upsert(key, value, metadata, expires_at, now)

    def _upsert(
        self,
        key: str,
        value: str,
        metadata: dict[str, Any] | None,
        expires_at: float | None,
        now: float,
    ) -> None:
        with get_session(self._engine) as session:
            row = session.get(KVEntry, key)
            if row is None:
                session.add(KVEntry(
                    key=key,
                    value=value,
                    metadata_=metadata,
                    expires_at=expires_at,
                    updated_at=now,
                ))
            else:
                row.value = value
                row.metadata_ = metadata
                row.expires_at = expires_at
                row.updated_at = now

    def _delete_sync(self, key: str) -> None:
        with get_session(self._engine) as session:
            session.execute(delete(KVEntry).where(KVEntry.key == key))

    def _list_sync(self, prefix: str, cursor: str | None, limit: int) -> ListPage:
        now = self._clock()
        stmt = select(KVEntry).where(
            KVEntry.key.startswith(prefix, autoescape=True),
            or_(KVEntry.expires_at.is_(None), KVEntry.expires_at > now),
        )
        if cursor:
            stmt = stmt.where(KVEntry.key > cursor)
        # One extra row tells us whether another page exists.
        stmt = stmt.order_by(KVEntry.key).limit(limit + 1)

        with get_session(self._engine) as session:
            rows = session.scalars(stmt).all()
            keys = [
                KeyInfo(
                    name=row.key,
                    metadata=dict(row.metadata_) if row.metadata_ is not None else None,
                    expiration=row.expires_at,
                )
                for row in rows[:limit]
            ]

        complete = len(rows) <= limit
        return ListPage(
            keys=keys,
            cursor=None if complete else keys[-1].name,
            complete=complete,
        )

    def _purge_sync(self, batch_size: int) -> int:
        removed = 0
        while True:
            now = self._clock()
            with get_session(self._engine) as session:
                keys = session.scalars(
                    select(KVEntry.key)
                    .where(KVEntry.expires_at.is_not(None), KVEntry.expires_at <= now)
                    .limit(batch_size)
                ).all()
                if not keys:
                    break
                result = session.execute(delete(KVEntry).where(KVEntry.key.in_(keys)))
                removed += result.rowcount  # type: ignore[operator]
        logger.info("Purged %d expired kv entries", removed)
        return removed
