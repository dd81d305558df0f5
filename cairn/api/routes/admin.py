"""
cairn.api.routes.admin — Storage maintenance
=============================================
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException

from cairn.api.deps import AdminDep, RuntimeDep
from cairn.database.kv import SqlKVStore
from cairn.services.migration_service import migrate_legacy_keys

router = APIRouter(prefix="/admin", tags=["admin"])
logger = logging.getLogger(__name__)


@router.post("/migrate-legacy-keys")
async def migrate_keys(admin: AdminDep, rt: RuntimeDep):
    migrated = await migrate_legacy_keys(rt.kv, page_size=rt.cfg.migration_page_size)
    logger.info("Legacy key migration requested by %s: %d migrated", admin.get("sub"), migrated)
    return {"migrated": migrated}


@router.post("/purge-expired")
async def purge_expired(admin: AdminDep, rt: RuntimeDep):
    if not isinstance(rt.kv, SqlKVStore):
        raise HTTPException(501, "Store does not support purging")
    return {"purged": await rt.kv.purge_expired()}
