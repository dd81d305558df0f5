"""
cairn.api.routes.badges — Badge catalogue, grants & progress reporting
=======================================================================
"""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Query
from pydantic import BaseModel

from cairn.api.deps import AdminDep, RuntimeDep
from cairn.engine.badges import BADGES, get_badge
from cairn.engine.identity import canonical_user_id
from cairn.services import badge_service

router = APIRouter(tags=["badges"])

ProgressValue = int | float | str


class ProgressReport(BaseModel):
    value: ProgressValue | list[ProgressValue]


# ---------------------------------------------------------------------------
# Catalogue
# ---------------------------------------------------------------------------
@router.get("/badges")
async def list_badges():
    return {"badges": [badge.to_dict() for badge in BADGES]}


@router.get("/badges/{badge_id}")
async def read_badge(badge_id: str):
    return get_badge(badge_id).to_dict()


# ---------------------------------------------------------------------------
# Per-user badges
# ---------------------------------------------------------------------------
@router.get("/users/{user_id}/badges")
async def list_user_badges(user_id: str, rt: RuntimeDep):
    granted = await badge_service.list_granted(rt.kv, user_id)
    not_granted = await badge_service.list_not_granted(rt.kv, user_id)
    return {
        "user_id": canonical_user_id(user_id),
        "granted": granted,
        "not_granted": not_granted,
    }


@router.get("/users/{user_id}/badges/{badge_id}")
async def read_user_badge(
    user_id: str,
    badge_id: str,
    rt: RuntimeDep,
    created_at: datetime | None = Query(None),
):
    """Grant state and progress.  ``created_at`` (account creation) feeds
    the account-age badges; without it they report 0."""
    badge = get_badge(badge_id)
    grant = await badge_service.get_grant(rt.kv, user_id, badge_id)
    progress = await badge_service.get_progress(rt.kv, user_id, badge_id, created_at=created_at)
    return {
        **badge.to_dict(),
        "granted": grant is not None,
        "granted_at": grant.granted_at if grant else None,
        "progress": progress,
    }


@router.post("/users/{user_id}/badges/{badge_id}/grant")
async def grant_user_badge(user_id: str, badge_id: str, admin: AdminDep, rt: RuntimeDep):
    granted = await badge_service.grant_badge(rt, user_id, badge_id)
    return {"badge_id": badge_id, "granted": granted}


@router.delete("/users/{user_id}/badges/{badge_id}", status_code=204)
async def revoke_user_badge(user_id: str, badge_id: str, admin: AdminDep, rt: RuntimeDep):
    await badge_service.revoke_badge(rt.kv, user_id, badge_id)
    return None


@router.post("/users/{user_id}/badges/{badge_id}/reset", status_code=204)
async def reset_user_badge(user_id: str, badge_id: str, admin: AdminDep, rt: RuntimeDep):
    await badge_service.reset_badge_progress(rt.kv, user_id, badge_id)
    return None


@router.post("/users/{user_id}/badges/{badge_id}/progress")
async def add_user_badge_progress(
    user_id: str, badge_id: str, body: ProgressReport, admin: AdminDep, rt: RuntimeDep,
):
    granted = await badge_service.add_badge_progress(rt, user_id, badge_id, body.value)
    return {"granted": granted}


# ---------------------------------------------------------------------------
# Trackers
# ---------------------------------------------------------------------------
@router.post("/users/{user_id}/trackers/{tracker_id}")
async def track_user_progress(
    user_id: str, tracker_id: str, body: ProgressReport, admin: AdminDep, rt: RuntimeDep,
):
    granted = await badge_service.track_progress(rt, user_id, tracker_id, body.value)
    return {"granted": granted}
