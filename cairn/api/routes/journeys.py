"""
cairn.api.routes.journeys — Streaks, activities & leaderboards
===============================================================
"""

from __future__ import annotations

from fastapi import APIRouter, Query
from pydantic import BaseModel

from cairn.api.deps import AdminDep, RuntimeDep
from cairn.engine.identity import canonical_user_id
from cairn.services import journey_service, leaderboard_service

router = APIRouter(tags=["journeys"])


class ActivityAdd(BaseModel):
    activity_id: str


@router.get("/users/{user_id}/journeys/{journey_type}")
async def read_journey(user_id: str, journey_type: str, rt: RuntimeDep):
    streak, last_write = await journey_service.get_journey(rt.kv, user_id, journey_type)
    return {"user_id": canonical_user_id(user_id), "streak": streak, "last_write": last_write}


@router.post("/users/{user_id}/journeys/{journey_type}")
async def increment_journey(user_id: str, journey_type: str, admin: AdminDep, rt: RuntimeDep):
    streak = await journey_service.increment_journey(rt, user_id, journey_type)
    return {"user_id": canonical_user_id(user_id), "streak": streak}


@router.delete("/users/{user_id}/journeys/{journey_type}", status_code=204)
async def reset_journey(user_id: str, journey_type: str, admin: AdminDep, rt: RuntimeDep):
    await journey_service.reset_journey(rt.kv, user_id, journey_type)
    return None


@router.get("/users/{user_id}/activities")
async def read_activities(user_id: str, rt: RuntimeDep):
    return {"activities": await journey_service.get_activities(rt.kv, user_id)}


@router.post("/users/{user_id}/activities")
async def add_activity(user_id: str, body: ActivityAdd, admin: AdminDep, rt: RuntimeDep):
    return {"activities": await journey_service.add_activity(rt.kv, user_id, body.activity_id)}


@router.get("/journeys/{journey_type}/leaderboard")
async def read_leaderboard(journey_type: str, rt: RuntimeDep, limit: int = Query(10, ge=1)):
    entries = await leaderboard_service.get_leaderboard(rt, journey_type, limit)
    return {"type": journey_type.lower(), "leaderboard": entries}


@router.get("/journeys/{journey_type}/rank/{user_id}")
async def read_rank(journey_type: str, user_id: str, rt: RuntimeDep):
    rank = await leaderboard_service.get_rank(rt, user_id, journey_type)
    return {"user_id": canonical_user_id(user_id), "rank": rank}
