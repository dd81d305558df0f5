"""
cairn.api.routes.points — Impact points balance
================================================
"""

from __future__ import annotations

from fastapi import APIRouter
from pydantic import BaseModel

from cairn.api.deps import AdminDep, RuntimeDep
from cairn.services import points_service
from cairn.services.points_service import PointsChange

router = APIRouter(prefix="/users/{user_id}/points", tags=["points"])


class PointsDelta(BaseModel):
    amount: int
    reason: str = ""


class PointsSet(BaseModel):
    points: int
    reason: str = ""


def _payload(balance: int, history: list[PointsChange]) -> dict:
    return {"points": balance, "history": [change.to_dict() for change in history]}


@router.get("")
async def read_points(user_id: str, rt: RuntimeDep):
    return _payload(*await points_service.get_points(rt.kv, user_id))


@router.post("/add")
async def add_points(user_id: str, body: PointsDelta, admin: AdminDep, rt: RuntimeDep):
    return _payload(*await points_service.add_points(
        rt.kv, user_id, body.amount, body.reason,
        history_limit=rt.cfg.points_history_limit,
    ))


@router.post("/remove")
async def remove_points(user_id: str, body: PointsDelta, admin: AdminDep, rt: RuntimeDep):
    return _payload(*await points_service.remove_points(
        rt.kv, user_id, body.amount, body.reason,
        history_limit=rt.cfg.points_history_limit,
    ))


@router.put("")
async def set_points(user_id: str, body: PointsSet, admin: AdminDep, rt: RuntimeDep):
    return _payload(*await points_service.set_points(
        rt.kv, user_id, body.points, body.reason,
        history_limit=rt.cfg.points_history_limit,
    ))
