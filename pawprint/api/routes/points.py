"""
pawprint.api.routes.points — Balance, awards, leaderboard & history
====================================================================
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, ConfigDict, Field

from pawprint.api.deps import get_config, get_current_user, get_engine
from pawprint.api.rate_limit import rate_limit
from pawprint.config import PawprintConfig
from pawprint.constants import (
    ACTION_LABELS,
    CLIENT_ACTIONS,
    HISTORY_PAGE_SIZE,
    LEADERBOARD_SIZE,
)
from pawprint.database.engine import run_db
from pawprint.services import points_service
from pawprint.services.points_service import AwardResult, ledger_today

router = APIRouter(prefix="/points", tags=["points"])


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------
class AwardRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    action_type: str = Field(alias="actionType")
    metadata: dict[str, Any] | None = None


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def _check_user_found(result: AwardResult) -> None:
    if result.reason == points_service.REASON_USER_NOT_FOUND:
        raise HTTPException(404, "User not found")


def _transaction_dict(tx) -> dict:
    return {
        "id": tx.id,
        "actionType": tx.action_type,
        "label": ACTION_LABELS.get(tx.action_type, tx.action_type),
        "pointsDelta": tx.points_delta,
        "metadata": tx.metadata_ or {},
        "createdAt": tx.created_at.isoformat() if tx.created_at else None,
    }


# ---------------------------------------------------------------------------
# Mutations
# ---------------------------------------------------------------------------
@router.post("/award", dependencies=[Depends(rate_limit("write"))])
async def award_points(
    body: AwardRequest,
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
    cfg: PawprintConfig = Depends(get_config),
):
    """Credit a client-triggered action (pet registration, timeline, …)."""
    if body.action_type not in CLIENT_ACTIONS:
        raise HTTPException(400, "Invalid action type")

    result = await run_db(
        points_service.award,
        engine,
        user["sub"],
        body.action_type,
        body.metadata,
        today=ledger_today(cfg.ledger_timezone),
    )
    _check_user_found(result)
    response: dict[str, Any] = {
        "success": result.success,
        "points": result.new_balance,
        "earned": result.points_awarded,
        "totalEarned": result.total_earned,
    }
    if result.reason:
        response["reason"] = result.reason
    return response


@router.post("/daily-check", dependencies=[Depends(rate_limit("write"))])
async def daily_check(
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
    cfg: PawprintConfig = Depends(get_config),
):
    """Once-per-day check-in bonus."""
    result = await run_db(
        points_service.daily_check,
        engine,
        user["sub"],
        today=ledger_today(cfg.ledger_timezone),
    )
    _check_user_found(result)
    response: dict[str, Any] = {
        "success": result.success,
        "points": result.new_balance,
        "earned": result.points_awarded,
    }
    if result.reason:
        response["reason"] = result.reason
    return response


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------
@router.get("", dependencies=[Depends(rate_limit("general"))])
async def get_points(
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
):
    view = await run_db(points_service.get_balance, engine, user["sub"])
    if view is None:
        raise HTTPException(404, "User not found")
    return {
        "userId": view.user_id,
        "points": view.points,
        "totalEarned": view.total_earned,
        "rank": view.rank,
        "level": view.level,
    }


@router.get("/leaderboard", dependencies=[Depends(rate_limit("general"))])
async def leaderboard(
    limit: int = Query(LEADERBOARD_SIZE),
    engine=Depends(get_engine),
):
    entries = await run_db(points_service.get_leaderboard, engine, limit)
    return {
        "leaderboard": [
            {
                "rank": e.rank,
                "userId": e.user_id,
                "nickname": e.nickname,
                "points": e.points,
            }
            for e in entries
        ],
    }


@router.get("/history", dependencies=[Depends(rate_limit("general"))])
async def history(
    limit: int = Query(HISTORY_PAGE_SIZE),
    offset: int = Query(0),
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
):
    page = await run_db(points_service.get_history, engine, user["sub"], limit, offset)
    return {
        "transactions": [_transaction_dict(tx) for tx in page.transactions],
        "total": page.total,
        "hasMore": page.has_more,
    }
