"""
pawprint.api.routes.admin — Admin point grants (JWT + admin check)
===================================================================
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict, Field

from pawprint.api.deps import get_config, get_current_admin, get_engine
from pawprint.api.rate_limit import rate_limit
from pawprint.config import PawprintConfig
from pawprint.database.engine import run_db
from pawprint.services import points_service
from pawprint.services.points_service import ledger_today

router = APIRouter(prefix="/admin", tags=["admin"])


class AdminAward(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    target_user_id: str = Field(alias="targetUserId", min_length=1)
    points: int
    reason: str | None = None


@router.post("/points", dependencies=[Depends(rate_limit("write"))])
async def grant_points(
    body: AdminAward,
    admin: dict = Depends(get_current_admin),
    engine=Depends(get_engine),
    cfg: PawprintConfig = Depends(get_config),
):
    try:
        result = await run_db(
            points_service.award_admin,
            engine,
            body.target_user_id,
            body.points,
            admin_id=admin["sub"],
            admin_email=admin.get("email"),
            reason=body.reason,
            max_points=cfg.admin_award_max,
            today=ledger_today(cfg.ledger_timezone),
        )
    except ValueError as exc:
        raise HTTPException(400, str(exc))

    if result.reason == points_service.REASON_USER_NOT_FOUND:
        raise HTTPException(404, "User not found")
    return {
        "success": result.success,
        "awarded": result.points_awarded,
        "newTotal": result.new_balance,
        "targetUserId": body.target_user_id,
    }
