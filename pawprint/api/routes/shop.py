"""
pawprint.api.routes.shop — Catalogue, purchases, equip & inventory
===================================================================
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, ConfigDict, Field

from pawprint.api.deps import get_catalog, get_current_user, get_engine
from pawprint.api.rate_limit import rate_limit
from pawprint.constants import format_points
from pawprint.database.engine import run_db
from pawprint.database.models import ItemCategory
from pawprint.engine.catalog import CatalogProvider
from pawprint.services import inventory_service, purchase_service

router = APIRouter(tags=["shop"])

# Result reason → HTTP status for failed mutations
_FAILURE_STATUS: dict[str, int] = {
    "item_not_found": 400,
    "not_purchasable": 400,
    "insufficient_funds": 400,
    "already_owned": 400,
    "too_many_accessories": 400,
    "wrong_category": 400,
    "not_owned": 400,
    "user_not_found": 404,
    "purchase_failed": 500,
}

_FAILURE_MESSAGES: dict[str, str] = {
    "item_not_found": "Item not found",
    "not_purchasable": "This item is free and cannot be purchased",
    "insufficient_funds": "Not enough points",
    "already_owned": "Item already owned",
    "too_many_accessories": "Too many accessories equipped",
    "wrong_category": "Item cannot be equipped in that slot",
    "not_owned": "Item not owned",
    "user_not_found": "User not found",
    "purchase_failed": "Internal server error",
}


def _fail(reason: str) -> HTTPException:
    return HTTPException(
        _FAILURE_STATUS.get(reason, 400),
        _FAILURE_MESSAGES.get(reason, reason),
    )


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------
class PurchaseRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    item_slug: str = Field(alias="itemSlug", min_length=1)


class EquipRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    character_slug: str | None = Field(default=None, alias="characterSlug")
    accessory_slugs: list[str] = Field(default_factory=list, alias="accessorySlugs")
    background_slug: str | None = Field(default=None, alias="backgroundSlug")


# ---------------------------------------------------------------------------
# Catalogue
# ---------------------------------------------------------------------------
@router.get("/catalog", dependencies=[Depends(rate_limit("general"))])
def list_catalog(
    category: str | None = Query(None),
    catalog: CatalogProvider = Depends(get_catalog),
):
    if category is None:
        items = catalog.items()
    else:
        try:
            items = catalog.items(ItemCategory(category))
        except ValueError:
            raise HTTPException(400, f"Unknown category: {category}")
    return {"items": [item.to_dict() for item in items]}


# ---------------------------------------------------------------------------
# Purchase & equip
# ---------------------------------------------------------------------------
@router.post("/purchase", dependencies=[Depends(rate_limit("write"))])
async def purchase_item(
    body: PurchaseRequest,
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
    catalog: CatalogProvider = Depends(get_catalog),
):
    result = await run_db(
        purchase_service.purchase, engine, catalog, user["sub"], body.item_slug
    )
    if not result.success:
        raise _fail(result.reason)
    return {
        "success": True,
        "remainingPoints": result.remaining_points,
        "message": f"{result.item.name} purchased for {format_points(result.item.price)}",
        "item": result.item.to_dict(),
    }


@router.post("/equip", dependencies=[Depends(rate_limit("write"))])
async def equip_items(
    body: EquipRequest,
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
    catalog: CatalogProvider = Depends(get_catalog),
):
    result = await run_db(
        inventory_service.equip,
        engine,
        catalog,
        user["sub"],
        body.character_slug,
        body.accessory_slugs,
        body.background_slug,
    )
    if not result.success:
        raise _fail(result.reason)
    return {"success": True, "equipped": result.equipped}


@router.get("/inventory", dependencies=[Depends(rate_limit("general"))])
async def inventory(
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
):
    data = await run_db(inventory_service.get_inventory, engine, user["sub"])
    if data is None:
        raise HTTPException(404, "User not found")
    return data
