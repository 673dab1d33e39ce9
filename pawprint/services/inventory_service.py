"""
pawprint.services.inventory_service — Equip & Inventory
========================================================

Writes the denormalized "currently equipped" snapshot on the users row:
one character, up to three accessories and one background theme.
Ownership is always checked against ``owned_items``; the snapshot is only a
read cache and is never consulted for authorization.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from pawprint.constants import MAX_EQUIPPED_ACCESSORIES
from pawprint.database.models import ItemCategory, OwnedItem, User

if TYPE_CHECKING:
    from sqlalchemy import Engine

    from pawprint.engine.catalog import CatalogItem, CatalogProvider

logger = logging.getLogger(__name__)

REASON_TOO_MANY_ACCESSORIES = "too_many_accessories"
REASON_ITEM_NOT_FOUND = "item_not_found"
REASON_WRONG_CATEGORY = "wrong_category"
REASON_NOT_OWNED = "not_owned"
REASON_USER_NOT_FOUND = "user_not_found"


@dataclass
class EquipResult:
    success: bool
    reason: str | None = None
    slug: str | None = None
    equipped: dict[str, Any] = field(default_factory=dict)


@dataclass
class _Selection:
    character: CatalogItem | None = None
    accessories: list[CatalogItem] = field(default_factory=list)
    background: CatalogItem | None = None

    def all_items(self) -> list[CatalogItem]:
        items = [self.character, *self.accessories, self.background]
        return [i for i in items if i is not None]

    def snapshot(self) -> dict[str, Any]:
        character, background = self.character, self.background
        return {
            "characterSlug": character.slug if character else None,
            "accessorySlugs": [a.slug for a in self.accessories],
            "backgroundSlug": background.slug if background else None,
            "payload": {
                "character": character.to_dict() if character else None,
                "accessories": [a.to_dict() for a in self.accessories],
                "background": background.to_dict() if background else None,
            },
        }


def _resolve(
    catalog: CatalogProvider, slug: str, category: ItemCategory
) -> tuple[CatalogItem | None, str | None]:
    item = catalog.get(slug)
    if item is None:
        return None, REASON_ITEM_NOT_FOUND
    if item.category != category:
        return None, REASON_WRONG_CATEGORY
    return item, None


def equip(
    engine: Engine,
    catalog: CatalogProvider,
    user_id: str,
    character_slug: str | None,
    accessory_slugs: list[str] | None = None,
    background_slug: str | None = None,
) -> EquipResult:
    """Replace the user's equipped character, accessories and background.

    The whole snapshot is overwritten: ``None`` / an empty list unequips a
    slot.  Priced items must be owned; free items are always allowed.
    """
    accessory_slugs = list(accessory_slugs or [])
    if len(accessory_slugs) > MAX_EQUIPPED_ACCESSORIES:
        return EquipResult(success=False, reason=REASON_TOO_MANY_ACCESSORIES)
    # Preserve order, drop repeats
    accessory_slugs = list(dict.fromkeys(accessory_slugs))

    selection = _Selection()
    if character_slug:
        selection.character, reason = _resolve(catalog, character_slug, ItemCategory.CHARACTER)
        if reason:
            return EquipResult(success=False, reason=reason, slug=character_slug)
    for slug in accessory_slugs:
        item, reason = _resolve(catalog, slug, ItemCategory.ACCESSORY)
        if reason:
            return EquipResult(success=False, reason=reason, slug=slug)
        selection.accessories.append(item)
    if background_slug:
        selection.background, reason = _resolve(catalog, background_slug, ItemCategory.BACKGROUND)
        if reason:
            return EquipResult(success=False, reason=reason, slug=background_slug)

    snapshot = selection.snapshot()
    priced = [i.slug for i in selection.all_items() if not i.is_free]
    try:
        missing = _store_snapshot(engine, user_id, snapshot, priced)
    except SQLAlchemyError:
        logger.exception(
            "Equip failed: user=%s character=%s accessories=%s background=%s",
            user_id, snapshot["characterSlug"], snapshot["accessorySlugs"],
            snapshot["backgroundSlug"],
        )
        raise
    if missing is not None:
        return missing

    logger.debug(
        "User %s equipped character=%s accessories=%s background=%s",
        user_id, snapshot["characterSlug"], snapshot["accessorySlugs"],
        snapshot["backgroundSlug"],
    )
    return EquipResult(success=True, equipped=snapshot)


def _store_snapshot(
    engine: Engine, user_id: str, snapshot: dict[str, Any], priced: list[str]
) -> EquipResult | None:
    """Check ownership of *priced* slugs and write the snapshot.

    Returns a failed :class:`EquipResult`, or ``None`` once committed.
    """
    with Session(engine) as session:
        owned: set[str] = set()
        if priced:
            owned = set(session.scalars(
                select(OwnedItem.item_slug).where(
                    OwnedItem.user_id == user_id,
                    OwnedItem.item_slug.in_(priced),
                )
            ))
        for slug in priced:
            if slug not in owned:
                return EquipResult(success=False, reason=REASON_NOT_OWNED, slug=slug)

        updated = session.execute(
            update(User)
            .where(User.id == user_id)
            .values(
                equipped_character_slug=snapshot["characterSlug"],
                equipped_accessory_slugs=snapshot["accessorySlugs"],
                equipped_background_slug=snapshot["backgroundSlug"],
                equipped_payload=snapshot["payload"],
            )
            .returning(User.id)
            .execution_options(synchronize_session=False)
        ).scalar_one_or_none()
        if updated is None:
            session.rollback()
            return EquipResult(success=False, reason=REASON_USER_NOT_FOUND)
        session.commit()
    return None


def get_inventory(engine: Engine, user_id: str) -> dict[str, Any] | None:
    """Owned items (newest first) plus the stored equipped snapshot."""
    try:
        with Session(engine) as session:
            user = session.get(User, user_id)
            if user is None:
                return None
            rows = session.scalars(
                select(OwnedItem)
                .where(OwnedItem.user_id == user_id)
                .order_by(OwnedItem.purchased_at.desc(), OwnedItem.id.desc())
            ).all()
            return {
                "items": [
                    {
                        "slug": row.item_slug,
                        "category": row.category,
                        "purchasePrice": row.purchase_price,
                        "purchasedAt": row.purchased_at.isoformat() if row.purchased_at else None,
                    }
                    for row in rows
                ],
                "equipped": {
                    "characterSlug": user.equipped_character_slug,
                    "accessorySlugs": list(user.equipped_accessory_slugs or []),
                    "backgroundSlug": user.equipped_background_slug,
                    "payload": user.equipped_payload,
                },
            }
    except SQLAlchemyError:
        logger.exception("Inventory read failed: user=%s", user_id)
        raise
