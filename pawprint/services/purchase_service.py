"""
pawprint.services.purchase_service — Purchase Coordinator
==========================================================

Exchanges points for catalogue items as a two-step saga:

1. **Reserve** — conditional decrement (``points >= price``) committed
   together with the ``item_purchase`` debit.
2. **Commit** — insert the OwnedItem row.  The unique constraint on
   (user, slug) settles concurrent purchases of the same item.

If step 2 fails for any reason the debit is **compensated**: the price is
added back and a ``purchase_refund`` row referencing the debit is logged.
An observer therefore sees either ownership plus exactly one debit, or no
ownership and the balance restored.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from pawprint.database.models import ActionType, OwnedItem, PointTransaction, User

if TYPE_CHECKING:
    from sqlalchemy import Engine

    from pawprint.engine.catalog import CatalogItem, CatalogProvider

logger = logging.getLogger(__name__)

REASON_ITEM_NOT_FOUND = "item_not_found"
REASON_NOT_PURCHASABLE = "not_purchasable"
REASON_ALREADY_OWNED = "already_owned"
REASON_INSUFFICIENT_FUNDS = "insufficient_funds"
REASON_USER_NOT_FOUND = "user_not_found"
REASON_PURCHASE_FAILED = "purchase_failed"


@dataclass
class PurchaseResult:
    success: bool
    reason: str | None = None
    remaining_points: int | None = None
    item: CatalogItem | None = None


@dataclass
class _Reservation:
    remaining: int | None = None
    debit_id: int | None = None
    reason: str | None = None


# ---------------------------------------------------------------------------
# Saga steps
# ---------------------------------------------------------------------------
def _owns(engine: Engine, user_id: str, item_slug: str) -> bool:
    try:
        with Session(engine) as session:
            return session.scalar(
                select(OwnedItem.id).where(
                    OwnedItem.user_id == user_id,
                    OwnedItem.item_slug == item_slug,
                )
            ) is not None
    except SQLAlchemyError:
        logger.exception("Ownership lookup failed: user=%s item=%s", user_id, item_slug)
        raise


def _reserve(engine: Engine, user_id: str, item: CatalogItem) -> _Reservation:
    """Debit the price if the balance covers it; log the debit atomically."""
    try:
        return _debit(engine, user_id, item)
    except SQLAlchemyError:
        logger.exception(
            "Purchase reservation failed: user=%s item=%s price=%d",
            user_id, item.slug, item.price,
        )
        raise


def _debit(engine: Engine, user_id: str, item: CatalogItem) -> _Reservation:
    with Session(engine) as session:
        remaining = session.execute(
            update(User)
            .where(User.id == user_id, User.points >= item.price)
            .values(points=User.points - item.price)
            .returning(User.points)
            .execution_options(synchronize_session=False)
        ).scalar_one_or_none()

        if remaining is None:
            session.rollback()
            exists = session.scalar(select(User.id).where(User.id == user_id))
            reason = REASON_INSUFFICIENT_FUNDS if exists else REASON_USER_NOT_FOUND
            return _Reservation(reason=reason)

        debit = PointTransaction(
            user_id=user_id,
            action_type=str(ActionType.ITEM_PURCHASE),
            points_delta=-item.price,
            metadata_={
                "item_slug": item.slug,
                "category": item.category.value,
                "name": item.name,
            },
        )
        session.add(debit)
        session.flush()
        debit_id = debit.id
        session.commit()

    return _Reservation(remaining=remaining, debit_id=debit_id)


def _commit(engine: Engine, user_id: str, item: CatalogItem) -> None:
    """Record ownership.  Raises IntegrityError when already owned."""
    with Session(engine) as session:
        session.add(OwnedItem(
            user_id=user_id,
            item_slug=item.slug,
            category=item.category.value,
            purchase_price=item.price,
        ))
        session.commit()


def _compensate(
    engine: Engine, user_id: str, item: CatalogItem, debit_id: int, cause: str
) -> int | None:
    """Return the reserved points and log the refund.

    Refunds do not count towards ``total_points_earned``.  A failure here
    leaves the user short by ``item.price`` and is logged at CRITICAL for
    manual repair; it is not retried.
    """
    try:
        with Session(engine) as session:
            balance = session.execute(
                update(User)
                .where(User.id == user_id)
                .values(points=User.points + item.price)
                .returning(User.points)
                .execution_options(synchronize_session=False)
            ).scalar_one_or_none()
            session.add(PointTransaction(
                user_id=user_id,
                action_type=str(ActionType.PURCHASE_REFUND),
                points_delta=item.price,
                metadata_={
                    "item_slug": item.slug,
                    "refund_of": debit_id,
                    "cause": cause,
                },
            ))
            session.commit()
    except SQLAlchemyError:
        logger.critical(
            "Purchase compensation FAILED: user=%s item=%s price=%d debit_id=%s cause=%s",
            user_id, item.slug, item.price, debit_id, cause,
            exc_info=True,
        )
        return None

    logger.warning(
        "Purchase of %s by %s rolled back (%s); refunded %d points",
        item.slug, user_id, cause, item.price,
    )
    return balance


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def purchase(
    engine: Engine,
    catalog: CatalogProvider,
    user_id: str,
    item_slug: str,
) -> PurchaseResult:
    """Buy *item_slug* for *user_id* with points."""
    item = catalog.get(item_slug)
    if item is None:
        return PurchaseResult(success=False, reason=REASON_ITEM_NOT_FOUND)
    if item.is_free:
        return PurchaseResult(success=False, reason=REASON_NOT_PURCHASABLE, item=item)

    # Fast path only; the unique constraint is what actually decides.
    if _owns(engine, user_id, item.slug):
        return PurchaseResult(success=False, reason=REASON_ALREADY_OWNED, item=item)

    reservation = _reserve(engine, user_id, item)
    if reservation.reason is not None:
        return PurchaseResult(success=False, reason=reservation.reason, item=item)

    try:
        _commit(engine, user_id, item)
    except IntegrityError:
        cause = REASON_ALREADY_OWNED
    except SQLAlchemyError:
        logger.exception(
            "Ownership write failed: user=%s item=%s", user_id, item.slug
        )
        cause = REASON_PURCHASE_FAILED
    else:
        logger.info(
            "User %s bought %s for %d points (remaining %d)",
            user_id, item.slug, item.price, reservation.remaining,
        )
        return PurchaseResult(
            success=True,
            remaining_points=reservation.remaining,
            item=item,
        )

    balance = _compensate(engine, user_id, item, reservation.debit_id, cause)
    # An unrefunded debit is a failure whatever caused the rollback
    return PurchaseResult(
        success=False,
        reason=REASON_PURCHASE_FAILED if balance is None else cause,
        remaining_points=balance,
        item=item,
    )
