"""
pawprint.database.models — SQLAlchemy 2.0 Data Models
======================================================

Tables:
- users                 — Member balance + denormalized equipped snapshot
- point_transactions    — Append-only points journal
- owned_items           — Purchased catalogue items (one row per user+slug)
- point_award_counters  — Per-period award totals used as the cap/one-time gate
"""

from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


# ---------------------------------------------------------------------------
# Base
# ---------------------------------------------------------------------------
class Base(DeclarativeBase):
    """Shared base for all Pawprint ORM models."""


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class ActionType(enum.StrEnum):
    """Every action that can move a user's point balance."""
    DAILY_LOGIN = "daily_login"
    WRITE_POST = "write_post"
    WRITE_COMMENT = "write_comment"
    RECEIVE_LIKE = "receive_like"
    AI_CHAT = "ai_chat"
    PET_REGISTRATION = "pet_registration"
    TIMELINE_ENTRY = "timeline_entry"
    PHOTO_UPLOAD = "photo_upload"
    WRITE_GUESTBOOK = "write_guestbook"
    RECEIVE_GUESTBOOK = "receive_guestbook"
    ADMIN_AWARD = "admin_award"
    # Debits and their compensations (written by the purchase coordinator)
    ITEM_PURCHASE = "item_purchase"
    PURCHASE_REFUND = "purchase_refund"


class ItemCategory(enum.StrEnum):
    """Catalogue slots an item can occupy."""
    CHARACTER = "character"
    ACCESSORY = "accessory"
    BACKGROUND = "background"


# ---------------------------------------------------------------------------
# Users: one row per member, owns the point balance
# ---------------------------------------------------------------------------
class User(Base):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)  # auth provider id
    nickname: Mapped[str | None] = mapped_column(String(50), default=None)
    email: Mapped[str | None] = mapped_column(String(255), default=None)
    is_admin: Mapped[bool] = mapped_column(Boolean, default=False)
    points: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_points_earned: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Equipped snapshot: read cache only, owned_items is authoritative
    equipped_character_slug: Mapped[str | None] = mapped_column(String(64), default=None)
    equipped_accessory_slugs: Mapped[list | None] = mapped_column(JSONB, default=list)
    equipped_background_slug: Mapped[str | None] = mapped_column(String(64), default=None)
    equipped_payload: Mapped[dict | None] = mapped_column(JSONB, default=None)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    # Relationships
    transactions: Mapped[list[PointTransaction]] = relationship(
        back_populates="user", cascade="all, delete-orphan"
    )
    owned_items: Mapped[list[OwnedItem]] = relationship(
        back_populates="user", cascade="all, delete-orphan"
    )

    __table_args__ = (
        CheckConstraint("points >= 0", name="ck_users_points_non_negative"),
        Index("ix_users_points_desc", "points"),
    )

    def __repr__(self) -> str:
        return f"<User id={self.id!r} nickname={self.nickname!r} points={self.points}>"


# ---------------------------------------------------------------------------
# PointTransaction: append-only points journal
# ---------------------------------------------------------------------------
class PointTransaction(Base):
    __tablename__ = "point_transactions"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    action_type: Mapped[str] = mapped_column(String(50), nullable=False)
    points_delta: Mapped[int] = mapped_column(Integer, nullable=False)
    metadata_: Mapped[dict | None] = mapped_column("metadata", JSONB, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    user: Mapped[User] = relationship(back_populates="transactions")

    __table_args__ = (
        Index("ix_point_tx_user_time", "user_id", "created_at"),
        Index("ix_point_tx_user_action", "user_id", "action_type"),
    )

    def __repr__(self) -> str:
        return (
            f"<PointTransaction id={self.id} user={self.user_id!r} "
            f"type={self.action_type} delta={self.points_delta}>"
        )


# ---------------------------------------------------------------------------
# OwnedItem: purchased catalogue items
# ---------------------------------------------------------------------------
class OwnedItem(Base):
    """A catalogue item a user has paid for.

    Created only as the second half of a successful purchase.  The unique
    constraint on (user_id, item_slug) is the tie-breaker between two
    concurrent purchases of the same item.
    """
    __tablename__ = "owned_items"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    item_slug: Mapped[str] = mapped_column(String(64), nullable=False)
    category: Mapped[str] = mapped_column(String(20), nullable=False)
    purchase_price: Mapped[int] = mapped_column(Integer, nullable=False)
    purchased_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    user: Mapped[User] = relationship(back_populates="owned_items")

    __table_args__ = (
        UniqueConstraint("user_id", "item_slug", name="uq_owned_items_user_slug"),
    )

    def __repr__(self) -> str:
        return f"<OwnedItem user={self.user_id!r} slug={self.item_slug!r}>"


# ---------------------------------------------------------------------------
# PointAwardCounter: running award totals per period
# ---------------------------------------------------------------------------
class PointAwardCounter(Base):
    """Running total of points credited per (user, action, period).

    ``period`` is a calendar day (``YYYY-MM-DD``) for capped actions and
    ``"lifetime"`` for one-time actions.  Written in the same transaction as
    the matching PointTransaction, so it never drifts from the journal.
    """
    __tablename__ = "point_award_counters"

    user_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    action_type: Mapped[str] = mapped_column(String(50), primary_key=True)
    period: Mapped[str] = mapped_column(String(16), primary_key=True)
    total: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    def __repr__(self) -> str:
        return (
            f"<PointAwardCounter user={self.user_id!r} type={self.action_type!r} "
            f"period={self.period!r} total={self.total}>"
        )
