"""
pawprint.services.points_service — Points Ledger
=================================================

Owns the authoritative point balance and the append-only transaction log.

Every credit (client action, daily check-in, admin grant) goes through one
primitive, :func:`_apply_award`, which runs three statements inside a single
database transaction:

  1. ``UPDATE users SET points = points + v … RETURNING`` — locks the user
     row and applies the credit.
  2. A conditional upsert on ``point_award_counters`` — the cap / one-time
     gate.  ``ON CONFLICT … DO UPDATE … WHERE total + v <= cap`` returns no
     row when the award would break the rule, and the whole transaction is
     rolled back.
  3. ``INSERT`` of the PointTransaction.

No value is read and then written back, so two concurrent awards for the
same user and action can never both pass the gate.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import TYPE_CHECKING, Any
from zoneinfo import ZoneInfo

from sqlalchemy import func, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from pawprint.constants import (
    ADMIN_AWARD_MAX,
    HISTORY_MAX_PAGE_SIZE,
    HISTORY_PAGE_SIZE,
    LEADERBOARD_MAX_SIZE,
    LEADERBOARD_SIZE,
    level_for_points,
)
from pawprint.database.engine import get_session
from pawprint.database.models import (
    ActionType,
    PointAwardCounter,
    PointTransaction,
    User,
)
from pawprint.engine.actions import ActionRule, admin_rule, period_key, resolve_rule

if TYPE_CHECKING:
    from sqlalchemy import Engine

logger = logging.getLogger(__name__)

DEFAULT_TIMEZONE = "Asia/Seoul"

REASON_ALREADY_AWARDED = "already_awarded"
REASON_DAILY_CAP = "daily_cap_reached"
REASON_USER_NOT_FOUND = "user_not_found"


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------
@dataclass
class AwardResult:
    """Outcome of one award attempt."""

    success: bool
    action_type: str
    reason: str | None = None
    points_awarded: int = 0
    new_balance: int = 0
    total_earned: int = 0


@dataclass(frozen=True, slots=True)
class BalanceView:
    user_id: str
    points: int
    total_earned: int
    rank: int
    level: int


@dataclass(frozen=True, slots=True)
class LeaderboardEntry:
    rank: int
    user_id: str
    nickname: str
    points: int


@dataclass
class HistoryPage:
    transactions: list[PointTransaction] = field(default_factory=list)
    total: int = 0
    has_more: bool = False


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def ledger_today(tz_name: str = DEFAULT_TIMEZONE) -> date:
    """Current calendar day in the ledger timezone (caps reset at midnight)."""
    return datetime.now(ZoneInfo(tz_name)).date()


def _upsert(session: Session):
    """Dialect-specific ``INSERT`` supporting ``ON CONFLICT``."""
    dialect = session.get_bind().dialect.name
    if dialect == "postgresql":
        return postgresql.insert
    if dialect == "sqlite":
        return sqlite.insert
    raise RuntimeError(f"Conditional upsert not supported on {dialect!r}")


def _credit_balance(session: Session, user_id: str, points: int) -> tuple[int, int] | None:
    """Add *points* to the balance and lifetime total; return both or None."""
    row = session.execute(
        update(User)
        .where(User.id == user_id)
        .values(
            points=User.points + points,
            total_points_earned=User.total_points_earned + points,
        )
        .returning(User.points, User.total_points_earned)
        .execution_options(synchronize_session=False)
    ).one_or_none()
    if row is None:
        return None
    return row[0], row[1]


def _claim_counter(
    session: Session, user_id: str, rule: ActionRule, period: str, cap: int
) -> int | None:
    """Atomically add ``rule.points`` to the period counter if it stays ≤ *cap*.

    Returns the new total, or ``None`` when the conditional update matched
    nothing (cap reached / already awarded).
    """
    insert = _upsert(session)
    stmt = insert(PointAwardCounter).values(
        user_id=user_id,
        action_type=str(rule.action_type),
        period=period,
        total=rule.points,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=[
            PointAwardCounter.user_id,
            PointAwardCounter.action_type,
            PointAwardCounter.period,
        ],
        set_={"total": PointAwardCounter.total + rule.points},
        where=(PointAwardCounter.total + rule.points) <= cap,
    ).returning(PointAwardCounter.total)
    return session.execute(stmt).scalar_one_or_none()


def _current_balance(session: Session, user_id: str) -> tuple[int, int]:
    row = session.execute(
        select(User.points, User.total_points_earned).where(User.id == user_id)
    ).one_or_none()
    if row is None:
        return 0, 0
    return row[0], row[1]


def _rejected(session: Session, user_id: str, rule: ActionRule, reason: str) -> AwardResult:
    points, total = _current_balance(session, user_id)
    return AwardResult(
        success=False,
        action_type=str(rule.action_type),
        reason=reason,
        new_balance=points,
        total_earned=total,
    )


# ---------------------------------------------------------------------------
# Award primitive
# ---------------------------------------------------------------------------
def _apply_award(
    engine: Engine,
    user_id: str,
    rule: ActionRule,
    metadata: dict[str, Any] | None,
    *,
    today: date,
) -> AwardResult:
    gate_reason = REASON_ALREADY_AWARDED if rule.one_time else REASON_DAILY_CAP
    cap = rule.points if rule.one_time else rule.daily_cap

    with Session(engine) as session:
        # A single award bigger than the whole cap can never fit.
        if cap is not None and rule.points > cap:
            return _rejected(session, user_id, rule, gate_reason)

        try:
            credited = _credit_balance(session, user_id, rule.points)
            if credited is None:
                session.rollback()
                return AwardResult(
                    success=False,
                    action_type=str(rule.action_type),
                    reason=REASON_USER_NOT_FOUND,
                )

            if cap is not None:
                period = period_key(rule, today)
                if _claim_counter(session, user_id, rule, period, cap) is None:
                    session.rollback()
                    return _rejected(session, user_id, rule, gate_reason)

            session.add(PointTransaction(
                user_id=user_id,
                action_type=str(rule.action_type),
                points_delta=rule.points,
                metadata_=metadata or None,
            ))
            session.commit()
        except SQLAlchemyError:
            logger.exception(
                "Point award failed (user=%s action=%s points=%d)",
                user_id, rule.action_type, rule.points,
            )
            raise

    new_balance, total_earned = credited
    return AwardResult(
        success=True,
        action_type=str(rule.action_type),
        points_awarded=rule.points,
        new_balance=new_balance,
        total_earned=total_earned,
    )


# ---------------------------------------------------------------------------
# Public API: mutations
# ---------------------------------------------------------------------------
def award(
    engine: Engine,
    user_id: str,
    action_type: str,
    metadata: dict[str, Any] | None = None,
    *,
    today: date | None = None,
) -> AwardResult:
    """Credit the fixed point value of *action_type* to *user_id*.

    Raises :class:`~pawprint.engine.actions.InvalidActionError` for unknown
    action types.  Cap and one-time rejections are returned, not raised.
    """
    rule = resolve_rule(action_type)
    return _apply_award(engine, user_id, rule, metadata, today=today or ledger_today())


def daily_check(engine: Engine, user_id: str, *, today: date | None = None) -> AwardResult:
    """Daily check-in: at most one successful credit per calendar day."""
    return award(engine, user_id, ActionType.DAILY_LOGIN, today=today)


def award_admin(
    engine: Engine,
    target_user_id: str,
    points: int,
    *,
    admin_id: str,
    admin_email: str | None = None,
    reason: str | None = None,
    max_points: int = ADMIN_AWARD_MAX,
    today: date | None = None,
) -> AwardResult:
    """Grant an explicit amount to a user (admin dashboard).

    No daily cap and repeats are allowed, but the amount is bounded to
    ``1 ≤ points ≤ max_points``; out-of-range values raise ``ValueError``.
    """
    rule = admin_rule(points, max_points)
    metadata = {
        "awarded_by": admin_id,
        "awarded_by_email": admin_email or "",
        "reason": reason or "Admin grant",
    }
    result = _apply_award(
        engine, target_user_id, rule, metadata, today=today or ledger_today()
    )
    if result.success:
        logger.info(
            "Admin %s granted %d points to %s (balance now %d)",
            admin_id, points, target_user_id, result.new_balance,
        )
    return result


def register_user(
    engine: Engine,
    user_id: str,
    nickname: str | None = None,
    email: str | None = None,
    *,
    is_admin: bool = False,
) -> User:
    """Create the balance row for a new member (``points=0``).

    Idempotent: an existing row is returned untouched apart from the
    nickname/email refresh.
    """
    with get_session(engine) as session:
        user = session.get(User, user_id)
        if user is None:
            user = User(
                id=user_id,
                nickname=nickname,
                email=email,
                is_admin=is_admin,
                points=0,
                total_points_earned=0,
                equipped_accessory_slugs=[],
            )
            session.add(user)
        else:
            if nickname:
                user.nickname = nickname
            if email:
                user.email = email
        session.flush()
        session.refresh(user)
        session.expunge(user)
        return user


# ---------------------------------------------------------------------------
# Public API: projections
# ---------------------------------------------------------------------------
def get_balance(engine: Engine, user_id: str) -> BalanceView | None:
    """Current balance, lifetime earnings and leaderboard rank."""
    with Session(engine) as session:
        row = session.execute(
            select(User.points, User.total_points_earned).where(User.id == user_id)
        ).one_or_none()
        if row is None:
            return None
        points, total = row
        higher = session.scalar(
            select(func.count()).select_from(User).where(User.points > points)
        ) or 0
    return BalanceView(
        user_id=user_id,
        points=points,
        total_earned=total,
        rank=higher + 1,
        level=level_for_points(points),
    )


def get_leaderboard(engine: Engine, limit: int = LEADERBOARD_SIZE) -> list[LeaderboardEntry]:
    """Top balances, descending; ties fall back to user id order."""
    limit = max(1, min(limit, LEADERBOARD_MAX_SIZE))
    with Session(engine) as session:
        rows = session.execute(
            select(User.id, User.nickname, User.points)
            .where(User.points > 0)
            .order_by(User.points.desc(), User.id)
            .limit(limit)
        ).all()
    return [
        LeaderboardEntry(
            rank=idx + 1,
            user_id=row.id,
            nickname=row.nickname or "Anonymous",
            points=row.points,
        )
        for idx, row in enumerate(rows)
    ]


def get_history(
    engine: Engine,
    user_id: str,
    limit: int = HISTORY_PAGE_SIZE,
    offset: int = 0,
) -> HistoryPage:
    """One page of the user's transactions, newest first."""
    limit = max(1, min(limit, HISTORY_MAX_PAGE_SIZE))
    offset = max(0, offset)
    with Session(engine) as session:
        total = session.scalar(
            select(func.count())
            .select_from(PointTransaction)
            .where(PointTransaction.user_id == user_id)
        ) or 0
        rows = session.scalars(
            select(PointTransaction)
            .where(PointTransaction.user_id == user_id)
            .order_by(PointTransaction.created_at.desc(), PointTransaction.id.desc())
            .offset(offset)
            .limit(limit)
        ).all()
        session.expunge_all()
    return HistoryPage(
        transactions=list(rows),
        total=total,
        has_more=(offset + limit) < total,
    )
