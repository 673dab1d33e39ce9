"""
pawprint.engine.actions — Point values, daily caps & one-time rules
====================================================================

Pure lookup tables and helpers; no DB I/O.  Every credit the ledger makes
is described by an :class:`ActionRule`.  Regular actions take theirs from
:data:`ACTION_RULES`; admin grants build one on the fly with
:func:`admin_rule` so both paths share a single award primitive.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date

from pawprint.constants import ADMIN_AWARD_MAX
from pawprint.database.models import ActionType

__all__ = [
    "ACTION_RULES",
    "ActionRule",
    "InvalidActionError",
    "LIFETIME_PERIOD",
    "admin_rule",
    "period_key",
    "resolve_rule",
]

LIFETIME_PERIOD = "lifetime"


class InvalidActionError(ValueError):
    """Raised for an action type with no configured point value."""


@dataclass(frozen=True, slots=True)
class ActionRule:
    """How much one award of an action is worth and how often it may happen.

    ``daily_cap`` is a ceiling on the *points* credited per calendar day
    (``None`` = no cap).  ``one_time`` actions credit at most once per user.
    """

    action_type: str
    points: int
    daily_cap: int | None = None
    one_time: bool = False

    @property
    def gated(self) -> bool:
        return self.one_time or self.daily_cap is not None


# ---------------------------------------------------------------------------
# Point table: points per award, daily cap in points, one-time flag
# ---------------------------------------------------------------------------
ACTION_RULES: dict[ActionType, ActionRule] = {
    rule.action_type: rule
    for rule in (
        ActionRule(ActionType.DAILY_LOGIN, 10, daily_cap=10),
        ActionRule(ActionType.WRITE_POST, 10, daily_cap=50),
        ActionRule(ActionType.WRITE_COMMENT, 3, daily_cap=150),
        ActionRule(ActionType.RECEIVE_LIKE, 2),
        ActionRule(ActionType.AI_CHAT, 1, daily_cap=10),
        ActionRule(ActionType.PET_REGISTRATION, 50, one_time=True),
        ActionRule(ActionType.TIMELINE_ENTRY, 5, daily_cap=50),
        ActionRule(ActionType.PHOTO_UPLOAD, 3, daily_cap=30),
        ActionRule(ActionType.WRITE_GUESTBOOK, 3, daily_cap=90),
        ActionRule(ActionType.RECEIVE_GUESTBOOK, 2),
    )
}


def resolve_rule(action_type: str) -> ActionRule:
    """Look up the rule for a regular (non-admin) action.

    Raises
    ------
    InvalidActionError
        If *action_type* is unknown or has no fixed point value.
    """
    try:
        return ACTION_RULES[ActionType(action_type)]
    except (ValueError, KeyError):
        raise InvalidActionError(f"Unknown action type: {action_type!r}") from None


def admin_rule(points: int, max_points: int = ADMIN_AWARD_MAX) -> ActionRule:
    """Build the uncapped, repeatable rule for an admin grant of *points*."""
    if isinstance(points, bool) or not isinstance(points, int):
        raise ValueError("Admin award must be an integer number of points")
    if points < 1 or points > max_points:
        raise ValueError(f"Admin award must be between 1 and {max_points:,} points")
    return ActionRule(ActionType.ADMIN_AWARD, points)


def period_key(rule: ActionRule, today: date) -> str:
    """Counter period an award of *rule* falls into."""
    if rule.one_time:
        return LIFETIME_PERIOD
    return today.isoformat()
