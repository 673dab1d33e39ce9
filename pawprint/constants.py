"""
pawprint.constants — Shared Constants & Helpers
================================================

Single source of truth for economy limits, labels, and the point level
table.  Import from here instead of duplicating in services and routes.
"""

from __future__ import annotations

from pawprint.database.models import ActionType

# ---------------------------------------------------------------------------
# Ledger limits
# ---------------------------------------------------------------------------
ADMIN_AWARD_MAX = 1_000_000

HISTORY_PAGE_SIZE = 20
HISTORY_MAX_PAGE_SIZE = 50

LEADERBOARD_SIZE = 20
LEADERBOARD_MAX_SIZE = 100

# Actions a signed-in client may trigger directly via POST /points/award.
# Everything else is awarded server-side (daily check, admin grants, ...).
CLIENT_ACTIONS: frozenset[ActionType] = frozenset({
    ActionType.PET_REGISTRATION,
    ActionType.TIMELINE_ENTRY,
    ActionType.PHOTO_UPLOAD,
    ActionType.WRITE_COMMENT,
})

# ---------------------------------------------------------------------------
# Inventory
# ---------------------------------------------------------------------------
MAX_EQUIPPED_ACCESSORIES = 3

# ---------------------------------------------------------------------------
# Presentation
# ---------------------------------------------------------------------------
ACTION_LABELS: dict[str, str] = {
    ActionType.DAILY_LOGIN: "Daily check-in",
    ActionType.WRITE_POST: "Wrote a post",
    ActionType.WRITE_COMMENT: "Wrote a comment",
    ActionType.RECEIVE_LIKE: "Received a like",
    ActionType.AI_CHAT: "AI pet talk",
    ActionType.PET_REGISTRATION: "Registered a pet",
    ActionType.TIMELINE_ENTRY: "Timeline entry",
    ActionType.PHOTO_UPLOAD: "Uploaded a photo",
    ActionType.WRITE_GUESTBOOK: "Signed a guestbook",
    ActionType.RECEIVE_GUESTBOOK: "Guestbook visit",
    ActionType.ADMIN_AWARD: "Admin grant",
    ActionType.ITEM_PURCHASE: "Shop purchase",
    ActionType.PURCHASE_REFUND: "Purchase refund",
}


# ---------------------------------------------------------------------------
# Point levels: minimum balance per level
# ---------------------------------------------------------------------------
POINT_LEVELS: list[int] = [0, 100, 500, 3_000, 10_000, 30_000, 100_000]


def level_for_points(points: int) -> int:
    """Return the 1-based level a balance of *points* sits at."""
    level = 1
    for idx, min_points in enumerate(POINT_LEVELS):
        if points >= min_points:
            level = idx + 1
    return level


def format_points(points: int) -> str:
    """Format a balance for display, e.g. ``1,234P``."""
    return f"{points:,}P"
