"""Initial points economy schema

Revision ID: 0001a7c3e9b2
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "0001a7c3e9b2"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Create users, point_transactions, owned_items and point_award_counters."""
    op.create_table(
        "users",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("nickname", sa.String(50), nullable=True),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("is_admin", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("points", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_points_earned", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("equipped_character_slug", sa.String(64), nullable=True),
        sa.Column(
            "equipped_accessory_slugs",
            postgresql.JSONB(),
            nullable=True,
            server_default=sa.text("'[]'::jsonb"),
        ),
        sa.Column("equipped_background_slug", sa.String(64), nullable=True),
        sa.Column("equipped_payload", postgresql.JSONB(), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.CheckConstraint("points >= 0", name="ck_users_points_non_negative"),
    )
    op.create_index("ix_users_points_desc", "users", ["points"])

    op.create_table(
        "point_transactions",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column(
            "user_id",
            sa.String(64),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("action_type", sa.String(50), nullable=False),
        sa.Column("points_delta", sa.Integer(), nullable=False),
        sa.Column("metadata", postgresql.JSONB(), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
    )
    op.create_index(
        "ix_point_tx_user_time", "point_transactions", ["user_id", "created_at"]
    )
    op.create_index(
        "ix_point_tx_user_action", "point_transactions", ["user_id", "action_type"]
    )

    op.create_table(
        "owned_items",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column(
            "user_id",
            sa.String(64),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("item_slug", sa.String(64), nullable=False),
        sa.Column("category", sa.String(20), nullable=False),
        sa.Column("purchase_price", sa.Integer(), nullable=False),
        sa.Column(
            "purchased_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.UniqueConstraint("user_id", "item_slug", name="uq_owned_items_user_slug"),
    )

    op.create_table(
        "point_award_counters",
        sa.Column(
            "user_id",
            sa.String(64),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column("action_type", sa.String(50), primary_key=True),
        sa.Column("period", sa.String(16), primary_key=True),
        sa.Column("total", sa.Integer(), nullable=False, server_default="0"),
    )


def downgrade() -> None:
    """Drop the points economy tables."""
    op.drop_table("point_award_counters")
    op.drop_table("owned_items")
    op.drop_index("ix_point_tx_user_action", table_name="point_transactions")
    op.drop_index("ix_point_tx_user_time", table_name="point_transactions")
    op.drop_table("point_transactions")
    op.drop_index("ix_users_points_desc", table_name="users")
    op.drop_table("users")
