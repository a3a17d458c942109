"""Confirmed drop patterns learned per (restaurant, platform)

Revision ID: 003
Revises: 002
Create Date: (run alembic upgrade head)

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "003"
down_revision: Union[str, None] = "002"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "confirmed_drop_patterns",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("restaurant_name", sa.String(255), nullable=False),
        sa.Column("platform", sa.String(32), nullable=False),
        sa.Column("lead_days", sa.Integer(), nullable=True),
        sa.Column("drop_time", sa.String(8), nullable=True),
        sa.Column("drop_timezone", sa.String(64), nullable=True),
        sa.Column("success_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("attempt_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("confidence", sa.Float(), nullable=False, server_default="0"),
        sa.Column("last_confirmed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("restaurant_name", "platform", name="uq_drop_pattern_restaurant_platform"),
    )
    op.create_index(
        "ix_confirmed_drop_patterns_restaurant_name",
        "confirmed_drop_patterns",
        ["restaurant_name"],
        unique=False,
    )


def downgrade() -> None:
    op.drop_index("ix_confirmed_drop_patterns_restaurant_name", table_name="confirmed_drop_patterns")
    op.drop_table("confirmed_drop_patterns")
