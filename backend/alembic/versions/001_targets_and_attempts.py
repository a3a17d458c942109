"""Targets and acquisition attempt log

Revision ID: 001
Revises:
Create Date: (run alembic upgrade head)

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "targets",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("restaurant_name", sa.String(255), nullable=False),
        sa.Column("platform", sa.String(32), nullable=False),
        sa.Column("drop_date", sa.String(10), nullable=True),
        sa.Column("drop_time", sa.String(8), nullable=True),
        sa.Column("drop_timezone", sa.String(64), nullable=True),
        sa.Column("target_date", sa.String(10), nullable=True),
        sa.Column("preferred_time", sa.String(8), nullable=True),
        sa.Column("party_size", sa.Integer(), nullable=False),
        sa.Column("resy_venue_id", sa.Integer(), nullable=True),
        sa.Column("opentable_id", sa.Integer(), nullable=True),
        sa.Column("sevenrooms_slug", sa.String(128), nullable=True),
        sa.Column("tock_slug", sa.String(128), nullable=True),
        sa.Column("status", sa.String(32), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_targets_status", "targets", ["status"], unique=False)

    op.create_table(
        "acquisition_attempts",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("target_id", sa.String(64), nullable=True),
        sa.Column("restaurant_name", sa.String(255), nullable=False),
        sa.Column("platform", sa.String(32), nullable=False),
        sa.Column("target_date", sa.String(10), nullable=True),
        sa.Column("target_time", sa.String(8), nullable=True),
        sa.Column("party_size", sa.Integer(), nullable=True),
        sa.Column("success", sa.Boolean(), nullable=False),
        sa.Column("attempts", sa.Integer(), nullable=False),
        sa.Column("duration_ms", sa.Integer(), nullable=True),
        sa.Column("confirmation_code", sa.String(128), nullable=True),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("error_kind", sa.String(32), nullable=True),
        sa.Column("trigger_type", sa.String(16), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_acquisition_attempts_id", "acquisition_attempts", ["id"], unique=False)
    op.create_index("ix_acquisition_attempts_target_id", "acquisition_attempts", ["target_id"], unique=False)
    op.create_index(
        "ix_acquisition_attempts_restaurant_name", "acquisition_attempts", ["restaurant_name"], unique=False
    )
    op.create_index("ix_acquisition_attempts_created_at", "acquisition_attempts", ["created_at"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_acquisition_attempts_created_at", table_name="acquisition_attempts")
    op.drop_index("ix_acquisition_attempts_restaurant_name", table_name="acquisition_attempts")
    op.drop_index("ix_acquisition_attempts_target_id", table_name="acquisition_attempts")
    op.drop_index("ix_acquisition_attempts_id", table_name="acquisition_attempts")
    op.drop_table("acquisition_attempts")
    op.drop_index("ix_targets_status", table_name="targets")
    op.drop_table("targets")
