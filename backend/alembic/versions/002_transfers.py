"""Transfers: resale lifecycle of acquired reservations

Revision ID: 002
Revises: 001
Create Date: (run alembic upgrade head)

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "002"
down_revision: Union[str, None] = "001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "transfers",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "target_id",
            sa.String(64),
            sa.ForeignKey("targets.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("restaurant_name", sa.String(255), nullable=False),
        sa.Column("platform", sa.String(32), nullable=False),
        sa.Column("reservation_date", sa.String(10), nullable=False),
        sa.Column("reservation_time", sa.String(8), nullable=False),
        sa.Column("reservation_timezone", sa.String(64), nullable=True),
        sa.Column("party_size", sa.Integer(), nullable=False),
        sa.Column("confirmation_number", sa.String(128), nullable=True),
        sa.Column("listing_id", sa.String(128), nullable=True),
        sa.Column("listing_url", sa.Text(), nullable=True),
        sa.Column("listing_price", sa.Numeric(10, 2), nullable=True),
        sa.Column("buyer_name", sa.String(255), nullable=True),
        sa.Column("buyer_email", sa.String(255), nullable=True),
        sa.Column("buyer_phone", sa.String(32), nullable=True),
        sa.Column("sale_price", sa.Numeric(10, 2), nullable=True),
        sa.Column("sold_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("status", sa.String(32), nullable=False),
        sa.Column("transfer_method", sa.String(32), nullable=True),
        sa.Column("transfer_deadline", sa.DateTime(timezone=True), nullable=True),
        sa.Column("transfer_completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_transfers_target_id", "transfers", ["target_id"], unique=False)
    op.create_index("ix_transfers_status", "transfers", ["status"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_transfers_status", table_name="transfers")
    op.drop_index("ix_transfers_target_id", table_name="transfers")
    op.drop_table("transfers")
