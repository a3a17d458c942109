"""Resale lifecycle of an acquired reservation: ACQUIRED -> ... -> COMPLETED."""
from enum import Enum

from sqlalchemy import Column, DateTime, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.sql import func

from dropsniper.db.base import Base


class TransferStatus(str, Enum):
    ACQUIRED = "ACQUIRED"
    LISTED = "LISTED"
    SOLD = "SOLD"
    TRANSFER_PENDING = "TRANSFER_PENDING"
    TRANSFERRED = "TRANSFERRED"
    COMPLETED = "COMPLETED"


class TransferMethod(str, Enum):
    NAME_CHANGE = "NAME_CHANGE"
    CANCEL_REBOOK = "CANCEL_REBOOK"
    PLATFORM_TRANSFER = "PLATFORM_TRANSFER"
    SHOW_UP_TOGETHER = "SHOW_UP_TOGETHER"


class Transfer(Base):
    __tablename__ = "transfers"

    id = Column(Integer, primary_key=True, autoincrement=True)
    target_id = Column(String(64), ForeignKey("targets.id", ondelete="SET NULL"), nullable=True, index=True)

    # Reservation details (denormalized so the transfer survives target deletion)
    restaurant_name = Column(String(255), nullable=False)
    platform = Column(String(32), nullable=False)
    reservation_date = Column(String(10), nullable=False)
    reservation_time = Column(String(8), nullable=False)
    reservation_timezone = Column(String(64), nullable=True)
    party_size = Column(Integer, nullable=False)
    confirmation_number = Column(String(128), nullable=True)

    # Resale listing
    listing_id = Column(String(128), nullable=True)
    listing_url = Column(Text, nullable=True)
    listing_price = Column(Numeric(10, 2, asdecimal=False), nullable=True)

    # Buyer (filled when sold)
    buyer_name = Column(String(255), nullable=True)
    buyer_email = Column(String(255), nullable=True)
    buyer_phone = Column(String(32), nullable=True)
    sale_price = Column(Numeric(10, 2, asdecimal=False), nullable=True)
    sold_at = Column(DateTime(timezone=True), nullable=True)

    status = Column(String(32), nullable=False, default=TransferStatus.ACQUIRED.value, index=True)
    transfer_method = Column(String(32), nullable=True)
    transfer_deadline = Column(DateTime(timezone=True), nullable=True)  # reservation instant - 24h
    transfer_completed_at = Column(DateTime(timezone=True), nullable=True)
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
