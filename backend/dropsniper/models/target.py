"""Tracked reservation targets. The scheduler reads WATCHING rows and writes status back."""
from enum import Enum

from sqlalchemy import Column, DateTime, Integer, String, Text
from sqlalchemy.sql import func

from dropsniper.db.base import Base


class TargetStatus(str, Enum):
    WATCHING = "WATCHING"
    ACQUIRED = "ACQUIRED"
    PENDING_CONFIRMATION = "PENDING_CONFIRMATION"
    FAILED = "FAILED"


class Target(Base):
    __tablename__ = "targets"

    id = Column(String(64), primary_key=True)
    restaurant_name = Column(String(255), nullable=False)
    platform = Column(String(32), nullable=False)  # resy | opentable | sevenrooms | tock
    drop_date = Column(String(10), nullable=True)      # YYYY-MM-DD when inventory releases; null on legacy rows
    drop_time = Column(String(8), nullable=True)       # HH:MM local to drop_timezone
    drop_timezone = Column(String(64), nullable=True)  # IANA, e.g. America/New_York
    target_date = Column(String(10), nullable=True)    # YYYY-MM-DD of the reservation to book
    preferred_time = Column(String(8), nullable=True)  # HH:MM
    party_size = Column(Integer, nullable=False, default=2)

    # Platform-specific venue identifiers (only the one matching `platform` is used)
    resy_venue_id = Column(Integer, nullable=True)
    opentable_id = Column(Integer, nullable=True)
    sevenrooms_slug = Column(String(128), nullable=True)
    tock_slug = Column(String(128), nullable=True)

    status = Column(String(32), nullable=False, default=TargetStatus.WATCHING.value, index=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
