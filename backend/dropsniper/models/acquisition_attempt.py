"""Append-only log of acquisition runs (drop-time or manual), success or failure."""
from sqlalchemy import Boolean, Column, DateTime, Integer, String, Text
from sqlalchemy.sql import func

from dropsniper.db.base import Base


class AcquisitionAttempt(Base):
    __tablename__ = "acquisition_attempts"

    id = Column(Integer, primary_key=True, index=True)
    target_id = Column(String(64), nullable=True, index=True)
    restaurant_name = Column(String(255), nullable=False, index=True)
    platform = Column(String(32), nullable=False)
    target_date = Column(String(10), nullable=True)
    target_time = Column(String(8), nullable=True)
    party_size = Column(Integer, nullable=True)
    success = Column(Boolean, nullable=False)
    attempts = Column(Integer, nullable=False, default=0)  # attempts actually consumed
    duration_ms = Column(Integer, nullable=True)
    confirmation_code = Column(String(128), nullable=True)
    error_message = Column(Text, nullable=True)  # null if success; last error if failed
    error_kind = Column(String(32), nullable=True)
    trigger_type = Column(String(16), nullable=False)  # drop_time | manual
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)
