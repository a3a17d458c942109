"""Learned drop timing per (restaurant, platform). confidence == success_count / attempt_count."""
from sqlalchemy import Column, DateTime, Float, Integer, String, Text, UniqueConstraint
from sqlalchemy.sql import func

from dropsniper.db.base import Base


class ConfirmedDropPattern(Base):
    __tablename__ = "confirmed_drop_patterns"

    id = Column(Integer, primary_key=True, autoincrement=True)
    restaurant_name = Column(String(255), nullable=False, index=True)
    platform = Column(String(32), nullable=False)
    lead_days = Column(Integer, nullable=True)          # reservation date - drop date
    drop_time = Column(String(8), nullable=True)       # HH:MM local
    drop_timezone = Column(String(64), nullable=True)
    success_count = Column(Integer, nullable=False, default=0)
    attempt_count = Column(Integer, nullable=False, default=0)
    confidence = Column(Float, nullable=False, default=0.0)
    last_confirmed_at = Column(DateTime(timezone=True), nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (UniqueConstraint("restaurant_name", "platform", name="uq_drop_pattern_restaurant_platform"),)
