"""
Pattern store: append-only acquisition attempt log plus the confirmed drop pattern per
(restaurant, platform).

Every recorded attempt bumps attempt_count (and success_count on success) and recomputes
confidence = success_count / attempt_count in the same transaction. Drop timing (lead days
and local drop time) follows successful acquisitions until the pattern has
PATTERN_LOCK_AFTER_SUCCESSES successes, then stays put.
"""
import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable

from dropsniper.core.constants import PATTERN_LOCK_AFTER_SUCCESSES
from dropsniper.core.drop_time import lead_days, parse_clock_time, parse_date
from dropsniper.core.errors import DropTimeError
from dropsniper.models.acquisition_attempt import AcquisitionAttempt
from dropsniper.models.drop_pattern import ConfirmedDropPattern
from dropsniper.platforms.types import Platform

logger = logging.getLogger(__name__)

TRIGGER_DROP_TIME = "drop_time"
TRIGGER_MANUAL = "manual"


@dataclass
class AttemptRecord:
    restaurant_name: str
    platform: str
    success: bool
    trigger_type: str = TRIGGER_DROP_TIME
    target_id: str | None = None
    target_date: str | None = None
    target_time: str | None = None
    party_size: int | None = None
    attempts: int = 0
    duration_ms: int | None = None
    confirmation_code: str | None = None
    error_message: str | None = None
    error_kind: str | None = None
    # Drop schedule the attempt ran against; feeds the learned pattern
    drop_date: str | None = None
    drop_time: str | None = None
    drop_timezone: str | None = None


def _ratio(successes: int, attempts: int) -> float:
    return successes / attempts if attempts else 0.0


def pattern_to_dict(row: ConfirmedDropPattern) -> dict:
    return {
        "id": row.id,
        "restaurant_name": row.restaurant_name,
        "platform": row.platform,
        "lead_days": row.lead_days,
        "drop_time": row.drop_time,
        "drop_timezone": row.drop_timezone,
        "success_count": row.success_count,
        "attempt_count": row.attempt_count,
        "confidence": row.confidence,
        "last_confirmed_at": row.last_confirmed_at.isoformat() if row.last_confirmed_at else None,
        "notes": row.notes,
    }


def attempt_to_dict(row: AcquisitionAttempt) -> dict:
    return {
        "id": row.id,
        "target_id": row.target_id,
        "restaurant_name": row.restaurant_name,
        "platform": row.platform,
        "target_date": row.target_date,
        "target_time": row.target_time,
        "party_size": row.party_size,
        "success": row.success,
        "attempts": row.attempts,
        "duration_ms": row.duration_ms,
        "confirmation_code": row.confirmation_code,
        "error_message": row.error_message,
        "error_kind": row.error_kind,
        "trigger_type": row.trigger_type,
        "created_at": row.created_at.isoformat() if row.created_at else None,
    }


class PatternStore:
    def __init__(self, session_factory, *, clock: Callable[[], datetime] | None = None):
        self._session_factory = session_factory
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        # Serializes the read-modify-write of pattern counters across worker threads
        self._lock = threading.Lock()

    def _learned_timing(self, record: AttemptRecord) -> tuple[int, str] | None:
        if not (record.drop_date and record.drop_time and record.target_date):
            return None
        try:
            clock = parse_clock_time(record.drop_time)
            days = lead_days(record.drop_date, record.target_date)
        except DropTimeError:
            return None
        return days, clock.strftime("%H:%M")

    def record_attempt(self, record: AttemptRecord) -> dict:
        """Append the attempt and upsert the pattern in one transaction. Returns the pattern."""
        platform = Platform.parse(record.platform).value
        with self._lock:
            db = self._session_factory()
            try:
                db.add(
                    AcquisitionAttempt(
                        target_id=record.target_id,
                        restaurant_name=record.restaurant_name,
                        platform=platform,
                        target_date=record.target_date,
                        target_time=record.target_time,
                        party_size=record.party_size,
                        success=record.success,
                        attempts=record.attempts,
                        duration_ms=record.duration_ms,
                        confirmation_code=record.confirmation_code,
                        error_message=None if record.success else record.error_message,
                        error_kind=None if record.success else record.error_kind,
                        trigger_type=record.trigger_type,
                    )
                )
                row = (
                    db.query(ConfirmedDropPattern)
                    .filter(
                        ConfirmedDropPattern.restaurant_name == record.restaurant_name,
                        ConfirmedDropPattern.platform == platform,
                    )
                    .first()
                )
                if row is None:
                    row = ConfirmedDropPattern(
                        restaurant_name=record.restaurant_name,
                        platform=platform,
                        success_count=0,
                        attempt_count=0,
                        confidence=0.0,
                        drop_timezone=record.drop_timezone,
                    )
                    db.add(row)
                if record.success:
                    timing = self._learned_timing(record)
                    if timing is not None and (row.success_count or 0) < PATTERN_LOCK_AFTER_SUCCESSES:
                        row.lead_days, row.drop_time = timing
                        row.drop_timezone = record.drop_timezone or row.drop_timezone
                    row.success_count = (row.success_count or 0) + 1
                    row.last_confirmed_at = self._clock()
                row.attempt_count = (row.attempt_count or 0) + 1
                row.confidence = _ratio(row.success_count, row.attempt_count)
                db.commit()
                db.refresh(row)
                logger.debug(
                    "Pattern %s/%s: %s/%s (confidence %.2f)",
                    row.restaurant_name,
                    row.platform,
                    row.success_count,
                    row.attempt_count,
                    row.confidence,
                )
                return pattern_to_dict(row)
            except Exception:
                db.rollback()
                raise
            finally:
                db.close()

    def get_pattern(self, restaurant_name: str, platform: str | None = None) -> dict | None:
        """Pattern for a restaurant; without a platform, the most confident one."""
        db = self._session_factory()
        try:
            q = db.query(ConfirmedDropPattern).filter(ConfirmedDropPattern.restaurant_name == restaurant_name)
            if platform:
                q = q.filter(ConfirmedDropPattern.platform == Platform.parse(platform).value)
            row = q.order_by(ConfirmedDropPattern.confidence.desc()).first()
            return pattern_to_dict(row) if row else None
        finally:
            db.close()

    def list_patterns(self) -> list[dict]:
        db = self._session_factory()
        try:
            rows = (
                db.query(ConfirmedDropPattern)
                .order_by(ConfirmedDropPattern.confidence.desc(), ConfirmedDropPattern.success_count.desc())
                .all()
            )
            return [pattern_to_dict(r) for r in rows]
        finally:
            db.close()

    def history(self, limit: int = 50, target_id: str | None = None) -> list[dict]:
        db = self._session_factory()
        try:
            q = db.query(AcquisitionAttempt)
            if target_id:
                q = q.filter(AcquisitionAttempt.target_id == target_id)
            rows = q.order_by(AcquisitionAttempt.created_at.desc(), AcquisitionAttempt.id.desc()).limit(limit).all()
            return [attempt_to_dict(r) for r in rows]
        finally:
            db.close()

    def success_stats(self) -> dict:
        """Overall, per-platform and per-restaurant (top 20) success rates as fractions."""
        db = self._session_factory()
        try:
            rows = db.query(AcquisitionAttempt.platform, AcquisitionAttempt.restaurant_name, AcquisitionAttempt.success).all()
        finally:
            db.close()
        by_platform: dict[str, list[int]] = {}
        by_restaurant: dict[str, list[int]] = {}
        total = successes = 0
        for platform, restaurant, success in rows:
            total += 1
            successes += 1 if success else 0
            for bucket, key in ((by_platform, platform), (by_restaurant, restaurant)):
                counts = bucket.setdefault(key, [0, 0])
                counts[0] += 1
                counts[1] += 1 if success else 0

        def _rows(bucket: dict[str, list[int]], label: str) -> list[dict]:
            out = [
                {label: key, "attempts": a, "successes": s, "rate": _ratio(s, a)}
                for key, (a, s) in bucket.items()
            ]
            return sorted(out, key=lambda r: (-r["attempts"], r[label]))

        return {
            "total_attempts": total,
            "successful_attempts": successes,
            "success_rate": _ratio(successes, total),
            "by_platform": _rows(by_platform, "platform"),
            "by_restaurant": _rows(by_restaurant, "restaurant_name")[:20],
        }

    def suggest_drop(self, restaurant_name: str, platform: str | None, target_date: str) -> dict | None:
        """Drop schedule for a reservation date from the learned pattern; None without timing."""
        pattern = self.get_pattern(restaurant_name, platform)
        if not pattern or pattern["lead_days"] is None or not pattern["drop_time"]:
            return None
        drop_date = parse_date(target_date) - timedelta(days=pattern["lead_days"])
        return {
            "drop_date": drop_date.isoformat(),
            "drop_time": pattern["drop_time"],
            "drop_timezone": pattern["drop_timezone"],
            "lead_days": pattern["lead_days"],
            "confidence": pattern["confidence"],
        }

    def add_pattern(
        self,
        restaurant_name: str,
        platform: str,
        *,
        lead_days: int | None,
        drop_time: str | None,
        drop_timezone: str | None = None,
        notes: str | None = None,
    ) -> dict:
        """Insert or overwrite a known schedule. Counters and confidence are left as recorded."""
        platform_value = Platform.parse(platform).value
        if drop_time:
            drop_time = parse_clock_time(drop_time).strftime("%H:%M")
        if lead_days is not None and lead_days < 0:
            raise ValueError("lead_days must be >= 0")
        with self._lock:
            db = self._session_factory()
            try:
                row = (
                    db.query(ConfirmedDropPattern)
                    .filter(
                        ConfirmedDropPattern.restaurant_name == restaurant_name,
                        ConfirmedDropPattern.platform == platform_value,
                    )
                    .first()
                )
                if row is None:
                    row = ConfirmedDropPattern(
                        restaurant_name=restaurant_name,
                        platform=platform_value,
                        success_count=0,
                        attempt_count=0,
                        confidence=0.0,
                    )
                    db.add(row)
                row.lead_days = lead_days
                row.drop_time = drop_time
                row.drop_timezone = drop_timezone
                row.notes = notes
                db.commit()
                db.refresh(row)
                return pattern_to_dict(row)
            except Exception:
                db.rollback()
                raise
            finally:
                db.close()
