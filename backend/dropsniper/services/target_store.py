"""
Target store: tracked reservation targets. The scheduler reads WATCHING snapshots and writes
status back; the API creates, lists and deletes targets.

Snapshots are plain frozen dataclasses so worker threads never touch a live ORM row.
"""
import logging
import uuid
from dataclasses import asdict, dataclass

from dropsniper.core.constants import DEFAULT_PARTY_SIZE, DEFAULT_PREFERRED_TIME
from dropsniper.core.drop_time import get_zone, parse_clock_time, parse_date
from dropsniper.core.errors import TargetNotFoundError
from dropsniper.models.target import Target, TargetStatus
from dropsniper.platforms.types import Platform, VenueIds

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TargetSnapshot:
    id: str
    restaurant_name: str
    platform: str
    drop_date: str | None
    drop_time: str | None
    drop_timezone: str | None
    target_date: str | None
    preferred_time: str | None
    party_size: int
    status: str
    notes: str | None = None
    resy_venue_id: int | None = None
    opentable_id: int | None = None
    sevenrooms_slug: str | None = None
    tock_slug: str | None = None

    @property
    def venue_ids(self) -> VenueIds:
        return VenueIds(
            resy_venue_id=self.resy_venue_id,
            opentable_id=self.opentable_id,
            sevenrooms_slug=self.sevenrooms_slug,
            tock_slug=self.tock_slug,
        )

    def to_dict(self) -> dict:
        return asdict(self)


def _snapshot(row: Target) -> TargetSnapshot:
    return TargetSnapshot(
        id=row.id,
        restaurant_name=row.restaurant_name,
        platform=row.platform,
        drop_date=row.drop_date,
        drop_time=row.drop_time,
        drop_timezone=row.drop_timezone,
        target_date=row.target_date,
        preferred_time=row.preferred_time,
        party_size=row.party_size,
        status=row.status,
        notes=row.notes,
        resy_venue_id=row.resy_venue_id,
        opentable_id=row.opentable_id,
        sevenrooms_slug=row.sevenrooms_slug,
        tock_slug=row.tock_slug,
    )


class TargetStore:
    def __init__(self, session_factory, pattern_store=None):
        self._session_factory = session_factory
        self._pattern_store = pattern_store

    def list_watching(self) -> list[TargetSnapshot]:
        """WATCHING targets that have a drop time to schedule against."""
        db = self._session_factory()
        try:
            rows = (
                db.query(Target)
                .filter(Target.status == TargetStatus.WATCHING.value, Target.drop_time.isnot(None))
                .order_by(Target.created_at, Target.id)
                .all()
            )
            return [_snapshot(r) for r in rows]
        finally:
            db.close()

    def list_targets(self, status: str | None = None) -> list[TargetSnapshot]:
        db = self._session_factory()
        try:
            q = db.query(Target)
            if status:
                q = q.filter(Target.status == TargetStatus(status.upper()).value)
            return [_snapshot(r) for r in q.order_by(Target.created_at.desc(), Target.id).all()]
        finally:
            db.close()

    def get(self, target_id: str) -> TargetSnapshot | None:
        db = self._session_factory()
        try:
            row = db.query(Target).filter(Target.id == target_id).first()
            return _snapshot(row) if row else None
        finally:
            db.close()

    def set_status(self, target_id: str, status: TargetStatus | str, note: str | None = None) -> TargetSnapshot:
        """Write a status; `note` is appended to the target's notes. Raises TargetNotFoundError."""
        value = TargetStatus(status).value if isinstance(status, TargetStatus) else TargetStatus(status.upper()).value
        db = self._session_factory()
        try:
            row = db.query(Target).filter(Target.id == target_id).first()
            if row is None:
                raise TargetNotFoundError(f"Target {target_id} not found")
            row.status = value
            if note:
                row.notes = f"{row.notes} {note}".strip() if row.notes else note
            db.commit()
            db.refresh(row)
            logger.info("Target %s (%s) -> %s", target_id, row.restaurant_name, value)
            return _snapshot(row)
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def create(
        self,
        *,
        restaurant_name: str,
        platform: str,
        target_date: str | None = None,
        drop_date: str | None = None,
        drop_time: str | None = None,
        drop_timezone: str | None = None,
        preferred_time: str | None = None,
        party_size: int = DEFAULT_PARTY_SIZE,
        resy_venue_id: int | None = None,
        opentable_id: int | None = None,
        sevenrooms_slug: str | None = None,
        tock_slug: str | None = None,
        notes: str | None = None,
        target_id: str | None = None,
    ) -> TargetSnapshot:
        """
        Add a WATCHING target. Without drop fields, the learned pattern for the restaurant fills
        them in (when there is one). Raises ValueError / DropTimeError on malformed input.
        """
        platform_value = Platform.parse(platform).value
        name = (restaurant_name or "").strip()
        if not name:
            raise ValueError("restaurant_name is required")
        if party_size < 1:
            raise ValueError(f"party_size must be >= 1, got {party_size}")
        if target_date:
            target_date = parse_date(target_date).isoformat()
        if not drop_time and target_date and self._pattern_store is not None:
            suggestion = self._pattern_store.suggest_drop(name, platform_value, target_date)
            if suggestion:
                drop_date = drop_date or suggestion["drop_date"]
                drop_time = suggestion["drop_time"]
                drop_timezone = drop_timezone or suggestion["drop_timezone"]
                logger.info("Drop schedule for %s filled from learned pattern: %s %s", name, drop_date, drop_time)
        if drop_date:
            drop_date = parse_date(drop_date).isoformat()
        if drop_time:
            drop_time = parse_clock_time(drop_time).strftime("%H:%M")
        if drop_timezone:
            get_zone(drop_timezone)
        preferred = parse_clock_time(preferred_time or DEFAULT_PREFERRED_TIME).strftime("%H:%M")

        row = Target(
            id=target_id or uuid.uuid4().hex,
            restaurant_name=name,
            platform=platform_value,
            drop_date=drop_date,
            drop_time=drop_time,
            drop_timezone=drop_timezone,
            target_date=target_date,
            preferred_time=preferred,
            party_size=party_size,
            resy_venue_id=resy_venue_id,
            opentable_id=opentable_id,
            sevenrooms_slug=sevenrooms_slug,
            tock_slug=tock_slug,
            status=TargetStatus.WATCHING.value,
            notes=notes,
        )
        db = self._session_factory()
        try:
            db.add(row)
            db.commit()
            db.refresh(row)
            logger.info("Target %s created: %s on %s", row.id, name, platform_value)
            return _snapshot(row)
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def delete(self, target_id: str) -> None:
        db = self._session_factory()
        try:
            row = db.query(Target).filter(Target.id == target_id).first()
            if row is None:
                raise TargetNotFoundError(f"Target {target_id} not found")
            db.delete(row)
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()
