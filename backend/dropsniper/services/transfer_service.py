"""
Transfer lifecycle for acquired reservations: ACQUIRED -> LISTED -> SOLD -> TRANSFER_PENDING
-> TRANSFERRED -> COMPLETED.

Transitions are forward-only and checked against ALLOWED_TRANSITIONS; a skip is allowed
where the real-world flow skips (sold without a listing, handed over without a pending step).
"""
import logging
from datetime import date, datetime, timedelta, timezone
from typing import Callable

from dropsniper.core.constants import TRANSFER_ACTION_WINDOW_HOURS, TRANSFER_DEADLINE_HOURS
from dropsniper.core.drop_time import as_utc, parse_clock_time, parse_date, resolve_reservation_instant
from dropsniper.core.errors import InvalidTransitionError, TransferNotFoundError
from dropsniper.models.transfer import Transfer, TransferMethod, TransferStatus
from dropsniper.platforms.types import AcquisitionResult, Platform

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: dict[TransferStatus, frozenset[TransferStatus]] = {
    TransferStatus.ACQUIRED: frozenset({TransferStatus.LISTED, TransferStatus.SOLD}),
    TransferStatus.LISTED: frozenset({TransferStatus.SOLD}),
    TransferStatus.SOLD: frozenset({TransferStatus.TRANSFER_PENDING, TransferStatus.TRANSFERRED}),
    TransferStatus.TRANSFER_PENDING: frozenset({TransferStatus.TRANSFERRED}),
    TransferStatus.TRANSFERRED: frozenset({TransferStatus.COMPLETED}),
    TransferStatus.COMPLETED: frozenset(),
}

# Listing price suggestion by platform (USD)
BASE_LISTING_PRICES = {
    Platform.RESY.value: 150.0,
    Platform.OPENTABLE.value: 100.0,
    Platform.SEVENROOMS.value: 200.0,
    Platform.TOCK.value: 250.0,
}
DEFAULT_LISTING_PRICE = 150.0


def _iso(dt: datetime | None) -> str | None:
    return as_utc(dt).isoformat() if dt else None


def transfer_to_dict(row: Transfer) -> dict:
    return {
        "id": row.id,
        "target_id": row.target_id,
        "restaurant_name": row.restaurant_name,
        "platform": row.platform,
        "reservation_date": row.reservation_date,
        "reservation_time": row.reservation_time,
        "reservation_timezone": row.reservation_timezone,
        "party_size": row.party_size,
        "confirmation_number": row.confirmation_number,
        "listing_id": row.listing_id,
        "listing_url": row.listing_url,
        "listing_price": row.listing_price,
        "buyer_name": row.buyer_name,
        "buyer_email": row.buyer_email,
        "buyer_phone": row.buyer_phone,
        "sale_price": row.sale_price,
        "sold_at": _iso(row.sold_at),
        "status": row.status,
        "transfer_method": row.transfer_method,
        "transfer_deadline": _iso(row.transfer_deadline),
        "transfer_completed_at": _iso(row.transfer_completed_at),
        "notes": row.notes,
        "created_at": _iso(row.created_at),
        "updated_at": _iso(row.updated_at),
    }


def _twelve_hour(hhmm: str) -> str:
    t = parse_clock_time(hhmm)
    return f"{t.hour % 12 or 12}:{t.minute:02d} {'PM' if t.hour >= 12 else 'AM'}"


class TransferService:
    def __init__(self, session_factory, *, clock: Callable[[], datetime] | None = None):
        self._session_factory = session_factory
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def create(
        self,
        *,
        restaurant_name: str,
        platform: str,
        reservation_date: str,
        reservation_time: str,
        party_size: int,
        reservation_timezone: str | None = None,
        confirmation_number: str | None = None,
        target_id: str | None = None,
        notes: str | None = None,
    ) -> dict:
        if party_size < 1:
            raise ValueError(f"party_size must be >= 1, got {party_size}")
        row = Transfer(
            target_id=target_id,
            restaurant_name=restaurant_name.strip(),
            platform=Platform.parse(platform).value,
            reservation_date=parse_date(reservation_date).isoformat(),
            reservation_time=parse_clock_time(reservation_time).strftime("%H:%M"),
            reservation_timezone=reservation_timezone,
            party_size=party_size,
            confirmation_number=confirmation_number,
            status=TransferStatus.ACQUIRED.value,
            notes=notes,
        )
        db = self._session_factory()
        try:
            db.add(row)
            db.commit()
            db.refresh(row)
            logger.info("Transfer %s created for %s (%s)", row.id, row.restaurant_name, row.confirmation_number)
            return transfer_to_dict(row)
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def create_from_acquisition(self, target, result: AcquisitionResult, reservation_date: str | None = None) -> dict:
        """Transfer in ACQUIRED for a successful acquisition of `target` (a TargetSnapshot).

        `reservation_date` is the date actually booked; defaults to the target's target_date.
        """
        return self.create(
            restaurant_name=target.restaurant_name,
            platform=target.platform,
            reservation_date=reservation_date or target.target_date,
            reservation_time=result.booked_time or target.preferred_time,
            party_size=target.party_size,
            reservation_timezone=target.drop_timezone,
            confirmation_number=result.confirmation_code,
            target_id=target.id,
        )

    def get(self, transfer_id: int) -> dict:
        db = self._session_factory()
        try:
            return transfer_to_dict(self._get_row(db, transfer_id))
        finally:
            db.close()

    def _get_row(self, db, transfer_id: int) -> Transfer:
        row = db.query(Transfer).filter(Transfer.id == transfer_id).first()
        if row is None:
            raise TransferNotFoundError(f"Transfer {transfer_id} not found")
        return row

    def list_transfers(
        self,
        *,
        status: str | None = None,
        platform: str | None = None,
        upcoming: bool = False,
        today: date | None = None,
    ) -> list[dict]:
        """Filter by status, platform, or reservations on/after today. Soonest reservation first."""
        db = self._session_factory()
        try:
            q = db.query(Transfer)
            if status:
                q = q.filter(Transfer.status == TransferStatus(status.upper()).value)
            if platform:
                q = q.filter(Transfer.platform == Platform.parse(platform).value)
            if upcoming:
                cutoff = (today or self._clock().date()).isoformat()
                q = q.filter(Transfer.reservation_date >= cutoff)
            rows = q.order_by(Transfer.reservation_date, Transfer.reservation_time, Transfer.id).all()
            return [transfer_to_dict(r) for r in rows]
        finally:
            db.close()

    def _transition(self, transfer_id: int, to: TransferStatus, apply: Callable[[Transfer], None] | None = None) -> dict:
        db = self._session_factory()
        try:
            row = self._get_row(db, transfer_id)
            current = TransferStatus(row.status)
            if to not in ALLOWED_TRANSITIONS[current]:
                raise InvalidTransitionError(
                    f"Transfer {transfer_id} cannot move from {current.value} to {to.value}",
                    detail={"from": current.value, "to": to.value},
                )
            if apply is not None:
                apply(row)
            row.status = to.value
            db.commit()
            db.refresh(row)
            logger.info("Transfer %s: %s -> %s", transfer_id, current.value, to.value)
            return transfer_to_dict(row)
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def mark_listed(self, transfer_id: int, listing_id: str, listing_url: str | None, listing_price: float) -> dict:
        def apply(row: Transfer) -> None:
            row.listing_id = listing_id
            row.listing_url = listing_url
            row.listing_price = listing_price

        return self._transition(transfer_id, TransferStatus.LISTED, apply)

    def transfer_deadline(self, reservation_date: str, reservation_time: str, tz_name: str | None) -> datetime:
        """Reservation instant minus TRANSFER_DEADLINE_HOURS (aware UTC)."""
        instant = resolve_reservation_instant(reservation_date, reservation_time, tz_name)
        return instant - timedelta(hours=TRANSFER_DEADLINE_HOURS)

    def mark_sold(
        self,
        transfer_id: int,
        *,
        buyer_name: str,
        sale_price: float,
        transfer_method: TransferMethod | str,
        buyer_email: str | None = None,
        buyer_phone: str | None = None,
    ) -> dict:
        method = TransferMethod(transfer_method.upper() if isinstance(transfer_method, str) else transfer_method)
        sold_at = self._clock()

        def apply(row: Transfer) -> None:
            row.buyer_name = buyer_name
            row.buyer_email = buyer_email
            row.buyer_phone = buyer_phone
            row.sale_price = sale_price
            row.transfer_method = method.value
            row.sold_at = sold_at
            row.transfer_deadline = self.transfer_deadline(
                row.reservation_date, row.reservation_time, row.reservation_timezone
            )

        return self._transition(transfer_id, TransferStatus.SOLD, apply)

    def _append_notes(self, notes: str | None) -> Callable[[Transfer], None]:
        def apply(row: Transfer) -> None:
            if notes:
                row.notes = f"{row.notes}\n{notes}" if row.notes else notes

        return apply

    def mark_pending(self, transfer_id: int, notes: str | None = None) -> dict:
        return self._transition(transfer_id, TransferStatus.TRANSFER_PENDING, self._append_notes(notes))

    def mark_transferred(self, transfer_id: int, notes: str | None = None) -> dict:
        append = self._append_notes(notes)
        completed_at = self._clock()

        def apply(row: Transfer) -> None:
            append(row)
            row.transfer_completed_at = completed_at

        return self._transition(transfer_id, TransferStatus.TRANSFERRED, apply)

    def mark_completed(self, transfer_id: int) -> dict:
        return self._transition(transfer_id, TransferStatus.COMPLETED)

    def delete(self, transfer_id: int) -> None:
        """Delete in any state."""
        db = self._session_factory()
        try:
            db.delete(self._get_row(db, transfer_id))
            db.commit()
            logger.info("Transfer %s deleted", transfer_id)
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def needing_action(self, now: datetime | None = None) -> list[dict]:
        """SOLD / TRANSFER_PENDING transfers due within the action window (overdue included), nearest first."""
        now = as_utc(now or self._clock())
        horizon = now + timedelta(hours=TRANSFER_ACTION_WINDOW_HOURS)
        db = self._session_factory()
        try:
            rows = (
                db.query(Transfer)
                .filter(
                    Transfer.status.in_([TransferStatus.SOLD.value, TransferStatus.TRANSFER_PENDING.value]),
                    Transfer.transfer_deadline.isnot(None),
                )
                .all()
            )
            due = [r for r in rows if as_utc(r.transfer_deadline) <= horizon]
            due.sort(key=lambda r: (as_utc(r.transfer_deadline), r.id))
            return [transfer_to_dict(r) for r in due]
        finally:
            db.close()

    def revenue_stats(self) -> dict:
        db = self._session_factory()
        try:
            rows = db.query(Transfer.platform, Transfer.status, Transfer.sale_price).all()
        finally:
            db.close()
        sales = [price for _, _, price in rows if price is not None]
        by_platform: dict[str, dict] = {}
        by_status: dict[str, int] = {}
        for platform, status, price in rows:
            bucket = by_platform.setdefault(platform, {"count": 0, "revenue": 0.0})
            if price is not None:
                bucket["count"] += 1
                bucket["revenue"] += float(price)
            by_status[status] = by_status.get(status, 0) + 1
        total = float(sum(sales))
        return {
            "total_sales": len(sales),
            "total_revenue": total,
            "avg_sale_price": total / len(sales) if sales else 0.0,
            "by_platform": by_platform,
            "by_status": by_status,
        }

    def listing_draft(self, transfer_id: int) -> dict:
        """Resale listing title, description and a price suggestion by platform."""
        transfer = self.get(transfer_id)
        day = parse_date(transfer["reservation_date"])
        weekday = day.strftime("%A")
        month_day = f"{day.strftime('%B')} {day.day}"
        when = _twelve_hour(transfer["reservation_time"])
        platform = transfer["platform"]
        via = "Resy name change" if platform == Platform.RESY.value else "coordination with seller"
        guests = transfer["party_size"]
        description = "\n".join(
            [
                transfer["restaurant_name"],
                f"{weekday}, {month_day}",
                when,
                f"Party of {guests}",
                f"Platform: {platform}",
                "",
                "Confirmed reservation",
                f"Transfer via {via}",
                "",
                "Message me to arrange transfer.",
            ]
        )
        return {
            "title": f"{transfer['restaurant_name']} - {weekday} {month_day} @ {when} ({guests} guests)",
            "description": description,
            "price_suggestion": BASE_LISTING_PRICES.get(platform, DEFAULT_LISTING_PRICE),
        }
