"""
Drop-time resolution: (date, local clock time, IANA timezone) -> absolute UTC instant.

Pure functions, no I/O. Uses the tz database (zoneinfo, tzdata as fallback data) so daylight
saving is honored. Local times in a spring-forward gap resolve with fold=0, i.e. they land
after the gap; times repeated at fall-back resolve to the first occurrence.

Legacy rows carry only a clock time (no date, often no timezone). Those resolve to the next
occurrence of that clock time from `now`, rolling to tomorrow when today's is already past.
"""
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dropsniper.core.errors import DropTimeError


def parse_clock_time(value: str | time) -> time:
    """Parse "HH:MM" or "HH:MM:SS" (or pass a time through). Raises DropTimeError."""
    if isinstance(value, time):
        return value.replace(tzinfo=None)
    raw = (value or "").strip()
    parts = raw.split(":")
    if len(parts) not in (2, 3) or not all(p.isdigit() for p in parts):
        raise DropTimeError(f"Invalid clock time: {value!r} (expected HH:MM)")
    try:
        return time(*(int(p) for p in parts))
    except ValueError as e:
        raise DropTimeError(f"Invalid clock time: {value!r} ({e})") from e


def minutes_of_day(value: str | time | None) -> int | None:
    """Minutes since midnight for a clock time; None if it cannot be parsed.

    Accepts slot strings like "2026-02-18 20:30:00" as well (the time part is used).
    """
    if value is None:
        return None
    if isinstance(value, str) and " " in value.strip():
        value = value.strip().rsplit(" ", 1)[-1]
    try:
        t = parse_clock_time(value)
    except DropTimeError:
        return None
    return t.hour * 60 + t.minute


def parse_date(value: str | date) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat((value or "").strip())
    except ValueError as e:
        raise DropTimeError(f"Invalid date: {value!r} (expected YYYY-MM-DD)") from e


def get_zone(tz_name: str | None) -> tzinfo:
    """ZoneInfo for an IANA name; process-local zone when no name is given."""
    if not tz_name:
        return datetime.now().astimezone().tzinfo or timezone.utc
    try:
        return ZoneInfo(tz_name.strip())
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise DropTimeError(f"Unknown timezone: {tz_name!r}") from e


def as_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def resolve_drop_instant(
    drop_date: str | date | None,
    drop_time: str | time,
    tz_name: str | None = None,
    *,
    now: datetime | None = None,
) -> datetime:
    """
    Absolute instant (aware, UTC) of a drop.

    With a date: that wall-clock time on that date in `tz_name`.
    Without a date (legacy): next occurrence of the clock time from `now` (default: current time).
    Same inputs always give the same instant; `now` only matters for the legacy form.
    """
    zone = get_zone(tz_name)
    clock = parse_clock_time(drop_time)
    if drop_date is not None and drop_date != "":
        local = datetime.combine(parse_date(drop_date), clock, tzinfo=zone)
        return local.astimezone(timezone.utc)

    reference = as_utc(now or datetime.now(timezone.utc)).astimezone(zone)
    candidate = datetime.combine(reference.date(), clock, tzinfo=zone)
    if candidate < reference:
        candidate = datetime.combine(reference.date() + timedelta(days=1), clock, tzinfo=zone)
    return candidate.astimezone(timezone.utc)


def resolve_reservation_instant(reservation_date: str | date, reservation_time: str | time, tz_name: str | None) -> datetime:
    """Instant a reservation starts; same rules as a dated drop."""
    return resolve_drop_instant(reservation_date, reservation_time, tz_name)


def lead_days(drop_date: str | date, target_date: str | date) -> int:
    """Days between the drop and the reservation it releases (e.g. 21 for a 3-week window)."""
    return (parse_date(target_date) - parse_date(drop_date)).days
