"""SevenRooms capability. Public widget endpoints; booking needs only guest contact details."""
import logging
from datetime import datetime
from typing import Any

from dropsniper.config import Settings
from dropsniper.core.constants import DEFAULT_PREFERRED_TIME
from dropsniper.core.drop_time import minutes_of_day, parse_date
from dropsniper.core.errors import ConfigurationError
from dropsniper.platforms.http import request_json
from dropsniper.platforms.types import AcquisitionRequest, BookingOutcome, Platform, Slot, slot_id

logger = logging.getLogger(__name__)

SEVENROOMS_BASE_URL = "https://www.sevenrooms.com"
USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)
# +/- 2 hours in 15-minute steps around the requested time
HALO_SIZE_INTERVAL = 16


def _slot_minutes(raw: dict[str, Any]) -> int | None:
    minutes = minutes_of_day(str(raw.get("time_iso") or "")[:19].replace("T", " "))
    if minutes is not None:
        return minutes
    label = str(raw.get("time") or "").strip().upper()  # "7:30 PM"
    try:
        parsed = datetime.strptime(label, "%I:%M %p")
    except ValueError:
        return None
    return parsed.hour * 60 + parsed.minute


def parse_availability(data: dict[str, Any], venue_slug: str, date_str: str) -> list[Slot]:
    """Bookable times for `date_str`. Entries without an access id are display-only and skipped."""
    by_date = ((data.get("data") or {}).get("availability") or {}) if isinstance(data, dict) else {}
    shifts = (by_date.get(date_str) or []) if isinstance(by_date, dict) else []
    out: list[Slot] = []
    for shift in shifts:
        if not isinstance(shift, dict):
            continue
        for raw in shift.get("times") or []:
            if not isinstance(raw, dict) or raw.get("access_persistent_id") is None:
                continue
            minutes = _slot_minutes(raw)
            if minutes is None:
                continue
            hhmm = f"{minutes // 60:02d}:{minutes % 60:02d}"
            out.append(
                Slot(
                    slot_id=slot_id(Platform.SEVENROOMS.value, venue_slug, f"{date_str} {hhmm}"),
                    time=hhmm,
                    token=str(raw["access_persistent_id"]),
                    payload={
                        "time_label": raw.get("time"),
                        "time_iso": raw.get("time_iso"),
                        "shift_persistent_id": raw.get("shift_persistent_id"),
                        "shift_category": raw.get("shift_category"),
                    },
                )
            )
    return out


class SevenRoomsCapability:
    platform = Platform.SEVENROOMS
    uses_browser = False

    def __init__(
        self,
        *,
        first_name: str = "",
        last_name: str = "",
        email: str = "",
        phone: str = "",
        timeout: float = 30.0,
    ):
        self._first_name = (first_name or "").strip()
        self._last_name = (last_name or "").strip()
        self._email = (email or "").strip()
        self._phone = (phone or "").strip()
        self._timeout = timeout

    @classmethod
    def from_settings(cls, settings: Settings) -> "SevenRoomsCapability":
        return cls(
            first_name=settings.sevenrooms_first_name,
            last_name=settings.sevenrooms_last_name,
            email=settings.sevenrooms_email,
            phone=settings.sevenrooms_phone,
            timeout=settings.platform_timeout_seconds,
        )

    def is_configured(self) -> bool:
        return bool(self._email and self._first_name and self._last_name)

    def _headers(self) -> dict[str, str]:
        return {
            "accept": "application/json",
            "origin": SEVENROOMS_BASE_URL,
            "referer": f"{SEVENROOMS_BASE_URL}/",
            "user-agent": USER_AGENT,
        }

    def search_availability(
        self,
        venue_id: int | str,
        date_str: str,
        party_size: int,
        *,
        preferred_time: str | None = None,
    ) -> list[Slot]:
        slug = str(venue_id)
        data = request_json(
            "GET",
            f"{SEVENROOMS_BASE_URL}/api-yoa/availability/widget/range",
            label="SevenRooms",
            headers=self._headers(),
            params={
                "venue": slug,
                "time_slot": (preferred_time or DEFAULT_PREFERRED_TIME)[:5],
                "party_size": party_size,
                "halo_size_interval": HALO_SIZE_INTERVAL,
                "start_date": parse_date(date_str).strftime("%m-%d-%Y"),
                "num_days": 1,
                "channel": "SEVENROOMS_WIDGET",
            },
            timeout=self._timeout,
        )
        slots = parse_availability(data, slug, date_str)
        logger.debug("SevenRooms %s on %s: %s slots", slug, date_str, len(slots))
        return slots

    def book(self, slot: Slot, request: AcquisitionRequest, *, idempotency_key: str) -> BookingOutcome:
        if not self.is_configured():
            raise ConfigurationError(
                "SevenRooms guest info not configured. Add SEVENROOMS_FIRST_NAME/LAST_NAME/EMAIL to .env."
            )
        data = request_json(
            "POST",
            f"{SEVENROOMS_BASE_URL}/api-yoa/reservation/create",
            label="SevenRooms",
            headers={**self._headers(), "content-type": "application/json", "Idempotency-Key": idempotency_key},
            json_body={
                "venue": str(request.venue_id),
                "shift_persistent_id": slot.payload.get("shift_persistent_id"),
                "access_persistent_id": slot.token,
                "party_size": request.party_size,
                "time_slot": slot.payload.get("time_label") or slot.time,
                "first_name": self._first_name,
                "last_name": self._last_name,
                "email": self._email,
                "phone_number": self._phone,
                "notes": "",
                "channel": "SEVENROOMS_WIDGET",
            },
            timeout=self._timeout,
        )
        inner = data.get("data") if isinstance(data.get("data"), dict) else {}
        code = inner.get("confirmation_number")
        if not code:
            return BookingOutcome(success=False, error="SevenRooms response did not contain confirmation", details=data)
        return BookingOutcome(success=True, confirmation_code=str(code), details=inner)
