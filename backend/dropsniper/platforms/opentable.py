"""OpenTable capability. RestaurantsAvailability GQL for slots, dapi make-reservation to book."""
import logging
from typing import Any

from dropsniper.config import Settings
from dropsniper.core.constants import DEFAULT_PREFERRED_TIME
from dropsniper.core.drop_time import parse_clock_time
from dropsniper.core.errors import ConfigurationError
from dropsniper.platforms.http import request_json
from dropsniper.platforms.types import AcquisitionRequest, BookingOutcome, Platform, Slot, slot_id

logger = logging.getLogger(__name__)

OT_BASE_URL = "https://www.opentable.com/dapi"
OT_GQL_URL = f"{OT_BASE_URL}/fe/gql?optype=query&opname=RestaurantsAvailability"
OT_BOOK_URL = f"{OT_BASE_URL}/booking/make-reservation"
OT_OPERATION_HASH = "e6b87021ed6e865a7778aa39d35d09864c1be29c683c707602dd3de43c854d86"
USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)


def _build_body(restaurant_id: int, date_str: str, time_param: str, party_size: int) -> dict:
    return {
        "operationName": "RestaurantsAvailability",
        "variables": {
            "restaurantIds": [restaurant_id],
            "date": date_str,
            "time": time_param,
            "partySize": party_size,
            "databaseRegion": "NA",
        },
        "extensions": {"persistedQuery": {"version": 1, "sha256Hash": OT_OPERATION_HASH}},
    }


def _offset_time(base: str, offset_minutes: int) -> str:
    t = parse_clock_time(base)
    total = (t.hour * 60 + t.minute + offset_minutes) % (24 * 60)
    return f"{total // 60:02d}:{total % 60:02d}"


def parse_availability(data: dict[str, Any], restaurant_id: int | str, requested_time: str) -> list[Slot]:
    """Available slots from a RestaurantsAvailability response. Slot times are offsets from `requested_time`."""
    if not isinstance(data, dict):
        return []
    availability = (data.get("data") or {}).get("availability") or []
    if not availability or not isinstance(availability[0], dict):
        return []
    days = availability[0].get("availabilityDays") or []
    if not days or not isinstance(days[0], dict):
        return []
    out: list[Slot] = []
    for raw in days[0].get("slots") or []:
        if not isinstance(raw, dict) or not raw.get("isAvailable"):
            continue
        offset = raw.get("timeOffsetMinutes")
        if not isinstance(offset, int):
            continue
        hhmm = _offset_time(requested_time, offset)
        out.append(
            Slot(
                slot_id=slot_id(Platform.OPENTABLE.value, restaurant_id, hhmm),
                time=hhmm,
                token=raw.get("slotAvailabilityToken"),
                payload={
                    "slot_hash": raw.get("slotHash"),
                    "time_offset_minutes": offset,
                    "attributes": raw.get("attributes") or ["default"],
                },
            )
        )
    return out


class OpenTableCapability:
    platform = Platform.OPENTABLE
    uses_browser = False

    def __init__(
        self,
        *,
        csrf_token: str = "",
        first_name: str = "",
        last_name: str = "",
        email: str = "",
        phone: str = "",
        timeout: float = 30.0,
    ):
        self._csrf_token = (csrf_token or "").strip()
        self._first_name = (first_name or "").strip()
        self._last_name = (last_name or "").strip()
        self._email = (email or "").strip()
        self._phone = (phone or "").strip()
        self._timeout = timeout

    @classmethod
    def from_settings(cls, settings: Settings) -> "OpenTableCapability":
        return cls(
            csrf_token=settings.opentable_csrf_token,
            first_name=settings.opentable_first_name,
            last_name=settings.opentable_last_name,
            email=settings.opentable_email,
            phone=settings.opentable_phone,
            timeout=settings.platform_timeout_seconds,
        )

    def is_configured(self) -> bool:
        return bool(self._csrf_token and self._email and self._first_name and self._last_name)

    def _headers(self) -> dict[str, str]:
        return {
            "content-type": "application/json",
            "origin": "https://www.opentable.com",
            "referer": "https://www.opentable.com/",
            "user-agent": USER_AGENT,
            "x-csrf-token": self._csrf_token,
        }

    def search_availability(
        self,
        venue_id: int | str,
        date_str: str,
        party_size: int,
        *,
        preferred_time: str | None = None,
    ) -> list[Slot]:
        requested = (preferred_time or DEFAULT_PREFERRED_TIME)[:5]
        data = request_json(
            "POST",
            OT_GQL_URL,
            label="OpenTable",
            headers=self._headers(),
            json_body=_build_body(int(venue_id), date_str, requested, party_size),
            timeout=self._timeout,
        )
        slots = parse_availability(data, venue_id, requested)
        logger.debug("OpenTable rid %s on %s: %s slots", venue_id, date_str, len(slots))
        return slots

    def book(self, slot: Slot, request: AcquisitionRequest, *, idempotency_key: str) -> BookingOutcome:
        if not self.is_configured():
            raise ConfigurationError(
                "OpenTable credentials not configured. Add OPENTABLE_CSRF_TOKEN and OPENTABLE_FIRST_NAME/LAST_NAME/EMAIL to .env."
            )
        attributes = slot.payload.get("attributes") or ["default"]
        body = {
            "restaurantId": int(request.venue_id),
            "slotAvailabilityToken": slot.token,
            "slotHash": slot.payload.get("slot_hash"),
            "isModify": False,
            "reservationDateTime": f"{request.date}T{slot.time}",
            "partySize": request.party_size,
            "firstName": self._first_name,
            "lastName": self._last_name,
            "email": self._email,
            "country": "US",
            "reservationType": "Standard",
            "reservationAttribute": attributes[0],
            "additionalServiceFees": [],
            "tipAmount": 0,
            "tipPercent": 0,
            "pointsType": "Standard",
            "points": 100,
            "diningAreaId": 1,
            "phoneNumber": self._phone,
            "phoneNumberCountryId": "US",
            "optInEmailRestaurant": False,
        }
        data = request_json(
            "POST",
            OT_BOOK_URL,
            label="OpenTable",
            headers={**self._headers(), "Idempotency-Key": idempotency_key},
            json_body=body,
            timeout=self._timeout,
        )
        code = data.get("confirmationNumber") or data.get("reservationId")
        if not code:
            return BookingOutcome(success=False, error="OpenTable returned no confirmation number", details=data)
        return BookingOutcome(success=True, confirmation_code=str(code), details=data)
