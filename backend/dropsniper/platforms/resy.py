"""Resy capability: /4/find for slots, /3/details for a book token, /3/book to reserve.

Book tokens are single-use, so replaying /3/book after a timeout cannot double-book.
"""
import json
import logging
from typing import Any

from dropsniper.config import Settings
from dropsniper.core.drop_time import minutes_of_day
from dropsniper.core.errors import ConfigurationError, TransientUnavailable
from dropsniper.platforms.http import request_json
from dropsniper.platforms.types import AcquisitionRequest, BookingOutcome, Platform, Slot, slot_id

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.resy.com"


class ResyConfig:
    """API credentials and base URL for Resy."""

    __slots__ = ("api_key", "auth_token", "payment_method_id", "base_url", "timeout")

    def __init__(
        self,
        *,
        api_key: str = "",
        auth_token: str = "",
        payment_method_id: str = "",
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 30.0,
    ) -> None:
        self.api_key = (api_key or "").strip()
        self.auth_token = (auth_token or "").strip()
        self.payment_method_id = (payment_method_id or "").strip()
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def is_configured(self) -> bool:
        return bool(self.api_key and self.auth_token and self.payment_method_id)

    def headers(self) -> dict[str, str]:
        return {
            "Authorization": f'ResyAPI api_key="{self.api_key}"',
            "x-resy-auth-token": self.auth_token,
            "x-resy-universal-auth": self.auth_token,
            "Origin": "https://resy.com",
            "Referer": "https://resy.com/",
            "Accept": "application/json, text/plain, */*",
        }


def parse_find_response(data: dict[str, Any], venue_id: int | str) -> list[Slot]:
    """Slots from a /4/find response. Safe for any dict shape."""
    venues = ((data.get("results") or {}).get("venues") or []) if isinstance(data, dict) else []
    if not venues or not isinstance(venues[0], dict):
        return []
    out: list[Slot] = []
    for raw in venues[0].get("slots") or []:
        if not isinstance(raw, dict):
            continue
        token = ((raw.get("config") or {}).get("token") or "").strip()
        start = ((raw.get("date") or {}).get("start") or "").strip()  # "2026-02-18 20:30:00"
        minutes = minutes_of_day(start)
        if not token or minutes is None:
            continue
        hhmm = f"{minutes // 60:02d}:{minutes % 60:02d}"
        out.append(
            Slot(
                slot_id=slot_id(Platform.RESY.value, venue_id, start),
                time=hhmm,
                token=token,
                payload={"start": start, "type": (raw.get("config") or {}).get("type")},
            )
        )
    return out


class ResyCapability:
    platform = Platform.RESY
    uses_browser = False

    def __init__(self, config: ResyConfig) -> None:
        self._config = config

    @classmethod
    def from_settings(cls, settings: Settings) -> "ResyCapability":
        return cls(
            ResyConfig(
                api_key=settings.resy_api_key,
                auth_token=settings.resy_auth_token,
                payment_method_id=settings.resy_payment_method_id,
                timeout=settings.platform_timeout_seconds,
            )
        )

    def is_configured(self) -> bool:
        return self._config.is_configured()

    def _get(self, path: str, params: dict[str, Any]) -> dict[str, Any]:
        return request_json(
            "GET",
            f"{self._config.base_url}{path}",
            label="Resy",
            headers=self._config.headers(),
            params=params,
            timeout=self._config.timeout,
        )

    def search_availability(
        self,
        venue_id: int | str,
        date_str: str,
        party_size: int,
        *,
        preferred_time: str | None = None,
    ) -> list[Slot]:
        data = self._get(
            "/4/find",
            {"lat": 0, "long": 0, "day": date_str, "party_size": party_size, "venue_id": venue_id},
        )
        slots = parse_find_response(data, venue_id)
        logger.debug("Resy venue %s on %s: %s slots", venue_id, date_str, len(slots))
        return slots

    def _book_token(self, config_token: str, date_str: str, party_size: int) -> str:
        data = self._get("/3/details", {"config_id": config_token, "day": date_str, "party_size": party_size})
        token = ((data.get("book_token") or {}).get("value") or "").strip()
        if not token:
            # Slot went away between find and details
            raise TransientUnavailable("Resy returned no book_token (slot no longer available)")
        return token

    def book(self, slot: Slot, request: AcquisitionRequest, *, idempotency_key: str) -> BookingOutcome:
        """Book a reservation. book_token must come from /3/details for this slot."""
        if not self._config.is_configured():
            raise ConfigurationError("Resy credentials not configured. Add RESY_API_KEY, RESY_AUTH_TOKEN and RESY_PAYMENT_METHOD_ID to .env.")
        book_token = self._book_token(slot.token or "", request.date, request.party_size)
        try:
            payment_id: int | str = int(self._config.payment_method_id)
        except ValueError:
            payment_id = self._config.payment_method_id
        form: dict[str, str] = {
            "book_token": book_token,
            "struct_payment_method": json.dumps({"id": payment_id}),
            "source_id": "resy.com-venue-details",
        }
        headers = {k: v for k, v in self._config.headers().items() if k.lower() != "content-type"}
        data = request_json(
            "POST",
            f"{self._config.base_url}/3/book",
            label="Resy",
            headers=headers,
            form=form,
            timeout=self._config.timeout,
        )
        code = data.get("resy_token") or data.get("reservation_id")
        if not code:
            return BookingOutcome(success=False, error="Resy book returned no reservation token", details=data)
        return BookingOutcome(success=True, confirmation_code=str(code), details=data)
