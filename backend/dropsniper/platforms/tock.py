"""
Tock capability. Browser-backed: requests go through a real Chromium context so Tock sees
browser cookies and TLS, and are serialized through the shared BrowserSession.
"""
import logging
from typing import Any

from dropsniper.config import Settings
from dropsniper.core.drop_time import minutes_of_day
from dropsniper.core.errors import ConfigurationError, TransientUnavailable
from dropsniper.platforms.browser import BrowserSession
from dropsniper.platforms.http import check_status
from dropsniper.platforms.types import AcquisitionRequest, BookingOutcome, Platform, Slot, slot_id

logger = logging.getLogger(__name__)

TOCK_BASE_URL = "https://www.exploretock.com"
TOCK_API_URL = "https://api.exploretock.com"
USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)


def parse_availability(data: dict[str, Any], venue_slug: str) -> list[Slot]:
    out: list[Slot] = []
    for avail in data.get("availabilities") or []:
        if not isinstance(avail, dict) or avail.get("id") is None:
            continue
        start = str(avail.get("start_time") or "")
        minutes = minutes_of_day(start[:19].replace("T", " "))  # drop any UTC offset suffix
        if minutes is None:
            continue
        tickets = avail.get("tickets_available", avail.get("available"))
        if tickets is not None and not tickets:
            continue
        out.append(
            Slot(
                slot_id=slot_id(Platform.TOCK.value, venue_slug, start),
                time=f"{minutes // 60:02d}:{minutes % 60:02d}",
                token=str(avail["id"]),
                payload={
                    "start_time": start,
                    "experience_id": avail.get("experience_id"),
                    "experience_name": avail.get("experience_name") or "Dining",
                    "price": avail.get("price") or 0,
                },
            )
        )
    return out


async def _browser_request(
    browser,
    method: str,
    url: str,
    *,
    headers: dict[str, str],
    params: dict[str, Any] | None = None,
    body: dict[str, Any] | None = None,
    timeout_ms: float,
) -> dict[str, Any]:
    """One request through a fresh browser context. Returns the JSON object ({} for empty)."""
    context = await browser.new_context(user_agent=USER_AGENT)
    try:
        if method == "GET":
            resp = await context.request.get(url, params=params, headers=headers, timeout=timeout_ms)
        else:
            resp = await context.request.post(url, data=body or {}, headers=headers, timeout=timeout_ms)
        text = await resp.text()
        check_status("Tock", resp.status, text[:300])
        if not text:
            return {}
        data = await resp.json()
        return data if isinstance(data, dict) else {"data": data}
    finally:
        await context.close()


class TockCapability:
    platform = Platform.TOCK
    uses_browser = True

    def __init__(self, session: BrowserSession, *, auth_token: str = "", email: str = "", timeout: float = 30.0):
        self._session = session
        self._auth_token = (auth_token or "").strip()
        self._email = (email or "").strip()
        self._timeout = timeout

    @classmethod
    def from_settings(cls, settings: Settings, session: BrowserSession) -> "TockCapability":
        return cls(
            session,
            auth_token=settings.tock_auth_token,
            email=settings.tock_email,
            timeout=settings.platform_timeout_seconds,
        )

    def is_configured(self) -> bool:
        return bool(self._auth_token and self._email)

    def _headers(self, authenticated: bool = False) -> dict[str, str]:
        headers = {
            "accept": "application/json",
            "origin": TOCK_BASE_URL,
            "referer": f"{TOCK_BASE_URL}/",
        }
        if authenticated and self._auth_token:
            headers["authorization"] = f"Bearer {self._auth_token}"
        return headers

    def search_availability(
        self,
        venue_id: int | str,
        date_str: str,
        party_size: int,
        *,
        preferred_time: str | None = None,
    ) -> list[Slot]:
        slug = str(venue_id)
        headers = self._headers()
        params = {"business": slug, "date": date_str, "size": party_size}
        timeout_ms = self._timeout * 1000

        async def fetch(browser):
            return await _browser_request(
                browser,
                "GET",
                f"{TOCK_BASE_URL}/api/consumer/booking/availability",
                headers=headers,
                params=params,
                timeout_ms=timeout_ms,
            )

        data = self._session.call(fetch, timeout=self._timeout)
        slots = parse_availability(data, slug)
        logger.debug("Tock %s on %s: %s slots", slug, date_str, len(slots))
        return slots

    def book(self, slot: Slot, request: AcquisitionRequest, *, idempotency_key: str) -> BookingOutcome:
        """Add the availability to a cart, then check the cart out. Both steps share one checkout."""
        if not self.is_configured():
            raise ConfigurationError("Tock credentials not configured. Add TOCK_AUTH_TOKEN and TOCK_EMAIL to .env.")
        headers = {**self._headers(authenticated=True), "content-type": "application/json", "Idempotency-Key": idempotency_key}
        timeout_ms = self._timeout * 1000

        async def add_and_checkout(browser):
            cart = await _browser_request(
                browser,
                "POST",
                f"{TOCK_API_URL}/api/consumer/cart/add",
                headers=headers,
                body={"availability_id": slot.token, "quantity": request.party_size},
                timeout_ms=timeout_ms,
            )
            cart_id = cart.get("cart_id") or cart.get("id")
            if not cart_id:
                raise TransientUnavailable("Tock cart add returned no cart id (slot no longer available)")
            return await _browser_request(
                browser,
                "POST",
                f"{TOCK_API_URL}/api/consumer/cart/{cart_id}/checkout",
                headers=headers,
                body={"guest_email": self._email},
                timeout_ms=timeout_ms,
            )

        # Two calls inside one operation
        data = self._session.call(add_and_checkout, timeout=self._timeout * 2)
        code = data.get("confirmation_number") or data.get("ticket_id")
        if not code:
            return BookingOutcome(success=False, error="Tock checkout returned no confirmation", details=data)
        return BookingOutcome(success=True, confirmation_code=str(code), details=data)
