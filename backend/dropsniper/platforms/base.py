"""Protocol for platform capabilities. The engine only ever talks to this interface."""
from typing import Protocol

from dropsniper.platforms.types import AcquisitionRequest, BookingOutcome, Platform, Slot


class PlatformCapability(Protocol):
    """Interface for Resy, OpenTable, SevenRooms, Tock. Same contract; only transport differs.

    Failures are reported with the taxonomy in dropsniper.core.errors:
    PlatformRejected (auth/validation), NetworkTimeout (per-call timeout or transport),
    TransientUnavailable (slot taken, rate limited, platform 5xx).
    """

    platform: Platform
    # Browser-backed capabilities are serialized through the shared BrowserSession
    uses_browser: bool

    def is_configured(self) -> bool:
        """True when credentials needed to book are present."""
        ...

    def search_availability(
        self,
        venue_id: int | str,
        date_str: str,
        party_size: int,
        *,
        preferred_time: str | None = None,
    ) -> list[Slot]:
        """Currently bookable slots for one venue/date/party size. Empty list: no inventory yet."""
        ...

    def book(self, slot: Slot, request: AcquisitionRequest, *, idempotency_key: str) -> BookingOutcome:
        """Book one slot. Must leave no partial reservation behind when it fails."""
        ...
