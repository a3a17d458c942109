"""Shared types for every platform capability and the acquisition engine."""
import hashlib
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from dropsniper.core.constants import DEFAULT_MAX_RETRIES, DEFAULT_TIME_FLEXIBILITY_MINUTES
from dropsniper.core.drop_time import parse_date
from dropsniper.core.errors import UnknownPlatformError

_PLATFORM_ALIASES = {
    "resy": "resy",
    "opentable": "opentable",
    "ot": "opentable",
    "sevenrooms": "sevenrooms",
    "7rooms": "sevenrooms",
    "tock": "tock",
    "exploretock": "tock",
}


class Platform(str, Enum):
    """Closed set of booking platforms. Each is bound to one capability at startup."""

    RESY = "resy"
    OPENTABLE = "opentable"
    SEVENROOMS = "sevenrooms"
    TOCK = "tock"

    @classmethod
    def parse(cls, value: "str | Platform | None") -> "Platform":
        """Accept stored spellings ("Resy", "OpenTable", "seven-rooms"). Raises UnknownPlatformError."""
        if isinstance(value, Platform):
            return value
        key = "".join(ch for ch in (value or "").lower() if ch.isalnum())
        canonical = _PLATFORM_ALIASES.get(key)
        if canonical is None:
            raise UnknownPlatformError(
                f"Unknown platform: {value!r}. Expected one of {[p.value for p in cls]}"
            )
        return cls(canonical)


@dataclass(frozen=True)
class VenueIds:
    """Platform-specific venue identifiers; at most one is relevant per platform."""

    resy_venue_id: int | None = None
    opentable_id: int | None = None
    sevenrooms_slug: str | None = None
    tock_slug: str | None = None

    def for_platform(self, platform: Platform) -> int | str | None:
        return {
            Platform.RESY: self.resy_venue_id,
            Platform.OPENTABLE: self.opentable_id,
            Platform.SEVENROOMS: self.sevenrooms_slug,
            Platform.TOCK: self.tock_slug,
        }[platform]


@dataclass(frozen=True)
class AcquisitionRequest:
    """Immutable description of one acquisition. Unknown platforms are rejected here. Dates are
    normalized to YYYY-MM-DD; a missing or malformed date raises DropTimeError.
    """

    platform: Platform
    restaurant_name: str
    date: str  # YYYY-MM-DD reservation date
    time: str  # HH:MM preferred time
    party_size: int
    venue_ids: VenueIds = field(default_factory=VenueIds)
    max_retries: int = DEFAULT_MAX_RETRIES
    time_flexibility_minutes: int = DEFAULT_TIME_FLEXIBILITY_MINUTES
    aggressive: bool = False
    target_id: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "platform", Platform.parse(self.platform))
        object.__setattr__(self, "date", parse_date(self.date).isoformat())
        if self.party_size < 1:
            raise ValueError(f"party_size must be >= 1, got {self.party_size}")
        if self.max_retries < 1:
            raise ValueError(f"max_retries must be >= 1, got {self.max_retries}")
        if self.time_flexibility_minutes < 0:
            raise ValueError("time_flexibility_minutes must be >= 0")

    @property
    def venue_id(self) -> int | str | None:
        return self.venue_ids.for_platform(self.platform)


@dataclass
class AcquisitionResult:
    success: bool
    platform: Platform
    attempts: int = 0
    elapsed_ms: int = 0
    confirmation_code: str | None = None
    booked_time: str | None = None
    error: str | None = None
    error_kind: str | None = None
    details: dict[str, Any] = field(default_factory=dict)
    transfer_id: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "platform": self.platform.value,
            "attempts": self.attempts,
            "elapsed_ms": self.elapsed_ms,
            "confirmation_code": self.confirmation_code,
            "booked_time": self.booked_time,
            "error": self.error,
            "error_kind": self.error_kind,
            "details": self.details,
            "transfer_id": self.transfer_id,
        }


@dataclass
class BookingOutcome:
    """What a capability's book() reports. A False success without an exception means 'try again'."""

    success: bool
    confirmation_code: str | None = None
    error: str | None = None
    details: dict[str, Any] = field(default_factory=dict)


def slot_id(platform: str, venue_id: str | int | None, slot_time: str) -> str:
    """Stable slot key: one id per platform + venue + time. 32-char hash."""
    raw = f"{platform}|{venue_id or ''}|{slot_time or ''}"
    return hashlib.sha256(raw.encode()).hexdigest()[:32]


class Slot:
    """One bookable slot returned by any capability. `token` is whatever book() needs back."""

    __slots__ = ("slot_id", "time", "token", "payload")

    def __init__(
        self,
        *,
        slot_id: str,
        time: str,
        token: str | None = None,
        payload: dict[str, Any] | None = None,
    ):
        self.slot_id = slot_id
        self.time = time
        self.token = token
        self.payload = payload or {}

    def __repr__(self) -> str:
        return f"Slot(time={self.time!r}, slot_id={self.slot_id!r})"

    def to_row(self) -> dict[str, Any]:
        return {"slot_id": self.slot_id, "time": self.time, "token": self.token, "payload": self.payload}
