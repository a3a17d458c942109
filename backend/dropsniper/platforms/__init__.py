"""
Booking platform capabilities: Resy, OpenTable, SevenRooms, Tock.
Each talks to its platform its own way but honors the same PlatformCapability contract,
so the acquisition engine stays platform-agnostic.
"""
from dropsniper.platforms.base import PlatformCapability
from dropsniper.platforms.registry import PlatformRegistry, build_default_registry
from dropsniper.platforms.types import (
    AcquisitionRequest,
    AcquisitionResult,
    BookingOutcome,
    Platform,
    Slot,
    VenueIds,
)

__all__ = [
    "AcquisitionRequest",
    "AcquisitionResult",
    "BookingOutcome",
    "Platform",
    "PlatformCapability",
    "PlatformRegistry",
    "Slot",
    "VenueIds",
    "build_default_registry",
]
