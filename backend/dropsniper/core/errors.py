"""
Error taxonomy for scheduling and acquisition, plus HTTP mapping for the API surface.

The engine converts platform failures into these types and records `kind` on results and
attempt rows. Routes stay thin by passing any SniperError through sniper_error_to_http.
"""
from __future__ import annotations

from typing import Callable

from fastapi import HTTPException


class SniperError(Exception):
    """Base for every error the core raises on purpose."""

    kind = "error"

    def __init__(self, message: str = "", *, detail: dict | None = None):
        super().__init__(message)
        self.message = message
        self.detail = detail or {}


class ConfigurationError(SniperError):
    """Missing credentials or identifiers for the selected platform. Fails fast, never retried."""

    kind = "configuration"


class UnknownPlatformError(ConfigurationError, ValueError):
    """Platform tag outside the closed set. Raised when a request or registry entry is built."""


class TransientUnavailable(SniperError):
    """No inventory yet (or slot taken). Retried within budget."""

    kind = "unavailable"


class PlatformRejected(SniperError):
    """Auth or validation failure reported by the platform. Aborts the retry loop."""

    kind = "rejected"


class NetworkTimeout(SniperError):
    """Per-call timeout or transport failure. Counts as a failed attempt."""

    kind = "timeout"


class InternalSchedulingError(SniperError):
    """Resolver or store failure. The target stays watched for the next tick."""

    kind = "internal"


class DropTimeError(InternalSchedulingError):
    """Drop date/time/timezone could not be resolved to an instant."""


class TargetNotFoundError(SniperError):
    kind = "not_found"


class TransferNotFoundError(SniperError):
    kind = "not_found"


class InvalidTransitionError(SniperError):
    """Transfer status change that does not move forward."""

    kind = "invalid_transition"


# ---------------------------------------------------------------------------
# HTTP mapping: (predicate, status_code). First match wins.
# Add new rules here instead of scattering checks in routes.
# ---------------------------------------------------------------------------

STATUS_NOT_FOUND = 404
STATUS_CONFLICT = 409
STATUS_UNPROCESSABLE = 422
STATUS_SERVICE_UNAVAILABLE = 503  # platform not configured
STATUS_INTERNAL_ERROR = 500

SNIPER_ERROR_RULES: list[tuple[Callable[[Exception], bool], int]] = [
    (lambda e: isinstance(e, (TargetNotFoundError, TransferNotFoundError)), STATUS_NOT_FOUND),
    (lambda e: isinstance(e, InvalidTransitionError), STATUS_CONFLICT),
    (lambda e: isinstance(e, DropTimeError), STATUS_UNPROCESSABLE),
    # Malformed input, including UnknownPlatformError (also a ConfigurationError)
    (lambda e: isinstance(e, ValueError), STATUS_UNPROCESSABLE),
    (lambda e: isinstance(e, ConfigurationError), STATUS_SERVICE_UNAVAILABLE),
]


def sniper_error_to_http(exc: Exception) -> HTTPException:
    """
    Map an exception from a service call into an HTTPException.
    Uses SNIPER_ERROR_RULES for known error types; otherwise returns 500 with the exception message.
    """
    msg = str(exc)
    for predicate, status_code in SNIPER_ERROR_RULES:
        if predicate(exc):
            return HTTPException(status_code=status_code, detail=msg)
    return HTTPException(status_code=STATUS_INTERNAL_ERROR, detail=msg)

