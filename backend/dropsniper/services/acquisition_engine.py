"""
Acquisition engine: dispatch a request to its platform capability and retry until booked.

Retries use a short fixed delay (contested inventory rewards immediate retry). Auth and
configuration failures abort at once; "no inventory yet" and timeouts consume the budget.
acquire() always returns an AcquisitionResult, never raises.
"""
import logging
import time
import uuid
from typing import Callable, Sequence

from dropsniper.core.constants import AGGRESSIVE_RETRY_DELAY_SECONDS, DEFAULT_RETRY_DELAY_SECONDS
from dropsniper.core.drop_time import minutes_of_day
from dropsniper.core.errors import (
    ConfigurationError,
    NetworkTimeout,
    PlatformRejected,
    SniperError,
    TransientUnavailable,
)
from dropsniper.platforms.registry import PlatformRegistry
from dropsniper.platforms.types import AcquisitionRequest, AcquisitionResult, Platform, Slot

logger = logging.getLogger(__name__)

DEFAULT_DEADLINE_SECONDS = 60.0


def select_slot(
    slots: Sequence[Slot],
    preferred_time: str | None,
    flexibility_minutes: int,
    aggressive: bool = False,
) -> Slot | None:
    """
    Exact time match first, else the nearest slot within `flexibility_minutes` (earlier wins ties).
    Aggressive mode falls back to the earliest slot when nothing is in the window.
    """
    timed = [(m, s) for s in slots if (m := minutes_of_day(s.time)) is not None]
    if not timed:
        return None
    target = minutes_of_day(preferred_time)
    if target is None:
        return min(timed, key=lambda pair: pair[0])[1]
    in_window = [(abs(m - target), m, s) for m, s in timed if abs(m - target) <= flexibility_minutes]
    if in_window:
        return min(in_window, key=lambda row: (row[0], row[1]))[2]
    if aggressive:
        return min(timed, key=lambda pair: pair[0])[1]
    return None


class AcquisitionEngine:
    def __init__(
        self,
        registry: PlatformRegistry,
        *,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
        deadline_seconds: float = DEFAULT_DEADLINE_SECONDS,
        retry_delay: float = DEFAULT_RETRY_DELAY_SECONDS,
        aggressive_retry_delay: float = AGGRESSIVE_RETRY_DELAY_SECONDS,
    ):
        self.registry = registry
        self._sleep = sleep
        self._clock = clock
        self.deadline_seconds = deadline_seconds
        self.retry_delay = retry_delay
        self.aggressive_retry_delay = aggressive_retry_delay

    def _elapsed_ms(self, started: float) -> int:
        return int((self._clock() - started) * 1000)

    def _config_failure(self, request: AcquisitionRequest, started: float, message: str) -> AcquisitionResult:
        logger.warning("Acquisition for %s on %s not attempted: %s", request.restaurant_name, request.platform.value, message)
        return AcquisitionResult(
            success=False,
            platform=request.platform,
            attempts=0,
            elapsed_ms=self._elapsed_ms(started),
            error=message,
            error_kind=ConfigurationError.kind,
        )

    def acquire(self, request: AcquisitionRequest) -> AcquisitionResult:
        started = self._clock()
        try:
            capability = self.registry.get(request.platform)
        except ConfigurationError as e:
            return self._config_failure(request, started, e.message or str(e))
        if not capability.is_configured():
            return self._config_failure(request, started, f"{request.platform.value} credentials not configured")
        venue_id = request.venue_id
        if venue_id is None or venue_id == "":
            return self._config_failure(request, started, f"Missing {request.platform.value} venue identifier")

        idempotency_key = uuid.uuid4().hex
        delay = self.aggressive_retry_delay if request.aggressive else self.retry_delay
        logger.info(
            "Acquiring %s on %s for %s %s (party %s, max %s attempts%s)",
            request.restaurant_name,
            request.platform.value,
            request.date,
            request.time,
            request.party_size,
            request.max_retries,
            ", aggressive" if request.aggressive else "",
        )

        attempts = 0
        last_error: str | None = None
        last_kind: str | None = None
        while attempts < request.max_retries:
            if attempts:
                if self._clock() - started >= self.deadline_seconds:
                    logger.warning("Acquisition deadline of %.0fs reached after %s attempts", self.deadline_seconds, attempts)
                    last_error = f"{last_error or 'No booking'} (deadline of {self.deadline_seconds:.0f}s reached)"
                    break
                self._sleep(delay)
            attempts += 1
            try:
                slots = capability.search_availability(
                    venue_id, request.date, request.party_size, preferred_time=request.time
                )
                slot = select_slot(slots, request.time, request.time_flexibility_minutes, request.aggressive)
                if slot is None:
                    if slots:
                        raise TransientUnavailable(
                            f"No slot within {request.time_flexibility_minutes} minutes of {request.time}"
                        )
                    raise TransientUnavailable("No slots available")
                outcome = capability.book(slot, request, idempotency_key=idempotency_key)
                if outcome.success:
                    logger.info(
                        "Booked %s at %s on attempt %s (confirmation %s)",
                        request.restaurant_name,
                        slot.time,
                        attempts,
                        outcome.confirmation_code,
                    )
                    return AcquisitionResult(
                        success=True,
                        platform=request.platform,
                        attempts=attempts,
                        elapsed_ms=self._elapsed_ms(started),
                        confirmation_code=outcome.confirmation_code,
                        booked_time=slot.time,
                        details=outcome.details,
                    )
                last_error = outcome.error or "Booking failed"
                last_kind = TransientUnavailable.kind
            except (ConfigurationError, PlatformRejected) as e:
                logger.warning("Attempt %s aborted (%s): %s", attempts, e.kind, e.message or e)
                return AcquisitionResult(
                    success=False,
                    platform=request.platform,
                    attempts=attempts,
                    elapsed_ms=self._elapsed_ms(started),
                    error=e.message or str(e),
                    error_kind=e.kind,
                )
            except (TransientUnavailable, NetworkTimeout) as e:
                last_error = e.message or str(e)
                last_kind = e.kind
                logger.debug("Attempt %s/%s: %s", attempts, request.max_retries, last_error)
            except SniperError as e:
                last_error = e.message or str(e)
                last_kind = e.kind
                logger.warning("Attempt %s/%s failed: %s", attempts, request.max_retries, last_error)
            except Exception as e:
                logger.exception("Attempt %s/%s raised unexpectedly", attempts, request.max_retries)
                last_error = str(e) or e.__class__.__name__
                last_kind = "error"

        logger.info("Acquisition of %s failed after %s attempts: %s", request.restaurant_name, attempts, last_error)
        return AcquisitionResult(
            success=False,
            platform=request.platform,
            attempts=attempts,
            elapsed_ms=self._elapsed_ms(started),
            error=last_error,
            error_kind=last_kind,
        )

    def prewarm(self, request: AcquisitionRequest) -> bool:
        """One availability call ahead of the drop (warms connections and browser). Never raises."""
        try:
            capability = self.registry.get(request.platform)
            if not capability.is_configured() or request.venue_id in (None, ""):
                return False
            capability.search_availability(
                request.venue_id, request.date, request.party_size, preferred_time=request.time
            )
            return True
        except Exception as e:
            logger.warning("Prewarm for %s on %s failed: %s", request.restaurant_name, request.platform.value, e)
            return False

    def clients_status(self) -> dict[str, dict]:
        """Readiness for every platform: registered, configured, browser-backed."""
        out: dict[str, dict] = {}
        for platform in Platform:
            if platform not in self.registry:
                out[platform.value] = {"registered": False, "configured": False, "uses_browser": False}
                continue
            capability = self.registry.get(platform)
            out[platform.value] = {
                "registered": True,
                "configured": bool(capability.is_configured()),
                "uses_browser": bool(capability.uses_browser),
            }
        return out
