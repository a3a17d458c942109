"""
Drop scheduler: poll WATCHING targets, alert ahead of each drop, fire the acquisition at the drop.

Every POLL_INTERVAL_SECONDS (APScheduler interval job) one tick:
  - resolves each target's drop instant and keeps one ScheduledAction per target,
  - sends the 5-minute and 1-minute alerts once each,
  - inside [-PREWARM_SECONDS, +EXECUTION_GRACE_SECONDS] of the drop, check-and-sets
    execution_started and submits the acquisition to a ThreadPoolExecutor. The tick never waits.

At most one acquisition per target runs at a time, scheduled or manual: both claim the target
id in `_inflight` under the scheduler lock before running and release it when done.

Legacy targets (clock time, no drop date) resolve against `now - STALE_AFTER_SECONDS`, so an
occurrence that has just passed stays in view through its grace and stale windows.

The worker records the outcome (attempt log + pattern, target status, transfer, notification)
before its future resolves. A fired (target, drop instant) pair is remembered until the drop
goes stale, so a failed status write cannot cause a second dispatch for the same drop.
"""
import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Callable

from apscheduler.schedulers.background import BackgroundScheduler

from dropsniper.core.constants import (
    DEFAULT_PREFERRED_TIME,
    EXECUTION_GRACE_SECONDS,
    EXPIRED_ACTION_SECONDS,
    FIVE_MINUTE_ALERT_SECONDS,
    ONE_MINUTE_ALERT_SECONDS,
    PREWARM_SECONDS,
    SNIPER_POLL_JOB_ID,
    STALE_AFTER_SECONDS,
)
from dropsniper.core.drop_time import get_zone, resolve_drop_instant
from dropsniper.core.errors import InternalSchedulingError, InvalidTransitionError, TargetNotFoundError
from dropsniper.models.target import TargetStatus
from dropsniper.platforms.types import AcquisitionRequest, AcquisitionResult
from dropsniper.services import notifications
from dropsniper.services.pattern_store import TRIGGER_DROP_TIME, TRIGGER_MANUAL, AttemptRecord
from dropsniper.services.target_store import TargetSnapshot

logger = logging.getLogger(__name__)

MANUAL_ELIGIBLE_STATUSES = {
    TargetStatus.WATCHING.value,
    TargetStatus.PENDING_CONFIRMATION.value,
    TargetStatus.FAILED.value,
}


@dataclass
class ScheduledAction:
    """In-memory tracking for one target's next drop. Flags are only ever set, never cleared."""

    target: TargetSnapshot
    drop_at: datetime
    request: AcquisitionRequest
    five_minute_alert_sent: bool = False
    one_minute_alert_sent: bool = False
    execution_started: bool = False
    execution_started_at: datetime | None = None
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    @property
    def target_id(self) -> str:
        return self.target.id

    def mark_five_minute_alert(self) -> bool:
        with self._lock:
            if self.five_minute_alert_sent:
                return False
            self.five_minute_alert_sent = True
            return True

    def mark_one_minute_alert(self) -> bool:
        with self._lock:
            if self.one_minute_alert_sent:
                return False
            self.one_minute_alert_sent = True
            return True

    def try_start_execution(self, now: datetime) -> bool:
        """Atomic check-and-set. True for exactly one caller."""
        with self._lock:
            if self.execution_started:
                return False
            self.execution_started = True
            self.execution_started_at = now
            return True

    def to_dict(self) -> dict:
        return {
            "target_id": self.target.id,
            "restaurant_name": self.target.restaurant_name,
            "platform": self.target.platform,
            "drop_at": self.drop_at.isoformat(),
            "target_date": self.target.target_date,
            "preferred_time": self.target.preferred_time,
            "party_size": self.target.party_size,
            "five_minute_alert_sent": self.five_minute_alert_sent,
            "one_minute_alert_sent": self.one_minute_alert_sent,
            "execution_started": self.execution_started,
            "execution_started_at": self.execution_started_at.isoformat() if self.execution_started_at else None,
        }


class DropScheduler:
    def __init__(
        self,
        engine,
        target_store,
        pattern_store,
        transfer_service,
        notifier,
        *,
        clock: Callable[[], datetime] | None = None,
        executor: ThreadPoolExecutor | None = None,
        max_workers: int = 16,
        poll_interval_seconds: int = 15,
        drop_max_retries: int = 15,
        manual_max_retries: int = 5,
        flexibility_minutes: int = 90,
        default_timezone: str | None = None,
    ):
        self.engine = engine
        self.target_store = target_store
        self.pattern_store = pattern_store
        self.transfer_service = transfer_service
        self.notifier = notifier
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._executor = executor or ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="acquisition")
        self.poll_interval_seconds = poll_interval_seconds
        self.drop_max_retries = drop_max_retries
        self.manual_max_retries = manual_max_retries
        self.flexibility_minutes = flexibility_minutes
        self.default_timezone = default_timezone

        self._actions: dict[str, ScheduledAction] = {}
        self._fired: set[tuple[str, datetime]] = set()
        self._inflight: set[str] = set()
        self._lock = threading.Lock()
        self._scheduler: BackgroundScheduler | None = None
        self._last_poll_at: datetime | None = None

    # --- lifecycle ---

    @property
    def running(self) -> bool:
        return self._scheduler is not None

    def start(self) -> bool:
        """Start the interval job (first tick immediately). False if already running."""
        with self._lock:
            if self._scheduler is not None:
                return False
            scheduler = BackgroundScheduler()
            scheduler.add_job(
                self.poll,
                "interval",
                seconds=self.poll_interval_seconds,
                id=SNIPER_POLL_JOB_ID,
                max_instances=1,
                coalesce=True,
                next_run_time=datetime.now(timezone.utc),
            )
            scheduler.start()
            self._scheduler = scheduler
        logger.info("Drop scheduler started (poll every %ss)", self.poll_interval_seconds)
        return True

    def stop(self) -> bool:
        """Stop polling and clear scheduled actions. Dispatched acquisitions finish and are recorded."""
        with self._lock:
            scheduler, self._scheduler = self._scheduler, None
            self._actions.clear()
        if scheduler is None:
            return False
        scheduler.shutdown(wait=False)
        logger.info("Drop scheduler stopped")
        return True

    def shutdown(self) -> None:
        self.stop()
        self._executor.shutdown(wait=False)

    # --- polling ---

    def trigger_poll(self) -> list[Future]:
        """One synchronous tick. Returns the futures of acquisitions dispatched in it."""
        return self.poll()

    def poll(self) -> list[Future]:
        now = self._clock()
        try:
            targets = self.target_store.list_watching()
        except Exception as e:
            logger.exception("Skipping tick: could not read watched targets: %s", e)
            return []
        futures: list[Future] = []
        seen: set[str] = set()
        for target in targets:
            seen.add(target.id)
            try:
                future = self._process_target(target, now)
            except Exception as e:
                logger.exception("Target %s (%s) skipped this tick: %s", target.id, target.restaurant_name, e)
                continue
            if future is not None:
                futures.append(future)
        self._cleanup(seen, now)
        self._last_poll_at = now
        logger.debug("Tick: %s watched, %s tracked, %s dispatched", len(targets), len(self._actions), len(futures))
        return futures

    def _resolve_drop(self, target: TargetSnapshot, now: datetime) -> datetime:
        reference = now if target.drop_date else now - timedelta(seconds=STALE_AFTER_SECONDS)
        return resolve_drop_instant(
            target.drop_date,
            target.drop_time,
            target.drop_timezone or self.default_timezone,
            now=reference,
        )

    def _process_target(self, target: TargetSnapshot, now: datetime) -> Future | None:
        drop_at = self._resolve_drop(target, now)
        seconds = (drop_at - now).total_seconds()
        if seconds < -STALE_AFTER_SECONDS:
            with self._lock:
                action = self._actions.get(target.id)
                if action is not None and not action.execution_started:
                    del self._actions[target.id]
            logger.debug("Target %s drop at %s is stale", target.id, drop_at.isoformat())
            return None

        with self._lock:
            action = self._actions.get(target.id)
            if action is None or (action.drop_at != drop_at and not action.execution_started):
                request = self._build_request(target, drop_at, max_retries=self.drop_max_retries, aggressive=True)
                action = ScheduledAction(target=target, drop_at=drop_at, request=request)
                self._actions[target.id] = action
                logger.info("Tracking %s: drop at %s", target.restaurant_name, drop_at.isoformat())
            elif action.drop_at != drop_at:
                return None
            if (target.id, drop_at) in self._fired:
                return None

        if ONE_MINUTE_ALERT_SECONDS < seconds <= FIVE_MINUTE_ALERT_SECONDS and action.mark_five_minute_alert():
            self._notify(notifications.drop_warning(target, drop_at, seconds))
        if PREWARM_SECONDS < seconds <= ONE_MINUTE_ALERT_SECONDS and action.mark_one_minute_alert():
            self._notify(notifications.drop_imminent(target))
            self._executor.submit(self.engine.prewarm, action.request)
        if -EXECUTION_GRACE_SECONDS <= seconds <= PREWARM_SECONDS:
            with self._lock:
                if target.id in self._inflight:
                    logger.info("Skipping %s: an acquisition is already running", target.restaurant_name)
                    return None
                if not action.try_start_execution(now):
                    return None
                self._inflight.add(target.id)
                self._fired.add((target.id, drop_at))
            logger.info("Executing %s (%.1fs to drop)", target.restaurant_name, seconds)
            try:
                return self._executor.submit(self._run_scheduled, action)
            except Exception:
                self._release(target.id)
                raise
        return None

    def _cleanup(self, seen: set[str], now: datetime) -> None:
        with self._lock:
            for target_id, action in list(self._actions.items()):
                if action.execution_started:
                    continue
                expired = (now - action.drop_at).total_seconds() > EXPIRED_ACTION_SECONDS
                if target_id not in seen or expired:
                    del self._actions[target_id]
            self._fired = {
                (tid, drop_at) for tid, drop_at in self._fired
                if (now - drop_at).total_seconds() <= STALE_AFTER_SECONDS
            }

    def _notify(self, message) -> None:
        try:
            self.notifier.send(message)
        except Exception as e:
            logger.warning("Notifier failed for %s: %s", message.kind, e)

    # --- execution ---

    def _reservation_date(self, target: TargetSnapshot, drop_at: datetime | None) -> str | None:
        """target_date, else drop_date, else the local date of the drop itself."""
        if target.target_date or target.drop_date:
            return target.target_date or target.drop_date
        if drop_at is None:
            return None
        return drop_at.astimezone(get_zone(target.drop_timezone or self.default_timezone)).date().isoformat()

    def _build_request(
        self, target: TargetSnapshot, drop_at: datetime | None, *, max_retries: int, aggressive: bool
    ) -> AcquisitionRequest:
        return AcquisitionRequest(
            platform=target.platform,
            restaurant_name=target.restaurant_name,
            date=self._reservation_date(target, drop_at),
            time=(target.preferred_time or DEFAULT_PREFERRED_TIME)[:5],
            party_size=target.party_size,
            venue_ids=target.venue_ids,
            max_retries=max_retries,
            time_flexibility_minutes=self.flexibility_minutes,
            aggressive=aggressive,
            target_id=target.id,
        )

    def _run_scheduled(self, action: ScheduledAction) -> AcquisitionResult | None:
        try:
            return self._execute(action.target, action.request, TRIGGER_DROP_TIME)
        finally:
            with self._lock:
                self._inflight.discard(action.target_id)
                if self._actions.get(action.target_id) is action:
                    del self._actions[action.target_id]

    def _release(self, target_id: str) -> None:
        with self._lock:
            self._inflight.discard(target_id)

    def _execute(self, target: TargetSnapshot, request: AcquisitionRequest, trigger: str) -> AcquisitionResult | None:
        """Run one acquisition and record it. Returns None if the execution itself crashed."""
        started = time.monotonic()
        try:
            result = self.engine.acquire(request)
        except Exception as e:
            logger.exception("Execution error for %s: %s", target.restaurant_name, e)
            try:
                self.target_store.set_status(target.id, TargetStatus.WATCHING)
            except Exception as store_error:
                logger.warning("Could not reset %s to WATCHING: %s", target.id, store_error)
            self._notify(notifications.execution_error(target, str(e)))
            return None
        self._record_outcome(target, request, result, trigger, int((time.monotonic() - started) * 1000))
        return result

    def _record_outcome(
        self,
        target: TargetSnapshot,
        request: AcquisitionRequest,
        result: AcquisitionResult,
        trigger: str,
        duration_ms: int,
    ) -> None:
        try:
            self.pattern_store.record_attempt(
                AttemptRecord(
                    restaurant_name=target.restaurant_name,
                    platform=target.platform,
                    success=result.success,
                    trigger_type=trigger,
                    target_id=target.id,
                    target_date=request.date,
                    target_time=result.booked_time or target.preferred_time,
                    party_size=target.party_size,
                    attempts=result.attempts,
                    duration_ms=duration_ms,
                    confirmation_code=result.confirmation_code,
                    error_message=result.error,
                    error_kind=result.error_kind,
                    drop_date=target.drop_date,
                    drop_time=target.drop_time,
                    drop_timezone=target.drop_timezone,
                )
            )
        except Exception as e:
            logger.exception("Failed to record attempt for %s: %s", target.id, e)

        if result.success:
            try:
                note = f"Confirmation: {result.confirmation_code}" if result.confirmation_code else None
                self.target_store.set_status(target.id, TargetStatus.ACQUIRED, note=note)
            except Exception as e:
                logger.exception("Failed to mark %s ACQUIRED: %s", target.id, e)
            try:
                transfer = self.transfer_service.create_from_acquisition(target, result, reservation_date=request.date)
                result.transfer_id = transfer["id"]
            except Exception as e:
                logger.exception("Failed to create transfer for %s: %s", target.id, e)
            self._notify(notifications.acquired(target, result))
        else:
            try:
                self.target_store.set_status(target.id, TargetStatus.PENDING_CONFIRMATION)
            except Exception as e:
                logger.exception("Failed to mark %s PENDING_CONFIRMATION: %s", target.id, e)
            self._notify(notifications.acquisition_failed(target, result))

    def trigger_manual_acquisition(self, target_id: str) -> AcquisitionResult:
        """Acquire now, bypassing the drop schedule. Blocks until the engine returns.

        Raises InvalidTransitionError while another acquisition for the target is running, and
        DropTimeError when no reservation date can be worked out for it.
        """
        target = self.target_store.get(target_id)
        if target is None:
            raise TargetNotFoundError(f"Target {target_id} not found")
        if target.status not in MANUAL_ELIGIBLE_STATUSES:
            raise InvalidTransitionError(f"Target {target_id} is {target.status}; nothing to acquire")
        drop_at = self._resolve_drop(target, self._clock()) if target.drop_time else None
        request = self._build_request(target, drop_at, max_retries=self.manual_max_retries, aggressive=False)
        with self._lock:
            if target_id in self._inflight:
                raise InvalidTransitionError(f"Acquisition for target {target_id} is already running")
            self._inflight.add(target_id)
        logger.info("Manual acquisition for %s", target.restaurant_name)
        try:
            result = self._execute(target, request, TRIGGER_MANUAL)
        finally:
            self._release(target_id)
        if result is None:
            raise InternalSchedulingError(f"Execution error for target {target_id}; target left watching")
        return result

    # --- status ---

    def watched(self) -> list[dict]:
        with self._lock:
            actions = list(self._actions.values())
        return [a.to_dict() for a in sorted(actions, key=lambda a: a.drop_at)]

    def next_drop(self) -> dict | None:
        """Soonest drop not yet executing."""
        with self._lock:
            pending = [a for a in self._actions.values() if not a.execution_started]
        if not pending:
            return None
        soonest = min(pending, key=lambda a: a.drop_at)
        return {
            "target_id": soonest.target_id,
            "restaurant_name": soonest.target.restaurant_name,
            "platform": soonest.target.platform,
            "drop_at": soonest.drop_at.isoformat(),
        }

    def get_status(self) -> dict:
        with self._lock:
            watched_count = len(self._actions)
        platforms = self.engine.clients_status()
        return {
            "running": self.running,
            "watched_count": watched_count,
            "next_drop": self.next_drop(),
            "last_poll_at": self._last_poll_at.isoformat() if self._last_poll_at else None,
            "poll_interval_seconds": self.poll_interval_seconds,
            "platforms_ready": {name: info["configured"] for name, info in platforms.items()},
        }
