"""Wires settings, stores, platform registry, engine and scheduler into one runtime object."""
import logging
from dataclasses import dataclass

from dropsniper.config import Settings
from dropsniper.platforms.browser import BrowserSession
from dropsniper.platforms.registry import PlatformRegistry, build_default_registry
from dropsniper.scheduler.drop_scheduler import DropScheduler
from dropsniper.services.acquisition_engine import AcquisitionEngine
from dropsniper.services.notifications import Notifier, build_notifier
from dropsniper.services.pattern_store import PatternStore
from dropsniper.services.target_store import TargetStore
from dropsniper.services.transfer_service import TransferService

logger = logging.getLogger(__name__)


@dataclass
class SniperRuntime:
    settings: Settings
    registry: PlatformRegistry
    engine: AcquisitionEngine
    target_store: TargetStore
    pattern_store: PatternStore
    transfer_service: TransferService
    notifier: Notifier
    scheduler: DropScheduler
    browser_session: BrowserSession | None = None

    def close(self) -> None:
        self.scheduler.shutdown()
        if self.browser_session is not None:
            self.browser_session.close()


def build_runtime(
    settings: Settings,
    *,
    session_factory=None,
    registry: PlatformRegistry | None = None,
    notifier: Notifier | None = None,
) -> SniperRuntime:
    if session_factory is None:
        from dropsniper.db.session import SessionLocal

        session_factory = SessionLocal
    browser_session = None
    if registry is None:
        browser_session = BrowserSession(headless=settings.tock_headless, timeout_seconds=settings.platform_timeout_seconds)
        registry = build_default_registry(settings, browser_session)
    engine = AcquisitionEngine(registry, deadline_seconds=settings.acquisition_deadline_seconds)
    pattern_store = PatternStore(session_factory)
    target_store = TargetStore(session_factory, pattern_store)
    transfer_service = TransferService(session_factory)
    notifier = notifier or build_notifier(settings)
    scheduler = DropScheduler(
        engine,
        target_store,
        pattern_store,
        transfer_service,
        notifier,
        max_workers=settings.max_concurrent_acquisitions,
        poll_interval_seconds=settings.poll_interval_seconds,
        drop_max_retries=settings.drop_max_retries,
        manual_max_retries=settings.manual_max_retries,
        flexibility_minutes=settings.drop_time_flexibility_minutes,
        default_timezone=settings.default_timezone or None,
    )
    return SniperRuntime(
        settings=settings,
        registry=registry,
        engine=engine,
        target_store=target_store,
        pattern_store=pattern_store,
        transfer_service=transfer_service,
        notifier=notifier,
        scheduler=scheduler,
        browser_session=browser_session,
    )
