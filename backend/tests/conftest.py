"""Shared fixtures: in-memory SQLite, fake platform capabilities, recording notifier, fixed clocks."""
from concurrent.futures import Future
from datetime import datetime, timezone

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import dropsniper.models  # noqa: F401  (register models on Base.metadata)
from dropsniper.db.base import Base
from dropsniper.platforms.registry import PlatformRegistry
from dropsniper.platforms.types import BookingOutcome, Platform, Slot, slot_id
from dropsniper.services.pattern_store import PatternStore
from dropsniper.services.target_store import TargetStore
from dropsniper.services.transfer_service import TransferService


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    yield factory
    engine.dispose()


class MockClock:
    """Callable wall clock (aware UTC) that only moves when told to."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def set(self, now: datetime) -> None:
        self.now = now


@pytest.fixture
def clock():
    return MockClock(datetime(2025, 1, 1, 14, 0, tzinfo=timezone.utc))


def make_slot(hhmm: str, token: str | None = None) -> Slot:
    return Slot(slot_id=slot_id("fake", 1, hhmm), time=hhmm, token=token or f"tok-{hhmm}")


class FakeCapability:
    """
    Scripted capability. `search` and `book` are lists consumed one item per call; the last item
    repeats once the list is down to one. Items that are exceptions are raised.
    """

    uses_browser = False

    def __init__(self, platform=Platform.RESY, *, configured=True, search=None, book=None, on_book=None):
        self.platform = platform
        self.configured = configured
        self.search = list(search if search is not None else [[make_slot("19:00")]])
        self.book_results = list(
            book if book is not None else [BookingOutcome(success=True, confirmation_code="CONF-1")]
        )
        self.on_book = on_book
        self.search_calls: list[tuple] = []
        self.book_calls: list[tuple] = []

    @staticmethod
    def _next(items):
        item = items.pop(0) if len(items) > 1 else items[0]
        if isinstance(item, BaseException):
            raise item
        return item

    def is_configured(self) -> bool:
        return self.configured

    def search_availability(self, venue_id, date_str, party_size, *, preferred_time=None):
        self.search_calls.append((venue_id, date_str, party_size, preferred_time))
        return list(self._next(self.search))

    def book(self, slot, request, *, idempotency_key):
        self.book_calls.append((slot.time, idempotency_key))
        if self.on_book is not None:
            self.on_book()
        return self._next(self.book_results)


@pytest.fixture
def fake_capability():
    return FakeCapability()


@pytest.fixture
def registry(fake_capability):
    reg = PlatformRegistry()
    reg.register(fake_capability)
    return reg


class RecordingNotifier:
    def __init__(self, fail: bool = False):
        self.messages = []
        self.fail = fail

    def send(self, message) -> None:
        self.messages.append(message)
        if self.fail:
            raise RuntimeError("notifier down")

    @property
    def kinds(self) -> list[str]:
        return [m.kind for m in self.messages]


@pytest.fixture
def notifier():
    return RecordingNotifier()


class ImmediateExecutor:
    """Runs submitted work inline; the returned future is already resolved."""

    def submit(self, fn, *args, **kwargs) -> Future:
        future: Future = Future()
        try:
            future.set_result(fn(*args, **kwargs))
        except BaseException as e:
            future.set_exception(e)
        return future

    def shutdown(self, wait: bool = True) -> None:
        pass


@pytest.fixture
def pattern_store(session_factory, clock):
    return PatternStore(session_factory, clock=clock)


@pytest.fixture
def target_store(session_factory, pattern_store):
    return TargetStore(session_factory, pattern_store)


@pytest.fixture
def transfer_service(session_factory, clock):
    return TransferService(session_factory, clock=clock)
