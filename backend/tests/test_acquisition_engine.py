import pytest

from conftest import FakeCapability, make_slot
from dropsniper.core.errors import NetworkTimeout, PlatformRejected, TransientUnavailable
from dropsniper.platforms.registry import PlatformRegistry
from dropsniper.platforms.types import AcquisitionRequest, BookingOutcome, Platform, VenueIds
from dropsniper.services.acquisition_engine import AcquisitionEngine, select_slot

pytestmark = pytest.mark.unit


class FakeMonotonic:
    def __init__(self):
        self.t = 0.0

    def __call__(self) -> float:
        return self.t


def _engine(capability, **kwargs):
    registry = PlatformRegistry()
    registry.register(capability)
    sleeps: list[float] = []
    engine = AcquisitionEngine(registry, sleep=sleeps.append, **kwargs)
    return engine, sleeps


def _request(**overrides):
    values = dict(
        platform="resy",
        restaurant_name="Carbone",
        date="2025-01-22",
        time="19:00",
        party_size=2,
        venue_ids=VenueIds(resy_venue_id=6194),
        max_retries=3,
    )
    values.update(overrides)
    return AcquisitionRequest(**values)


def test_exhausts_retries_when_nothing_is_bookable():
    capability = FakeCapability(search=[[]])
    engine, sleeps = _engine(capability)

    result = engine.acquire(_request())

    assert result.success is False
    assert result.attempts == 3
    assert result.error_kind == "unavailable"
    assert result.error == "No slots available"
    assert sleeps == [0.5, 0.5]
    assert capability.book_calls == []


def test_succeeds_on_second_attempt():
    capability = FakeCapability(search=[[], [make_slot("19:00")]])
    engine, _ = _engine(capability)

    result = engine.acquire(_request())

    assert result.success is True
    assert result.attempts == 2
    assert result.confirmation_code == "CONF-1"
    assert result.booked_time == "19:00"
    assert result.error is None


def test_aggressive_uses_short_delay():
    capability = FakeCapability(search=[[]])
    engine, sleeps = _engine(capability)

    engine.acquire(_request(aggressive=True))

    assert sleeps == [0.2, 0.2]


def test_unconfigured_capability_is_never_called():
    capability = FakeCapability(configured=False)
    engine, _ = _engine(capability)

    result = engine.acquire(_request())

    assert result.success is False
    assert result.attempts == 0
    assert result.error_kind == "configuration"
    assert capability.search_calls == []


def test_missing_venue_id_is_a_configuration_failure():
    capability = FakeCapability()
    engine, _ = _engine(capability)

    result = engine.acquire(_request(venue_ids=VenueIds(opentable_id=1)))

    assert result.attempts == 0
    assert result.error_kind == "configuration"
    assert capability.search_calls == []


def test_unregistered_platform_is_a_configuration_failure():
    engine, _ = _engine(FakeCapability())

    result = engine.acquire(_request(platform="tock", venue_ids=VenueIds(tock_slug="alinea")))

    assert result.attempts == 0
    assert result.error_kind == "configuration"
    assert result.platform is Platform.TOCK


def test_rejection_aborts_without_retry():
    capability = FakeCapability(search=[PlatformRejected("Resy API error: 401")])
    engine, sleeps = _engine(capability)

    result = engine.acquire(_request(max_retries=10))

    assert result.attempts == 1
    assert result.error_kind == "rejected"
    assert len(capability.search_calls) == 1
    assert sleeps == []


def test_timeout_counts_as_attempt_then_recovers():
    capability = FakeCapability(search=[NetworkTimeout("timed out"), [make_slot("19:15")]])
    engine, _ = _engine(capability)

    result = engine.acquire(_request())

    assert result.success is True
    assert result.attempts == 2
    assert result.booked_time == "19:15"


def test_unexpected_exception_is_recorded_not_raised():
    capability = FakeCapability(search=[RuntimeError("boom")])
    engine, _ = _engine(capability)

    result = engine.acquire(_request(max_retries=2))

    assert result.success is False
    assert result.attempts == 2
    assert result.error_kind == "error"
    assert result.error == "boom"


def test_book_failure_retries_with_same_idempotency_key():
    capability = FakeCapability(
        book=[
            BookingOutcome(success=False, error="slot taken"),
            TransientUnavailable("Resy returned no book_token"),
            BookingOutcome(success=True, confirmation_code="R-99"),
        ]
    )
    engine, _ = _engine(capability)

    result = engine.acquire(_request())

    assert result.success is True
    assert result.attempts == 3
    keys = {key for _, key in capability.book_calls}
    assert len(capability.book_calls) == 3
    assert len(keys) == 1


def test_no_slot_in_window_reports_window():
    capability = FakeCapability(search=[[make_slot("22:30")]])
    engine, _ = _engine(capability)

    result = engine.acquire(_request(max_retries=1, time_flexibility_minutes=30))

    assert result.success is False
    assert result.error == "No slot within 30 minutes of 19:00"


def test_deadline_stops_retrying():
    monotonic = FakeMonotonic()
    capability = FakeCapability(search=[[]])
    registry = PlatformRegistry()
    registry.register(capability)

    def sleep(seconds):
        monotonic.t += 40

    engine = AcquisitionEngine(registry, sleep=sleep, clock=monotonic, deadline_seconds=60)
    result = engine.acquire(_request(max_retries=10))

    assert result.attempts == 3
    assert "deadline" in result.error


def test_prewarm_never_raises():
    capability = FakeCapability(search=[NetworkTimeout("slow")])
    engine, _ = _engine(capability)

    assert engine.prewarm(_request()) is False
    # sevenrooms has no registered capability
    assert engine.prewarm(_request(platform="sevenrooms")) is False


def test_clients_status_covers_every_platform():
    engine, _ = _engine(FakeCapability(configured=False))

    status = engine.clients_status()

    assert set(status) == {"resy", "opentable", "sevenrooms", "tock"}
    assert status["resy"] == {"registered": True, "configured": False, "uses_browser": False}
    assert status["tock"]["registered"] is False


class TestSelectSlot:
    def test_exact_match_wins(self):
        slots = [make_slot("18:45"), make_slot("19:00"), make_slot("19:10")]
        assert select_slot(slots, "19:00", 60).time == "19:00"

    def test_nearest_within_window(self):
        slots = [make_slot("17:00"), make_slot("19:40"), make_slot("20:30")]
        assert select_slot(slots, "19:00", 60).time == "19:40"

    def test_earlier_wins_a_tie(self):
        slots = [make_slot("19:30"), make_slot("18:30")]
        assert select_slot(slots, "19:00", 60).time == "18:30"

    def test_nothing_in_window(self):
        assert select_slot([make_slot("22:00")], "19:00", 60) is None

    def test_aggressive_falls_back_to_earliest(self):
        slots = [make_slot("22:30"), make_slot("21:45")]
        assert select_slot(slots, "19:00", 60, aggressive=True).time == "21:45"

    def test_empty_and_unparsable(self):
        assert select_slot([], "19:00", 60) is None
        assert select_slot([make_slot("20:00"), make_slot("18:00")], None, 0).time == "18:00"
