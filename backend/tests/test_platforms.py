import json

import pytest

from conftest import FakeCapability
from dropsniper.core.errors import (
    ConfigurationError,
    DropTimeError,
    PlatformRejected,
    TransientUnavailable,
    UnknownPlatformError,
)
from dropsniper.platforms import opentable, resy, sevenrooms, tock
from dropsniper.platforms.http import check_status
from dropsniper.platforms.registry import PlatformRegistry
from dropsniper.platforms.types import AcquisitionRequest, Platform, VenueIds, slot_id

pytestmark = pytest.mark.unit


@pytest.mark.parametrize(
    "raw, expected",
    [("Resy", Platform.RESY), ("OpenTable", Platform.OPENTABLE), ("seven-rooms", Platform.SEVENROOMS), ("TOCK", Platform.TOCK)],
)
def test_platform_parse_accepts_stored_spellings(raw, expected):
    assert Platform.parse(raw) is expected


def test_unknown_platform_rejected_at_request_construction():
    with pytest.raises(UnknownPlatformError):
        AcquisitionRequest(platform="yelp", restaurant_name="X", date="2025-01-01", time="19:00", party_size=2)


def test_request_validation_and_venue_lookup():
    with pytest.raises(ValueError):
        AcquisitionRequest(platform="resy", restaurant_name="X", date="2025-01-01", time="19:00", party_size=0)
    request = AcquisitionRequest(
        platform="opentable",
        restaurant_name="X",
        date="2025-01-01",
        time="19:00",
        party_size=2,
        venue_ids=VenueIds(resy_venue_id=1, opentable_id=42),
    )
    assert request.venue_id == 42


def test_slot_id_is_stable():
    a = slot_id("resy", 6194, "2026-02-18 20:30:00")
    assert a == slot_id("resy", 6194, "2026-02-18 20:30:00")
    assert a != slot_id("resy", 6194, "2026-02-18 21:00:00")
    assert len(a) == 32


def test_registry_rejects_untagged_and_reports_missing():
    registry = PlatformRegistry()
    capability = FakeCapability()
    capability.platform = "yelp"
    with pytest.raises(UnknownPlatformError):
        registry.register(capability)
    with pytest.raises(ConfigurationError):
        registry.get("resy")

    registry.register(FakeCapability(Platform.TOCK))
    assert registry.platforms() == [Platform.TOCK]
    assert Platform.TOCK in registry


@pytest.mark.parametrize(
    "status, error",
    [(401, PlatformRejected), (422, PlatformRejected), (429, TransientUnavailable), (503, TransientUnavailable), (418, PlatformRejected)],
)
def test_check_status_maps_to_taxonomy(status, error):
    with pytest.raises(error):
        check_status("Resy", status, "nope")
    check_status("Resy", 201)


def test_resy_parse_find_response():
    data = {
        "results": {
            "venues": [
                {
                    "slots": [
                        {"config": {"token": "rgs://1", "type": "Dining Room"}, "date": {"start": "2026-02-18 20:30:00"}},
                        {"config": {"token": ""}, "date": {"start": "2026-02-18 21:00:00"}},
                        {"config": {"token": "rgs://2"}, "date": {}},
                    ]
                }
            ]
        }
    }
    [slot] = resy.parse_find_response(data, 6194)
    assert (slot.time, slot.token) == ("20:30", "rgs://1")
    assert resy.parse_find_response({"results": {}}, 6194) == []


def test_resy_book_posts_book_token(monkeypatch):
    calls = []

    def fake_request_json(method, url, **kwargs):
        calls.append((method, url, kwargs))
        if url.endswith("/3/details"):
            return {"book_token": {"value": "bt-1"}}
        return {"resy_token": "RT-9"}

    monkeypatch.setattr(resy, "request_json", fake_request_json)
    capability = resy.ResyCapability(resy.ResyConfig(api_key="k", auth_token="a", payment_method_id="123"))
    request = AcquisitionRequest(
        platform="resy", restaurant_name="Carbone", date="2026-02-18", time="20:30", party_size=2,
        venue_ids=VenueIds(resy_venue_id=6194),
    )
    [slot] = resy.parse_find_response(
        {"results": {"venues": [{"slots": [{"config": {"token": "rgs://1"}, "date": {"start": "2026-02-18 20:30:00"}}]}]}},
        6194,
    )

    outcome = capability.book(slot, request, idempotency_key="k1")

    assert outcome.success is True
    assert outcome.confirmation_code == "RT-9"
    method, url, kwargs = calls[-1]
    assert (method, url) == ("POST", "https://api.resy.com/3/book")
    assert kwargs["form"]["book_token"] == "bt-1"
    assert json.loads(kwargs["form"]["struct_payment_method"]) == {"id": 123}


def test_resy_missing_book_token_is_transient(monkeypatch):
    monkeypatch.setattr(resy, "request_json", lambda method, url, **kw: {})
    capability = resy.ResyCapability(resy.ResyConfig(api_key="k", auth_token="a", payment_method_id="1"))
    with pytest.raises(TransientUnavailable):
        capability._book_token("rgs://1", "2026-02-18", 2)


def test_opentable_slot_times_are_offsets():
    data = {
        "data": {
            "availability": [
                {
                    "availabilityDays": [
                        {
                            "slots": [
                                {"isAvailable": True, "timeOffsetMinutes": -30, "slotAvailabilityToken": "a", "slotHash": "h1"},
                                {"isAvailable": False, "timeOffsetMinutes": 0},
                                {"isAvailable": True, "timeOffsetMinutes": 45, "slotAvailabilityToken": "b", "slotHash": "h2"},
                            ]
                        }
                    ]
                }
            ]
        }
    }
    slots = opentable.parse_availability(data, 1234, "19:00")
    assert [(s.time, s.token) for s in slots] == [("18:30", "a"), ("19:45", "b")]
    assert slots[0].payload["slot_hash"] == "h1"


def test_sevenrooms_skips_display_only_times():
    data = {
        "data": {
            "availability": {
                "2025-03-01": [
                    {
                        "times": [
                            {"time": "7:30 PM", "access_persistent_id": "ap-1", "shift_persistent_id": "s-1"},
                            {"time": "8:00 PM", "access_persistent_id": None},
                            {"time_iso": "2025-03-01T21:15:00", "access_persistent_id": "ap-2"},
                        ]
                    }
                ]
            }
        }
    }
    slots = sevenrooms.parse_availability(data, "venue", "2025-03-01")
    assert [(s.time, s.token) for s in slots] == [("19:30", "ap-1"), ("21:15", "ap-2")]
    assert sevenrooms.parse_availability(data, "venue", "2025-03-02") == []


def test_tock_parse_availability():
    data = {
        "availabilities": [
            {"id": 11, "start_time": "2025-04-01T18:00:00", "tickets_available": 2, "experience_name": "Tasting"},
            {"id": 12, "start_time": "2025-04-01T20:00:00", "tickets_available": 0},
            {"start_time": "2025-04-01T21:00:00"},
        ]
    }
    [slot] = tock.parse_availability(data, "alinea")
    assert (slot.time, slot.token) == ("18:00", "11")
    assert slot.payload["experience_name"] == "Tasting"


def test_unconfigured_capabilities():
    assert resy.ResyCapability(resy.ResyConfig(api_key="k")).is_configured() is False
    assert opentable.OpenTableCapability().is_configured() is False


def test_request_requires_a_reservation_date():
    with pytest.raises(DropTimeError):
        AcquisitionRequest(platform="resy", restaurant_name="X", date=None, time="19:00", party_size=2)
    with pytest.raises(DropTimeError):
        AcquisitionRequest(platform="resy", restaurant_name="X", date="next friday", time="19:00", party_size=2)
    assert AcquisitionRequest(platform="resy", restaurant_name="X", date=" 2025-03-01 ", time="19:00", party_size=2).date == "2025-03-01"
