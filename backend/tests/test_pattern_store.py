import pytest

from dropsniper.core.errors import TargetNotFoundError, UnknownPlatformError
from dropsniper.models.target import TargetStatus
from dropsniper.services.pattern_store import TRIGGER_MANUAL, AttemptRecord


def _record(store, success, *, drop_date="2025-01-01", drop_time="10:00", target_date="2025-01-22", **kwargs):
    return store.record_attempt(
        AttemptRecord(
            restaurant_name=kwargs.pop("restaurant_name", "Carbone"),
            platform=kwargs.pop("platform", "resy"),
            success=success,
            target_date=target_date,
            drop_date=drop_date,
            drop_time=drop_time,
            drop_timezone="America/New_York",
            attempts=kwargs.pop("attempts", 1),
            **kwargs,
        )
    )


def test_confidence_is_success_ratio(pattern_store):
    _record(pattern_store, True)
    _record(pattern_store, False, error_message="No slots available", error_kind="unavailable")
    pattern = _record(pattern_store, True)

    assert pattern["success_count"] == 2
    assert pattern["attempt_count"] == 3
    assert pattern["confidence"] == pytest.approx(2 / 3)
    assert pattern["lead_days"] == 21
    assert pattern["drop_time"] == "10:00"


def test_timing_follows_successes_until_locked(pattern_store):
    _record(pattern_store, True, drop_date="2025-01-08", drop_time="09:00")
    assert pattern_store.get_pattern("Carbone", "resy")["lead_days"] == 14

    _record(pattern_store, True)
    _record(pattern_store, True)
    # three successes: the schedule no longer moves
    pattern = _record(pattern_store, True, drop_date="2025-01-15", drop_time="12:00")

    assert pattern["success_count"] == 4
    assert pattern["lead_days"] == 21
    assert pattern["drop_time"] == "10:00"


def test_failures_do_not_move_timing(pattern_store):
    _record(pattern_store, True)
    pattern = _record(pattern_store, False, drop_date="2025-01-20", drop_time="08:00")

    assert pattern["lead_days"] == 21
    assert pattern["drop_time"] == "10:00"
    assert pattern["last_confirmed_at"] is not None


def test_history_keeps_every_attempt(pattern_store):
    _record(pattern_store, False, error_message="401", error_kind="rejected", target_id="t1")
    _record(pattern_store, True, confirmation_code="C-1", trigger_type=TRIGGER_MANUAL, target_id="t1", error_message="ignored")
    _record(pattern_store, True, restaurant_name="Lilia", target_id="t2")

    rows = pattern_store.history(target_id="t1")

    assert len(rows) == 2
    newest, oldest = rows
    assert newest["trigger_type"] == "manual"
    assert newest["confirmation_code"] == "C-1"
    assert newest["error_message"] is None
    assert oldest["error_kind"] == "rejected"
    assert len(pattern_store.history(limit=1)) == 1


def test_success_stats(pattern_store):
    _record(pattern_store, True)
    _record(pattern_store, False)
    _record(pattern_store, True, restaurant_name="Alinea", platform="tock")

    stats = pattern_store.success_stats()

    assert stats["total_attempts"] == 3
    assert stats["successful_attempts"] == 2
    assert stats["success_rate"] == pytest.approx(2 / 3)
    resy = next(r for r in stats["by_platform"] if r["platform"] == "resy")
    assert (resy["attempts"], resy["successes"], resy["rate"]) == (2, 1, 0.5)
    assert stats["by_restaurant"][0]["restaurant_name"] == "Carbone"


def test_suggest_drop_from_pattern(pattern_store):
    _record(pattern_store, True)

    suggestion = pattern_store.suggest_drop("Carbone", "resy", "2025-02-01")

    assert suggestion["drop_date"] == "2025-01-11"
    assert suggestion["drop_time"] == "10:00"
    assert suggestion["drop_timezone"] == "America/New_York"
    assert pattern_store.suggest_drop("Unknown", None, "2025-02-01") is None


def test_add_pattern_keeps_counters(pattern_store):
    _record(pattern_store, True)

    pattern = pattern_store.add_pattern("Carbone", "Resy", lead_days=30, drop_time="9:00", notes="from staff")

    assert pattern["lead_days"] == 30
    assert pattern["drop_time"] == "09:00"
    assert pattern["success_count"] == 1
    assert pattern["attempt_count"] == 1
    assert [p["restaurant_name"] for p in pattern_store.list_patterns()] == ["Carbone"]


def test_add_pattern_rejects_negative_lead(pattern_store):
    with pytest.raises(ValueError):
        pattern_store.add_pattern("Carbone", "resy", lead_days=-1, drop_time="10:00")


class TestTargetStore:
    def test_create_normalizes_and_watches(self, target_store):
        target = target_store.create(
            restaurant_name="  Carbone ",
            platform="Resy",
            target_date="2025-01-22",
            drop_date="2025-01-01",
            drop_time="9:00",
            drop_timezone="America/New_York",
            resy_venue_id=6194,
        )

        assert target.restaurant_name == "Carbone"
        assert target.platform == "resy"
        assert target.drop_time == "09:00"
        assert target.preferred_time == "19:00"
        assert target.status == TargetStatus.WATCHING.value
        assert target.venue_ids.resy_venue_id == 6194
        assert [t.id for t in target_store.list_watching()] == [target.id]

    def test_create_fills_drop_from_pattern(self, target_store, pattern_store):
        pattern_store.add_pattern("Carbone", "resy", lead_days=21, drop_time="10:00", drop_timezone="America/New_York")

        target = target_store.create(restaurant_name="Carbone", platform="resy", target_date="2025-02-01")

        assert (target.drop_date, target.drop_time, target.drop_timezone) == ("2025-01-11", "10:00", "America/New_York")

    def test_targets_without_drop_time_are_not_watched(self, target_store):
        target_store.create(restaurant_name="Lilia", platform="resy", target_date="2025-02-01")

        assert target_store.list_watching() == []
        assert len(target_store.list_targets("watching")) == 1

    def test_rejects_bad_input(self, target_store):
        with pytest.raises(UnknownPlatformError):
            target_store.create(restaurant_name="X", platform="yelp")
        with pytest.raises(ValueError):
            target_store.create(restaurant_name="X", platform="resy", party_size=0)

    def test_set_status_appends_note(self, target_store):
        target = target_store.create(restaurant_name="Lilia", platform="resy", notes="corner table")

        updated = target_store.set_status(target.id, "acquired", note="Confirmation: R-1")

        assert updated.status == "ACQUIRED"
        assert updated.notes == "corner table Confirmation: R-1"
        with pytest.raises(TargetNotFoundError):
            target_store.set_status("missing", TargetStatus.FAILED)

    def test_delete(self, target_store):
        target = target_store.create(restaurant_name="Lilia", platform="resy")
        target_store.delete(target.id)

        assert target_store.get(target.id) is None
        with pytest.raises(TargetNotFoundError):
            target_store.delete(target.id)
