from datetime import date, datetime, timezone

import pytest

from dropsniper.core.errors import InvalidTransitionError, TransferNotFoundError
from dropsniper.platforms.types import AcquisitionResult, Platform
from dropsniper.services.target_store import TargetSnapshot


def _create(service, **overrides):
    values = dict(
        restaurant_name="Carbone",
        platform="resy",
        reservation_date="2025-06-14",
        reservation_time="19:30",
        party_size=2,
        reservation_timezone="America/New_York",
        confirmation_number="RESY-1",
    )
    values.update(overrides)
    return service.create(**values)


def _sell(service, transfer_id, price=300.0):
    return service.mark_sold(transfer_id, buyer_name="Ana", sale_price=price, transfer_method="name_change")


def test_full_forward_lifecycle(transfer_service):
    t = _create(transfer_service)
    assert t["status"] == "ACQUIRED"

    t = transfer_service.mark_listed(t["id"], "L-1", "https://example.com/l/1", 250.0)
    assert (t["status"], t["listing_price"]) == ("LISTED", 250.0)
    t = _sell(transfer_service, t["id"])
    assert t["status"] == "SOLD"
    assert t["transfer_method"] == "NAME_CHANGE"
    t = transfer_service.mark_pending(t["id"], "Buyer sent details")
    assert t["status"] == "TRANSFER_PENDING"
    t = transfer_service.mark_transferred(t["id"], "Name changed")
    assert t["status"] == "TRANSFERRED"
    assert t["transfer_completed_at"] is not None
    assert t["notes"] == "Buyer sent details\nName changed"
    t = transfer_service.mark_completed(t["id"])
    assert t["status"] == "COMPLETED"


def test_sold_without_listing_and_transferred_without_pending(transfer_service):
    t = _create(transfer_service)
    t = _sell(transfer_service, t["id"])
    t = transfer_service.mark_transferred(t["id"])
    assert t["status"] == "TRANSFERRED"


@pytest.mark.parametrize(
    "steps, move",
    [
        (["sold"], "listed"),
        ([], "transferred"),
        ([], "completed"),
        (["sold", "transferred", "completed"], "pending"),
    ],
)
def test_backward_or_skipping_moves_are_rejected(transfer_service, steps, move):
    t = _create(transfer_service)
    actions = {
        "listed": lambda i: transfer_service.mark_listed(i, "L-9", None, 100.0),
        "sold": lambda i: _sell(transfer_service, i),
        "pending": lambda i: transfer_service.mark_pending(i),
        "transferred": lambda i: transfer_service.mark_transferred(i),
        "completed": lambda i: transfer_service.mark_completed(i),
    }
    for step in steps:
        actions[step](t["id"])
    before = transfer_service.get(t["id"])["status"]

    with pytest.raises(InvalidTransitionError) as exc:
        actions[move](t["id"])

    assert exc.value.detail["from"] == before
    assert transfer_service.get(t["id"])["status"] == before


def test_deadline_is_24_hours_before_reservation(transfer_service, clock):
    t = _create(transfer_service)
    t = _sell(transfer_service, t["id"])

    # 19:30 EDT on 2025-06-14 is 23:30 UTC
    assert t["transfer_deadline"] == datetime(2025, 6, 13, 23, 30, tzinfo=timezone.utc).isoformat()
    assert t["sold_at"] == clock.now.isoformat()


def test_unknown_transfer_method_is_rejected(transfer_service):
    t = _create(transfer_service)
    with pytest.raises(ValueError):
        transfer_service.mark_sold(t["id"], buyer_name="Ana", sale_price=1.0, transfer_method="carrier_pigeon")


def test_needing_action_window_and_order(transfer_service):
    now = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)
    # Reservation times are deadline + 24h, all in UTC
    due_in_10h = _create(transfer_service, reservation_date="2025-06-02", reservation_time="22:00", reservation_timezone="UTC")
    due_in_47h = _create(transfer_service, reservation_date="2025-06-04", reservation_time="11:00", reservation_timezone="UTC")
    overdue = _create(transfer_service, reservation_date="2025-06-02", reservation_time="07:00", reservation_timezone="UTC")
    far = _create(transfer_service, reservation_date="2025-06-05", reservation_time="00:00", reservation_timezone="UTC")
    unsold = _create(transfer_service, reservation_date="2025-06-02", reservation_time="08:00", reservation_timezone="UTC")
    for t in (due_in_10h, due_in_47h, overdue, far):
        _sell(transfer_service, t["id"])
    transfer_service.mark_pending(due_in_47h["id"])

    ids = [t["id"] for t in transfer_service.needing_action(now)]

    assert ids == [overdue["id"], due_in_10h["id"], due_in_47h["id"]]
    assert unsold["id"] not in ids


def test_list_filters(transfer_service):
    past = _create(transfer_service, reservation_date="2024-12-01")
    upcoming = _create(transfer_service, platform="OpenTable", reservation_date="2025-02-01")

    assert [t["id"] for t in transfer_service.list_transfers(upcoming=True, today=date(2025, 1, 1))] == [upcoming["id"]]
    assert [t["id"] for t in transfer_service.list_transfers(platform="opentable")] == [upcoming["id"]]
    assert [t["id"] for t in transfer_service.list_transfers(status="acquired")] == [past["id"], upcoming["id"]]


def test_revenue_stats(transfer_service):
    a = _create(transfer_service)
    b = _create(transfer_service, platform="tock")
    _create(transfer_service)
    _sell(transfer_service, a["id"], price=300.0)
    _sell(transfer_service, b["id"], price=500.0)

    stats = transfer_service.revenue_stats()

    assert stats["total_sales"] == 2
    assert stats["total_revenue"] == 800.0
    assert stats["avg_sale_price"] == 400.0
    assert stats["by_platform"]["resy"] == {"count": 1, "revenue": 300.0}
    assert stats["by_status"] == {"SOLD": 2, "ACQUIRED": 1}


def test_listing_draft(transfer_service):
    t = _create(transfer_service)

    draft = transfer_service.listing_draft(t["id"])

    assert draft["title"] == "Carbone - Saturday June 14 @ 7:30 PM (2 guests)"
    assert "Transfer via Resy name change" in draft["description"]
    assert draft["price_suggestion"] == 150.0


def test_create_from_acquisition(transfer_service):
    target = TargetSnapshot(
        id="t1",
        restaurant_name="Alinea",
        platform="tock",
        drop_date="2025-05-01",
        drop_time="11:00",
        drop_timezone="America/Chicago",
        target_date="2025-06-01",
        preferred_time="19:00",
        party_size=4,
        status="WATCHING",
        tock_slug="alinea",
    )
    result = AcquisitionResult(success=True, platform=Platform.TOCK, confirmation_code="TK-7", booked_time="18:30")

    t = transfer_service.create_from_acquisition(target, result)

    assert t["reservation_time"] == "18:30"
    assert t["reservation_timezone"] == "America/Chicago"
    assert t["confirmation_number"] == "TK-7"
    assert t["target_id"] == "t1"


def test_delete_any_state(transfer_service):
    t = _create(transfer_service)
    _sell(transfer_service, t["id"])

    transfer_service.delete(t["id"])

    with pytest.raises(TransferNotFoundError):
        transfer_service.get(t["id"])
    with pytest.raises(TransferNotFoundError):
        transfer_service.delete(t["id"])
