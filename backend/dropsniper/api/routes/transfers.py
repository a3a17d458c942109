"""
Transfers: resale lifecycle of acquired reservations.
"""
from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from dropsniper.api.deps import get_runtime, handle_service_error
from dropsniper.core.errors import SniperError
from dropsniper.runtime import SniperRuntime

router = APIRouter()


class TransferCreate(BaseModel):
    restaurant_name: str
    platform: str
    reservation_date: str
    reservation_time: str
    party_size: int = Field(..., ge=1)
    reservation_timezone: str | None = None
    confirmation_number: str | None = None
    target_id: str | None = None
    notes: str | None = None


class ListedBody(BaseModel):
    listing_id: str
    listing_url: str | None = None
    listing_price: float = Field(..., ge=0)


class SoldBody(BaseModel):
    buyer_name: str
    sale_price: float = Field(..., ge=0)
    transfer_method: str
    buyer_email: str | None = None
    buyer_phone: str | None = None


class NotesBody(BaseModel):
    notes: str | None = None


@router.get("/", response_model=list)
def list_transfers(
    status: str | None = Query(None),
    platform: str | None = Query(None),
    upcoming: bool = Query(False),
    runtime: SniperRuntime = Depends(get_runtime),
):
    try:
        return runtime.transfer_service.list_transfers(status=status, platform=platform, upcoming=upcoming)
    except (SniperError, ValueError) as e:
        handle_service_error(e)


@router.get("/stats", response_model=dict)
def revenue_stats(runtime: SniperRuntime = Depends(get_runtime)):
    return runtime.transfer_service.revenue_stats()


@router.get("/action-needed", response_model=list)
def action_needed(runtime: SniperRuntime = Depends(get_runtime)):
    """Sold or pending transfers whose deadline is within 48 hours (or already past)."""
    return runtime.transfer_service.needing_action()


@router.get("/{transfer_id}", response_model=dict)
def get_transfer(transfer_id: int, runtime: SniperRuntime = Depends(get_runtime)):
    try:
        return runtime.transfer_service.get(transfer_id)
    except SniperError as e:
        handle_service_error(e)


@router.post("/", response_model=dict, status_code=201)
def create_transfer(body: TransferCreate, runtime: SniperRuntime = Depends(get_runtime)):
    try:
        return runtime.transfer_service.create(**body.model_dump())
    except (SniperError, ValueError) as e:
        handle_service_error(e)


@router.put("/{transfer_id}/listed", response_model=dict)
def mark_listed(transfer_id: int, body: ListedBody, runtime: SniperRuntime = Depends(get_runtime)):
    try:
        return runtime.transfer_service.mark_listed(transfer_id, body.listing_id, body.listing_url, body.listing_price)
    except (SniperError, ValueError) as e:
        handle_service_error(e)


@router.put("/{transfer_id}/sold", response_model=dict)
def mark_sold(transfer_id: int, body: SoldBody, runtime: SniperRuntime = Depends(get_runtime)):
    """Record the buyer; sets the transfer deadline 24h before the reservation."""
    try:
        return runtime.transfer_service.mark_sold(
            transfer_id,
            buyer_name=body.buyer_name,
            sale_price=body.sale_price,
            transfer_method=body.transfer_method,
            buyer_email=body.buyer_email,
            buyer_phone=body.buyer_phone,
        )
    except (SniperError, ValueError) as e:
        handle_service_error(e)


@router.put("/{transfer_id}/transfer-pending", response_model=dict)
def mark_pending(transfer_id: int, body: NotesBody | None = None, runtime: SniperRuntime = Depends(get_runtime)):
    try:
        return runtime.transfer_service.mark_pending(transfer_id, body.notes if body else None)
    except (SniperError, ValueError) as e:
        handle_service_error(e)


@router.put("/{transfer_id}/transferred", response_model=dict)
def mark_transferred(transfer_id: int, body: NotesBody | None = None, runtime: SniperRuntime = Depends(get_runtime)):
    try:
        return runtime.transfer_service.mark_transferred(transfer_id, body.notes if body else None)
    except (SniperError, ValueError) as e:
        handle_service_error(e)


@router.put("/{transfer_id}/completed", response_model=dict)
def mark_completed(transfer_id: int, runtime: SniperRuntime = Depends(get_runtime)):
    try:
        return runtime.transfer_service.mark_completed(transfer_id)
    except (SniperError, ValueError) as e:
        handle_service_error(e)


@router.delete("/{transfer_id}", response_model=dict)
def delete_transfer(transfer_id: int, runtime: SniperRuntime = Depends(get_runtime)):
    try:
        runtime.transfer_service.delete(transfer_id)
    except SniperError as e:
        handle_service_error(e)
    return {"ok": True, "id": transfer_id}


@router.get("/{transfer_id}/listing", response_model=dict)
def listing_draft(transfer_id: int, runtime: SniperRuntime = Depends(get_runtime)):
    """Title, description and price suggestion for a resale listing."""
    try:
        return runtime.transfer_service.listing_draft(transfer_id)
    except (SniperError, ValueError) as e:
        handle_service_error(e)
