"""
Targets: the reservations the scheduler watches.
"""
from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from dropsniper.api.deps import get_runtime, handle_service_error
from dropsniper.core.constants import DEFAULT_PARTY_SIZE
from dropsniper.core.errors import SniperError, TargetNotFoundError
from dropsniper.runtime import SniperRuntime

router = APIRouter()


class TargetCreate(BaseModel):
    restaurant_name: str
    platform: str
    target_date: str | None = None
    drop_date: str | None = None
    drop_time: str | None = None
    drop_timezone: str | None = None
    preferred_time: str | None = None
    party_size: int = Field(DEFAULT_PARTY_SIZE, ge=1)
    resy_venue_id: int | None = None
    opentable_id: int | None = None
    sevenrooms_slug: str | None = None
    tock_slug: str | None = None
    notes: str | None = None


class TargetStatusUpdate(BaseModel):
    status: str
    note: str | None = None


@router.get("/", response_model=list)
def list_targets(status: str | None = Query(None), runtime: SniperRuntime = Depends(get_runtime)):
    try:
        return [t.to_dict() for t in runtime.target_store.list_targets(status)]
    except ValueError as e:
        handle_service_error(e)


@router.post("/", response_model=dict, status_code=201)
def create_target(body: TargetCreate, runtime: SniperRuntime = Depends(get_runtime)):
    """Add a WATCHING target. Missing drop fields are filled from the learned pattern when known."""
    try:
        return runtime.target_store.create(**body.model_dump()).to_dict()
    except (SniperError, ValueError) as e:
        handle_service_error(e)


@router.get("/{target_id}", response_model=dict)
def get_target(target_id: str, runtime: SniperRuntime = Depends(get_runtime)):
    target = runtime.target_store.get(target_id)
    if target is None:
        handle_service_error(TargetNotFoundError(f"Target {target_id} not found"))
    return target.to_dict()


@router.put("/{target_id}/status", response_model=dict)
def set_target_status(target_id: str, body: TargetStatusUpdate, runtime: SniperRuntime = Depends(get_runtime)):
    try:
        return runtime.target_store.set_status(target_id, body.status, note=body.note).to_dict()
    except (SniperError, ValueError) as e:
        handle_service_error(e)


@router.delete("/{target_id}", response_model=dict)
def delete_target(target_id: str, runtime: SniperRuntime = Depends(get_runtime)):
    try:
        runtime.target_store.delete(target_id)
    except SniperError as e:
        handle_service_error(e)
    return {"ok": True, "id": target_id}
