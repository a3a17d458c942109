"""
Sniper: scheduler control, manual triggers, platform readiness and ad-hoc acquisitions.
"""
from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from dropsniper.api.deps import get_runtime, handle_service_error
from dropsniper.core.constants import DEFAULT_MAX_RETRIES, DEFAULT_PARTY_SIZE, DEFAULT_TIME_FLEXIBILITY_MINUTES
from dropsniper.core.errors import SniperError
from dropsniper.platforms.types import AcquisitionRequest, VenueIds
from dropsniper.runtime import SniperRuntime

router = APIRouter()


class AcquireBody(BaseModel):
    platform: str
    restaurant_name: str
    date: str  # YYYY-MM-DD
    time: str = "19:00"
    party_size: int = Field(DEFAULT_PARTY_SIZE, ge=1)
    resy_venue_id: int | None = None
    opentable_id: int | None = None
    sevenrooms_slug: str | None = None
    tock_slug: str | None = None
    max_retries: int = Field(DEFAULT_MAX_RETRIES, ge=1, le=50)
    time_flexibility_minutes: int = Field(DEFAULT_TIME_FLEXIBILITY_MINUTES, ge=0)
    aggressive: bool = False


@router.get("/status", response_model=dict)
def status(runtime: SniperRuntime = Depends(get_runtime)):
    """Running flag, tracked targets, the next drop and platform readiness."""
    return runtime.scheduler.get_status()


@router.post("/start", response_model=dict)
def start(runtime: SniperRuntime = Depends(get_runtime)):
    started = runtime.scheduler.start()
    return {"started": started, "running": runtime.scheduler.running}


@router.post("/stop", response_model=dict)
def stop(runtime: SniperRuntime = Depends(get_runtime)):
    stopped = runtime.scheduler.stop()
    return {"stopped": stopped, "running": runtime.scheduler.running}


@router.post("/poll", response_model=dict)
def poll(runtime: SniperRuntime = Depends(get_runtime)):
    """Run one tick now. Acquisitions it dispatches keep running in the background."""
    futures = runtime.scheduler.trigger_poll()
    return {"dispatched": len(futures), "status": runtime.scheduler.get_status()}


@router.get("/watched", response_model=list)
def watched(runtime: SniperRuntime = Depends(get_runtime)):
    return runtime.scheduler.watched()


@router.post("/trigger/{target_id}", response_model=dict)
def trigger(target_id: str, runtime: SniperRuntime = Depends(get_runtime)):
    """Acquire a target now, bypassing its drop schedule. Recorded as a manual attempt."""
    try:
        result = runtime.scheduler.trigger_manual_acquisition(target_id)
    except (SniperError, ValueError) as e:
        handle_service_error(e)
    return result.to_dict()


@router.get("/platforms/status", response_model=dict)
def platforms_status(runtime: SniperRuntime = Depends(get_runtime)):
    return runtime.engine.clients_status()


@router.post("/acquire", response_model=dict)
def acquire(body: AcquireBody, runtime: SniperRuntime = Depends(get_runtime)):
    """Ad-hoc acquisition without a target. Not recorded in attempt history."""
    try:
        request = AcquisitionRequest(
            platform=body.platform,
            restaurant_name=body.restaurant_name,
            date=body.date,
            time=body.time,
            party_size=body.party_size,
            venue_ids=VenueIds(
                resy_venue_id=body.resy_venue_id,
                opentable_id=body.opentable_id,
                sevenrooms_slug=body.sevenrooms_slug,
                tock_slug=body.tock_slug,
            ),
            max_retries=body.max_retries,
            time_flexibility_minutes=body.time_flexibility_minutes,
            aggressive=body.aggressive,
        )
    except (SniperError, ValueError) as e:
        handle_service_error(e)
    return runtime.engine.acquire(request).to_dict()
