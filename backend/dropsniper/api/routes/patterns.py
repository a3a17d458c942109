"""
Patterns: learned drop schedules and acquisition history.
"""
from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from dropsniper.api.deps import get_runtime, handle_service_error
from dropsniper.core.errors import SniperError
from dropsniper.runtime import SniperRuntime

router = APIRouter()


class PatternAdd(BaseModel):
    restaurant_name: str
    platform: str
    lead_days: int | None = Field(None, ge=0)
    drop_time: str | None = None
    drop_timezone: str | None = None
    notes: str | None = None


@router.get("/", response_model=list)
def list_patterns(runtime: SniperRuntime = Depends(get_runtime)):
    return runtime.pattern_store.list_patterns()


@router.get("/stats", response_model=dict)
def success_stats(runtime: SniperRuntime = Depends(get_runtime)):
    return runtime.pattern_store.success_stats()


@router.get("/history", response_model=list)
def history(
    limit: int = Query(50, ge=1, le=500),
    target_id: str | None = Query(None),
    runtime: SniperRuntime = Depends(get_runtime),
):
    return runtime.pattern_store.history(limit=limit, target_id=target_id)


@router.post("/", response_model=dict, status_code=201)
def add_pattern(body: PatternAdd, runtime: SniperRuntime = Depends(get_runtime)):
    """Record a known drop schedule. Success counts and confidence are not touched."""
    try:
        return runtime.pattern_store.add_pattern(
            body.restaurant_name,
            body.platform,
            lead_days=body.lead_days,
            drop_time=body.drop_time,
            drop_timezone=body.drop_timezone,
            notes=body.notes,
        )
    except (SniperError, ValueError) as e:
        handle_service_error(e)


@router.get("/suggest", response_model=dict)
def suggest(
    restaurant_name: str,
    target_date: str,
    platform: str | None = Query(None),
    runtime: SniperRuntime = Depends(get_runtime),
):
    """Drop date/time for a reservation date from the learned pattern."""
    try:
        suggestion = runtime.pattern_store.suggest_drop(restaurant_name, platform, target_date)
    except (SniperError, ValueError) as e:
        handle_service_error(e)
    return {"suggestion": suggestion}
