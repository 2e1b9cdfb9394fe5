"""
Day-pass and exit-pass endpoints.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from station_queue.api.deps import get_queue_engine, get_staff_id
from station_queue.schemas.passes import (
    DayPassPrice,
    DayPassPurchase,
    DayPassResponse,
    DayPassStatusRequest,
    ExitPassResponse,
)
from station_queue.schemas.queue import QueueEntryResponse
from station_queue.services.engine import QueueEngine

router = APIRouter(prefix="/passes", tags=["Passes"])


@router.get("/day/today", response_model=list[DayPassResponse])
async def today_day_passes(engine: QueueEngine = Depends(get_queue_engine)):
    return await engine.today_day_passes()


@router.get("/day/price", response_model=DayPassPrice)
async def day_pass_price(engine: QueueEngine = Depends(get_queue_engine)):
    return {"price": engine.day_pass_price()}


@router.post("/day", response_model=DayPassResponse, status_code=status.HTTP_201_CREATED)
async def purchase_day_pass(
    data: DayPassPurchase,
    engine: QueueEngine = Depends(get_queue_engine),
    staff_id: Optional[str] = Depends(get_staff_id),
):
    """Sell today's pass at the counter, before the vehicle queues."""
    return await engine.purchase_day_pass(data.vehicle_id, staff_id, data.price)


@router.get("/day/{license_plate}")
async def has_day_pass(license_plate: str, engine: QueueEngine = Depends(get_queue_engine)):
    return {"license_plate": license_plate, "has_day_pass": await engine.has_day_pass_today(license_plate)}


@router.post("/day/status", response_model=dict[str, bool])
async def day_pass_status(data: DayPassStatusRequest, engine: QueueEngine = Depends(get_queue_engine)):
    """Batch check for the queue screen: plate -> holds today's day pass."""
    return await engine.day_pass_status(data.license_plates)


@router.get("/day/missing/queued", response_model=list[QueueEntryResponse])
async def queued_without_day_pass(engine: QueueEngine = Depends(get_queue_engine)):
    return await engine.queued_without_day_pass()


@router.get("/exit/today", response_model=list[ExitPassResponse])
async def today_exit_passes(engine: QueueEngine = Depends(get_queue_engine)):
    return await engine.today_exit_passes()


@router.get("/exit/recent", response_model=list[ExitPassResponse])
async def recent_exit_passes(
    limit: int = Query(default=20, ge=1, le=200),
    engine: QueueEngine = Depends(get_queue_engine),
):
    return await engine.recent_exit_passes(limit)
