"""
Daily trip reports for the station office.
"""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query

from station_queue.api.deps import get_queue_engine
from station_queue.schemas.reports import AllVehiclesDailyReport, VehicleDailyReport
from station_queue.services.engine import QueueEngine

router = APIRouter(prefix="/reports", tags=["Reports"])


@router.get("/daily", response_model=AllVehiclesDailyReport)
async def all_vehicles_daily_report(
    day: Optional[date] = Query(default=None),
    engine: QueueEngine = Depends(get_queue_engine),
):
    """Trips of every vehicle for ``day``, today when omitted."""
    return await engine.all_vehicles_daily_report(day)


@router.get("/vehicles/{vehicle_id}/daily", response_model=VehicleDailyReport)
async def vehicle_daily_report(
    vehicle_id: str,
    day: Optional[date] = Query(default=None),
    engine: QueueEngine = Depends(get_queue_engine),
):
    return await engine.vehicle_daily_report(vehicle_id, day)
