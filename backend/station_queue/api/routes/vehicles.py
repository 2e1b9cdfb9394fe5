"""
Vehicle registry endpoints.
"""

from fastapi import APIRouter, Depends, Query, status

from station_queue.api.deps import get_queue_engine
from station_queue.schemas.reports import VehicleActivityEvent
from station_queue.schemas.vehicle import AuthorizationCreate, AuthorizationResponse, VehicleCreate, VehicleResponse
from station_queue.services.cache_service import invalidate_queue_cache
from station_queue.services.engine import QueueEngine

router = APIRouter(prefix="/vehicles", tags=["Vehicles"])


@router.get("", response_model=list[VehicleResponse])
async def list_vehicles(engine: QueueEngine = Depends(get_queue_engine)):
    return await engine.list_vehicles()


@router.post("", response_model=VehicleResponse, status_code=status.HTTP_201_CREATED)
async def register_vehicle(data: VehicleCreate, engine: QueueEngine = Depends(get_queue_engine)):
    return await engine.register_vehicle(data.license_plate, data.capacity, data.phone_number)


@router.post("/{vehicle_id}/authorizations", response_model=AuthorizationResponse, status_code=status.HTTP_201_CREATED)
async def authorize_destination(
    vehicle_id: str,
    data: AuthorizationCreate,
    engine: QueueEngine = Depends(get_queue_engine),
):
    """Add a destination to the vehicle's allow-list, or update it."""
    return await engine.authorize_destination(
        vehicle_id,
        data.station_id,
        data.station_name,
        data.base_price,
        data.is_default,
        data.priority,
    )


@router.post("/{vehicle_id}/ban", response_model=VehicleResponse)
async def ban_vehicle(vehicle_id: str, engine: QueueEngine = Depends(get_queue_engine)):
    vehicle = await engine.ban_vehicle(vehicle_id)
    await invalidate_queue_cache()
    return vehicle


@router.post("/{vehicle_id}/activate", response_model=VehicleResponse)
async def activate_vehicle(vehicle_id: str, engine: QueueEngine = Depends(get_queue_engine)):
    return await engine.activate_vehicle(vehicle_id)


@router.get("/{license_plate}/destinations", response_model=list[AuthorizationResponse])
async def authorized_destinations(license_plate: str, engine: QueueEngine = Depends(get_queue_engine)):
    return await engine.authorized_destinations(license_plate)


@router.get("/{license_plate}/activity", response_model=list[VehicleActivityEvent])
async def vehicle_activity(
    license_plate: str,
    hours: int = Query(default=72, ge=1, le=24 * 30),
    engine: QueueEngine = Depends(get_queue_engine),
):
    """Day passes, departures and queueing over the last ``hours``, newest first."""
    return await engine.vehicle_activity(license_plate, hours)
