"""
Vehicle registry operations: registration, destination authorization, ban.
"""

from decimal import Decimal
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from station_queue.core.exceptions import InvalidState, VehicleNotFound
from station_queue.core.logging import get_logger
from station_queue.models.vehicle import Vehicle, VehicleAuthorizedStation

logger = get_logger(__name__)


async def get_vehicle(db: AsyncSession, vehicle_id: str) -> Vehicle:
    vehicle = await db.get(Vehicle, vehicle_id)
    if vehicle is None:
        raise VehicleNotFound(vehicle_id)
    return vehicle


async def get_vehicle_by_plate(db: AsyncSession, license_plate: str) -> Optional[Vehicle]:
    result = await db.execute(select(Vehicle).where(Vehicle.license_plate == license_plate))
    return result.scalar_one_or_none()


async def register_vehicle(
    db: AsyncSession,
    license_plate: str,
    capacity: int,
    phone_number: Optional[str] = None,
) -> Vehicle:
    """Register a vehicle. Raises InvalidState if the plate already exists."""
    if await get_vehicle_by_plate(db, license_plate) is not None:
        logger.warning("vehicle_registration_failed", reason="plate_exists", license_plate=license_plate)
        raise InvalidState(f"Le véhicule {license_plate} existe déjà")

    vehicle = Vehicle(
        license_plate=license_plate,
        capacity=capacity,
        phone_number=phone_number,
        is_active=True,
        is_available=True,
        is_banned=False,
    )
    db.add(vehicle)
    await db.flush()

    logger.info("vehicle_registered", vehicle_id=vehicle.id, license_plate=license_plate, capacity=capacity)
    return vehicle


async def authorize_destination(
    db: AsyncSession,
    vehicle_id: str,
    station_id: str,
    station_name: str,
    base_price: Optional[Decimal] = None,
    is_default: bool = False,
    priority: int = 1,
) -> VehicleAuthorizedStation:
    """Add or update a destination on the vehicle's allow-list."""
    vehicle = await get_vehicle(db, vehicle_id)

    result = await db.execute(
        select(VehicleAuthorizedStation).where(
            VehicleAuthorizedStation.vehicle_id == vehicle.id,
            VehicleAuthorizedStation.station_id == station_id,
        )
    )
    authorization = result.scalar_one_or_none()
    if authorization is None:
        authorization = VehicleAuthorizedStation(vehicle_id=vehicle.id, station_id=station_id)
        db.add(authorization)
    authorization.station_name = station_name
    authorization.base_price = base_price
    authorization.is_default = is_default
    authorization.priority = priority

    if is_default:
        vehicle.default_destination_id = station_id
        vehicle.default_destination_name = station_name
    await db.flush()

    logger.info(
        "vehicle_destination_authorized",
        vehicle_id=vehicle.id,
        license_plate=vehicle.license_plate,
        station_id=station_id,
        is_default=is_default,
    )
    return authorization


async def ban_vehicle(db: AsyncSession, vehicle_id: str) -> Vehicle:
    """Ban a vehicle. An entry it already holds stays; it cannot enter again."""
    vehicle = await get_vehicle(db, vehicle_id)
    vehicle.is_banned = True
    vehicle.is_active = False
    await db.flush()
    logger.warning("vehicle_banned", vehicle_id=vehicle.id, license_plate=vehicle.license_plate)
    return vehicle


async def activate_vehicle(db: AsyncSession, vehicle_id: str) -> Vehicle:
    vehicle = await get_vehicle(db, vehicle_id)
    vehicle.is_banned = False
    vehicle.is_active = True
    await db.flush()
    logger.info("vehicle_activated", vehicle_id=vehicle.id, license_plate=vehicle.license_plate)
    return vehicle
