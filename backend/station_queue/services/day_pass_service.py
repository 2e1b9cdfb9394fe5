"""
Day passes sold at the counter.

The dispatcher sells one automatically on a vehicle's first admission of the
day; agents can also sell it up front, before the vehicle queues. Both go
through ``new_day_pass`` and both rely on the (vehicle_id, pass_date) unique
constraint to keep it to one pass per vehicle per station-local day.
"""

from decimal import Decimal
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from station_queue.core.clock import StationClock
from station_queue.core.exceptions import InvalidState
from station_queue.core.logging import get_logger
from station_queue.core.metrics import day_passes_sold
from station_queue.models.passes import DayPassAuthorization
from station_queue.models.vehicle import Vehicle
from station_queue.services import vehicle_service
from station_queue.services.interfaces.pricing import FeePolicy
from station_queue.services.pricing import quantize_money

logger = get_logger(__name__)


def new_day_pass(
    vehicle_id: str,
    license_plate: str,
    price: Decimal,
    clock: StationClock,
    staff_id: Optional[str] = None,
) -> DayPassAuthorization:
    today = clock.today()
    return DayPassAuthorization(
        vehicle_id=vehicle_id,
        license_plate=license_plate,
        pass_date=today,
        price=quantize_money(price),
        valid_from=clock.now(),
        valid_until=clock.local_end_of_day(today),
        is_active=True,
        is_expired=False,
        created_by=staff_id,
    )


async def find_day_pass(db: AsyncSession, vehicle_id: str, day) -> Optional[DayPassAuthorization]:
    result = await db.execute(
        select(DayPassAuthorization).where(
            DayPassAuthorization.vehicle_id == vehicle_id,
            DayPassAuthorization.pass_date == day,
            DayPassAuthorization.is_active.is_(True),
        )
    )
    return result.scalar_one_or_none()


async def purchase_day_pass(
    db: AsyncSession,
    vehicle_id: str,
    fees: FeePolicy,
    clock: StationClock,
    staff_id: Optional[str] = None,
    price: Optional[Decimal] = None,
) -> tuple[DayPassAuthorization, Vehicle]:
    """
    Sell today's pass for a vehicle. ``price`` defaults to the configured fee.

    Raises InvalidState when the vehicle already holds one for today.
    """
    vehicle = await vehicle_service.get_vehicle(db, vehicle_id)
    today = clock.today()
    if await find_day_pass(db, vehicle.id, today) is not None:
        raise InvalidState(f"Le véhicule {vehicle.license_plate} a déjà son pass journalier du {today.isoformat()}")

    day_pass = new_day_pass(
        vehicle.id,
        vehicle.license_plate,
        fees.day_pass_fee() if price is None else price,
        clock,
        staff_id,
    )
    db.add(day_pass)
    try:
        await db.flush()
    except IntegrityError as e:
        # Sold by a concurrent request between the lookup and the insert
        raise InvalidState(
            f"Le véhicule {vehicle.license_plate} a déjà son pass journalier du {today.isoformat()}"
        ) from e

    day_passes_sold.labels(channel="counter").inc()
    logger.info(
        "day_pass_purchased",
        day_pass_id=day_pass.id,
        license_plate=vehicle.license_plate,
        pass_date=str(today),
        price=str(day_pass.price),
        staff_id=staff_id,
    )
    return day_pass, vehicle
