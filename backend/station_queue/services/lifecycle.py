"""
Trip lifecycle for queue entries.

    WAITING --first booking--> LOADING --last seat sold--> READY --exit/removal--> (row deleted)

Status is a pure function of the seat counts and is recomputed after every
seat mutation, in the same transaction, so a cancellation on a LOADING
vehicle can take it back to WAITING. The exit authorization is created the
first time an entry reaches zero free seats and never again for that entry;
once it exists the seats are no longer cancellable, so READY only ends with
the row.
"""

from decimal import Decimal
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from station_queue.core.clock import StationClock
from station_queue.core.logging import get_logger
from station_queue.core.metrics import exit_passes_created
from station_queue.models.passes import ExitAuthorization
from station_queue.models.queue_entry import QueueEntry, QueueStatus
from station_queue.services.pricing import quantize_money

logger = get_logger(__name__)


def derive_status(available_seats: int, total_seats: int) -> QueueStatus:
    if available_seats == total_seats:
        return QueueStatus.WAITING
    if available_seats == 0:
        return QueueStatus.READY
    return QueueStatus.LOADING


async def get_exit_pass_for_entry(db: AsyncSession, queue_entry_id: str) -> Optional[ExitAuthorization]:
    result = await db.execute(
        select(ExitAuthorization).where(ExitAuthorization.queue_entry_id == queue_entry_id)
    )
    return result.scalar_one_or_none()


async def previous_exit_today(db: AsyncSession, destination_id: str, clock: StationClock) -> Optional[ExitAuthorization]:
    """Most recent exit toward the destination on the current station-local day."""
    result = await db.execute(
        select(ExitAuthorization)
        .where(
            ExitAuthorization.destination_id == destination_id,
            ExitAuthorization.exit_date == clock.today(),
        )
        .order_by(ExitAuthorization.current_exit_time.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def create_exit_pass(
    db: AsyncSession,
    entry: QueueEntry,
    clock: StationClock,
    staff_id: Optional[str] = None,
    reason: str = "full",
) -> ExitAuthorization:
    """Write the exit authorization for ``entry`` with its current load."""
    previous = await previous_exit_today(db, entry.destination_id, clock)
    seats_used = entry.total_seats - entry.available_seats
    exit_pass = ExitAuthorization(
        queue_entry_id=entry.id,
        vehicle_id=entry.vehicle_id,
        license_plate=entry.license_plate,
        destination_id=entry.destination_id,
        destination_name=entry.destination_name,
        previous_exit_id=previous.id if previous else None,
        previous_license_plate=previous.license_plate if previous else None,
        seats_used=seats_used,
        total_seats=entry.total_seats,
        base_price=entry.base_price,
        total_price=quantize_money(Decimal(entry.base_price) * seats_used),
        exit_date=clock.today(),
        current_exit_time=clock.now(),
        created_by=staff_id,
    )
    db.add(exit_pass)
    await db.flush()
    exit_passes_created.labels(reason=reason).inc()

    logger.info(
        "exit_pass_created",
        exit_pass_id=exit_pass.id,
        queue_entry_id=entry.id,
        license_plate=entry.license_plate,
        destination_id=entry.destination_id,
        seats_used=seats_used,
        reason=reason,
        previous_license_plate=exit_pass.previous_license_plate,
    )
    return exit_pass


async def apply_seat_change(
    db: AsyncSession,
    entry: QueueEntry,
    clock: StationClock,
    staff_id: Optional[str] = None,
) -> Optional[ExitAuthorization]:
    """
    Recompute ``entry.status`` after its seat count changed.

    Returns the exit authorization when this change filled the vehicle
    for the first time, otherwise None.
    """
    previous_status = entry.status
    new_status = derive_status(entry.available_seats, entry.total_seats)
    entry.status = new_status.value

    if previous_status != new_status.value:
        logger.info(
            "queue_status_changed",
            queue_entry_id=entry.id,
            license_plate=entry.license_plate,
            from_status=previous_status,
            to_status=new_status.value,
            available_seats=entry.available_seats,
        )

    if new_status is not QueueStatus.READY:
        return None

    await db.flush()
    if await get_exit_pass_for_entry(db, entry.id) is not None:
        # One pass per entry
        return None
    return await create_exit_pass(db, entry, clock, staff_id, reason="full")
