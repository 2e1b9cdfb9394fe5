"""
Recovery operations: taking a vehicle out of the queue while it still holds
bookings, or dispatching it before it is full.

Seat accounting is preserved in every path: bookings either move with their
seats to another vehicle, are marked CANCELLED together with the row that
held them, or leave with the vehicle under an exit authorization.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from station_queue.core.clock import StationClock
from station_queue.core.exceptions import InsufficientTargetCapacity, NoTargetAvailable, QueueEntryNotFound
from station_queue.core.logging import get_logger
from station_queue.core.metrics import seats_released
from station_queue.models.booking import Booking, PaymentStatus
from station_queue.models.passes import ExitAuthorization
from station_queue.models.queue_entry import QueueEntry
from station_queue.services import lifecycle, queue_store

logger = get_logger(__name__)


@dataclass
class TransferOutcome:
    removed: QueueEntry
    target: Optional[QueueEntry] = None
    seats_transferred: int = 0
    bookings_moved: int = 0
    exit_pass: Optional[ExitAuthorization] = None


@dataclass
class EmergencyRemovalOutcome:
    removed: QueueEntry
    cancelled_bookings: list[Booking] = field(default_factory=list)
    refund_total: Decimal = Decimal("0.000")


@dataclass
class TripEndOutcome:
    removed: QueueEntry
    exit_pass: ExitAuthorization
    seats_used: int


async def _live_bookings(db: AsyncSession, queue_entry_id: str) -> list[Booking]:
    result = await db.execute(
        select(Booking)
        .where(
            Booking.queue_entry_id == queue_entry_id,
            Booking.payment_status == PaymentStatus.PAID.value,
        )
        .order_by(Booking.created_at.asc())
        .with_for_update()
    )
    return list(result.scalars().all())


async def transfer_and_remove(
    db: AsyncSession,
    vehicle_id: str,
    destination_id: str,
    clock: StationClock,
    staff_id: Optional[str] = None,
) -> TransferOutcome:
    """
    Remove a vehicle, handing its booked passengers to the first vehicle
    behind or ahead of it that can seat all of them.
    """
    source = await queue_store.get_entry_for_vehicle(db, vehicle_id)
    if source is None or source.destination_id != destination_id:
        raise QueueEntryNotFound(f"Le véhicule {vehicle_id} n'est pas dans la file {destination_id}")

    # Lock the whole destination in position order, source included
    entries = await queue_store.lock_queue(db, destination_id)
    source = next((e for e in entries if e.id == source.id), None)
    if source is None:
        raise QueueEntryNotFound(f"Le véhicule {vehicle_id} n'est plus dans la file {destination_id}")

    booked = source.booked_seats
    if booked == 0:
        await queue_store.delete_entry(db, source)
        logger.info("vehicle_removed_without_transfer", license_plate=source.license_plate)
        return TransferOutcome(removed=source)

    candidates = [e for e in entries if e.id != source.id and e.available_seats > 0]
    if not candidates:
        raise NoTargetAvailable(
            f"Aucun autre véhicule disponible pour {source.destination_name} "
            f"({booked} place(s) à transférer)"
        )
    target = next((e for e in candidates if e.available_seats >= booked), None)
    if target is None:
        best = max(candidates, key=lambda e: e.available_seats)
        raise InsufficientTargetCapacity(
            f"Le véhicule {best.license_plate} n'a que {best.available_seats} place(s) libre(s), "
            f"{booked} à transférer"
        )

    bookings = await _live_bookings(db, source.id)
    for booking in bookings:
        booking.queue_entry_id = target.id
        booking.vehicle_id = target.vehicle_id
        booking.license_plate = target.license_plate

    target.available_seats -= booked
    exit_pass = await lifecycle.apply_seat_change(db, target, clock, staff_id)
    await queue_store.delete_entry(db, source)

    logger.info(
        "seats_transferred",
        from_license_plate=source.license_plate,
        to_license_plate=target.license_plate,
        destination_id=destination_id,
        seats=booked,
        bookings=len(bookings),
    )
    return TransferOutcome(
        removed=source,
        target=target,
        seats_transferred=booked,
        bookings_moved=len(bookings),
        exit_pass=exit_pass,
    )


async def emergency_remove(
    db: AsyncSession,
    vehicle_id: str,
    clock: StationClock,
    staff_id: Optional[str] = None,
) -> EmergencyRemovalOutcome:
    """Cancel every live booking on the vehicle and take it out of the queue."""
    entry = await queue_store.get_entry_for_vehicle(db, vehicle_id)
    if entry is not None:
        entry = await queue_store.lock_queue_of(db, entry)
    if entry is None:
        raise QueueEntryNotFound(f"Le véhicule {vehicle_id} n'est pas dans la file")

    bookings = await _live_bookings(db, entry.id)
    now = clock.now()
    refund = Decimal("0.000")
    for booking in bookings:
        booking.payment_status = PaymentStatus.CANCELLED.value
        booking.cancelled_at = now
        booking.cancelled_by = staff_id
        refund += Decimal(booking.total_amount)

    await queue_store.delete_entry(db, entry)
    seats_released.labels(reason="emergency").inc(sum(b.seats_booked for b in bookings))

    logger.warning(
        "vehicle_emergency_removed",
        license_plate=entry.license_plate,
        destination_id=entry.destination_id,
        cancelled_bookings=len(bookings),
        refund_total=str(refund),
        staff_id=staff_id,
    )
    return EmergencyRemovalOutcome(removed=entry, cancelled_bookings=bookings, refund_total=refund)


async def end_trip_partial_capacity(
    db: AsyncSession,
    queue_entry_id: str,
    clock: StationClock,
    staff_id: Optional[str] = None,
) -> TripEndOutcome:
    """Dispatch a vehicle with whatever load it has."""
    entry = await queue_store.get_entry(db, queue_entry_id)
    if entry is not None:
        entry = await queue_store.lock_queue_of(db, entry)
    if entry is None:
        raise QueueEntryNotFound(f"Entrée introuvable: {queue_entry_id}")

    # A vehicle that filled up already holds its pass; seats cannot be
    # cancelled after that, so the pass still matches the load
    exit_pass = await lifecycle.get_exit_pass_for_entry(db, entry.id)
    if exit_pass is None:
        exit_pass = await lifecycle.create_exit_pass(db, entry, clock, staff_id, reason="partial")
    seats_used = exit_pass.seats_used
    await queue_store.delete_entry(db, entry)

    logger.info(
        "trip_ended",
        queue_entry_id=entry.id,
        license_plate=entry.license_plate,
        destination_id=entry.destination_id,
        seats_used=seats_used,
        total_seats=entry.total_seats,
    )
    return TripEndOutcome(removed=entry, exit_pass=exit_pass, seats_used=seats_used)
