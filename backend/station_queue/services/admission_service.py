"""
Admission control: putting vehicles into a destination's queue, taking them
out, and reordering the line.

A vehicle holds at most one queue entry. Entering again, for the same or
another destination, moves the existing entry to the back of the target
queue instead of inserting a second row. Seats already sold stay on the
entry and their bookings follow it to the new destination.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional, Sequence

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from station_queue.core.clock import StationClock
from station_queue.core.exceptions import (
    DestinationNotAuthorized,
    InvalidRequest,
    QueueEntryNotFound,
    VehicleInactive,
    VehicleNotFound,
)
from station_queue.core.logging import get_logger
from station_queue.models.booking import Booking, PaymentStatus
from station_queue.models.queue_entry import QueueEntry, QueueStatus
from station_queue.models.route import Route
from station_queue.models.vehicle import Vehicle, VehicleAuthorizedStation
from station_queue.services import queue_store

logger = get_logger(__name__)


@dataclass
class AdmissionOutcome:
    entry: QueueEntry
    vehicle: Vehicle
    moved: bool
    previous_destination_id: Optional[str] = None


async def _authorization_for(db: AsyncSession, vehicle_id: str, destination_id: str) -> Optional[VehicleAuthorizedStation]:
    result = await db.execute(
        select(VehicleAuthorizedStation).where(
            VehicleAuthorizedStation.vehicle_id == vehicle_id,
            VehicleAuthorizedStation.station_id == destination_id,
        )
    )
    return result.scalar_one_or_none()


def resolve_destination(
    destination_id: str,
    route: Optional[Route],
    requested_name: Optional[str],
    authorization: Optional[VehicleAuthorizedStation],
    existing: Optional[QueueEntry] = None,
) -> tuple[str, Decimal]:
    """
    Display name and per-seat price for a destination.

    Name: routes table, caller-supplied name, authorization name, the id itself.
    Price: routes table, authorization price, the entry's current price, zero.
    """
    if route is not None:
        name = route.station_name
    elif requested_name:
        name = requested_name
    elif authorization is not None and authorization.station_name:
        name = authorization.station_name
    else:
        name = destination_id

    if route is not None:
        price = route.base_price
    elif authorization is not None and authorization.base_price is not None:
        price = authorization.base_price
    elif existing is not None and existing.destination_id == destination_id:
        price = existing.base_price
    else:
        price = Decimal("0")
    return name, Decimal(price)


async def enter_queue(
    db: AsyncSession,
    vehicle_id: str,
    destination_id: str,
    destination_name: Optional[str],
    staff_id: Optional[str],
    clock: StationClock,
) -> AdmissionOutcome:
    result = await db.execute(select(Vehicle).where(Vehicle.id == vehicle_id).with_for_update())
    vehicle = result.scalar_one_or_none()
    if vehicle is None:
        raise VehicleNotFound(vehicle_id)
    if not vehicle.can_queue:
        logger.warning("queue_entry_rejected", reason="inactive", license_plate=vehicle.license_plate)
        raise VehicleInactive(vehicle.license_plate)

    # The vehicle lock keeps its entry on this destination; lock the queues
    # it leaves and joins before reading positions
    existing = await queue_store.get_entry_for_vehicle(db, vehicle.id)
    touched = [destination_id] if existing is None else [destination_id, existing.destination_id]
    locked = await queue_store.lock_queues(db, touched)
    if existing is not None:
        existing = next((e for e in locked[existing.destination_id] if e.id == existing.id), None)

    authorization = await _authorization_for(db, vehicle.id, destination_id)
    already_there = existing is not None and existing.destination_id == destination_id
    if authorization is None and not already_there:
        logger.warning(
            "queue_entry_rejected",
            reason="unauthorized",
            license_plate=vehicle.license_plate,
            destination_id=destination_id,
        )
        raise DestinationNotAuthorized(vehicle.license_plate, destination_id)

    route = await db.get(Route, destination_id)
    name, price = resolve_destination(destination_id, route, destination_name, authorization, existing)

    if existing is not None:
        return await _retarget(db, vehicle, existing, destination_id, name, price, staff_id)

    entry = QueueEntry(
        vehicle_id=vehicle.id,
        license_plate=vehicle.license_plate,
        destination_id=destination_id,
        destination_name=name,
        queue_position=await queue_store.tail_position(db, destination_id),
        status=QueueStatus.WAITING.value,
        available_seats=vehicle.capacity,
        total_seats=vehicle.capacity,
        base_price=price,
        entered_at=clock.now(),
    )
    db.add(entry)
    await db.flush()

    logger.info(
        "queue_entered",
        queue_entry_id=entry.id,
        license_plate=vehicle.license_plate,
        destination_id=destination_id,
        position=entry.queue_position,
        seats=entry.total_seats,
        staff_id=staff_id,
    )
    return AdmissionOutcome(entry=entry, vehicle=vehicle, moved=False)


async def _retarget(
    db: AsyncSession,
    vehicle: Vehicle,
    entry: QueueEntry,
    destination_id: str,
    name: str,
    price: Decimal,
    staff_id: Optional[str],
) -> AdmissionOutcome:
    """
    Move the vehicle's entry to the tail of ``destination_id``.

    Seats already sold travel with the vehicle: live bookings are rewritten
    to the new destination so seat accounting stays on the same entry.
    """
    previous_destination = entry.destination_id
    await queue_store.close_position_gap(db, previous_destination, entry.queue_position)
    entry.queue_position = await queue_store.tail_position(db, destination_id, exclude_entry_id=entry.id)
    entry.destination_id = destination_id
    entry.destination_name = name
    entry.base_price = price

    bookings_moved = 0
    if previous_destination != destination_id and entry.booked_seats > 0:
        result = await db.execute(
            update(Booking)
            .where(
                Booking.queue_entry_id == entry.id,
                Booking.payment_status == PaymentStatus.PAID.value,
            )
            .values(destination_id=destination_id, destination_name=name)
        )
        bookings_moved = result.rowcount
    await db.flush()

    logger.info(
        "queue_entry_moved",
        queue_entry_id=entry.id,
        license_plate=vehicle.license_plate,
        from_destination=previous_destination,
        to_destination=destination_id,
        position=entry.queue_position,
        booked_seats=entry.booked_seats,
        bookings_moved=bookings_moved,
        staff_id=staff_id,
    )
    return AdmissionOutcome(entry=entry, vehicle=vehicle, moved=True, previous_destination_id=previous_destination)


async def remove_from_queue(db: AsyncSession, vehicle_id: str) -> QueueEntry:
    entry = await queue_store.get_entry_for_vehicle(db, vehicle_id)
    if entry is not None:
        entry = await queue_store.lock_queue_of(db, entry)
    if entry is None:
        raise QueueEntryNotFound(f"Le véhicule {vehicle_id} n'est pas dans la file")
    await queue_store.delete_entry(db, entry)
    return entry


async def reorder_queue(
    db: AsyncSession,
    destination_id: str,
    positions: Sequence[tuple[str, int]],
) -> list[QueueEntry]:
    """
    Apply explicit positions to some or all entries of a destination.

    The resulting line must still be exactly 1..N; anything else is rejected
    before a single row changes.
    """
    entries = await queue_store.lock_queue(db, destination_id)
    by_id = {e.id: e for e in entries}

    requested: dict[str, int] = {}
    for entry_id, position in positions:
        if entry_id not in by_id:
            raise QueueEntryNotFound(f"Entrée {entry_id} absente de la file {destination_id}")
        if entry_id in requested:
            raise InvalidRequest(f"Entrée {entry_id} présente plusieurs fois")
        requested[entry_id] = position

    final = {e.id: requested.get(e.id, e.queue_position) for e in entries}
    if sorted(final.values()) != list(range(1, len(entries) + 1)):
        raise InvalidRequest(
            f"Positions invalides pour {destination_id}: attendu une permutation de 1..{len(entries)}"
        )

    for entry in entries:
        entry.queue_position = final[entry.id]
    await db.flush()

    logger.info("queue_reordered", destination_id=destination_id, changed=len(requested))
    return sorted(entries, key=lambda e: e.queue_position)


async def move_to_position(
    db: AsyncSession,
    queue_entry_id: str,
    new_position: int,
    destination_id: Optional[str] = None,
) -> list[QueueEntry]:
    """Move one entry to ``new_position``; the entries in between shift by one."""
    if destination_id is None:
        entry = await queue_store.get_entry(db, queue_entry_id)
        if entry is None:
            raise QueueEntryNotFound(f"Entrée introuvable: {queue_entry_id}")
        destination_id = entry.destination_id

    entries = await queue_store.lock_queue(db, destination_id)
    entry = next((e for e in entries if e.id == queue_entry_id), None)
    if entry is None:
        raise QueueEntryNotFound(f"Entrée {queue_entry_id} absente de la file {destination_id}")
    if not 1 <= new_position <= len(entries):
        raise InvalidRequest(f"Position {new_position} hors de 1..{len(entries)}")

    old_position = entry.queue_position
    ordered = [e for e in entries if e.id != queue_entry_id]
    ordered.insert(new_position - 1, entry)
    queue_store.renumber(ordered)
    await db.flush()

    logger.info(
        "queue_entry_repositioned",
        queue_entry_id=queue_entry_id,
        destination_id=destination_id,
        from_position=old_position,
        to_position=new_position,
    )
    return ordered


async def move_to_front(db: AsyncSession, queue_entry_id: str, destination_id: str) -> list[QueueEntry]:
    return await move_to_position(db, queue_entry_id, 1, destination_id)
