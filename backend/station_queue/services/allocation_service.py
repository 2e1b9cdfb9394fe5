"""
Seat allocation against a destination's queue.

CONCURRENCY STRATEGY: Pessimistic Row Locks
===========================================

Problem:
  Two agents sell seats for the same destination at the same moment.
  Both read "vehicle A has 2 seats", both sell 2, vehicle A is overbooked.

Solution:
  Every booking transaction first locks the destination's queue rows that
  still have seats (SELECT ... FOR UPDATE, front of the queue first).
  A second booking for the same destination blocks until the first one
  commits, then re-reads the real seat counts.

  Contention is per destination and a station sells a handful of seats per
  minute, so serialising is cheap. Optimistic version checks would need a
  retry loop around a multi-row plan, which is harder to reason about when
  one request touches several vehicles.

  The CHECK constraints on queue_entries remain the final safety net.

ALLOCATION POLICY
=================

  1. If one vehicle can take the whole request, the first such vehicle in
     queue order takes it, even when earlier vehicles have fewer seats.
  2. Otherwise seats are taken front to back, min(remaining, available)
     per vehicle.
  3. If the destination cannot cover the request, nothing is written.
"""

import secrets
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from station_queue.core.clock import StationClock
from station_queue.core.exceptions import (
    AccessDenied,
    BookingNotFound,
    InsufficientCapacity,
    InvalidRequest,
    QueueEntryNotFound,
)
from station_queue.core.logging import get_logger
from station_queue.core.metrics import seats_booked, seats_released
from station_queue.models.booking import Booking, PaymentStatus
from station_queue.models.passes import ExitAuthorization
from station_queue.models.queue_entry import QueueEntry
from station_queue.services import lifecycle, queue_store
from station_queue.services.interfaces.pricing import FeePolicy
from station_queue.services.pricing import quantize_money, seat_amounts

logger = get_logger(__name__)


@dataclass
class BookingOutcome:
    bookings: list[Booking] = field(default_factory=list)
    entries: list[QueueEntry] = field(default_factory=list)
    exit_passes: list[ExitAuthorization] = field(default_factory=list)

    @property
    def seats(self) -> int:
        return sum(b.seats_booked for b in self.bookings)

    @property
    def total_amount(self) -> Decimal:
        return sum((Decimal(b.total_amount) for b in self.bookings), Decimal("0.000"))


@dataclass
class CancellationOutcome:
    booking: Booking
    entry: QueueEntry
    seats_released: int
    refund_amount: Decimal
    booking_deleted: bool


def plan_allocation(entries: Sequence[QueueEntry], seats_requested: int) -> list[tuple[QueueEntry, int]]:
    """
    Decide how many seats each entry gives. ``entries`` must be in queue order.

    Raises InsufficientCapacity when the entries cannot cover the request.
    """
    total_available = sum(e.available_seats for e in entries)
    if total_available < seats_requested:
        raise InsufficientCapacity(
            f"Places insuffisantes: {seats_requested} demandées, {total_available} disponibles"
        )

    for entry in entries:
        if entry.available_seats >= seats_requested:
            return [(entry, seats_requested)]

    plan = []
    remaining = seats_requested
    for entry in entries:
        if remaining == 0:
            break
        take = min(remaining, entry.available_seats)
        if take > 0:
            plan.append((entry, take))
            remaining -= take
    return plan


def new_verification_code() -> str:
    return secrets.token_hex(4).upper()


async def _book_entry(
    db: AsyncSession,
    entry: QueueEntry,
    seats: int,
    staff_id: Optional[str],
    fees: FeePolicy,
    clock: StationClock,
    outcome: BookingOutcome,
) -> None:
    base, fee, total = seat_amounts(entry.base_price, seats, fees.per_seat_service_fee())
    entry.available_seats -= seats

    booking = Booking(
        queue_entry_id=entry.id,
        vehicle_id=entry.vehicle_id,
        license_plate=entry.license_plate,
        destination_id=entry.destination_id,
        destination_name=entry.destination_name,
        seats_booked=seats,
        base_amount=base,
        service_fee_amount=fee,
        total_amount=total,
        verification_code=new_verification_code(),
        payment_status=PaymentStatus.PAID.value,
        created_by=staff_id,
    )
    db.add(booking)
    await db.flush()

    exit_pass = await lifecycle.apply_seat_change(db, entry, clock, staff_id)

    outcome.bookings.append(booking)
    outcome.entries.append(entry)
    if exit_pass is not None:
        outcome.exit_passes.append(exit_pass)
    seats_booked.inc(seats)

    logger.info(
        "booking_created",
        booking_id=booking.id,
        queue_entry_id=entry.id,
        license_plate=entry.license_plate,
        destination_id=entry.destination_id,
        seats=seats,
        total_amount=str(total),
        available_seats=entry.available_seats,
    )


def _check_seats(seats_requested: int) -> None:
    if seats_requested <= 0:
        raise InvalidRequest("Le nombre de places doit être positif")


async def book_by_destination(
    db: AsyncSession,
    destination_id: str,
    seats_requested: int,
    staff_id: Optional[str],
    fees: FeePolicy,
    clock: StationClock,
) -> BookingOutcome:
    _check_seats(seats_requested)
    entries = await queue_store.lock_bookable(db, destination_id)
    try:
        plan = plan_allocation(entries, seats_requested)
    except InsufficientCapacity:
        logger.warning(
            "booking_failed_no_seats",
            destination_id=destination_id,
            requested=seats_requested,
            available=sum(e.available_seats for e in entries),
        )
        raise

    outcome = BookingOutcome()
    for entry, seats in plan:
        await _book_entry(db, entry, seats, staff_id, fees, clock, outcome)
    return outcome


async def book_by_vehicle(
    db: AsyncSession,
    queue_entry_id: str,
    seats_requested: int,
    staff_id: Optional[str],
    fees: FeePolicy,
    clock: StationClock,
) -> BookingOutcome:
    _check_seats(seats_requested)
    entry = await queue_store.get_entry(db, queue_entry_id, lock=True)
    if entry is None:
        raise QueueEntryNotFound(f"Véhicule introuvable dans la file: {queue_entry_id}")
    if entry.available_seats < seats_requested:
        logger.warning(
            "booking_failed_no_seats",
            queue_entry_id=queue_entry_id,
            requested=seats_requested,
            available=entry.available_seats,
        )
        raise InsufficientCapacity(
            f"Places insuffisantes sur {entry.license_plate}: "
            f"{seats_requested} demandées, {entry.available_seats} disponibles"
        )

    outcome = BookingOutcome()
    await _book_entry(db, entry, seats_requested, staff_id, fees, clock, outcome)
    return outcome


async def _lock_for_cancel(db: AsyncSession, booking: Booking) -> tuple[Booking, QueueEntry]:
    """
    Lock the booking's queue entry, then the booking itself.

    Entries are always locked before bookings (see queue_store), so the
    booking is first read without a lock and re-read once its entry is held.
    Seats of a vehicle that already holds its exit pass are not given back.
    """
    entry = await queue_store.get_entry(db, booking.queue_entry_id, lock=True)
    if entry is None:
        raise AccessDenied(
            f"Le véhicule {booking.license_plate} a quitté la file, la réservation ne peut plus être annulée"
        )

    result = await db.execute(
        select(Booking)
        .where(Booking.id == booking.id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    locked = result.scalar_one_or_none()
    if locked is None:
        raise BookingNotFound(f"Réservation introuvable: {booking.id}")
    if not locked.is_live:
        raise AccessDenied("Réservation déjà annulée")
    if locked.queue_entry_id != entry.id:
        raise AccessDenied(f"La réservation {locked.verification_code} a été transférée, réessayez")

    if await lifecycle.get_exit_pass_for_entry(db, entry.id) is not None:
        logger.warning(
            "cancellation_refused",
            reason="exit_pass_issued",
            queue_entry_id=entry.id,
            booking_id=locked.id,
        )
        raise AccessDenied(
            f"Le véhicule {entry.license_plate} a déjà son autorisation de sortie, "
            f"les places ne peuvent plus être annulées"
        )
    return locked, entry


async def cancel_booking(
    db: AsyncSession,
    booking_id: str,
    staff_id: Optional[str],
    clock: StationClock,
) -> CancellationOutcome:
    """Give the seats back to the vehicle and delete the booking."""
    booking = (await db.execute(select(Booking).where(Booking.id == booking_id))).scalar_one_or_none()
    if booking is None:
        raise BookingNotFound(f"Réservation introuvable: {booking_id}")
    if not booking.is_live:
        raise AccessDenied("Réservation déjà annulée")

    booking, entry = await _lock_for_cancel(db, booking)
    entry.available_seats += booking.seats_booked
    await lifecycle.apply_seat_change(db, entry, clock, staff_id)
    await db.delete(booking)
    await db.flush()
    seats_released.labels(reason="cancel").inc(booking.seats_booked)

    logger.info(
        "booking_cancelled",
        booking_id=booking.id,
        queue_entry_id=entry.id,
        seats_restored=booking.seats_booked,
        refund=str(booking.total_amount),
        cancelled_by=staff_id,
    )
    return CancellationOutcome(
        booking=booking,
        entry=entry,
        seats_released=booking.seats_booked,
        refund_amount=Decimal(booking.total_amount),
        booking_deleted=True,
    )


async def cancel_one_seat(
    db: AsyncSession,
    destination_id: str,
    staff_id: Optional[str],
    clock: StationClock,
) -> CancellationOutcome:
    """
    Take one seat back from the latest booking at the destination.
    When ``staff_id`` is given only that agent's bookings are considered.
    """
    stmt = select(Booking).where(
        Booking.destination_id == destination_id,
        Booking.payment_status == PaymentStatus.PAID.value,
    )
    if staff_id:
        stmt = stmt.where(Booking.created_by == staff_id)
    stmt = stmt.order_by(Booking.created_at.desc()).limit(1)
    booking = (await db.execute(stmt)).scalar_one_or_none()
    if booking is None:
        raise BookingNotFound(f"Aucune réservation à annuler pour {destination_id}")

    booking, entry = await _lock_for_cancel(db, booking)

    seats_before = booking.seats_booked
    total_before = Decimal(booking.total_amount)
    refund = total_before
    deleted = seats_before == 1
    if deleted:
        await db.delete(booking)
    else:
        booking.seats_booked = seats_before - 1
        booking.base_amount = quantize_money(Decimal(booking.base_amount) * booking.seats_booked / seats_before)
        booking.service_fee_amount = quantize_money(
            Decimal(booking.service_fee_amount) * booking.seats_booked / seats_before
        )
        booking.total_amount = booking.base_amount + booking.service_fee_amount
        refund = total_before - booking.total_amount

    entry.available_seats += 1
    await lifecycle.apply_seat_change(db, entry, clock, staff_id)
    await db.flush()
    seats_released.labels(reason="cancel_one").inc()

    logger.info(
        "booking_seat_cancelled",
        booking_id=booking.id,
        queue_entry_id=entry.id,
        destination_id=destination_id,
        seats_left=0 if deleted else booking.seats_booked,
        refund=str(refund),
        cancelled_by=staff_id,
    )
    return CancellationOutcome(
        booking=booking,
        entry=entry,
        seats_released=1,
        refund_amount=refund,
        booking_deleted=deleted,
    )
