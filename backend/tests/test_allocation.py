"""
Tests for seat allocation and cancellation.
"""

from decimal import Decimal
from types import SimpleNamespace

import pytest

from station_queue.core.exceptions import (
    AccessDenied,
    BookingNotFound,
    InsufficientCapacity,
    InvalidRequest,
    QueueEntryNotFound,
)
from station_queue.models.queue_entry import QueueStatus
from station_queue.services.allocation_service import plan_allocation
from station_queue.services.interfaces.printer import TicketKind
from tests.conftest import DEST_SOUSSE, DEST_TUNIS, assert_seat_ledger


def entry(name, available):
    return SimpleNamespace(license_plate=name, available_seats=available)


def test_plan_prefers_first_vehicle_that_fits_whole_group():
    entries = [entry("A", 2), entry("B", 5), entry("C", 8)]
    plan = plan_allocation(entries, 4)
    assert [(e.license_plate, n) for e, n in plan] == [("B", 4)]


def test_plan_splits_front_to_back_when_no_single_vehicle_fits():
    entries = [entry("A", 2), entry("B", 3), entry("C", 3)]
    plan = plan_allocation(entries, 7)
    assert [(e.license_plate, n) for e, n in plan] == [("A", 2), ("B", 3), ("C", 2)]


def test_plan_raises_when_destination_is_short():
    with pytest.raises(InsufficientCapacity):
        plan_allocation([entry("A", 2), entry("B", 1)], 4)
    with pytest.raises(InsufficientCapacity):
        plan_allocation([], 1)


async def seats_by_plate(queue_engine, destination_id=DEST_TUNIS):
    return {
        e.license_plate: (e.available_seats, e.status)
        for e in await queue_engine.queue_for_destination(destination_id)
    }


@pytest.mark.asyncio
async def test_book_three_seats_single_vehicle(queue_engine, queued):
    """Two 4-seat vehicles, 3 seats: all from position 1."""
    await queued("100 TU 1", capacity=4)
    await queued("200 TU 2", capacity=4)

    outcome = await queue_engine.book_by_destination(DEST_TUNIS, 3, staff_id="staff-1")

    assert len(outcome.bookings) == 1
    assert outcome.bookings[0].license_plate == "100 TU 1"
    assert outcome.bookings[0].seats_booked == 3
    assert outcome.exit_passes == []
    assert await seats_by_plate(queue_engine) == {
        "100 TU 1": (1, QueueStatus.LOADING.value),
        "200 TU 2": (4, QueueStatus.WAITING.value),
    }


@pytest.mark.asyncio
async def test_book_five_seats_splits_and_fills_first_vehicle(queue_engine, queued, session_factory):
    """Two 4-seat vehicles, 5 seats: 4 + 1, and the full vehicle gets its exit pass."""
    first = await queued("100 TU 1", capacity=4)
    await queued("200 TU 2", capacity=4)

    outcome = await queue_engine.book_by_destination(DEST_TUNIS, 5)

    assert [(b.license_plate, b.seats_booked) for b in outcome.bookings] == [("100 TU 1", 4), ("200 TU 2", 1)]
    assert len(outcome.exit_passes) == 1
    assert outcome.exit_passes[0].queue_entry_id == first.id
    assert outcome.exit_passes[0].seats_used == 4
    assert await seats_by_plate(queue_engine) == {
        "100 TU 1": (0, QueueStatus.READY.value),
        "200 TU 2": (3, QueueStatus.LOADING.value),
    }
    await assert_seat_ledger(session_factory)


@pytest.mark.asyncio
async def test_booking_amounts(queue_engine, queued):
    await queued("100 TU 1", capacity=8)

    outcome = await queue_engine.book_by_destination(DEST_TUNIS, 2)

    booking = outcome.bookings[0]
    assert booking.base_amount == Decimal("29.600")
    assert booking.service_fee_amount == Decimal("0.400")
    assert booking.total_amount == Decimal("30.000")
    assert outcome.total_amount == Decimal("30.000")
    assert len(booking.verification_code) == 8


@pytest.mark.asyncio
async def test_insufficient_capacity_writes_nothing(queue_engine, queued, session_factory):
    await queued("100 TU 1", capacity=4)
    await queued("200 TU 2", capacity=4)

    with pytest.raises(InsufficientCapacity):
        await queue_engine.book_by_destination(DEST_TUNIS, 9)

    assert await seats_by_plate(queue_engine) == {
        "100 TU 1": (4, QueueStatus.WAITING.value),
        "200 TU 2": (4, QueueStatus.WAITING.value),
    }
    assert queue_engine.dispatcher.pending == 2  # the two entry decisions only
    await assert_seat_ledger(session_factory)


@pytest.mark.asyncio
async def test_book_unknown_destination(queue_engine, routes):
    with pytest.raises(InsufficientCapacity):
        await queue_engine.book_by_destination("nowhere", 1)


@pytest.mark.asyncio
async def test_book_zero_seats_rejected(queue_engine, queued):
    await queued("100 TU 1")
    with pytest.raises(InvalidRequest):
        await queue_engine.book_by_destination(DEST_TUNIS, 0)


@pytest.mark.asyncio
async def test_booking_schedules_tickets_after_commit(queue_engine, queued, printer):
    await queued("100 TU 1", capacity=4)
    await queue_engine.dispatcher.run_pending()

    await queue_engine.book_by_destination(DEST_TUNIS, 4, staff_id="staff-1")
    await queue_engine.dispatcher.run_pending()

    assert printer.kinds()[-2:] == [TicketKind.BOOKING, TicketKind.EXIT_PASS]


@pytest.mark.asyncio
async def test_book_by_vehicle(queue_engine, queued):
    await queued("100 TU 1", capacity=4)
    second = await queued("200 TU 2", capacity=4)

    outcome = await queue_engine.book_by_vehicle(second.id, 2)

    assert outcome.bookings[0].queue_entry_id == second.id
    assert await seats_by_plate(queue_engine) == {
        "100 TU 1": (4, QueueStatus.WAITING.value),
        "200 TU 2": (2, QueueStatus.LOADING.value),
    }


@pytest.mark.asyncio
async def test_book_by_vehicle_errors(queue_engine, queued):
    entry = await queued("100 TU 1", capacity=4)

    with pytest.raises(QueueEntryNotFound):
        await queue_engine.book_by_vehicle("missing", 1)
    with pytest.raises(InsufficientCapacity):
        await queue_engine.book_by_vehicle(entry.id, 5)


@pytest.mark.asyncio
async def test_cancel_booking_restores_seats(queue_engine, queued, session_factory):
    await queued("100 TU 1", capacity=8)
    first = await queue_engine.book_by_destination(DEST_TUNIS, 1)
    await queue_engine.book_by_destination(DEST_TUNIS, 3)

    outcome = await queue_engine.cancel_booking(first.bookings[0].id, staff_id="staff-1")

    assert outcome.seats_released == 1
    assert outcome.refund_amount == Decimal("15.000")
    assert outcome.booking_deleted is True
    assert await seats_by_plate(queue_engine) == {"100 TU 1": (5, QueueStatus.LOADING.value)}
    await assert_seat_ledger(session_factory)


@pytest.mark.asyncio
async def test_cancel_last_booking_returns_to_waiting(queue_engine, queued, session_factory):
    await queued("100 TU 1", capacity=4)
    booking = (await queue_engine.book_by_destination(DEST_TUNIS, 2)).bookings[0]

    await queue_engine.cancel_booking(booking.id)

    assert await seats_by_plate(queue_engine) == {"100 TU 1": (4, QueueStatus.WAITING.value)}
    await assert_seat_ledger(session_factory)


@pytest.mark.asyncio
async def test_full_vehicle_seats_cannot_be_cancelled(queue_engine, queued, printer, session_factory):
    """Once the exit pass is issued the load is final; ending the trip reports all four seats."""
    entry = await queued("100 TU 1", capacity=4)
    first = await queue_engine.book_by_destination(DEST_TUNIS, 1, staff_id="staff-1")
    await queue_engine.book_by_destination(DEST_TUNIS, 3, staff_id="staff-1")

    with pytest.raises(AccessDenied):
        await queue_engine.cancel_booking(first.bookings[0].id)
    with pytest.raises(AccessDenied):
        await queue_engine.cancel_one_seat(DEST_TUNIS, staff_id="staff-1")

    assert await seats_by_plate(queue_engine) == {"100 TU 1": (0, QueueStatus.READY.value)}
    await assert_seat_ledger(session_factory)

    outcome = await queue_engine.end_trip_partial_capacity(entry.id)
    await queue_engine.dispatcher.run_pending()

    assert outcome.seats_used == 4
    assert outcome.exit_pass.seats_used == 4
    assert len(await queue_engine.today_exit_passes()) == 1
    exit_tickets = [payload for kind, payload, _ in printer.tickets if kind == TicketKind.EXIT_PASS]
    assert [t["seats_used"] for t in exit_tickets] == [4, 4]


@pytest.mark.asyncio
async def test_cancel_booking_errors(queue_engine, queued):
    entry = await queued("100 TU 1", capacity=4)
    booking = (await queue_engine.book_by_destination(DEST_TUNIS, 2)).bookings[0]

    with pytest.raises(BookingNotFound):
        await queue_engine.cancel_booking("missing")

    await queue_engine.end_trip_partial_capacity(entry.id)
    with pytest.raises(AccessDenied):
        await queue_engine.cancel_booking(booking.id)


@pytest.mark.asyncio
async def test_cancel_one_seat_prorates_latest_booking(queue_engine, queued, session_factory):
    await queued("100 TU 1", capacity=8)
    await queue_engine.book_by_destination(DEST_TUNIS, 1, staff_id="staff-1")
    latest = (await queue_engine.book_by_destination(DEST_TUNIS, 3, staff_id="staff-1")).bookings[0]

    outcome = await queue_engine.cancel_one_seat(DEST_TUNIS, staff_id="staff-1")

    assert outcome.booking.id == latest.id
    assert outcome.booking_deleted is False
    assert outcome.booking.seats_booked == 2
    assert outcome.booking.total_amount == Decimal("30.000")
    assert outcome.refund_amount == Decimal("15.000")
    assert await seats_by_plate(queue_engine) == {"100 TU 1": (5, QueueStatus.LOADING.value)}
    await assert_seat_ledger(session_factory)


@pytest.mark.asyncio
async def test_cancel_one_seat_deletes_single_seat_booking(queue_engine, queued, session_factory):
    await queued("100 TU 1", capacity=4)
    await queue_engine.book_by_destination(DEST_TUNIS, 1, staff_id="staff-1")

    outcome = await queue_engine.cancel_one_seat(DEST_TUNIS, staff_id="staff-1")

    assert outcome.booking_deleted is True
    assert await seats_by_plate(queue_engine) == {"100 TU 1": (4, QueueStatus.WAITING.value)}
    await assert_seat_ledger(session_factory)
    with pytest.raises(BookingNotFound):
        await queue_engine.cancel_one_seat(DEST_TUNIS, staff_id="staff-1")


@pytest.mark.asyncio
async def test_cancel_one_seat_only_touches_own_bookings(queue_engine, queued):
    await queued("100 TU 1", capacity=4)
    await queue_engine.book_by_destination(DEST_TUNIS, 1, staff_id="staff-1")

    with pytest.raises(BookingNotFound):
        await queue_engine.cancel_one_seat(DEST_TUNIS, staff_id="staff-2")
    with pytest.raises(BookingNotFound):
        await queue_engine.cancel_one_seat(DEST_SOUSSE)
