"""
Tests for queue admission, removal and ordering.
"""

from decimal import Decimal

import pytest

from station_queue.core.exceptions import (
    DestinationNotAuthorized,
    InvalidRequest,
    QueueEntryNotFound,
    VehicleInactive,
    VehicleNotFound,
)
from station_queue.models.queue_entry import QueueStatus
from tests.conftest import DEST_SOUSSE, DEST_TUNIS, assert_seat_ledger


async def plates_in_order(queue_engine, destination_id):
    entries = await queue_engine.queue_for_destination(destination_id)
    return [(e.license_plate, e.queue_position) for e in entries]


@pytest.mark.asyncio
async def test_enter_queue_appends_at_tail(queue_engine, queued):
    """Each new vehicle lands behind the last one, WAITING with every seat free."""
    first = await queued("100 TU 1", capacity=4)
    second = await queued("200 TU 2", capacity=8)

    assert first.queue_position == 1
    assert second.queue_position == 2
    assert second.status == QueueStatus.WAITING.value
    assert second.available_seats == second.total_seats == 8
    assert await plates_in_order(queue_engine, DEST_TUNIS) == [("100 TU 1", 1), ("200 TU 2", 2)]


@pytest.mark.asyncio
async def test_enter_queue_takes_name_and_price_from_route(queued):
    entry = await queued("100 TU 1")
    assert entry.destination_name == "Tunis"
    assert entry.base_price == Decimal("14.800")


@pytest.mark.asyncio
async def test_enter_queue_schedules_day_pass_decision(queue_engine, queued):
    await queued("100 TU 1")
    assert queue_engine.dispatcher.pending == 1


@pytest.mark.asyncio
async def test_enter_unknown_vehicle(queue_engine, routes):
    with pytest.raises(VehicleNotFound):
        await queue_engine.enter_queue("no-such-vehicle", DEST_TUNIS)


@pytest.mark.asyncio
async def test_enter_banned_vehicle(queue_engine, make_vehicle):
    vehicle = await make_vehicle("300 TU 3", is_banned=True)
    with pytest.raises(VehicleInactive):
        await queue_engine.enter_queue(vehicle.id, DEST_TUNIS)
    assert await queue_engine.queue_for_destination(DEST_TUNIS) == []


@pytest.mark.asyncio
async def test_enter_unauthorized_destination(queue_engine, make_vehicle):
    vehicle = await make_vehicle("300 TU 3", destinations=(DEST_TUNIS,))
    with pytest.raises(DestinationNotAuthorized):
        await queue_engine.enter_queue(vehicle.id, DEST_SOUSSE)
    assert queue_engine.dispatcher.pending == 0


@pytest.mark.asyncio
async def test_enter_other_destination_moves_entry(queue_engine, make_vehicle, queued):
    """A vehicle queued at A and admitted to B ends up with one entry, at B's tail."""
    vehicle = await make_vehicle("100 TU 1")
    await queue_engine.enter_queue(vehicle.id, DEST_TUNIS)
    await queued("200 TU 2", destination_id=DEST_TUNIS)
    await queued("300 TU 3", destination_id=DEST_SOUSSE)

    outcome = await queue_engine.enter_queue(vehicle.id, DEST_SOUSSE)

    assert outcome.moved is True
    assert outcome.previous_destination_id == DEST_TUNIS
    assert outcome.entry.destination_name == "Sousse"
    assert outcome.entry.base_price == Decimal("8.500")
    assert await plates_in_order(queue_engine, DEST_SOUSSE) == [("300 TU 3", 1), ("100 TU 1", 2)]
    assert await plates_in_order(queue_engine, DEST_TUNIS) == [("200 TU 2", 1)]

    status = await queue_engine.vehicle_queue_status("100 TU 1")
    assert status.id == outcome.entry.id


@pytest.mark.asyncio
async def test_enter_same_destination_moves_to_tail(queue_engine, make_vehicle, queued):
    vehicle = await make_vehicle("100 TU 1")
    await queue_engine.enter_queue(vehicle.id, DEST_TUNIS)
    await queued("200 TU 2")

    outcome = await queue_engine.enter_queue(vehicle.id, DEST_TUNIS)

    assert outcome.moved is True
    assert await plates_in_order(queue_engine, DEST_TUNIS) == [("200 TU 2", 1), ("100 TU 1", 2)]


@pytest.mark.asyncio
async def test_retarget_carries_booked_seats(queue_engine, make_vehicle, queued, session_factory):
    """Sold seats travel with the vehicle; its bookings now name the new destination."""
    await queued("900 TU 9", destination_id=DEST_SOUSSE)
    vehicle = await make_vehicle("100 TU 1")
    await queued("200 TU 2")
    entry = (await queue_engine.enter_queue(vehicle.id, DEST_TUNIS)).entry
    booked = await queue_engine.book_by_vehicle(entry.id, 2)

    outcome = await queue_engine.enter_queue(vehicle.id, DEST_SOUSSE)

    assert outcome.moved is True
    assert outcome.entry.id == entry.id
    assert outcome.entry.available_seats == 2
    assert outcome.entry.destination_name == "Sousse"
    assert await plates_in_order(queue_engine, DEST_TUNIS) == [("200 TU 2", 1)]
    assert await plates_in_order(queue_engine, DEST_SOUSSE) == [("900 TU 9", 1), ("100 TU 1", 2)]

    booking = await queue_engine.booking_by_verification_code(booked.bookings[0].verification_code)
    assert booking.queue_entry_id == entry.id
    assert booking.destination_id == DEST_SOUSSE
    assert booking.destination_name == "Sousse"
    assert booking.total_amount == booked.bookings[0].total_amount
    await assert_seat_ledger(session_factory)


@pytest.mark.asyncio
async def test_remove_closes_gap(queue_engine, queued):
    await queued("100 TU 1")
    middle = await queued("200 TU 2")
    await queued("300 TU 3")

    removed = await queue_engine.remove_from_queue(middle.vehicle_id)

    assert removed.id == middle.id
    assert await plates_in_order(queue_engine, DEST_TUNIS) == [("100 TU 1", 1), ("300 TU 3", 2)]


@pytest.mark.asyncio
async def test_remove_vehicle_not_queued(queue_engine, make_vehicle):
    vehicle = await make_vehicle("100 TU 1")
    with pytest.raises(QueueEntryNotFound):
        await queue_engine.remove_from_queue(vehicle.id)


@pytest.mark.asyncio
async def test_reorder_applies_permutation(queue_engine, queued):
    a = await queued("100 TU 1")
    b = await queued("200 TU 2")
    c = await queued("300 TU 3")

    await queue_engine.reorder_queue(DEST_TUNIS, [(a.id, 3), (b.id, 1), (c.id, 2)])

    assert await plates_in_order(queue_engine, DEST_TUNIS) == [
        ("200 TU 2", 1),
        ("300 TU 3", 2),
        ("100 TU 1", 3),
    ]


@pytest.mark.asyncio
async def test_reorder_rejects_duplicate_positions(queue_engine, queued):
    """A non-permutation is refused and nothing moves."""
    a = await queued("100 TU 1")
    b = await queued("200 TU 2")

    with pytest.raises(InvalidRequest):
        await queue_engine.reorder_queue(DEST_TUNIS, [(a.id, 2)])

    with pytest.raises(InvalidRequest):
        await queue_engine.reorder_queue(DEST_TUNIS, [(a.id, 1), (b.id, 1)])

    assert await plates_in_order(queue_engine, DEST_TUNIS) == [("100 TU 1", 1), ("200 TU 2", 2)]


@pytest.mark.asyncio
async def test_reorder_rejects_entry_from_other_destination(queue_engine, queued):
    a = await queued("100 TU 1", destination_id=DEST_TUNIS)
    other = await queued("200 TU 2", destination_id=DEST_SOUSSE)

    with pytest.raises(QueueEntryNotFound):
        await queue_engine.reorder_queue(DEST_TUNIS, [(a.id, 1), (other.id, 2)])


@pytest.mark.asyncio
async def test_move_to_front(queue_engine, queued):
    """Position 1 boards first; the moved entry takes it and the rest shift back."""
    await queued("100 TU 1")
    await queued("200 TU 2")
    last = await queued("300 TU 3")

    await queue_engine.move_to_front(last.id, DEST_TUNIS)

    assert await plates_in_order(queue_engine, DEST_TUNIS) == [
        ("300 TU 3", 1),
        ("100 TU 1", 2),
        ("200 TU 2", 3),
    ]


@pytest.mark.asyncio
async def test_move_to_front_wrong_destination(queue_engine, queued):
    entry = await queued("100 TU 1", destination_id=DEST_TUNIS)
    with pytest.raises(QueueEntryNotFound):
        await queue_engine.move_to_front(entry.id, DEST_SOUSSE)


@pytest.mark.asyncio
async def test_move_to_position(queue_engine, queued):
    first = await queued("100 TU 1")
    await queued("200 TU 2")
    await queued("300 TU 3")

    await queue_engine.move_to_position(first.id, 2)

    assert await plates_in_order(queue_engine, DEST_TUNIS) == [
        ("200 TU 2", 1),
        ("100 TU 1", 2),
        ("300 TU 3", 3),
    ]


@pytest.mark.asyncio
async def test_move_to_position_out_of_range(queue_engine, queued):
    entry = await queued("100 TU 1")
    await queued("200 TU 2")

    with pytest.raises(InvalidRequest):
        await queue_engine.move_to_position(entry.id, 3)
    with pytest.raises(InvalidRequest):
        await queue_engine.move_to_position(entry.id, 0)
