"""
Tests for read models and vehicle registry operations.
"""

from datetime import timedelta
from decimal import Decimal

import pytest

from station_queue.core.exceptions import BookingNotFound, InvalidState, VehicleInactive, VehicleNotFound
from station_queue.services.interfaces.printer import TicketKind
from tests.conftest import DEST_SOUSSE, DEST_TUNIS, NOW


@pytest.mark.asyncio
async def test_queue_summaries_count_by_status(queue_engine, queued):
    waiting = await queued("100 TU 1", capacity=4)
    loading = await queued("200 TU 2", capacity=4)
    ready = await queued("300 TU 3", capacity=4)
    await queued("400 TU 4", destination_id=DEST_SOUSSE)
    await queue_engine.book_by_vehicle(loading.id, 1)
    await queue_engine.book_by_vehicle(ready.id, 4)

    summaries = {s["destination_id"]: s for s in await queue_engine.queue_summaries()}

    assert summaries[DEST_TUNIS] == {
        "destination_id": DEST_TUNIS,
        "destination_name": "Tunis",
        "total_vehicles": 3,
        "waiting_vehicles": 1,
        "loading_vehicles": 1,
        "ready_vehicles": 1,
        "available_seats": 7,
        "governorate": "Tunis",
        "delegation": "Bab Saadoun",
    }
    assert summaries[DEST_SOUSSE]["total_vehicles"] == 1
    assert waiting.queue_position == 1


@pytest.mark.asyncio
async def test_available_seats_for_destination(queue_engine, queued):
    full = await queued("100 TU 1", capacity=4)
    await queued("200 TU 2", capacity=8)
    await queue_engine.book_by_vehicle(full.id, 4)

    seats = await queue_engine.available_seats_for_destination(DEST_TUNIS)

    assert seats["total_available_seats"] == 8
    assert seats["destination_name"] == "Tunis"
    assert [v.license_plate for v in seats["vehicles"]] == ["200 TU 2"]


@pytest.mark.asyncio
async def test_available_booking_destinations_filters(queue_engine, queued):
    await queued("100 TU 1", destination_id=DEST_TUNIS)
    await queued("200 TU 2", destination_id=DEST_SOUSSE)

    everything = await queue_engine.available_booking_destinations()
    sousse_only = await queue_engine.available_booking_destinations(governorate="Sousse")

    assert [d["destination_id"] for d in everything] == [DEST_SOUSSE, DEST_TUNIS]
    assert [d["destination_id"] for d in sousse_only] == [DEST_SOUSSE]
    assert sousse_only[0]["base_price"] == Decimal("8.500")
    assert sousse_only[0]["vehicle_count"] == 1


@pytest.mark.asyncio
async def test_booking_by_verification_code(queue_engine, queued):
    entry = await queued("100 TU 1")
    booking = (await queue_engine.book_by_vehicle(entry.id, 2)).bookings[0]

    found = await queue_engine.booking_by_verification_code(booking.verification_code.lower())

    assert found.id == booking.id
    with pytest.raises(BookingNotFound):
        await queue_engine.booking_by_verification_code("NOPE")


@pytest.mark.asyncio
async def test_day_pass_status_batch(queue_engine, queued, make_vehicle):
    await queued("100 TU 1")
    await make_vehicle("200 TU 2")
    await queue_engine.dispatcher.run_pending()

    status = await queue_engine.day_pass_status(["100 TU 1", "200 TU 2"])

    assert status == {"100 TU 1": True, "200 TU 2": False}
    assert await queue_engine.day_pass_status([]) == {}


@pytest.mark.asyncio
async def test_queued_without_day_pass(queue_engine, queued):
    await queued("100 TU 1")
    assert [e.license_plate for e in await queue_engine.queued_without_day_pass()] == ["100 TU 1"]

    await queue_engine.dispatcher.run_pending()
    assert await queue_engine.queued_without_day_pass() == []


@pytest.mark.asyncio
async def test_recent_exit_passes(queue_engine, queued):
    first = await queued("100 TU 1")
    second = await queued("200 TU 2")
    await queue_engine.end_trip_partial_capacity(first.id)
    await queue_engine.end_trip_partial_capacity(second.id)

    assert len(await queue_engine.recent_exit_passes(limit=1)) == 1
    assert len(await queue_engine.today_exit_passes()) == 2


@pytest.mark.asyncio
async def test_register_vehicle_and_authorize(queue_engine, routes):
    vehicle = await queue_engine.register_vehicle("500 TU 5", 8, phone_number="+216 20 000 000")
    await queue_engine.authorize_destination(vehicle.id, DEST_SOUSSE, "Sousse", priority=2)
    await queue_engine.authorize_destination(
        vehicle.id, DEST_TUNIS, "Tunis", base_price=Decimal("15.000"), is_default=True
    )

    allowed = await queue_engine.authorized_destinations("500 TU 5")

    assert [a.station_id for a in allowed] == [DEST_TUNIS, DEST_SOUSSE]
    assert allowed[0].base_price == Decimal("15.000")

    entry = (await queue_engine.enter_queue(vehicle.id, DEST_TUNIS)).entry
    assert entry.total_seats == 8


@pytest.mark.asyncio
async def test_authorize_destination_updates_existing_row(queue_engine, routes):
    vehicle = await queue_engine.register_vehicle("500 TU 5", 8)
    await queue_engine.authorize_destination(vehicle.id, DEST_TUNIS, "Tunis")
    await queue_engine.authorize_destination(vehicle.id, DEST_TUNIS, "Tunis Nord", priority=3)

    allowed = await queue_engine.authorized_destinations("500 TU 5")
    assert [(a.station_name, a.priority) for a in allowed] == [("Tunis Nord", 3)]


@pytest.mark.asyncio
async def test_register_duplicate_plate(queue_engine, routes):
    await queue_engine.register_vehicle("500 TU 5", 8)
    with pytest.raises(InvalidState):
        await queue_engine.register_vehicle("500 TU 5", 4)


@pytest.mark.asyncio
async def test_unknown_plate_has_no_destinations(queue_engine, routes):
    with pytest.raises(VehicleNotFound):
        await queue_engine.authorized_destinations("000 TU 0")


@pytest.mark.asyncio
async def test_ban_and_activate(queue_engine, make_vehicle):
    vehicle = await make_vehicle("100 TU 1")

    banned = await queue_engine.ban_vehicle(vehicle.id)
    assert banned.is_banned is True
    with pytest.raises(VehicleInactive):
        await queue_engine.enter_queue(vehicle.id, DEST_TUNIS)

    await queue_engine.activate_vehicle(vehicle.id)
    outcome = await queue_engine.enter_queue(vehicle.id, DEST_TUNIS)
    assert outcome.entry.queue_position == 1


@pytest.mark.asyncio
async def test_day_pass_price(queue_engine):
    assert queue_engine.day_pass_price() == Decimal("2.000")


@pytest.mark.asyncio
async def test_purchase_day_pass_before_queueing(queue_engine, make_vehicle, printer):
    """A pass sold at the counter makes the first admission print an entry ticket."""
    vehicle = await make_vehicle("100 TU 1")

    day_pass = await queue_engine.purchase_day_pass(vehicle.id, staff_id="staff-1")
    await queue_engine.dispatcher.run_pending()

    assert day_pass.price == Decimal("2.000")
    assert day_pass.created_by == "staff-1"
    assert day_pass.license_plate == "100 TU 1"
    assert await queue_engine.has_day_pass_today("100 TU 1") is True
    assert printer.kinds() == [TicketKind.DAY_PASS]

    with pytest.raises(InvalidState):
        await queue_engine.purchase_day_pass(vehicle.id)

    await queue_engine.enter_queue(vehicle.id, DEST_TUNIS)
    await queue_engine.dispatcher.run_pending()

    assert printer.kinds() == [TicketKind.DAY_PASS, TicketKind.ENTRY]
    assert len(await queue_engine.today_day_passes()) == 1


@pytest.mark.asyncio
async def test_purchase_day_pass_custom_price_and_unknown_vehicle(queue_engine, make_vehicle):
    vehicle = await make_vehicle("100 TU 1")

    day_pass = await queue_engine.purchase_day_pass(vehicle.id, price=Decimal("1.5"))

    assert day_pass.price == Decimal("1.500")
    with pytest.raises(VehicleNotFound):
        await queue_engine.purchase_day_pass("missing")


async def travel(queue_engine, queued_entry, seats):
    if seats:
        await queue_engine.book_by_vehicle(queued_entry.id, seats)
    return await queue_engine.end_trip_partial_capacity(queued_entry.id)


@pytest.mark.asyncio
async def test_vehicle_daily_report(queue_engine, queued, clock):
    first = await queued("100 TU 1", capacity=8)
    await travel(queue_engine, first, 3)
    clock.current = NOW + timedelta(hours=2)
    again = (await queue_engine.enter_queue(first.vehicle_id, DEST_TUNIS)).entry
    await travel(queue_engine, again, 2)

    report = await queue_engine.vehicle_daily_report(first.vehicle_id)

    assert report["vehicle"].license_plate == "100 TU 1"
    assert report["date"] == clock.today()
    assert report["total_trips"] == 2
    assert report["total_seats_sold"] == 5
    assert report["total_income"] == Decimal("74.000")
    assert [t.seats_used for t in report["trips"]] == [3, 2]
    assert report["destinations"] == [
        {"destination_name": "Tunis", "trip_count": 2, "total_seats_sold": 5, "total_income": Decimal("74.000")},
    ]

    yesterday = await queue_engine.vehicle_daily_report(first.vehicle_id, clock.today() - timedelta(days=1))
    assert yesterday["total_trips"] == 0
    assert yesterday["total_income"] == Decimal("0.000")
    assert yesterday["destinations"] == []

    with pytest.raises(VehicleNotFound):
        await queue_engine.vehicle_daily_report("missing")


@pytest.mark.asyncio
async def test_all_vehicles_daily_report(queue_engine, queued, make_vehicle):
    """Busiest vehicle first; vehicles that never left are not listed."""
    tunis = await queued("100 TU 1", capacity=8)
    sousse = await queued("200 TU 2", capacity=4, destination_id=DEST_SOUSSE)
    await make_vehicle("300 TU 3")
    await travel(queue_engine, sousse, 4)
    await travel(queue_engine, tunis, 3)

    report = await queue_engine.all_vehicles_daily_report()

    assert report["total_vehicles"] == 2
    assert [line["vehicle"].license_plate for line in report["vehicles"]] == ["100 TU 1", "200 TU 2"]
    assert [line["total_income"] for line in report["vehicles"]] == [Decimal("44.400"), Decimal("34.000")]
    assert report["total_trips"] == 2
    assert report["total_seats_sold"] == 7
    assert report["total_income"] == Decimal("78.400")


@pytest.mark.asyncio
async def test_list_vehicles(queue_engine, make_vehicle):
    await make_vehicle("300 TU 3")
    await make_vehicle("100 TU 1", is_banned=True)

    vehicles = await queue_engine.list_vehicles()

    assert [(v.license_plate, v.is_banned) for v in vehicles] == [("100 TU 1", True), ("300 TU 3", False)]


@pytest.mark.asyncio
async def test_vehicle_activity(queue_engine, queued, clock):
    entry = await queued("100 TU 1", capacity=8)
    await queue_engine.dispatcher.run_pending()
    clock.current = NOW + timedelta(minutes=90)
    await travel(queue_engine, entry, 2)
    clock.current = NOW + timedelta(hours=2)
    await queue_engine.enter_queue(entry.vehicle_id, DEST_SOUSSE)

    events = await queue_engine.vehicle_activity("100 TU 1")
    recent = await queue_engine.vehicle_activity("100 TU 1", hours=1)

    assert [(e["event_type"], e["destination_name"]) for e in events] == [
        ("QUEUED", "Sousse"),
        ("EXIT", "Tunis"),
        ("DAY_PASS", None),
    ]
    assert [e["event_type"] for e in recent] == ["QUEUED", "EXIT"]
    with pytest.raises(VehicleNotFound):
        await queue_engine.vehicle_activity("999 TU 9")
