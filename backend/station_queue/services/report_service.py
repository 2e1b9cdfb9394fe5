"""
Per-vehicle reports for the station office.

A trip is one exit authorization: the vehicle left with ``seats_used``
passengers and earned ``total_price``. Days are station-local, the same
calendar the exit passes are stamped with.
"""

from collections import defaultdict
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from station_queue.core.exceptions import VehicleNotFound
from station_queue.models.passes import DayPassAuthorization, ExitAuthorization
from station_queue.models.queue_entry import QueueEntry
from station_queue.models.vehicle import Vehicle
from station_queue.services import vehicle_service


def _totals(trips: list[ExitAuthorization]) -> dict:
    return {
        "total_trips": len(trips),
        "total_seats_sold": sum(t.seats_used for t in trips),
        "total_income": sum((Decimal(t.total_price) for t in trips), Decimal("0.000")),
    }


def _by_destination(trips: list[ExitAuthorization]) -> list[dict]:
    grouped: dict[str, list[ExitAuthorization]] = defaultdict(list)
    for trip in trips:
        grouped[trip.destination_name].append(trip)
    summaries = []
    for name in sorted(grouped):
        totals = _totals(grouped[name])
        summaries.append({
            "destination_name": name,
            "trip_count": totals["total_trips"],
            "total_seats_sold": totals["total_seats_sold"],
            "total_income": totals["total_income"],
        })
    return summaries


async def _trips_on(db: AsyncSession, day: date, vehicle_id: Optional[str] = None) -> list[ExitAuthorization]:
    stmt = select(ExitAuthorization).where(ExitAuthorization.exit_date == day)
    if vehicle_id is not None:
        stmt = stmt.where(ExitAuthorization.vehicle_id == vehicle_id)
    stmt = stmt.order_by(ExitAuthorization.current_exit_time.asc())
    return list((await db.execute(stmt)).scalars().all())


async def vehicle_daily_report(db: AsyncSession, vehicle_id: str, day: date) -> dict:
    vehicle = await vehicle_service.get_vehicle(db, vehicle_id)
    trips = await _trips_on(db, day, vehicle.id)
    return {
        "vehicle": vehicle,
        "date": day,
        "trips": trips,
        **_totals(trips),
        "destinations": _by_destination(trips),
    }


async def all_vehicles_daily_report(db: AsyncSession, day: date) -> dict:
    """Every vehicle that left at least once on ``day``, busiest first."""
    trips = await _trips_on(db, day)
    per_vehicle: dict[str, list[ExitAuthorization]] = defaultdict(list)
    for trip in trips:
        per_vehicle[trip.vehicle_id].append(trip)

    vehicles = {}
    if per_vehicle:
        result = await db.execute(select(Vehicle).where(Vehicle.id.in_(list(per_vehicle))))
        vehicles = {v.id: v for v in result.scalars().all()}

    lines = [
        {"vehicle": vehicles[vehicle_id], "trips": vehicle_trips, **_totals(vehicle_trips)}
        for vehicle_id, vehicle_trips in per_vehicle.items()
    ]
    lines.sort(key=lambda line: (-line["total_income"], line["vehicle"].license_plate))
    return {
        "date": day,
        "vehicles": lines,
        "total_vehicles": len(lines),
        **_totals(trips),
    }


async def list_vehicles(db: AsyncSession) -> list[Vehicle]:
    result = await db.execute(select(Vehicle).order_by(Vehicle.license_plate.asc()))
    return list(result.scalars().all())


async def vehicle_activity(db: AsyncSession, license_plate: str, since: datetime) -> list[dict]:
    """
    What the vehicle did since ``since``, newest first: day passes bought,
    departures, and its current queue entry if it has one.
    """
    vehicle = await vehicle_service.get_vehicle_by_plate(db, license_plate)
    if vehicle is None:
        raise VehicleNotFound(license_plate)

    events = []
    day_passes = await db.execute(
        select(DayPassAuthorization).where(
            DayPassAuthorization.vehicle_id == vehicle.id,
            DayPassAuthorization.valid_from >= since,
        )
    )
    for day_pass in day_passes.scalars():
        events.append({"event_type": "DAY_PASS", "timestamp": day_pass.valid_from, "destination_name": None})

    exits = await db.execute(
        select(ExitAuthorization).where(
            ExitAuthorization.vehicle_id == vehicle.id,
            ExitAuthorization.current_exit_time >= since,
        )
    )
    for exit_pass in exits.scalars():
        events.append({
            "event_type": "EXIT",
            "timestamp": exit_pass.current_exit_time,
            "destination_name": exit_pass.destination_name,
        })

    entry = (
        await db.execute(
            select(QueueEntry).where(QueueEntry.vehicle_id == vehicle.id, QueueEntry.entered_at >= since)
        )
    ).scalar_one_or_none()
    if entry is not None:
        events.append({
            "event_type": "QUEUED",
            "timestamp": entry.entered_at,
            "destination_name": entry.destination_name,
        })

    events.sort(key=lambda event: event["timestamp"], reverse=True)
    return events
