"""
Read models for the station UI.

None of these take locks; counts may be a moment behind a booking that is
committing concurrently.
"""

from datetime import date
from typing import Optional, Sequence

from sqlalchemy import and_, case, exists, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from station_queue.core.exceptions import BookingNotFound, VehicleNotFound
from station_queue.models.booking import Booking
from station_queue.models.passes import DayPassAuthorization, ExitAuthorization
from station_queue.models.queue_entry import QueueEntry, QueueStatus
from station_queue.models.route import Route
from station_queue.models.vehicle import Vehicle, VehicleAuthorizedStation
from station_queue.services import queue_store


def _count_status(status: QueueStatus):
    return func.sum(case((QueueEntry.status == status.value, 1), else_=0))


async def queue_summaries(db: AsyncSession) -> list[dict]:
    """Vehicle counts per destination, by lifecycle status."""
    stmt = (
        select(
            QueueEntry.destination_id,
            QueueEntry.destination_name,
            func.count(QueueEntry.id).label("total_vehicles"),
            _count_status(QueueStatus.WAITING).label("waiting_vehicles"),
            _count_status(QueueStatus.LOADING).label("loading_vehicles"),
            _count_status(QueueStatus.READY).label("ready_vehicles"),
            func.sum(QueueEntry.available_seats).label("available_seats"),
            Route.governorate,
            Route.delegation,
        )
        .outerjoin(Route, Route.station_id == QueueEntry.destination_id)
        .group_by(
            QueueEntry.destination_id,
            QueueEntry.destination_name,
            Route.governorate,
            Route.delegation,
        )
        .order_by(QueueEntry.destination_name.asc())
    )
    rows = (await db.execute(stmt)).all()
    return [
        {
            "destination_id": row.destination_id,
            "destination_name": row.destination_name,
            "total_vehicles": row.total_vehicles,
            "waiting_vehicles": int(row.waiting_vehicles or 0),
            "loading_vehicles": int(row.loading_vehicles or 0),
            "ready_vehicles": int(row.ready_vehicles or 0),
            "available_seats": int(row.available_seats or 0),
            "governorate": row.governorate,
            "delegation": row.delegation,
        }
        for row in rows
    ]


async def queue_for_destination(db: AsyncSession, destination_id: str) -> list[QueueEntry]:
    return await queue_store.list_destination(db, destination_id)


async def vehicle_queue_status(db: AsyncSession, license_plate: str) -> Optional[QueueEntry]:
    result = await db.execute(select(QueueEntry).where(QueueEntry.license_plate == license_plate))
    return result.scalar_one_or_none()


async def authorized_destinations(db: AsyncSession, license_plate: str) -> list[VehicleAuthorizedStation]:
    vehicle = (
        await db.execute(select(Vehicle).where(Vehicle.license_plate == license_plate))
    ).scalar_one_or_none()
    if vehicle is None:
        raise VehicleNotFound(license_plate)
    result = await db.execute(
        select(VehicleAuthorizedStation)
        .where(VehicleAuthorizedStation.vehicle_id == vehicle.id)
        .order_by(
            VehicleAuthorizedStation.is_default.desc(),
            VehicleAuthorizedStation.priority.asc(),
            VehicleAuthorizedStation.station_name.asc(),
        )
    )
    return list(result.scalars().all())


async def available_seats_for_destination(db: AsyncSession, destination_id: str) -> dict:
    entries = [e for e in await queue_store.list_destination(db, destination_id) if e.available_seats > 0]
    return {
        "destination_id": destination_id,
        "destination_name": entries[0].destination_name if entries else destination_id,
        "total_available_seats": sum(e.available_seats for e in entries),
        "vehicles": entries,
    }


async def available_booking_destinations(
    db: AsyncSession,
    governorate: Optional[str] = None,
    delegation: Optional[str] = None,
) -> list[dict]:
    """Destinations with at least one free seat, optionally filtered by region."""
    stmt = (
        select(
            QueueEntry.destination_id,
            QueueEntry.destination_name,
            func.sum(QueueEntry.available_seats).label("available_seats"),
            func.count(QueueEntry.id).label("vehicle_count"),
            func.min(QueueEntry.base_price).label("base_price"),
            Route.governorate,
            Route.delegation,
        )
        .outerjoin(Route, Route.station_id == QueueEntry.destination_id)
        .where(QueueEntry.available_seats > 0)
        .group_by(
            QueueEntry.destination_id,
            QueueEntry.destination_name,
            Route.governorate,
            Route.delegation,
        )
        .order_by(QueueEntry.destination_name.asc())
    )
    if governorate:
        stmt = stmt.where(Route.governorate == governorate)
    if delegation:
        stmt = stmt.where(Route.delegation == delegation)

    rows = (await db.execute(stmt)).all()
    return [
        {
            "destination_id": row.destination_id,
            "destination_name": row.destination_name,
            "available_seats": int(row.available_seats or 0),
            "vehicle_count": row.vehicle_count,
            "base_price": row.base_price,
            "governorate": row.governorate,
            "delegation": row.delegation,
        }
        for row in rows
    ]


async def booking_by_verification_code(db: AsyncSession, code: str) -> Booking:
    result = await db.execute(select(Booking).where(Booking.verification_code == code.upper()))
    booking = result.scalar_one_or_none()
    if booking is None:
        raise BookingNotFound(f"Aucune réservation avec le code {code}")
    return booking


async def day_pass_status(db: AsyncSession, license_plates: Sequence[str], today: date) -> dict[str, bool]:
    """For each plate: does the vehicle hold a valid day pass for ``today``."""
    if not license_plates:
        return {}
    result = await db.execute(
        select(DayPassAuthorization.license_plate).where(
            DayPassAuthorization.license_plate.in_(list(license_plates)),
            DayPassAuthorization.pass_date == today,
            DayPassAuthorization.is_active.is_(True),
        )
    )
    holders = set(result.scalars().all())
    return {plate: plate in holders for plate in license_plates}


async def day_passes_for(db: AsyncSession, day: date) -> list[DayPassAuthorization]:
    result = await db.execute(
        select(DayPassAuthorization)
        .where(DayPassAuthorization.pass_date == day)
        .order_by(DayPassAuthorization.valid_from.desc())
    )
    return list(result.scalars().all())


async def exit_passes_for(db: AsyncSession, day: date) -> list[ExitAuthorization]:
    result = await db.execute(
        select(ExitAuthorization)
        .where(ExitAuthorization.exit_date == day)
        .order_by(ExitAuthorization.current_exit_time.desc())
    )
    return list(result.scalars().all())


async def recent_exit_passes(db: AsyncSession, limit: int = 20) -> list[ExitAuthorization]:
    result = await db.execute(
        select(ExitAuthorization)
        .order_by(ExitAuthorization.current_exit_time.desc())
        .limit(limit)
    )
    return list(result.scalars().all())


async def queued_without_day_pass(db: AsyncSession, today: date) -> list[QueueEntry]:
    has_pass = exists().where(
        and_(
            DayPassAuthorization.vehicle_id == QueueEntry.vehicle_id,
            DayPassAuthorization.pass_date == today,
            DayPassAuthorization.is_active.is_(True),
        )
    )
    result = await db.execute(
        select(QueueEntry)
        .where(~has_pass)
        .order_by(QueueEntry.destination_name.asc(), QueueEntry.queue_position.asc())
    )
    return list(result.scalars().all())
