"""
Pytest fixtures: test database, queue engine with recording collaborators,
seeded vehicles and an HTTP client.

Defaults to an in-memory SQLite database (one shared connection). Set
TEST_DATABASE_URL to a PostgreSQL asyncpg URL to run against the real row
locks; the concurrency tests only run there.
"""

import os

os.environ.setdefault("REDIS_ENABLED", "false")

from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, AsyncGenerator, Optional

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from station_queue.api.deps import get_queue_engine
from station_queue.core.clock import StationClock
from station_queue.core.config import Settings
from station_queue.core.exceptions import PrinterError
from station_queue.db.base import Base
from station_queue.main import app
from station_queue.models import Route, Staff, Vehicle, VehicleAuthorizedStation
from station_queue.models.booking import Booking, PaymentStatus
from station_queue.models.queue_entry import QueueEntry
from station_queue.services.dispatcher import SideEffectDispatcher
from station_queue.services.engine import QueueEngine
from station_queue.services.interfaces.printer import TicketKind, TicketPrinter
from station_queue.services.pricing import SettingsFeePolicy
from station_queue.services.staff_service import DatabaseStaffDirectory

TEST_DATABASE_URL = os.getenv("TEST_DATABASE_URL", "sqlite+aiosqlite:///:memory:")
IS_POSTGRES = TEST_DATABASE_URL.startswith("postgresql")

# 10:00 in Tunis
NOW = datetime(2026, 3, 10, 9, 0, tzinfo=timezone.utc)

DEST_TUNIS = "tunis"
DEST_SOUSSE = "sousse"


class FixedClock(StationClock):
    def __init__(self, now: datetime, tz_name: str = "Africa/Tunis"):
        super().__init__(tz_name)
        self.current = now

    def now(self) -> datetime:
        return self.current


class RecordingPrinter(TicketPrinter):
    """Keeps every ticket in memory; ``fail`` makes every print raise."""

    def __init__(self):
        self.tickets: list[tuple[TicketKind, dict[str, Any], Optional[str]]] = []
        self.fail = False

    async def print_ticket(self, kind, payload, staff_name=None) -> str:
        if self.fail:
            raise PrinterError("printer offline")
        self.tickets.append((kind, payload, staff_name))
        return "OK"

    def kinds(self) -> list[TicketKind]:
        return [kind for kind, _, _ in self.tickets]


def _engine_kwargs() -> dict:
    if IS_POSTGRES:
        return {}
    return {"poolclass": StaticPool, "connect_args": {"check_same_thread": False}}


@pytest_asyncio.fixture
async def db_engine() -> AsyncGenerator[AsyncEngine, None]:
    """Create tables, yield the engine, then drop tables for isolation."""
    engine = create_async_engine(TEST_DATABASE_URL, echo=False, **_engine_kwargs())
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(NOW)


@pytest.fixture
def printer() -> RecordingPrinter:
    return RecordingPrinter()


@pytest.fixture
def fees() -> SettingsFeePolicy:
    return SettingsFeePolicy(Settings(SERVICE_FEE_PER_SEAT=Decimal("0.200"), DAY_PASS_FEE=Decimal("2.000")))


@pytest.fixture
def dispatcher(session_factory, printer, fees, clock) -> SideEffectDispatcher:
    return SideEffectDispatcher(
        session_factory=session_factory,
        printer=printer,
        staff_directory=DatabaseStaffDirectory(session_factory),
        fees=fees,
        clock=clock,
    )


@pytest.fixture
def queue_engine(session_factory, dispatcher, fees, clock) -> QueueEngine:
    return QueueEngine(session_factory, dispatcher, fees, clock)


@pytest_asyncio.fixture
async def routes(session_factory) -> dict[str, Route]:
    async with session_factory() as db:
        tunis = Route(
            station_id=DEST_TUNIS,
            station_name="Tunis",
            base_price=Decimal("14.800"),
            governorate="Tunis",
            delegation="Bab Saadoun",
        )
        sousse = Route(
            station_id=DEST_SOUSSE,
            station_name="Sousse",
            base_price=Decimal("8.500"),
            governorate="Sousse",
            delegation="Sousse Ville",
        )
        db.add_all([tunis, sousse])
        await db.commit()
    return {DEST_TUNIS: tunis, DEST_SOUSSE: sousse}


@pytest_asyncio.fixture
async def staff(session_factory) -> Staff:
    async with session_factory() as db:
        member = Staff(id="staff-1", first_name="Amira", last_name="Ben Salah", role="WORKER")
        db.add(member)
        await db.commit()
    return member


@pytest.fixture
def make_vehicle(session_factory, routes):
    """Factory: a vehicle allowed on the given destinations (both by default)."""

    async def _make(
        license_plate: str,
        capacity: int = 4,
        destinations: tuple[str, ...] = (DEST_TUNIS, DEST_SOUSSE),
        is_banned: bool = False,
    ) -> Vehicle:
        async with session_factory() as db:
            vehicle = Vehicle(
                license_plate=license_plate,
                capacity=capacity,
                is_active=not is_banned,
                is_banned=is_banned,
            )
            db.add(vehicle)
            await db.flush()
            for priority, destination_id in enumerate(destinations, start=1):
                db.add(VehicleAuthorizedStation(
                    vehicle_id=vehicle.id,
                    station_id=destination_id,
                    station_name=routes[destination_id].station_name,
                    priority=priority,
                ))
            await db.commit()
        return vehicle

    return _make


@pytest.fixture
def queued(queue_engine, make_vehicle):
    """Factory: create a vehicle and put it in a destination queue."""

    async def _queue(license_plate: str, capacity: int = 4, destination_id: str = DEST_TUNIS):
        vehicle = await make_vehicle(license_plate, capacity)
        outcome = await queue_engine.enter_queue(vehicle.id, destination_id)
        return outcome.entry

    return _queue


@pytest_asyncio.fixture
async def client(queue_engine: QueueEngine) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client wired to the test engine instead of the process-wide one."""
    app.dependency_overrides[get_queue_engine] = lambda: queue_engine

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


async def assert_seat_ledger(session_factory: async_sessionmaker[AsyncSession]) -> None:
    """Every queued vehicle's booked seats match the PAID bookings pointing at it."""
    async with session_factory() as db:
        booked = dict(
            (
                await db.execute(
                    select(Booking.queue_entry_id, func.sum(Booking.seats_booked))
                    .where(Booking.payment_status == PaymentStatus.PAID.value)
                    .group_by(Booking.queue_entry_id)
                )
            ).all()
        )
        entries = (await db.execute(select(QueueEntry))).scalars().all()

    for entry in entries:
        assert booked.get(entry.id, 0) == entry.total_seats - entry.available_seats, entry.license_plate
