"""
Queue engine: the single entry point the command layer talks to.

Collaborators (session factory, dispatcher, fee policy, clock) are passed in,
nothing is looked up globally. Every write method runs exactly one database
transaction; domain errors raised inside it roll everything back, driver
errors come out as StorageFailure with the driver's message. Side effects
are scheduled only after the transaction has committed.
"""

from contextlib import asynccontextmanager
from datetime import date, timedelta
from decimal import Decimal
from typing import AsyncIterator, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from station_queue.core.clock import StationClock
from station_queue.core.config import Settings
from station_queue.core.exceptions import QueueError, StorageFailure
from station_queue.core.logging import get_logger
from station_queue.core.metrics import booking_latency, record_booking_attempt, record_queue_operation
from station_queue.infrastructure.printer_client import get_printer
from station_queue.models.booking import Booking
from station_queue.models.passes import DayPassAuthorization, ExitAuthorization
from station_queue.models.queue_entry import QueueEntry
from station_queue.models.vehicle import Vehicle, VehicleAuthorizedStation
from station_queue.services import (
    admission_service,
    allocation_service,
    day_pass_service,
    query_service,
    recovery_service,
    report_service,
    vehicle_service,
)
from station_queue.services.admission_service import AdmissionOutcome
from station_queue.services.allocation_service import BookingOutcome, CancellationOutcome
from station_queue.services.dispatcher import DayPassDecision, PrintRequest, SideEffectDispatcher
from station_queue.services.interfaces.pricing import FeePolicy
from station_queue.services.interfaces.printer import TicketKind
from station_queue.services.pricing import SettingsFeePolicy
from station_queue.services.recovery_service import EmergencyRemovalOutcome, TransferOutcome, TripEndOutcome
from station_queue.services.staff_service import DatabaseStaffDirectory

logger = get_logger(__name__)


def booking_ticket_payload(booking: Booking) -> dict:
    return {
        "booking_id": booking.id,
        "verification_code": booking.verification_code,
        "destination_name": booking.destination_name,
        "license_plate": booking.license_plate,
        "seats_booked": booking.seats_booked,
        "base_amount": str(booking.base_amount),
        "service_fee_amount": str(booking.service_fee_amount),
        "total_amount": str(booking.total_amount),
    }


def exit_pass_ticket_payload(exit_pass: ExitAuthorization) -> dict:
    return {
        "exit_pass_id": exit_pass.id,
        "license_plate": exit_pass.license_plate,
        "destination_name": exit_pass.destination_name,
        "seats_used": exit_pass.seats_used,
        "total_seats": exit_pass.total_seats,
        "total_price": str(exit_pass.total_price),
        "previous_license_plate": exit_pass.previous_license_plate,
        "current_exit_time": exit_pass.current_exit_time.isoformat(),
    }


class QueueEngine:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        dispatcher: SideEffectDispatcher,
        fees: FeePolicy,
        clock: StationClock,
    ):
        self._session_factory = session_factory
        self.dispatcher = dispatcher
        self.fees = fees
        self.clock = clock

    @asynccontextmanager
    async def _transaction(self, operation: str) -> AsyncIterator[AsyncSession]:
        async with self._session_factory() as db:
            try:
                async with db.begin():
                    yield db
            except QueueError:
                record_queue_operation(operation, "rejected")
                raise
            except SQLAlchemyError as e:
                record_queue_operation(operation, "error")
                logger.error("storage_failure", operation=operation, error=str(e))
                raise StorageFailure(str(e)) from e
        record_queue_operation(operation, "success")

    @asynccontextmanager
    async def _read(self) -> AsyncIterator[AsyncSession]:
        async with self._session_factory() as db:
            try:
                yield db
            except SQLAlchemyError as e:
                logger.error("storage_failure", operation="read", error=str(e))
                raise StorageFailure(str(e)) from e

    # -- side effects -----------------------------------------------------

    def _schedule_booking_prints(self, outcome: BookingOutcome, staff_id: Optional[str]) -> None:
        for booking in outcome.bookings:
            self.dispatcher.schedule(PrintRequest(TicketKind.BOOKING, booking_ticket_payload(booking), staff_id))
        for exit_pass in outcome.exit_passes:
            self._schedule_exit_pass_print(exit_pass, staff_id)

    def _schedule_exit_pass_print(self, exit_pass: Optional[ExitAuthorization], staff_id: Optional[str]) -> None:
        if exit_pass is not None:
            self.dispatcher.schedule(PrintRequest(TicketKind.EXIT_PASS, exit_pass_ticket_payload(exit_pass), staff_id))

    # -- admission --------------------------------------------------------

    async def enter_queue(
        self,
        vehicle_id: str,
        destination_id: str,
        destination_name: Optional[str] = None,
        staff_id: Optional[str] = None,
    ) -> AdmissionOutcome:
        async with self._transaction("enter_queue") as db:
            outcome = await admission_service.enter_queue(
                db, vehicle_id, destination_id, destination_name, staff_id, self.clock
            )
        # Also on a move: a new destination means a new entry/day-pass ticket
        self.dispatcher.schedule(DayPassDecision(
            vehicle_id=outcome.vehicle.id,
            license_plate=outcome.vehicle.license_plate,
            destination_name=outcome.entry.destination_name,
            queue_position=outcome.entry.queue_position,
            staff_id=staff_id,
        ))
        return outcome

    async def remove_from_queue(self, vehicle_id: str) -> QueueEntry:
        async with self._transaction("remove_from_queue") as db:
            return await admission_service.remove_from_queue(db, vehicle_id)

    async def reorder_queue(self, destination_id: str, positions: Sequence[tuple[str, int]]) -> list[QueueEntry]:
        async with self._transaction("reorder_queue") as db:
            return await admission_service.reorder_queue(db, destination_id, positions)

    async def move_to_front(self, queue_entry_id: str, destination_id: str) -> list[QueueEntry]:
        async with self._transaction("move_to_front") as db:
            return await admission_service.move_to_front(db, queue_entry_id, destination_id)

    async def move_to_position(self, queue_entry_id: str, new_position: int) -> list[QueueEntry]:
        async with self._transaction("move_to_position") as db:
            return await admission_service.move_to_position(db, queue_entry_id, new_position)

    # -- seats ------------------------------------------------------------

    async def book_by_destination(
        self,
        destination_id: str,
        seats_requested: int,
        staff_id: Optional[str] = None,
    ) -> BookingOutcome:
        try:
            with booking_latency.time():
                async with self._transaction("book_by_destination") as db:
                    outcome = await allocation_service.book_by_destination(
                        db, destination_id, seats_requested, staff_id, self.fees, self.clock
                    )
        except StorageFailure:
            record_booking_attempt("destination", "error")
            raise
        except QueueError:
            record_booking_attempt("destination", "rejected")
            raise
        record_booking_attempt("destination", "success")
        self._schedule_booking_prints(outcome, staff_id)
        return outcome

    async def book_by_vehicle(
        self,
        queue_entry_id: str,
        seats_requested: int,
        staff_id: Optional[str] = None,
    ) -> BookingOutcome:
        try:
            with booking_latency.time():
                async with self._transaction("book_by_vehicle") as db:
                    outcome = await allocation_service.book_by_vehicle(
                        db, queue_entry_id, seats_requested, staff_id, self.fees, self.clock
                    )
        except StorageFailure:
            record_booking_attempt("vehicle", "error")
            raise
        except QueueError:
            record_booking_attempt("vehicle", "rejected")
            raise
        record_booking_attempt("vehicle", "success")
        self._schedule_booking_prints(outcome, staff_id)
        return outcome

    async def cancel_booking(self, booking_id: str, staff_id: Optional[str] = None) -> CancellationOutcome:
        async with self._transaction("cancel_booking") as db:
            return await allocation_service.cancel_booking(db, booking_id, staff_id, self.clock)

    async def cancel_one_seat(self, destination_id: str, staff_id: Optional[str] = None) -> CancellationOutcome:
        async with self._transaction("cancel_one_seat") as db:
            return await allocation_service.cancel_one_seat(db, destination_id, staff_id, self.clock)

    # -- recovery ---------------------------------------------------------

    async def transfer_and_remove(
        self,
        vehicle_id: str,
        destination_id: str,
        staff_id: Optional[str] = None,
    ) -> TransferOutcome:
        async with self._transaction("transfer_and_remove") as db:
            outcome = await recovery_service.transfer_and_remove(db, vehicle_id, destination_id, self.clock, staff_id)
        self._schedule_exit_pass_print(outcome.exit_pass, staff_id)
        return outcome

    async def emergency_remove(self, vehicle_id: str, staff_id: Optional[str] = None) -> EmergencyRemovalOutcome:
        async with self._transaction("emergency_remove") as db:
            return await recovery_service.emergency_remove(db, vehicle_id, self.clock, staff_id)

    async def end_trip_partial_capacity(self, queue_entry_id: str, staff_id: Optional[str] = None) -> TripEndOutcome:
        async with self._transaction("end_trip") as db:
            outcome = await recovery_service.end_trip_partial_capacity(db, queue_entry_id, self.clock, staff_id)
        self._schedule_exit_pass_print(outcome.exit_pass, staff_id)
        return outcome

    # -- vehicles ---------------------------------------------------------

    async def register_vehicle(self, license_plate: str, capacity: int, phone_number: Optional[str] = None) -> Vehicle:
        async with self._transaction("register_vehicle") as db:
            return await vehicle_service.register_vehicle(db, license_plate, capacity, phone_number)

    async def authorize_destination(
        self,
        vehicle_id: str,
        station_id: str,
        station_name: str,
        base_price: Optional[Decimal] = None,
        is_default: bool = False,
        priority: int = 1,
    ) -> VehicleAuthorizedStation:
        async with self._transaction("authorize_destination") as db:
            return await vehicle_service.authorize_destination(
                db, vehicle_id, station_id, station_name, base_price, is_default, priority
            )

    async def ban_vehicle(self, vehicle_id: str) -> Vehicle:
        async with self._transaction("ban_vehicle") as db:
            return await vehicle_service.ban_vehicle(db, vehicle_id)

    async def activate_vehicle(self, vehicle_id: str) -> Vehicle:
        async with self._transaction("activate_vehicle") as db:
            return await vehicle_service.activate_vehicle(db, vehicle_id)

    # -- day passes -------------------------------------------------------

    def day_pass_price(self) -> Decimal:
        return self.fees.day_pass_fee()

    async def purchase_day_pass(
        self,
        vehicle_id: str,
        staff_id: Optional[str] = None,
        price: Optional[Decimal] = None,
    ) -> DayPassAuthorization:
        async with self._transaction("purchase_day_pass") as db:
            day_pass, vehicle = await day_pass_service.purchase_day_pass(
                db, vehicle_id, self.fees, self.clock, staff_id, price
            )
        self.dispatcher.schedule(PrintRequest(
            TicketKind.DAY_PASS,
            {
                "license_plate": day_pass.license_plate,
                "destination_name": vehicle.default_destination_name or "",
                "pass_date": day_pass.pass_date.isoformat(),
                "price": str(day_pass.price),
            },
            staff_id,
        ))
        return day_pass

    # -- reads ------------------------------------------------------------

    async def queue_summaries(self) -> list[dict]:
        async with self._read() as db:
            return await query_service.queue_summaries(db)

    async def queue_for_destination(self, destination_id: str) -> list[QueueEntry]:
        async with self._read() as db:
            return await query_service.queue_for_destination(db, destination_id)

    async def vehicle_queue_status(self, license_plate: str) -> Optional[QueueEntry]:
        async with self._read() as db:
            return await query_service.vehicle_queue_status(db, license_plate)

    async def authorized_destinations(self, license_plate: str) -> list[VehicleAuthorizedStation]:
        async with self._read() as db:
            return await query_service.authorized_destinations(db, license_plate)

    async def available_seats_for_destination(self, destination_id: str) -> dict:
        async with self._read() as db:
            return await query_service.available_seats_for_destination(db, destination_id)

    async def available_booking_destinations(
        self,
        governorate: Optional[str] = None,
        delegation: Optional[str] = None,
    ) -> list[dict]:
        async with self._read() as db:
            return await query_service.available_booking_destinations(db, governorate, delegation)

    async def booking_by_verification_code(self, code: str) -> Booking:
        async with self._read() as db:
            return await query_service.booking_by_verification_code(db, code)

    async def has_day_pass_today(self, license_plate: str) -> bool:
        status = await self.day_pass_status([license_plate])
        return status[license_plate]

    async def day_pass_status(self, license_plates: Sequence[str]) -> dict[str, bool]:
        async with self._read() as db:
            return await query_service.day_pass_status(db, license_plates, self.clock.today())

    async def today_day_passes(self) -> list[DayPassAuthorization]:
        async with self._read() as db:
            return await query_service.day_passes_for(db, self.clock.today())

    async def today_exit_passes(self) -> list[ExitAuthorization]:
        async with self._read() as db:
            return await query_service.exit_passes_for(db, self.clock.today())

    async def recent_exit_passes(self, limit: int = 20) -> list[ExitAuthorization]:
        async with self._read() as db:
            return await query_service.recent_exit_passes(db, limit)

    async def queued_without_day_pass(self) -> list[QueueEntry]:
        async with self._read() as db:
            return await query_service.queued_without_day_pass(db, self.clock.today())

    # -- reports ----------------------------------------------------------

    async def list_vehicles(self) -> list[Vehicle]:
        async with self._read() as db:
            return await report_service.list_vehicles(db)

    async def vehicle_daily_report(self, vehicle_id: str, day: Optional[date] = None) -> dict:
        async with self._read() as db:
            return await report_service.vehicle_daily_report(db, vehicle_id, day or self.clock.today())

    async def all_vehicles_daily_report(self, day: Optional[date] = None) -> dict:
        async with self._read() as db:
            return await report_service.all_vehicles_daily_report(db, day or self.clock.today())

    async def vehicle_activity(self, license_plate: str, hours: int = 72) -> list[dict]:
        since = self.clock.now() - timedelta(hours=hours)
        async with self._read() as db:
            return await report_service.vehicle_activity(db, license_plate, since)


def build_queue_engine(settings: Settings, session_factory: async_sessionmaker[AsyncSession]) -> QueueEngine:
    """Wire the engine with the collaborators configured in ``settings``."""
    fees = SettingsFeePolicy(settings)
    clock = StationClock(settings.STATION_TIMEZONE)
    dispatcher = SideEffectDispatcher(
        session_factory=session_factory,
        printer=get_printer(settings),
        staff_directory=DatabaseStaffDirectory(session_factory),
        fees=fees,
        clock=clock,
        max_pending=settings.DISPATCH_QUEUE_SIZE,
    )
    return QueueEngine(session_factory, dispatcher, fees, clock)
