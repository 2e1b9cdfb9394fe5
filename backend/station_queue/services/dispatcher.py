"""
Side-effect dispatcher: work that runs after a queue transaction commits.

Ticket printing and the day-pass decision must never hold a seat lock and
must never undo a committed booking, so the engine only *schedules* them.
A single worker drains an in-process asyncio.Queue:

  - schedule() never blocks; a full queue drops the task (logged, counted)
  - every failure is logged and counted, never re-raised to the caller
  - tasks are not persisted; a process restart loses what was pending

The day-pass decision relies on the (vehicle_id, pass_date) unique
constraint: two decisions racing for the same vehicle both try to insert,
the loser sees IntegrityError and prints an entry ticket instead.
"""

import asyncio
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Optional, Union

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from station_queue.core.clock import StationClock
from station_queue.core.logging import get_logger
from station_queue.core.metrics import day_passes_sold, dispatch_queue_depth, record_dispatch
from station_queue.models.passes import DayPassAuthorization
from station_queue.services.day_pass_service import find_day_pass, new_day_pass
from station_queue.services.interfaces.pricing import FeePolicy
from station_queue.services.interfaces.printer import TicketKind, TicketPrinter
from station_queue.services.interfaces.staff_directory import StaffDirectory

logger = get_logger(__name__)


@dataclass
class PrintRequest:
    kind: TicketKind
    payload: dict[str, Any] = field(default_factory=dict)
    staff_id: Optional[str] = None

    @property
    def task_name(self) -> str:
        return f"print_{self.kind.value.lower()}"


@dataclass
class DayPassDecision:
    vehicle_id: str
    license_plate: str
    destination_name: str
    queue_position: Optional[int] = None
    staff_id: Optional[str] = None

    task_name = "day_pass_decision"


SideEffect = Union[PrintRequest, DayPassDecision]


class SideEffectDispatcher:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        printer: TicketPrinter,
        staff_directory: StaffDirectory,
        fees: FeePolicy,
        clock: StationClock,
        max_pending: int = 1000,
    ):
        self._session_factory = session_factory
        self._printer = printer
        self._staff_directory = staff_directory
        self._fees = fees
        self._clock = clock
        self._queue: asyncio.Queue[SideEffect] = asyncio.Queue(maxsize=max_pending)
        self._worker: Optional[asyncio.Task] = None

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    @property
    def running(self) -> bool:
        return self._worker is not None and not self._worker.done()

    def schedule(self, task: SideEffect) -> None:
        try:
            self._queue.put_nowait(task)
        except asyncio.QueueFull:
            record_dispatch(task.task_name, "dropped")
            logger.error("dispatch_dropped", task=task.task_name, pending=self.pending)
            return
        record_dispatch(task.task_name, "scheduled")
        dispatch_queue_depth.set(self.pending)

    async def start(self) -> None:
        if self.running:
            return
        self._worker = asyncio.create_task(self._run(), name="side-effect-dispatcher")
        logger.info("dispatcher_started")

    async def stop(self) -> None:
        """Finish what is queued, then stop the worker."""
        if self._worker is None:
            return
        await self._queue.join()
        self._worker.cancel()
        try:
            await self._worker
        except asyncio.CancelledError:
            pass
        self._worker = None
        logger.info("dispatcher_stopped")

    async def run_pending(self) -> int:
        """Handle queued tasks inline; for tests and for shutdown without a worker."""
        handled = 0
        while not self._queue.empty():
            task = self._queue.get_nowait()
            try:
                await self._handle(task)
            finally:
                self._queue.task_done()
            handled += 1
        dispatch_queue_depth.set(self.pending)
        return handled

    async def _run(self) -> None:
        while True:
            task = await self._queue.get()
            try:
                await self._handle(task)
            finally:
                self._queue.task_done()
                dispatch_queue_depth.set(self.pending)

    async def _handle(self, task: SideEffect) -> None:
        try:
            if isinstance(task, DayPassDecision):
                await self._decide_day_pass(task)
            else:
                await self._print(task)
        except Exception as e:
            # The triggering operation already committed; log and move on
            record_dispatch(task.task_name, "failed")
            logger.error("dispatch_failed", task=task.task_name, error=str(e), exc_info=True)
            return
        record_dispatch(task.task_name, "success")

    async def _print(self, request: PrintRequest) -> str:
        staff_name = await self._staff_directory.display_name(request.staff_id)
        result = await self._printer.print_ticket(request.kind, request.payload, staff_name)
        logger.info("ticket_dispatched", kind=request.kind.value, result=result)
        return result

    async def _decide_day_pass(self, decision: DayPassDecision) -> None:
        today = self._clock.today()
        async with self._session_factory() as db:
            existing = await self._find_day_pass(db, decision.vehicle_id, today)
            if existing is None:
                day_pass = new_day_pass(
                    decision.vehicle_id,
                    decision.license_plate,
                    self._fees.day_pass_fee(),
                    self._clock,
                    decision.staff_id,
                )
                db.add(day_pass)
                try:
                    await db.commit()
                except IntegrityError:
                    await db.rollback()
                    logger.info("day_pass_already_sold", license_plate=decision.license_plate)
                else:
                    day_passes_sold.labels(channel="admission").inc()
                    logger.info(
                        "day_pass_created",
                        day_pass_id=day_pass.id,
                        license_plate=decision.license_plate,
                        pass_date=str(today),
                        price=str(day_pass.price),
                    )
                    await self._print(PrintRequest(
                        kind=TicketKind.DAY_PASS,
                        payload={
                            "license_plate": decision.license_plate,
                            "destination_name": decision.destination_name,
                            "pass_date": today.isoformat(),
                            "price": str(day_pass.price),
                        },
                        staff_id=decision.staff_id,
                    ))
                    return

        await self._print(PrintRequest(
            kind=TicketKind.ENTRY,
            payload={
                "license_plate": decision.license_plate,
                "destination_name": decision.destination_name,
                "queue_position": decision.queue_position,
                "fee": str(Decimal("0.000")),
            },
            staff_id=decision.staff_id,
        ))

    @staticmethod
    async def _find_day_pass(db: AsyncSession, vehicle_id: str, day) -> Optional[DayPassAuthorization]:
        return await find_day_pass(db, vehicle_id, day)
