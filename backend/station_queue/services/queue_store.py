"""
Queue store: row access for queue entries.

LOCKING
=======
Every seat- or position-mutating path reads the rows it will touch with
SELECT ... FOR UPDATE, always in ascending queue_position order. Two
transactions working on the same destination therefore wait for each other
instead of deadlocking, and the loser re-reads fresh seat counts once the
winner commits (populate_existing refreshes rows already in the session).

Position changes (admission, removal, reordering) additionally take a
transaction-scoped advisory lock per destination before touching any row,
so an Enter into an empty or growing queue cannot compute the same tail as
a concurrent Enter or Remove. Lock order is always:

    destination guard (sorted by id) -> queue entries (by position) -> bookings

SQLite has no row or advisory locks and SQLAlchemy drops FOR UPDATE there;
SQLite serializes writers on its own, which is enough for tests.

POSITIONS
=========
Positions are dense 1..N per destination and position 1 boards first.
Whoever deletes a row closes the gap in the same transaction. On PostgreSQL
a deferred unique constraint on (destination_id, queue_position) checks the
result at commit.
"""

from typing import Iterable, Optional, Sequence

from sqlalchemy import func, select, text, update
from sqlalchemy.ext.asyncio import AsyncSession

from station_queue.models.queue_entry import QueueEntry
from station_queue.core.logging import get_logger

logger = get_logger(__name__)

# First key of pg_advisory_xact_lock(int, int); the second is the destination hash
QUEUE_LOCK_NAMESPACE = 7301


def _locked(stmt):
    return stmt.with_for_update().execution_options(populate_existing=True)


async def guard_destination(db: AsyncSession, destination_id: str) -> None:
    """Serialize position changes on one destination until the transaction ends."""
    if db.get_bind().dialect.name != "postgresql":
        return
    await db.execute(
        text("SELECT pg_advisory_xact_lock(:namespace, hashtext(:destination_id))"),
        {"namespace": QUEUE_LOCK_NAMESPACE, "destination_id": destination_id},
    )


async def get_entry(db: AsyncSession, entry_id: str, lock: bool = False) -> Optional[QueueEntry]:
    stmt = select(QueueEntry).where(QueueEntry.id == entry_id)
    if lock:
        stmt = _locked(stmt)
    return (await db.execute(stmt)).scalar_one_or_none()


async def get_entry_for_vehicle(db: AsyncSession, vehicle_id: str, lock: bool = False) -> Optional[QueueEntry]:
    stmt = select(QueueEntry).where(QueueEntry.vehicle_id == vehicle_id)
    if lock:
        stmt = _locked(stmt)
    return (await db.execute(stmt)).scalar_one_or_none()


async def lock_destination(db: AsyncSession, destination_id: str) -> list[QueueEntry]:
    """Lock every entry of a destination, front of the queue first."""
    stmt = _locked(
        select(QueueEntry)
        .where(QueueEntry.destination_id == destination_id)
        .order_by(QueueEntry.queue_position.asc())
    )
    return list((await db.execute(stmt)).scalars().all())


async def lock_queue(db: AsyncSession, destination_id: str) -> list[QueueEntry]:
    """Guard the destination, then lock its entries front first."""
    await guard_destination(db, destination_id)
    return await lock_destination(db, destination_id)


async def lock_queues(db: AsyncSession, destination_ids: Iterable[str]) -> dict[str, list[QueueEntry]]:
    """``lock_queue`` for several destinations, in id order."""
    return {d: await lock_queue(db, d) for d in sorted(set(destination_ids))}


async def lock_queue_of(db: AsyncSession, entry: QueueEntry) -> Optional[QueueEntry]:
    """
    Lock the queue ``entry`` (read without a lock) belongs to and return the
    locked, refreshed entry, or None if it left the queue in the meantime.
    """
    entries = await lock_queue(db, entry.destination_id)
    return next((e for e in entries if e.id == entry.id), None)


async def lock_bookable(db: AsyncSession, destination_id: str) -> list[QueueEntry]:
    """Lock the entries of a destination that still have free seats."""
    stmt = _locked(
        select(QueueEntry)
        .where(
            QueueEntry.destination_id == destination_id,
            QueueEntry.available_seats > 0,
        )
        .order_by(QueueEntry.queue_position.asc())
    )
    return list((await db.execute(stmt)).scalars().all())


async def list_destination(db: AsyncSession, destination_id: str) -> list[QueueEntry]:
    stmt = (
        select(QueueEntry)
        .where(QueueEntry.destination_id == destination_id)
        .order_by(QueueEntry.queue_position.asc())
    )
    return list((await db.execute(stmt)).scalars().all())


async def tail_position(db: AsyncSession, destination_id: str, exclude_entry_id: Optional[str] = None) -> int:
    """max(position) + 1 for the destination, or 1 when it is empty. Caller holds the guard."""
    stmt = select(func.max(QueueEntry.queue_position)).where(QueueEntry.destination_id == destination_id)
    if exclude_entry_id is not None:
        stmt = stmt.where(QueueEntry.id != exclude_entry_id)
    current_max = (await db.execute(stmt)).scalar()
    return (current_max or 0) + 1


async def close_position_gap(db: AsyncSession, destination_id: str, removed_position: int) -> None:
    """Shift every entry behind ``removed_position`` forward by one."""
    await db.flush()
    await db.execute(
        update(QueueEntry)
        .where(
            QueueEntry.destination_id == destination_id,
            QueueEntry.queue_position > removed_position,
        )
        .values(queue_position=QueueEntry.queue_position - 1)
    )


async def delete_entry(db: AsyncSession, entry: QueueEntry) -> None:
    destination_id, position = entry.destination_id, entry.queue_position
    await db.delete(entry)
    await db.flush()
    await close_position_gap(db, destination_id, position)
    logger.info(
        "queue_entry_deleted",
        queue_entry_id=entry.id,
        license_plate=entry.license_plate,
        destination_id=destination_id,
        position=position,
    )


def renumber(entries: Sequence[QueueEntry]) -> None:
    """Assign positions 1..N in the given order, touching only rows that move."""
    for index, entry in enumerate(entries, start=1):
        if entry.queue_position != index:
            entry.queue_position = index
