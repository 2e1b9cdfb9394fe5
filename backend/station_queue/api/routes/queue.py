"""
Queue endpoints: admission, ordering and recovery.

Every write invalidates the cached summaries once the engine call has
returned, i.e. after commit.
"""

from typing import Optional

from fastapi import APIRouter, Depends, status

from station_queue.api.deps import get_queue_engine, get_staff_id
from station_queue.core.exceptions import QueueEntryNotFound
from station_queue.schemas.passes import EmergencyRemovalResult, TransferResult, TripEndResult
from station_queue.schemas.queue import (
    MoveToFront,
    MoveToPosition,
    QueueEnter,
    QueueEnterResponse,
    QueueEntryResponse,
    QueueReorder,
    QueueSummary,
    TransferRequest,
)
from station_queue.services.cache_service import get_cached_summaries, invalidate_queue_cache, set_cached_summaries
from station_queue.services.engine import QueueEngine

router = APIRouter(prefix="/queue", tags=["Queue"])


@router.post("/entries", response_model=QueueEnterResponse, status_code=status.HTTP_201_CREATED)
async def enter_queue(
    data: QueueEnter,
    staff_id: Optional[str] = Depends(get_staff_id),
    engine: QueueEngine = Depends(get_queue_engine),
):
    """
    Put a vehicle at the back of a destination queue.

    A vehicle that already holds an entry is moved to the back of the
    target queue instead of being inserted twice.
    """
    outcome = await engine.enter_queue(data.vehicle_id, data.destination_id, data.destination_name, staff_id)
    await invalidate_queue_cache()
    return QueueEnterResponse(
        entry=QueueEntryResponse.model_validate(outcome.entry),
        moved=outcome.moved,
        previous_destination_id=outcome.previous_destination_id,
    )


@router.delete("/vehicles/{vehicle_id}", response_model=QueueEntryResponse)
async def remove_from_queue(vehicle_id: str, engine: QueueEngine = Depends(get_queue_engine)):
    entry = await engine.remove_from_queue(vehicle_id)
    await invalidate_queue_cache()
    return entry


@router.put("/destinations/{destination_id}/order", response_model=list[QueueEntryResponse])
async def reorder_queue(
    destination_id: str,
    data: QueueReorder,
    engine: QueueEngine = Depends(get_queue_engine),
):
    """Apply a full permutation of positions to one destination."""
    entries = await engine.reorder_queue(
        destination_id, [(p.queue_entry_id, p.position) for p in data.positions]
    )
    await invalidate_queue_cache()
    return entries


@router.post("/entries/{entry_id}/move-to-front", response_model=list[QueueEntryResponse])
async def move_to_front(entry_id: str, data: MoveToFront, engine: QueueEngine = Depends(get_queue_engine)):
    entries = await engine.move_to_front(entry_id, data.destination_id)
    await invalidate_queue_cache()
    return entries


@router.patch("/entries/{entry_id}/position", response_model=list[QueueEntryResponse])
async def move_to_position(entry_id: str, data: MoveToPosition, engine: QueueEngine = Depends(get_queue_engine)):
    entries = await engine.move_to_position(entry_id, data.position)
    await invalidate_queue_cache()
    return entries


@router.post("/vehicles/{vehicle_id}/transfer", response_model=TransferResult)
async def transfer_and_remove(
    vehicle_id: str,
    data: TransferRequest,
    staff_id: Optional[str] = Depends(get_staff_id),
    engine: QueueEngine = Depends(get_queue_engine),
):
    """Remove a vehicle and move its booked passengers to another vehicle."""
    outcome = await engine.transfer_and_remove(vehicle_id, data.destination_id, staff_id)
    await invalidate_queue_cache()
    return TransferResult(
        removed_entry_id=outcome.removed.id,
        target_entry_id=outcome.target.id if outcome.target else None,
        target_license_plate=outcome.target.license_plate if outcome.target else None,
        seats_transferred=outcome.seats_transferred,
        bookings_moved=outcome.bookings_moved,
        exit_pass=outcome.exit_pass,
    )


@router.post("/vehicles/{vehicle_id}/emergency-remove", response_model=EmergencyRemovalResult)
async def emergency_remove(
    vehicle_id: str,
    staff_id: Optional[str] = Depends(get_staff_id),
    engine: QueueEngine = Depends(get_queue_engine),
):
    outcome = await engine.emergency_remove(vehicle_id, staff_id)
    await invalidate_queue_cache()
    return EmergencyRemovalResult(
        removed_entry_id=outcome.removed.id,
        license_plate=outcome.removed.license_plate,
        cancelled_bookings=len(outcome.cancelled_bookings),
        refund_total=outcome.refund_total,
    )


@router.post("/entries/{entry_id}/end-trip", response_model=TripEndResult)
async def end_trip(
    entry_id: str,
    staff_id: Optional[str] = Depends(get_staff_id),
    engine: QueueEngine = Depends(get_queue_engine),
):
    """Dispatch a vehicle that leaves before it is full."""
    outcome = await engine.end_trip_partial_capacity(entry_id, staff_id)
    await invalidate_queue_cache()
    return TripEndResult(
        removed_entry_id=outcome.removed.id,
        seats_used=outcome.seats_used,
        exit_pass=outcome.exit_pass,
    )


@router.get("/summaries", response_model=list[QueueSummary])
async def queue_summaries(engine: QueueEngine = Depends(get_queue_engine)):
    cached = await get_cached_summaries()
    if cached is not None:
        return cached
    summaries = await engine.queue_summaries()
    await set_cached_summaries(summaries)
    return summaries


@router.get("/destinations/{destination_id}", response_model=list[QueueEntryResponse])
async def destination_queue(destination_id: str, engine: QueueEngine = Depends(get_queue_engine)):
    return await engine.queue_for_destination(destination_id)


@router.get("/vehicles/{license_plate}", response_model=QueueEntryResponse)
async def vehicle_queue_status(license_plate: str, engine: QueueEngine = Depends(get_queue_engine)):
    entry = await engine.vehicle_queue_status(license_plate)
    if entry is None:
        raise QueueEntryNotFound(f"Le véhicule {license_plate} n'est pas dans la file")
    return entry
