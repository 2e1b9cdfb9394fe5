"""
Booking endpoints: seat allocation and cancellation.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from station_queue.api.deps import get_queue_engine, get_staff_id
from station_queue.schemas.booking import (
    AvailableSeats,
    BookableDestination,
    BookByDestination,
    BookByVehicle,
    BookingResponse,
    BookingResult,
    CancellationResult,
    CancelOneSeat,
)
from station_queue.services.allocation_service import BookingOutcome, CancellationOutcome
from station_queue.services.cache_service import destinations_key, get_cached, invalidate_queue_cache, set_cached
from station_queue.services.engine import QueueEngine

router = APIRouter(prefix="/bookings", tags=["Bookings"])


def _booking_result(outcome: BookingOutcome) -> BookingResult:
    return BookingResult(
        bookings=outcome.bookings,
        seats=outcome.seats,
        total_amount=outcome.total_amount,
        exit_passes=outcome.exit_passes,
    )


def _cancellation_result(outcome: CancellationOutcome) -> CancellationResult:
    return CancellationResult(
        booking_id=outcome.booking.id,
        queue_entry_id=outcome.entry.id,
        seats_released=outcome.seats_released,
        refund_amount=outcome.refund_amount,
        booking_deleted=outcome.booking_deleted,
        entry=outcome.entry,
    )


@router.post("/by-destination", response_model=BookingResult, status_code=status.HTTP_201_CREATED)
async def book_by_destination(
    data: BookByDestination,
    staff_id: Optional[str] = Depends(get_staff_id),
    engine: QueueEngine = Depends(get_queue_engine),
):
    """
    Book seats on the next vehicles for a destination.

    One vehicle is used when one can take the whole group, otherwise seats
    are taken front to back. All-or-nothing.
    """
    outcome = await engine.book_by_destination(data.destination_id, data.seats, staff_id)
    await invalidate_queue_cache()
    return _booking_result(outcome)


@router.post("/by-vehicle", response_model=BookingResult, status_code=status.HTTP_201_CREATED)
async def book_by_vehicle(
    data: BookByVehicle,
    staff_id: Optional[str] = Depends(get_staff_id),
    engine: QueueEngine = Depends(get_queue_engine),
):
    outcome = await engine.book_by_vehicle(data.queue_entry_id, data.seats, staff_id)
    await invalidate_queue_cache()
    return _booking_result(outcome)


@router.delete("/{booking_id}", response_model=CancellationResult)
async def cancel_booking(
    booking_id: str,
    staff_id: Optional[str] = Depends(get_staff_id),
    engine: QueueEngine = Depends(get_queue_engine),
):
    """Cancel a booking while its vehicle is still queued; seats go back."""
    outcome = await engine.cancel_booking(booking_id, staff_id)
    await invalidate_queue_cache()
    return _cancellation_result(outcome)


@router.post("/cancel-one-seat", response_model=CancellationResult)
async def cancel_one_seat(
    data: CancelOneSeat,
    staff_id: Optional[str] = Depends(get_staff_id),
    engine: QueueEngine = Depends(get_queue_engine),
):
    outcome = await engine.cancel_one_seat(data.destination_id, staff_id)
    await invalidate_queue_cache()
    return _cancellation_result(outcome)


@router.get("/code/{code}", response_model=BookingResponse)
async def booking_by_code(code: str, engine: QueueEngine = Depends(get_queue_engine)):
    return await engine.booking_by_verification_code(code)


@router.get("/destinations", response_model=list[BookableDestination])
async def bookable_destinations(
    governorate: Optional[str] = Query(default=None),
    delegation: Optional[str] = Query(default=None),
    engine: QueueEngine = Depends(get_queue_engine),
):
    key = destinations_key(governorate, delegation)
    cached = await get_cached(key)
    if cached is not None:
        return cached
    destinations = await engine.available_booking_destinations(governorate, delegation)
    await set_cached(key, destinations)
    return destinations


@router.get("/destinations/{destination_id}/seats", response_model=AvailableSeats)
async def available_seats(destination_id: str, engine: QueueEngine = Depends(get_queue_engine)):
    return await engine.available_seats_for_destination(destination_id)
