"""
Pydantic schemas for booking requests and responses.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field

from station_queue.schemas.passes import ExitPassResponse
from station_queue.schemas.queue import QueueEntryResponse


class BookByDestination(BaseModel):
    destination_id: str
    seats: int = Field(gt=0)


class BookByVehicle(BaseModel):
    queue_entry_id: str
    seats: int = Field(gt=0)


class CancelOneSeat(BaseModel):
    destination_id: str


class BookingResponse(BaseModel):
    id: str
    queue_entry_id: str
    vehicle_id: str
    license_plate: str
    destination_id: str
    destination_name: str
    seats_booked: int
    base_amount: Decimal
    service_fee_amount: Decimal
    total_amount: Decimal
    verification_code: str
    payment_status: str
    payment_method: str
    created_by: Optional[str] = None
    created_at: datetime
    cancelled_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class BookingResult(BaseModel):
    bookings: list[BookingResponse]
    seats: int
    total_amount: Decimal
    exit_passes: list[ExitPassResponse] = []


class CancellationResult(BaseModel):
    booking_id: str
    queue_entry_id: str
    seats_released: int
    refund_amount: Decimal
    booking_deleted: bool
    entry: QueueEntryResponse


class AvailableSeats(BaseModel):
    destination_id: str
    destination_name: str
    total_available_seats: int
    vehicles: list[QueueEntryResponse]


class BookableDestination(BaseModel):
    destination_id: str
    destination_name: str
    available_seats: int
    vehicle_count: int
    base_price: Optional[Decimal] = None
    governorate: Optional[str] = None
    delegation: Optional[str] = None
