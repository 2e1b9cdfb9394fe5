"""
Pydantic schemas for exit passes, day passes and recovery results.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field


class ExitPassResponse(BaseModel):
    id: str
    queue_entry_id: str
    vehicle_id: str
    license_plate: str
    destination_id: str
    destination_name: str
    previous_license_plate: Optional[str] = None
    seats_used: int
    total_seats: int
    base_price: Decimal
    total_price: Decimal
    exit_date: date
    current_exit_time: datetime

    model_config = {"from_attributes": True}


class DayPassResponse(BaseModel):
    id: str
    vehicle_id: str
    license_plate: str
    pass_date: date
    price: Decimal
    valid_from: datetime
    valid_until: datetime
    is_active: bool

    model_config = {"from_attributes": True}


class DayPassPurchase(BaseModel):
    vehicle_id: str
    price: Optional[Decimal] = Field(default=None, ge=0)


class DayPassPrice(BaseModel):
    price: Decimal


class DayPassStatusRequest(BaseModel):
    license_plates: list[str]


class TransferResult(BaseModel):
    removed_entry_id: str
    target_entry_id: Optional[str] = None
    target_license_plate: Optional[str] = None
    seats_transferred: int
    bookings_moved: int
    exit_pass: Optional[ExitPassResponse] = None


class EmergencyRemovalResult(BaseModel):
    removed_entry_id: str
    license_plate: str
    cancelled_bookings: int
    refund_total: Decimal


class TripEndResult(BaseModel):
    removed_entry_id: str
    seats_used: int
    exit_pass: ExitPassResponse
