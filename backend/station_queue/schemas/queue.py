"""
Pydantic schemas for queue requests and responses.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field


class QueueEnter(BaseModel):
    vehicle_id: str
    destination_id: str
    destination_name: Optional[str] = None


class QueueEntryResponse(BaseModel):
    id: str
    vehicle_id: str
    license_plate: str
    destination_id: str
    destination_name: str
    queue_position: int
    status: str
    available_seats: int
    total_seats: int
    base_price: Decimal
    entered_at: datetime

    model_config = {"from_attributes": True}


class QueueEnterResponse(BaseModel):
    entry: QueueEntryResponse
    moved: bool
    previous_destination_id: Optional[str] = None


class PositionAssignment(BaseModel):
    queue_entry_id: str
    position: int = Field(gt=0)


class QueueReorder(BaseModel):
    positions: list[PositionAssignment] = Field(min_length=1)


class MoveToFront(BaseModel):
    destination_id: str


class MoveToPosition(BaseModel):
    position: int = Field(gt=0)


class TransferRequest(BaseModel):
    destination_id: str


class QueueSummary(BaseModel):
    destination_id: str
    destination_name: str
    total_vehicles: int
    waiting_vehicles: int
    loading_vehicles: int
    ready_vehicles: int
    available_seats: int
    governorate: Optional[str] = None
    delegation: Optional[str] = None
