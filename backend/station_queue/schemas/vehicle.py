"""
Pydantic schemas for vehicle registry requests and responses.
"""

from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field


class VehicleCreate(BaseModel):
    license_plate: str = Field(min_length=1, max_length=20)
    capacity: int = Field(gt=0, le=30)
    phone_number: Optional[str] = Field(default=None, max_length=30)


class VehicleResponse(BaseModel):
    id: str
    license_plate: str
    capacity: int
    phone_number: Optional[str] = None
    is_active: bool
    is_available: bool
    is_banned: bool
    default_destination_id: Optional[str] = None
    default_destination_name: Optional[str] = None

    model_config = {"from_attributes": True}


class AuthorizationCreate(BaseModel):
    station_id: str
    station_name: str
    base_price: Optional[Decimal] = Field(default=None, ge=0)
    is_default: bool = False
    priority: int = Field(default=1, ge=1)


class AuthorizationResponse(BaseModel):
    id: str
    vehicle_id: str
    station_id: str
    station_name: str
    base_price: Optional[Decimal] = None
    is_default: bool
    priority: int

    model_config = {"from_attributes": True}
