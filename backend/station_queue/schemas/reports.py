"""
Pydantic schemas for the daily trip reports and the vehicle activity feed.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel

from station_queue.schemas.passes import ExitPassResponse
from station_queue.schemas.vehicle import VehicleResponse


class DestinationSummary(BaseModel):
    destination_name: str
    trip_count: int
    total_seats_sold: int
    total_income: Decimal


class VehicleDailyReport(BaseModel):
    vehicle: VehicleResponse
    date: date
    trips: list[ExitPassResponse]
    total_trips: int
    total_seats_sold: int
    total_income: Decimal
    destinations: list[DestinationSummary]


class VehicleReportLine(BaseModel):
    vehicle: VehicleResponse
    trips: list[ExitPassResponse]
    total_trips: int
    total_seats_sold: int
    total_income: Decimal


class AllVehiclesDailyReport(BaseModel):
    date: date
    vehicles: list[VehicleReportLine]
    total_vehicles: int
    total_trips: int
    total_seats_sold: int
    total_income: Decimal


class VehicleActivityEvent(BaseModel):
    event_type: str
    timestamp: datetime
    destination_name: Optional[str] = None
