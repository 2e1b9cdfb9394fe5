"""
Vehicle registry and the per-vehicle destination allow-list.

Vehicles are never hard-deleted; banning flips flags so that historic
bookings and exit passes keep resolving.
"""

from sqlalchemy import Boolean, CheckConstraint, Column, ForeignKey, Integer, Numeric, String, UniqueConstraint

from station_queue.db.base import Base, TimestampMixin, new_id


class Vehicle(Base, TimestampMixin):
    __tablename__ = "vehicles"

    id = Column(String(36), primary_key=True, default=new_id)
    license_plate = Column(String(20), unique=True, index=True, nullable=False)
    capacity = Column(Integer, nullable=False)
    phone_number = Column(String(30), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    is_available = Column(Boolean, nullable=False, default=True)
    is_banned = Column(Boolean, nullable=False, default=False)
    default_destination_id = Column(String(100), nullable=True)
    default_destination_name = Column(String(255), nullable=True)

    __table_args__ = (
        CheckConstraint("capacity > 0", name="check_vehicle_capacity_positive"),
    )

    @property
    def can_queue(self) -> bool:
        return bool(self.is_active) and not self.is_banned

    def __repr__(self) -> str:
        return f"<Vehicle(id={self.id}, plate={self.license_plate}, capacity={self.capacity})>"


class VehicleAuthorizedStation(Base, TimestampMixin):
    __tablename__ = "vehicle_authorized_stations"

    id = Column(String(36), primary_key=True, default=new_id)
    vehicle_id = Column(String(36), ForeignKey("vehicles.id"), nullable=False, index=True)
    station_id = Column(String(100), nullable=False)
    station_name = Column(String(255), nullable=False)
    base_price = Column(Numeric(10, 3), nullable=True)
    is_default = Column(Boolean, nullable=False, default=False)
    priority = Column(Integer, nullable=False, default=1)

    __table_args__ = (
        UniqueConstraint("vehicle_id", "station_id", name="uq_vehicle_station_authorization"),
    )

    def __repr__(self) -> str:
        return f"<VehicleAuthorizedStation(vehicle={self.vehicle_id}, station={self.station_id})>"
