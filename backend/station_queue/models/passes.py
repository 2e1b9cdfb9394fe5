"""
Exit authorizations and day passes. Both are immutable once written.
"""

from sqlalchemy import Boolean, Column, Date, DateTime, ForeignKey, Index, Integer, Numeric, String, UniqueConstraint

from station_queue.db.base import Base, TimestampMixin, new_id


class ExitAuthorization(Base, TimestampMixin):
    __tablename__ = "exit_passes"

    id = Column(String(36), primary_key=True, default=new_id)
    # At most one exit pass per queue entry
    queue_entry_id = Column(String(36), nullable=False, unique=True)
    vehicle_id = Column(String(36), ForeignKey("vehicles.id"), nullable=False, index=True)
    license_plate = Column(String(20), nullable=False)
    destination_id = Column(String(100), nullable=False)
    destination_name = Column(String(255), nullable=False)
    previous_exit_id = Column(String(36), nullable=True)
    previous_license_plate = Column(String(20), nullable=True)
    seats_used = Column(Integer, nullable=False)
    total_seats = Column(Integer, nullable=False)
    base_price = Column(Numeric(10, 3), nullable=False)
    total_price = Column(Numeric(10, 3), nullable=False)
    exit_date = Column(Date, nullable=False)
    current_exit_time = Column(DateTime(timezone=True), nullable=False)
    created_by = Column(String(36), nullable=True)

    __table_args__ = (
        Index("ix_exit_passes_destination_date", "destination_id", "exit_date"),
    )

    def __repr__(self) -> str:
        return (
            f"<ExitAuthorization(id={self.id}, plate={self.license_plate}, "
            f"dest={self.destination_id}, seats={self.seats_used}/{self.total_seats})>"
        )


class DayPassAuthorization(Base, TimestampMixin):
    __tablename__ = "day_passes"

    id = Column(String(36), primary_key=True, default=new_id)
    vehicle_id = Column(String(36), ForeignKey("vehicles.id"), nullable=False, index=True)
    license_plate = Column(String(20), nullable=False)
    pass_date = Column(Date, nullable=False, index=True)
    price = Column(Numeric(10, 3), nullable=False)
    valid_from = Column(DateTime(timezone=True), nullable=False)
    valid_until = Column(DateTime(timezone=True), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    is_expired = Column(Boolean, nullable=False, default=False)
    created_by = Column(String(36), nullable=True)

    __table_args__ = (
        # One pass per vehicle per station-local day; a violated insert means
        # another request already sold it
        UniqueConstraint("vehicle_id", "pass_date", name="uq_day_pass_vehicle_date"),
    )

    def __repr__(self) -> str:
        return f"<DayPassAuthorization(plate={self.license_plate}, date={self.pass_date})>"
