"""
Queue entry: a vehicle's single slot in a destination's waiting line.

Key design decisions:
- Unique vehicle_id: a vehicle holds at most one entry station-wide
- queue_position is dense 1..N per destination; position 1 boards first.
  Unique per destination on PostgreSQL, checked at commit (DEFERRED) because
  gap closing and reordering shift positions through transient duplicates;
  SQLite cannot defer a unique check, so the constraint is PostgreSQL-only
- status is derived from seat counts (see services.lifecycle) and mirrored
  here so the UI can filter without arithmetic
- CHECK constraints are the last line of defence for seat conservation
"""

from enum import Enum

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Index, Integer, Numeric, String, UniqueConstraint

from station_queue.db.base import Base, TimestampMixin, new_id, utcnow


class QueueStatus(str, Enum):
    WAITING = "WAITING"
    LOADING = "LOADING"
    READY = "READY"


class QueueEntry(Base, TimestampMixin):
    __tablename__ = "queue_entries"

    id = Column(String(36), primary_key=True, default=new_id)
    vehicle_id = Column(String(36), ForeignKey("vehicles.id"), nullable=False, unique=True)
    license_plate = Column(String(20), nullable=False)
    destination_id = Column(String(100), nullable=False)
    destination_name = Column(String(255), nullable=False)
    queue_position = Column(Integer, nullable=False)
    status = Column(String(20), nullable=False, default=QueueStatus.WAITING.value)
    available_seats = Column(Integer, nullable=False)
    total_seats = Column(Integer, nullable=False)
    base_price = Column(Numeric(10, 3), nullable=False)
    entered_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (
        CheckConstraint("available_seats >= 0", name="check_queue_available_non_negative"),
        CheckConstraint("available_seats <= total_seats", name="check_queue_available_lte_total"),
        CheckConstraint("total_seats > 0", name="check_queue_total_positive"),
        CheckConstraint("queue_position > 0", name="check_queue_position_positive"),
        CheckConstraint("status IN ('WAITING', 'LOADING', 'READY')", name="check_queue_status"),
        UniqueConstraint(
            "destination_id",
            "queue_position",
            name="uq_queue_destination_position",
            deferrable=True,
            initially="DEFERRED",
        ).ddl_if(dialect="postgresql"),
        # Every booking and reorder reads a destination in position order
        Index("ix_queue_entries_destination_position", "destination_id", "queue_position"),
    )

    @property
    def booked_seats(self) -> int:
        return self.total_seats - self.available_seats

    def __repr__(self) -> str:
        return (
            f"<QueueEntry(id={self.id}, plate={self.license_plate}, dest={self.destination_id}, "
            f"pos={self.queue_position}, {self.status} {self.available_seats}/{self.total_seats})>"
        )
