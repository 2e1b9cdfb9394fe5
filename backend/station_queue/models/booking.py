"""
Booking: seats sold against one queue entry.

Key design decisions:
- queue_entry_id is not a foreign key: bookings are trip records and must
  survive the queue row being deleted when the vehicle departs
- vehicle/destination are copied onto the row for the same reason
- Emergency removal flips payment_status to CANCELLED instead of deleting,
  so refunds stay traceable; plain cancellation deletes the row
"""

from enum import Enum

from sqlalchemy import CheckConstraint, Column, DateTime, Index, Integer, Numeric, String

from station_queue.db.base import Base, TimestampMixin, new_id


class PaymentStatus(str, Enum):
    PAID = "PAID"
    CANCELLED = "CANCELLED"


class Booking(Base, TimestampMixin):
    __tablename__ = "bookings"

    id = Column(String(36), primary_key=True, default=new_id)
    queue_entry_id = Column(String(36), nullable=False, index=True)
    vehicle_id = Column(String(36), nullable=False, index=True)
    license_plate = Column(String(20), nullable=False)
    destination_id = Column(String(100), nullable=False)
    destination_name = Column(String(255), nullable=False)
    seats_booked = Column(Integer, nullable=False)
    base_amount = Column(Numeric(10, 3), nullable=False)
    service_fee_amount = Column(Numeric(10, 3), nullable=False)
    total_amount = Column(Numeric(10, 3), nullable=False)
    verification_code = Column(String(16), nullable=False, unique=True, index=True)
    payment_status = Column(String(20), nullable=False, default=PaymentStatus.PAID.value)
    payment_method = Column(String(20), nullable=False, default="CASH")
    created_by = Column(String(36), nullable=True, index=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_by = Column(String(36), nullable=True)

    __table_args__ = (
        CheckConstraint("seats_booked > 0", name="check_booking_seats_positive"),
        CheckConstraint("payment_status IN ('PAID', 'CANCELLED')", name="check_booking_payment_status"),
        # "Most recent booking for this destination" lookups
        Index("ix_bookings_destination_created", "destination_id", "created_at"),
    )

    @property
    def is_live(self) -> bool:
        return self.payment_status == PaymentStatus.PAID.value

    def __repr__(self) -> str:
        return (
            f"<Booking(id={self.id}, entry={self.queue_entry_id}, seats={self.seats_booked}, "
            f"code={self.verification_code}, {self.payment_status})>"
        )
