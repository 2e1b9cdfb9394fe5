"""Initial schema: vehicles, routes, staff, queue entries, bookings, passes.

Revision ID: 001
Revises: None
Create Date: 2026-10-19
"""
from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def upgrade() -> None:
    op.create_table(
        "vehicles",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("license_plate", sa.String(20), nullable=False),
        sa.Column("capacity", sa.Integer(), nullable=False),
        sa.Column("phone_number", sa.String(30), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("is_available", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("is_banned", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("default_destination_id", sa.String(100), nullable=True),
        sa.Column("default_destination_name", sa.String(255), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("capacity > 0", name="check_vehicle_capacity_positive"),
    )
    op.create_index("ix_vehicles_license_plate", "vehicles", ["license_plate"], unique=True)

    op.create_table(
        "vehicle_authorized_stations",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("vehicle_id", sa.String(36), sa.ForeignKey("vehicles.id"), nullable=False),
        sa.Column("station_id", sa.String(100), nullable=False),
        sa.Column("station_name", sa.String(255), nullable=False),
        sa.Column("base_price", sa.Numeric(10, 3), nullable=True),
        sa.Column("is_default", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("priority", sa.Integer(), nullable=False, server_default=sa.text("1")),
        *_timestamps(),
        sa.UniqueConstraint("vehicle_id", "station_id", name="uq_vehicle_station_authorization"),
    )
    op.create_index("ix_vehicle_authorized_stations_vehicle_id", "vehicle_authorized_stations", ["vehicle_id"])

    op.create_table(
        "routes",
        sa.Column("station_id", sa.String(100), primary_key=True),
        sa.Column("station_name", sa.String(255), nullable=False),
        sa.Column("base_price", sa.Numeric(10, 3), nullable=False),
        sa.Column("governorate", sa.String(100), nullable=True),
        sa.Column("delegation", sa.String(100), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        *_timestamps(),
    )

    op.create_table(
        "staff",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("first_name", sa.String(100), nullable=False),
        sa.Column("last_name", sa.String(100), nullable=False),
        sa.Column("role", sa.String(30), nullable=False, server_default=sa.text("'WORKER'")),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        *_timestamps(),
    )

    op.create_table(
        "queue_entries",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("vehicle_id", sa.String(36), sa.ForeignKey("vehicles.id"), nullable=False, unique=True),
        sa.Column("license_plate", sa.String(20), nullable=False),
        sa.Column("destination_id", sa.String(100), nullable=False),
        sa.Column("destination_name", sa.String(255), nullable=False),
        sa.Column("queue_position", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'WAITING'")),
        sa.Column("available_seats", sa.Integer(), nullable=False),
        sa.Column("total_seats", sa.Integer(), nullable=False),
        sa.Column("base_price", sa.Numeric(10, 3), nullable=False),
        sa.Column("entered_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        *_timestamps(),
        sa.CheckConstraint("available_seats >= 0", name="check_queue_available_non_negative"),
        sa.CheckConstraint("available_seats <= total_seats", name="check_queue_available_lte_total"),
        sa.CheckConstraint("total_seats > 0", name="check_queue_total_positive"),
        sa.CheckConstraint("queue_position > 0", name="check_queue_position_positive"),
        sa.CheckConstraint("status IN ('WAITING', 'LOADING', 'READY')", name="check_queue_status"),
        # Checked at commit: gap closing and reordering shift positions row by row
        sa.UniqueConstraint(
            "destination_id",
            "queue_position",
            name="uq_queue_destination_position",
            deferrable=True,
            initially="DEFERRED",
        ),
    )
    # Allocation and gap closing both walk one destination in position order
    op.create_index(
        "ix_queue_entries_destination_position", "queue_entries", ["destination_id", "queue_position"]
    )

    # queue_entry_id is a plain column: bookings outlive the queue row they were sold on
    op.create_table(
        "bookings",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("queue_entry_id", sa.String(36), nullable=False),
        sa.Column("vehicle_id", sa.String(36), nullable=False),
        sa.Column("license_plate", sa.String(20), nullable=False),
        sa.Column("destination_id", sa.String(100), nullable=False),
        sa.Column("destination_name", sa.String(255), nullable=False),
        sa.Column("seats_booked", sa.Integer(), nullable=False),
        sa.Column("base_amount", sa.Numeric(10, 3), nullable=False),
        sa.Column("service_fee_amount", sa.Numeric(10, 3), nullable=False),
        sa.Column("total_amount", sa.Numeric(10, 3), nullable=False),
        sa.Column("verification_code", sa.String(16), nullable=False),
        sa.Column("payment_status", sa.String(20), nullable=False, server_default=sa.text("'PAID'")),
        sa.Column("payment_method", sa.String(20), nullable=False, server_default=sa.text("'CASH'")),
        sa.Column("created_by", sa.String(36), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_by", sa.String(36), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("seats_booked > 0", name="check_booking_seats_positive"),
        sa.CheckConstraint("payment_status IN ('PAID', 'CANCELLED')", name="check_booking_payment_status"),
    )
    op.create_index("ix_bookings_queue_entry_id", "bookings", ["queue_entry_id"])
    op.create_index("ix_bookings_vehicle_id", "bookings", ["vehicle_id"])
    op.create_index("ix_bookings_verification_code", "bookings", ["verification_code"], unique=True)
    op.create_index("ix_bookings_created_by", "bookings", ["created_by"])
    # CancelOneSeat looks up the latest booking for a destination
    op.create_index("ix_bookings_destination_created", "bookings", ["destination_id", "created_at"])

    op.create_table(
        "exit_passes",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("queue_entry_id", sa.String(36), nullable=False, unique=True),
        sa.Column("vehicle_id", sa.String(36), sa.ForeignKey("vehicles.id"), nullable=False),
        sa.Column("license_plate", sa.String(20), nullable=False),
        sa.Column("destination_id", sa.String(100), nullable=False),
        sa.Column("destination_name", sa.String(255), nullable=False),
        sa.Column("previous_exit_id", sa.String(36), nullable=True),
        sa.Column("previous_license_plate", sa.String(20), nullable=True),
        sa.Column("seats_used", sa.Integer(), nullable=False),
        sa.Column("total_seats", sa.Integer(), nullable=False),
        sa.Column("base_price", sa.Numeric(10, 3), nullable=False),
        sa.Column("total_price", sa.Numeric(10, 3), nullable=False),
        sa.Column("exit_date", sa.Date(), nullable=False),
        sa.Column("current_exit_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_by", sa.String(36), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_exit_passes_vehicle_id", "exit_passes", ["vehicle_id"])
    op.create_index("ix_exit_passes_destination_date", "exit_passes", ["destination_id", "exit_date"])

    op.create_table(
        "day_passes",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("vehicle_id", sa.String(36), sa.ForeignKey("vehicles.id"), nullable=False),
        sa.Column("license_plate", sa.String(20), nullable=False),
        sa.Column("pass_date", sa.Date(), nullable=False),
        sa.Column("price", sa.Numeric(10, 3), nullable=False),
        sa.Column("valid_from", sa.DateTime(timezone=True), nullable=False),
        sa.Column("valid_until", sa.DateTime(timezone=True), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("is_expired", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("created_by", sa.String(36), nullable=True),
        *_timestamps(),
        # Two concurrent entry decisions for one vehicle: the second insert fails here
        sa.UniqueConstraint("vehicle_id", "pass_date", name="uq_day_pass_vehicle_date"),
    )
    op.create_index("ix_day_passes_vehicle_id", "day_passes", ["vehicle_id"])
    op.create_index("ix_day_passes_pass_date", "day_passes", ["pass_date"])


def downgrade() -> None:
    op.drop_table("day_passes")
    op.drop_table("exit_passes")
    op.drop_table("bookings")
    op.drop_table("queue_entries")
    op.drop_table("staff")
    op.drop_table("routes")
    op.drop_table("vehicle_authorized_stations")
    op.drop_table("vehicles")
