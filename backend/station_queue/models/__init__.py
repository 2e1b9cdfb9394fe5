from station_queue.models.vehicle import Vehicle, VehicleAuthorizedStation
from station_queue.models.route import Route
from station_queue.models.staff import Staff
from station_queue.models.queue_entry import QueueEntry, QueueStatus
from station_queue.models.booking import Booking, PaymentStatus
from station_queue.models.passes import ExitAuthorization, DayPassAuthorization

__all__ = [
    "Vehicle", "VehicleAuthorizedStation", "Route", "Staff",
    "QueueEntry", "QueueStatus", "Booking", "PaymentStatus",
    "ExitAuthorization", "DayPassAuthorization",
]
