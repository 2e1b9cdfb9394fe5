"""
Error taxonomy for queue and seat operations.

Every error carries a human-readable message (in the operators' language),
a machine-readable ``kind`` and the HTTP status the API layer maps it to.
Raising any of these inside an engine transaction rolls the transaction back.
"""


class QueueError(Exception):
    kind = "queue_error"
    status_code = 400

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class NotFound(QueueError):
    kind = "not_found"
    status_code = 404


class VehicleNotFound(NotFound):
    kind = "vehicle_not_found"

    def __init__(self, vehicle_ref: str) -> None:
        super().__init__(f"Véhicule introuvable: {vehicle_ref}")


class QueueEntryNotFound(NotFound):
    kind = "queue_entry_not_found"


class BookingNotFound(NotFound):
    kind = "booking_not_found"


class NoTargetAvailable(NotFound):
    kind = "no_target_available"


class InvalidState(QueueError):
    kind = "invalid_state"
    status_code = 409


class VehicleInactive(InvalidState):
    kind = "vehicle_inactive"

    def __init__(self, license_plate: str) -> None:
        super().__init__(f"Le véhicule {license_plate} est inactif ou banni")


class DestinationNotAuthorized(InvalidState):
    kind = "destination_not_authorized"

    def __init__(self, license_plate: str, destination_id: str) -> None:
        super().__init__(
            f"Le véhicule {license_plate} n'est pas autorisé pour la destination {destination_id}"
        )


class InsufficientCapacity(QueueError):
    kind = "insufficient_capacity"
    status_code = 409


class InsufficientTargetCapacity(InsufficientCapacity):
    kind = "insufficient_target_capacity"


class AccessDenied(QueueError):
    kind = "access_denied"
    status_code = 403


class InvalidRequest(QueueError):
    kind = "invalid_request"
    status_code = 400


class StorageFailure(QueueError):
    """Transaction or connectivity failure; the driver message is kept verbatim."""

    kind = "storage_failure"
    status_code = 503


class PrinterError(Exception):
    """Raised by printer clients; only ever seen by the dispatcher worker."""
