from station_queue.schemas.booking import (
    AvailableSeats,
    BookableDestination,
    BookByDestination,
    BookByVehicle,
    BookingResponse,
    BookingResult,
    CancellationResult,
    CancelOneSeat,
)
from station_queue.schemas.passes import (
    DayPassPrice,
    DayPassPurchase,
    DayPassResponse,
    DayPassStatusRequest,
    EmergencyRemovalResult,
    ExitPassResponse,
    TransferResult,
    TripEndResult,
)
from station_queue.schemas.queue import (
    MoveToFront,
    MoveToPosition,
    QueueEnter,
    QueueEnterResponse,
    QueueEntryResponse,
    QueueReorder,
    QueueSummary,
    TransferRequest,
)
from station_queue.schemas.reports import (
    AllVehiclesDailyReport,
    DestinationSummary,
    VehicleActivityEvent,
    VehicleDailyReport,
    VehicleReportLine,
)
from station_queue.schemas.vehicle import (
    AuthorizationCreate,
    AuthorizationResponse,
    VehicleCreate,
    VehicleResponse,
)
