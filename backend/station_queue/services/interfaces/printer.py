"""
Ticket printer interface.
The printing subsystem is external; the queue only hands it opaque payloads.
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Optional


class TicketKind(str, Enum):
    BOOKING = "BOOKING"
    ENTRY = "ENTRY"
    DAY_PASS = "DAY_PASS"
    EXIT_PASS = "EXIT_PASS"


class TicketPrinter(ABC):
    """
    Interface for ticket printers.

    Implementations:
    - LoggingTicketPrinter: writes tickets to the log (no hardware)
    - TcpTicketPrinter: raw ESC/POS over TCP to a thermal printer
    """

    @abstractmethod
    async def print_ticket(
        self,
        kind: TicketKind,
        payload: dict[str, Any],
        staff_name: Optional[str] = None,
    ) -> str:
        """
        Print one ticket.

        Returns:
            A short success string from the device
        Raises:
            PrinterError on any transport or device failure
        """
        pass
