"""
Thermal ticket printer clients.

Tickets are rendered as plain text and wrapped in a minimal ESC/POS frame
(init, text, feed, partial cut). Network printers listen on a raw TCP port,
usually 9100, and never answer, so a completed write is the success signal.
"""

import asyncio
from typing import Any, Optional

from station_queue.core.config import Settings
from station_queue.core.exceptions import PrinterError
from station_queue.core.logging import get_logger
from station_queue.services.interfaces.printer import TicketKind, TicketPrinter

logger = get_logger(__name__)

ESC_INIT = b"\x1b\x40"
FEED_AND_CUT = b"\n\n\n\x1d\x56\x01"
LINE_WIDTH = 32

TITLES = {
    TicketKind.BOOKING: "TICKET DE RESERVATION",
    TicketKind.ENTRY: "TICKET D'ENTREE",
    TicketKind.DAY_PASS: "PASS JOURNALIER",
    TicketKind.EXIT_PASS: "AUTORISATION DE SORTIE",
}

# Payload keys printed per ticket kind, in order, with their labels
FIELDS = {
    TicketKind.BOOKING: [
        ("verification_code", "Code"),
        ("destination_name", "Destination"),
        ("license_plate", "Vehicule"),
        ("seats_booked", "Places"),
        ("base_amount", "Montant"),
        ("service_fee_amount", "Frais de service"),
        ("total_amount", "Total"),
    ],
    TicketKind.ENTRY: [
        ("license_plate", "Vehicule"),
        ("destination_name", "Destination"),
        ("queue_position", "Position"),
        ("fee", "Frais"),
    ],
    TicketKind.DAY_PASS: [
        ("license_plate", "Vehicule"),
        ("destination_name", "Destination"),
        ("pass_date", "Date"),
        ("price", "Prix"),
    ],
    TicketKind.EXIT_PASS: [
        ("license_plate", "Vehicule"),
        ("destination_name", "Destination"),
        ("seats_used", "Places occupees"),
        ("total_price", "Total"),
        ("previous_license_plate", "Vehicule precedent"),
        ("current_exit_time", "Heure de sortie"),
    ],
}


def render_ticket(
    station_name: str,
    kind: TicketKind,
    payload: dict[str, Any],
    staff_name: Optional[str] = None,
) -> str:
    lines = [
        station_name.upper().center(LINE_WIDTH),
        TITLES[kind].center(LINE_WIDTH),
        "-" * LINE_WIDTH,
    ]
    for key, label in FIELDS[kind]:
        value = payload.get(key)
        if value is None:
            continue
        lines.append(f"{label}: {value}")
    if staff_name:
        lines.append("-" * LINE_WIDTH)
        lines.append(f"Agent: {staff_name}")
    return "\n".join(lines) + "\n"


class LoggingTicketPrinter(TicketPrinter):
    """Writes rendered tickets to the log. Used when no printer is configured."""

    def __init__(self, station_name: str):
        self.station_name = station_name

    async def print_ticket(self, kind, payload, staff_name=None) -> str:
        text = render_ticket(self.station_name, kind, payload, staff_name)
        logger.info("ticket_rendered", kind=kind.value, ticket=text)
        return "logged"


class TcpTicketPrinter(TicketPrinter):
    def __init__(self, station_name: str, host: str, port: int = 9100, timeout: float = 5.0):
        self.station_name = station_name
        self.host = host
        self.port = port
        self.timeout = timeout

    async def print_ticket(self, kind, payload, staff_name=None) -> str:
        text = render_ticket(self.station_name, kind, payload, staff_name)
        data = ESC_INIT + text.encode("cp858", errors="replace") + FEED_AND_CUT
        try:
            reader, writer = await asyncio.wait_for(
                asyncio.open_connection(self.host, self.port), timeout=self.timeout
            )
        except (OSError, asyncio.TimeoutError) as e:
            raise PrinterError(f"printer {self.host}:{self.port} unreachable: {e}") from e

        try:
            writer.write(data)
            await asyncio.wait_for(writer.drain(), timeout=self.timeout)
        except (OSError, asyncio.TimeoutError) as e:
            raise PrinterError(f"printer {self.host}:{self.port} write failed: {e}") from e
        finally:
            writer.close()
            try:
                await writer.wait_closed()
            except OSError:
                pass  # connection already torn down by the device

        logger.info("ticket_printed", kind=kind.value, printer=f"{self.host}:{self.port}", bytes=len(data))
        return f"printed {kind.value} on {self.host}:{self.port}"


def get_printer(settings: Settings) -> TicketPrinter:
    """Printer selected by configuration: TCP when PRINTER_HOST is set."""
    if settings.PRINTER_HOST:
        return TcpTicketPrinter(
            settings.STATION_NAME,
            settings.PRINTER_HOST,
            settings.PRINTER_PORT,
            settings.PRINTER_TIMEOUT,
        )
    return LoggingTicketPrinter(settings.STATION_NAME)
