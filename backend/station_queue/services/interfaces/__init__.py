"""
Service interfaces for dependency inversion.
External collaborators (printer, staff directory, fee policy) are injected
into the queue engine through these.
"""

from .printer import TicketKind, TicketPrinter
from .pricing import FeePolicy
from .staff_directory import StaffDirectory

__all__ = ['TicketKind', 'TicketPrinter', 'FeePolicy', 'StaffDirectory']
