"""
Infrastructure layer - external system integrations.
Keeps business logic clean from implementation details.
"""

from .printer_client import LoggingTicketPrinter, TcpTicketPrinter, get_printer

__all__ = ['LoggingTicketPrinter', 'TcpTicketPrinter', 'get_printer']
