"""
Fee policy interface.
"""

from abc import ABC, abstractmethod
from decimal import Decimal


class FeePolicy(ABC):

    @abstractmethod
    def day_pass_fee(self) -> Decimal:
        """Fee charged once per vehicle per station-local day."""
        pass

    @abstractmethod
    def per_seat_service_fee(self) -> Decimal:
        """Fixed service fee added to every booked seat."""
        pass
