"""
Fee policy backed by application settings.
"""

from decimal import Decimal

from station_queue.core.config import Settings
from station_queue.services.interfaces.pricing import FeePolicy

MONEY = Decimal("0.001")


def quantize_money(value: Decimal) -> Decimal:
    return Decimal(value).quantize(MONEY)


class SettingsFeePolicy(FeePolicy):
    """Fixed fees from SERVICE_FEE_PER_SEAT and DAY_PASS_FEE."""

    def __init__(self, settings: Settings):
        self._day_pass_fee = quantize_money(settings.DAY_PASS_FEE)
        self._service_fee = quantize_money(settings.SERVICE_FEE_PER_SEAT)

    def day_pass_fee(self) -> Decimal:
        return self._day_pass_fee

    def per_seat_service_fee(self) -> Decimal:
        return self._service_fee


def seat_amounts(base_price: Decimal, seats: int, service_fee_per_seat: Decimal) -> tuple[Decimal, Decimal, Decimal]:
    """Return (base, service fee, total) for ``seats`` seats."""
    base = quantize_money(Decimal(base_price) * seats)
    fee = quantize_money(service_fee_per_seat * seats)
    return base, fee, base + fee
