"""Date-range helpers shared by the engine services."""

from datetime import date, timedelta
from decimal import ROUND_HALF_UP, Decimal

from pms.config import settings
from pms.errors import InvalidInput, InvalidRange


def stay_nights(check_in: date, check_out: date) -> list[date]:
    """Nights consumed by a stay: check-in inclusive, check-out exclusive."""
    if check_out <= check_in:
        raise InvalidInput(f"check_out ({check_out}) must be after check_in ({check_in})")
    return [check_in + timedelta(days=i) for i in range((check_out - check_in).days)]


def inclusive_dates(start: date, end: date, label: str = "range") -> list[date]:
    """Every date of an inclusive [start, end] range."""
    if end < start:
        raise InvalidRange(start, end, label)
    return [start + timedelta(days=i) for i in range((end - start).days + 1)]


def round_money(amount: Decimal) -> Decimal:
    """Round half-up to the currency's minor unit."""
    quantum = Decimal(1).scaleb(-settings.currency_minor_units)
    return amount.quantize(quantum, rounding=ROUND_HALF_UP)


def to_decimal(value) -> Decimal:
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)
