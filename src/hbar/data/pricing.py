"""Conversion of network exchange rates into USD unit prices."""

from decimal import ROUND_DOWN, Decimal, InvalidOperation

from hbar.data.models import PricePoint, Rate
from hbar.exceptions import InvalidRateError

PRICE_QUANTUM = Decimal("0.00000001")  # 8 fractional digits


def compute_price(cent_equivalent: int, hbar_equivalent: int) -> Decimal:
    """Return the USD price of one hbar for a cent/hbar rate pair.

    The result is truncated, not rounded, to 8 fractional digits so that
    prices already stored in the dataset are reproduced exactly.

    Raises:
        InvalidRateError: If hbar_equivalent is zero or either value is not numeric.
    """
    try:
        cents = Decimal(cent_equivalent)
        hbars = Decimal(hbar_equivalent)
    except (InvalidOperation, TypeError, ValueError) as e:
        raise InvalidRateError(
            f"non-numeric rate {cent_equivalent!r}/{hbar_equivalent!r}"
        ) from e

    if hbars == 0:
        raise InvalidRateError(f"zero hbar_equivalent for {cent_equivalent} cents")

    return (cents / hbars / 100).quantize(PRICE_QUANTUM, rounding=ROUND_DOWN)


def price_point_from_rate(rate: Rate, step: int) -> PricePoint:
    """Build the PricePoint for the interval a rate covers."""
    return PricePoint(
        timestamp=rate.interval_start(step),
        price=compute_price(rate.cent_equivalent, rate.hbar_equivalent),
        cent_equivalent=rate.cent_equivalent,
        hbar_equivalent=rate.hbar_equivalent,
    )
