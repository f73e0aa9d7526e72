"""Deposit and remaining-balance computation for a booking."""

from decimal import (
    ROUND_HALF_UP,
    Context,
    Decimal,
    DecimalException,
    Inexact,
    InvalidOperation,
    Overflow,
)
from typing import Union

from masdeporte.errors import InvalidAmount
from masdeporte.schemas.booking_schema import PricingBreakdown

Amount = Union[Decimal, int, float, str]

# Share of the discounted price collected upfront to hold a reservation
DEPOSIT_FRACTION = Decimal("0.25")
CENT = Decimal("0.01")

# Everything before the final rounding to cents must be exact
_EXACT = Context(prec=28, traps=[InvalidOperation, Inexact, Overflow])


def _to_decimal(value: Amount, name: str) -> Decimal:
    if isinstance(value, float):
        # Go through str so 0.1 stays 0.1 instead of its binary expansion
        value = str(value)
    try:
        return Decimal(value)
    except (ArithmeticError, ValueError, TypeError):
        raise InvalidAmount(f"{name} is not a valid amount: {value!r}") from None


def compute_pricing_breakdown(
    service_price: Amount,
    discount_amount: Amount = 0,
    deposit_fraction: Decimal = DEPOSIT_FRACTION,
) -> PricingBreakdown:
    """
    Split a service price into deposit and remaining balance.

    The discount is subtracted first and the result never goes below zero.
    The deposit is rounded to cents and the remaining amount is the exact
    difference, so ``deposit + remaining == discounted`` always holds.

    Raises:
        InvalidAmount: If the price is not positive, the discount is negative,
            or the amounts are too large to compute exactly to the cent.
    """
    price = _to_decimal(service_price, "service_price")
    discount = _to_decimal(discount_amount, "discount_amount")

    if not price.is_finite() or price <= 0:
        raise InvalidAmount(f"service_price must be > 0, got {price}")
    if not discount.is_finite() or discount < 0:
        raise InvalidAmount(f"discount_amount must be >= 0, got {discount}")

    try:
        discounted = Decimal(0) if discount >= price else _EXACT.subtract(price, discount)
        share = _EXACT.multiply(discounted, deposit_fraction)
        deposit = share.quantize(CENT, rounding=ROUND_HALF_UP)
        remaining = _EXACT.subtract(discounted, deposit)
    except DecimalException:
        raise InvalidAmount(
            f"service_price {price} is too large to split into cents"
        ) from None

    return PricingBreakdown(
        original_amount=price,
        discount_amount=discount,
        discounted_amount=discounted,
        deposit_amount=deposit,
        remaining_amount=remaining,
    )
