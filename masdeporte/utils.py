"""Shared utilities used across the booking client."""

from decimal import Decimal
from typing import Union

SLOT_TIME_LENGTH = 5


def normalize_slot_time(value: str) -> str:
    """Trim a backend slot time down to ``HH:MM``.

    Examples:
        >>> normalize_slot_time("09:30:00")
        '09:30'
        >>> normalize_slot_time("18:00")
        '18:00'
    """
    value = value.strip()
    return value[:SLOT_TIME_LENGTH] if len(value) > SLOT_TIME_LENGTH else value


def normalize_coupon_code(value: str) -> str:
    """Coupon codes are matched case-insensitively by the backend in uppercase."""
    return value.strip().upper()


def normalize_path(path: str) -> str:
    """Ensure an API path starts with a single slash.

    Examples:
        >>> normalize_path("users/auth/register")
        '/users/auth/register'
    """
    return "/" + path.lstrip("/")


def amount_to_json(value: Decimal) -> Union[int, float]:
    """Render a Decimal amount as a JSON number, integral amounts as ints."""
    if value == value.to_integral_value():
        return int(value)
    return float(value)
