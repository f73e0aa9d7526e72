"""
Booking window checks for the date picker.

A company accepts reservations between ``min_advance_days`` and
``max_advance_days`` whole days ahead of today. Everything here is a pure
function of its inputs so the picker can be rebuilt at any time.

Usage:
    policy = BookingPolicy(min_advance_days=1, max_advance_days=14)
    result = validate_date(date(2026, 3, 20), policy, today=date(2026, 3, 18))
    if not result.valid:
        show(result.message)
"""

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Optional, Union

from masdeporte.errors import ValidationError
from masdeporte.schemas.catalog_schema import BookingPolicy

DateLike = Union[date, datetime]


class DateRejection(str, Enum):
    """Why a candidate date falls outside the booking window."""

    TOO_SOON = "too_soon"
    TOO_FAR = "too_far"


@dataclass(frozen=True)
class DateValidation:
    """Outcome of validate_date. ``reason`` is set only when invalid."""

    valid: bool
    reason: Optional[DateRejection] = None
    message: Optional[str] = None


def _as_calendar_date(value: DateLike) -> date:
    # datetime is a subclass of date, so check it first
    if isinstance(value, datetime):
        return value.date()
    return value


def days_between(start: DateLike, end: DateLike) -> int:
    """Whole calendar days from ``start`` to ``end``, time of day ignored.

    Both values are truncated to midnight before subtracting, so a DST
    shift between them can never turn 3 days into 2.96 or 3.04.
    """
    return (_as_calendar_date(end) - _as_calendar_date(start)).days


def validate_date(candidate: DateLike, policy: BookingPolicy, today: DateLike) -> DateValidation:
    """Check a candidate reservation date against a company's booking window."""
    diff_days = days_between(today, candidate)

    if diff_days < policy.min_advance_days:
        return DateValidation(
            valid=False,
            reason=DateRejection.TOO_SOON,
            message=(
                f"Debes reservar con al menos {policy.min_advance_days} "
                "día(s) de anticipación"
            ),
        )

    if diff_days > policy.max_advance_days:
        return DateValidation(
            valid=False,
            reason=DateRejection.TOO_FAR,
            message=(
                f"No puedes reservar con más de {policy.max_advance_days} "
                "días de anticipación"
            ),
        )

    return DateValidation(valid=True)


def enumerate_selectable_dates(
    today: DateLike, min_advance_days: int, max_advance_days: int
) -> list[date]:
    """List every selectable date, ``today + min`` through ``today + max`` inclusive."""
    if min_advance_days < 0:
        raise ValidationError(f"min_advance_days must be >= 0, got {min_advance_days}")
    if max_advance_days < min_advance_days:
        raise ValidationError(
            f"max_advance_days ({max_advance_days}) must be >= "
            f"min_advance_days ({min_advance_days})"
        )

    base = _as_calendar_date(today)
    return [
        base + timedelta(days=offset)
        for offset in range(min_advance_days, max_advance_days + 1)
    ]


def selectable_dates_for(policy: BookingPolicy, today: DateLike) -> list[date]:
    """Shortcut for enumerate_selectable_dates using a company's policy."""
    return enumerate_selectable_dates(today, policy.min_advance_days, policy.max_advance_days)


def group_dates_by_month(dates: list[date]) -> dict[tuple[int, int], list[date]]:
    """Group dates under ``(year, month)`` keys, preserving input order."""
    groups: dict[tuple[int, int], list[date]] = {}
    for day in dates:
        groups.setdefault((day.year, day.month), []).append(day)
    return groups
