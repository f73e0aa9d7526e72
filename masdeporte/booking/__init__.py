from masdeporte.booking.eligibility import (
    DateRejection,
    DateValidation,
    enumerate_selectable_dates,
    group_dates_by_month,
    validate_date,
)
from masdeporte.booking.pricing import DEPOSIT_FRACTION, compute_pricing_breakdown

__all__ = [
    "validate_date",
    "enumerate_selectable_dates",
    "group_dates_by_month",
    "DateValidation",
    "DateRejection",
    "compute_pricing_breakdown",
    "DEPOSIT_FRACTION",
]
