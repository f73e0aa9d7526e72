"""Booking, pricing and payment data models."""

from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class CouponApplication(BaseModel):
    """A coupon accepted by the backend for one booking flow."""

    model_config = ConfigDict(frozen=True)

    code: str
    discount_amount: Decimal = Field(ge=0)


class PricingBreakdown(BaseModel):
    """Derived amounts for a booking. Never persisted."""

    model_config = ConfigDict(frozen=True)

    original_amount: Decimal
    discount_amount: Decimal
    discounted_amount: Decimal
    deposit_amount: Decimal
    remaining_amount: Decimal


class AvailabilityResponse(BaseModel):
    """Free start times for a service on one date, normalized to HH:MM."""

    service_id: int
    date: str
    available_slots: list[str] = Field(default_factory=list)


class PaymentCallback(BaseModel):
    """Canonical view of the parameters the payment provider sends back."""

    final_status: Optional[str] = None
    final_payment_id: Optional[str] = None
    preference_id: Optional[str] = None
    merchant_order_id: Optional[str] = None
    external_reference: Optional[str] = None
    payment_type: Optional[str] = None
