"""Selection state for one booking flow, from service choice to payment."""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import Any, Optional

from masdeporte.booking import coupons
from masdeporte.booking.eligibility import DateLike, DateValidation, validate_date
from masdeporte.booking.pricing import DEPOSIT_FRACTION, compute_pricing_breakdown
from masdeporte.config import settings
from masdeporte.errors import CouponRejected, ValidationError
from masdeporte.http.client import SessionAwareClient
from masdeporte.schemas.booking_schema import CouponApplication, PricingBreakdown
from masdeporte.schemas.catalog_schema import BookingPolicy, Service
from masdeporte.schemas.session_schema import UserProfile
from masdeporte.utils import amount_to_json, normalize_slot_time

logger = logging.getLogger(__name__)


@dataclass
class BookingDraft:
    """
    Everything the user has picked so far in one booking flow.

    Changing the service invalidates the date, time and coupon; changing
    the date invalidates the time. The applied coupon lives only as long
    as the draft and is dropped after a booking goes through.
    """
    company_id: int
    policy: BookingPolicy = field(default_factory=BookingPolicy)
    service: Optional[Service] = None
    selected_date: Optional[date] = None
    selected_time: Optional[str] = None
    notes: str = ""
    applied_coupon: Optional[CouponApplication] = None

    def select_service(self, service: Service) -> None:
        self.service = service
        self.selected_date = None
        self.selected_time = None
        self.applied_coupon = None

    def select_date(self, candidate: DateLike, today: DateLike) -> DateValidation:
        """Store the date if the company's booking window allows it."""
        result = validate_date(candidate, self.policy, today)
        if result.valid:
            self.selected_date = candidate.date() if isinstance(candidate, datetime) else candidate
            self.selected_time = None
        else:
            logger.debug("Date %s rejected: %s", candidate, result.reason)
        return result

    def select_time(self, slot: str) -> None:
        if self.selected_date is None:
            raise ValidationError("Selecciona una fecha antes de elegir un horario")
        self.selected_time = normalize_slot_time(slot)

    @property
    def pricing(self) -> PricingBreakdown:
        if self.service is None:
            raise ValidationError("Primero selecciona un servicio")
        discount = self.applied_coupon.discount_amount if self.applied_coupon else 0
        return compute_pricing_breakdown(self.service.price, discount)

    async def apply_coupon(
        self, client: SessionAwareClient, code: str, user_email: str
    ) -> CouponApplication:
        """Redeem a coupon for the selected service. A rejection leaves no coupon applied."""
        if self.service is None:
            raise ValidationError("Primero selecciona un servicio")
        try:
            self.applied_coupon = await coupons.apply_coupon(
                client, code, self.company_id, self.service.price, user_email
            )
        except CouponRejected:
            self.applied_coupon = None
            raise
        return self.applied_coupon

    def remove_coupon(self) -> None:
        self.applied_coupon = None

    def reset_after_booking(self) -> None:
        self.selected_date = None
        self.selected_time = None
        self.notes = ""
        self.applied_coupon = None

    def start_time(self) -> str:
        """Local start time in the ``YYYY-MM-DDTHH:MM:00`` form the backend expects."""
        if self.selected_date is None or self.selected_time is None:
            raise ValidationError("Primero selecciona una fecha y un horario")
        return f"{self.selected_date.isoformat()}T{self.selected_time}:00"

    def to_payment_preference(
        self, user: UserProfile, now: Optional[datetime] = None
    ) -> dict[str, Any]:
        """Build the payment preference payload for the deposit."""
        if self.service is None:
            raise ValidationError("Primero selecciona un servicio")
        start_time = self.start_time()
        now = now or datetime.now(timezone.utc)
        pricing = self.pricing
        scheme = settings.booking.deep_link_scheme
        deposit_percent = int(DEPOSIT_FRACTION * 100)

        return {
            "title": f"Seña - {self.service.name}",
            "description": (
                f"Seña del {deposit_percent}% para reserva de {self.service.name} - "
                f"{self.selected_date.isoformat()} {self.selected_time}"
            ),
            "amount": amount_to_json(pricing.deposit_amount),
            "quantity": 1,
            "currency": settings.booking.currency,
            "external_reference": f"appointment_{int(now.timestamp() * 1000)}",
            "serviceId": self.service.id,
            "companyId": self.company_id,
            "userEmail": user.email,
            "startTime": start_time,
            "notes": self.notes,
            "userId": user.user_id,
            "appliedCoupon": (
                {
                    "code": self.applied_coupon.code,
                    "discountAmount": amount_to_json(self.applied_coupon.discount_amount),
                }
                if self.applied_coupon
                else None
            ),
            "originalAmount": amount_to_json(pricing.original_amount),
            "totalAmountWithDiscount": amount_to_json(pricing.discounted_amount),
            "back_urls": {
                "success": f"{scheme}://payment?status=success",
                "failure": f"{scheme}://payment?status=failure",
                "pending": f"{scheme}://payment?status=pending",
            },
            "payment_methods": {
                "excluded_payment_methods": [],
                "excluded_payment_types": [],
                "installments": settings.booking.max_installments,
                "default_installments": 1,
            },
            "notification_url": settings.api.notification_url,
            "auto_return": "approved",
            "expires": True,
            "expiration_date_from": now.isoformat(),
            "expiration_date_to": (
                now + timedelta(hours=settings.booking.payment_expiration_hours)
            ).isoformat(),
            "payer": {
                "email": user.email,
                "name": user.name or "Usuario",
                "surname": user.surname or "MasDeporte",
            },
        }
