"""
Client side of coupon redemption.

The backend decides whether a coupon is valid, expired, already used or
not applicable to the company. This module only normalizes the code,
checks what comes back and turns refusals into ``CouponRejected``.
"""

import logging
from decimal import Decimal
from typing import Any

from masdeporte.errors import (
    ApiError,
    AuthenticationExpired,
    CouponRejected,
    NetworkError,
    ServerError,
    ValidationError,
)
from masdeporte.http.client import SessionAwareClient
from masdeporte.schemas.booking_schema import CouponApplication
from masdeporte.utils import amount_to_json, normalize_coupon_code

logger = logging.getLogger(__name__)

APPLY_COUPON_PATH = "/api/coupons/apply-and-use"

COUPON_REQUIRED_MESSAGE = "Por favor ingresa un código de cupón"
COUPON_FAILED_MESSAGE = "Error aplicando cupón"
INVALID_COUPON_DATA_MESSAGE = "Datos del cupón inválidos"


async def apply_coupon(
    client: SessionAwareClient,
    code: str,
    company_id: int,
    service_price: Decimal,
    user_email: str,
) -> CouponApplication:
    """
    Redeem a coupon against a service price.

    Returns:
        The accepted coupon with its discount clamped to ``[0, service_price]``.

    Raises:
        ValidationError: If the code is blank.
        CouponRejected: If the backend refuses the coupon.
        NetworkError, ServerError, AuthenticationExpired: Propagated unchanged.
    """
    normalized = normalize_coupon_code(code or "")
    if not normalized:
        raise ValidationError(COUPON_REQUIRED_MESSAGE)

    price = Decimal(str(service_price))
    payload = {
        "couponCode": normalized,
        "companyId": company_id,
        "originalAmount": amount_to_json(price),
        "userEmail": user_email,
    }

    try:
        body = await client.post(APPLY_COUPON_PATH, json=payload)
    except (NetworkError, ServerError, AuthenticationExpired):
        raise
    except ApiError as exc:
        logger.info("Coupon %s rejected: %s", normalized, exc.message)
        raise CouponRejected(exc.message) from exc

    return _parse_application(body, normalized, price)


def _parse_application(body: Any, code: str, price: Decimal) -> CouponApplication:
    if not isinstance(body, dict) or not body.get("success"):
        message = body.get("message") if isinstance(body, dict) else None
        raise CouponRejected(message or COUPON_FAILED_MESSAGE)

    data = body.get("data")
    if not isinstance(data, dict) or data.get("discountAmount") is None:
        raise CouponRejected(INVALID_COUPON_DATA_MESSAGE)

    try:
        discount = Decimal(str(data["discountAmount"]))
    except ArithmeticError:
        raise CouponRejected(INVALID_COUPON_DATA_MESSAGE) from None
    if not discount.is_finite() or discount < 0:
        raise CouponRejected(INVALID_COUPON_DATA_MESSAGE)

    coupon = data.get("coupon")
    coupon_code = (coupon.get("code") if isinstance(coupon, dict) else None) or code
    applied = CouponApplication(code=str(coupon_code), discount_amount=min(discount, price))
    logger.info("Coupon %s applied, discount %s", applied.code, applied.discount_amount)
    return applied
