"""
Payment callback resolution.

The payment provider redirects back to ``<scheme>://payment?...`` with the
outcome under one of several parameter names. Each logical field is
resolved with a fixed precedence:

    status:     status -> collection_status -> payment_status
    payment id: payment_id -> collection_id

The order follows what the provider sends in practice; confirm it against
current provider documentation before using it for reconciliation.
"""

import logging
from typing import Mapping, Optional
from urllib.parse import parse_qsl, urlsplit

from masdeporte.schemas.booking_schema import PaymentCallback

logger = logging.getLogger(__name__)

STATUS_ALIASES = ("status", "collection_status", "payment_status")
PAYMENT_ID_ALIASES = ("payment_id", "collection_id")
SUCCESS_STATUSES = frozenset({"success", "approved"})


def _first_present(params: Mapping[str, Optional[str]], names: tuple[str, ...]) -> Optional[str]:
    for name in names:
        value = params.get(name)
        if value not in (None, "", "null"):
            return str(value)
    return None


def resolve_payment_callback(params: Mapping[str, Optional[str]]) -> PaymentCallback:
    """Collapse provider parameter aliases into one canonical callback."""
    callback = PaymentCallback(
        final_status=_first_present(params, STATUS_ALIASES),
        final_payment_id=_first_present(params, PAYMENT_ID_ALIASES),
        preference_id=_first_present(params, ("preference_id",)),
        merchant_order_id=_first_present(params, ("merchant_order_id",)),
        external_reference=_first_present(params, ("external_reference",)),
        payment_type=_first_present(params, ("payment_type",)),
    )
    logger.debug(
        "Payment callback resolved: status=%s payment_id=%s",
        callback.final_status, callback.final_payment_id,
    )
    return callback


def parse_payment_callback_url(url: str) -> PaymentCallback:
    """Resolve the callback carried in a deep-link URL's query string."""
    query = urlsplit(url).query
    # first occurrence wins when a parameter is repeated
    params: dict[str, str] = {}
    for key, value in parse_qsl(query, keep_blank_values=True):
        params.setdefault(key, value)
    return resolve_payment_callback(params)


def is_payment_successful(status: Optional[str]) -> bool:
    return (status or "").lower() in SUCCESS_STATUSES
