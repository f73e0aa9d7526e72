"""Deposit payments through the backend's payment-provider endpoints."""

import logging
from typing import Any, Optional, Union

from masdeporte.errors import ApiError
from masdeporte.http.client import SessionAwareClient
from masdeporte.payments.deep_link import is_payment_successful
from masdeporte.schemas.booking_schema import PaymentCallback
from masdeporte.services.results import ApiResult, failure, payload_field

logger = logging.getLogger(__name__)

PAYMENTS_PREFIX = "/api/mercadopago"
PREFERENCE_FAILED_MESSAGE = "Error al crear la preferencia de pago"

OUTCOME_MESSAGES = {
    "success": "Tu turno ha sido reservado exitosamente.",
    "approved": "Tu turno ha sido reservado exitosamente.",
    "pending": "Tu pago está siendo procesado. Te notificaremos cuando se confirme.",
    "failure": "No se pudo procesar tu pago. Por favor, intenta de nuevo.",
    "rejected": "No se pudo procesar tu pago. Por favor, intenta de nuevo.",
}
UNKNOWN_OUTCOME_MESSAGE = "No se pudo determinar el estado del pago."


async def create_payment_preference(
    client: SessionAwareClient, preference: dict[str, Any]
) -> ApiResult:
    """Create a checkout preference. ``data["init_point"]`` is the redirect URL."""
    try:
        body = await client.post(f"{PAYMENTS_PREFIX}/preferences", json=preference)
    except ApiError as exc:
        logger.error("Error creating payment preference: %r", exc)
        return failure(exc, PREFERENCE_FAILED_MESSAGE)

    data = payload_field(body, "data")
    if not payload_field(data, "init_point"):
        logger.error("Payment preference response has no init_point: %r", body)
        return {"success": False, "message": PREFERENCE_FAILED_MESSAGE, "data": data}
    return {"success": True, "message": "", "data": data}


async def get_payment_status(client: SessionAwareClient, payment_id: Union[int, str]) -> ApiResult:
    try:
        body = await client.get(f"{PAYMENTS_PREFIX}/payment/{payment_id}/status")
    except ApiError as exc:
        logger.error("Error fetching status of payment %s: %r", payment_id, exc)
        return failure(exc, "Error al obtener el estado del pago")
    return {"success": True, "message": "", "data": payload_field(body, "data")}


async def confirm_appointment_after_payment(
    client: SessionAwareClient, payment: dict[str, Any]
) -> ApiResult:
    try:
        body = await client.post(f"{PAYMENTS_PREFIX}/confirm-appointment", json=payment)
    except ApiError as exc:
        logger.error("Error confirming appointment after payment: %r", exc)
        return failure(exc, "Error al confirmar el turno")
    return {"success": True, "message": "", "data": body}


async def get_connection_status(client: SessionAwareClient) -> ApiResult:
    """Whether the club's payment-provider account is connected."""
    try:
        body = await client.get(f"{PAYMENTS_PREFIX}/oauth/status")
    except ApiError as exc:
        logger.error("Error fetching payment provider status: %r", exc)
        return failure(exc, "Error al obtener el estado de Mercado Pago")
    return {"success": True, "message": "", "data": payload_field(body, "data")}


async def disconnect(client: SessionAwareClient) -> ApiResult:
    try:
        body = await client.delete(f"{PAYMENTS_PREFIX}/oauth/disconnect")
    except ApiError as exc:
        logger.error("Error disconnecting payment provider: %r", exc)
        return failure(exc, "Error al desconectar Mercado Pago")
    return {"success": True, "message": "", "data": payload_field(body, "data")}


async def resolve_payment_outcome(
    client: SessionAwareClient, callback: PaymentCallback
) -> ApiResult:
    """
    Describe the payment the user just returned from.

    Success is decided by the status carried in the callback. When a payment
    id is present the backend is asked for its record, which is returned
    under ``data["details"]`` for display only; a failed lookup leaves it
    as None and does not change the outcome.
    """
    status = callback.final_status
    details: Optional[Any] = None
    if callback.final_payment_id:
        lookup = await get_payment_status(client, callback.final_payment_id)
        if lookup["success"]:
            details = lookup.get("data")
        else:
            logger.warning("Payment %s status lookup failed: %s", callback.final_payment_id, lookup["message"])

    backend_status = payload_field(details, "status")
    if backend_status and backend_status != status:
        logger.warning(
            "Payment %s: callback says %s, backend says %s",
            callback.final_payment_id, status, backend_status,
        )

    return {
        "success": is_payment_successful(status),
        "message": OUTCOME_MESSAGES.get(status or "", UNKNOWN_OUTCOME_MESSAGE),
        "data": {"status": status, "payment_id": callback.final_payment_id, "details": details},
    }
