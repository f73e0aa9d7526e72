"""
Availability lookup and appointment management.

Availability is computed by the backend; the client only trims slot
times to ``HH:MM``. Booking conflicts (409) get their own message so the
user knows to pick another slot.

``filter_appointments`` and ``group_appointments_by_day`` shape the
user's appointment list for display and make no calls.
"""

import logging
from datetime import date
from typing import Any, Iterable, Optional, Union

from masdeporte.errors import ApiError, ConflictError, ServerError
from masdeporte.http.client import SessionAwareClient
from masdeporte.schemas.booking_schema import AvailabilityResponse
from masdeporte.services.results import ApiResult, failure, payload_field
from masdeporte.utils import normalize_slot_time

logger = logging.getLogger(__name__)

SLOT_TAKEN_MESSAGE = "El horario seleccionado ya no está disponible"
LOGIN_REQUIRED_MESSAGE = "Debes iniciar sesión para reservar un turno"
SERVER_ERROR_MESSAGE = "Error interno del servidor. Intenta de nuevo más tarde"
NO_SLOTS_MESSAGE = "No hay horarios disponibles"
AVAILABILITY_FAILED_MESSAGE = "Error al cargar horarios disponibles"

ALL_STATUSES = "all"


async def get_availability(
    client: SessionAwareClient, service_id: int, day: Union[date, str]
) -> ApiResult:
    """Free start times for a service on one date."""
    day_str = day.isoformat() if isinstance(day, date) else day
    empty = AvailabilityResponse(service_id=service_id, date=day_str)
    try:
        body = await client.get(
            "/appointments/availability",
            params={"serviceId": service_id, "date": day_str},
        )
    except ApiError as exc:
        logger.error("Error fetching availability for service %s on %s: %r", service_id, day_str, exc)
        result = failure(exc, AVAILABILITY_FAILED_MESSAGE)
        result["data"] = empty
        return result

    if not payload_field(body, "success"):
        if not isinstance(body, dict):
            logger.warning("Unexpected availability payload for service %s: %r", service_id, body)
        return {
            "success": False,
            "message": payload_field(body, "message") or NO_SLOTS_MESSAGE,
            "data": empty,
        }

    slots = payload_field(payload_field(body, "data"), "availableSlots")
    if not isinstance(slots, list):
        slots = []
    return {
        "success": True,
        "message": "",
        "data": AvailabilityResponse(
            service_id=service_id,
            date=day_str,
            available_slots=[normalize_slot_time(slot) for slot in slots if isinstance(slot, str)],
        ),
    }


async def create_appointment(client: SessionAwareClient, appointment: dict[str, Any]) -> ApiResult:
    try:
        body = await client.post("/appointments", json=appointment)
    except ConflictError as exc:
        logger.warning("Slot taken while booking: %r", exc)
        return {"success": False, "message": SLOT_TAKEN_MESSAGE, "data": None}
    except ServerError as exc:
        logger.error("Server error while booking: %r", exc)
        return {"success": False, "message": SERVER_ERROR_MESSAGE, "data": None}
    except ApiError as exc:
        logger.error("Error creating appointment: %r", exc)
        if exc.status_code == 400:
            result = failure(exc, "Datos de la cita inválidos")
        elif exc.status_code in (401, 403):
            result = failure(exc, LOGIN_REQUIRED_MESSAGE)
            result["message"] = LOGIN_REQUIRED_MESSAGE
        else:
            result = failure(exc, "Error al reservar el turno")
        result["data"] = None
        return result
    return {"success": True, "message": "Cita reservada exitosamente", "data": body}


async def get_user_appointments(client: SessionAwareClient) -> ApiResult:
    try:
        body = await client.get("/appointments/user")
    except ApiError as exc:
        logger.error("Error fetching user appointments: %r", exc)
        return failure(exc, "Error al obtener los turnos")
    return {"success": True, "message": "", "data": payload_field(body, "data")}


async def get_appointment(client: SessionAwareClient, appointment_id: Union[int, str]) -> ApiResult:
    try:
        body = await client.get(f"/appointments/{appointment_id}")
    except ApiError as exc:
        logger.error("Error fetching appointment %s: %r", appointment_id, exc)
        return failure(exc, "Error al obtener el turno")
    return {"success": True, "message": "", "data": payload_field(body, "data")}


async def cancel_appointment(client: SessionAwareClient, appointment_id: Union[int, str]) -> ApiResult:
    try:
        body = await client.delete(f"/appointments/{appointment_id}")
    except ApiError as exc:
        logger.error("Error cancelling appointment %s: %r", appointment_id, exc)
        return failure(exc, "Error al cancelar el turno")
    logger.info("Appointment %s cancelled", appointment_id)
    return {"success": True, "message": "Turno cancelado correctamente", "data": payload_field(body, "data")}


def appointment_day(appointment: dict[str, Any]) -> str:
    """The ``YYYY-MM-DD`` part of an appointment's ``startTime``."""
    return str(appointment.get("startTime")).split("T")[0]


def filter_appointments(
    appointments: Iterable[dict[str, Any]],
    search_term: str = "",
    status: str = ALL_STATUSES,
    day: Optional[Union[date, str]] = None,
) -> list[dict[str, Any]]:
    """
    Narrow the user's appointments the way the list screen does.

    Args:
        search_term: case-insensitive substring of ``serviceName``.
        status: ``"all"`` or an exact status such as ``"CONFIRMED"``.
        day: keep only appointments starting on this calendar day.
    """
    needle = (search_term or "").lower()
    day_key = day.isoformat() if isinstance(day, date) else day

    def matches(appointment: dict[str, Any]) -> bool:
        if needle not in (appointment.get("serviceName") or "").lower():
            return False
        if status != ALL_STATUSES and appointment.get("status") != status:
            return False
        if day_key:
            return bool(appointment.get("startTime")) and appointment_day(appointment) == day_key
        return True

    return [appointment for appointment in appointments if matches(appointment)]


def group_appointments_by_day(
    appointments: Iterable[dict[str, Any]],
) -> list[tuple[str, list[dict[str, Any]]]]:
    """``(day, appointments)`` pairs in day order, each day sorted by start time."""
    groups: dict[str, list[dict[str, Any]]] = {}
    for appointment in appointments:
        groups.setdefault(appointment_day(appointment), []).append(appointment)
    return [
        (key, sorted(groups[key], key=lambda item: str(item.get("startTime"))))
        for key in sorted(groups)
    ]
