"""Public club catalog: listing, search and lookup by slug."""

import logging
from typing import Any, Optional

from pydantic import ValidationError as SchemaError

from masdeporte.errors import ApiError
from masdeporte.http.client import SessionAwareClient
from masdeporte.schemas.catalog_schema import Company
from masdeporte.services.results import ApiResult, failure, payload_field

logger = logging.getLogger(__name__)

COMPANY_FAILED_MESSAGE = "Error al cargar la información de la empresa"


async def get_all_companies(client: SessionAwareClient) -> ApiResult:
    try:
        body = await client.get("/companies/all")
    except ApiError as exc:
        logger.error("Error fetching companies: %r", exc)
        result = failure(exc, "Error al obtener las empresas")
        result["data"] = []
        return result
    return {"success": True, "message": "", "data": _as_list(payload_field(body, "data"))}


async def search_companies(
    client: SessionAwareClient,
    query: Optional[str] = None,
    location: Optional[str] = None,
) -> ApiResult:
    """Search clubs by name and/or location. Empty filters are not sent."""
    params = {}
    if query:
        params["query"] = query
    if location:
        params["location"] = location

    try:
        body = await client.get("/companies/search", params=params)
    except ApiError as exc:
        logger.error("Error searching companies: %r", exc)
        result = failure(exc, "Error al buscar empresas")
        result["data"] = []
        return result
    # the search endpoint answers with either a bare list or a {data: [...]} envelope
    if isinstance(body, dict):
        body = body.get("data")
    return {"success": True, "message": "", "data": _as_list(body)}


async def get_company_by_slug(client: SessionAwareClient, slug: str) -> ApiResult:
    """Fetch one club's public page, parsed into a Company with its booking policy."""
    try:
        body = await client.get(f"/companies/public/{slug}")
    except ApiError as exc:
        logger.error("Error fetching company %s: %r", slug, exc)
        result = failure(exc, COMPANY_FAILED_MESSAGE)
        result["data"] = None
        return result

    data = payload_field(body, "data")
    if not isinstance(data, dict):
        logger.error("Company payload for %s is not an object: %r", slug, body)
        return {"success": False, "message": COMPANY_FAILED_MESSAGE, "data": None}
    try:
        company = Company.from_backend(data)
    except SchemaError as exc:
        logger.error("Malformed company payload for %s: %s", slug, exc)
        return {"success": False, "message": COMPANY_FAILED_MESSAGE, "data": None}
    return {"success": True, "message": "", "data": company}


def _as_list(value: Any) -> list:
    return value if isinstance(value, list) else []
