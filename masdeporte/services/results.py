"""Uniform result shape returned by every service wrapper."""

from typing import Any, TypedDict

from masdeporte.errors import ApiError, AuthenticationInvalid


class ApiResult(TypedDict, total=False):
    """``success`` and ``message`` are always set; ``data`` on success."""

    success: bool
    message: str
    data: Any
    requires_login: bool


def failure(exc: ApiError, message: str) -> ApiResult:
    """Turn an ApiError into the failure shape the presentation layer expects.

    ``message`` is the fallback shown when the backend sent no message.
    """
    result: ApiResult = {
        "success": False,
        "message": exc.message if _has_backend_message(exc) else message,
    }
    if isinstance(exc, AuthenticationInvalid):
        result["requires_login"] = True
    return result


def _has_backend_message(exc: ApiError) -> bool:
    return isinstance(exc.payload, dict) and bool(exc.payload.get("message"))


def payload_field(body: Any, key: str) -> Any:
    """``body[key]`` when the backend answered with a JSON object, else None."""
    return body.get(key) if isinstance(body, dict) else None
