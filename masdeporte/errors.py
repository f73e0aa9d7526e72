"""Error taxonomy shared by the booking engine, the HTTP client and services."""

from typing import Any, Optional


class MasDeporteError(Exception):
    """Base class for every error raised by this package."""


class ValidationError(MasDeporteError):
    """Input rejected locally before any network call is made."""


class InvalidAmount(ValidationError):
    """A price or discount outside its allowed range."""


class CouponRejected(MasDeporteError):
    """The backend refused a coupon. ``reason`` is its message, verbatim."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class ApiError(MasDeporteError):
    """A backend call failed with an HTTP error status."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        payload: Any = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.payload = payload

    def __repr__(self) -> str:
        return f"{type(self).__name__}(status_code={self.status_code!r}, message={self.message!r})"


class NetworkError(ApiError):
    """No usable response: timeout, DNS failure, connection reset."""


class ServerError(ApiError):
    """The backend answered with a 5xx status."""


class ConflictError(ApiError):
    """The requested slot was taken by someone else (HTTP 409)."""


class AuthenticationExpired(ApiError):
    """Access token rejected (401/403). Triggers the refresh protocol."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        payload: Any = None,
        access_token: Optional[str] = None,
    ) -> None:
        super().__init__(message, status_code, payload)
        self.access_token = access_token


class AuthenticationInvalid(AuthenticationExpired):
    """The refresh token itself was rejected; stored credentials were cleared."""


class SessionRefreshFailed(ApiError):
    """A refresh attempt failed for a reason that does not invalidate the session."""
