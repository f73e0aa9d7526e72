"""
Session-aware HTTP client for the booking backend.

Wraps ``httpx.AsyncClient`` in a small middleware pipeline:

    track state -> refresh on auth failure -> attach credentials -> send

Public routes go out without a token. Every other call carries the stored
access token; a 401/403 on a non-auth route triggers one coordinated
refresh through ``SessionStore.refresh`` and a single retry. Network
failures never trigger a refresh.

Usage:
    async with SessionAwareClient(SessionStore(FileStorage(path))) as client:
        data = await client.request_json("GET", "/appointments/user")
"""

import logging
from dataclasses import dataclass, field, replace
from typing import Any, Awaitable, Callable, Mapping, Optional

import httpx

from masdeporte.config import settings
from masdeporte.errors import (
    ApiError,
    AuthenticationExpired,
    AuthenticationInvalid,
    ConflictError,
    MasDeporteError,
    NetworkError,
    ServerError,
    SessionRefreshFailed,
)
from masdeporte.http.request_state import RequestState, RequestTrace
from masdeporte.http.session_store import SessionStore, TokenPair
from masdeporte.logging_context import request_scope
from masdeporte.utils import normalize_path

logger = logging.getLogger(__name__)

REFRESH_PATH = "/users/auth/refresh"

# Routes that never carry a bearer token
PUBLIC_ROUTES = (
    "/companies/public/",
    "/companies/all",
    "/companies/search",
    "/appointments/availability",
    "/users/auth/login",
    "/users/auth/register",
    "/users/auth/google",
    REFRESH_PATH,
)

# Routes whose auth failures are final, never refreshed
AUTH_ROUTES = (
    "/users/auth/login",
    "/users/auth/register",
    REFRESH_PATH,
    "/users/auth/google",
)

AUTH_FAILURE_STATUSES = frozenset({401, 403})


def is_public_route(path: str) -> bool:
    path = normalize_path(path)
    return any(route in path for route in PUBLIC_ROUTES)


def is_auth_route(path: str) -> bool:
    path = normalize_path(path)
    return any(route in path for route in AUTH_ROUTES)


@dataclass(frozen=True)
class OutboundCall:
    """One request travelling through the pipeline.

    Immutable: middlewares hand a modified copy to the next handler.
    ``has_retried`` marks the single retry after a token refresh.
    """

    method: str
    path: str
    params: Optional[Mapping[str, Any]] = None
    json: Any = None
    headers: Mapping[str, str] = field(default_factory=dict)
    has_retried: bool = False
    request_id: str = ""
    trace: Optional[RequestTrace] = field(default=None, compare=False, repr=False)


Handler = Callable[[OutboundCall], Awaitable[httpx.Response]]
Middleware = Callable[[OutboundCall, Handler], Awaitable[httpx.Response]]


def build_pipeline(send: Handler, middlewares: list[Middleware]) -> Handler:
    """Compose middlewares around ``send``; the first one listed runs outermost."""
    handler = send
    for middleware in reversed(middlewares):
        handler = _bind(middleware, handler)
    return handler


def _bind(middleware: Middleware, next_handler: Handler) -> Handler:
    async def handler(call: OutboundCall) -> httpx.Response:
        return await middleware(call, next_handler)

    return handler


def _response_payload(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text


def _error_message(response: httpx.Response, payload: Any) -> str:
    if isinstance(payload, dict) and payload.get("message"):
        return str(payload["message"])
    return f"HTTP {response.status_code} {response.reason_phrase}".strip()


def _bearer_token(request: Optional[httpx.Request]) -> Optional[str]:
    if request is None:
        return None
    header = request.headers.get("Authorization", "")
    if header.startswith("Bearer "):
        return header[len("Bearer "):]
    return None


def error_for_response(response: httpx.Response) -> ApiError:
    """Map an error response to the matching ApiError subclass."""
    payload = _response_payload(response)
    message = _error_message(response, payload)
    status = response.status_code

    if status in AUTH_FAILURE_STATUSES:
        try:
            request = response.request
        except RuntimeError:
            request = None
        return AuthenticationExpired(
            message, status_code=status, payload=payload, access_token=_bearer_token(request)
        )
    if status == 409:
        return ConflictError(message, status_code=status, payload=payload)
    if status >= 500:
        return ServerError(message, status_code=status, payload=payload)
    return ApiError(message, status_code=status, payload=payload)


class SessionAwareClient:
    """HTTP client that attaches credentials and recovers from expired tokens."""

    def __init__(
        self,
        session_store: Optional[SessionStore] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.session_store = session_store if session_store is not None else SessionStore()
        self._owns_http = http_client is None
        self._http = http_client or httpx.AsyncClient(
            base_url=base_url or settings.api.base_url,
            timeout=timeout or settings.api.timeout_sec,
            transport=transport,
        )
        self._pipeline = build_pipeline(
            self._send,
            [self._track_state, self._refresh_on_auth_failure, self._attach_credentials],
        )
        self.last_trace: Optional[RequestTrace] = None

    async def __aenter__(self) -> "SessionAwareClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_http:
            await self._http.aclose()

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Mapping[str, Any]] = None,
        json: Any = None,
    ) -> httpx.Response:
        """Send a request through the pipeline. Raises ApiError subclasses on failure."""
        path = normalize_path(path)
        initial = (
            RequestState.UNAUTHENTICATED_ATTEMPT
            if is_public_route(path)
            else RequestState.AUTHENTICATED_ATTEMPT
        )
        with request_scope() as request_id:
            call = OutboundCall(
                method=method.upper(),
                path=path,
                params=params,
                json=json,
                request_id=request_id,
                trace=RequestTrace(initial),
            )
            self.last_trace = call.trace
            logger.debug("Dispatching %s %s", call.method, call.path)
            return await self._pipeline(call)

    async def request_json(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Mapping[str, Any]] = None,
        json: Any = None,
    ) -> Any:
        response = await self.request(method, path, params=params, json=json)
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            raise ApiError(
                f"Invalid JSON in response from {normalize_path(path)}",
                status_code=response.status_code,
                payload=response.text,
            ) from None

    async def get(self, path: str, params: Optional[Mapping[str, Any]] = None) -> Any:
        return await self.request_json("GET", path, params=params)

    async def post(self, path: str, json: Any = None) -> Any:
        return await self.request_json("POST", path, json=json)

    async def delete(self, path: str) -> Any:
        return await self.request_json("DELETE", path)

    # --- Pipeline stages ---

    async def _track_state(self, call: OutboundCall, next_handler: Handler) -> httpx.Response:
        try:
            response = await next_handler(call)
        except MasDeporteError as exc:
            call.trace.transition(RequestState.FAILED)
            logger.error("%s %s failed: %r", call.method, call.path, exc)
            raise
        call.trace.transition(RequestState.SUCCEEDED)
        return response

    async def _refresh_on_auth_failure(
        self, call: OutboundCall, next_handler: Handler
    ) -> httpx.Response:
        try:
            return await next_handler(call)
        except AuthenticationExpired as exc:
            if (
                call.has_retried
                or is_auth_route(call.path)
                or call.trace.current_state != RequestState.AUTHENTICATED_ATTEMPT
            ):
                raise

            call.trace.transition(RequestState.REFRESHING)
            logger.info(
                "Access token rejected (%s) on %s, refreshing", exc.status_code, call.path
            )
            try:
                await self.session_store.refresh(
                    self._refresh_tokens, stale_access_token=exc.access_token
                )
            except AuthenticationInvalid as refresh_exc:
                raise AuthenticationInvalid(
                    exc.message,
                    status_code=exc.status_code,
                    payload=exc.payload,
                    access_token=exc.access_token,
                ) from refresh_exc
            except ApiError as refresh_exc:
                logger.warning("Token refresh failed, keeping stored credentials: %r", refresh_exc)
                raise exc from refresh_exc

            call.trace.transition(RequestState.RETRIED)
            logger.info("Retrying %s %s with refreshed token", call.method, call.path)
            return await next_handler(replace(call, has_retried=True))

    async def _attach_credentials(
        self, call: OutboundCall, next_handler: Handler
    ) -> httpx.Response:
        if is_public_route(call.path):
            return await next_handler(call)

        token = await self.session_store.get_access_token()
        if token:
            call = replace(call, headers={**call.headers, "Authorization": f"Bearer {token}"})
        else:
            logger.debug("No access token stored for %s", call.path)
        return await next_handler(call)

    async def _send(self, call: OutboundCall) -> httpx.Response:
        try:
            response = await self._http.request(
                call.method,
                call.path,
                params=call.params,
                json=call.json,
                headers=dict(call.headers),
            )
        except httpx.TimeoutException as exc:
            raise NetworkError(f"Request to {call.path} timed out") from exc
        except httpx.TransportError as exc:
            raise NetworkError(f"Could not reach backend: {exc}") from exc

        if response.is_error:
            raise error_for_response(response)
        return response

    # --- Refresh ---

    async def _refresh_tokens(self, refresh_token: str) -> TokenPair:
        """Exchange a refresh token directly on the raw client, outside the pipeline.

        The backend expects the refresh token in a field named ``token``.
        """
        try:
            response = await self._http.post(REFRESH_PATH, json={"token": refresh_token})
        except httpx.TimeoutException as exc:
            raise NetworkError("Token refresh timed out") from exc
        except httpx.TransportError as exc:
            raise NetworkError(f"Could not reach backend for token refresh: {exc}") from exc

        if response.status_code in AUTH_FAILURE_STATUSES:
            payload = _response_payload(response)
            raise AuthenticationInvalid(
                _error_message(response, payload),
                status_code=response.status_code,
                payload=payload,
            )
        if response.is_error:
            raise error_for_response(response)

        body = _response_payload(response)
        if not isinstance(body, dict) or body.get("statusCode") != 200 or not body.get("token"):
            raise SessionRefreshFailed(
                "Refresh endpoint did not return a new token",
                status_code=response.status_code,
                payload=body,
            )

        logger.info("Token refresh succeeded")
        return TokenPair(body["token"], body.get("refreshToken"))
