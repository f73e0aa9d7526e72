"""Login, registration and logout against the users endpoints."""

import logging
from typing import Any, Optional

from masdeporte.errors import ApiError
from masdeporte.http.client import SessionAwareClient
from masdeporte.http.session_store import SessionStore
from masdeporte.schemas.session_schema import SessionCredentials, UserProfile
from masdeporte.services.results import ApiResult, failure

logger = logging.getLogger(__name__)

LOGIN_PATH = "/users/auth/login"
REGISTER_PATH = "/users/auth/register"
GOOGLE_LOGIN_PATH = "/users/auth/google"
DEFAULT_ROLE = "USER"


async def _store_login(
    store: SessionStore, body: Any, email: Optional[str] = None
) -> ApiResult:
    if not isinstance(body, dict) or body.get("statusCode") != 200:
        message = body.get("message") if isinstance(body, dict) else None
        return {"success": False, "message": message or "Error al iniciar sesión", "data": body}

    if not (body.get("token") and body.get("refreshToken") and body.get("role")):
        return {"success": False, "message": "Respuesta de inicio de sesión incompleta", "data": body}

    credentials = SessionCredentials(
        access_token=body["token"],
        refresh_token=body["refreshToken"],
        role=body["role"],
    )
    await store.save_login(credentials, UserProfile(email=email or body.get("email")))
    return {"success": True, "message": body.get("message") or "Inicio de sesión exitoso", "data": body}


async def login(client: SessionAwareClient, email: str, password: str) -> ApiResult:
    """Log in with email and password and persist the issued credentials."""
    try:
        body = await client.post(LOGIN_PATH, json={"email": email, "password": password})
    except ApiError as exc:
        logger.error("Login failed for %s: %r", email, exc)
        return failure(exc, "Email o contraseña incorrectos")
    return await _store_login(client.session_store, body, email)


async def login_with_google(client: SessionAwareClient, credential: str) -> ApiResult:
    """Exchange a Google credential for a session, stored like a normal login."""
    try:
        body = await client.post(GOOGLE_LOGIN_PATH, json={"credential": credential})
    except ApiError as exc:
        logger.error("Google login failed: %r", exc)
        return failure(exc, "Error al iniciar sesión con Google")
    return await _store_login(client.session_store, body)


async def register(
    client: SessionAwareClient, name: str, email: str, password: str
) -> ApiResult:
    """Create a regular user account. Does not log in."""
    try:
        body = await client.post(
            REGISTER_PATH,
            json={"name": name, "role": DEFAULT_ROLE, "email": email, "password": password},
        )
    except ApiError as exc:
        logger.error("Registration failed for %s: %r", email, exc)
        return failure(exc, "Error al registrarse")
    return {"success": True, "message": "Registro exitoso. Ahora puedes iniciar sesión.", "data": body}


async def logout(store: SessionStore) -> None:
    await store.clear()


async def check_auth(store: SessionStore) -> bool:
    """True when access token, refresh token and role are all stored."""
    return await store.is_authenticated()
