"""Tests for credential attachment and the refresh-and-retry protocol."""

import asyncio
import json
import logging

import httpx
import pytest

from masdeporte.errors import (
    ApiError,
    AuthenticationExpired,
    AuthenticationInvalid,
    ConflictError,
    NetworkError,
    ServerError,
)
from masdeporte.http.client import (
    OutboundCall,
    build_pipeline,
    is_auth_route,
    is_public_route,
)
from masdeporte.logging_context import RequestIdFilter

PROTECTED = "/appointments/user"
REFRESH = "/users/auth/refresh"


def _auth_header(request: httpx.Request):
    return request.headers.get("Authorization")


def _accepts_only(token: str):
    """Protected endpoint that answers 401 unless called with ``token``."""

    def reply(request: httpx.Request) -> httpx.Response:
        if _auth_header(request) == f"Bearer {token}":
            return httpx.Response(200, json={"data": ["appointment"]})
        return httpx.Response(401, json={"message": "Token expired"})

    return reply


class TestRouteClassification:
    def test_public_routes(self):
        assert is_public_route("/companies/all")
        assert is_public_route("/companies/public/club-norte")
        assert is_public_route("appointments/availability")
        assert not is_public_route("/appointments/user")

    def test_auth_routes(self):
        assert is_auth_route("users/auth/register")
        assert is_auth_route("/users/auth/refresh")
        assert not is_auth_route("/appointments")


class TestCredentialAttachment:
    @pytest.mark.asyncio
    async def test_protected_route_carries_bearer(self, backend, make_client):
        backend.add("GET", PROTECTED, (200, {"data": []}))
        async with make_client() as client:
            await client.get(PROTECTED)
        assert _auth_header(backend.calls("GET", PROTECTED)[0]) == "Bearer old-access"

    @pytest.mark.asyncio
    async def test_public_route_has_no_token(self, backend, make_client):
        backend.add("GET", "/companies/all", (200, {"data": []}))
        async with make_client() as client:
            await client.get("/companies/all")
        assert _auth_header(backend.calls("GET", "/companies/all")[0]) is None
        assert client.last_trace.get_state_trace() == ["unauthenticated_attempt", "succeeded"]

    @pytest.mark.asyncio
    async def test_no_stored_token_sends_without_header(self, backend, make_client, session_store):
        await session_store.clear()
        backend.add("GET", PROTECTED, (200, {"data": []}))
        async with make_client() as client:
            await client.get(PROTECTED)
        assert _auth_header(backend.calls("GET", PROTECTED)[0]) is None


class TestRefreshSuccess:
    @pytest.mark.asyncio
    async def test_refreshes_once_and_retries_once(self, backend, make_client, storage):
        backend.add("GET", PROTECTED, _accepts_only("new-access"))
        backend.add("POST", REFRESH, (200, {"statusCode": 200, "token": "new-access"}))

        async with make_client() as client:
            body = await client.get(PROTECTED)

        assert body == {"data": ["appointment"]}
        assert len(backend.calls("POST", REFRESH)) == 1
        protected_calls = backend.calls("GET", PROTECTED)
        assert len(protected_calls) == 2
        assert _auth_header(protected_calls[1]) == "Bearer new-access"
        assert storage.snapshot()["accessToken"] == "new-access"
        assert storage.snapshot()["refreshToken"] == "old-refresh"
        assert storage.snapshot()["userRole"] == "USER"
        assert client.last_trace.get_state_trace() == [
            "authenticated_attempt", "refreshing", "retried", "succeeded",
        ]

    @pytest.mark.asyncio
    async def test_refresh_sends_token_field_without_bearer(self, backend, make_client):
        backend.add("GET", PROTECTED, _accepts_only("new-access"))
        backend.add("POST", REFRESH, (200, {"statusCode": 200, "token": "new-access"}))

        async with make_client() as client:
            await client.get(PROTECTED)

        refresh_call = backend.calls("POST", REFRESH)[0]
        assert json.loads(refresh_call.content) == {"token": "old-refresh"}
        assert _auth_header(refresh_call) is None

    @pytest.mark.asyncio
    async def test_rotated_refresh_token_is_stored(self, backend, make_client, storage):
        backend.add("GET", PROTECTED, _accepts_only("new-access"))
        backend.add(
            "POST", REFRESH,
            (200, {"statusCode": 200, "token": "new-access", "refreshToken": "new-refresh"}),
        )
        async with make_client() as client:
            await client.get(PROTECTED)
        assert storage.snapshot()["refreshToken"] == "new-refresh"

    @pytest.mark.asyncio
    async def test_403_also_triggers_refresh(self, backend, make_client):
        backend.add(
            "GET", PROTECTED,
            (403, {"message": "Forbidden"}),
            (200, {"data": []}),
        )
        backend.add("POST", REFRESH, (200, {"statusCode": 200, "token": "new-access"}))
        async with make_client() as client:
            await client.get(PROTECTED)
        assert len(backend.calls("POST", REFRESH)) == 1

    @pytest.mark.asyncio
    async def test_retry_failure_does_not_refresh_again(self, backend, make_client):
        backend.add("GET", PROTECTED, (401, {"message": "Still expired"}))
        backend.add("POST", REFRESH, (200, {"statusCode": 200, "token": "new-access"}))

        async with make_client() as client:
            with pytest.raises(AuthenticationExpired):
                await client.get(PROTECTED)

        assert len(backend.calls("POST", REFRESH)) == 1
        assert len(backend.calls("GET", PROTECTED)) == 2
        assert client.last_trace.get_state_trace()[-2:] == ["retried", "failed"]

    @pytest.mark.asyncio
    async def test_refresh_chain_logs_under_one_request_id(self, backend, make_client):
        backend.add("GET", PROTECTED, _accepts_only("new-access"))
        backend.add("POST", REFRESH, (200, {"statusCode": 200, "token": "new-access"}))
        records = []

        class Collect(logging.Handler):
            def emit(self, record):
                records.append(record)

        handler = Collect()
        handler.addFilter(RequestIdFilter())
        client_logger = logging.getLogger("masdeporte.http.client")
        old_level = client_logger.level
        client_logger.addHandler(handler)
        client_logger.setLevel(logging.INFO)
        try:
            async with make_client() as client:
                await client.get(PROTECTED)
        finally:
            client_logger.removeHandler(handler)
            client_logger.setLevel(old_level)

        messages = [r.getMessage() for r in records]
        assert any("refreshing" in m for m in messages)
        assert any("Retrying" in m for m in messages)
        request_ids = {r.request_id for r in records}
        assert len(request_ids) == 1
        assert request_ids.pop().startswith("REQ-")


class TestRefreshFailure:
    @pytest.mark.asyncio
    async def test_rejected_refresh_token_clears_credentials(self, backend, make_client, storage):
        backend.add("GET", PROTECTED, (401, {"message": "Token expired"}))
        backend.add("POST", REFRESH, (401, {"message": "Invalid refresh token"}))

        async with make_client() as client:
            with pytest.raises(AuthenticationInvalid) as exc_info:
                await client.get(PROTECTED)

        assert exc_info.value.status_code == 401
        assert exc_info.value.message == "Token expired"
        assert len(backend.calls("GET", PROTECTED)) == 1
        snapshot = storage.snapshot()
        assert "accessToken" not in snapshot
        assert "refreshToken" not in snapshot
        assert "userRole" not in snapshot
        assert snapshot["userEmail"] == "ana@example.com"
        assert client.last_trace.get_state_trace() == [
            "authenticated_attempt", "refreshing", "failed",
        ]

    @pytest.mark.asyncio
    async def test_refresh_network_error_keeps_credentials(self, backend, make_client, storage):
        backend.add("GET", PROTECTED, (401, {"message": "Token expired"}))
        backend.add("POST", REFRESH, httpx.ConnectError("connection refused"))

        async with make_client() as client:
            with pytest.raises(AuthenticationExpired) as exc_info:
                await client.get(PROTECTED)

        assert type(exc_info.value) is AuthenticationExpired
        assert isinstance(exc_info.value.__cause__, NetworkError)
        assert storage.snapshot()["accessToken"] == "old-access"
        assert storage.snapshot()["refreshToken"] == "old-refresh"

    @pytest.mark.asyncio
    async def test_refresh_server_error_keeps_credentials(self, backend, make_client, storage):
        backend.add("GET", PROTECTED, (401, {"message": "Token expired"}))
        backend.add("POST", REFRESH, (502, {"message": "Bad gateway"}))

        async with make_client() as client:
            with pytest.raises(AuthenticationExpired):
                await client.get(PROTECTED)

        assert storage.snapshot()["refreshToken"] == "old-refresh"

    @pytest.mark.asyncio
    async def test_refresh_body_without_ok_status_keeps_credentials(
        self, backend, make_client, storage
    ):
        backend.add("GET", PROTECTED, (401, {"message": "Token expired"}))
        backend.add("POST", REFRESH, (200, {"statusCode": 400, "message": "Bad token"}))

        async with make_client() as client:
            with pytest.raises(AuthenticationExpired):
                await client.get(PROTECTED)

        assert len(backend.calls("GET", PROTECTED)) == 1
        assert storage.snapshot()["accessToken"] == "old-access"

    @pytest.mark.asyncio
    async def test_missing_refresh_token_skips_refresh(self, backend, make_client, storage):
        await storage.multi_remove(("refreshToken",))
        backend.add("GET", PROTECTED, (401, {"message": "Token expired"}))

        async with make_client() as client:
            with pytest.raises(AuthenticationExpired):
                await client.get(PROTECTED)

        assert backend.calls("POST", REFRESH) == []
        assert storage.snapshot()["accessToken"] == "old-access"


class TestNoRefreshPaths:
    @pytest.mark.asyncio
    async def test_auth_route_failure_is_final(self, backend, make_client):
        backend.add("POST", "/users/auth/login", (401, {"message": "Bad credentials"}))
        async with make_client() as client:
            with pytest.raises(AuthenticationExpired):
                await client.post("/users/auth/login", json={"email": "a", "password": "b"})
        assert backend.calls("POST", REFRESH) == []

    @pytest.mark.asyncio
    async def test_timeout_is_network_error_without_refresh(self, backend, make_client):
        backend.add("GET", PROTECTED, httpx.ReadTimeout("timed out"))
        async with make_client() as client:
            with pytest.raises(NetworkError):
                await client.get(PROTECTED)
        assert backend.calls("POST", REFRESH) == []
        assert client.last_trace.get_state_trace() == ["authenticated_attempt", "failed"]

    @pytest.mark.asyncio
    async def test_conflict_maps_to_conflict_error(self, backend, make_client):
        backend.add("POST", "/appointments", (409, {"message": "Slot taken"}))
        async with make_client() as client:
            with pytest.raises(ConflictError) as exc_info:
                await client.post("/appointments", json={})
        assert exc_info.value.message == "Slot taken"

    @pytest.mark.asyncio
    async def test_server_error(self, backend, make_client):
        backend.add("GET", PROTECTED, (500, {"message": "Boom"}))
        async with make_client() as client:
            with pytest.raises(ServerError):
                await client.get(PROTECTED)
        assert backend.calls("POST", REFRESH) == []

    @pytest.mark.asyncio
    async def test_other_client_error(self, backend, make_client):
        backend.add("POST", "/appointments", (400, {"message": "Missing serviceId"}))
        async with make_client() as client:
            with pytest.raises(ApiError) as exc_info:
                await client.post("/appointments", json={})
        assert exc_info.value.status_code == 400


class TestConcurrentRefresh:
    @pytest.mark.asyncio
    async def test_concurrent_failures_share_one_refresh(self, backend, make_client, storage):
        async def protected(request: httpx.Request) -> httpx.Response:
            await asyncio.sleep(0)
            return _accepts_only("new-access")(request)

        async def refresh(request: httpx.Request) -> httpx.Response:
            await asyncio.sleep(0.01)
            return httpx.Response(
                200, json={"statusCode": 200, "token": "new-access", "refreshToken": "new-refresh"}
            )

        backend.add("GET", PROTECTED, protected)
        backend.add("POST", REFRESH, refresh)

        async with make_client() as client:
            results = await asyncio.gather(
                client.get(PROTECTED), client.get(PROTECTED), client.get(PROTECTED)
            )

        assert all(r == {"data": ["appointment"]} for r in results)
        assert len(backend.calls("POST", REFRESH)) == 1
        assert storage.snapshot()["refreshToken"] == "new-refresh"


class TestPipeline:
    @pytest.mark.asyncio
    async def test_middlewares_run_outermost_first(self):
        order = []

        async def send(call: OutboundCall) -> httpx.Response:
            order.append("send")
            return httpx.Response(204)

        def middleware(name):
            async def handle(call, next_handler):
                order.append(name)
                return await next_handler(call)
            return handle

        handler = build_pipeline(send, [middleware("outer"), middleware("inner")])
        await handler(OutboundCall(method="GET", path="/x"))
        assert order == ["outer", "inner", "send"]

    @pytest.mark.asyncio
    async def test_empty_body_decodes_to_none(self, backend, make_client):
        backend.add("DELETE", "/appointments/5", lambda request: httpx.Response(204))
        async with make_client() as client:
            assert await client.delete("/appointments/5") is None
