"""Shared test fixtures and helpers."""

from datetime import date
from decimal import Decimal
from typing import Any, Callable, Union

import httpx
import pytest

from masdeporte.http.client import SessionAwareClient
from masdeporte.http.session_store import MemoryStorage, SessionStore
from masdeporte.schemas.catalog_schema import BookingPolicy, Service

BASE_URL = "https://api.test"

Reply = Union[tuple[int, Any], Exception, Callable[[httpx.Request], Any]]


class FakeBackend:
    """
    Scripted backend behind an httpx.MockTransport.

    Each route holds a queue of replies consumed in order; the last reply
    repeats. A reply is ``(status, json_body)``, an exception to raise, or
    a (possibly async) callable taking the request.
    """

    def __init__(self) -> None:
        self._routes: dict[tuple[str, str], list[Reply]] = {}
        self.requests: list[httpx.Request] = []

    def add(self, method: str, path: str, *replies: Reply) -> "FakeBackend":
        self._routes[(method.upper(), path)] = list(replies)
        return self

    def calls(self, method: str, path: str) -> list[httpx.Request]:
        return [
            r for r in self.requests
            if r.method == method.upper() and r.url.path == path
        ]

    def _handle(self, request: httpx.Request) -> Any:
        self.requests.append(request)
        queue = self._routes.get((request.method, request.url.path))
        if not queue:
            return httpx.Response(404, json={"message": "Not found"})
        reply = queue[0] if len(queue) == 1 else queue.pop(0)
        if isinstance(reply, Exception):
            raise reply
        if callable(reply):
            return reply(request)
        status, body = reply
        return httpx.Response(status, json=body)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self._handle)


@pytest.fixture
def today() -> date:
    return date(2026, 3, 10)


@pytest.fixture
def policy() -> BookingPolicy:
    return BookingPolicy(min_advance_days=1, max_advance_days=14)


@pytest.fixture
def service() -> Service:
    return Service(id=7, name="Cancha de pádel", price=Decimal("10000"), duration_minutes=60)


@pytest.fixture
def storage() -> MemoryStorage:
    return MemoryStorage({
        "accessToken": "old-access",
        "refreshToken": "old-refresh",
        "userRole": "USER",
        "userEmail": "ana@example.com",
    })


@pytest.fixture
def session_store(storage) -> SessionStore:
    return SessionStore(storage)


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def make_client(backend, session_store) -> Callable[[], SessionAwareClient]:
    """Build a client wired to the fake backend and the shared session store."""

    def factory() -> SessionAwareClient:
        return SessionAwareClient(
            session_store, base_url=BASE_URL, transport=backend.transport()
        )

    return factory
