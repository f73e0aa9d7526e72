"""Request-scoped correlation ids for log records.

Every outbound call runs inside ``request_scope``. Records emitted while
the scope is active (credential attachment, the token refresh it may
trigger, the retry) all carry the same ``request_id``, so one call can be
followed through the log. Outside any call the id renders as ``-``.

``configure_logging`` gives the root logger a handler rendering
``LOG_FORMAT`` through ``RequestIdFormatter``, which falls back to the current
id when no ``RequestIdFilter`` stamped the record, so ``%(request_id)s`` never
breaks a record from any logger.

Usage:
    configure_logging("INFO")
    with request_scope() as request_id:
        logger.info("Dispatching GET /appointments/user")
        # → 2026-03-10 18:00:00 [REQ-1a2b3c] [masdeporte.http.client] INFO: Dispatching ...
"""

import logging
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator, Optional

NO_REQUEST_ID = "-"
LOG_FORMAT = "%(asctime)s [%(request_id)s] [%(name)s] %(levelname)s: %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_request_id: ContextVar[str] = ContextVar("request_id", default=NO_REQUEST_ID)


def new_request_id() -> str:
    """Generate a short correlation id for one outbound call."""
    return f"REQ-{uuid.uuid4().hex[:6]}"


def get_request_id() -> str:
    return _request_id.get()


@contextmanager
def request_scope(request_id: Optional[str] = None) -> Iterator[str]:
    """Bind a correlation id to the current context until the block exits.

    Tasks created inside the block (such as a shared token refresh) copy
    the context and keep logging under the same id.
    """
    request_id = request_id or new_request_id()
    token = _request_id.set(request_id)
    try:
        yield request_id
    finally:
        _request_id.reset(token)


class RequestIdFilter(logging.Filter):
    """Stamps ``request_id`` on records that do not already carry one."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "request_id"):
            record.request_id = _request_id.get()  # type: ignore[attr-defined]
        return True


class RequestIdFormatter(logging.Formatter):
    """Formatter for ``LOG_FORMAT`` that works with or without the filter."""

    def format(self, record: logging.LogRecord) -> str:
        if not hasattr(record, "request_id"):
            record.request_id = _request_id.get()  # type: ignore[attr-defined]
        return super().format(record)


def configure_logging(level: str) -> None:
    """Configure root logging with the request-id format.

    Like ``logging.basicConfig``, does nothing if the root logger already
    has handlers.
    """
    handler = logging.StreamHandler()
    handler.setFormatter(RequestIdFormatter(LOG_FORMAT, LOG_DATE_FORMAT))
    handler.addFilter(RequestIdFilter())
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO), handlers=[handler])
