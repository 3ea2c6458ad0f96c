"""Request ID logging context for tracing lifecycle operations across modules.

Provides a request_id-aware logger that attaches a correlation ID to every
log message, making it easy to follow a single staff response or booking
submission through the validator, resolver, and engine.

Usage:
    from salon_booking.logging_context import get_request_logger, set_request_id

    set_request_id("REQ-abc123")
    logger = get_request_logger(__name__)
    logger.info("Processing request")  # rendered with [REQ-abc123] under LOG_FORMAT
"""

import logging
from collections.abc import Iterable
from contextvars import ContextVar
from typing import Optional

_request_id: ContextVar[str] = ContextVar("request_id", default="-")

LOG_FORMAT = "%(asctime)s [%(name)s] [%(request_id)s] %(levelname)s: %(message)s"


def set_request_id(request_id: str) -> None:
    """Set the correlation ID for the current context."""
    _request_id.set(request_id)


def get_request_id() -> str:
    """Retrieve the current correlation ID."""
    return _request_id.get()


class RequestIdFilter(logging.Filter):
    """Injects request_id into every log record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = _request_id.get()  # type: ignore[attr-defined]
        return True


def get_request_logger(name: str) -> logging.Logger:
    """Return a logger with the RequestIdFilter attached.

    The filter adds ``request_id`` to each record so formatters can
    include ``%(request_id)s`` in their format string.
    """
    logger = logging.getLogger(name)
    if not any(isinstance(f, RequestIdFilter) for f in logger.filters):
        logger.addFilter(RequestIdFilter())
    return logger


def install_request_id_filter(handlers: Optional[Iterable[logging.Handler]] = None) -> None:
    """Attach a RequestIdFilter to each handler (the root logger's by default).

    Records from any module then carry ``request_id`` by the time they reach
    a formatter using LOG_FORMAT, not only those from request loggers.
    """
    if handlers is None:
        handlers = logging.getLogger().handlers
    for handler in handlers:
        if not any(isinstance(f, RequestIdFilter) for f in handler.filters):
            handler.addFilter(RequestIdFilter())
