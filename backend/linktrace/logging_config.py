"""
Logging for linktrace.

Every record carries the request it was emitted under: the request id,
the request path and, once one is known, the click being recorded or
enriched. Records outside a request show "-" for all three.
"""

import logging
import sys
import uuid
from contextvars import ContextVar
from typing import Optional, TextIO

from .config import settings

request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)
request_path_var: ContextVar[Optional[str]] = ContextVar("request_path", default=None)
click_id_var: ContextVar[Optional[int]] = ContextVar("click_id", default=None)

SERVICE_FORMAT = "%(asctime)s | %(levelname)-8s | %(request_id)s %(request_path)s click=%(click_id)s | %(name)s | %(message)s"
CONSOLE_FORMAT = "%(levelname)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

NOISY_LOGGERS = ("uvicorn.access", "sqlalchemy.engine", "httpx", "httpcore")

_handler: Optional[logging.Handler] = None


def set_request_id(request_id: Optional[str] = None) -> str:
    """Bind a request id to the current context, generating one if needed."""
    rid = request_id or uuid.uuid4().hex[:8]
    request_id_var.set(rid)
    return rid


def bind_request(path: str, request_id: Optional[str] = None) -> str:
    """Start the logging context for one request; returns its id."""
    request_path_var.set(path)
    click_id_var.set(None)
    return set_request_id(request_id)


def bind_click_id(click_id: Optional[int]) -> None:
    click_id_var.set(click_id)


class RequestContextFilter(logging.Filter):
    """Copies the current request context onto each record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id_var.get() or "-"
        record.request_path = request_path_var.get() or "-"
        click_id = click_id_var.get()
        record.click_id = click_id if click_id is not None else "-"
        return True


def setup_logging(level: Optional[int] = None, stream: Optional[TextIO] = None, console: bool = False) -> logging.Handler:
    """
    Install the linktrace handler on the root logger.

    The service logs to stdout at DEBUG or INFO depending on settings.DEBUG.
    The operator console passes console=True: warnings only, to stderr, in a
    short format so they do not mix with command output. Calling it again
    replaces the previously installed handler.
    """
    global _handler

    if level is None:
        if console:
            level = logging.WARNING
        else:
            level = logging.DEBUG if settings.DEBUG else logging.INFO
    if stream is None:
        stream = sys.stderr if console else sys.stdout

    root_logger = logging.getLogger()
    if _handler is not None:
        root_logger.removeHandler(_handler)

    handler = logging.StreamHandler(stream)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(CONSOLE_FORMAT if console else SERVICE_FORMAT, DATE_FORMAT))
    handler.addFilter(RequestContextFilter())

    root_logger.setLevel(level)
    root_logger.addHandler(handler)
    _handler = handler

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return handler


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
