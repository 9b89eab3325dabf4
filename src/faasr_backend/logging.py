"""Structured logging configuration.

Records are rendered as one JSON object per line. While a request is being
served, the formatter also attaches that request's context (request id, method,
path and, once the session is known, the installation id and owner).
"""

from __future__ import annotations

import json
import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, datetime
from typing import Any

# Attributes every LogRecord carries; anything else on a record came from `extra=`.
_RESERVED_LOG_RECORD_ATTRS = frozenset(
    logging.LogRecord("", logging.INFO, "", 0, "", (), None).__dict__
) | {"message", "asctime"}

# Holds a mutable dict so that fields bound inside threadpool handlers (which run
# on a copy of the context) are seen by the rest of the request.
_request_context: ContextVar[dict[str, Any] | None] = ContextVar(
    "faasr_request_context", default=None
)


@contextmanager
def request_context(**fields: Any) -> Iterator[dict[str, Any]]:
    """Scope a fresh request context for the duration of the block."""

    context = dict(fields)
    token = _request_context.set(context)
    try:
        yield context
    finally:
        _request_context.reset(token)


def bind_request_context(**fields: Any) -> None:
    """Add fields to the current request context; a no-op outside a request."""

    context = _request_context.get()
    if context is not None:
        context.update({key: value for key, value in fields.items() if value is not None})


def current_request_context() -> dict[str, Any]:
    context = _request_context.get()
    return dict(context) if context else {}


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:  # noqa: A003 (record)
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        context = current_request_context()
        if context:
            payload["request"] = context

        extra = {
            key: value
            for key, value in record.__dict__.items()
            if key not in _RESERVED_LOG_RECORD_ATTRS and not key.startswith("_")
        }
        if extra:
            payload["extra"] = extra

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        return json.dumps(payload, ensure_ascii=False, default=str)


def configure_logging(level: str) -> None:
    """Send JSON logs to stdout; PyGithub and urllib3 never log below INFO."""

    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)

    handler = logging.StreamHandler(stream=sys.stdout)
    handler.setFormatter(JsonFormatter())
    root.addHandler(handler)
    root.setLevel(level.upper())

    for name in ("github", "urllib3"):
        logging.getLogger(name).setLevel(max(root.level, logging.INFO))
