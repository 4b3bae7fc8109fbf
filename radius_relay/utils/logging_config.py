"""Structured logging for the relay.

Every record becomes one JSON object per line. Keyword arguments passed to
a logger obtained from :func:`get_structured_logger` turn into top-level
keys, so relay code logs like::

    logger.info("Relay endpoint created", event="relay.endpoint.created",
                peer="192.0.2.1:4000", local_port=4000)

Values bound with :func:`logging_context` (relay host, mode) are added to
every record emitted inside the block, from any module.
"""

from __future__ import annotations

import json
import logging
import os
import socket
import traceback
from collections.abc import Iterable, MutableMapping
from contextlib import contextmanager
from contextvars import ContextVar, Token
from datetime import datetime, timezone
from functools import lru_cache
from typing import Any

__all__ = [
    "configure_logging",
    "get_logger",
    "get_structured_logger",
    "bind_context",
    "clear_context",
    "logging_context",
    "parse_level",
    "StructuredJSONFormatter",
    "StructuredLoggerAdapter",
]

# Attributes every LogRecord carries; anything else was passed by the caller
_RECORD_ATTRS = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", None, None))
) | {"message", "asctime", "context"}

_ADAPTER_KWARGS = frozenset({"exc_info", "stack_info", "stacklevel", "extra"})

_context: ContextVar[dict[str, Any]] = ContextVar(
    "radius_relay_logging_context", default={}
)


@lru_cache(maxsize=1)
def _get_host() -> str:
    try:
        return os.getenv("HOSTNAME") or socket.gethostname()
    except OSError:
        return "unknown"


def _json_default(value: Any) -> Any:
    # datagrams, authenticators and challenges are logged as hex
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value).hex()
    if isinstance(value, (set, frozenset)):
        return sorted(value, key=str)
    return str(value)


class StructuredJSONFormatter(logging.Formatter):
    """Render log records as single-line JSON objects."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "service": "radius_relay",
            "host": _get_host(),
        }

        context = getattr(record, "context", None) or _context.get()
        for key, value in dict(context).items():
            payload.setdefault(key, value)

        for key, value in vars(record).items():
            if key in _RECORD_ATTRS or key.startswith("_"):
                continue
            payload[key] = value

        if record.exc_info and record.exc_info[0] is not None:
            exc_type, exc, tb = record.exc_info
            payload["error"] = {
                "type": exc_type.__name__,
                "message": str(exc),
                "stack": "".join(traceback.format_exception(exc_type, exc, tb)).strip(),
            }
        if record.stack_info:
            payload["stack"] = record.stack_info

        return json.dumps(payload, default=_json_default, ensure_ascii=True)


class StructuredLoggerAdapter(logging.LoggerAdapter):
    """Moves keyword arguments into ``extra`` and attaches bound context."""

    def process(
        self, msg: str, kwargs: MutableMapping[str, Any]
    ) -> tuple[str, MutableMapping[str, Any]]:
        extra = dict(kwargs.pop("extra", None) or {})
        for key in [k for k in kwargs if k not in _ADAPTER_KWARGS]:
            extra.setdefault(key, kwargs.pop(key))

        context = {**_context.get(), **(self.extra or {})}
        if context:
            extra.setdefault("context", context)
        kwargs["extra"] = extra
        return msg, kwargs


def parse_level(level: str | int) -> int:
    """Translate a level name ("debug", "INFO") or number into a logging level."""
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(str(level).strip().upper())
    if not isinstance(resolved, int):
        raise ValueError(f"Unknown log level: {level!r}")
    return resolved


def configure_logging(
    level: int | str = logging.INFO,
    *,
    stream: Any | None = None,
    handlers: Iterable[logging.Handler] | None = None,
    formatter: logging.Formatter | None = None,
    reset: bool = True,
) -> None:
    """Install JSON handlers on the root logger."""
    level = parse_level(level)
    formatter = formatter or StructuredJSONFormatter()
    handlers = list(handlers or [logging.StreamHandler(stream)])

    root = logging.getLogger()
    if reset:
        for old in list(root.handlers):
            root.removeHandler(old)
    for handler in handlers:
        if handler.level == logging.NOTSET:
            handler.setLevel(level)
        if handler.formatter is None:
            handler.setFormatter(formatter)
        root.addHandler(handler)
    root.setLevel(level)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def get_structured_logger(name: str, **context: Any) -> StructuredLoggerAdapter:
    """Logger adapter carrying static ``context`` (None values are skipped)."""
    static = {k: v for k, v in context.items() if v is not None}
    return StructuredLoggerAdapter(get_logger(name), static)


def bind_context(**kwargs: Any) -> Token:
    """Add key/value pairs to the context of the current thread or task."""
    current = dict(_context.get())
    current.update({k: v for k, v in kwargs.items() if v is not None})
    return _context.set(current)


def clear_context(token: Token | None = None) -> None:
    if token is not None:
        _context.reset(token)
    else:
        _context.set({})


@contextmanager
def logging_context(**kwargs: Any):
    """Bind log context for the enclosed block."""
    token = bind_context(**kwargs)
    try:
        yield
    finally:
        clear_context(token)
