# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

"""
destkit.core.logging
====================

A tiny, dependency-free structured logging helper:
- Context propagation via contextvars (stream, table, job_id, etc.).
- Airbyte LOG-envelope formatter: every log record becomes one protocol line
  on stdout, interleaved with STATE/SPEC messages from the emitter.
- Human formatter for local debugging.
- Safe LoggerAdapter that accepts arbitrary keyword fields.
"""

import contextvars
import json
import logging
import os
import sys
from contextlib import contextmanager
from typing import IO, Any, ClassVar, Final

__all__ = [
    "AirbyteLogFormatter",
    "HumanFormatter",
    "bind_context",
    "configure_from_env",
    "disable_stdout_logging",
    "enable_stdout_logging",
    "get_logger",
    "log_context",
]

# ---------- Context ----------

_log_context: contextvars.ContextVar[dict[str, Any] | None] = contextvars.ContextVar("destkit_log_ctx", default=None)


def _ctx_copy() -> dict[str, Any]:
    ctx = _log_context.get()
    return dict(ctx) if ctx else {}


def bind_context(**fields: Any) -> None:
    """
    Merge fields into the current structured log context.
    Use from long-lived code (e.g., once per sync run).
    """
    ctx = _ctx_copy()
    ctx.update({k: v for k, v in fields.items() if v is not None})
    _log_context.set(ctx)


@contextmanager
def log_context(**fields: Any):
    """
    Temporarily add fields to the structured log context.
    Restores the previous context on exit.
    """
    token = _log_context.set({**_ctx_copy(), **{k: v for k, v in fields.items() if v is not None}})
    try:
        yield
    finally:
        _log_context.reset(token)


# ---------- Formatters ----------

_STD_ATTRS: Final[frozenset[str]] = frozenset(
    {
        "name",
        "msg",
        "args",
        "levelname",
        "levelno",
        "pathname",
        "filename",
        "module",
        "exc_info",
        "exc_text",
        "stack_info",
        "lineno",
        "funcName",
        "created",
        "msecs",
        "relativeCreated",
        "thread",
        "threadName",
        "processName",
        "process",
        "asctime",
        "taskName",
        "message",
    }
)

# Python level -> Airbyte protocol log level
_AIRBYTE_LEVELS: Final[dict[int, str]] = {
    logging.CRITICAL: "FATAL",
    logging.ERROR: "ERROR",
    logging.WARNING: "WARN",
    logging.INFO: "INFO",
    logging.DEBUG: "DEBUG",
}


def _airbyte_level(levelno: int) -> str:
    for threshold in (logging.CRITICAL, logging.ERROR, logging.WARNING, logging.INFO, logging.DEBUG):
        if levelno >= threshold:
            return _AIRBYTE_LEVELS[threshold]
    return "TRACE"


def _fields(record: logging.LogRecord) -> dict[str, Any]:
    """Context fields plus `extra=...` attributes, context first."""
    out: dict[str, Any] = {}
    ctx = _log_context.get()
    if ctx:
        out.update(ctx)
    for k, v in record.__dict__.items():
        if k in _STD_ATTRS or k in out:
            continue
        out[k] = v
    return out


def _suffix(fields: dict[str, Any]) -> str:
    if not fields:
        return ""
    return "  [" + ", ".join(f"{k}={v}" for k, v in fields.items()) + "]"


class AirbyteLogFormatter(logging.Formatter):
    """
    Render a LogRecord as an Airbyte protocol LOG message:

        {"type":"LOG","log":{"level":"INFO","message":"..."}}

    Structured fields (context + extras) are appended to the message text so
    the envelope stays within the protocol schema. Exception stacks go into
    `log.stack_trace` when `include_stack` is set.
    """

    def __init__(self, *, include_stack: bool = False) -> None:
        super().__init__()
        self.include_stack = include_stack

    def format(self, record: logging.LogRecord) -> str:
        message = record.getMessage() + _suffix(_fields(record))
        log: dict[str, Any] = {"level": _airbyte_level(record.levelno), "message": message}

        if record.exc_info:
            exc = record.exc_info
            if exc[1] is not None:
                log["message"] = f"{message}: {type(exc[1]).__name__}: {exc[1]}"
            if self.include_stack:
                log["stack_trace"] = self.formatException(exc)

        return json.dumps({"type": "LOG", "log": log}, ensure_ascii=False, separators=(",", ":"), default=str)


class HumanFormatter(logging.Formatter):
    """Compact human-friendly formatter for local debugging."""

    default_time_format = "%Y-%m-%d %H:%M:%S"
    default_msec_format = "%s.%03d"

    def format(self, record: logging.LogRecord) -> str:
        s = f"{self.formatTime(record)} {record.levelname:<5} {record.name}: {record.getMessage()}"
        s += _suffix(_fields(record))
        if record.exc_info:
            s += "\n" + self.formatException(record.exc_info)
        return s


# ---------- Adapter ----------


class _KwExtraAdapter(logging.LoggerAdapter):
    """
    Logger adapter that moves any unknown kwargs into `extra={...}` so you can write:

        log.info("msg", table=..., job_id=...)

    without TypeError from the logging module.
    """

    _allowed_passthrough: ClassVar[frozenset[str]] = frozenset({"exc_info", "stack_info", "stacklevel", "extra"})
    _logrecord_attrs: ClassVar[frozenset[str]] = _STD_ATTRS

    def process(self, msg, kwargs):
        extra = kwargs.get("extra")
        if extra is None or not isinstance(extra, dict):
            extra = {}

        moved = {}
        for k in list(kwargs.keys()):
            if k in self._allowed_passthrough:
                continue
            moved[k] = kwargs.pop(k)

        for k, v in moved.items():
            key = k
            if key in self._logrecord_attrs:
                key = f"field_{key}"
            if key not in extra:
                extra[key] = v

        kwargs["extra"] = extra
        return msg, kwargs


# ---------- Public configuration API ----------

_DESTKIT_LOGGER_NAME = "destkit"
_configured = False
_stdout_handler_key = "_destkit_stdout_handler"


def _bootstrap_minimal() -> None:
    """Install a NullHandler to keep the library silent by default."""
    global _configured
    if _configured:
        return
    lg = logging.getLogger(_DESTKIT_LOGGER_NAME)
    lg.setLevel(logging.DEBUG)
    if not any(isinstance(h, logging.NullHandler) for h in lg.handlers):
        lg.addHandler(logging.NullHandler())
    _configured = True


def get_logger(name: str | None = None) -> logging.LoggerAdapter:
    """
    Return a namespaced logger adapter that accepts arbitrary keyword fields.
    The base logger is silent by default; call `enable_stdout_logging()` in the CLI/tests.
    """
    _bootstrap_minimal()
    base = logging.getLogger(_DESTKIT_LOGGER_NAME)
    target = base.getChild(name) if name else base
    return _KwExtraAdapter(target, {})


def _resolve_level(level: int | str) -> int:
    if isinstance(level, int):
        return level
    if isinstance(level, str):
        val = getattr(logging, level.upper(), None)
        if isinstance(val, int):
            return val
    raise ValueError("Invalid level name")


def enable_stdout_logging(
    *,
    stream: IO[str] | None = None,
    level: int | str = logging.DEBUG,
    include_stack: bool = False,
    pretty: bool = False,
) -> None:
    """
    Attach a stream handler (stdout unless `stream` is given).

    - default -> AirbyteLogFormatter (protocol LOG lines)
    - pretty=True -> HumanFormatter
    """
    lvl = _resolve_level(level)
    _bootstrap_minimal()
    lg = logging.getLogger(_DESTKIT_LOGGER_NAME)

    disable_stdout_logging()  # clear previous

    fmt: logging.Formatter
    if pretty:
        fmt = HumanFormatter()
    else:
        fmt = AirbyteLogFormatter(include_stack=include_stack)

    h = logging.StreamHandler(stream or sys.stdout)
    h.set_name(_stdout_handler_key)
    h.setLevel(lvl)
    h.setFormatter(fmt)
    lg.addHandler(h)


def disable_stdout_logging() -> None:
    """Detach a previously installed stream handler, if present."""
    lg = logging.getLogger(_DESTKIT_LOGGER_NAME)
    for h in list(lg.handlers):
        if h.get_name() == _stdout_handler_key:
            lg.removeHandler(h)


def configure_from_env(*, stream: IO[str] | None = None) -> None:
    """
    Convenience config for the CLI and tests.

    Env:
      - DESTKIT_LOG_LEVEL=DEBUG|INFO|...   (default INFO)
      - DESTKIT_LOG_PRETTY=1               (human formatter instead of LOG envelopes)
      - DESTKIT_LOG_STACK=1                (include stack traces)
    """
    level = os.getenv("DESTKIT_LOG_LEVEL", "INFO")
    pretty = os.getenv("DESTKIT_LOG_PRETTY", "").lower() in ("1", "true", "yes", "on")
    with_stack = os.getenv("DESTKIT_LOG_STACK", "").lower() in ("1", "true", "yes", "on")

    _bootstrap_minimal()
    enable_stdout_logging(stream=stream, level=level, include_stack=with_stack, pretty=pretty)


# Initialize minimal config on import (silent by default).
_bootstrap_minimal()
