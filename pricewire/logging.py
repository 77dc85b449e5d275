"""
pricewire.logging
-----------------

Structured logging for the encoder, price feed, connectors and wrapper:
- JSON or concise text formats
- Context-local fields via `contextvars` (trace_id, feed, asset, contract, ...)
- Safe value coercion (bytes -> hex, dataclasses -> dict)
- Helpers to bind context fields and open a trace scope per call
- Fields named like key material (private_key, signing_key, ...) are redacted

Usage
-----
    from pricewire import logging as plog

    plog.configure(json=False, level="INFO")  # once at process start
    log = plog.get_logger(__name__)

    with plog.trace_scope():
        plog.bind(feed="redstone", asset="ETH")
        log.info("package admitted", extra={"symbols": 2})

Nothing in pricewire passes private keys to a logger; `PriceSigner.__repr__`
hides the key so accidental `%r` formatting stays safe too.
"""

from __future__ import annotations

import datetime as _dt
import io
import json
import logging
import os
import sys
import traceback
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import asdict, is_dataclass
from typing import Any, Dict, Optional

# ----------------------------
# Context
# ----------------------------

_LOG_CONTEXT: ContextVar[Dict[str, Any]] = ContextVar("_PRICEWIRE_LOG_CONTEXT", default={})

DEFAULT_CONTEXT_KEYS = (
    "trace_id",
    "feed",
    "asset",
    "contract",
    "function",
    "encoding",
)

_SECRET_FIELDS = frozenset(("private_key", "signing_key", "key", "secret"))
_REDACTED = "<redacted>"

_RECORD_ATTRS = frozenset(
    (
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
        "taskName",
    )
)


def context() -> Dict[str, Any]:
    """Return a *copy* of the active logging context."""
    return dict(_LOG_CONTEXT.get())


def bind(**fields: Any) -> None:
    """Merge fields into the active context."""
    cur = dict(_LOG_CONTEXT.get())
    cur.update({k: _REDACTED if k in _SECRET_FIELDS else _coerce_value(v) for k, v in fields.items()})
    _LOG_CONTEXT.set(cur)


def clear_context() -> None:
    _LOG_CONTEXT.set({})


@contextmanager
def trace_scope(trace_id: Optional[str] = None, **fields: Any):
    """
    Ensure a trace_id (plus any extra fields) for the duration of the scope.
    Restores prior context on exit.
    """
    prev = dict(_LOG_CONTEXT.get())
    try:
        bind(trace_id=trace_id or short_uuid(), **fields)
        yield
    finally:
        _LOG_CONTEXT.set(prev)


def short_uuid() -> str:
    return uuid.uuid4().hex[:12]


# ----------------------------
# Formatters
# ----------------------------


def _utcnow_iso() -> str:
    return _dt.datetime.now(_dt.timezone.utc).isoformat(timespec="milliseconds")


def _coerce_value(v: Any) -> Any:
    if v is None or isinstance(v, (bool, int, float, str, list, dict)):
        return v
    if isinstance(v, (bytes, bytearray)):
        return "0x" + bytes(v).hex()
    if isinstance(v, tuple):
        return [_coerce_value(x) for x in v]
    if is_dataclass(v) and not isinstance(v, type):
        return asdict(v)
    return str(v)


def _extras(record: logging.LogRecord) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for k, v in record.__dict__.items():
        if k.startswith("_") or k in _RECORD_ATTRS:
            continue
        out[k] = _REDACTED if k in _SECRET_FIELDS else _coerce_value(v)
    return out


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "ts": _utcnow_iso(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        payload.update(context())
        for k, v in _extras(record).items():
            payload.setdefault(k, v)
        if record.exc_info:
            payload["err"] = "".join(traceback.format_exception(*record.exc_info)).rstrip()
        return json.dumps(payload, default=str, separators=(",", ":"))


class TextFormatter(logging.Formatter):
    """
    Human-friendly one-liner:
      2026-01-05T12:34:56.789+00:00 | INFO  | pricewire.verifier | trace_id=abc123 feed=redstone | prices set
    """

    def format(self, record: logging.LogRecord) -> str:
        ctx = context()
        ctx_parts = [f"{k}={ctx[k]}" for k in DEFAULT_CONTEXT_KEYS if ctx.get(k) is not None]
        extras = [f"{k}={v}" for k, v in _extras(record).items() if k not in ctx]

        line = f"{_utcnow_iso()} | {record.levelname:<5} | {record.name}"
        if ctx_parts:
            line += " | " + " ".join(ctx_parts)
        if extras:
            line += " " + " ".join(extras)
        line += f" | {record.getMessage()}"
        if record.exc_info:
            line += "\n" + "".join(traceback.format_exception(*record.exc_info)).rstrip()
        return line


# ----------------------------
# Public setup API
# ----------------------------

_LEVEL_TO_INT = {
    "CRITICAL": logging.CRITICAL,
    "ERROR": logging.ERROR,
    "WARNING": logging.WARNING,
    "INFO": logging.INFO,
    "DEBUG": logging.DEBUG,
    "NOTSET": logging.NOTSET,
}


def configure(
    *,
    json: Optional[bool] = None,
    level: str | int = "INFO",
    stream: io.TextIOBase = sys.stderr,
) -> None:
    """
    Configure the `pricewire` logger hierarchy.

    Parameters
    ----------
    json : bool | None
        If None, determined by env PRICEWIRE_LOG_FORMAT=(json|text), else text
        on a TTY and JSON otherwise.
    level : str | int
        Minimum log level.
    stream : TextIO
        Stream for the console handler (default: stderr).
    """
    logger = logging.getLogger("pricewire")
    logger.setLevel(_coerce_level(level))
    for h in list(logger.handlers):
        logger.removeHandler(h)

    handler = logging.StreamHandler(stream)
    handler.setFormatter(JSONFormatter() if _decide_json(json, stream) else TextFormatter())
    logger.addHandler(handler)
    logger.propagate = False

    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(max(_coerce_level(level), logging.WARNING))


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Get a logger under the `pricewire` hierarchy."""
    if not name:
        return logging.getLogger("pricewire")
    if name == "pricewire" or name.startswith("pricewire."):
        return logging.getLogger(name)
    return logging.getLogger(f"pricewire.{name}")


def _coerce_level(level: str | int) -> int:
    if isinstance(level, int):
        return level
    return _LEVEL_TO_INT.get(level.upper(), logging.INFO)


def _decide_json(json_flag: Optional[bool], stream: io.TextIOBase) -> bool:
    if json_flag is not None:
        return json_flag
    env = os.environ.get("PRICEWIRE_LOG_FORMAT", "").strip().lower()
    if env in ("json", "text"):
        return env == "json"
    try:
        return not stream.isatty()
    except (AttributeError, ValueError):
        return True


__all__ = [
    "bind",
    "clear_context",
    "context",
    "trace_scope",
    "short_uuid",
    "JSONFormatter",
    "TextFormatter",
    "configure",
    "get_logger",
]
