"""Lightweight structured logging helper.

Emits one JSON object per line to stderr. The threshold comes from LOG_LEVEL
and is read on every call so operators (and tests) can change it at runtime.
"""
from __future__ import annotations
import os, sys, json, time, threading

_lock = threading.Lock()
COMPONENT = "recordstore"
LEVEL_ORDER = ["DEBUG", "INFO", "WARN", "ERROR"]
_ALIASES = {"WARNING": "WARN", "CRITICAL": "ERROR", "FATAL": "ERROR"}


def _normalize(level: str) -> str:
    level = level.upper()
    return _ALIASES.get(level, level)


def _threshold() -> str:
    return _normalize(os.environ.get("LOG_LEVEL", "INFO"))


def _should(level: str) -> bool:
    try:
        return LEVEL_ORDER.index(level) >= LEVEL_ORDER.index(_threshold())
    except ValueError:
        return True


def _default(value):
    # bytes and other non-JSON values (sqlite rows, exceptions, enums)
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value).hex()
    if isinstance(value, BaseException):
        return f"{type(value).__name__}: {value}"
    return str(value)


def log(level: str, event: str, **fields):
    level = _normalize(level)
    if not _should(level):
        return
    record = {
        "ts": time.strftime('%Y-%m-%dT%H:%M:%SZ', time.gmtime()),
        "level": level,
        "event": event,
        "component": COMPONENT,
    }
    record.update(fields)
    line = json.dumps(record, separators=(',', ':'), default=_default)
    with _lock:
        sys.stderr.write(line + "\n")
        sys.stderr.flush()

def debug(event: str, **fields): log("DEBUG", event, **fields)
def info(event: str, **fields): log("INFO", event, **fields)
def warn(event: str, **fields): log("WARN", event, **fields)
def error(event: str, **fields): log("ERROR", event, **fields)
