"""Lifecycle notifications for a RecordStore.

A registry keyed by ``EventKind``. Each kind has a default handler that writes
a structured log line; callers override per kind with ``on`` and restore with
``reset``. Handlers are a side channel only: a handler that raises is logged
and ignored, and nothing a handler returns reaches the store.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Optional, Union

from .logging_util import log, warn


class EventKind(str, Enum):
    DATABASE_CONNECTED = "database_connected"
    TABLE_READY = "table_ready"
    RECORD_UPSERTED = "record_upserted"
    RECORD_MODIFIED = "record_modified"
    RECORD_NOT_FOUND = "record_not_found"
    RECORD_DELETED = "record_deleted"
    TRANSACTION_STARTED = "transaction_started"
    TRANSACTION_COMMITTED = "transaction_committed"
    TRANSACTION_ROLLED_BACK = "transaction_rolled_back"
    TABLE_DROPPED = "table_dropped"
    TABLE_CLEARED = "table_cleared"
    COLUMN_ADDED = "column_added"
    DATA_EXPORTED = "data_exported"
    CONNECTION_CLOSED = "connection_closed"
    DATABASE_DELETED = "database_deleted"
    DATABASE_ERROR = "database_error"
    VALIDATION_ERROR = "validation_error"


# Log level used by the default handler of each kind; unlisted kinds log at INFO.
DEFAULT_LEVELS: Dict[EventKind, str] = {
    EventKind.RECORD_NOT_FOUND: "WARN",
    EventKind.TRANSACTION_ROLLED_BACK: "WARN",
    EventKind.DATABASE_ERROR: "ERROR",
    EventKind.VALIDATION_ERROR: "ERROR",
    EventKind.TRANSACTION_STARTED: "DEBUG",
    EventKind.TRANSACTION_COMMITTED: "DEBUG",
}


@dataclass(frozen=True)
class Event:
    kind: EventKind
    table: Optional[str] = None
    data: Dict[str, Any] = field(default_factory=dict)

    def __getitem__(self, key: str) -> Any:
        return self.data[key]

    def get(self, key: str, default: Any = None) -> Any:
        return self.data.get(key, default)


Handler = Callable[[Event], Any]


def log_event(event: Event) -> None:
    """Default handler: one structured log line per event."""
    level = DEFAULT_LEVELS.get(event.kind, "INFO")
    log(level, event.kind.value, table=event.table, **event.data)


class EventNotifier:
    """Per-store registry of event handlers.

    ``enabled`` is a construction option of the owning store; when False,
    ``emit`` is a no-op for every kind.
    """

    def __init__(self, enabled: bool = True):
        self.enabled = enabled
        self._handlers: Dict[EventKind, Handler] = {}

    @staticmethod
    def _kind(kind: Union[EventKind, str]) -> EventKind:
        return kind if isinstance(kind, EventKind) else EventKind(kind)

    def on(self, kind: Union[EventKind, str], handler: Handler) -> None:
        if not callable(handler):
            raise TypeError("handler must be callable")
        self._handlers[self._kind(kind)] = handler

    def reset(self, kind: Union[EventKind, str, None] = None) -> None:
        if kind is None:
            self._handlers.clear()
        else:
            self._handlers.pop(self._kind(kind), None)

    def is_overridden(self, kind: Union[EventKind, str]) -> bool:
        return self._kind(kind) in self._handlers

    def handler_for(self, kind: Union[EventKind, str]) -> Handler:
        return self._handlers.get(self._kind(kind), log_event)

    def emit(self, kind: Union[EventKind, str], table: Optional[str] = None, **data: Any) -> None:
        if not self.enabled:
            return
        event = Event(self._kind(kind), table, data)
        handler = self.handler_for(event.kind)
        try:
            handler(event)
        except Exception as e:
            warn("event_handler_failed", kind=event.kind.value, table=table, error=str(e))
