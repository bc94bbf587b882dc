"""Dynamic, schema-driven record store on top of SQLite.

Single source of truth for the package version so that code, tests, and
scripts can import it without duplicating literals.
"""

PACKAGE_VERSION = "0.1.0"  # Keep in sync with pyproject version.

from .errors import (  # noqa: E402
    RecordStoreError, SchemaInvalid, ValidationFailed, MissingPrimaryKey,
    EngineError, IOFailure, TransactionError,
)
from .schema import TypeTag, SchemaDescriptor  # noqa: E402
from .events import EventKind, Event, EventNotifier  # noqa: E402
from .store import RecordStore  # noqa: E402

__all__ = [
    "PACKAGE_VERSION",
    "RecordStore", "SchemaDescriptor", "TypeTag",
    "EventKind", "Event", "EventNotifier",
    "RecordStoreError", "SchemaInvalid", "ValidationFailed", "MissingPrimaryKey",
    "EngineError", "IOFailure", "TransactionError",
]
