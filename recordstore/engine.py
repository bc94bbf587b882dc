"""Storage-engine abstraction.

Defines the minimal surface the RecordStore needs from a storage engine so
another engine can be plugged in with minimal changes. ``sqlite3.Connection``
satisfies ``SessionLike`` as-is.

KISS: only the operations the store performs are abstracted.
"""
from __future__ import annotations
from typing import Any, Iterable, Protocol, Sequence


class CursorLike(Protocol):  # pragma: no cover - structural typing helper
    rowcount: int
    description: Any
    def fetchone(self) -> Any: ...
    def fetchall(self) -> Sequence[Any]: ...


class SessionLike(Protocol):  # pragma: no cover - structural typing helper
    in_transaction: bool
    def execute(self, sql: str, parameters: Iterable[Any] = ...) -> CursorLike: ...
    def close(self) -> None: ...


class Engine(Protocol):
    path: str

    @property
    def is_memory(self) -> bool: ...

    def connect(self, write: bool = True) -> SessionLike:
        """Open a session in autocommit mode.

        Transaction boundaries are driven by the caller with explicit
        BEGIN / COMMIT / ROLLBACK statements. A write=False session leaves
        the database file untouched.
        """
        ...
