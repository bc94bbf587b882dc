"""Error kinds raised by the record store.

Not-found outcomes are deliberately absent: modify/delete against a missing
key are reported through the ``record_not_found`` event, not raised.
"""
from __future__ import annotations
from typing import List, NamedTuple, Optional


class RecordStoreError(Exception):
    """Base class for every error the store raises."""


class SchemaInvalid(RecordStoreError):
    def __init__(self, problems: List[str]):
        self.problems = list(problems)
        super().__init__("; ".join(self.problems) or "invalid schema")


class TypeIssue(NamedTuple):
    column: str
    expected: str
    actual: str


class ValidationFailed(RecordStoreError):
    """One or more present values do not match their column's type family.

    ``column``/``expected``/``actual`` describe the first mismatch in schema
    column order; ``issues`` holds every mismatch found.
    """

    def __init__(self, issues: List[TypeIssue]):
        if not issues:
            raise ValueError("ValidationFailed requires at least one issue")
        self.issues = list(issues)
        first = self.issues[0]
        self.column = first.column
        self.expected = first.expected
        self.actual = first.actual
        msg = ", ".join(f"column '{i.column}' expects {i.expected}, got {i.actual}" for i in self.issues)
        super().__init__(msg)


class MissingPrimaryKey(RecordStoreError):
    def __init__(self, column: str):
        self.column = column
        super().__init__(f"Record must contain a value for primary key column: {column}")


class EngineError(RecordStoreError):
    """Failure surfaced by the storage engine (connectivity, syntax, constraint)."""

    def __init__(self, message: str, operation: Optional[str] = None):
        self.operation = operation
        super().__init__(message)


class IOFailure(RecordStoreError):
    def __init__(self, message: str, path: Optional[str] = None):
        self.path = path
        super().__init__(message)


class TransactionError(RecordStoreError):
    """Transaction state machine misuse (nested begin, commit while idle)."""
