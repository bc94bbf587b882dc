"""Type validator: checks a candidate record against its schema's type families.

Only keys that are both present in the record and declared in the schema are
checked; ``None`` is always accepted (no NOT NULL enforcement here). Every
present column is checked before the verdict, and all mismatches are reported
together in schema column order.
"""
from __future__ import annotations
from typing import Any, Mapping

from .errors import MissingPrimaryKey, TypeIssue, ValidationFailed
from .schema import SchemaDescriptor, TypeTag

# only what sqlite3 binds natively; Decimal and Fraction are rejected
_NUMERIC = (int, float)
_BINARY = (bytes, bytearray, memoryview)


def category_of(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, int):
        return "integer"
    if isinstance(value, _NUMERIC):
        return "real"
    if isinstance(value, str):
        return "text"
    if isinstance(value, _BINARY):
        return "blob"
    return type(value).__name__


def matches(tag: TypeTag, value: Any) -> bool:
    if value is None:
        return True
    if tag.numeric:
        # bool is an int subclass but not a number for our purposes
        return isinstance(value, _NUMERIC) and not isinstance(value, bool)
    if tag is TypeTag.TEXT:
        return isinstance(value, str)
    return isinstance(value, _BINARY)


def _expected(tag: TypeTag) -> str:
    return {
        TypeTag.INTEGER: "INTEGER (numeric)",
        TypeTag.REAL: "REAL (numeric)",
        TypeTag.TEXT: "TEXT (str)",
        TypeTag.BLOB: "BLOB (bytes)",
    }[tag]


def validate_record(schema: SchemaDescriptor, record: Mapping[str, Any]) -> None:
    issues = []
    for column, tag in schema.columns.items():
        if column not in record:
            continue
        value = record[column]
        if not matches(tag, value):
            issues.append(TypeIssue(column, _expected(tag), category_of(value)))
    if issues:
        raise ValidationFailed(issues)


def require_primary_key(schema: SchemaDescriptor, record: Mapping[str, Any]) -> Any:
    value = record.get(schema.primary_key)
    if value is None:
        raise MissingPrimaryKey(schema.primary_key)
    return value
