"""Statement builder.

Pure functions over a SchemaDescriptor that return parameterized statements.
All dynamic SQL text in the package is produced here; identifiers come from a
checked descriptor (see ``SchemaDescriptor.problems``), values are always bound
as ``?`` parameters.
"""
from __future__ import annotations
from typing import Any, List, Mapping, NamedTuple, Tuple, Union

from .schema import SchemaDescriptor, TypeTag


class Statement(NamedTuple):
    sql: str
    params: Tuple[Any, ...] = ()


def _present(schema: SchemaDescriptor, record: Mapping[str, Any], *, skip_key: bool = False) -> List[str]:
    """Declared columns supplied by ``record``, in schema order."""
    return [
        col for col in schema.column_names
        if col in record and not (skip_key and col == schema.primary_key)
    ]


def create_table(schema: SchemaDescriptor) -> Statement:
    parts = []
    for name, tag in schema.columns.items():
        clause = f"{name} {tag.value}"
        if name == schema.primary_key:
            clause += " PRIMARY KEY"
        parts.append(clause)
    return Statement(f"CREATE TABLE IF NOT EXISTS {schema.table_name} ({', '.join(parts)})")


def insert(schema: SchemaDescriptor, record: Mapping[str, Any]) -> Statement:
    # An empty column list is emitted as-is and rejected by the engine.
    cols = _present(schema, record)
    placeholders = ", ".join("?" for _ in cols)
    sql = f"INSERT INTO {schema.table_name} ({', '.join(cols)}) VALUES ({placeholders})"
    return Statement(sql, tuple(record[c] for c in cols))


def update(schema: SchemaDescriptor, record: Mapping[str, Any]) -> Statement:
    cols = _present(schema, record, skip_key=True)
    assignments = ", ".join(f"{c} = ?" for c in cols)
    sql = f"UPDATE {schema.table_name} SET {assignments} WHERE {schema.primary_key} = ?"
    params = tuple(record[c] for c in cols) + (record.get(schema.primary_key),)
    return Statement(sql, params)


def delete(schema: SchemaDescriptor, pk_value: Any) -> Statement:
    return Statement(f"DELETE FROM {schema.table_name} WHERE {schema.primary_key} = ?", (pk_value,))


def exists_by_key(schema: SchemaDescriptor, pk_value: Any) -> Statement:
    return Statement(f"SELECT COUNT(*) FROM {schema.table_name} WHERE {schema.primary_key} = ?", (pk_value,))


def select_by_key(schema: SchemaDescriptor, pk_value: Any) -> Statement:
    return Statement(f"SELECT * FROM {schema.table_name} WHERE {schema.primary_key} = ?", (pk_value,))


def select_all(schema: SchemaDescriptor) -> Statement:
    return Statement(f"SELECT * FROM {schema.table_name}")


def count(schema: SchemaDescriptor) -> Statement:
    return Statement(f"SELECT COUNT(*) FROM {schema.table_name}")


def add_column(schema: SchemaDescriptor, name: str, declared: Union[TypeTag, str]) -> Statement:
    tag = TypeTag.parse(declared)
    return Statement(f"ALTER TABLE {schema.table_name} ADD COLUMN {name} {tag.value}")


def drop_table(schema: SchemaDescriptor) -> Statement:
    return Statement(f"DROP TABLE IF EXISTS {schema.table_name}")


def clear_table(schema: SchemaDescriptor) -> Statement:
    return Statement(f"DELETE FROM {schema.table_name}")


def table_info(table_name: str) -> Statement:
    return Statement(f"PRAGMA table_info({table_name})")


def list_tables() -> Statement:
    return Statement("SELECT name FROM sqlite_master WHERE type='table' AND substr(name, 1, 7) != 'sqlite_' ORDER BY name")


def table_exists(table_name: str) -> Statement:
    return Statement("SELECT name FROM sqlite_master WHERE type='table' AND name=?", (table_name,))
