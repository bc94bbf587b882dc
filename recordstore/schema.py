"""Runtime schema descriptor.

A table is described by an ordered mapping column name -> TypeTag plus the
name of the primary-key column. Column order is fixed at construction and only
ever grows at the end (``append_column``), so every generated statement binds
parameters in the same order.
"""
from __future__ import annotations
import re
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Union

from .errors import SchemaInvalid

IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class TypeTag(str, Enum):
    INTEGER = "INTEGER"
    REAL = "REAL"
    TEXT = "TEXT"
    BLOB = "BLOB"

    @classmethod
    def parse(cls, declared: Union["TypeTag", str, None]) -> "TypeTag":
        """Map a declared SQL type onto a type family.

        Exact family names win; anything else follows SQLite's column affinity
        rules, with NUMERIC affinity folded into REAL.
        """
        if isinstance(declared, cls):
            return declared
        text = (declared or "").strip().upper()
        if text in cls.__members__:
            return cls[text]
        if "INT" in text:
            return cls.INTEGER
        if any(tok in text for tok in ("CHAR", "CLOB", "TEXT")):
            return cls.TEXT
        if not text or "BLOB" in text:
            return cls.BLOB
        return cls.REAL

    @property
    def numeric(self) -> bool:
        return self in (TypeTag.INTEGER, TypeTag.REAL)


ColumnsLike = Union[Mapping[str, Union[TypeTag, str]], Iterable[tuple]]


class SchemaDescriptor:
    """Table name, primary key and ordered column types.

    Construction never raises for structural defects; call ``problems()`` or
    ``check()`` to find out whether the descriptor is usable. Unknown type
    declarations are mapped by affinity (see ``TypeTag.parse``).
    """

    def __init__(self, table_name: str, primary_key: str, columns: ColumnsLike):
        self._table_name = table_name
        self._primary_key = primary_key
        items = columns.items() if isinstance(columns, Mapping) else columns
        self._columns: Dict[str, TypeTag] = {}
        for name, declared in items:
            self._columns[name] = TypeTag.parse(declared)

    @property
    def table_name(self) -> str:
        return self._table_name

    @property
    def primary_key(self) -> str:
        return self._primary_key

    @property
    def columns(self) -> Dict[str, TypeTag]:
        """Copy of the ordered column map."""
        return dict(self._columns)

    @property
    def column_names(self) -> List[str]:
        return list(self._columns)

    def type_of(self, column: str) -> TypeTag:
        return self._columns[column]

    def __contains__(self, column: object) -> bool:
        return column in self._columns

    def __len__(self) -> int:
        return len(self._columns)

    def __repr__(self) -> str:
        cols = ", ".join(f"{n} {t.value}" for n, t in self._columns.items())
        return f"SchemaDescriptor({self._table_name!r}, pk={self._primary_key!r}, [{cols}])"

    def problems(self) -> List[str]:
        found = []
        if not isinstance(self._table_name, str) or not IDENTIFIER_RE.match(self._table_name):
            found.append(f"Invalid table name: {self._table_name!r}")
        if not self._columns:
            found.append("Columns definition must not be empty")
        for name in self._columns:
            if not isinstance(name, str) or not IDENTIFIER_RE.match(name):
                found.append(f"Invalid column name: {name!r}")
        if self._primary_key not in self._columns:
            found.append(f"Columns definition must include the primary key column: {self._primary_key}")
        return found

    def check(self) -> "SchemaDescriptor":
        found = self.problems()
        if found:
            raise SchemaInvalid(found)
        return self

    def append_column(self, name: str, declared: Union[TypeTag, str]) -> TypeTag:
        if not isinstance(name, str) or not IDENTIFIER_RE.match(name):
            raise SchemaInvalid([f"Invalid column name: {name!r}"])
        if name in self._columns:
            raise SchemaInvalid([f"Column already defined: {name}"])
        tag = TypeTag.parse(declared)
        self._columns[name] = tag
        return tag

    @classmethod
    def from_catalog(cls, table_name: str, rows: Iterable[Mapping[str, Any]]) -> "SchemaDescriptor":
        """Build a descriptor from ``PRAGMA table_info`` rows.

        The first column flagged ``pk`` becomes the primary key; a table
        without one yields a descriptor whose ``check()`` fails.
        """
        columns = []
        primary_key = ""
        for row in rows:
            columns.append((row["name"], row["type"]))
            if row["pk"] and not primary_key:
                primary_key = row["name"]
        return cls(table_name, primary_key, columns)
