"""RecordStore: typed CRUD over a table whose schema is defined at runtime.

The store owns one session to the storage engine and one SchemaDescriptor.
Every write is validated against the descriptor, every statement comes from
``recordstore.statements``, and every state transition is reported through the
store's EventNotifier.

Usage::

    store = RecordStore("data.db", "readings", "id",
                        {"id": "TEXT", "name": "TEXT", "value": "REAL"})
    if store.open():
        store.upsert({"id": "R001", "name": "Example", "value": 123.45})
        store.get("R001")
        store.upsert_batch([{"id": "R002"}, {"id": "R003", "value": 1.5}])
        store.close()

A store is not thread-safe: use one store per thread, or serialize access
around it. Transactions are scoped to the store's single session and do not
nest.
"""
from __future__ import annotations
import csv, os, sqlite3
from contextlib import contextmanager
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Sequence, Union

from . import statements
from .engine import Engine, SessionLike
from .errors import (
    EngineError, IOFailure, MissingPrimaryKey, RecordStoreError, SchemaInvalid,
    TransactionError, ValidationFailed,
)
from .events import EventKind, EventNotifier
from .logging_util import debug
from .schema import IDENTIFIER_RE, ColumnsLike, SchemaDescriptor, TypeTag
from .sqlite_engine import MEMORY_PATH, EngineConfig, SQLiteEngine, database_exists
from .statements import Statement
from .validation import require_primary_key, validate_record

Record = Dict[str, Any]
_SIDECARS = ("-wal", "-shm", "-journal")


def _events_default() -> bool:
    return os.environ.get("RECORDSTORE_EVENTS", "1") != "0"


def _csv_cell(value: Any) -> Any:
    if value is None:
        return ""
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value).hex()
    return value


class RecordStore:
    """Facade over one table of a SQLite database.

    Construction never raises for a malformed schema: the defect is reported
    as a ``database_error`` event, kept in ``last_error``, and ``open()``
    returns False.

    With ``read_only=True`` the session is opened read-only: ``open()``
    requires the table to exist instead of creating it, and writes fail with
    EngineError.
    """

    def __init__(self, path: Union[str, os.PathLike], table_name: str, primary_key: str,
                 columns: ColumnsLike, *, notifier: Optional[EventNotifier] = None,
                 engine: Optional[Engine] = None, config: Optional[EngineConfig] = None,
                 events_enabled: Optional[bool] = None, read_only: bool = False):
        if notifier is None:
            notifier = EventNotifier(enabled=_events_default() if events_enabled is None else events_enabled)
        elif events_enabled is not None:
            notifier.enabled = events_enabled
        self.notifier = notifier
        self.path = engine.path if engine is not None else os.fspath(path)
        self._engine = engine
        self._engine_config = config
        self.read_only = read_only
        self._schema = SchemaDescriptor(table_name, primary_key, columns)
        self._session: Optional[SessionLike] = None
        self._in_tx = False
        self.last_error: Optional[RecordStoreError] = None
        self._schema_error: Optional[SchemaInvalid] = None
        try:
            self._schema.check()
        except SchemaInvalid as e:
            self._schema_error = e
            self.last_error = e
            self._report("schema", e)

    @classmethod
    def attach(cls, path: Union[str, os.PathLike], table_name: str, **kwargs: Any) -> "RecordStore":
        """Build a store for an existing table, reading its schema from the catalog."""
        path = os.fspath(path)
        if not IDENTIFIER_RE.match(table_name):
            raise SchemaInvalid([f"Invalid table name: {table_name!r}"])
        if not database_exists(path):
            raise EngineError(f"Database not found: {path}", "attach")
        engine = SQLiteEngine(path, kwargs.pop("config", None))
        try:
            conn = engine.connect(write=False)
            try:
                rows = conn.execute(*statements.table_info(table_name)).fetchall()
            finally:
                conn.close()
        except sqlite3.Error as e:
            raise EngineError(f"attach failed: {e}", "attach") from e
        if not rows:
            raise EngineError(f"Table not found: {table_name}", "attach")
        schema = SchemaDescriptor.from_catalog(table_name, rows)
        return cls(path, schema.table_name, schema.primary_key, schema.columns, engine=engine, **kwargs)

    # --- Properties -----------------------------------------------------------------
    @property
    def schema(self) -> SchemaDescriptor:
        return self._schema

    @property
    def table_name(self) -> str:
        return self._schema.table_name

    @property
    def primary_key(self) -> str:
        return self._schema.primary_key

    @property
    def is_open(self) -> bool:
        return self._session is not None

    @property
    def in_transaction(self) -> bool:
        return self._in_tx

    def __repr__(self) -> str:
        state = "open" if self.is_open else "closed"
        return f"<RecordStore {self.path!r} table={self.table_name!r} {state}>"

    def __enter__(self) -> "RecordStore":
        if not self.open():
            raise self.last_error or EngineError("open failed", "open")
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # --- Internal -------------------------------------------------------------------
    def _emit(self, kind: EventKind, **data: Any) -> None:
        self.notifier.emit(kind, self.table_name, **data)

    def _report(self, operation: str, exc: BaseException) -> None:
        self._emit(EventKind.DATABASE_ERROR, operation=operation,
                   error=str(exc), error_type=type(exc).__name__)

    def _engine_failure(self, operation: str, exc: sqlite3.Error) -> EngineError:
        failure = EngineError(f"{operation} failed: {exc}", operation)
        self.last_error = failure
        self._report(operation, exc)
        return failure

    def _require_session(self, operation: str) -> SessionLike:
        if self._session is None:
            raise EngineError("store is not open", operation)
        return self._session

    def _run(self, session: SessionLike, operation: str, stmt: Statement):
        try:
            return session.execute(stmt.sql, stmt.params)
        except sqlite3.Error as e:
            raise self._engine_failure(operation, e) from e

    def _execute(self, operation: str, stmt: Statement):
        return self._run(self._require_session(operation), operation, stmt)

    def _validated_key(self, operation: str, record: Mapping[str, Any]) -> Any:
        try:
            validate_record(self._schema, record)
            return require_primary_key(self._schema, record)
        except (ValidationFailed, MissingPrimaryKey) as e:
            self.last_error = e
            self._emit(EventKind.VALIDATION_ERROR, operation=operation,
                       column=e.column, error=str(e), error_type=type(e).__name__)
            raise

    def _require_table(self, session: SessionLike) -> None:
        if self._run(session, "open", statements.table_exists(self.table_name)).fetchone() is None:
            failure = EngineError(f"Table not found: {self.table_name}", "open")
            self.last_error = failure
            self._report("open", failure)
            raise failure

    def _exists(self, operation: str, pk_value: Any) -> bool:
        return self._execute(operation, statements.exists_by_key(self._schema, pk_value)).fetchone()[0] > 0

    def _to_record(self, row: sqlite3.Row) -> Record:
        keys = row.keys()
        return {col: (row[col] if col in keys else None) for col in self._schema.column_names}

    # --- Lifecycle ------------------------------------------------------------------
    def open(self) -> bool:
        """Open the session and create the table if absent. Never raises."""
        if self._session is not None:
            return True
        if self._schema_error is not None:
            self.last_error = self._schema_error
            self._report("open", self._schema_error)
            return False
        try:
            if self._engine is None:
                self._engine = SQLiteEngine(self.path, self._engine_config)
            session = self._engine.connect(write=not self.read_only)
        except (sqlite3.Error, OSError, ValueError) as e:
            self.last_error = EngineError(f"Error connecting to database: {e}", "open")
            self._report("open", e)
            return False
        self._emit(EventKind.DATABASE_CONNECTED, path=self.path)
        try:
            if self.read_only:
                self._require_table(session)
            else:
                self._run(session, "open", statements.create_table(self._schema))
        except EngineError:
            session.close()
            return False
        self._session = session
        self._emit(EventKind.TABLE_READY)
        return True

    def close(self) -> None:
        """Release the session. Closing a closed store is a no-op.

        An open transaction is rolled back first.
        """
        session = self._session
        if session is None:
            return
        try:
            if self._in_tx:
                try:
                    session.execute("ROLLBACK")
                    self._emit(EventKind.TRANSACTION_ROLLED_BACK, reason="close")
                except sqlite3.Error as e:
                    self._report("close", e)
            session.close()
        except sqlite3.Error as e:
            raise self._engine_failure("close", e) from e
        finally:
            self._session = None
            self._in_tx = False
        self._emit(EventKind.CONNECTION_CLOSED, path=self.path)

    def delete_store(self) -> None:
        """Close the session and remove the database file (and its sidecars)."""
        try:
            self.close()
        except EngineError:
            pass  # already reported by close()
        if self.path == MEMORY_PATH:
            return
        removed = False
        for candidate in [self.path] + [self.path + s for s in _SIDECARS]:
            if not os.path.exists(candidate):
                continue
            try:
                os.remove(candidate)
            except OSError as e:
                failure = IOFailure(f"Failed to delete database file: {candidate}", candidate)
                self.last_error = failure
                self._report("delete_store", e)
                raise failure from e
            removed = True
        if removed:
            self._emit(EventKind.DATABASE_DELETED, path=self.path)

    # --- Single-record CRUD ---------------------------------------------------------
    def upsert(self, record: Mapping[str, Any]) -> None:
        """Insert the record, or update the columns it supplies if the key exists.

        Columns absent from ``record`` keep their stored values on update.
        """
        pk = self._validated_key("upsert", record)
        if self._exists("upsert", pk):
            self._execute("upsert", statements.update(self._schema, record))
            action = "update"
        else:
            self._execute("upsert", statements.insert(self._schema, record))
            action = "insert"
        self._emit(EventKind.RECORD_UPSERTED, pk=pk, action=action)

    def modify(self, record: Mapping[str, Any]) -> bool:
        """Update an existing record; returns False (and notifies) if the key is absent."""
        pk = self._validated_key("modify", record)
        if not self._exists("modify", pk):
            self._emit(EventKind.RECORD_NOT_FOUND, operation="modify", pk=pk)
            return False
        self._execute("modify", statements.update(self._schema, record))
        self._emit(EventKind.RECORD_MODIFIED, pk=pk)
        return True

    def delete(self, pk_value: Any) -> bool:
        affected = self._execute("delete", statements.delete(self._schema, pk_value)).rowcount
        if affected > 0:
            self._emit(EventKind.RECORD_DELETED, pk=pk_value)
            return True
        self._emit(EventKind.RECORD_NOT_FOUND, operation="delete", pk=pk_value)
        return False

    def get(self, pk_value: Any) -> Optional[Record]:
        row = self._execute("get", statements.select_by_key(self._schema, pk_value)).fetchone()
        return self._to_record(row) if row is not None else None

    def get_all(self) -> List[Record]:
        rows = self._execute("get_all", statements.select_all(self._schema)).fetchall()
        return [self._to_record(row) for row in rows]

    def exists(self, pk_value: Any) -> bool:
        return self._exists("exists", pk_value)

    def count(self) -> int:
        return self._execute("count", statements.count(self._schema)).fetchone()[0]

    # --- Transactions & batch -------------------------------------------------------
    def begin_transaction(self) -> None:
        session = self._require_session("begin_transaction")
        if self._in_tx:
            raise TransactionError("transaction already in progress")
        self._run(session, "begin_transaction", Statement("BEGIN"))
        self._in_tx = True
        self._emit(EventKind.TRANSACTION_STARTED)

    def commit(self) -> None:
        session = self._require_session("commit")
        if not self._in_tx:
            raise TransactionError("no transaction in progress")
        try:
            self._run(session, "commit", Statement("COMMIT"))
        finally:
            self._in_tx = bool(getattr(session, "in_transaction", False))
        self._emit(EventKind.TRANSACTION_COMMITTED)

    def rollback(self) -> None:
        session = self._require_session("rollback")
        if not self._in_tx:
            raise TransactionError("no transaction in progress")
        try:
            self._run(session, "rollback", Statement("ROLLBACK"))
        finally:
            self._in_tx = bool(getattr(session, "in_transaction", False))
        self._emit(EventKind.TRANSACTION_ROLLED_BACK)

    @contextmanager
    def transaction(self) -> Iterator["RecordStore"]:
        """Commit on success; roll back and re-raise on any error."""
        self.begin_transaction()
        try:
            yield self
        except BaseException:
            if self._in_tx:
                try:
                    self.rollback()
                except RecordStoreError as rb_err:
                    debug("rollback_after_failure_failed", table=self.table_name, error=str(rb_err))
            raise
        self.commit()

    def upsert_batch(self, records: Optional[Iterable[Mapping[str, Any]]]) -> int:
        """Upsert every record in one transaction: all of them or none.

        The first failing record rolls the whole batch back and its error is
        re-raised. Returns the number of records written.
        """
        batch = list(records or ())
        if not batch:
            return 0
        with self.transaction():
            for record in batch:
                self.upsert(record)
        return len(batch)

    # --- Query & introspection ------------------------------------------------------
    def query(self, sql: str, params: Union[Sequence[Any], Mapping[str, Any]] = ()) -> List[Record]:
        """Run a caller-supplied read statement; bind values through ``params`` only."""
        bound = params if isinstance(params, Mapping) else tuple(params)
        cur = self._execute("query", Statement(sql, bound))
        names = [d[0] for d in (cur.description or ())]
        return [dict(zip(names, tuple(row))) for row in cur.fetchall()]

    def current_schema(self) -> Dict[str, str]:
        """Live catalog view of the table: column name -> declared type."""
        rows = self._execute("current_schema", statements.table_info(self.table_name)).fetchall()
        return {row["name"]: row["type"] for row in rows}

    def list_tables(self) -> List[str]:
        rows = self._execute("list_tables", statements.list_tables()).fetchall()
        return [row["name"] for row in rows]

    def table_exists(self, table_name: Optional[str] = None) -> bool:
        name = table_name or self.table_name
        return self._execute("table_exists", statements.table_exists(name)).fetchone() is not None

    # --- Table maintenance ----------------------------------------------------------
    def add_column(self, name: str, declared: Union[TypeTag, str]) -> TypeTag:
        """ALTER TABLE ... ADD COLUMN, then append the column to the schema."""
        problems = []
        if not isinstance(name, str) or not IDENTIFIER_RE.match(name):
            problems.append(f"Invalid column name: {name!r}")
        elif name in self._schema:
            problems.append(f"Column already defined: {name}")
        if problems:
            failure = SchemaInvalid(problems)
            self.last_error = failure
            self._report("add_column", failure)
            raise failure
        self._execute("add_column", statements.add_column(self._schema, name, declared))
        tag = self._schema.append_column(name, declared)
        self._emit(EventKind.COLUMN_ADDED, column=name, type=tag.value)
        return tag

    def drop_table(self) -> None:
        self._execute("drop_table", statements.drop_table(self._schema))
        self._emit(EventKind.TABLE_DROPPED)

    def clear_table(self) -> int:
        removed = self._execute("clear_table", statements.clear_table(self._schema)).rowcount
        self._emit(EventKind.TABLE_CLEARED, rows=removed)
        return removed

    # --- Export ---------------------------------------------------------------------
    def export_csv(self, path: Union[str, os.PathLike]) -> int:
        """Write a header of schema columns then every record; returns the row count."""
        path = os.fspath(path)
        records = self.get_all()
        columns = self._schema.column_names
        try:
            with open(path, "w", newline="", encoding="utf-8") as fh:
                writer = csv.writer(fh)
                writer.writerow(columns)
                for record in records:
                    writer.writerow([_csv_cell(record[c]) for c in columns])
        except OSError as e:
            failure = IOFailure(f"Failed to export data to {path}: {e}", path)
            self.last_error = failure
            self._report("export_csv", e)
            raise failure from e
        self._emit(EventKind.DATA_EXPORTED, path=path, rows=len(records))
        return len(records)
