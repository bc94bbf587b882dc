"""SQLite storage engine for the record store.

    - Environment driven tuning with clamping + sanity logging
    - Sessions in autocommit mode; transactions are explicit BEGIN/COMMIT/ROLLBACK
    - Read-only sessions (mode=ro&immutable=1 + query_only) for inspection
    - Health check helper + optional integrity_check (RECORDSTORE_VERIFY_ON_CONNECT=1)
    - Clear error for directory path misuse

One session per store: there is deliberately no pool here.
"""
from __future__ import annotations
import sqlite3, os
from dataclasses import dataclass, asdict
from pathlib import Path
from .logging_util import warn, debug
from typing import Any, Optional, Dict

MEMORY_PATH = ":memory:"

MAX_CACHE_KIB = 512 * 1024        # 512 MiB upper clamp
MIN_CACHE_KIB = 16                # SQLite minimum practical
DEFAULT_CACHE_KIB = 16 * 1024     # 16 MiB
MAX_BUSY_TIMEOUT_MS = 600_000
DEFAULT_BUSY_TIMEOUT_MS = 30_000
JOURNAL_MODES = ("DELETE", "TRUNCATE", "PERSIST", "MEMORY", "WAL", "OFF")
DEFAULT_JOURNAL_MODE = "WAL"


@dataclass
class EngineConfig:
    busy_timeout_ms: int = DEFAULT_BUSY_TIMEOUT_MS
    cache_kib: int = DEFAULT_CACHE_KIB
    journal_mode: str = DEFAULT_JOURNAL_MODE
    foreign_keys: bool = True
    verify_on_connect: bool = False

    @classmethod
    def from_env(cls) -> "EngineConfig":
        def _int(name: str, default: int) -> int:
            raw = os.environ.get(name)
            if raw is None:
                return default
            try:
                return int(raw)
            except ValueError:
                warn("invalid_env_int", key=name, value=raw, default=default)
                return default
        def _flag(name: str, default: bool) -> bool:
            raw = os.environ.get(name)
            if raw is None:
                return default
            return raw.strip().lower() in ("1", "true", "yes", "on")
        busy = _int("RECORDSTORE_BUSY_TIMEOUT_MS", DEFAULT_BUSY_TIMEOUT_MS)
        cache_kib = _int("RECORDSTORE_CACHE_SIZE_KIB", DEFAULT_CACHE_KIB)
        journal = os.environ.get("RECORDSTORE_JOURNAL_MODE", DEFAULT_JOURNAL_MODE).strip().upper()
        if journal not in JOURNAL_MODES:
            warn("invalid_env_choice", key="RECORDSTORE_JOURNAL_MODE", value=journal,
                 allowed=list(JOURNAL_MODES), default=DEFAULT_JOURNAL_MODE)
            journal = DEFAULT_JOURNAL_MODE
        # Clamp
        adjusted = {}
        if busy < 0 or busy > MAX_BUSY_TIMEOUT_MS:
            adjusted["busy_timeout_ms"] = busy
            busy = min(MAX_BUSY_TIMEOUT_MS, max(0, busy))
        if cache_kib < MIN_CACHE_KIB or cache_kib > MAX_CACHE_KIB:
            adjusted["cache_kib"] = cache_kib
            cache_kib = min(MAX_CACHE_KIB, max(MIN_CACHE_KIB, cache_kib))
        if adjusted:
            warn("engine_config_clamped", original=adjusted,
                 clamped={"busy_timeout_ms": busy, "cache_kib": cache_kib})
        return cls(
            busy_timeout_ms=busy,
            cache_kib=cache_kib,
            journal_mode=journal,
            foreign_keys=_flag("RECORDSTORE_FOREIGN_KEYS", True),
            verify_on_connect=_flag("RECORDSTORE_VERIFY_ON_CONNECT", False),
        )


def database_exists(path: str) -> bool:
    """True if a database file exists at ``path`` (``:memory:`` never does)."""
    return path != MEMORY_PATH and os.path.isfile(path)


class SQLiteEngine:
    """SQLite engine.

    Responsibilities:
      - Open sessions (autocommit, sqlite3.Row rows)
      - Apply tuned pragmas with safe clamping
      - Health check utility
    """
    def __init__(self, path: str, config: Optional[EngineConfig] = None):
        path = os.fspath(path)
        if path != MEMORY_PATH and os.path.isdir(path):  # directory misuse
            raise ValueError(f"Path points to a directory, expected file: {path}")
        self.path = path
        self.config = config or EngineConfig.from_env()

    @property
    def is_memory(self) -> bool:
        return self.path == MEMORY_PATH

    # --- Public API -----------------------------------------------------------------
    def connect(self, write: bool = True) -> sqlite3.Connection:
        """Return a configured sqlite3.Connection in autocommit mode.

        isolation_level=None stops the sqlite3 module from opening implicit
        transactions; callers issue BEGIN/COMMIT/ROLLBACK themselves.

        write=False opens the file read-only (URI mode=ro&immutable=1 plus
        query_only) and leaves its journal mode alone; a missing file raises
        sqlite3.OperationalError instead of being created.
        """
        if write or self.is_memory:
            conn = sqlite3.connect(self.path, isolation_level=None)
        else:
            if not os.path.exists(self.path):
                raise sqlite3.OperationalError(f"Database not found and read-only access requested: {self.path}")
            uri = Path(self.path).resolve().as_uri() + "?mode=ro&immutable=1"
            conn = sqlite3.connect(uri, uri=True, isolation_level=None)
        conn.row_factory = sqlite3.Row
        self._apply_pragmas(conn, write)
        if write and self.config.verify_on_connect and not self.is_memory:
            try:
                res = conn.execute("PRAGMA integrity_check").fetchone()[0]
                if res != "ok":
                    warn("integrity_check_failed", path=self.path, result=res)
            except sqlite3.Error as e:  # pragma: no cover - unexpected
                warn("integrity_check_error", path=self.path, error=str(e))
        return conn

    def health_check(self) -> Dict[str, Any]:
        """Return current core pragma values and basic status (read-only)."""
        try:
            conn = self.connect(write=False)
        except Exception as e:
            return {"ok": False, "path": self.path, "error": str(e)}
        try:
            rows = {
                "foreign_keys": conn.execute("PRAGMA foreign_keys").fetchone()[0],
                "journal_mode": conn.execute("PRAGMA journal_mode").fetchone()[0],
                "busy_timeout": conn.execute("PRAGMA busy_timeout").fetchone()[0],
                "cache_size": conn.execute("PRAGMA cache_size").fetchone()[0],
                "page_count": conn.execute("PRAGMA page_count").fetchone()[0],
            }
            return {"ok": True, "path": self.path, **rows}
        except sqlite3.Error as e:
            return {"ok": False, "path": self.path, "error": str(e)}
        finally:
            conn.close()

    # --- Internal -------------------------------------------------------------------
    def _apply_pragmas(self, conn: sqlite3.Connection, write: bool = True) -> None:
        mode = "write" if write else "read_only"
        pragmas = [
            (f"foreign_keys={'ON' if self.config.foreign_keys else 'OFF'}", "foreign_keys"),
            (f"busy_timeout={self.config.busy_timeout_ms}", "busy_timeout"),
            (f"cache_size=-{self.config.cache_kib}", "cache_size"),  # negative => KiB
        ]
        for p, tag in pragmas:
            try:
                conn.execute(f"PRAGMA {p}")
            except sqlite3.Error as e:
                warn("pragma_failed", pragma=p, tag=tag, mode=mode, path=self.path, error=str(e))
        if not write:
            try:
                conn.execute("PRAGMA query_only=ON")
            except sqlite3.Error as e:
                debug("pragma_query_only_failed", mode=mode, path=self.path, error=str(e))
            return
        if self.is_memory:
            debug("journal_mode_skipped", path=self.path, reason="in-memory database")
            return
        wanted = self.config.journal_mode
        try:
            jm = conn.execute(f"PRAGMA journal_mode={wanted}").fetchone()[0]
            if jm.upper() != wanted:
                warn("journal_mode_unexpected", wanted=wanted, got=jm, path=self.path)
        except sqlite3.Error as e:
            warn("pragma_failed", pragma=f"journal_mode={wanted}", mode=mode, path=self.path, error=str(e))


def config_dump(path: str) -> Dict[str, Any]:
    """Resolved EngineConfig + health_check for ``path``."""
    engine = SQLiteEngine(path)
    return {"config": asdict(engine.config), "health_check": engine.health_check()}
