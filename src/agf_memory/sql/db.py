"""
SQLite engine and connection lifecycle
======================================

- ``run`` / ``all`` / ``get`` / ``run_as_transaction`` over one connection.
- WAL + pragmatic PRAGMAs for decent concurrent read perf.
- Blocking sqlite calls run in worker threads behind one ``asyncio.Lock``.
"""

from __future__ import annotations
import asyncio
import logging
import pathlib
import sqlite3
from typing import Any, Optional, Sequence

from agf_memory.config import sqlite as sqlite_cfg
from agf_memory.errors import (
    IntegrityViolation,
    StoreError,
    StoreUnavailable,
    TransactionFailed,
)

logger = logging.getLogger(__name__)

Params = Sequence[Any]


def connect(path: str, busy_timeout_ms: int = 3000) -> sqlite3.Connection:
    # Autocommit; transactions are opened explicitly with BEGIN.
    conn = sqlite3.connect(
        path,
        isolation_level=None,
        check_same_thread=False,
        detect_types=sqlite3.PARSE_DECLTYPES | sqlite3.PARSE_COLNAMES,
    )

    # Pragmas: order matters a bit; set WAL first, then tuning.
    conn.execute("PRAGMA journal_mode=WAL;")
    conn.execute("PRAGMA synchronous=NORMAL;")
    conn.execute("PRAGMA foreign_keys=ON;")
    conn.execute("PRAGMA temp_store=MEMORY;")
    # Reduce SQLITE_BUSY errors under contention
    conn.execute(f"PRAGMA busy_timeout={int(busy_timeout_ms)};")

    # dict-like rows
    conn.row_factory = sqlite3.Row

    return conn


def migrate(conn: sqlite3.Connection) -> None:
    """
    Execute schema.sql (idempotent). Every statement in schema.sql uses
    IF NOT EXISTS.
    """
    schema_file = pathlib.Path(__file__).with_name("schema.sql")
    conn.executescript(schema_file.read_text(encoding="utf-8"))


def _wrap(exc: sqlite3.Error) -> StoreError:
    if isinstance(exc, sqlite3.IntegrityError):
        return IntegrityViolation(str(exc))
    return StoreError(str(exc))


class Database:
    """Relational engine shared by every repository.

    Construct once per process and pass it to the consumers. ``connect`` is
    optional; the first statement connects lazily.
    """

    def __init__(self, path: Optional[str] = None, busy_timeout_ms: Optional[int] = None):
        self.path = path or sqlite_cfg.DB_PATH
        self.busy_timeout_ms = busy_timeout_ms or sqlite_cfg.BUSY_TIMEOUT_MS
        self._conn: sqlite3.Connection | None = None
        self._lock = asyncio.Lock()

    @property
    def connected(self) -> bool:
        return self._conn is not None

    def _open(self) -> sqlite3.Connection:
        if self._conn is not None:
            return self._conn
        try:
            if self.path != ":memory:":
                pathlib.Path(self.path).parent.mkdir(parents=True, exist_ok=True)
            conn = connect(self.path, self.busy_timeout_ms)
            migrate(conn)
        except (sqlite3.Error, OSError) as exc:
            raise StoreUnavailable(f"Cannot open database at {self.path}: {exc}") from exc
        logger.info("Connected to sqlite database at %s", self.path)
        self._conn = conn
        return conn

    async def connect(self) -> None:
        async with self._lock:
            await asyncio.to_thread(self._open)

    async def close(self) -> None:
        def _close(conn: sqlite3.Connection) -> None:
            # Keep the WAL from growing unbounded between sessions
            conn.execute("PRAGMA wal_checkpoint(TRUNCATE);")
            conn.close()

        async with self._lock:
            if self._conn is None:
                return
            conn, self._conn = self._conn, None
            await asyncio.to_thread(_close, conn)
            logger.info("Closed sqlite database at %s", self.path)

    async def run(self, sql: str, params: Params = ()) -> int:
        """Execute one write statement and return the affected row count."""

        def _run() -> int:
            conn = self._open()
            try:
                return conn.execute(sql, tuple(params)).rowcount
            except sqlite3.Error as exc:
                raise _wrap(exc) from exc

        async with self._lock:
            return await asyncio.to_thread(_run)  # blocking sqlite call

    async def all(self, sql: str, params: Params = ()) -> list[sqlite3.Row]:
        def _query() -> list[sqlite3.Row]:
            conn = self._open()
            try:
                return conn.execute(sql, tuple(params)).fetchall()
            except sqlite3.Error as exc:
                raise _wrap(exc) from exc

        async with self._lock:
            return await asyncio.to_thread(_query)  # blocking sqlite call

    async def get(self, sql: str, params: Params = ()) -> Optional[sqlite3.Row]:
        def _query() -> Optional[sqlite3.Row]:
            conn = self._open()
            try:
                return conn.execute(sql, tuple(params)).fetchone()
            except sqlite3.Error as exc:
                raise _wrap(exc) from exc

        async with self._lock:
            return await asyncio.to_thread(_query)  # blocking sqlite call

    async def run_as_transaction(
        self, statements: Sequence[str], params_list: Sequence[Params]
    ) -> list[int]:
        """
        Execute ``statements`` in order as one all-or-nothing batch.

        :returns: ``lastrowid`` of each statement.
        :raises TransactionFailed: when any statement fails; nothing is kept.
        """
        if len(statements) != len(params_list):
            raise ValueError("Each statement needs exactly one parameter list")

        def _run() -> list[int]:
            conn = self._open()
            rowids: list[int] = []
            conn.execute("BEGIN")
            try:
                for sql, params in zip(statements, params_list):
                    rowids.append(conn.execute(sql, tuple(params)).lastrowid)
                conn.execute("COMMIT")
            except sqlite3.Error as exc:
                conn.execute("ROLLBACK")
                raise TransactionFailed(f"Transaction rolled back: {exc}") from exc
            except BaseException:
                # e.g. unusable params; the shared connection must not stay inside BEGIN
                conn.execute("ROLLBACK")
                raise
            return rowids

        async with self._lock:
            return await asyncio.to_thread(_run)  # blocking sqlite call
