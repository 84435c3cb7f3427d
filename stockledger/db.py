from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import Any, Callable, Iterable, TypeVar

import pandas as pd
import structlog

from stockledger.config import DEFAULT_BUSY_TIMEOUT

logger = structlog.get_logger(__name__)

T = TypeVar("T")


def connect(db_path: Path | str, timeout: float = DEFAULT_BUSY_TIMEOUT) -> sqlite3.Connection:
    # isolation_level=None: no implicit BEGIN, transactions are issued explicitly.
    conn = sqlite3.connect(str(db_path), timeout=timeout, isolation_level=None)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON;")
    return conn


def execute_in_transaction(
    db_path: Path | str,
    work: Callable[[sqlite3.Connection], T],
    *,
    immediate: bool = False,
    timeout: float = DEFAULT_BUSY_TIMEOUT,
) -> T:
    """
    Run ``work`` inside one transaction on a fresh connection.

    Commits and returns the result of ``work`` when it completes. Any exception
    raised by ``work`` (KeyboardInterrupt included) rolls the transaction back
    and is re-raised unchanged. The connection is closed on every exit path.

    ``immediate=True`` issues BEGIN IMMEDIATE, taking the database write lock
    before ``work`` runs so a read followed by a write cannot interleave with
    another writer.
    """
    conn = connect(db_path, timeout=timeout)
    try:
        conn.execute("BEGIN IMMEDIATE" if immediate else "BEGIN")
        try:
            result = work(conn)
        except BaseException:
            if conn.in_transaction:
                conn.execute("ROLLBACK")
            logger.debug("Transaction rolled back", db_path=str(db_path))
            raise
        conn.execute("COMMIT")
        return result
    finally:
        conn.close()


def column_exists(conn: sqlite3.Connection, table: str, column: str) -> bool:
    rows = conn.execute(f"PRAGMA table_info({table});").fetchall()
    cols = [r["name"] for r in rows]
    return column in cols


def q(conn: sqlite3.Connection, sql: str, params: Iterable[Any] = ()) -> list[sqlite3.Row]:
    cur = conn.execute(sql, tuple(params))
    rows = cur.fetchall()
    cur.close()
    return rows


def x(conn: sqlite3.Connection, sql: str, params: Iterable[Any] = ()) -> int:
    """Execute a write statement and return the number of rows it touched."""
    cur = conn.execute(sql, tuple(params))
    affected = cur.rowcount
    cur.close()
    return int(affected)


def frame(conn: sqlite3.Connection, sql: str, params: Iterable[Any] = ()) -> pd.DataFrame:
    cur = conn.execute(sql, tuple(params))
    columns = [d[0] for d in cur.description]
    rows = cur.fetchall()
    cur.close()
    return pd.DataFrame([tuple(r) for r in rows], columns=columns)
