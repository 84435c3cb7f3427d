from __future__ import annotations

import re
import sqlite3
from pathlib import Path

import structlog

from stockledger.config import DEFAULT_BUSY_TIMEOUT
from stockledger.db import column_exists, execute_in_transaction
from stockledger.schema import INVENTORY_ADDED_COLUMNS, INVENTORY_SQL, INVENTORY_TABLE

logger = structlog.get_logger(__name__)

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
_COLUMN_TYPE = re.compile(r"^[A-Za-z][A-Za-z0-9_ ()',.-]*$")


def ensure_table_exists(
    db_path: Path | str,
    table_name: str,
    create_sql: str,
    *,
    timeout: float = DEFAULT_BUSY_TIMEOUT,
) -> bool:
    """
    Run ``create_sql`` (a CREATE TABLE IF NOT EXISTS statement) in a transaction.

    Failures are logged and reported as False so startup can continue degraded.
    """
    try:
        # execute(), not executescript(): the latter commits before running.
        execute_in_transaction(db_path, lambda conn: conn.execute(create_sql), timeout=timeout)
    except (sqlite3.Error, sqlite3.Warning):
        logger.exception("Error creating table", table=table_name)
        return False
    return True


def ensure_column_exists(
    db_path: Path | str,
    table_name: str,
    column_name: str,
    column_type: str,
    *,
    timeout: float = DEFAULT_BUSY_TIMEOUT,
) -> bool:
    """
    Add ``column_name`` to ``table_name`` unless the live table already has it.

    Safe to call on every startup: the introspection and the ALTER run in the
    same transaction, and an existing column is left alone.
    """
    if not _IDENTIFIER.match(table_name) or not _IDENTIFIER.match(column_name):
        logger.error("Invalid identifier", table=table_name, column=column_name)
        return False
    if not _COLUMN_TYPE.match(column_type):
        logger.error("Invalid column type", table=table_name, column=column_name, column_type=column_type)
        return False

    def work(conn: sqlite3.Connection) -> bool:
        if column_exists(conn, table_name, column_name):
            return False
        if not conn.execute(
            "SELECT 1 FROM sqlite_master WHERE type='table' AND name=?", (table_name,)
        ).fetchone():
            raise sqlite3.OperationalError(f"no such table: {table_name}")
        conn.execute(f"ALTER TABLE {table_name} ADD COLUMN {column_name} {column_type};")
        return True

    try:
        added = execute_in_transaction(db_path, work, timeout=timeout)
    except sqlite3.Error:
        logger.exception("Error ensuring column exists", table=table_name, column=column_name)
        return False

    if added:
        logger.info("Column added", table=table_name, column=column_name, column_type=column_type)
    return True


def migrate_inventory(db_path: Path | str, *, timeout: float = DEFAULT_BUSY_TIMEOUT) -> bool:
    ok = ensure_table_exists(db_path, INVENTORY_TABLE, INVENTORY_SQL, timeout=timeout)
    for column_name, column_type in INVENTORY_ADDED_COLUMNS:
        ok = ensure_column_exists(db_path, INVENTORY_TABLE, column_name, column_type, timeout=timeout) and ok
    return ok
