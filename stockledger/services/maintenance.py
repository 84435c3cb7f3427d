from __future__ import annotations

import sqlite3
from pathlib import Path

import structlog

from stockledger.config import DEFAULT_BUSY_TIMEOUT, Settings
from stockledger.db import connect
from stockledger.errors import DatabaseUnavailableError
from stockledger.results import OpResult
from stockledger.services.inventory import InventoryService

logger = structlog.get_logger(__name__)


def backup_database(
    db_path: Path | str,
    target_path: Path | str,
    *,
    timeout: float = DEFAULT_BUSY_TIMEOUT,
) -> OpResult:
    """
    Copy the live database into ``target_path`` with SQLite's online backup API.

    The backup copies whole pages under the engine's locks, so a concurrent
    writer never leaves a half-written page in the copy. An existing file at
    ``target_path`` is overwritten.
    """
    source_path = Path(db_path).expanduser()
    target = Path(target_path).expanduser()

    if not source_path.exists():
        return OpResult.not_found(f"No database file at {source_path}.")
    if target.exists() and target.resolve() == source_path.resolve():
        return OpResult.invalid("Backup target is the live database file.")

    try:
        target.parent.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        logger.exception("Error creating backup directory", target=str(target))
        return OpResult.storage_error(e)

    source = None
    destination = None
    try:
        source = connect(source_path, timeout=timeout)
        destination = sqlite3.connect(str(target), timeout=timeout)
        source.backup(destination)
    except sqlite3.Error as e:
        logger.exception("Error creating database backup", target=str(target))
        return OpResult.storage_error(e)
    finally:
        if destination is not None:
            destination.close()
        if source is not None:
            source.close()

    logger.info("Database backup written", target=str(target))
    return OpResult.success()


def validate_connection(db_path: Path | str, *, timeout: float = DEFAULT_BUSY_TIMEOUT) -> bool:
    """Open the database, run a trivial query, close it. The schema is not checked."""
    try:
        conn = connect(db_path, timeout=timeout)
        try:
            conn.execute("SELECT 1").fetchone()
        finally:
            conn.close()
    except sqlite3.Error:
        logger.exception("Error validating database connection", db_path=str(db_path))
        return False
    return True


def initialize_database(settings: Settings) -> InventoryService:
    if not validate_connection(settings.db_path, timeout=settings.busy_timeout):
        raise DatabaseUnavailableError(f"Could not open database at {settings.db_path}")

    logger.info("Database connection established", db_path=str(settings.db_path))
    return InventoryService(settings.db_path, timeout=settings.busy_timeout)
