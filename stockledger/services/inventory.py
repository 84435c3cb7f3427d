from __future__ import annotations

import math
import numbers
import sqlite3
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Any, Callable, Optional, TypeVar

import pandas as pd
import structlog

from stockledger.config import DEFAULT_BUSY_TIMEOUT
from stockledger.db import execute_in_transaction, frame, q, x
from stockledger.errors import StorageError
from stockledger.results import OpResult
from stockledger.services.schema_evolution import migrate_inventory
from stockledger.utils import to_date, to_iso

logger = structlog.get_logger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class InventoryRecord:
    id: int
    code: str
    product_name: str
    units_on_hand: int
    kilos_on_hand: float
    earliest_date: date
    latest_date: date
    expiration_date: Optional[date]
    category: Optional[str]
    sub_category: Optional[str]

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "InventoryRecord":
        # sqlite3.Row supports dict-like indexing, not .get()
        expiration = row["FechaVencimiento"]
        return cls(
            id=int(row["Id"]),
            code=str(row["Codigo"]),
            product_name=str(row["Producto"]),
            units_on_hand=int(row["Unidades"]),
            kilos_on_hand=float(row["Kilos"]),
            earliest_date=to_date(row["FechaMasAntigua"]),
            latest_date=to_date(row["FechaMasNueva"]),
            expiration_date=to_date(expiration) if expiration else None,
            category=row["Categoria"],
            sub_category=row["SubCategoria"],
        )


class _Rejected(Exception):
    """Raised inside a unit of work to roll it back and report ``result``."""

    def __init__(self, result: OpResult):
        super().__init__(result.message)
        self.result = result


_SQLITE_INT_MAX = 2**63 - 1


def _quantities(units: Any, kilos: Any, verb: str) -> tuple[int, float]:
    """Validate a units/kilos pair; raises ValueError with a caller-facing message."""
    if isinstance(units, bool) or isinstance(kilos, bool):
        raise ValueError(f"Units and kilos {verb} must be numbers, not booleans.")
    try:
        kilos = float(kilos)
        whole = int(units)
    except (TypeError, OverflowError) as e:
        raise ValueError(str(e))
    if isinstance(units, numbers.Number) and whole != units:
        raise ValueError(f"Units {verb} must be a whole number, got {units!r}.")
    units = whole
    if not math.isfinite(kilos):
        raise ValueError(f"Kilos {verb} must be a finite number, got {kilos!r}.")
    if units < 0 or kilos < 0:
        raise ValueError(f"Units and kilos {verb} must be >= 0.")
    if units > _SQLITE_INT_MAX:
        raise ValueError(f"Units {verb} is too large to store.")
    return units, kilos


def _is_blank(value: Any) -> bool:
    return value is None or not str(value).strip()


def _rows_for_code(conn: sqlite3.Connection, code: str, columns: str) -> list[sqlite3.Row]:
    rows = q(conn, f"SELECT {columns} FROM Inventario WHERE Codigo=? ORDER BY Id", (code,))
    if len(rows) > 1:
        raise _Rejected(OpResult.invalid(f"Code {code!r} has {len(rows)} inventory rows; expected one."))
    return rows


class InventoryService:
    """
    Stock reconciliation over the ``Inventario`` table.

    Construction runs the inventory migration once, so every method below sees
    a table at least as wide as the current schema. Write methods run under
    BEGIN IMMEDIATE: the existence check and the write that depends on it hold
    the database write lock together, so two receipts for the same code cannot
    both take the insert branch.
    """

    def __init__(self, db_path: Path | str, *, timeout: float = DEFAULT_BUSY_TIMEOUT):
        self.db_path = Path(db_path)
        self.timeout = float(timeout)
        self.schema_ready = migrate_inventory(self.db_path, timeout=self.timeout)
        if not self.schema_ready:
            logger.warning("Inventory schema is incomplete, running degraded", db_path=str(self.db_path))

    # -------------------------
    # Transaction plumbing
    # -------------------------

    def _write(self, operation: str, work: Callable[[sqlite3.Connection], OpResult], **context: Any) -> OpResult:
        try:
            result = execute_in_transaction(self.db_path, work, immediate=True, timeout=self.timeout)
        except _Rejected as rejected:
            result = rejected.result
        except sqlite3.Error as e:
            logger.exception(f"{operation} failed", **context)
            return OpResult.storage_error(e)

        if not result:
            logger.warning(f"{operation} rejected", outcome=result.outcome.value, reason=result.message, **context)
        return result

    def _read(self, operation: str, work: Callable[[sqlite3.Connection], T]) -> T:
        try:
            return execute_in_transaction(self.db_path, work, timeout=self.timeout)
        except sqlite3.Error as e:
            logger.exception(f"{operation} failed")
            raise StorageError(f"{operation} failed: {e}") from e

    # -------------------------
    # Writers
    # -------------------------

    def add_or_merge_product(
        self,
        code: str,
        name: str,
        units: int,
        kilos: float,
        purchase_date: date | str,
        registration_date: date | str,
        expiration_date: date | str | None,
        *,
        category: Optional[str] = None,
        sub_category: Optional[str] = None,
    ) -> OpResult:
        """
        Receive stock for ``code``.

        Unknown code: inserts a row whose observed range is [purchase_date,
        purchase_date]. Known code: adds the quantities, moves the latest date
        to ``registration_date`` and overwrites the expiration date.
        Category fields are written on insert and only overwritten on merge
        when supplied.
        """
        if _is_blank(code):
            return OpResult.invalid("Code is required.")
        try:
            units, kilos = _quantities(units, kilos, "received")
            purchase = to_date(purchase_date)
            registration = to_date(registration_date)
            expiration = to_iso(expiration_date)
        except (TypeError, ValueError) as e:
            return OpResult.invalid(str(e))

        def work(conn: sqlite3.Connection) -> OpResult:
            existing = _rows_for_code(conn, code, "Id, FechaMasAntigua")

            if not existing:
                if _is_blank(name):
                    raise _Rejected(OpResult.invalid("Product name is required for a new code."))
                n = x(
                    conn,
                    """
                    INSERT INTO Inventario (
                        Codigo, Producto, Unidades, Kilos,
                        FechaMasAntigua, FechaMasNueva, FechaVencimiento,
                        Categoria, SubCategoria
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        code,
                        str(name).strip(),
                        units,
                        kilos,
                        purchase.isoformat(),
                        purchase.isoformat(),
                        expiration,
                        category,
                        sub_category,
                    ),
                )
                if n == 1:
                    logger.info("Inventory record created", code=code, units=units, kilos=kilos)
            else:
                row = existing[0]
                # Keep earliest <= latest when a registration predates the range.
                earliest = min(to_date(row["FechaMasAntigua"]), registration)
                n = x(
                    conn,
                    """
                    UPDATE Inventario
                    SET Unidades = Unidades + ?,
                        Kilos = Kilos + ?,
                        FechaMasAntigua = ?,
                        FechaMasNueva = ?,
                        FechaVencimiento = ?,
                        Categoria = COALESCE(?, Categoria),
                        SubCategoria = COALESCE(?, SubCategoria)
                    WHERE Id=?
                    """,
                    (
                        units,
                        kilos,
                        earliest.isoformat(),
                        registration.isoformat(),
                        expiration,
                        category,
                        sub_category,
                        int(row["Id"]),
                    ),
                )
                if n == 1:
                    logger.info("Inventory record merged", code=code, units=units, kilos=kilos)

            if n != 1:
                raise _Rejected(OpResult.invalid(f"Expected one row affected, got {n}."))
            return OpResult.success(n)

        try:
            return self._write("add_or_merge_product", work, code=code)
        except ValueError as e:
            # Unparseable date already stored for this code.
            return OpResult.invalid(str(e))

    def record_sale(self, code: str, units_sold: int, kilos_sold: float) -> OpResult:
        """Take sold quantities off ``code``. Stock is allowed to go below zero."""
        try:
            units_sold, kilos_sold = _quantities(units_sold, kilos_sold, "sold")
        except ValueError as e:
            return OpResult.invalid(str(e))

        def work(conn: sqlite3.Connection) -> OpResult:
            n = x(
                conn,
                """
                UPDATE Inventario
                SET Unidades = Unidades - ?,
                    Kilos = Kilos - ?
                WHERE Codigo=?
                """,
                (units_sold, kilos_sold, code),
            )
            if n == 0:
                return OpResult.not_found(f"No inventory record for code {code!r}.")
            if n > 1:
                raise _Rejected(OpResult.invalid(f"Code {code!r} has {n} inventory rows; expected one."))
            return OpResult.success(n)

        return self._write("record_sale", work, code=code)

    def widen_observed_date_range(self, code: str, observed_date: date | str) -> OpResult:
        """Stretch [earliest, latest] for ``code`` so it includes ``observed_date``."""
        try:
            observed = to_date(observed_date)
        except ValueError as e:
            return OpResult.invalid(str(e))

        def work(conn: sqlite3.Connection) -> OpResult:
            rows = _rows_for_code(conn, code, "Id, FechaMasAntigua, FechaMasNueva")
            if not rows:
                return OpResult.not_found(f"No inventory record for code {code!r}.")

            row = rows[0]
            earliest = min(to_date(row["FechaMasAntigua"]), observed)
            latest = max(to_date(row["FechaMasNueva"]), observed)
            n = x(
                conn,
                "UPDATE Inventario SET FechaMasAntigua=?, FechaMasNueva=? WHERE Id=?",
                (earliest.isoformat(), latest.isoformat(), int(row["Id"])),
            )
            return OpResult.success(n)

        try:
            return self._write("widen_observed_date_range", work, code=code)
        except ValueError as e:
            return OpResult.invalid(str(e))

    # -------------------------
    # Readers
    # -------------------------

    def list_categories(self) -> list[str]:
        rows = self._read(
            "list_categories",
            lambda conn: q(
                conn,
                "SELECT DISTINCT Categoria FROM Inventario WHERE Categoria IS NOT NULL ORDER BY Categoria",
            ),
        )
        return [str(r["Categoria"]) for r in rows]

    def list_sub_categories(self, category: str) -> list[str]:
        rows = self._read(
            "list_sub_categories",
            lambda conn: q(
                conn,
                """
                SELECT DISTINCT SubCategoria
                FROM Inventario
                WHERE Categoria=? AND SubCategoria IS NOT NULL
                ORDER BY SubCategoria
                """,
                (category,),
            ),
        )
        return [str(r["SubCategoria"]) for r in rows]

    def list_all(self) -> pd.DataFrame:
        return self._read("list_all", lambda conn: frame(conn, "SELECT * FROM Inventario ORDER BY Id"))

    def find_by_code(self, code: str) -> pd.DataFrame:
        return self._read(
            "find_by_code",
            lambda conn: frame(conn, "SELECT * FROM Inventario WHERE Codigo=? ORDER BY Id", (code,)),
        )

    def get_record(self, code: str) -> Optional[InventoryRecord]:
        rows = self._read("get_record", lambda conn: q(conn, "SELECT * FROM Inventario WHERE Codigo=? ORDER BY Id", (code,)))
        return InventoryRecord.from_row(rows[0]) if rows else None
