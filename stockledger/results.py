from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class Outcome(str, Enum):
    OK = "OK"
    NOT_FOUND = "NOT_FOUND"
    INVALID = "INVALID"
    STORAGE_ERROR = "STORAGE_ERROR"


@dataclass(frozen=True)
class OpResult:
    """
    Result of a write operation.

    Truthy only for Outcome.OK so callers that just need pass/fail can keep
    writing ``if service.record_sale(...):``; callers that need to react
    differently inspect ``outcome``.
    """

    outcome: Outcome
    message: str = ""
    rows_affected: int = 0

    def __bool__(self) -> bool:
        return self.outcome is Outcome.OK

    @property
    def ok(self) -> bool:
        return self.outcome is Outcome.OK

    @classmethod
    def success(cls, rows_affected: int = 1) -> "OpResult":
        return cls(Outcome.OK, rows_affected=rows_affected)

    @classmethod
    def not_found(cls, message: str) -> "OpResult":
        return cls(Outcome.NOT_FOUND, message)

    @classmethod
    def invalid(cls, message: str) -> "OpResult":
        return cls(Outcome.INVALID, message)

    @classmethod
    def storage_error(cls, exc: BaseException) -> "OpResult":
        return cls(Outcome.STORAGE_ERROR, str(exc))
