# Overview: Tagged result values returned by the ledger and opname services.

"""
Service outcomes (authoritative)

- Expected business outcomes (bad input, insufficient stock, wrong session
  state, unknown ids, failed reconciliation) are returned as Result values.
  They are never raised for flow control.
- Infrastructure failures (database unavailable after retries) still raise.
- Every failure carries an ErrorKind plus a human-readable message.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


class ErrorKind(str, Enum):
    VALIDATION = "validation_error"
    INSUFFICIENT_STOCK = "insufficient_stock"
    SESSION_NOT_IN_PROGRESS = "session_not_in_progress"
    NOT_FOUND = "not_found"
    COMMIT_FAILURE = "commit_failure"


# HTTP status used by the API layer for each failure kind
HTTP_STATUS_BY_KIND = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.INSUFFICIENT_STOCK: 409,
    ErrorKind.SESSION_NOT_IN_PROGRESS: 409,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.COMMIT_FAILURE: 500,
}


@dataclass(frozen=True)
class Result(Generic[T]):
    """
    Outcome of a service call.

    success=True  -> value holds the payload, error/message are None
    success=False -> error holds the ErrorKind, message explains the rejection
    """
    success: bool
    value: Optional[T] = None
    error: Optional[ErrorKind] = None
    message: Optional[str] = None

    @classmethod
    def ok(cls, value: T = None) -> "Result[T]":
        return cls(success=True, value=value)

    @classmethod
    def fail(cls, error: ErrorKind, message: str) -> "Result[T]":
        return cls(success=False, error=error, message=message)

    @property
    def http_status(self) -> int:
        if self.success:
            return 200
        return HTTP_STATUS_BY_KIND[self.error]

    def error_dict(self) -> dict:
        return {"error": self.error.value if self.error else None, "message": self.message}
