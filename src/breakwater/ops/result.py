"""
Result envelope for post-connection operations.

The connection path raises; operations on an established connection
report failure as data instead, so the entry point picks which failure
codes end the process.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True, slots=True)
class OperationError:
    """Why an operation failed.

    Attributes:
        code: Failure code the caller branches on (``COMMIT_FAILED``, ...)
        message: Human-readable description, driver message included
        details: Extra key/value context for the log line
    """

    code: str
    message: str
    details: dict[str, Any] = field(default_factory=dict)


@dataclass
class OperationResult[T]:
    """Outcome of one operation: ``data`` on success, ``error`` otherwise."""

    success: bool
    data: T | None = None
    error: OperationError | None = None
    elapsed_ms: float = 0.0

    @classmethod
    def ok(cls, data: T, *, elapsed_ms: float = 0.0) -> OperationResult[T]:
        return cls(success=True, data=data, elapsed_ms=elapsed_ms)

    @classmethod
    def fail(
        cls,
        code: str,
        message: str,
        *,
        details: dict[str, Any] | None = None,
        elapsed_ms: float = 0.0,
    ) -> OperationResult[T]:
        return cls(
            success=False,
            error=OperationError(code=code, message=message, details=details or {}),
            elapsed_ms=elapsed_ms,
        )


class _Timer:
    __slots__ = ("_start",)

    def __init__(self) -> None:
        self._start = time.perf_counter()

    @property
    def elapsed_ms(self) -> float:
        return (time.perf_counter() - self._start) * 1000


def start_timer() -> _Timer:
    """Start a stopwatch; read ``timer.elapsed_ms`` when the work is done."""
    return _Timer()
