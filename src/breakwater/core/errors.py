"""
Structured error types for breakwater.

Every failure the connection bootstrap can produce is a typed error that
carries a category, an explicit retry flag, and optional context. The
orchestrator decides what to do with an error by its type, never by
parsing messages.

Architecture:
    ::

        ┌───────────────────────────────────────────────────────────┐
        │                     BreakwaterError                        │
        │  (category, retryable, retry_after, context, cause)       │
        ├───────────────────────────────────────────────────────────┤
        │                                                            │
        │  TransientError (retryable=True)     ConfigError          │
        │       │                               DeadlineExceededError│
        │  DatabaseConnectionError                                   │
        │  ServiceUnavailableError (gate)                            │
        │  ContextCancelledError                                     │
        └───────────────────────────────────────────────────────────┘

Propagation:
    - ``ServiceUnavailableError`` is raised by the failure gate when it
      short-circuits. No underlying attempt was made.
    - Errors raised by a connection factory pass through the gate
      unchanged. The shipped factory wraps driver errors in
      ``DatabaseConnectionError``.
    - ``DeadlineExceededError`` ends a bootstrap. It is not retryable and
      the entry point turns it into a non-zero exit.

Usage:
    from breakwater.core.errors import DatabaseConnectionError

    try:
        conn = psycopg2.connect(**params)
    except psycopg2.Error as e:
        raise DatabaseConnectionError(f"Failed to connect: {e}", cause=e) from e
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Standard error categories for classification and routing."""

    NETWORK = "NETWORK"
    DATABASE = "DATABASE"
    CANCELLED = "CANCELLED"
    CONFIG = "CONFIG"
    ORCHESTRATION = "ORCHESTRATION"
    INTERNAL = "INTERNAL"
    UNKNOWN = "UNKNOWN"


@dataclass
class ErrorContext:
    """Structured metadata attached to an error.

    Attributes:
        target: Log-safe description of the connection target
        gate: Name of the failure gate involved, if any
        attempt: Attempt number within a bootstrap
        metadata: Any additional key/value pairs
    """

    target: str | None = None
    gate: str | None = None
    attempt: int | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary, dropping unset fields."""
        result: dict[str, Any] = {}
        if self.target is not None:
            result["target"] = self.target
        if self.gate is not None:
            result["gate"] = self.gate
        if self.attempt is not None:
            result["attempt"] = self.attempt
        if self.metadata:
            result["metadata"] = self.metadata
        return result


class BreakwaterError(Exception):
    """
    Base exception for all breakwater errors.

    Subclasses set ``default_category`` and ``default_retryable`` so callers
    only pass a message in the common case.

    Examples:
        >>> error = BreakwaterError("Something went wrong")
        >>> error.category
        <ErrorCategory.INTERNAL: 'INTERNAL'>
        >>> error.retryable
        False
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL
    default_retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        retryable: bool | None = None,
        retry_after: int | None = None,
        context: ErrorContext | None = None,
        cause: BaseException | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.retryable = retryable if retryable is not None else self.default_retryable
        self.retry_after = retry_after
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> BreakwaterError:
        """Add context to this error (fluent API).

        Usage:
            raise ConfigError("Bad target").with_context(target="db.local")
        """
        for key, value in kwargs.items():
            if key != "metadata" and hasattr(self.context, key):
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result: dict[str, Any] = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
        }
        if self.retry_after is not None:
            result["retry_after"] = self.retry_after
        context = self.context.to_dict()
        if context:
            result["context"] = context
        if self.cause is not None:
            result["cause"] = f"{type(self.cause).__name__}: {self.cause}"
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# TRANSIENT ERRORS (usually retryable)
# =============================================================================


class TransientError(BreakwaterError):
    """Temporary failure; the same call may succeed later."""

    default_category = ErrorCategory.NETWORK
    default_retryable = True


class DatabaseConnectionError(TransientError):
    """The database driver could not open a connection."""

    default_category = ErrorCategory.DATABASE


class ServiceUnavailableError(TransientError):
    """The failure gate is closed and the cooldown has not elapsed.

    No connection attempt was made. ``retry_after`` is the number of whole
    seconds (rounded up, at least 1) until the gate admits another call.
    """

    default_category = ErrorCategory.DATABASE

    def __init__(
        self,
        message: str = "service unavailable",
        *,
        consecutive_failures: int = 0,
        retry_after: int | None = None,
        **kwargs: Any,
    ):
        super().__init__(message, retry_after=retry_after, **kwargs)
        self.consecutive_failures = consecutive_failures


GateClosedError = ServiceUnavailableError


class ContextCancelledError(TransientError):
    """The execution context was cancelled or its deadline passed."""

    default_category = ErrorCategory.CANCELLED

    def __init__(self, reason: str = "context canceled", **kwargs: Any):
        super().__init__(reason, **kwargs)
        self.reason = reason


# =============================================================================
# PERMANENT ERRORS
# =============================================================================


class ConfigError(BreakwaterError):
    """Invalid configuration, such as an unparseable connection target."""

    default_category = ErrorCategory.CONFIG


class DeadlineExceededError(BreakwaterError):
    """A bootstrap ran past its absolute deadline without connecting.

    Attributes:
        deadline: Total deadline in seconds that was exhausted
        attempts: Number of gated attempts made, including the first
        last_error: The error from the final attempt, if any
    """

    default_category = ErrorCategory.ORCHESTRATION

    def __init__(
        self,
        deadline: float,
        *,
        attempts: int = 0,
        last_error: BaseException | None = None,
        message: str | None = None,
    ):
        msg = message or (
            f"Database connectivity could not be acquired within {deadline:g}s "
            f"({attempts} attempts)"
        )
        super().__init__(msg, cause=last_error)
        self.deadline = deadline
        self.attempts = attempts
        self.last_error = last_error


# =============================================================================
# HELPERS
# =============================================================================


def is_retryable(error: BaseException) -> bool:
    """Check whether an error should be retried.

    Exceptions outside the breakwater hierarchy count as retryable.
    """
    if isinstance(error, BreakwaterError):
        return error.retryable
    return isinstance(error, Exception)


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "BreakwaterError",
    "TransientError",
    "DatabaseConnectionError",
    "ServiceUnavailableError",
    "GateClosedError",
    "ContextCancelledError",
    "ConfigError",
    "DeadlineExceededError",
    "is_retryable",
]
