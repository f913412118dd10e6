"""breakwater core: errors, logging, configuration, contexts and the connection factory."""

from breakwater.core.context import ExecutionContext, background
from breakwater.core.errors import (
    BreakwaterError,
    ConfigError,
    ContextCancelledError,
    DatabaseConnectionError,
    DeadlineExceededError,
    ErrorCategory,
    GateClosedError,
    ServiceUnavailableError,
    TransientError,
    is_retryable,
)

__all__ = [
    "BreakwaterError",
    "ConfigError",
    "ContextCancelledError",
    "DatabaseConnectionError",
    "DeadlineExceededError",
    "ErrorCategory",
    "ExecutionContext",
    "GateClosedError",
    "ServiceUnavailableError",
    "TransientError",
    "background",
    "is_retryable",
]
