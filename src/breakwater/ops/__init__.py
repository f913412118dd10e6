"""
Operations layer: work performed on a bootstrapped connection.

Operations return ``OperationResult[T]`` instead of raising, so the entry
point decides which failures end the process.
"""

from breakwater.ops.result import OperationError, OperationResult
from breakwater.ops.transaction import TransactionRunner

__all__ = [
    "OperationError",
    "OperationResult",
    "TransactionRunner",
]
