"""Cancellable execution context for connection factories.

An :class:`ExecutionContext` is handed to every connection attempt. Its
owner may cancel it at any time, and it may carry an absolute deadline on
the monotonic clock. Factories call :meth:`ExecutionContext.check` before
starting work and use :meth:`ExecutionContext.wait` or
:meth:`ExecutionContext.add_cancel_callback` to abandon blocking work
promptly once cancelled.

Example:
    >>> from breakwater.core.context import ExecutionContext, background
    >>>
    >>> ctx = ExecutionContext.with_timeout(5.0)
    >>> ctx.remaining() <= 5.0
    True
    >>> ctx.cancel()
    >>> ctx.reason
    'context canceled'
    >>> background().cancelled
    False
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable

from breakwater.core.errors import ContextCancelledError

CANCELED = "context canceled"
DEADLINE_EXCEEDED = "context deadline exceeded"


class ExecutionContext:
    """Cancellation signal plus optional absolute deadline.

    Attributes:
        deadline: Absolute deadline on ``clock`` (``None`` for no deadline)
    """

    def __init__(
        self,
        deadline: float | None = None,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.deadline = deadline
        self._clock = clock
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._reason: str | None = None
        self._callbacks: list[Callable[[], None]] = []

    @classmethod
    def with_timeout(
        cls,
        seconds: float,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> ExecutionContext:
        """Create a context whose deadline is ``seconds`` from now."""
        if seconds <= 0:
            raise ValueError(f"Timeout must be positive, got {seconds}")
        return cls(deadline=clock() + seconds, clock=clock)

    def cancel(self, reason: str = CANCELED) -> None:
        """Cancel the context. Only the first call has any effect."""
        with self._lock:
            if self._reason is not None:
                return
            self._reason = reason
            callbacks, self._callbacks = self._callbacks, []
        self._event.set()
        for callback in callbacks:
            callback()

    def add_cancel_callback(self, callback: Callable[[], None]) -> None:
        """Run ``callback`` when :meth:`cancel` is called.

        Runs immediately if the context was already cancelled. Deadline
        expiry does not trigger callbacks; waiters bound their wait with
        :meth:`remaining` instead.
        """
        with self._lock:
            if self._reason is None:
                self._callbacks.append(callback)
                return
        callback()

    def remaining(self) -> float | None:
        """Seconds until the deadline (negative once expired), or ``None``."""
        if self.deadline is None:
            return None
        return self.deadline - self._clock()

    @property
    def reason(self) -> str | None:
        """Why the context is done, or ``None`` while it is live."""
        if self._reason is not None:
            return self._reason
        if self.deadline is not None and self._clock() >= self.deadline:
            return DEADLINE_EXCEEDED
        return None

    @property
    def cancelled(self) -> bool:
        return self.reason is not None

    def check(self) -> None:
        """Raise :class:`ContextCancelledError` if the context is done."""
        reason = self.reason
        if reason is not None:
            raise ContextCancelledError(reason)

    def wait(self, timeout: float | None = None) -> bool:
        """Block until cancelled, the deadline passes, or ``timeout`` elapses.

        Returns:
            True if the context is done when the wait ends.
        """
        remaining = self.remaining()
        if remaining is not None:
            timeout = remaining if timeout is None else min(timeout, remaining)
        if timeout is None or timeout > 0:
            self._event.wait(timeout)
        return self.cancelled

    def __repr__(self) -> str:
        return f"ExecutionContext(deadline={self.deadline!r}, reason={self.reason!r})"


def background() -> ExecutionContext:
    """A context with no deadline, cancelled only by its owner."""
    return ExecutionContext()


__all__ = [
    "CANCELED",
    "DEADLINE_EXCEEDED",
    "ExecutionContext",
    "background",
]
