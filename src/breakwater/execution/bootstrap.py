"""Bootstrap: obtain a required connection before any other work starts.

Architecture:

    .. code-block:: text

        bootstrap(target)
          │
          ├─ Initial ── gate.attempt() on the calling thread
          │               success ──────────────────────────────► Done
          │               failure
          ▼
        Retrying
          │  RetrySession(deadline = now + total, poll_interval, handoff)
          │  one daemon thread:                       caller:
          │    every poll_interval:                     handoff.result()
          │      now > deadline → DeadlineExceeded ──►  raises
          │      gate.attempt()
          │        failure → log, keep polling
          │        success → handoff ─────────────────► returns  ──► Done

The retry loop is bounded by wall-clock time, not by an attempt count.
Gate short-circuits and factory failures are treated the same: both are
logged and the loop keeps polling. Running out of time is reported to the
caller as :class:`DeadlineExceededError`; deciding to terminate the
process is left to the entry point.

Example:
    >>> from breakwater.core.connection import connect_datastore
    >>> from breakwater.execution.bootstrap import BootstrapOrchestrator
    >>> from breakwater.execution.gate import FailureGate
    >>>
    >>> gate = FailureGate(connect_datastore, failure_threshold=4)
    >>> orchestrator = BootstrapOrchestrator(gate, poll_interval=4.0, deadline=32.0)
    >>> store = orchestrator.bootstrap("postgresql://root@127.0.0.1:26257/defaultdb")
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable
from concurrent.futures import Future
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

from breakwater.core.connection import redact_target
from breakwater.core.context import ExecutionContext, background
from breakwater.core.errors import DeadlineExceededError, is_retryable
from breakwater.core.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


@dataclass
class RetrySession(Generic[T]):
    """State of one bootstrap's retry phase.

    Attributes:
        deadline: Absolute deadline on the orchestrator's clock
        poll_interval: Seconds between attempts
        total_deadline: The relative deadline the session was created with
        attempts: Gated attempts made so far, including the initial one
        last_error: Error from the most recent failed attempt
        handoff: One-shot channel carrying the connection (or the abort)
    """

    deadline: float
    poll_interval: float
    total_deadline: float
    attempts: int = 0
    last_error: BaseException | None = None
    handoff: Future[T] = field(default_factory=Future, repr=False)

    def expired(self, now: float) -> bool:
        return now > self.deadline

    def record_failure(self, error: BaseException) -> None:
        self.attempts += 1
        self.last_error = error

    def deliver(self, conn: T) -> None:
        """Hand the connection to the waiting caller. Allowed only once."""
        self.attempts += 1
        self.handoff.set_result(conn)

    def abort(self, error: BaseException) -> None:
        self.handoff.set_exception(error)

    def wait(self) -> T:
        """Block until the retry task delivers a connection or aborts."""
        return self.handoff.result()


class BootstrapOrchestrator(Generic[T]):
    """Connect once, then keep retrying in the background until a deadline.

    Attributes:
        poll_interval: Seconds between background attempts
        deadline: Wall-clock budget in seconds for the retry phase
        attempt_timeout: Optional per-attempt context deadline in seconds
    """

    def __init__(
        self,
        gate: Callable[[ExecutionContext, str], T],
        *,
        poll_interval: float = 4.0,
        deadline: float = 32.0,
        attempt_timeout: float | None = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Any] = time.sleep,
    ) -> None:
        if poll_interval <= 0:
            raise ValueError(f"poll_interval must be positive, got {poll_interval}")
        if deadline <= 0:
            raise ValueError(f"deadline must be positive, got {deadline}")
        if attempt_timeout is not None and attempt_timeout <= 0:
            raise ValueError(f"attempt_timeout must be positive, got {attempt_timeout}")
        self.poll_interval = poll_interval
        self.deadline = deadline
        self.attempt_timeout = attempt_timeout
        self._gate = gate
        self._clock = clock
        self._sleep = sleep

    def bootstrap(self, target: str) -> T:
        """Return a connection to ``target``.

        Raises:
            DeadlineExceededError: No attempt succeeded before the deadline
        """
        log = logger.bind(target=redact_target(target))

        try:
            conn = self._gate(self._new_context(), target)
        except Exception as exc:
            self._log_failure(log, 1, exc)
            first_error = exc
        else:
            log.info("connection_established", attempts=1)
            return conn

        session: RetrySession[T] = RetrySession(
            deadline=self._clock() + self.deadline,
            poll_interval=self.poll_interval,
            total_deadline=self.deadline,
            attempts=1,
            last_error=first_error,
        )
        log.info(
            "connecting",
            poll_interval_seconds=self.poll_interval,
            deadline_seconds=self.deadline,
        )

        worker = threading.Thread(
            target=self._retry,
            args=(session, target, log),
            name="breakwater-bootstrap",
            daemon=True,
        )
        worker.start()
        try:
            conn = session.wait()
        finally:
            worker.join()

        log.info("connection_established", attempts=session.attempts)
        return conn

    def _retry(self, session: RetrySession[T], target: str, log: Any) -> None:
        try:
            while True:
                self._sleep(session.poll_interval)

                if session.expired(self._clock()):
                    log.error(
                        "bootstrap_deadline_exceeded",
                        attempts=session.attempts,
                        deadline_seconds=session.total_deadline,
                    )
                    session.abort(
                        DeadlineExceededError(
                            session.total_deadline,
                            attempts=session.attempts,
                            last_error=session.last_error,
                        )
                    )
                    return

                attempt = session.attempts + 1
                log.info("connection_retry", attempt=attempt)
                try:
                    conn = self._gate(self._new_context(), target)
                except Exception as exc:
                    session.record_failure(exc)
                    self._log_failure(log, attempt, exc)
                    continue

                session.deliver(conn)
                return
        except BaseException as exc:  # noqa: BLE001 - delivered to the caller
            if not session.handoff.done():
                session.abort(exc)

    def _new_context(self) -> ExecutionContext:
        if self.attempt_timeout is None:
            return background()
        return ExecutionContext.with_timeout(self.attempt_timeout)

    @staticmethod
    def _log_failure(log: Any, attempt: int, exc: BaseException) -> None:
        log.warning(
            "connection_attempt_failed",
            attempt=attempt,
            error=str(exc),
            error_type=type(exc).__name__,
            retryable=is_retryable(exc),
        )


def bootstrap(
    gate: Callable[[ExecutionContext, str], T],
    target: str,
    poll_interval: float = 4.0,
    deadline: float = 32.0,
    **kwargs: Any,
) -> T:
    """One-shot helper: build an orchestrator and bootstrap ``target``."""
    orchestrator = BootstrapOrchestrator(
        gate, poll_interval=poll_interval, deadline=deadline, **kwargs
    )
    return orchestrator.bootstrap(target)


__all__ = [
    "BootstrapOrchestrator",
    "RetrySession",
    "bootstrap",
]
