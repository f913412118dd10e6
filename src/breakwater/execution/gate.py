"""Failure gate: count consecutive connection failures and cool down.

Wraps a connection factory so that repeated failures back off
exponentially instead of hammering a dependency that is still recovering.
There is no timer and no background clock: every call recomputes whether
enough time has passed since the last delegated attempt.

Rules:
    - Below ``failure_threshold`` consecutive failures every call reaches
      the factory.
    - At ``d = failures - threshold >= 0`` the gate waits
      ``2 ** (d + 1)`` seconds after the last delegated attempt (2s, 4s,
      8s, ...). Calls inside that window raise ``ServiceUnavailableError``
      without invoking the factory.
    - A delegated failure increments the counter and re-raises the
      factory's own exception; a success resets the counter to zero.
    - Only delegated calls move ``last_attempt_time``.

Concurrency:
    The admission check holds the shared lock; the state update holds the
    exclusive lock. The two are separate sections, so concurrent callers
    may both be admitted while the gate is open and both reach the
    factory. Each delegated call still updates the counters exactly once.

Example:
    >>> from breakwater.execution.gate import failure_gate
    >>>
    >>> @failure_gate(4)
    ... def connect(ctx, target):
    ...     return open_connection(ctx, target)
    >>>
    >>> store = connect(background(), "postgresql://root@127.0.0.1:26257/defaultdb")
"""

from __future__ import annotations

import functools
import math
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Generic, TypeVar

from breakwater.core.connection import ConnectionFactory
from breakwater.core.context import ExecutionContext
from breakwater.core.errors import ServiceUnavailableError
from breakwater.core.logging import get_logger
from breakwater.execution.locks import ReadWriteLock

logger = get_logger(__name__)

T = TypeVar("T")


def cooldown_for(consecutive_failures: int, failure_threshold: int) -> float | None:
    """Seconds the gate stays closed after the last attempt, or None if open."""
    d = consecutive_failures - failure_threshold
    if d < 0:
        return None
    return float(2 ** (d + 1))


@dataclass(frozen=True)
class GateState:
    """Point-in-time snapshot of a gate's counters."""

    consecutive_failures: int
    last_attempt_time: float
    failure_threshold: int

    @property
    def cooldown(self) -> float | None:
        return cooldown_for(self.consecutive_failures, self.failure_threshold)

    @property
    def retry_at(self) -> float | None:
        cooldown = self.cooldown
        if cooldown is None:
            return None
        return self.last_attempt_time + cooldown


class FailureGate(Generic[T]):
    """Failure-counting, exponentially cooling gate around a connection factory.

    Attributes:
        name: Identifier used in logs and error context
        failure_threshold: Consecutive failures tolerated before cooling down
    """

    def __init__(
        self,
        factory: ConnectionFactory[T],
        failure_threshold: int,
        *,
        name: str = "database",
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if failure_threshold < 0:
            raise ValueError(f"failure_threshold must be >= 0, got {failure_threshold}")
        self.name = name
        self.failure_threshold = failure_threshold
        self._factory = factory
        self._clock = clock
        self._lock = ReadWriteLock()
        self._consecutive_failures = 0
        self._last_attempt_time = clock()

    @property
    def state(self) -> GateState:
        """Snapshot of the current counters."""
        with self._lock.read_locked():
            return GateState(
                consecutive_failures=self._consecutive_failures,
                last_attempt_time=self._last_attempt_time,
                failure_threshold=self.failure_threshold,
            )

    def retry_at(self) -> float | None:
        """Clock time after which the gate admits calls again (None if open)."""
        return self.state.retry_at

    def attempt(self, ctx: ExecutionContext, target: str) -> T:
        """Call the wrapped factory unless the gate is cooling down.

        Raises:
            ServiceUnavailableError: The gate is closed; the factory was not called
            Exception: Whatever the factory raised, unchanged
        """
        with self._lock.read_locked():
            failures = self._consecutive_failures
            cooldown = cooldown_for(failures, self.failure_threshold)
            retry_at = self._last_attempt_time + (cooldown or 0.0)
            now = self._clock()

        if cooldown is not None and not now > retry_at:
            retry_after = max(1, math.ceil(retry_at - now))
            logger.debug(
                "gate_short_circuit",
                gate=self.name,
                consecutive_failures=failures,
                retry_after=retry_after,
            )
            raise ServiceUnavailableError(
                consecutive_failures=failures,
                retry_after=retry_after,
            ).with_context(gate=self.name)

        try:
            conn = self._factory(ctx, target)
        except Exception:
            with self._lock.write_locked():
                self._last_attempt_time = self._clock()
                self._consecutive_failures += 1
            raise

        with self._lock.write_locked():
            self._last_attempt_time = self._clock()
            self._consecutive_failures = 0
        return conn

    __call__ = attempt

    def __repr__(self) -> str:
        state = self.state
        return (
            f"FailureGate(name={self.name!r}, failure_threshold={self.failure_threshold}, "
            f"consecutive_failures={state.consecutive_failures})"
        )


def failure_gate(
    failure_threshold: int,
    *,
    name: str | None = None,
    clock: Callable[[], float] = time.monotonic,
) -> Callable[[ConnectionFactory[T]], FailureGate[T]]:
    """Decorator form: wrap a connection factory in a :class:`FailureGate`."""

    def decorator(factory: ConnectionFactory[T]) -> FailureGate[T]:
        gate = FailureGate(
            factory,
            failure_threshold,
            name=name or getattr(factory, "__name__", "database"),
            clock=clock,
        )
        functools.update_wrapper(gate, factory, updated=())
        return gate

    return decorator


__all__ = [
    "FailureGate",
    "GateState",
    "cooldown_for",
    "failure_gate",
]
