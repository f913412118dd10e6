"""breakwater execution: the failure gate and the bootstrap orchestrator.

ARCHITECTURE
────────────
::

    BootstrapOrchestrator  ─ initial attempt, then a deadline-bounded retry task
      │
      ▼
    FailureGate            ─ consecutive-failure counter + 2**(d+1)s cooldown
      │   └─ ReadWriteLock ─ shared admission check / exclusive state update
      ▼
    ConnectionFactory      ─ (ctx, target) -> connection | raises
"""

from breakwater.execution.bootstrap import BootstrapOrchestrator, RetrySession, bootstrap
from breakwater.execution.gate import FailureGate, GateState, cooldown_for, failure_gate
from breakwater.execution.locks import ReadWriteLock

__all__ = [
    "BootstrapOrchestrator",
    "FailureGate",
    "GateState",
    "ReadWriteLock",
    "RetrySession",
    "bootstrap",
    "cooldown_for",
    "failure_gate",
]
