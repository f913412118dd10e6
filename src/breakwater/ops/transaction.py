"""Post-connection setup work.

Runs a fixed list of setup statements (by default ``CREATE DATABASE
subjectives``) in a single transaction on the connection handed over by
the bootstrap. The work is attempted exactly once; it is never retried.

Failures are reported through :class:`OperationResult` codes:

==================  ==========================================
Code                Meaning
==================  ==========================================
``BEGIN_FAILED``    a cursor/transaction could not be opened
``EXECUTE_FAILED``  a statement failed; the transaction was rolled back
``COMMIT_FAILED``   the statements ran but the commit failed
==================  ==========================================
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

import psycopg2

from breakwater.core.connection import DataStore
from breakwater.core.logging import get_logger
from breakwater.ops.result import OperationResult, start_timer

logger = get_logger(__name__)


class TransactionRunner:
    """Execute setup statements in one transaction on a bootstrapped store."""

    def __init__(self, statements: Sequence[str]) -> None:
        self.statements = list(statements)

    def run(self, store: DataStore) -> OperationResult[int]:
        """Run every statement, then commit.

        Returns:
            ``ok(n)`` with the number of statements executed, or a failed
            result with one of the codes listed in the module docstring.
        """
        timer = start_timer()
        if not self.statements:
            return OperationResult.ok(0, elapsed_ms=timer.elapsed_ms)

        conn = store.conn
        current: str | None = None
        try:
            with conn.cursor() as cur:
                for statement in self.statements:
                    current = statement
                    cur.execute(statement)
        except psycopg2.Error as e:
            self._rollback(conn)
            if current is None:
                logger.error("setup_begin_failed", error=str(e).strip())
                return self._fail("BEGIN_FAILED", "Could not begin database transaction", e, timer)
            logger.error("setup_statement_failed", statement=current, error=str(e).strip())
            return self._fail(
                "EXECUTE_FAILED",
                f"Setup statement failed: {current}",
                e,
                timer,
                statement=current,
            )

        try:
            conn.commit()
        except psycopg2.Error as e:
            logger.error("setup_commit_failed", error=str(e).strip())
            return self._fail("COMMIT_FAILED", "Could not commit setup transaction", e, timer)

        logger.info("setup_committed", statements=len(self.statements))
        return OperationResult.ok(len(self.statements), elapsed_ms=timer.elapsed_ms)

    @staticmethod
    def _rollback(conn: Any) -> None:
        try:
            conn.rollback()
        except psycopg2.Error as e:
            logger.warning("setup_rollback_failed", error=str(e).strip())

    @staticmethod
    def _fail(
        code: str,
        message: str,
        error: Exception,
        timer: Any,
        **details: Any,
    ) -> OperationResult[int]:
        return OperationResult.fail(
            code,
            f"{message}: {str(error).strip()}",
            details=details,
            elapsed_ms=timer.elapsed_ms,
        )


__all__ = ["TransactionRunner"]
