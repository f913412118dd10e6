"""Connection factory: open a PostgreSQL-wire connection from a target URL.

The failure gate and the bootstrap orchestrator treat connection targets
as opaque strings and connection factories as opaque fallible callables
(see :class:`ConnectionFactory`). This module provides the concrete
factory used by the CLI, built on psycopg2, which speaks to PostgreSQL
and CockroachDB alike.

Supported targets
-----------------
Anything libpq accepts:

==========================================================  ==========
Target                                                      Form
==========================================================  ==========
``postgresql://root@127.0.0.1:26257/defaultdb?sslmode=disable``  URL
``postgres://user:pw@host:5432/db``                          URL
``host=db.local port=5432 dbname=app user=app``              key/value
==========================================================  ==========

Usage
-----
::

    from breakwater.core.connection import connect_datastore
    from breakwater.core.context import ExecutionContext

    ctx = ExecutionContext.with_timeout(10.0)
    store = connect_datastore(ctx, "postgresql://root@127.0.0.1:26257/defaultdb")
    print(store.info)
    # ConnectionInfo(backend='postgresql', host='127.0.0.1', port=26257, database='defaultdb')
    store.close()

Cancellation
------------
psycopg2's connect blocks, so it runs on a daemon worker thread while the
caller waits for either the connection or the context to finish. A
cancelled context fails the attempt immediately with
``ContextCancelledError``; a connection that arrives afterwards is closed.
"""

from __future__ import annotations

import math
import re
import threading
from collections.abc import Callable
from concurrent.futures import Future
from dataclasses import dataclass
from typing import Any, Protocol, TypeVar

import psycopg2
import psycopg2.extensions

from breakwater.core.context import CANCELED, ExecutionContext
from breakwater.core.errors import ConfigError, ContextCancelledError, DatabaseConnectionError
from breakwater.core.logging import get_logger

logger = get_logger(__name__)

T_co = TypeVar("T_co", covariant=True)

_PASSWORD_RE = re.compile(r"(password\s*=\s*)('(?:[^'\\]|\\.)*'|[^\s&]*)", re.IGNORECASE)


class ConnectionFactory(Protocol[T_co]):
    """Anything that turns ``(ctx, target)`` into a live connection or raises."""

    def __call__(self, ctx: ExecutionContext, target: str) -> T_co: ...


# ── ConnectionInfo / DataStore ───────────────────────────────────────────


@dataclass(frozen=True)
class ConnectionInfo:
    """Log-safe metadata about a connection. Never holds the password."""

    backend: str
    host: str | None = None
    port: int | None = None
    database: str | None = None
    user: str | None = None

    @classmethod
    def from_params(cls, params: dict[str, str]) -> ConnectionInfo:
        port = params.get("port")
        return cls(
            backend="postgresql",
            host=params.get("host"),
            port=int(port) if port and port.isdigit() else None,
            database=params.get("dbname"),
            user=params.get("user"),
        )

    def __repr__(self) -> str:
        parts = [f"backend={self.backend!r}"]
        if self.host:
            parts.append(f"host={self.host!r}")
        if self.port:
            parts.append(f"port={self.port}")
        if self.database:
            parts.append(f"database={self.database!r}")
        return f"ConnectionInfo({', '.join(parts)})"


@dataclass
class DataStore:
    """A live database connection plus metadata about it.

    Owned by exactly one component at a time: the factory hands it to the
    orchestrator, which hands it to the caller.
    """

    conn: Any
    info: ConnectionInfo

    @property
    def closed(self) -> bool:
        return bool(getattr(self.conn, "closed", False))

    def close(self) -> None:
        if not self.closed:
            self.conn.close()


# ── Target helpers ───────────────────────────────────────────────────────


def parse_target(target: str) -> dict[str, str]:
    """Parse a libpq URL or key/value DSN into connection keywords.

    Raises:
        ConfigError: If the target cannot be parsed
    """
    try:
        return psycopg2.extensions.parse_dsn(target)
    except psycopg2.ProgrammingError as e:
        raise ConfigError(
            f"Invalid connection target: {e}".strip(),
            cause=e,
        ).with_context(target=redact_target(target)) from e


def redact_target(target: str) -> str:
    """Return ``target`` with any password replaced by ``***``."""
    redacted = _PASSWORD_RE.sub(r"\1***", target)
    scheme, sep, rest = redacted.partition("://")
    if not sep:
        return redacted

    netloc, slash, tail = rest.partition("/")
    userinfo, at, hostport = netloc.rpartition("@")
    if at and ":" in userinfo:
        user = userinfo.split(":", 1)[0]
        netloc = f"{user}:***@{hostport}"
    return f"{scheme}://{netloc}{slash}{tail}"


# ── Factory ──────────────────────────────────────────────────────────────


def connect_datastore(
    ctx: ExecutionContext,
    target: str,
    *,
    connect: Callable[..., Any] | None = None,
) -> DataStore:
    """Open a connection to ``target``, honouring ``ctx`` cancellation.

    Parameters
    ----------
    ctx:
        Execution context. Its deadline, if any, also bounds libpq's
        ``connect_timeout`` unless the target sets one.
    target:
        libpq URL or key/value DSN.
    connect:
        Driver connect function (defaults to ``psycopg2.connect``).

    Raises
    ------
    ConfigError
        The target cannot be parsed.
    ContextCancelledError
        ``ctx`` was cancelled or expired before a connection arrived.
    DatabaseConnectionError
        The driver refused or failed to connect.
    """
    ctx.check()
    params = parse_target(target)

    remaining = ctx.remaining()
    if remaining is not None and "connect_timeout" not in params:
        params["connect_timeout"] = str(max(1, math.ceil(remaining)))

    conn = _connect_cancellable(ctx, connect or psycopg2.connect, params)
    info = ConnectionInfo.from_params(params)
    logger.debug("datastore_connected", info=repr(info))
    return DataStore(conn=conn, info=info)


def _connect_cancellable(
    ctx: ExecutionContext,
    connect: Callable[..., Any],
    params: dict[str, str],
) -> Any:
    """Run ``connect(**params)`` on a worker thread until done or cancelled."""
    future: Future[Any] = Future()
    finished = threading.Event()

    def run() -> None:
        if not future.set_running_or_notify_cancel():
            return
        try:
            future.set_result(connect(**params))
        except BaseException as exc:  # noqa: BLE001 - delivered to the waiting caller
            future.set_exception(exc)

    future.add_done_callback(lambda _f: finished.set())
    ctx.add_cancel_callback(finished.set)
    threading.Thread(target=run, name="breakwater-connect", daemon=True).start()

    while not finished.is_set():
        remaining = ctx.remaining()
        if remaining is not None and remaining <= 0:
            break
        finished.wait(remaining)

    if future.done():
        try:
            return future.result()
        except psycopg2.Error as e:
            raise DatabaseConnectionError(
                f"Failed to connect to PostgreSQL: {e}".strip(),
                cause=e,
            ) from e

    future.add_done_callback(_close_abandoned)
    raise ContextCancelledError(ctx.reason or CANCELED)


def _close_abandoned(future: Future[Any]) -> None:
    """Close a connection that arrived after its context was cancelled."""
    if future.exception() is not None:
        return
    logger.debug("abandoned_connection_closed")
    future.result().close()


__all__ = [
    "ConnectionFactory",
    "ConnectionInfo",
    "DataStore",
    "connect_datastore",
    "parse_target",
    "redact_target",
]
