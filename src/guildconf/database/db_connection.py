"""
Database connection management: one long-lived connection per process.

Connection state machine
------------------------
``DISCONNECTED -> CONNECTING -> CONNECTED``, and back to ``DISCONNECTED``
whenever an operation hits a transport error. Operations never talk to the
connection directly; they go through :meth:`ConnectionManager.run`, which

  - connects on demand (only one task connects, the others wait for it),
  - bounds each operation with the configured timeout,
  - retries once after a reconnect when the transport fails,
  - raises :class:`~guildconf.errors.StorageError` when that is not enough.

Writes are serialised through ``_write_sem`` and run inside a transaction
that commits on clean exit and rolls back on error. The operation timeout
covers the transaction only, not the wait for the semaphore.

Usage
-----
    connection = ConnectionManager(Path("data/guild_settings.db"))
    await connection.open()

    row = await connection.run("load_settings", lambda conn: ...)
    await connection.run("upsert_settings", lambda conn: ..., write=True)

    await connection.close()
"""

from __future__ import annotations

import asyncio
import time
from enum import Enum
from pathlib import Path
from typing import Awaitable, Callable, Optional, TypeVar

import aiosqlite

from guildconf.database.db_perf_mon import DatabasePerformanceMonitor
from guildconf.database.db_schema import SchemaManager
from guildconf.errors import StorageError
from guildconf.util.logger import get_logger

logger = get_logger("database_connection")

T = TypeVar("T")

# ── Pragmas applied once when the connection is opened ──────────────────────
_PRAGMAS = [
    "PRAGMA journal_mode = WAL",
    "PRAGMA foreign_keys = ON",
    "PRAGMA synchronous = NORMAL",    # safe with WAL; faster than FULL
    "PRAGMA busy_timeout = 5000",
    "PRAGMA temp_store = MEMORY",
]

# Errors after which the connection can no longer be trusted. aiosqlite
# raises ValueError once its worker thread has lost the connection.
TRANSPORT_ERRORS = (
    aiosqlite.OperationalError,
    aiosqlite.ProgrammingError,
    OSError,
    ValueError,
)


class ConnectionState(Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"

    def __str__(self) -> str:
        return self.value


class ConnectionManager:
    """
    Owner of the single aiosqlite connection shared by all guilds.

    Created once at startup and injected into the settings store; the
    reconnect logic stays internal.
    """

    def __init__(
        self,
        path: Path,
        operation_timeout: Optional[float] = 10.0,
        reconnect_attempts: int = 1,
        perf_monitor: Optional[DatabasePerformanceMonitor] = None,
    ) -> None:
        """
        Args:
            path: Path to the SQLite database file.
            operation_timeout: Seconds a single operation may take, or None.
            reconnect_attempts: Reconnects an operation may trigger before failing.
            perf_monitor: Receives the duration of every operation.
        """
        self.path = Path(path)
        self.operation_timeout = operation_timeout
        self.reconnect_attempts = reconnect_attempts
        self.perf_monitor = perf_monitor or DatabasePerformanceMonitor()

        self._conn: aiosqlite.Connection | None = None
        self._state = ConnectionState.DISCONNECTED
        self._connect_lock = asyncio.Lock()
        self._write_sem = asyncio.Semaphore(1)   # one writer at a time
        self._closed = False

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state is ConnectionState.CONNECTED

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def open(self) -> None:
        """
        Connect eagerly so configuration problems surface at startup.

        Raises:
            StorageError: If the database cannot be opened.
        """
        self._closed = False
        await self._ensure_connected()

    async def close(self) -> None:
        """
        Flush the WAL and close the connection. Later operations fail with
        StorageError until :meth:`open` is called again.
        """
        self._closed = True
        conn, self._conn = self._conn, None
        self._state = ConnectionState.DISCONNECTED
        if conn is None:
            return

        try:
            await conn.execute("PRAGMA wal_checkpoint(TRUNCATE)")
            await conn.commit()
        except (aiosqlite.Error, ValueError):
            logger.exception("[DB CONNECTION] WAL checkpoint failed during close")
        finally:
            await self._close_quietly(conn)
            logger.info("[DB CONNECTION] Connection to %s closed", self.path)

    async def _open_connection(self) -> aiosqlite.Connection:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        conn = await aiosqlite.connect(self.path)
        try:
            conn.row_factory = aiosqlite.Row
            for pragma in _PRAGMAS:
                await conn.execute(pragma)
            await SchemaManager.initialize_schema(conn)
        except BaseException:
            await self._close_quietly(conn)
            raise
        return conn

    async def _ensure_connected(self) -> aiosqlite.Connection:
        if self._closed:
            raise StorageError("Connection manager is closed")

        conn = self._conn
        if self._state is ConnectionState.CONNECTED and conn is not None:
            return conn

        async with self._connect_lock:
            conn = self._conn
            if self._state is ConnectionState.CONNECTED and conn is not None:
                return conn

            self._state = ConnectionState.CONNECTING
            logger.info("[DB CONNECTION] Connecting to %s", self.path)
            try:
                conn = await self._with_timeout(self._open_connection())
            except (aiosqlite.Error, OSError, ValueError) as exc:
                self._state = ConnectionState.DISCONNECTED
                logger.error("[DB CONNECTION] Could not connect to %s: %s", self.path, exc)
                raise StorageError(f"Could not connect to {self.path}: {exc}") from exc

            self._conn = conn
            self._state = ConnectionState.CONNECTED
            logger.info("[DB CONNECTION] Connected to %s", self.path)
            return conn

    async def _mark_disconnected(self, conn: aiosqlite.Connection) -> None:
        # Only tear down the connection that failed, not a newer one
        if self._conn is not conn:
            return
        self._conn = None
        self._state = ConnectionState.DISCONNECTED
        await self._close_quietly(conn)

    @staticmethod
    async def _close_quietly(conn: aiosqlite.Connection) -> None:
        try:
            await conn.close()
        except (aiosqlite.Error, ValueError) as exc:
            logger.debug("[DB CONNECTION] Ignoring error while closing connection: %s", exc)

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def _with_timeout(self, awaitable: Awaitable[T]) -> T:
        if self.operation_timeout is None:
            return await awaitable
        return await asyncio.wait_for(awaitable, self.operation_timeout)

    async def _transaction(
        self,
        conn: aiosqlite.Connection,
        operation: Callable[[aiosqlite.Connection], Awaitable[T]],
    ) -> T:
        try:
            result = await operation(conn)
            await conn.commit()
        except Exception:
            try:
                await conn.rollback()
            except (aiosqlite.Error, ValueError) as exc:
                logger.debug("[DB CONNECTION] Rollback failed: %s", exc)
            raise
        return result

    async def _execute(
        self,
        conn: aiosqlite.Connection,
        operation: Callable[[aiosqlite.Connection], Awaitable[T]],
        write: bool,
    ) -> T:
        if not write:
            return await self._with_timeout(operation(conn))
        # The timeout starts once this writer holds the semaphore
        async with self._write_sem:
            return await self._with_timeout(self._transaction(conn, operation))

    async def run(
        self,
        name: str,
        operation: Callable[[aiosqlite.Connection], Awaitable[T]],
        *,
        write: bool = False,
    ) -> T:
        """
        Run ``operation`` against the shared connection.

        Args:
            name: Operation name used for logging and timing.
            operation: Coroutine function receiving the connection.
            write: Run inside a serialised transaction.

        Returns:
            Whatever ``operation`` returns.

        Raises:
            StorageError: On timeout, on a rejected statement, or when the
                transport still fails after the allowed reconnects.
        """
        attempts = 1 + self.reconnect_attempts
        last_error: Optional[BaseException] = None

        for attempt in range(1, attempts + 1):
            try:
                conn = await self._ensure_connected()
            except StorageError as exc:
                last_error = exc
                continue

            started = time.perf_counter()
            try:
                result = await self._execute(conn, operation, write)
            except asyncio.TimeoutError:
                logger.error("[DB CONNECTION] %s timed out after %ss", name, self.operation_timeout)
                await self._mark_disconnected(conn)
                raise StorageError(f"{name} timed out after {self.operation_timeout}s") from None
            except TRANSPORT_ERRORS as exc:
                last_error = exc
                logger.warning(
                    "[DB CONNECTION] %s failed (attempt %d/%d): %s",
                    name, attempt, attempts, exc
                )
                await self._mark_disconnected(conn)
                continue
            except aiosqlite.Error as exc:
                logger.error("[DB CONNECTION] %s rejected by the database: %s", name, exc)
                raise StorageError(f"{name} rejected by the database: {exc}") from exc
            finally:
                self.perf_monitor.track(name, time.perf_counter() - started)

            return result

        raise StorageError(f"{name} failed after {attempts} attempt(s): {last_error}") from last_error
