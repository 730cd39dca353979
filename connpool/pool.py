"""Generic asyncio connection pool with idle expiry and background cleanup."""

from __future__ import annotations

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from collections import deque
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Generic, TypeVar

log = logging.getLogger(__name__)

DEFAULT_MAX_SIZE = 10
DEFAULT_IDLE_TIMEOUT = 300.0  # seconds
DEFAULT_CONNECTION_TIMEOUT = 10.0  # seconds
DEFAULT_CLEANUP_INTERVAL = 30.0  # seconds

C = TypeVar("C")


def _seconds(value: float | timedelta | None, default: float) -> float:
    if value is None:
        return float(default)
    if isinstance(value, timedelta):
        return value.total_seconds()
    return float(value)


@dataclass(frozen=True)
class CleanupConfig:
    """Settings for the background task that evicts idle or broken connections."""

    interval: float = DEFAULT_CLEANUP_INTERVAL
    enabled: bool = True

    def __post_init__(self) -> None:
        seconds = _seconds(self.interval, DEFAULT_CLEANUP_INTERVAL)
        if seconds <= 0:
            raise ValueError("cleanup interval must be positive")
        object.__setattr__(self, "interval", seconds)


class ConnectionManager(ABC, Generic[C]):
    """Creates new connections and checks existing ones."""

    @abstractmethod
    async def create_connection(self) -> C:
        """Open and return a new connection."""

    @abstractmethod
    async def is_valid(self, connection: C) -> bool:
        """Return True if the connection can still be used."""


class PoolError(Exception):
    """Base class for connection pool errors."""


class PoolClosedError(PoolError):
    """The pool has been closed."""

    def __init__(self, message: str = "Connection pool is closed") -> None:
        super().__init__(message)


class PoolTimeoutError(PoolError):
    """Creating a connection took longer than the pool's timeout."""

    def __init__(self, message: str = "Connection creation timeout") -> None:
        super().__init__(message)


class ConnectionCreationError(PoolError):
    """The manager failed to create a connection."""

    def __init__(self, error: BaseException) -> None:
        super().__init__(f"Connection creation failed: {error}")
        self.error = error


@dataclass
class _IdleConnection:
    connection: Any
    created_at: float


class ManagedConnection(Generic[C]):
    """A connection on loan from a pool; attribute access goes to the connection."""

    def __init__(self, connection: C, pool: ConnectionPool[C]) -> None:
        self._connection: C | None = connection
        self._pool = pool
        self._active = True
        pool._outstanding += 1

    @property
    def connection(self) -> C:
        if not self._active:
            raise RuntimeError("connection has already been released")
        return self._connection  # type: ignore[return-value]

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_"):
            raise AttributeError(name)
        return getattr(self.connection, name)

    def into_inner(self) -> C:
        """Take the connection out of the pool's care; it is not recycled."""
        connection = self.connection
        self._active = False
        self._connection = None
        self._pool._outstanding -= 1
        self._pool._semaphore.release()
        return connection

    async def release(self) -> None:
        """Give the connection back to the pool. Calling it again does nothing."""
        if not self._active:
            return
        connection = self._connection
        self._active = False
        self._connection = None
        pool = self._pool
        pool._outstanding -= 1
        try:
            log.debug("Recycling connection to pool on release")
            await pool._recycle(connection)
        finally:
            pool._semaphore.release()

    async def __aenter__(self) -> ManagedConnection[C]:
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.release()

    def __del__(self) -> None:
        if not getattr(self, "_active", False):
            return
        self._active = False
        connection, self._connection = self._connection, None
        pool = self._pool
        pool._outstanding -= 1
        pool._semaphore.release()
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        if loop.is_closed():
            return
        task = loop.create_task(pool._recycle(connection))
        pool._background.add(task)
        task.add_done_callback(pool._background.discard)

    def __repr__(self) -> str:
        state = repr(self._connection) if self._active else "released"
        return f"ManagedConnection({state})"


class ConnectionPool(Generic[C]):
    """A bounded pool of connections made by a ConnectionManager."""

    def __init__(
        self,
        manager: ConnectionManager[C],
        max_size: int | None = None,
        max_idle_time: float | timedelta | None = None,
        connection_timeout: float | timedelta | None = None,
        cleanup_config: CleanupConfig | None = None,
    ) -> None:
        self._manager = manager
        self._max_size = DEFAULT_MAX_SIZE if max_size is None else int(max_size)
        if self._max_size < 1:
            raise ValueError("max_size must be at least 1")
        self._max_idle_time = _seconds(max_idle_time, DEFAULT_IDLE_TIMEOUT)
        self._connection_timeout = _seconds(connection_timeout, DEFAULT_CONNECTION_TIMEOUT)
        self._cleanup_config = cleanup_config if cleanup_config is not None else CleanupConfig()

        self._idle: deque[_IdleConnection] = deque()
        self._lock = asyncio.Lock()
        self._semaphore = asyncio.Semaphore(self._max_size)
        self._outstanding = 0
        self._closed = False
        self._cleanup_task: asyncio.Task | None = None
        self._cleanup_stop: asyncio.Event | None = None
        self._cleanup_pending = False
        self._background: set[asyncio.Task] = set()

        log.info(
            "Creating connection pool with max_size: %d, idle_timeout: %ss, "
            "connection_timeout: %ss, cleanup_enabled: %s",
            self._max_size,
            self._max_idle_time,
            self._connection_timeout,
            self._cleanup_config.enabled,
        )

        if self._cleanup_config.enabled:
            try:
                asyncio.get_running_loop()
            except RuntimeError:
                # Started on first use inside an event loop.
                self._cleanup_pending = True
            else:
                self.start_cleanup_task()

    @property
    def outstanding_count(self) -> int:
        """Number of connections currently handed out."""
        return self._outstanding

    @property
    def max_size(self) -> int:
        return self._max_size

    async def pool_size(self) -> int:
        """Number of idle connections held by the pool."""
        async with self._lock:
            return len(self._idle)

    async def get_connection(self) -> ManagedConnection[C]:
        """Borrow a connection, reusing an idle one or creating a new one."""
        if self._closed:
            raise PoolClosedError()
        if self._cleanup_pending:
            self.start_cleanup_task()
        log.debug("Attempting to get connection from pool")

        await self._semaphore.acquire()
        try:
            if self._closed:
                raise PoolClosedError()
            entry = await self._take_idle()
            if entry is not None:
                return ManagedConnection(entry.connection, self)
            log.debug("No valid connection available, creating new connection...")
            connection = await self._create()
        except BaseException:
            self._semaphore.release()
            raise
        log.info("Successfully created new connection")
        return ManagedConnection(connection, self)

    async def _take_idle(self) -> _IdleConnection | None:
        async with self._lock:
            while self._idle:
                entry = self._idle.popleft()
                log.debug("Found existing connection in pool, validating...")
                age = time.monotonic() - entry.created_at
                valid = await self._is_valid(entry.connection)
                if age >= self._max_idle_time:
                    log.debug("Connection expired (age: %.3fs), discarding", age)
                elif not valid:
                    log.warning("Connection validation failed, discarding invalid connection")
                else:
                    log.debug(
                        "Reusing existing connection from pool (remaining: %d/%d)",
                        len(self._idle),
                        self._max_size,
                    )
                    return entry
        return None

    async def _create(self) -> C:
        try:
            async with asyncio.timeout(self._connection_timeout) as scope:
                return await self._manager.create_connection()
        except TimeoutError as exc:
            if scope.expired():
                log.warning("Connection creation timed out after %ss", self._connection_timeout)
                raise PoolTimeoutError() from None
            log.error("Failed to create new connection")
            raise ConnectionCreationError(exc) from exc
        except Exception as exc:
            log.error("Failed to create new connection")
            raise ConnectionCreationError(exc) from exc

    async def _is_valid(self, connection: C) -> bool:
        try:
            return bool(await self._manager.is_valid(connection))
        except Exception:
            log.exception("Connection validity check raised; treating as invalid")
            return False

    async def _recycle(self, connection: C) -> None:
        if not await self._is_valid(connection):
            log.debug("Invalid connection, dropping")
            return
        async with self._lock:
            if self._closed:
                log.debug("Pool is closed, dropping connection")
                return
            if len(self._idle) < self._max_size:
                self._idle.append(_IdleConnection(connection, time.monotonic()))
                log.debug(
                    "Connection recycled to pool (pool size: %d/%d)",
                    len(self._idle),
                    self._max_size,
                )
            else:
                log.debug("Pool is full, dropping connection (pool max size: %d)", self._max_size)

    def start_cleanup_task(self) -> None:
        """Start the background cleanup task in the running event loop."""
        if self._cleanup_task is not None and not self._cleanup_task.done():
            log.warning("Cleanup task is already running")
            return
        loop = asyncio.get_running_loop()
        self._cleanup_pending = False
        stop = asyncio.Event()
        self._cleanup_stop = stop
        self._cleanup_task = loop.create_task(
            self._cleanup_loop(self._cleanup_config.interval, stop)
        )

    async def _cleanup_loop(self, interval: float, stop: asyncio.Event) -> None:
        log.info("Background cleanup task started with interval: %ss", interval)
        while True:
            await self._cleanup_once()
            try:
                await asyncio.wait_for(stop.wait(), interval)
            except TimeoutError:
                continue
            log.info("Received shutdown signal, exiting cleanup loop")
            break

    async def _cleanup_once(self) -> None:
        async with self._lock:
            now = time.monotonic()
            before = len(self._idle)
            kept: deque[_IdleConnection] = deque()
            for entry in list(self._idle):
                if now - entry.created_at < self._max_idle_time and await self._is_valid(
                    entry.connection
                ):
                    kept.append(entry)
            self._idle = kept
            removed = before - len(kept)
            if removed:
                log.debug("Background cleanup removed %d expired/invalid connections", removed)
            log.debug(
                "Current pool (remaining %d/%d) after cleanup", len(kept), self._max_size
            )

    async def stop_cleanup_task(self) -> None:
        """Stop the background cleanup task and wait for it to finish."""
        self._cleanup_pending = False
        task, stop = self._cleanup_task, self._cleanup_stop
        self._cleanup_task = None
        self._cleanup_stop = None
        if stop is not None:
            stop.set()
        if task is not None:
            try:
                await task
            except Exception as exc:
                log.error("Error while stopping background cleanup task: %s", exc)
            log.info("Background cleanup task stopped")

    async def restart_cleanup_task(self, cleanup_config: CleanupConfig) -> None:
        """Stop the cleanup task and start it again with a new configuration."""
        await self.stop_cleanup_task()
        self._cleanup_config = cleanup_config
        if cleanup_config.enabled:
            self.start_cleanup_task()

    async def __aenter__(self) -> ConnectionPool[C]:
        if self._cleanup_pending:
            self.start_cleanup_task()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop_cleanup_task()
        self._closed = True
        async with self._lock:
            self._idle.clear()
        if self._background:
            await asyncio.gather(*self._background, return_exceptions=True)

    def __repr__(self) -> str:
        return (
            f"ConnectionPool(max_size={self._max_size}, idle={len(self._idle)}, "
            f"outstanding={self._outstanding})"
        )