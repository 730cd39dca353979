# connpool

This is a generic asyncio connection pool. You supply a manager that creates connections. The pool hands those connections out and limits how many are in use at once. It also reuses idle connections. A background task drops connections that have been idle too long or that no longer pass validation.

## Installation

```bash
pip install .
```

To run the test suite:

```bash
pip install ".[test]"
pytest
```

## Writing a manager

A manager knows how to open a connection and how to check that one is still usable. Subclass `connpool.pool.ConnectionManager` and implement both coroutines:

```python
from connpool.pool import ConnectionManager


class MyManager(ConnectionManager):
    async def create_connection(self):
        return await open_my_connection()

    async def is_valid(self, connection):
        return connection.is_open()
```

The pool treats an exception raised by `is_valid` as "not valid".

## Using a pool

```python
import asyncio
from datetime import timedelta

from connpool.pool import CleanupConfig, ConnectionPool, PoolError


async def main():
    pool = ConnectionPool(
        MyManager(),
        max_size=3,
        max_idle_time=timedelta(seconds=10),
        connection_timeout=timedelta(seconds=5),
        cleanup_config=CleanupConfig(interval=timedelta(seconds=5), enabled=True),
    )
    async with pool:
        try:
            async with await pool.get_connection() as managed:
                managed.connection  # the underlying connection
        except PoolError as error:
            print(f"could not get a connection: {error}")

asyncio.run(main())
```

Durations can be given as seconds (`int` or `float`) or as `timedelta`. Any argument you leave out takes its default:

- at most 10 connections;
- a 5 minute idle timeout;
- a 10 second connection timeout;
- a cleanup pass every 30 seconds.

`max_size` must be at least 1, and the cleanup interval must be positive.

If the pool is created outside a running event loop, the cleanup task starts on first use. First use means either entering `async with pool` or calling `get_connection()`. Leaving the pool's `async with` block has three effects:

- it stops the cleanup task;
- it drops the idle connections;
- it closes the pool, so later calls to `get_connection()` raise `PoolClosedError`.

### Managed connections

`get_connection()` returns a `ManagedConnection`. Its `connection` attribute is the underlying connection. Other public attribute lookups are forwarded to that connection, so `managed.id` reads `managed.connection.id`.

You release a managed connection by leaving its `async with` block or by calling `await managed.release()`. On release, the connection is checked with `is_valid`. If it is still good and the pool has room, it is kept for reuse. Calling `into_inner()` takes the connection out of the pool for good, and it is not recycled.

An idle connection is reused only if both of these hold:

- it has been idle for less than the idle timeout;
- it passes `is_valid`.

Otherwise it is discarded and the next idle connection is tried. If none is left, a new connection is created.

### Errors

`get_connection()` raises one of three errors, all derived from `PoolError`:

- `PoolTimeoutError` is raised when creating a connection takes longer than the connection timeout.
- `ConnectionCreationError` is raised when the manager fails to create a connection. The original exception is in its `error` attribute.
- `PoolClosedError` is raised when the pool has been closed.

### Inspecting and controlling the pool

- `pool.outstanding_count` (property) is the number of connections currently handed out.
- `pool.max_size` (property) is the configured maximum.
- `await pool.pool_size()` is the number of idle connections held.

The background cleanup task is controlled with:

- `start_cleanup_task()`;
- `await stop_cleanup_task()`;
- `await restart_cleanup_task(cleanup_config)`.

## TCP connections

`connpool.tcp` provides a ready-made manager for plain TCP streams:

```python
from connpool.tcp import new_tcp_pool

pool = new_tcp_pool("127.0.0.1:8080", max_size=5)
```

Each connection is a `TcpConnection` with `reader` and `writer` streams and an `async close()` method.

The address can be given in any of these forms:

- `"host:port"`;
- `"[ipv6-address]:port"`;
- a `(host, port)` tuple, where the host is a string or an `ipaddress` address object.

`parse_address` turns any of these into a `(host, port)` tuple. It raises `ValueError` for malformed addresses or ports outside 0–65535.

A TCP connection counts as invalid if any of these is true:

- its writer is closing;
- it has no peer;
- its reader has an error;
- its reader has reached end of file.

## Examples

Three runnable examples are installed as commands:

```bash
connpool-db-example [--tasks N]
connpool-echo-example [--address HOST:PORT] [--tasks N]
connpool-cleanup-example [--address HOST:PORT] [--scale FACTOR]
```

- `connpool-db-example` runs concurrent tasks over a pool of three simulated database connections.
- `connpool-echo-example` has concurrent tasks send `Hello, world!` over a pool of five TCP connections and print the replies.
- `connpool-cleanup-example` borrows and returns TCP connections, waits for the background cleanup, then stops the cleanup task and restarts it with a shorter interval. `--scale` multiplies every duration; at the default of 1 it runs for about half a minute.

## What it does not do

The package includes no servers. The echo example needs an echo server that you run yourself at the given address (default `127.0.0.1:8080`). Without one, each task fails and the error is printed.

The cleanup example runs whether or not a server is there; failed connection attempts are simply reported. The TCP manager opens plain, unencrypted streams only.