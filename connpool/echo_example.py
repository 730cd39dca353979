"""Example: concurrent tasks sharing a pool of TCP connections to an echo server."""

from __future__ import annotations

import argparse
import asyncio
import logging

from .pool import ConnectionPool, PoolError
from .tcp import TcpConnection, new_tcp_pool

MESSAGE = b"Hello, world!"


async def _echo_task(pool: ConnectionPool[TcpConnection], number: int) -> bytes:
    print(f"Task {number} trying to get connection")
    try:
        conn = await pool.get_connection()
    except PoolError as exc:
        raise OSError(f"Task {number} failed to get connection: {exc}") from exc
    async with conn:
        print(f"Task {number} got connection")
        conn.writer.write(MESSAGE)
        await conn.writer.drain()
        data = await conn.reader.read(1024)
        print(f"Task {number} received: {data.decode(errors='replace')}")
        print(f"Task {number} finished using connection")
    return data


async def run_generic_pool_example(address="127.0.0.1:8080", tasks: int = 10) -> list[bytes]:
    """Send a greeting from ``tasks`` concurrent tasks and return each reply.

    Raises the first task's error, in task order, if any task failed.
    """
    async with new_tcp_pool(address, max_size=5) as pool:
        results = await asyncio.gather(
            *(_echo_task(pool, n) for n in range(tasks)), return_exceptions=True
        )
    for result in results:
        if isinstance(result, BaseException):
            raise result
    print("All tasks completed")
    return list(results)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Run the echo connection pool example.")
    parser.add_argument("--address", default="127.0.0.1:8080", help="echo server address")
    parser.add_argument("--tasks", type=int, default=10, help="number of concurrent tasks")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.DEBUG)
    print("=== Running Echo Connection Pool Example ===")
    try:
        asyncio.run(run_generic_pool_example(args.address, args.tasks))
    except (OSError, ValueError) as exc:
        print(f"Echo connection pool example error: {exc}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())