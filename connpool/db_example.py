"""Example: a pool of simulated database connections used by concurrent tasks."""

from __future__ import annotations

import argparse
import asyncio
import itertools
import logging
from dataclasses import dataclass, field

from .pool import ConnectionManager, ConnectionPool, PoolError


@dataclass
class DatabaseConnection:
    """A simulated database connection."""

    id: int
    connected: bool = True

    def is_alive(self) -> bool:
        return self.connected


@dataclass(frozen=True)
class DbConnectionParams:
    """Where the simulated database lives."""

    host: str = "localhost"
    port: int = 5432
    database: str = "myapp"


@dataclass
class DbConnectionManager(ConnectionManager[DatabaseConnection]):
    """Creates simulated connections with increasing ids after a short delay."""

    params: DbConnectionParams = field(default_factory=DbConnectionParams)
    delay: float = 0.1
    _ids: itertools.count = field(default_factory=lambda: itertools.count(1), repr=False)

    async def create_connection(self) -> DatabaseConnection:
        await asyncio.sleep(self.delay)
        return DatabaseConnection(next(self._ids))

    async def is_valid(self, connection: DatabaseConnection) -> bool:
        return connection.is_alive()


async def _run_task(pool: ConnectionPool[DatabaseConnection], number: int) -> int | None:
    try:
        conn = await pool.get_connection()
    except PoolError as exc:
        print(f"Task {number} failed to acquire database connection: {exc}")
        return None
    async with conn:
        print(f"Task {number} successfully acquired database connection ID: {conn.id}")
        await asyncio.sleep(0.2)
        print(f"Task {number} completed, returning connection ID: {conn.id}")
        return conn.id


async def example_db_pool(tasks: int = 5) -> dict[int, int | None]:
    """Run ``tasks`` concurrent users over a pool of three connections.

    Returns the connection id each task used, or None where it failed.
    """
    params = DbConnectionParams()
    print("Creating database connection pool...")
    manager = DbConnectionManager(params)
    async with ConnectionPool(manager, max_size=3) as pool:
        print("Testing concurrent connection acquisition...")
        numbers = range(1, tasks + 1)
        ids = await asyncio.gather(*(_run_task(pool, n) for n in numbers))
    print("Database connection pool example completed!")
    return dict(zip(numbers, ids))


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Run the database connection pool example.")
    parser.add_argument("--tasks", type=int, default=5, help="number of concurrent tasks")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.DEBUG)
    print("=== Connection Pool Example ===")
    print("=== Running Generic Connection Pool Example ===")
    try:
        asyncio.run(example_db_pool(args.tasks))
    except Exception as exc:
        print(f"Database connection pool example error: {exc}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())