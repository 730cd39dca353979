"""Example: a TCP pool whose idle connections are evicted by the background cleanup task."""

from __future__ import annotations

import argparse
import asyncio
import logging

from .pool import CleanupConfig, PoolError
from .tcp import new_tcp_pool


async def run_background_cleanup_example(
    address="127.0.0.1:8080", scale: float = 1.0
) -> tuple[list[bool], int]:
    """Borrow and return connections, then let the cleanup task evict them.

    Every duration is multiplied by ``scale``. Returns whether each of the five
    attempts succeeded and the number of idle connections left after cleanup ran.
    """
    if scale <= 0:
        raise ValueError("scale must be positive")

    def seconds(value: float) -> float:
        return value * scale

    print("=== Background Cleanup Example ===")
    cleanup_config = CleanupConfig(interval=seconds(5), enabled=True)
    pool = new_tcp_pool(address, 3, seconds(10), seconds(5), cleanup_config)

    print("Created connection pool with background cleanup")
    print("- Max connections: 3")
    print(f"- Idle timeout: {seconds(10):g} seconds")
    print(f"- Cleanup interval: {seconds(5):g} seconds")

    attempts: list[bool] = []
    async with pool:
        print("\nAttempting to create some connections...")
        for number in range(1, 6):
            try:
                conn = await pool.get_connection()
            except PoolError as exc:
                print(f"Connection {number} failed: {exc}")
                attempts.append(False)
            else:
                print(f"Connection {number} created successfully")
                await asyncio.sleep(seconds(0.1))
                await conn.release()
                print(f"Connection {number} dropped")
                attempts.append(True)
            await asyncio.sleep(seconds(0.5))

        print("\nWaiting for background cleanup to run...")
        await asyncio.sleep(seconds(15))
        remaining = await pool.pool_size()

        print("\nManually stopping cleanup task...")
        await pool.stop_cleanup_task()

        print("\nRestarting cleanup with different interval...")
        await pool.restart_cleanup_task(CleanupConfig(interval=seconds(2), enabled=True))

        print("Waiting a bit more to see the new cleanup interval...")
        await asyncio.sleep(seconds(10))

    print("\nBackground cleanup example completed!")
    return attempts, remaining


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Run the background cleanup example.")
    parser.add_argument("--address", default="127.0.0.1:8080", help="server address")
    parser.add_argument("--scale", type=float, default=1.0, help="multiplier for all durations")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.DEBUG)
    asyncio.run(run_background_cleanup_example(args.address, args.scale))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())