"""Generic asyncio connection pool with background cleanup, a TCP manager and examples."""

__version__ = "0.3.6"

__all__ = ["pool", "tcp", "db_example", "echo_example", "cleanup_example"]