import asyncio

import pytest

from connpool.pool import (
    DEFAULT_CLEANUP_INTERVAL,
    DEFAULT_MAX_SIZE,
    CleanupConfig,
    ConnectionCreationError,
    ConnectionManager,
    ConnectionPool,
    PoolClosedError,
    PoolError,
    PoolTimeoutError,
)


class FakeConnection:
    def __init__(self, ident):
        self.id = ident
        self.alive = True


class FakeManager(ConnectionManager):
    def __init__(self, delay=0.0, error=None):
        self.created = 0
        self.delay = delay
        self.error = error

    async def create_connection(self):
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        self.created += 1
        return FakeConnection(self.created)

    async def is_valid(self, connection):
        return connection.alive


NO_CLEANUP = CleanupConfig(enabled=False)
FAST_CLEANUP = CleanupConfig(interval=0.02)


def make_pool(manager=None, **kwargs):
    kwargs.setdefault("cleanup_config", NO_CLEANUP)
    return ConnectionPool(manager or FakeManager(), **kwargs)


async def cycle(pool):
    """Borrow one connection, give it back and return the inner connection."""
    conn = await pool.get_connection()
    inner = conn.connection
    await conn.release()
    return inner


def test_cleanup_config_defaults():
    config = CleanupConfig()
    assert config.interval == DEFAULT_CLEANUP_INTERVAL
    assert config.enabled is True


def test_cleanup_config_rejects_zero_interval():
    with pytest.raises(ValueError):
        CleanupConfig(interval=0)


def test_pool_rejects_zero_size():
    with pytest.raises(ValueError):
        make_pool(max_size=0)


@pytest.mark.asyncio
async def test_default_max_size():
    assert make_pool().max_size == DEFAULT_MAX_SIZE


@pytest.mark.asyncio
async def test_get_and_release_recycles():
    manager = FakeManager()
    pool = make_pool(manager)
    conn = await pool.get_connection()
    assert conn.id == manager.created
    assert pool.outstanding_count == 1
    assert await pool.pool_size() == 0
    await conn.release()
    assert pool.outstanding_count == 0
    assert await pool.pool_size() == 1


@pytest.mark.asyncio
async def test_idle_connection_is_reused():
    manager = FakeManager()
    pool = make_pool(manager)
    inner = await cycle(pool)
    assert await cycle(pool) is inner
    assert manager.created == 1


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "options, invalidate",
    [({}, True), ({"max_idle_time": 0.0}, False)],
    ids=["invalid", "expired"],
)
async def test_stale_idle_connection_is_discarded(options, invalidate):
    manager = FakeManager()
    pool = make_pool(manager, **options)
    inner = await cycle(pool)
    if invalidate:
        inner.alive = False
    assert await cycle(pool) is not inner
    assert manager.created == 2


@pytest.mark.asyncio
async def test_creation_timeout():
    pool = make_pool(FakeManager(delay=1.0), connection_timeout=0.01)
    with pytest.raises(PoolTimeoutError) as info:
        await pool.get_connection()
    assert str(info.value) == "Connection creation timeout"
    assert pool.outstanding_count == 0


@pytest.mark.asyncio
async def test_creation_failure_wraps_error():
    cause = OSError("refused")
    pool = make_pool(FakeManager(error=cause))
    with pytest.raises(ConnectionCreationError) as info:
        await pool.get_connection()
    assert info.value.error is cause
    assert info.value.__cause__ is cause
    assert str(info.value).startswith("Connection creation failed: ")
    assert isinstance(info.value, PoolError)


@pytest.mark.asyncio
async def test_failed_creation_frees_permit():
    manager = FakeManager(error=OSError("refused"))
    pool = make_pool(manager, max_size=1)
    with pytest.raises(ConnectionCreationError):
        await pool.get_connection()
    manager.error = None
    conn = await asyncio.wait_for(pool.get_connection(), 1.0)
    assert conn.id == manager.created


@pytest.mark.asyncio
async def test_max_size_limits_borrowers():
    pool = make_pool(max_size=1)
    held = await pool.get_connection()
    with pytest.raises(TimeoutError):
        await asyncio.wait_for(pool.get_connection(), 0.05)
    await held.release()
    again = await asyncio.wait_for(pool.get_connection(), 1.0)
    assert again.connection is not None and pool.outstanding_count == 1


@pytest.mark.asyncio
async def test_concurrent_borrowers_never_exceed_max_size():
    manager = FakeManager()
    pool = make_pool(manager, max_size=3)
    peak = 0

    async def worker():
        nonlocal peak
        async with await pool.get_connection() as conn:
            peak = max(peak, pool.outstanding_count)
            await asyncio.sleep(0.02)
            return conn.id

    ids = await asyncio.gather(*(worker() for _ in range(5)))
    assert len(ids) == 5
    assert peak <= pool.max_size
    assert manager.created <= pool.max_size
    assert pool.outstanding_count == 0


@pytest.mark.asyncio
async def test_invalid_connection_not_recycled():
    pool = make_pool()
    conn = await pool.get_connection()
    conn.connection.alive = False
    await conn.release()
    assert await pool.pool_size() == 0
    assert pool.outstanding_count == 0


@pytest.mark.asyncio
async def test_into_inner_detaches_connection():
    pool = make_pool(max_size=1)
    conn = await pool.get_connection()
    inner = conn.into_inner()
    assert isinstance(inner, FakeConnection)
    assert pool.outstanding_count == 0
    await conn.release()
    assert await pool.pool_size() == 0
    other = await asyncio.wait_for(pool.get_connection(), 1.0)
    assert other.connection is not inner


@pytest.mark.asyncio
async def test_released_connection_cannot_be_used():
    pool = make_pool()
    conn = await pool.get_connection()
    assert conn.id == 1
    await conn.release()
    assert pool.outstanding_count == 0
    assert await pool.pool_size() == 1
    with pytest.raises(RuntimeError):
        _ = conn.id


@pytest.mark.asyncio
async def test_attribute_access_goes_to_connection():
    pool = make_pool()
    async with await pool.get_connection() as conn:
        assert conn.id == conn.connection.id
        assert conn.alive is True
    assert await pool.pool_size() == 1


@pytest.mark.asyncio
async def test_closed_pool_refuses_connections():
    async with make_pool() as pool:
        await cycle(pool)
    assert await pool.pool_size() == 0
    with pytest.raises(PoolClosedError) as info:
        await pool.get_connection()
    assert str(info.value) == "Connection pool is closed"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "options, invalidate, expected",
    [({"max_idle_time": 0.05}, False, 0), ({}, True, 0), ({}, False, 1)],
    ids=["expired", "invalid", "fresh"],
)
async def test_background_cleanup(options, invalidate, expected):
    async with make_pool(cleanup_config=FAST_CLEANUP, **options) as pool:
        inner = await cycle(pool)
        assert await pool.pool_size() == 1
        if invalidate:
            inner.alive = False
        await asyncio.sleep(0.2)
        assert await pool.pool_size() == expected


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "halt",
    [
        lambda pool: pool.stop_cleanup_task(),
        lambda pool: pool.restart_cleanup_task(CleanupConfig(enabled=False)),
    ],
    ids=["stop", "restart-disabled"],
)
async def test_halted_cleanup_leaves_expired_connections(halt):
    async with make_pool(max_idle_time=0.05, cleanup_config=FAST_CLEANUP) as pool:
        await halt(pool)
        await cycle(pool)
        await asyncio.sleep(0.15)
        assert await pool.pool_size() == 1


@pytest.mark.asyncio
async def test_restart_cleanup_task():
    async with make_pool(max_idle_time=0.05) as pool:
        await cycle(pool)
        await asyncio.sleep(0.1)
        assert await pool.pool_size() == 1
        await pool.restart_cleanup_task(FAST_CLEANUP)
        await asyncio.sleep(0.1)
        assert await pool.pool_size() == 0


def test_pool_built_outside_loop_starts_cleanup_on_use():
    pool = make_pool(max_idle_time=0.01, cleanup_config=CleanupConfig(interval=0.01))

    async def scenario():
        async with pool:
            await cycle(pool)
            await asyncio.sleep(0.1)
            return await pool.pool_size()

    assert asyncio.run(scenario()) == 0