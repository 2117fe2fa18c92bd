from unittest.mock import AsyncMock, MagicMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError, LockError

from salon_booking.core.exceptions import ConflictError, TransientStoreError
from salon_booking.core.redis import RedisClient


def client_with_lock(acquired=True, release_error=None):
    lock = MagicMock()
    lock.acquire = AsyncMock(return_value=acquired)
    lock.release = AsyncMock(side_effect=release_error)
    redis_conn = MagicMock()
    redis_conn.lock.return_value = lock

    client = RedisClient(url="redis://test:6379/0")
    client.get_redis = AsyncMock(return_value=redis_conn)
    return client, redis_conn, lock


class TestRedisStaffCalendarLock:
    @pytest.mark.asyncio
    async def test_lock_is_keyed_per_staff_and_released(self):
        client, redis_conn, lock = client_with_lock()

        async with client.staff_calendar_lock(7, timeout=10, wait_seconds=0.5):
            lock.release.assert_not_awaited()

        redis_conn.lock.assert_called_once_with(
            "staff_calendar_lock:7", timeout=10, blocking_timeout=0.5
        )
        lock.release.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_wait_timeout_raises_conflict(self):
        client, _, lock = client_with_lock(acquired=False)

        with pytest.raises(ConflictError):
            async with client.staff_calendar_lock(7):
                pass

        lock.release.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_redis_failure_raises_transient_error(self):
        client, _, lock = client_with_lock()
        lock.acquire.side_effect = RedisConnectionError("connection refused")

        with pytest.raises(TransientStoreError):
            async with client.staff_calendar_lock(7):
                pass

    @pytest.mark.asyncio
    async def test_expired_lock_on_release_is_not_raised(self):
        client, _, _ = client_with_lock(release_error=LockError("expired"))

        async with client.staff_calendar_lock(7):
            pass
