from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import redis.asyncio as redis
import structlog
from redis.exceptions import LockError, RedisError

from salon_booking.core.config import settings
from salon_booking.core.exceptions import ConflictError, TransientStoreError

logger = structlog.get_logger(__name__)


class RedisClient:
    """Redis client used for cross-process staff calendar locks."""

    def __init__(self, url: Optional[str] = None):
        self.url = url or settings.REDIS_URL
        self.redis_pool = None

    async def init_redis(self):
        """Initialize Redis connection pool."""
        try:
            self.redis_pool = redis.ConnectionPool.from_url(
                self.url,
                decode_responses=True,
                retry_on_timeout=True,
                socket_keepalive=True,
                socket_keepalive_options={},
            )

            # Test connection
            async with redis.Redis(connection_pool=self.redis_pool) as r:
                await r.ping()
                logger.info("Redis connection established")

        except Exception as e:
            logger.error("Failed to connect to Redis", exc_info=e)
            raise

    async def get_redis(self) -> redis.Redis:
        """Get Redis client instance."""
        if not self.redis_pool:
            await self.init_redis()
        return redis.Redis(connection_pool=self.redis_pool)

    async def close(self):
        if self.redis_pool:
            await self.redis_pool.disconnect()
            self.redis_pool = None

    @asynccontextmanager
    async def staff_calendar_lock(
        self,
        staff_id: int,
        timeout: Optional[int] = None,
        wait_seconds: Optional[float] = None,
    ) -> AsyncIterator[None]:
        """Hold the booking lock for one staff member's calendar.

        The lock expires after ``timeout`` seconds so a crashed worker cannot
        block the calendar forever.
        """
        lock_key = f"staff_calendar_lock:{staff_id}"
        try:
            client = await self.get_redis()
            lock = client.lock(
                lock_key,
                timeout=timeout or settings.BOOKING_LOCK_TIMEOUT_SECONDS,
                blocking_timeout=(
                    settings.BOOKING_LOCK_WAIT_SECONDS
                    if wait_seconds is None
                    else wait_seconds
                ),
            )
            acquired = await lock.acquire()
        except RedisError as e:
            logger.error("Redis LOCK error", key=lock_key, exc_info=e)
            raise TransientStoreError("Booking lock store unavailable") from e

        if not acquired:
            logger.warning("Staff calendar lock wait timed out", key=lock_key)
            raise ConflictError(
                "Staff calendar is busy, please retry", staff_id=staff_id
            )

        try:
            yield
        finally:
            try:
                await lock.release()
            except LockError as e:
                # Lock expired while held; the next holder already owns the key.
                logger.warning("Staff calendar lock lost", key=lock_key, exc_info=e)


# Global Redis client instance
redis_client = RedisClient()
