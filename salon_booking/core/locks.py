import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import structlog

from salon_booking.core.config import settings
from salon_booking.core.exceptions import ConflictError

logger = structlog.get_logger(__name__)


class LocalStaffLocks:
    """Per-staff asyncio locks for single-process deployments and tests.

    Serialises "check availability + write appointment" for one staff member
    within the current event loop. Use the Redis backend when more than one
    worker process serves bookings.
    """

    def __init__(self, wait_seconds: Optional[float] = None):
        self.wait_seconds = (
            settings.BOOKING_LOCK_WAIT_SECONDS if wait_seconds is None else wait_seconds
        )
        self._locks: dict[int, asyncio.Lock] = {}
        # Holders and waiters per staff id; idle locks are dropped
        self._users: dict[int, int] = {}

    @asynccontextmanager
    async def staff_calendar_lock(self, staff_id: int) -> AsyncIterator[None]:
        lock = self._locks.setdefault(staff_id, asyncio.Lock())
        self._users[staff_id] = self._users.get(staff_id, 0) + 1
        try:
            try:
                async with asyncio.timeout(self.wait_seconds):
                    await lock.acquire()
            except TimeoutError:
                logger.warning("Staff calendar lock wait timed out", staff_id=staff_id)
                raise ConflictError(
                    "Staff calendar is busy, please retry", staff_id=staff_id
                )
            try:
                yield
            finally:
                lock.release()
        finally:
            self._users[staff_id] -= 1
            if not self._users[staff_id]:
                del self._users[staff_id]
                del self._locks[staff_id]


def get_staff_locks():
    """Return the lock backend selected by BOOKING_LOCK_BACKEND."""
    if settings.BOOKING_LOCK_BACKEND == "local":
        return _local_locks

    from salon_booking.core.redis import redis_client

    return redis_client


_local_locks = LocalStaffLocks()
