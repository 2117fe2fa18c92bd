import structlog
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import declarative_base

from salon_booking.core.config import settings

logger = structlog.get_logger(__name__)

Base = declarative_base()


def build_engine(url: str = None, **engine_kwargs) -> AsyncEngine:
    """Create an async engine for the booking store.

    Pooling options can be overridden; worker processes that open a fresh
    event loop per task pass ``poolclass=NullPool``.
    """
    options = {"echo": False, "pool_pre_ping": True, "pool_recycle": 300}
    if "poolclass" in engine_kwargs:
        options.pop("pool_recycle")
    options.update(engine_kwargs)
    return create_async_engine(url or settings.DATABASE_URL, **options)


def build_session_factory(bind: AsyncEngine) -> async_sessionmaker:
    # Appointments are returned to callers after commit
    return async_sessionmaker(bind, class_=AsyncSession, expire_on_commit=False)


engine = build_engine()
AsyncSessionLocal = build_session_factory(engine)


async def init_db():
    """Check the booking store is reachable and create missing tables outside production."""
    import salon_booking.models  # noqa: F401

    try:
        async with engine.begin() as conn:
            await conn.execute(text("SELECT 1"))
            if settings.ENVIRONMENT != "production":
                await conn.run_sync(Base.metadata.create_all)
    except SQLAlchemyError as e:
        logger.error("Booking store unreachable", database_url=engine.url.render_as_string(), exc_info=e)
        raise

    logger.info("Booking store ready", environment=settings.ENVIRONMENT)


async def get_db():
    """Request-scoped session; uncommitted work is rolled back on error."""
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
