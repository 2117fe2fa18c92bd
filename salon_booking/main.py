from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from salon_booking.api.v1.api import api_router
from salon_booking.core.config import settings
from salon_booking.core.database import init_db
from salon_booking.core.exceptions import (
    BookingError,
    ConflictError,
    NotFoundError,
    TransientStoreError,
    ValidationError,
)
from salon_booking.core.logging import configure_logging
from salon_booking.core.redis import redis_client

configure_logging()
logger = structlog.get_logger(__name__)

ERROR_STATUS_CODES = {
    ValidationError: status.HTTP_400_BAD_REQUEST,
    NotFoundError: status.HTTP_404_NOT_FOUND,
    ConflictError: status.HTTP_409_CONFLICT,
    TransientStoreError: status.HTTP_503_SERVICE_UNAVAILABLE,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting application", environment=settings.ENVIRONMENT)
    await init_db()
    if settings.BOOKING_LOCK_BACKEND == "redis":
        await redis_client.init_redis()
    yield
    await redis_client.close()
    logger.info("Application stopped")


app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(BookingError)
async def booking_error_handler(request: Request, exc: BookingError):
    status_code = ERROR_STATUS_CODES.get(
        type(exc), status.HTTP_500_INTERNAL_SERVER_ERROR
    )
    log = logger.warning if status_code < 500 else logger.error
    log(
        "Request failed",
        path=request.url.path,
        error_code=exc.code,
        error=exc.message,
        **exc.context,
    )
    return JSONResponse(
        status_code=status_code,
        content={"status": "error", "message": exc.message, "code": exc.code},
    )


@app.get("/health")
async def health():
    return {"status": "ok", "version": settings.VERSION}


app.include_router(api_router, prefix=settings.API_V1_PREFIX)
