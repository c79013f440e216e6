"""
FastAPI application factory.

* Registers routes for rides, bookings, ratings and admin.
* Maps core errors to HTTP responses in a single exception handler.
* Applies rate-limiting middleware.
* Closes the database and Redis pools via the lifespan handler.
* Swagger / OpenAPI UI available at ``/docs``.
"""

from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from src.api.middleware import limiter
from src.api.routes import admin, bookings, ratings, rides
from src.config import settings
from src.domain.errors import BookingCoreError
from src.infrastructure.database import dispose_engine
from src.infrastructure.redis_client import close_redis

logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Release the DB pool and the Redis pool on shutdown."""
    yield
    await close_redis()
    await dispose_engine()


_STATUS_BY_KIND = {
    "not_found": 404,
    "forbidden": 403,
    "invalid_input": 422,
}


async def core_error_handler(request: Request, exc: BookingCoreError) -> JSONResponse:
    status_code = _STATUS_BY_KIND.get(exc.kind, 409)
    logger.info(
        "%s %s rejected: %s (%s)", request.method, request.url.path, exc.message, exc.kind
    )
    return JSONResponse(
        status_code=status_code,
        content={"detail": exc.message, "error": exc.kind},
    )


def create_app() -> FastAPI:
    app = FastAPI(
        title="Ride Sharing Booking API",
        description=(
            "Drivers publish rides with a seat inventory; passengers request "
            "seats, drivers approve or reject them, and both sides rate each "
            "other once the ride is completed.  Seat bookkeeping is atomic "
            "under concurrent approvals and cancellations."
        ),
        version="1.0.0",
        lifespan=lifespan,
    )

    # Rate limiter
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_exception_handler(BookingCoreError, core_error_handler)

    # Routers
    app.include_router(rides.router, prefix="/api/v1")
    app.include_router(bookings.router, prefix="/api/v1")
    app.include_router(ratings.router, prefix="/api/v1")
    app.include_router(admin.router, prefix="/api/v1")

    return app
