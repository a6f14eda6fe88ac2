"""
FastAPI application factory.

* Registers routes for rides and admin.
* Maps the domain error taxonomy onto HTTP status codes.
* Applies rate-limiting middleware.
* Disposes the DB engine and Redis pool on shutdown.
* Swagger / OpenAPI UI available at ``/docs``.
"""

from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from src.api.middleware import limiter
from src.api.routes import admin, rides
from src.config import settings
from src.domain.exceptions import RydyError
from src.infrastructure.database import engine
from src.infrastructure.redis_client import close_redis

logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Rydy API starting")
    yield
    await close_redis()
    await engine.dispose()
    logger.info("Rydy API stopped")


async def rydy_error_handler(request: Request, exc: RydyError) -> JSONResponse:
    """One stable status and message per error kind."""
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


async def request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    errors = exc.errors()
    if errors:
        first = errors[0]
        field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        detail = f"{field}: {first.get('msg')}" if field else str(first.get("msg"))
    else:
        detail = "Invalid request"
    return JSONResponse(status_code=400, content={"detail": detail})


def create_app() -> FastAPI:
    app = FastAPI(
        title="Rydy API",
        description=(
            "Campus ride booking.  Drivers publish rides with a seat capacity; "
            "students book seats.  Seat counts are changed only through "
            "conditional writes, so concurrent bookings never oversell a ride."
        ),
        version="1.0.0",
        lifespan=lifespan,
    )

    # Rate limiter
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    # Error mapping
    app.add_exception_handler(RydyError, rydy_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)

    # Routers
    app.include_router(rides.router, prefix="/api/v1")
    app.include_router(admin.router, prefix="/api/v1")

    return app
