"""
FastAPI application factory.

* Registers routes for rides, users, drivers and admin.
* Starts / stops the background ride monitor via lifespan events.
* Maps service-layer errors to JSON error responses.
* Applies rate-limiting.
* Swagger / OpenAPI UI available at ``/docs``.
"""

from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from src.api.middleware import limiter
from src.api.routes import admin, drivers, rides, users
from src.config import settings
from src.infrastructure.redis_client import close_redis
from src.services.errors import ServiceError
from src.workers import monitor as _monitor

logging.basicConfig(level=settings.log_level)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start the ride monitor on startup; stop it and drop Redis connections on shutdown."""
    await _monitor.start_monitor_loop()
    yield
    await _monitor.stop_monitor_loop()
    await close_redis()


async def _service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


def create_app() -> FastAPI:
    app = FastAPI(
        title="Cab Booking API",
        description=(
            "Books cabs, quotes fares per cab type and drives every ride "
            "through one enforced lifecycle: pending/confirmed -> "
            "driver_assigned -> arrived -> in_progress -> completed, with "
            "cancellation from any non-terminal state."
        ),
        version="1.0.0",
        lifespan=lifespan,
    )

    # Rate limiter
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_exception_handler(ServiceError, _service_error_handler)

    # Routers
    app.include_router(rides.router, prefix="/api/v1")
    app.include_router(users.router, prefix="/api/v1")
    app.include_router(drivers.router, prefix="/api/v1")
    app.include_router(admin.router, prefix="/api/v1")

    return app
