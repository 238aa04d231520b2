"""
FastAPI application for court reservations.

Wires the routers, the SQLite connection (opened and closed by the
lifespan) and rate limiting.  A stored organization configuration that
fails validation surfaces as ``ConfigurationError`` and is answered with
503 for every request touching that organization.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from app import db
from app.config import ENVIRONMENT
from app.engine.errors import ConfigurationError
from app.models import Error
from app.rate_limit import limiter
from app.routers import bookings, health, resources

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting court reservations API (%s)", ENVIRONMENT)
    await db.init_db()
    try:
        yield
    finally:
        await db.close_db()


app = FastAPI(
    title="Court Reservations API",
    description="Booking admission control for court reservations",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


@app.exception_handler(ConfigurationError)
async def configuration_error_handler(request: Request, exc: ConfigurationError) -> JSONResponse:
    logger.error("Configuration for organization %s is invalid: %s", exc.org_id, exc.message)
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={
            "detail": Error(
                error=exc.kind.value,
                message="Booking is unavailable for this organization until its "
                        "configuration is fixed.",
                details={"org_id": exc.org_id, "reason": exc.message},
            ).model_dump()
        },
    )


app.include_router(health.router)
app.include_router(resources.router)
app.include_router(bookings.router)
