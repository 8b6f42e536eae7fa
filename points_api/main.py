"""
FastAPI application factory and entry point.

This module creates and configures the FastAPI application:
  1. Lifespan manager - creates tables on startup, disposes the engine on shutdown
  2. Middleware - CORS and request logging
  3. Exception handlers - maps domain errors to HTTP responses
  4. Router registration - users and transfers

Running locally:
    uvicorn points_api.main:app --reload
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

import points_api.models  # noqa: F401  (registers every table on Base.metadata)
from points_api.config import settings
from points_api.database import engine, Base
from points_api.exceptions import register_exception_handlers
from points_api.logging_config import configure_logging
from points_api.middleware import RequestLogMiddleware
from points_api.routers import transfers, users

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Startup:
      Creates all database tables if they don't exist. Schema migrations are
      out of scope for this service; create_all is the whole schema setup.

    Shutdown:
      Disposes of the database engine, closing all connections cleanly.
    """
    configure_logging(settings.LOG_LEVEL)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("%s %s started", settings.APP_NAME, settings.APP_VERSION)
    yield
    await engine.dispose()


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="User point balances and atomic point transfers with an append-only ledger",
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Middleware
# ---------------------------------------------------------------------------

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_methods=["GET", "POST", "HEAD", "PUT", "DELETE", "PATCH", "OPTIONS"],
    allow_headers=["Origin", "Content-Type", "Accept", "Authorization"],
    expose_headers=["Idempotency-Key", "X-Request-ID"],
)
app.add_middleware(RequestLogMiddleware)

# ---------------------------------------------------------------------------
# Exception handlers
# ---------------------------------------------------------------------------

register_exception_handlers(app)

# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------

app.include_router(users.router, prefix="/users", tags=["Users"])
app.include_router(transfers.router, prefix="/transfers", tags=["Transfers"])


# ---------------------------------------------------------------------------
# Health check
# ---------------------------------------------------------------------------

@app.get("/health", tags=["Health"])
async def health_check():
    """Liveness probe for load balancers and orchestrators."""
    return {"status": "ok", "version": settings.APP_VERSION}
