"""
Audit Vault API — Application entry-point.

Initializes the FastAPI application, registers middleware, exception handlers,
routers, and manages the application lifecycle (DB table creation on startup).
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from sqlalchemy import text
from sqlmodel import SQLModel

from auditvault.api.v1.api import api_router
from auditvault.core.config import settings
from auditvault.core.exceptions import add_exception_handlers
from auditvault.core.logging import setup_logging
from auditvault.core.resilience import db_circuit_breaker, retry_async
from auditvault.db.session import AsyncSessionLocal, engine
from auditvault.middleware import RequestIDMiddleware, RequestTimingMiddleware

setup_logging()
logger = logging.getLogger(__name__)

APP_VERSION = "1.0.0"
STARTUP_DB_ATTEMPTS = 5


# ────────────────────────────────────────────────────────────────────────────
# Application lifespan
# ────────────────────────────────────────────────────────────────────────────


async def _create_tables() -> None:
    logger.info("Creating database tables")
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Startup: register every model and create missing tables, retrying while
    the database comes up.  If it never does, the app still starts and
    ``/health`` reports ``database: false``.

    Shutdown: dispose of the connection pool.
    """
    import auditvault.db.base  # noqa: F401

    try:
        await retry_async(
            _create_tables,
            max_attempts=STARTUP_DB_ATTEMPTS,
            base_delay=2.0,
            jitter=False,
            retryable_exceptions=(Exception,),
        )
        logger.info("Database tables ready")
    except Exception as exc:
        logger.error("Database unavailable, starting in degraded mode: %s", exc)

    if not settings.OPENROUTER_API_KEY:
        logger.warning("OPENROUTER_API_KEY not set; chat completions will return 503")

    yield

    logger.info("Shutting down; disposing connection pool")
    await engine.dispose()


# ────────────────────────────────────────────────────────────────────────────
# FastAPI application instance
# ────────────────────────────────────────────────────────────────────────────

app = FastAPI(
    title=settings.PROJECT_NAME,
    version=APP_VERSION,
    description=(
        "Compliance document management: upload fund documents, route them "
        "through review and approval, and keep an audit trail of every change."
    ),
    openapi_url=f"{settings.API_V1_STR}/openapi.json",
    lifespan=lifespan,
)


# ── Middleware (order matters: outermost = first to execute) ──
app.add_middleware(GZipMiddleware, minimum_size=500)
app.add_middleware(RequestIDMiddleware)
app.add_middleware(RequestTimingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS.split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["Content-Disposition", "X-Request-ID"],
)

# ── Global error handlers ──
add_exception_handlers(app)

# ── API routers ──
app.include_router(api_router, prefix=settings.API_V1_STR)


# ── Health check ──


@app.get("/health", tags=["Health"])
async def health_check():
    """
    Liveness / readiness probe.

    Runs ``SELECT 1`` against the database and reports the circuit breaker
    state.
    """
    db_healthy = True
    try:
        async with AsyncSessionLocal() as session:
            await session.execute(text("SELECT 1"))
    except Exception as exc:
        logger.error("Health check database probe failed: %s", exc)
        db_healthy = False

    return {
        "status": "ok" if db_healthy else "degraded",
        "version": APP_VERSION,
        "database": db_healthy,
        "circuit_breaker": db_circuit_breaker.get_status(),
    }
