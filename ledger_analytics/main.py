"""Ledger Analytics API — Main entry point."""

from contextlib import asynccontextmanager

import structlog
from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ledger_analytics.api.deps import get_ledger_reader
from ledger_analytics.config import settings
from ledger_analytics.core.database import engine
from ledger_analytics.core.exceptions import UpstreamReadError
from ledger_analytics.core.middleware import RequestLoggingMiddleware
from ledger_analytics.services.ledger import LedgerReader

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: startup and shutdown events."""
    # Startup
    logger.info("Starting Ledger Analytics API", env=settings.app_env)
    yield
    # Shutdown
    logger.info("Shutting down Ledger Analytics API")
    await engine.dispose()


app = FastAPI(
    title="Ledger Analytics API",
    description="Workspace financial analytics: breakdowns, trends, cash flow and forecasts",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
    redirect_slashes=False,
)

# ── Middleware ─────────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["GET"],
    allow_headers=["*"],
)
app.add_middleware(RequestLoggingMiddleware)


# ── Health Check ──────────────────────────────────
@app.get("/health", tags=["system"])
async def health_check():
    """Liveness check: always healthy while the process is running."""
    return {"status": "healthy", "version": "0.1.0"}


@app.get("/ready", tags=["system"])
async def readiness_check(ledger: LedgerReader = Depends(get_ledger_reader)):
    """Readiness check: pings the ledger store."""
    checks = {"ledger": "unknown", "api": "ok"}
    try:
        await ledger.ping()
        checks["ledger"] = "ok"
    except UpstreamReadError as e:
        logger.warning("readiness_check_failed", error=str(e))
        checks["ledger"] = f"error: {e}"
        return {"status": "degraded", "checks": checks}

    return {"status": "ready", "checks": checks}


# ── API Routes ────────────────────────────────────
from ledger_analytics.api.v1 import analytics  # noqa: E402

app.include_router(analytics.router, prefix="/api/v1/analytics", tags=["analytics"])
