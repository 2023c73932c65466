"""FastAPI application entry point for the treasure hunt solver.

The lifespan handler owns the solve job store and worker pool: both are
created at startup and torn down at shutdown.
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import timedelta

import structlog
from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from treasure_hunt.api.generator import router as generator_router
from treasure_hunt.api.history import router as history_router
from treasure_hunt.api.solve import router as solve_router
from treasure_hunt.config.settings import Settings, get_settings
from treasure_hunt.db.session import get_session_factory
from treasure_hunt.jobs.history import HistoryRecorder
from treasure_hunt.jobs.orchestrator import JobOrchestrator
from treasure_hunt.jobs.store import JobStore

APP_VERSION = "0.1.0"

settings = get_settings()

_LOG_NAME_TO_LEVEL: dict[str, int] = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}

# --- Structured logging ---
structlog.configure(
    processors=[
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.dev.ConsoleRenderer() if settings.ENVIRONMENT == "dev"
        else structlog.processors.JSONRenderer(),
    ],
    wrapper_class=structlog.make_filtering_bound_logger(
        _LOG_NAME_TO_LEVEL[settings.LOG_LEVEL.value],
    ),
    context_class=dict,
    logger_factory=structlog.PrintLoggerFactory(),
    cache_logger_on_first_use=True,
)
logging.basicConfig(level=_LOG_NAME_TO_LEVEL[settings.LOG_LEVEL.value])

logger: structlog.stdlib.BoundLogger = structlog.get_logger()


def build_orchestrator(
    app_settings: Settings,
    session_factory: async_sessionmaker[AsyncSession],
) -> JobOrchestrator:
    """Wire a JobOrchestrator from settings with a fresh JobStore."""
    return JobOrchestrator(
        store=JobStore(),
        recorder=HistoryRecorder(session_factory),
        max_workers=app_settings.SOLVER_MAX_WORKERS,
        retention=timedelta(seconds=app_settings.JOB_RETENTION_SECONDS),
        require_all_tiers=app_settings.REQUIRE_ALL_TIERS,
        max_cells=app_settings.MAX_GRID_CELLS,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    orchestrator = build_orchestrator(settings, get_session_factory())
    orchestrator.start()
    app.state.orchestrator = orchestrator
    logger.info("startup complete", workers=settings.SOLVER_MAX_WORKERS)
    try:
        yield
    finally:
        await orchestrator.shutdown()
        orchestrator.store.clear()
        app.state.orchestrator = None
        logger.info("shutdown complete")


# --- FastAPI app ---
app = FastAPI(
    title="Treasure Hunt Solver API",
    description="Minimum-fuel treasure hunt routes computed as cancellable background jobs.",
    version=APP_VERSION,
    lifespan=lifespan,
)

# --- CORS middleware ---
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if settings.ENVIRONMENT == "dev" else [],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# --- Routers ---
app.include_router(solve_router)
app.include_router(history_router)
app.include_router(generator_router)


# --- Infrastructure Endpoints ---


@app.get("/health")
async def health_check(
    request: Request,
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
) -> dict:
    """Liveness probe with component health checks.

    Returns 200 always (degraded status if components are down).
    """
    checks: dict[str, bool] = {"api": True}

    # Database connectivity check
    try:
        async with session_factory() as session:
            await session.execute(text("SELECT 1"))
        checks["database"] = True
    except Exception:
        checks["database"] = False

    orchestrator = getattr(request.app.state, "orchestrator", None)
    checks["workers"] = orchestrator is not None and orchestrator.running

    all_ok = all(checks.values())

    return {
        "status": "ok" if all_ok else "degraded",
        "version": APP_VERSION,
        "environment": settings.ENVIRONMENT.value,
        "checks": checks,
    }


@app.get("/api/version")
async def get_version() -> dict[str, str]:
    """Return application name, version, and environment."""
    return {
        "name": "Treasure Hunt Solver",
        "version": APP_VERSION,
        "environment": settings.ENVIRONMENT.value,
    }
