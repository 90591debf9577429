"""
FastAPI application

Router registration and app setup.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from core.config.loader import get_settings
from core.logging import setup_logging

# Logging setup (console + file)
setup_logging("web")

from web.routes import entries, health, ledgers

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """App lifecycle"""
    from adapters.db.sqlite_adapter import SQLiteAdapter, init_schema
    from web.dependencies import get_schemas

    settings = get_settings()

    # Re-apply logging with the configured level/directory
    setup_logging("web", console_level=settings.log_level, log_dir=settings.log_dir)

    # Startup - create tables/triggers and fail fast on a bad registers.yaml
    async with SQLiteAdapter(settings.db_path) as db:
        await init_schema(db)
    schemas = get_schemas()

    logger.info(
        "Web: register ledger ready",
        extra={"db_path": str(settings.db_path), "register_types": schemas.register_types},
    )

    yield


app = FastAPI(
    title="Register Ledger API",
    description="Append-only pharmacy registers with optimistic concurrency",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# CORS (development)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# =========================================================================
# API routers
# =========================================================================

app.include_router(health.router)
app.include_router(ledgers.router)
app.include_router(entries.router)
