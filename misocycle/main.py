"""Miso Cycle API, FastAPI application entry point.

Run locally:
    uvicorn misocycle.main:app --reload --port 8000
"""

from __future__ import annotations

import logging
import sys
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from misocycle.config import Settings, get_settings
from misocycle.cycles.config_loader import get_cycle_config, reload_cycle_config
from misocycle.routers import calendar, cycles, export, health, logs, predictions, settings
from misocycle.services.cycle_service import CycleService
from misocycle.services.database import close_pool, init_pool
from misocycle.stores.base import CycleRepository
from misocycle.stores.memory import InMemoryStore
from misocycle.stores.postgres import PostgresStore

# ---------- Logging ----------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-8s %(name)s — %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
    stream=sys.stdout,
)
logger = logging.getLogger("misocycle")


# ---------- Storage ----------

async def build_store(s: Settings) -> CycleRepository:
    if s.storage_backend == "memory":
        return InMemoryStore()
    if s.storage_backend == "postgres":
        await init_pool(s)
        store = PostgresStore()
        await store.ensure_schema()
        return store
    raise ValueError(f"Unknown storage backend {s.storage_backend!r}")


def build_service(s: Settings, store: CycleRepository) -> CycleService:
    if s.cycle_config_path:
        config = reload_cycle_config(Path(s.cycle_config_path))
    else:
        config = get_cycle_config()
    clock = (lambda: s.today_override) if s.today_override else None
    return CycleService(store, config=config, clock=clock, app_version=s.app_version)


# ---------- Lifespan ----------

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup / shutdown hooks."""
    s = get_settings()
    logging.getLogger().setLevel(s.log_level.upper())
    logger.info(
        "Starting Miso Cycle API v%s [%s, %s storage]",
        s.app_version,
        s.environment,
        s.storage_backend,
    )
    store = await build_store(s)
    app.state.cycle_service = build_service(s, store)
    yield
    await store.close()
    if isinstance(store, PostgresStore):
        await close_pool()
    logger.info("Miso Cycle API shut down")


# ---------- App factory ----------

def create_app() -> FastAPI:
    s = get_settings()

    app = FastAPI(
        title="Miso Cycle API",
        description=(
            "Period tracking backend: cycle detection from logged days, "
            "fertility estimates, predictions and insights."
        ),
        version=s.app_version,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=s.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ---------- Health check (outside v1 prefix, always at /health) ----------
    app.include_router(health.router)

    # ---------- API v1 routes ----------
    v1_prefix = "/api/v1"

    app.include_router(logs.router, prefix=v1_prefix)
    app.include_router(cycles.router, prefix=v1_prefix)
    app.include_router(calendar.router, prefix=v1_prefix)
    app.include_router(predictions.router, prefix=v1_prefix)
    app.include_router(settings.router, prefix=v1_prefix)
    app.include_router(export.router, prefix=v1_prefix)

    return app


app = create_app()
