"""FastAPI application entry point."""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from freeze_guard.config import settings
from freeze_guard.database import engine, create_db_and_tables
from freeze_guard.utils.logging import setup_logging
from freeze_guard.api import strategy_freeze, system
from freeze_guard.services.freeze_service import FreezeService
from freeze_guard.services.freeze_store import FreezeStore
from freeze_guard.services.key_discovery import KeyDiscovery


def build_services(app: FastAPI, store: FreezeStore):
    """Attach the process-wide service objects to ``app.state``."""
    app.state.freeze_service = FreezeService(store)
    app.state.key_discovery = KeyDiscovery(
        store,
        default_symbols=settings.default_symbols,
        default_strategy_names=settings.default_strategy_names,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    setup_logging()
    create_db_and_tables(engine)
    build_services(
        app,
        FreezeStore(
            engine,
            default_threshold=settings.default_freeze_threshold,
            default_duration_hours=settings.default_freeze_hours,
        ),
    )

    yield

    engine.dispose()


app = FastAPI(
    title="Freeze Guard",
    description="Per-strategy loss circuit breaker with admin API",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Mount routers
app.include_router(strategy_freeze.router)
app.include_router(system.router)
