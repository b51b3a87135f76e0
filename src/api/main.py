import logging
import sys
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from src.adapters.sqlite.migrator import SQLiteMigrator
from src.api.deps import get_settings
from src.rules.loader import load_rules

settings = get_settings()

# Logging setup
logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler for startup/shutdown."""
    settings = get_settings()

    # Load rules and apply migrations on startup (fail-fast)
    try:
        rules = load_rules(settings.rules_path)
        logger.info("Rules %s loaded from %s", rules.project.rules_version, settings.rules_path)
        applied = SQLiteMigrator(settings.db_path, str(settings.migrations_dir)).run_migrations()
        logger.info("Database ready at %s (%d migrations applied)", settings.db_path, len(applied))
    except Exception as e:
        logger.critical("Startup failed: %s", e)
        sys.exit(1)

    yield


app = FastAPI(
    title="Journey Telemetry API",
    version="0.1.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# --- Routers ---
from src.api.routes import admin_analytics, analytics_ingest  # noqa: E402

app.include_router(analytics_ingest.router, prefix="/api/analytics", tags=["Analytics"])
app.include_router(
    admin_analytics.router, prefix="/api/admin/analytics", tags=["Admin Analytics"]
)


# CORS (Allow Frontend)
origins = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health")
def health_check() -> dict[str, Any]:
    """Health check endpoint."""
    return {"status": "ok", "service": "api"}
