"""
Harvest registry FastAPI application.

Cooperatives manage their farmers and each farmer's crop projects; project
areas can never add up to more than the farmer's declared land.

All routers are mounted with /api/v1 prefix.
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from harvest.config import settings
from harvest.database import Base, engine
from harvest.routers import farmers, projects
from harvest.schemas.common import HealthResponse
import harvest.models  # noqa: F401

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # ---- Startup ----
    logger.info("Starting Harvest registry API...")
    if settings.DB_AUTO_CREATE:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables ensured (DB_AUTO_CREATE)")
    logger.info("Harvest registry API ready.")
    yield
    # ---- Shutdown ----
    await engine.dispose()
    logger.info("Harvest registry API stopped.")


app = FastAPI(
    title="Harvest Registry API",
    description=(
        "Multi-tenant agricultural registry: cooperatives register farmers and "
        "allocate their land to crop projects."
    ),
    version="0.1.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ---- Register routers ----
_PREFIX = "/api/v1"

app.include_router(farmers.router, prefix=_PREFIX)
app.include_router(projects.router, prefix=_PREFIX)


@app.get("/health", response_model=HealthResponse, tags=["admin"])
async def health_check():
    return HealthResponse(status="ok", service="harvest-registry")


@app.get("/", tags=["admin"])
async def root():
    return {
        "service": "Harvest Registry API",
        "docs": "/docs",
        "version": "0.1.0",
    }
