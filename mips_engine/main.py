"""
FastAPI application entry point for the MIPS scoring engine.

Configures logging and CORS, manages the asyncpg pool through the lifespan
handler, and mounts the API routers:

- /eligibility   eligibility evaluation
- /measures      selection validation, catalog, selection persistence, quality recalculation
- /pi, /ia       attestations
- /scores        composite scoring
- /gaps          data gap analysis
- /timeline      program calendar
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from mips_engine import __version__
from mips_engine.api import api_router
from mips_engine.core.database import close_db, init_db
from mips_engine.core.dependencies import DBSessionDep

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Open the database pool on startup and close it on shutdown."""
    logger.info("MIPS Scoring Engine starting")
    try:
        await init_db()
        logger.info("Database connection pool initialized")
    except Exception as e:
        # Timeline endpoints work without the database
        logger.error(f"Failed to initialize database: {e}")

    yield

    logger.info("MIPS Scoring Engine shutting down")
    try:
        await close_db()
        logger.info("Database connection pool closed")
    except Exception as e:
        logger.error(f"Error closing database pool: {e}")


app = FastAPI(
    title="MIPS Scoring Engine",
    version=__version__,
    description=(
        "Eligibility, measure selection, category scoring, composite score and "
        "payment adjustment, data gap analysis and program timeline for MIPS."
    ),
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router)


@app.get("/health")
async def health_check():
    """Liveness check."""
    return {"status": "healthy"}


@app.get("/health/db")
async def database_health_check(db: DBSessionDep):
    """Readiness check: round-trips a query through the pool."""
    await db.fetchval("SELECT 1")
    return {"status": "healthy", "database": "connected"}


@app.get("/")
async def root():
    return {
        "name": "MIPS Scoring Engine",
        "version": __version__,
        "docs": "/docs",
        "openapi": "/openapi.json",
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "mips_engine.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
    )
