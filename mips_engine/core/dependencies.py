"""
FastAPI dependency injection module for the MIPS scoring engine.

Key Dependencies Provided:
- get_db_session: Async generator yielding a pooled database connection
- get_settings_dependency: Returns the cached Settings singleton
- DBSessionDep / SettingsDep: Annotated aliases for endpoint signatures

Usage Examples:
    @router.get("/health")
    async def health(db: DBSessionDep) -> dict:
        await db.fetchval("SELECT 1")
        return {"status": "ok"}

    @router.post("/measures/select")
    async def select(request: MeasureSelectionRequest, settings: SettingsDep):
        ...

Overriding in tests:
    app.dependency_overrides[get_settings_dependency] = lambda: Settings(database_url="...")
"""

from typing import Annotated, AsyncGenerator

from asyncpg import Connection
from fastapi import Depends

from mips_engine.core.config import Settings, get_settings
from mips_engine.core.database import get_db_pool


# =============================================================================
# Database Session Dependency
# =============================================================================

async def get_db_session() -> AsyncGenerator[Connection, None]:
    """
    Yield a connection from the asyncpg pool.

    The connection is released back to the pool when the request completes,
    whether or not the handler raised.
    """
    pool = await get_db_pool()
    async with pool.acquire() as connection:
        yield connection


# =============================================================================
# Settings Dependency
# =============================================================================

def get_settings_dependency() -> Settings:
    """Return the cached Settings instance (overridable via dependency_overrides)."""
    return get_settings()


# =============================================================================
# Type Aliases
# =============================================================================

DBSessionDep = Annotated[Connection, Depends(get_db_session)]

SettingsDep = Annotated[Settings, Depends(get_settings_dependency)]
